import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from .constants import PRIVATE_CHANNEL_PREFIX


class DecodeError(ValueError):
    """수신 텍스트를 envelope 로 해석할 수 없을 때 발생."""

    def __init__(self, message: str, raw: Union[str, bytes, None] = None) -> None:
        super().__init__(message)
        self.raw = raw


@dataclass(frozen=True)
class Envelope:
    event: str
    data: Dict[str, Any] = field(default_factory=dict)
    channel: Optional[str] = None


def decode(text: Union[str, bytes]) -> Envelope:
    """
    wire 텍스트 `{event, data, channel}` 를 Envelope 로 변환.
    dispatch 에 필요한 모양만 검사하며, 나머지 스키마는 그대로 통과시킨다.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid utf-8: {e}", raw=text) from e
    try:
        obj = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"invalid json: {e}", raw=text) from e

    if not isinstance(obj, dict):
        raise DecodeError("envelope must be a JSON object", raw=text)
    event = obj.get("event")
    if not isinstance(event, str):
        raise DecodeError("envelope has no string 'event'", raw=text)
    data = obj.get("data")
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise DecodeError("envelope 'data' must be a JSON object", raw=text)
    channel = obj.get("channel")
    if channel is not None and not isinstance(channel, str):
        channel = str(channel)
    return Envelope(event=event, data=data, channel=channel)


def encode(event: str, data: Optional[Mapping[str, Any]] = None) -> str:
    return json.dumps({"event": event, "data": dict(data or {})}, ensure_ascii=False)


def is_private_channel(channel_base: str) -> bool:
    return channel_base.startswith(PRIVATE_CHANNEL_PREFIX)


def channel_name(channel_base: str, currency_pair: str, user_id: Optional[Any] = None) -> str:
    """`<base>_<pair>` 또는 private 채널이면 `<base>_<pair>-<user_id>`."""
    name = f"{channel_base}_{currency_pair}"
    if is_private_channel(channel_base):
        if user_id is None or user_id == "":
            raise ValueError(f"private channel {channel_base!r} requires user_id")
        name = f"{name}-{user_id}"
    return name


def _to_number(value: Any) -> Union[int, float]:
    # bool 은 int 의 하위 타입이라 별도로 거른다
    if isinstance(value, bool):
        raise TypeError("bool is not a number")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return float(value)
    raise TypeError(f"not a number: {type(value).__name__}")


def with_cost(data: Mapping[str, Any]) -> Dict[str, Any]:
    """data 사본에 cost = amount * price 를 추가. 계산 불가면 사본만 반환."""
    out = dict(data)
    try:
        out["cost"] = _to_number(data.get("amount")) * _to_number(data.get("price"))
    except (TypeError, ValueError):
        pass
    return out


__all__ = [
    "DecodeError",
    "Envelope",
    "decode",
    "encode",
    "is_private_channel",
    "channel_name",
    "with_cost",
]
