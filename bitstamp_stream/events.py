"""
클라이언트가 외부로 내보내는 이벤트 정의

- StreamEvent: 고정 이벤트 이름
- ChannelMessage / ServerError: 이벤트 payload
- EventEmitter: 이벤트 이름 -> 콜백 목록 테이블
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .logger import get_logger


class StreamEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    UNRESPONSIVE = "unresponsive"
    ERROR = "error"


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelMessage:
    """데이터 채널 이벤트 payload. data 는 cost 보강이 끝난 사본."""

    channel: str
    event: str
    data: Dict[str, Any] = field(default_factory=dict)


class ServerError(Exception):
    """서버가 보낸 bts:error envelope."""

    def __init__(self, message: str, code: Any = None, channel: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.channel = channel


EventKey = Union[StreamEvent, str]


def _key(event: EventKey) -> str:
    # str 믹스인 Enum 은 hash 가 값과 달라서 문자열로 정규화
    if isinstance(event, Enum):
        return str(event.value)
    return str(event)


class EventEmitter:
    """
    이벤트 이름(고정 이벤트 또는 채널 이름)별 콜백 목록.
    한 콜백의 예외가 다른 콜백이나 이후 메시지 전달을 막지 않는다.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}
        self.log = get_logger("events")

    def on(self, event: EventKey, callback: Callable[..., Any]) -> Callable[..., Any]:
        self._listeners.setdefault(_key(event), []).append(callback)
        return callback

    def off(self, event: EventKey, callback: Optional[Callable[..., Any]] = None) -> None:
        key = _key(event)
        if callback is None:
            self._listeners.pop(key, None)
            return
        callbacks = self._listeners.get(key)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            return
        if not callbacks:
            del self._listeners[key]

    def listeners(self, event: EventKey) -> List[Callable[..., Any]]:
        return list(self._listeners.get(_key(event), ()))

    def emit(self, event: EventKey, *args: Any) -> int:
        """등록된 콜백 수를 반환 (0 이면 아무도 듣지 않음)."""
        callbacks = self.listeners(event)
        for cb in callbacks:
            try:
                cb(*args)
            except Exception as e:
                self.log.exception("[listener error] event=%s %s", _key(event), e)
        return len(callbacks)


__all__ = [
    "StreamEvent",
    "ConnectionState",
    "ChannelMessage",
    "ServerError",
    "EventEmitter",
]
