import threading
from typing import Any, Callable, Dict, List, Optional

from .codec import DecodeError, Envelope, channel_name, decode, encode, with_cost
from .constants import (
    BITSTAMP_WS_URL,
    COST_CHANNEL_PREFIXES,
    DEFAULT_MAX_RETRIES,
    EVENT_ERROR,
    EVENT_HEARTBEAT,
    EVENT_REQUEST_RECONNECT,
    EVENT_SUBSCRIBE,
    EVENT_SUBSCRIPTION_SUCCEEDED,
    EVENT_UNSUBSCRIBE,
    EVENT_UNSUBSCRIPTION_SUCCEEDED,
)
from .events import (
    ChannelMessage,
    ConnectionState,
    EventEmitter,
    EventKey,
    ServerError,
    StreamEvent,
)
from .logger import get_logger
from .registry import SubscriptionRegistry
from .slack import SlackNotifier
from .transport import ReconnectingWebSocket, Transport, TransportFactory
from .watchdog import HeartbeatWatchdog


class BitstampStream:
    """
    Bitstamp websocket 스트림 클라이언트.

    transport 의 open/close/message 알림을 받아 구독 상태를 관리하고,
    heartbeat 로 좀비 연결을 감지하며, 데이터 메시지를 채널 이름 이벤트로 내보낸다.

    모든 알림/타이머 tick/공개 메서드는 하나의 RLock 안에서 끝까지 실행된다.

    Usage:
        stream = BitstampStream(polling_interval=10)
        stream.on(StreamEvent.CONNECTED, lambda: stream.subscribe("live_trades", "btcusd"))
        stream.on("live_trades_btcusd", handle_trade)
        stream.on(StreamEvent.UNRESPONSIVE, stream.reconnect)
    """

    def __init__(
        self,
        url: str = BITSTAMP_WS_URL,
        *,
        polling_interval: Optional[float] = None,
        token: Optional[str] = None,
        user_id: Optional[Any] = None,
        transport_factory: Optional[TransportFactory] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        slack_webhook_url: Optional[str] = None,
    ) -> None:
        self.url = url
        self.polling_interval = polling_interval
        self._token = token
        self._user_id = user_id
        self.max_retries = max_retries
        self.transport_factory = transport_factory or self._default_transport

        self.lock = threading.RLock()
        self.log = get_logger("client")
        self.emitter = EventEmitter()
        self.registry = SubscriptionRegistry()
        self.slack = SlackNotifier(slack_webhook_url)
        self.watchdog = HeartbeatWatchdog(
            polling_interval,
            send_probe=lambda: self._send(EVENT_HEARTBEAT, {}),
            on_unresponsive=self._handle_unresponsive,
            lock=self.lock,
        )

        self.transport: Optional[Transport] = None
        self._state = ConnectionState.CONNECTING
        # transport 를 교체할 때마다 증가; 이전 transport 의 늦은 알림을 거른다
        self._generation = 0

        self.connect()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user_id(self) -> Optional[Any]:
        return self._user_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def subscriptions(self) -> frozenset:
        return self.registry.all()

    # Listener registration -------------------------------------------------

    def on(self, event: EventKey, callback: Callable[..., Any]) -> Callable[..., Any]:
        return self.emitter.on(event, callback)

    def off(self, event: EventKey, callback: Optional[Callable[..., Any]] = None) -> None:
        self.emitter.off(event, callback)

    # Public operations -----------------------------------------------------

    def subscribe(self, channel_base: str, currency_pair: str) -> str:
        with self.lock:
            self._ensure_not_closed()
            channel = self._channel_name(channel_base, currency_pair)
            data: Dict[str, Any] = {"channel": channel}
            if self._token:
                data["auth"] = self._token
            self.log.info("[subscribe] %s", channel)
            self._send(EVENT_SUBSCRIBE, data)
            return channel

    def unsubscribe(self, channel_base: str, currency_pair: str) -> str:
        with self.lock:
            self._ensure_not_closed()
            channel = self._channel_name(channel_base, currency_pair)
            self.log.info("[unsubscribe] %s", channel)
            self._send(EVENT_UNSUBSCRIBE, {"channel": channel})
            return channel

    def unsubscribe_all(self) -> List[str]:
        with self.lock:
            self._ensure_not_closed()
            channels = sorted(self.registry.all())
            for channel in channels:
                self._send(EVENT_UNSUBSCRIBE, {"channel": channel})
            self.log.info("[unsubscribe] all (%d channels)", len(channels))
            return channels

    def connect(self) -> None:
        with self.lock:
            self._ensure_not_closed()
            if self.transport is not None:
                # 리스너가 teardown 중에 재연결한 경우 그 transport 도 닫는다
                self._teardown(ConnectionState.CLOSING)
            self._generation += 1
            generation = self._generation
            self.registry.clear()
            self._state = ConnectionState.CONNECTING
            transport = self.transport_factory(
                self.url,
                on_open=lambda: self._on_transport_open(generation),
                on_close=lambda: self._on_transport_close(generation),
                on_message=lambda text: self._on_transport_message(generation, text),
            )
            self.transport = transport
            transport.start()

    def reconnect(self) -> None:
        with self.lock:
            self._ensure_not_closed()
            self.log.info("[reconnect] tearing down current connection")
            self._teardown(ConnectionState.CLOSING)
            self.connect()

    def close(self) -> None:
        with self.lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._teardown(ConnectionState.CLOSING)
            if self.transport is not None:
                # disconnected 리스너가 만든 transport
                self._teardown(ConnectionState.CLOSING)
            self._state = ConnectionState.CLOSED
            self.log.info("[close] stream closed")

    # Transport notifications -----------------------------------------------

    def _on_transport_open(self, generation: int) -> None:
        with self.lock:
            if not self._is_current(generation):
                return
            self._state = ConnectionState.OPEN
            self.log.info("[ws] connected")
            self.emitter.emit(StreamEvent.CONNECTED)
            self.watchdog.start()
            self._notify_slack("WebSocket 연결 성공", ":satellite:")

    def _on_transport_close(self, generation: int) -> None:
        with self.lock:
            if not self._is_current(generation):
                return
            # transport 가 스스로 재접속하므로 구독 목록은 유지
            self._state = ConnectionState.CONNECTING
            self.log.info("[ws] disconnected")
            self.emitter.emit(StreamEvent.DISCONNECTED)
            self.watchdog.stop()
            self._notify_slack("WebSocket 연결 종료", ":warning:")

    def _on_transport_message(self, generation: int, text: str) -> None:
        with self.lock:
            if not self._is_current(generation):
                return
            try:
                envelope = decode(text)
            except DecodeError as e:
                self.log.warning("[ws message] decode failed: %s", e)
                self.emitter.emit(StreamEvent.ERROR, e)
                return
            self._dispatch(envelope)

    def _dispatch(self, envelope: Envelope) -> None:
        event, channel = envelope.event, envelope.channel
        if event == EVENT_UNSUBSCRIPTION_SUCCEEDED:
            if channel:
                self.registry.remove(channel)
            self.log.info("[unsubscribed] %s", channel)
            self.emitter.emit(StreamEvent.UNSUBSCRIBED, channel)
        elif event == EVENT_SUBSCRIPTION_SUCCEEDED:
            if channel:
                self.registry.add(channel)
            self.log.info("[subscribed] %s", channel)
            self.emitter.emit(StreamEvent.SUBSCRIBED, channel)
        elif event == EVENT_REQUEST_RECONNECT:
            self.log.info("[reconnect] requested by server")
            self.reconnect()
        elif event == EVENT_HEARTBEAT:
            self.watchdog.mark_alive()
        elif event == EVENT_ERROR:
            message = str(envelope.data.get("message") or "server error")
            self.log.error("[server error] %s (channel=%s)", message, channel)
            self.emitter.emit(
                StreamEvent.ERROR, ServerError(message, envelope.data.get("code"), channel)
            )
        else:
            if not channel:
                self.log.warning("[ws message] %s without channel dropped", event)
                return
            data = envelope.data
            if channel.startswith(COST_CHANNEL_PREFIXES):
                data = with_cost(data)
            self.emitter.emit(channel, ChannelMessage(channel=channel, event=event, data=data))

    def _handle_unresponsive(self) -> None:
        self._notify_slack("heartbeat 응답 없음", ":x:")
        self.emitter.emit(StreamEvent.UNRESPONSIVE)

    # Internals ---------------------------------------------------------------

    def _default_transport(self, url: str, **callbacks: Any) -> Transport:
        return ReconnectingWebSocket(url, max_retries=self.max_retries, **callbacks)

    def _channel_name(self, channel_base: str, currency_pair: str) -> str:
        try:
            return channel_name(channel_base, currency_pair, self._user_id if self._token else None)
        except ValueError:
            raise ValueError(
                f"private channel {channel_base!r} requires token and user_id"
            ) from None

    def _send(self, event: str, data: Dict[str, Any]) -> None:
        if self.transport is None:
            raise RuntimeError("stream has no transport")
        self.transport.send(encode(event, data))

    def _teardown(self, state: ConnectionState) -> None:
        was_open = self._state is ConnectionState.OPEN
        self._state = state
        self.watchdog.stop()
        transport, self.transport = self.transport, None
        # 이후 도착하는 이전 transport 알림은 모두 무시
        self._generation += 1
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                self.log.warning("[ws] transport close failed: %s", e)
        if was_open:
            self.emitter.emit(StreamEvent.DISCONNECTED)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state is not ConnectionState.CLOSED

    def _ensure_not_closed(self) -> None:
        if self._state is ConnectionState.CLOSED:
            raise RuntimeError("stream is closed")

    def _notify_slack(self, text: str, icon_emoji: Optional[str] = None) -> None:
        if not self.slack.enabled:
            return
        try:
            self.slack.notify(text, icon_emoji)
        except Exception as e:
            # Slack 실패는 흐름에 영향 주지 않음
            self.log.debug("[slack] notify failed: %s", e)
