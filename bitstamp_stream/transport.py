import random
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Protocol

import websocket

from .constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_QUEUED,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PING_INTERVAL,
    DEFAULT_PING_TIMEOUT,
)
from .logger import get_logger


class Transport(Protocol):
    """클라이언트가 기대하는 최소 transport 계약."""

    def start(self) -> None: ...

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[..., Transport]


class ReconnectingWebSocket:
    """
    websocket-client WebSocketApp 기반 자동 재연결 transport.

    - 별도 daemon 스레드에서 run_forever 를 돌리고, 끊기면 지수 백오프 + 지터 후 재접속
    - 연결 전/재접속 중에 보낸 메시지는 큐에 쌓았다가 open 시 순서대로 전송
    - 열렸던 연결이 닫힐 때만 on_close 를 알림 (접속 실패는 재시도만 함)
    - close() 이후에는 어떤 알림도 보내지 않음
    """

    def __init__(
        self,
        url: str,
        *,
        on_open: Callable[[], None],
        on_close: Callable[[], None],
        on_message: Callable[[str], None],
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        ping_interval: float = DEFAULT_PING_INTERVAL,
        ping_timeout: float = DEFAULT_PING_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        max_queued: Optional[int] = DEFAULT_MAX_QUEUED,
    ) -> None:
        self.url = url
        self.on_open = on_open
        self.on_close = on_close
        self.on_message = on_message
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.max_backoff = max_backoff
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.headers = headers or {}

        self.ws: Optional[websocket.WebSocketApp] = None
        self.connected = False
        self._retries = 0
        self._stop_evt = threading.Event()
        self._send_lock = threading.Lock()
        self._queue: Deque[str] = deque(maxlen=max_queued)
        self._thread: Optional[threading.Thread] = None
        self.log = get_logger("transport")

    @property
    def closed(self) -> bool:
        return self._stop_evt.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        t = threading.Thread(target=self._run, name="bitstamp-ws")
        t.daemon = True
        t.start()
        self._thread = t

    def send(self, text: str) -> None:
        with self._send_lock:
            if self.closed:
                self.log.warning("[ws] send after close dropped: %s", text[:200])
                return
            if self.connected and self.ws is not None:
                try:
                    self.ws.send(text)
                    return
                except (websocket.WebSocketException, OSError) as e:
                    self.log.warning("[ws] send failed, queued: %s", e)
            self._queue.append(text)

    def close(self) -> None:
        self._stop_evt.set()
        with self._send_lock:
            self.connected = False
            self._queue.clear()
            ws = self.ws
        if ws is not None:
            try:
                ws.close()
            except Exception as e:
                self.log.debug("[ws] close error ignored: %s", e)

    def next_delay(self) -> float:
        # 지수 백오프 + 소폭 지터
        base_delay = min(self.max_backoff, self.backoff_base * (2 ** self._retries))
        jitter = random.uniform(0, 0.25 * base_delay)
        return min(self.max_backoff, base_delay + jitter)

    def _run(self) -> None:
        while not self._stop_evt.is_set():
            self.log.info("[ws] connect to %s", self.url)
            ws = websocket.WebSocketApp(
                self.url,
                header=[f"{k}: {v}" for k, v in self.headers.items()],
                on_open=self._on_open,
                on_message=self._on_message,
                on_close=self._on_close,
                on_error=self._on_error,
            )
            with self._send_lock:
                self.ws = ws
            # close() 가 ws 할당 전에 끝났다면 접속하지 않는다
            if self._stop_evt.is_set():
                break
            try:
                ws.run_forever(ping_interval=self.ping_interval, ping_timeout=self.ping_timeout)
            except Exception as e:
                self.log.exception("[ws] run_forever failed: %s", e)

            if self._stop_evt.is_set():
                break
            if self._retries >= self.max_retries:
                self.log.error(
                    "[ws reconnect] give up after %d retries (%s)",
                    self._retries,
                    self.url,
                    extra={"notify_slack": True},
                )
                break
            delay = self.next_delay()
            self._retries += 1
            self.log.warning(
                "[ws reconnect] in %.1fs (attempt %d/%d)", delay, self._retries, self.max_retries
            )
            if self._stop_evt.wait(delay):
                break

    def _flush(self, ws: Any) -> None:
        while self._queue:
            text = self._queue.popleft()
            try:
                ws.send(text)
            except (websocket.WebSocketException, OSError) as e:
                self._queue.appendleft(text)
                self.log.warning("[ws] flush interrupted: %s", e)
                return

    def _on_open(self, ws) -> None:  # type: ignore[no-untyped-def]
        if self.closed:
            ws.close()
            return
        self.log.info("[ws] opened")
        with self._send_lock:
            self.connected = True
            self._retries = 0
            self._flush(ws)
        self.on_open()

    def _on_message(self, ws, message: str) -> None:  # type: ignore[no-untyped-def]
        if self.closed:
            return
        self.on_message(message)

    def _on_error(self, ws, error) -> None:  # type: ignore[no-untyped-def]
        if self.closed:
            return
        self.log.error("[ws error] %s", error)

    def _on_close(self, ws, close_status_code=None, close_msg=None) -> None:  # type: ignore[no-untyped-def]
        with self._send_lock:
            was_connected = self.connected
            self.connected = False
        self.log.info("[ws close] %s %s", close_status_code, close_msg)
        if was_connected and not self.closed:
            self.on_close()
