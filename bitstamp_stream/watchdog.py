import threading
from typing import Callable, ContextManager, Optional

from .logger import get_logger


class _NullLock:
    def __enter__(self) -> None:
        return None

    def __exit__(self, *exc) -> None:  # type: ignore[no-untyped-def]
        return None


class HeartbeatWatchdog:
    """
    애플리케이션 레벨 heartbeat 감시기.

    소켓은 열려 있지만 데이터가 오가지 않는 "좀비" 연결을 감지한다.
    매 tick 마다 직전 probe 이후 ack 가 왔는지 확인하고, 왔으면 새 probe 를
    보내며, 오지 않았으면 타이머를 멈추고 on_unresponsive 를 호출한다.
    재연결 여부는 호출자가 결정한다.

    polling_interval 이 None/0 이면 비활성: 타이머, probe, 감지 모두 없음.
    """

    def __init__(
        self,
        polling_interval: Optional[float],
        send_probe: Callable[[], None],
        on_unresponsive: Callable[[], None],
        *,
        lock: Optional[ContextManager] = None,
    ) -> None:
        self.polling_interval = polling_interval
        self.send_probe = send_probe
        self.on_unresponsive = on_unresponsive
        self.alive = False
        self._lock = lock or _NullLock()
        self._stop_evt: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.log = get_logger("watchdog")

    @property
    def enabled(self) -> bool:
        return bool(self.polling_interval and self.polling_interval > 0)

    @property
    def running(self) -> bool:
        return self._stop_evt is not None and not self._stop_evt.is_set()

    def start(self) -> None:
        self.alive = True
        if not self.enabled:
            return
        self.stop()
        stop_evt = threading.Event()
        self._stop_evt = stop_evt
        t = threading.Thread(target=self._run, args=(stop_evt,), name="heartbeat-watchdog")
        t.daemon = True
        t.start()
        self._thread = t
        self.log.debug("[heartbeat] timer started (interval=%.1fs)", self.polling_interval)

    def stop(self) -> None:
        # 현재 스레드에서 호출될 수 있으므로 join 하지 않는다
        if self._stop_evt is not None and not self._stop_evt.is_set():
            self._stop_evt.set()
            self.log.debug("[heartbeat] timer stopped")
        self._stop_evt = None
        self._thread = None

    def mark_alive(self) -> None:
        self.alive = True

    def tick(self) -> None:
        if not self.alive:
            self.stop()
            self.log.warning("[heartbeat] no ack since last probe; link unresponsive")
            self.on_unresponsive()
            return
        self.send_probe()
        self.alive = False

    def _run(self, stop_evt: threading.Event) -> None:
        while not stop_evt.wait(self.polling_interval):
            with self._lock:
                # stop() 이 lock 안에서 끝났다면 이 tick 은 버린다
                if stop_evt.is_set():
                    return
                try:
                    self.tick()
                except Exception as e:
                    self.log.exception("[heartbeat] tick failed: %s", e)
