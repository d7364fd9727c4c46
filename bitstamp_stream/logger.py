import json
import logging
import logging.handlers
import os
import sys
import time
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Optional, Union

from .slack import send_slack_message


LOGGER_NAME = "bitstamp_stream"
LEVEL_ENV = "BITSTAMP_STREAM_LOG_LEVEL"

_configured: bool = False


def _coerce_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.INFO


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


class SlackLogHandler(logging.Handler):
    """
    min_level 이상이거나 extra={"notify_slack": True} 로 표시된 레코드를 Slack 으로 보낸다.
    분당 전송 수를 rate_limit_per_minute 로 제한.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        *,
        min_level: Union[str, int] = "ERROR",
        extra_flag_key: str = "notify_slack",
        rate_limit_per_minute: int = 30,
    ) -> None:
        # 플래그된 레코드는 레벨과 무관하게 통과해야 하므로 핸들러 자체 레벨은 열어둔다
        super().__init__(logging.NOTSET)
        self.min_level = _coerce_level(min_level)
        self.webhook_url = webhook_url
        self.extra_flag_key = extra_flag_key
        self.rate_limit_per_minute = max(1, rate_limit_per_minute)
        self._recent_sends: Deque[float] = deque()

    def _allow_send(self) -> bool:
        now = time.monotonic()
        one_min_ago = now - 60.0
        while self._recent_sends and self._recent_sends[0] < one_min_ago:
            self._recent_sends.popleft()
        if len(self._recent_sends) >= self.rate_limit_per_minute:
            return False
        self._recent_sends.append(now)
        return True

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            if not self.webhook_url:
                return
            flagged = bool(getattr(record, self.extra_flag_key, False))
            if not flagged and record.levelno < self.min_level:
                return
            if not self._allow_send():
                return
            msg = self.format(record) if self.formatter else record.getMessage()
            send_slack_message(msg, webhook_url=self.webhook_url)
        except Exception:
            # 로깅 예외가 스트림 처리 흐름을 막지 않도록
            self.handleError(record)


def setup_logging(
    level: Union[str, int] = "INFO",
    *,
    json_logs: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    slack_webhook_url: Optional[str] = None,
    slack_min_level: Union[str, int] = "ERROR",
    slack_extra_flag_key: str = "notify_slack",
    slack_rate_limit_per_minute: int = 30,
) -> None:
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_coerce_level(level))
    logger.propagate = False

    # clear existing handlers to avoid duplicates
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if slack_webhook_url:
        slack_handler = SlackLogHandler(
            webhook_url=slack_webhook_url,
            min_level=slack_min_level,
            extra_flag_key=slack_extra_flag_key,
            rate_limit_per_minute=slack_rate_limit_per_minute,
        )
        slack_handler.setFormatter(formatter)
        logger.addHandler(slack_handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not _configured:
        setup_logging(os.getenv(LEVEL_ENV, "INFO"))
    return logging.getLogger(LOGGER_NAME if not name else f"{LOGGER_NAME}.{name}")


def set_level(level: Union[str, int]) -> None:
    logging.getLogger(LOGGER_NAME).setLevel(_coerce_level(level))


__all__ = [
    "JsonFormatter",
    "SlackLogHandler",
    "setup_logging",
    "get_logger",
    "set_level",
]
