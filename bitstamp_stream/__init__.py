"""
bitstamp_stream: Bitstamp websocket 스트림 클라이언트 패키지

모듈 구성
- constants: 프로토콜 이벤트 태그/채널 이름/기본값
- codec: envelope 인코딩/디코딩, 채널 이름, cost 보강
- registry: 구독 ack 를 받은 채널 집합
- watchdog: heartbeat 무응답 감지기
- events: 내보내는 이벤트 이름/payload/리스너 테이블
- transport: websocket-client 기반 자동 재연결 transport
- client: 스트림 클라이언트 본체
"""

from .constants import (
    BITSTAMP_WS_URL,
    CHANNEL_LIVE_TRADES,
    CHANNEL_LIVE_ORDERS,
    CHANNEL_ORDER_BOOK,
    CHANNEL_DETAIL_ORDER_BOOK,
    CHANNEL_DIFF_ORDER_BOOK,
    CHANNEL_MY_ORDERS,
    CHANNEL_MY_TRADES,
)
from .codec import DecodeError, Envelope
from .events import ChannelMessage, ConnectionState, ServerError, StreamEvent
from .registry import SubscriptionRegistry
from .watchdog import HeartbeatWatchdog
from .transport import ReconnectingWebSocket
from .client import BitstampStream
from .logger import setup_logging, get_logger

__all__ = [
    "BITSTAMP_WS_URL",
    "CHANNEL_LIVE_TRADES",
    "CHANNEL_LIVE_ORDERS",
    "CHANNEL_ORDER_BOOK",
    "CHANNEL_DETAIL_ORDER_BOOK",
    "CHANNEL_DIFF_ORDER_BOOK",
    "CHANNEL_MY_ORDERS",
    "CHANNEL_MY_TRADES",
    "DecodeError",
    "Envelope",
    "ChannelMessage",
    "ConnectionState",
    "ServerError",
    "StreamEvent",
    "SubscriptionRegistry",
    "HeartbeatWatchdog",
    "ReconnectingWebSocket",
    "BitstampStream",
    "setup_logging",
    "get_logger",
]
