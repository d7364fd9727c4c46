"""Bitstamp websocket 프로토콜 상수 모음"""

BITSTAMP_WS_URL = "wss://ws.bitstamp.net"

# client -> server
EVENT_SUBSCRIBE = "bts:subscribe"
EVENT_UNSUBSCRIBE = "bts:unsubscribe"

# server -> client
EVENT_SUBSCRIPTION_SUCCEEDED = "bts:subscription_succeeded"
EVENT_UNSUBSCRIPTION_SUCCEEDED = "bts:unsubscription_succeeded"
EVENT_REQUEST_RECONNECT = "bts:request_reconnect"
EVENT_ERROR = "bts:error"

# 양방향: client 는 probe 로, server 는 ack 로 같은 태그를 사용
EVENT_HEARTBEAT = "bts:heartbeat"

CHANNEL_LIVE_TRADES = "live_trades"
CHANNEL_LIVE_ORDERS = "live_orders"
CHANNEL_ORDER_BOOK = "order_book"
CHANNEL_DETAIL_ORDER_BOOK = "detail_order_book"
CHANNEL_DIFF_ORDER_BOOK = "diff_order_book"

CHANNEL_MY_ORDERS = "private-my_orders"
CHANNEL_MY_TRADES = "private-my_trades"

PRIVATE_CHANNEL_PREFIX = "private-"

# cost(amount * price) 를 덧붙이는 채널
COST_CHANNEL_PREFIXES = (
    CHANNEL_LIVE_TRADES,
    CHANNEL_LIVE_ORDERS,
    CHANNEL_MY_ORDERS,
    CHANNEL_MY_TRADES,
)

# transport 재연결 기본값 (seconds)
DEFAULT_MAX_RETRIES = 10
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_MAX_BACKOFF = 30.0
DEFAULT_PING_INTERVAL = 60
DEFAULT_PING_TIMEOUT = 50

# open 전/재접속 중 쌓아둘 송신 메시지 수; 넘치면 오래된 것부터 버림
DEFAULT_MAX_QUEUED = 1000
