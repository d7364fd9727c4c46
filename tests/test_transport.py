import pytest
import websocket

from bitstamp_stream import transport as transport_module
from bitstamp_stream.transport import ReconnectingWebSocket


class FakeApp:
    instances = []
    script = staticmethod(lambda app: None)

    def __init__(self, url, header=None, on_open=None, on_message=None, on_close=None, on_error=None):
        self.url = url
        self.header = header
        self.on_open = on_open
        self.on_message = on_message
        self.on_close = on_close
        self.on_error = on_error
        self.sent = []
        self.closed = False
        self.run_kwargs = None
        FakeApp.instances.append(self)

    def run_forever(self, **kwargs):
        self.run_kwargs = kwargs
        FakeApp.script(self)

    def send(self, text):
        self.sent.append(text)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_app(monkeypatch):
    FakeApp.instances = []
    FakeApp.script = staticmethod(lambda app: None)
    monkeypatch.setattr(transport_module.websocket, "WebSocketApp", FakeApp)
    return FakeApp


class Events:
    def __init__(self):
        self.log = []

    def kwargs(self):
        return dict(
            on_open=lambda: self.log.append("open"),
            on_close=lambda: self.log.append("close"),
            on_message=lambda text: self.log.append(("message", text)),
        )


def test_open_message_close_are_forwarded(fake_app):
    events = Events()
    t = ReconnectingWebSocket("wss://example", max_retries=0, **events.kwargs())

    def script(app):
        app.on_open(app)
        app.on_message(app, '{"event": "trade"}')
        app.on_close(app, 1000, "bye")

    fake_app.script = staticmethod(script)
    t._run()

    assert events.log == ["open", ("message", '{"event": "trade"}'), "close"]
    assert fake_app.instances[0].run_kwargs == {"ping_interval": 60, "ping_timeout": 50}


def test_messages_sent_before_open_are_flushed(fake_app):
    events = Events()
    t = ReconnectingWebSocket("wss://example", max_retries=0, **events.kwargs())
    t.send("first")
    t.send("second")

    def script(app):
        app.on_open(app)
        t.send("third")

    fake_app.script = staticmethod(script)
    t._run()

    assert fake_app.instances[0].sent == ["first", "second", "third"]


def test_failed_connect_is_retried_without_close_notification(fake_app):
    events = Events()
    t = ReconnectingWebSocket("wss://example", max_retries=2, backoff_base=0.0, **events.kwargs())

    def script(app):
        app.on_error(app, ConnectionRefusedError("refused"))
        app.on_close(app, None, None)

    fake_app.script = staticmethod(script)
    t._run()

    assert len(fake_app.instances) == 3
    assert events.log == []


def test_close_stops_reconnect_loop(fake_app):
    events = Events()
    t = ReconnectingWebSocket("wss://example", max_retries=5, backoff_base=0.0, **events.kwargs())

    def script(app):
        app.on_open(app)
        t.close()
        app.on_message(app, "late")
        app.on_close(app, 1000, "closed")

    fake_app.script = staticmethod(script)
    t._run()

    assert len(fake_app.instances) == 1
    assert fake_app.instances[0].closed
    assert events.log == ["open"]


def test_send_failure_requeues(fake_app):
    t = ReconnectingWebSocket("wss://example", **Events().kwargs())
    app = FakeApp("wss://example")
    t.ws = app
    t._on_open(app)

    def broken(text):
        raise websocket.WebSocketConnectionClosedException("gone")

    app.send = broken
    t.send("x")

    assert list(t._queue) == ["x"]


def test_send_after_close_is_dropped(fake_app):
    t = ReconnectingWebSocket("wss://example", **Events().kwargs())
    t.close()
    t.send("x")
    assert list(t._queue) == []


def test_next_delay_is_bounded():
    t = ReconnectingWebSocket(
        "wss://example", backoff_base=1.0, max_backoff=30.0, **Events().kwargs()
    )
    assert 1.0 <= t.next_delay() <= 1.25
    t._retries = 3
    assert 8.0 <= t.next_delay() <= 10.0
    t._retries = 10
    assert t.next_delay() == 30.0


def test_close_before_connect_skips_run_forever(fake_app, monkeypatch):
    t = ReconnectingWebSocket("wss://example", max_retries=5, backoff_base=0.0, **Events().kwargs())
    ran = []

    class ClosingApp(FakeApp):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            t.close()

        def run_forever(self, **kwargs):
            ran.append(kwargs)

    monkeypatch.setattr(transport_module.websocket, "WebSocketApp", ClosingApp)
    t._run()

    assert ran == []
    assert len(fake_app.instances) == 1


def test_open_after_close_closes_socket(fake_app):
    events = Events()
    t = ReconnectingWebSocket("wss://example", **events.kwargs())
    app = FakeApp("wss://example")
    t.close()
    t._on_open(app)

    assert app.closed
    assert events.log == []
    assert not t.connected


def test_send_queue_is_bounded(fake_app):
    t = ReconnectingWebSocket("wss://example", max_queued=2, **Events().kwargs())
    for text in ("a", "b", "c"):
        t.send(text)
    assert list(t._queue) == ["b", "c"]


def test_default_send_queue_is_finite():
    t = ReconnectingWebSocket("wss://example", **Events().kwargs())
    assert t._queue.maxlen == 1000
