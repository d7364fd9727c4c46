import json

import pytest

from bitstamp_stream.client import BitstampStream


class FakeTransport:
    def __init__(self, url, *, on_open, on_close, on_message):
        self.url = url
        self.on_open = on_open
        self.on_close = on_close
        self.on_message = on_message
        self.sent = []
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def send(self, text):
        self.sent.append(json.loads(text))

    def close(self):
        self.closed = True

    # 테스트에서 서버 쪽 동작을 흉내내는 헬퍼
    def open(self):
        self.on_open()

    def drop(self):
        self.on_close()

    def deliver(self, obj):
        self.on_message(obj if isinstance(obj, str) else json.dumps(obj))


class FakeTransportFactory:
    def __init__(self):
        self.created = []

    def __call__(self, url, **callbacks):
        t = FakeTransport(url, **callbacks)
        self.created.append(t)
        return t

    @property
    def current(self):
        return self.created[-1]


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def make_stream(factory):
    streams = []

    def _make(**kwargs):
        s = BitstampStream(transport_factory=factory, **kwargs)
        streams.append(s)
        return s

    yield _make
    for s in streams:
        s.close()


@pytest.fixture
def recorder():
    class Recorder:
        def __init__(self):
            self.calls = []

        def __call__(self, *args):
            self.calls.append(args)

    return Recorder
