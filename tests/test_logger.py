import json
import logging
from unittest import mock

from bitstamp_stream import logger as logger_module
from bitstamp_stream import slack as slack_module
from bitstamp_stream.logger import JsonFormatter, SlackLogHandler
from bitstamp_stream.slack import SlackNotifier, send_slack_message


def make_record(level=logging.INFO, **extra):
    record = logging.LogRecord("bitstamp_stream.client", level, __file__, 1, "hello %s", ("world",), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter():
    out = json.loads(JsonFormatter().format(make_record()))
    assert out["message"] == "hello world"
    assert out["level"] == "INFO"
    assert out["name"] == "bitstamp_stream.client"


def test_slack_handler_level_and_flag():
    handler = SlackLogHandler("https://hooks.example/x", min_level="ERROR")
    with mock.patch.object(logger_module, "send_slack_message") as send:
        handler.emit(make_record(logging.INFO))
        handler.emit(make_record(logging.WARNING, notify_slack=True))
        handler.emit(make_record(logging.ERROR))
    assert send.call_count == 2


def test_slack_handler_rate_limit():
    handler = SlackLogHandler("https://hooks.example/x", rate_limit_per_minute=2)
    with mock.patch.object(logger_module, "send_slack_message") as send:
        for _ in range(5):
            handler.emit(make_record(logging.ERROR))
    assert send.call_count == 2


def test_slack_handler_without_url_is_silent():
    handler = SlackLogHandler(None)
    with mock.patch.object(logger_module, "send_slack_message") as send:
        handler.emit(make_record(logging.CRITICAL))
    send.assert_not_called()


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "stream.log"
    logger_module.setup_logging("DEBUG", log_file=str(log_file), json_logs=True)
    try:
        log = logger_module.get_logger("test")
        log.info("written")
        for h in logging.getLogger("bitstamp_stream").handlers:
            h.flush()
        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "written"
    finally:
        logger_module.setup_logging("INFO")


def test_send_slack_message_without_url(monkeypatch):
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    assert send_slack_message("hi")["ok"] is False


def test_send_slack_message_posts_payload():
    resp = mock.Mock(status_code=200, text="ok")
    with mock.patch.object(slack_module.requests, "post", return_value=resp) as post:
        res = send_slack_message("hi", webhook_url="https://hooks.example/x", username="bot")
    assert res == {"ok": True, "status": 200, "error": None}
    post.assert_called_once_with(
        "https://hooks.example/x", json={"text": "hi", "username": "bot"}, timeout=5.0
    )


def test_send_slack_message_retries_on_error_status():
    resp = mock.Mock(status_code=500, text="boom")
    with mock.patch.object(slack_module.requests, "post", return_value=resp) as post:
        res = send_slack_message("hi", webhook_url="https://hooks.example/x", retries=2)
    assert post.call_count == 3
    assert res["ok"] is False
    assert res["status"] == 500


def test_notifier_disabled_without_url():
    notifier = SlackNotifier(None)
    assert not notifier.enabled
    assert notifier.notify("x")["ok"] is False


def test_client_notifies_slack_on_connect(make_stream, factory):
    with mock.patch.object(SlackNotifier, "notify") as notify:
        make_stream(slack_webhook_url="https://hooks.example/x")
        factory.current.open()
    notify.assert_called_once_with("WebSocket 연결 성공", ":satellite:")


def test_set_level():
    try:
        logger_module.set_level("warning")
        assert logging.getLogger("bitstamp_stream").level == logging.WARNING
        logger_module.set_level(logging.DEBUG)
        assert logging.getLogger("bitstamp_stream").level == logging.DEBUG
    finally:
        logger_module.set_level("INFO")
