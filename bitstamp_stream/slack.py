import os
from typing import Any, Dict, Optional

import requests


def send_slack_message(
    text: str,
    *,
    webhook_url: Optional[str] = None,
    username: Optional[str] = None,
    icon_emoji: Optional[str] = None,
    timeout_seconds: float = 5.0,
    retries: int = 0,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """
    Slack Incoming Webhook 으로 텍스트 메시지를 전송합니다.

    Arguments:
        text: 전송할 텍스트
        webhook_url: 지정하지 않으면 환경변수 `SLACK_WEBHOOK_URL` 사용
        username: 메시지 발신자 이름(옵션)
        icon_emoji: 아이콘 이모지(옵션, 예: ":satellite:")
        timeout_seconds: 요청 타임아웃(초)
        retries: 실패 시 재시도 횟수
        session: 재사용할 requests.Session (옵션)

    Returns:
        {"ok": bool, "status": int, "error": Optional[str]}
    """
    url = webhook_url or os.getenv("SLACK_WEBHOOK_URL")
    if not url:
        return {"ok": False, "status": 0, "error": "SLACK_WEBHOOK_URL not set"}

    payload: Dict[str, Any] = {"text": text}
    if username:
        payload["username"] = username
    if icon_emoji:
        payload["icon_emoji"] = icon_emoji

    poster = session or requests
    last_error: Optional[str] = None
    last_status = 0
    for _ in range(max(0, retries) + 1):
        try:
            resp = poster.post(url, json=payload, timeout=timeout_seconds)
        except requests.RequestException as e:  # pragma: no cover - network error path
            last_error = str(e)
            continue
        last_status = resp.status_code
        if 200 <= resp.status_code < 300:
            return {"ok": True, "status": resp.status_code, "error": None}
        last_error = f"status={resp.status_code} body={resp.text[:300]}"

    return {"ok": False, "status": last_status, "error": last_error}


class SlackNotifier:
    """스트림 상태 변화(연결/끊김/무응답)를 Slack 으로 알린다. 실패는 흐름에 영향 없음."""

    def __init__(self, webhook_url: Optional[str], *, username: str = "Bitstamp Stream") -> None:
        self.webhook_url = webhook_url
        self.username = username

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def notify(self, text: str, icon_emoji: Optional[str] = None) -> Dict[str, Any]:
        if not self.webhook_url:
            return {"ok": False, "status": 0, "error": "disabled"}
        return send_slack_message(
            f"[Bitstamp] {text}",
            webhook_url=self.webhook_url,
            username=self.username,
            icon_emoji=icon_emoji,
        )
