import json
import logging
import urllib.error
import urllib.parse
import urllib.request

from flask import current_app

log = logging.getLogger(__name__)


def send_telegram_message(text: str) -> bool:
    """
    Post a staff alert to the configured Telegram chat. Returns True/False.
    Silently disabled when TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID are not set.
    """
    token = current_app.config.get("TELEGRAM_BOT_TOKEN")
    chat_id = current_app.config.get("TELEGRAM_CHAT_ID")
    if not token or not chat_id:
        return False

    api_url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
    }
    data = urllib.parse.urlencode(payload).encode("utf-8")
    req = urllib.request.Request(api_url, data=data, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=8) as resp:
            obj = json.loads(resp.read().decode("utf-8"))
            return bool(obj.get("ok"))
    except (urllib.error.URLError, OSError, ValueError) as e:
        log.warning("Telegram alert failed: %s", e)
        return False
