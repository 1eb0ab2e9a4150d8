# duka/api/utils/sms.py
import base64
import json
import urllib.error
import urllib.request

from flask import current_app


def _auth_header(cfg) -> str:
    raw = (cfg.get("SMS_API_BASIC_AUTH") or "").strip()
    if raw:
        return raw if raw.startswith("Basic ") else f"Basic {raw}"

    username = (cfg.get("SMS_API_USERNAME") or "").strip()
    password = (cfg.get("SMS_API_PASSWORD") or "").strip()
    if not (username and password):
        return ""
    return "Basic " + base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")


def sms_missing_config(cfg=None) -> list:
    cfg = cfg if cfg is not None else current_app.config
    missing = []
    if not cfg.get("ORDER_ALERT_SMS_TO"):
        missing.append("ORDER_ALERT_SMS_TO")
    if not _auth_header(cfg):
        missing.append("SMS_API_USERNAME/SMS_API_PASSWORD or SMS_API_BASIC_AUTH")
    return missing


def send_sms(text: str, to: str = None) -> bool:
    """
    Send one text message through the messaging-service API.
    Returns True/False; missing configuration is logged and reported as False.
    """
    cfg = current_app.config
    recipient = to or cfg.get("ORDER_ALERT_SMS_TO")
    auth = _auth_header(cfg)
    if not recipient or not auth:
        current_app.logger.info("SMS skipped, missing: %s", ", ".join(sms_missing_config(cfg)))
        return False

    path = cfg.get("SMS_API_TEST_SEND_PATH") if cfg.get("SMS_API_TEST_MODE") else cfg.get("SMS_API_SEND_PATH")
    path = path if path.startswith("/") else f"/{path}"
    api_url = f"{cfg.get('SMS_API_BASE_URL', '').rstrip('/')}{path}"

    payload = {"to": recipient, "text": text}
    if cfg.get("SMS_API_SENDER_ID"):
        payload["from"] = cfg["SMS_API_SENDER_ID"]

    req = urllib.request.Request(
        api_url,
        data=json.dumps(payload).encode("utf-8"),
        headers={
            "Authorization": auth,
            "Accept": "application/json",
            "Content-Type": "application/json",
        },
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.get("SMS_API_TIMEOUT_SECONDS", 10)) as resp:
            return 200 <= resp.status < 300
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", "replace")
        current_app.logger.warning("SMS API answered %s: %s", exc.code, body[:300])
        return False
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        current_app.logger.warning("SMS API unreachable: %s", exc)
        return False
