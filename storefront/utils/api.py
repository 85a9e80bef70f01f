# storefront/utils/api.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC, the way every DateTime column is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _envelope(status: bool, message, data):
    if data is None:
        payload = {}
    elif isinstance(data, dict):
        payload = dict(data)
    else:
        payload = {"items": data}
    payload["API_TIME"] = utcnow().strftime("%Y-%m-%d %H:%M:%S")
    return {"status": status, "message": message, "data": payload}


def api_ok(message, data=None):
    return _envelope(True, message, data)


def api_error(message, data=None):
    return _envelope(False, message, data)


def parse_iso8601(s):
    """Parse an ISO-8601 string into naive UTC; ``None`` when missing or malformed."""
    if not s:
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = str(s).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def iso(dt):
    return dt.isoformat() if dt else None


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    from flask import jsonify
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def request_json() -> dict:
    from flask import request
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
