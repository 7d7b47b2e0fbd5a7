import hashlib
import json
import os
from datetime import datetime, timezone

from api import config

_HASHED_FIELDS = ("client_id",)


def _hash_id(value: str) -> str:
    raw = f"{config.LOG_ID_SALT}{value}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _log_event(event_type: str, payload: dict) -> None:
    path = config.EVENT_LOG_PATH
    try:
        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        safe_payload = dict(payload or {})
        for field in _HASHED_FIELDS:
            if safe_payload.get(field):
                safe_payload[field] = _hash_id(str(safe_payload[field]))
        record = {
            "event_type": event_type,
            "ts": datetime.now(timezone.utc).isoformat(),
            **safe_payload,
        }
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=True) + "\n")
    except OSError:
        pass


def reset_event_log(reason: str) -> None:
    path = config.EVENT_LOG_PATH
    try:
        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        with open(path, "w", encoding="utf-8"):
            pass
    except OSError:
        return
    _log_event("event_log_reset", {"reason": reason})


def log_api_event(event_type: str, payload: dict) -> None:
    _log_event(event_type, payload)


def log_chat_event(event_type: str, payload: dict) -> None:
    _log_event(event_type, payload)


def log_selection_event(event_type: str, payload: dict) -> None:
    _log_event(event_type, payload)


def log_llm_event(event_type: str, payload: dict) -> None:
    _log_event(event_type, payload)
