import time
from typing import Optional

import redis

from api import config
from api.events import log_api_event

_REDIS_CLIENT = None
_REDIS_AVAILABLE = True
_MEM_COUNTERS = {}


def _get_redis():
    global _REDIS_CLIENT, _REDIS_AVAILABLE
    if not _REDIS_AVAILABLE:
        return None
    if _REDIS_CLIENT is None:
        client = redis.Redis.from_url(config.REDIS_URL, decode_responses=True)
        try:
            client.ping()
        except redis.RedisError:
            _REDIS_AVAILABLE = False
            # Counters are now per process; limits do not hold across instances.
            log_api_event("rate_limit_memory_fallback", {"redis_url": config.REDIS_URL})
            return None
        _REDIS_CLIENT = client
    return _REDIS_CLIENT


def _rate_key(identifier: str) -> str:
    return f"chat:rate:{identifier}"


def _mem_get(key: str) -> Optional[dict]:
    data = _MEM_COUNTERS.get(key)
    if not data:
        return None
    expires_ts = float(data.get("expires_at_ts") or 0)
    if expires_ts and time.time() >= expires_ts:
        _MEM_COUNTERS.pop(key, None)
        return None
    return data


def _sweep_expired(now: float) -> None:
    expired = [key for key, data in _MEM_COUNTERS.items() if now >= float(data.get("expires_at_ts") or 0)]
    for key in expired:
        _MEM_COUNTERS.pop(key, None)


_RATE_LIMIT_LUA = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local new_count = redis.call("INCR", key)
if new_count == 1 then
  redis.call("EXPIRE", key, window)
end
local ttl = redis.call("TTL", key)
if new_count > limit then
  return {new_count, "limit", ttl}
end
return {new_count, "ok", ttl}
"""


def enforce_rate_limit(
    identifier: str,
    limit: int | None = None,
    window_sec: int | None = None,
) -> dict:
    limit = int(limit or config.CHAT_RATE_LIMIT)
    window_sec = max(int(window_sec or config.CHAT_RATE_WINDOW_SEC), 1)
    if not identifier:
        return {"status": "ok", "count": 0, "limit": limit, "retry_after": 0}
    key = _rate_key(identifier)
    client = _get_redis()
    if client is None:
        data = _mem_get(key)
        if not data:
            now = time.time()
            _sweep_expired(now)
            data = {"count": 0, "expires_at_ts": now + window_sec}
            _MEM_COUNTERS[key] = data
        data["count"] = int(data.get("count") or 0) + 1
        retry_after = max(int(data["expires_at_ts"] - time.time()), 1)
        status = "limit" if data["count"] > limit else "ok"
        return {"status": status, "count": data["count"], "limit": limit, "retry_after": retry_after}
    try:
        result = client.eval(_RATE_LIMIT_LUA, 1, key, limit, window_sec)
    except redis.RedisError:
        log_api_event("rate_limit_error", {"reason": "eval_failed"})
        return {"status": "ok", "count": 0, "limit": limit, "retry_after": 0}
    if not result:
        return {"status": "ok", "count": 0, "limit": limit, "retry_after": 0}
    ttl = int(result[2] or 0)
    return {
        "status": "limit" if result[1] == "limit" else "ok",
        "count": int(result[0]),
        "limit": limit,
        "retry_after": ttl if ttl > 0 else window_sec,
    }


def reset_memory_counters() -> None:
    _MEM_COUNTERS.clear()
