import api.rate_limit as rate_mod
from api.rate_limit import enforce_rate_limit


def test_memory_counter_blocks_after_limit():
    results = [enforce_rate_limit("10.0.0.1", limit=2, window_sec=60) for _ in range(3)]

    assert [r["status"] for r in results] == ["ok", "ok", "limit"]
    assert results[-1]["count"] == 3
    assert 1 <= results[-1]["retry_after"] <= 60


def test_memory_counter_is_per_identifier():
    enforce_rate_limit("10.0.0.1", limit=1, window_sec=60)

    assert enforce_rate_limit("10.0.0.2", limit=1, window_sec=60)["status"] == "ok"
    assert enforce_rate_limit("10.0.0.1", limit=1, window_sec=60)["status"] == "limit"


def test_memory_counter_expires(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_mod.time, "time", lambda: now[0])

    enforce_rate_limit("10.0.0.1", limit=1, window_sec=30)
    assert enforce_rate_limit("10.0.0.1", limit=1, window_sec=30)["status"] == "limit"

    now[0] += 31
    assert enforce_rate_limit("10.0.0.1", limit=1, window_sec=30)["status"] == "ok"


def test_missing_identifier_is_not_limited():
    assert enforce_rate_limit("", limit=1)["status"] == "ok"
    assert enforce_rate_limit("", limit=1)["status"] == "ok"


def test_redis_result_is_mapped(monkeypatch):
    class FakeRedis:
        def __init__(self):
            self.calls = []

        def eval(self, script, numkeys, key, limit, window):
            self.calls.append((key, limit, window))
            return [4, "limit", 12]

    client = FakeRedis()
    monkeypatch.setattr(rate_mod, "_get_redis", lambda: client)

    result = enforce_rate_limit("10.0.0.9", limit=3, window_sec=60)

    assert client.calls == [("chat:rate:10.0.0.9", 3, 60)]
    assert result == {"status": "limit", "count": 4, "limit": 3, "retry_after": 12}


def test_expired_memory_counters_are_dropped(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_mod.time, "time", lambda: now[0])

    enforce_rate_limit("10.0.0.1", limit=5, window_sec=30)
    now[0] += 31
    enforce_rate_limit("10.0.0.2", limit=5, window_sec=30)

    assert "chat:rate:10.0.0.1" not in rate_mod._MEM_COUNTERS
    assert "chat:rate:10.0.0.2" in rate_mod._MEM_COUNTERS
