import pytest

from api import config
from api import lexicon
from api import rate_limit


@pytest.fixture(autouse=True)
def _isolate_state(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "EVENT_LOG_PATH", str(tmp_path / "events.log"))
    monkeypatch.setattr(config, "CONCEPT_TABLE_PATH", "")
    monkeypatch.setattr(rate_limit, "_get_redis", lambda: None)
    lexicon.reset_concepts()
    rate_limit.reset_memory_counters()
    yield
    lexicon.reset_concepts()
    rate_limit.reset_memory_counters()
