import json
import uuid

import pytest

import etl.run_etl as etl_mod
from etl.config import QUOTATIONS_PATH
from etl.run_etl import build_rows, load_quotations
from etl.utils import content_hash, normalize_text, quotation_id


def _write(tmp_path, data):
    path = tmp_path / "quotations.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_load_quotations_cleans_records(tmp_path):
    path = _write(
        tmp_path,
        [
            {
                "part": "Arabic",
                "number": "5",
                "addressee": " O Son of  Being! ",
                "text": "Love Me,\n that I may love thee.",
            }
        ],
    )

    records = load_quotations(path)

    assert records == [
        {
            "part": "arabic",
            "number": 5,
            "addressee": "O Son of Being!",
            "text": "Love Me, that I may love thee.",
            "section_title": None,
        }
    ]


@pytest.mark.parametrize(
    "record",
    [
        {"part": "latin", "number": 1, "text": "x"},
        {"part": "arabic", "number": 0, "text": "x"},
        {"part": "arabic", "number": "one", "text": "x"},
        {"part": "persian", "number": 1, "text": "   "},
    ],
)
def test_load_quotations_rejects_invalid_records(tmp_path, record):
    with pytest.raises(ValueError):
        load_quotations(_write(tmp_path, [record]))


def test_load_quotations_rejects_duplicates(tmp_path):
    data = [
        {"part": "arabic", "number": 1, "text": "a"},
        {"part": "arabic", "number": 1, "text": "b"},
    ]
    with pytest.raises(ValueError):
        load_quotations(_write(tmp_path, data))


def test_build_rows_uses_stable_ids():
    records = [{"part": "persian", "number": 3, "addressee": "O Friends!", "text": "t", "section_title": None}]

    rows = build_rows(records)

    assert rows[0][0] == quotation_id("persian", 3)
    assert uuid.UUID(rows[0][0]).version == 5
    assert build_rows(records) == rows
    assert quotation_id("arabic", 3) != quotation_id("persian", 3)


def test_bundled_sample_data_is_valid():
    records = load_quotations(QUOTATIONS_PATH)
    assert records
    assert {r["part"] for r in records} <= {"arabic", "persian"}


def test_content_hash_is_stable():
    records = load_quotations(QUOTATIONS_PATH)
    assert content_hash(records) == content_hash(list(records))


def test_normalize_text_strips_punctuation():
    assert normalize_text("O Friends!\xa0Abide  not—in heedlessness.") == "O Friends Abide not in heedlessness"


class FakeCursor:
    def __init__(self):
        self.queries = []

    def execute(self, query, params=None):
        self.queries.append(str(query))

    def fetchone(self):
        return (8,)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeConn:
    def __init__(self):
        self.autocommit = True
        self.cursor_obj = FakeCursor()
        self.committed = False
        self.closed = False

    def cursor(self):
        return self.cursor_obj

    def commit(self):
        self.committed = True

    def rollback(self):
        pass

    def close(self):
        self.closed = True


def test_main_upserts_and_commits(monkeypatch, capsys):
    conn = FakeConn()
    upserted = []
    monkeypatch.setattr(etl_mod, "get_conn", lambda _cfg: conn)
    monkeypatch.setattr(etl_mod, "upsert_quotations", lambda _conn, rows, page_size=100: upserted.extend(rows))

    etl_mod.main(QUOTATIONS_PATH)

    assert conn.autocommit is False
    assert conn.committed and conn.closed
    assert any("CREATE TABLE IF NOT EXISTS hidden_words" in q for q in conn.cursor_obj.queries)
    assert len(upserted) == len(load_quotations(QUOTATIONS_PATH))
    assert capsys.readouterr().out.startswith("OK loaded=")
