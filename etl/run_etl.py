# etl/run_etl.py
import json
import sys

from etl.config import BATCH_SIZE, DB, PARTS, QUOTATIONS_PATH
from etl.db import count_quotations, ensure_schema, get_conn, upsert_quotations
from etl.utils import content_hash, quotation_id


def _clean_record(raw, idx):
    if not isinstance(raw, dict):
        raise ValueError(f"record {idx}: expected an object")
    part = str(raw.get("part") or "").strip().lower()
    if part not in PARTS:
        raise ValueError(f"record {idx}: invalid part {raw.get('part')!r}")
    try:
        number = int(raw.get("number"))
    except (TypeError, ValueError):
        raise ValueError(f"record {idx}: invalid number {raw.get('number')!r}")
    if number <= 0:
        raise ValueError(f"record {idx}: number must be positive")
    text = " ".join(str(raw.get("text") or "").split())
    if not text:
        raise ValueError(f"record {idx}: empty text")
    section_title = " ".join(str(raw.get("section_title") or "").split()) or None
    return {
        "part": part,
        "number": number,
        "addressee": " ".join(str(raw.get("addressee") or "").split()),
        "text": text,
        "section_title": section_title,
    }


def load_quotations(path):
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("quotations file must contain a JSON list")

    records = []
    seen = set()
    for idx, raw in enumerate(data):
        record = _clean_record(raw, idx)
        key = (record["part"], record["number"])
        if key in seen:
            raise ValueError(f"record {idx}: duplicate {record['part']} #{record['number']}")
        seen.add(key)
        records.append(record)
    return records


def build_rows(records):
    return [
        (
            quotation_id(r["part"], r["number"]),
            r["text"],
            r["addressee"],
            r["part"],
            r["number"],
            r["section_title"],
        )
        for r in records
    ]


def main(path=None):
    path = path or QUOTATIONS_PATH
    records = load_quotations(path)
    rows = build_rows(records)

    conn = get_conn(DB)
    conn.autocommit = False

    try:
        ensure_schema(conn)
        upsert_quotations(conn, rows, page_size=BATCH_SIZE)
        conn.commit()
        total = count_quotations(conn)
        print(
            f"OK loaded={len(rows)} total={total} "
            f"hash={content_hash(records)[:12]} file={path}"
        )
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
