# etl/utils.py
import hashlib
import re
import uuid

# Fixed namespace so that re-running the loader keeps every id stable.
QUOTATION_NAMESPACE = uuid.UUID("5b0d7c3e-2f1a-4c8e-9a51-6d2b8f4e7a10")


def normalize_text(s: str) -> str:
    s = s.replace("\xa0", " ")
    s = s.replace("’", "'").replace("‘", "'")
    s = re.sub(r"\s+", " ", s).strip()
    s = re.sub(r"[,:;.!?\"()\[\]{}“”—–-]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def quotation_id(part: str, number: int) -> str:
    return str(uuid.uuid5(QUOTATION_NAMESPACE, f"{part.lower()}:{int(number)}"))


def content_hash(records):
    """
    records: list of dicts with part, number and text
    """
    joined = "|".join(f"{r['part']}:{r['number']}:{r['text']}" for r in records)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
