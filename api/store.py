import time
from contextlib import nullcontext
from typing import List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from api import config
from api.events import log_selection_event

# Natural order for every read; tie-breaks in the selector rely on it.
ORDER_BY = "ORDER BY number, part, id"

SELECT_COLUMNS = """
    id::text AS id,
    text,
    addressee,
    part,
    number,
    section_title
"""

MIN_STATEMENT_TIMEOUT_MS = 1


class QuotationStoreError(Exception):
    pass


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_quotation(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "text": row["text"],
        "addressee": row.get("addressee") or "",
        "part": row["part"],
        "number": int(row["number"]),
        "section_title": row.get("section_title"),
    }


class QuotationStore:
    """Read-only access to the ``hidden_words`` table."""

    def __init__(self, conn):
        self._conn = conn

    def _fetch(self, op: str, sql: str, params: Sequence, deadline=None) -> List[dict]:
        start = time.perf_counter()
        try:
            watch = deadline.on_cancel(self._conn.cancel) if deadline is not None else nullcontext()
            with watch, self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                remaining_ms = deadline.remaining_ms() if deadline is not None else None
                if remaining_ms is not None:
                    timeout_ms = max(remaining_ms, MIN_STATEMENT_TIMEOUT_MS)
                    cur.execute("SET LOCAL statement_timeout = %s", (timeout_ms,))
                cur.execute(sql, params)
                rows = cur.fetchall()
        except psycopg2.Error as exc:
            try:
                self._conn.rollback()
            except psycopg2.Error:
                pass
            raise QuotationStoreError(f"{op} failed: {exc.__class__.__name__}") from exc
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        if elapsed_ms > config.STORE_SLOW_MS:
            log_selection_event("store_slow", {"op": op, "elapsed_ms": elapsed_ms})
        return [_row_to_quotation(row) for row in rows]

    def find_containing(
        self, fragment: str, exclude_ids: Sequence[str], limit: int, deadline=None
    ) -> List[dict]:
        pattern = f"%{escape_like(fragment)}%"
        sql = f"""
            SELECT {SELECT_COLUMNS}
            FROM hidden_words
            WHERE text ILIKE %s
              AND id::text <> ALL(%s)
            {ORDER_BY}
            LIMIT %s
        """
        return self._fetch("find_containing", sql, (pattern, list(exclude_ids), limit), deadline)

    def find_any_term(
        self, terms: Sequence[str], exclude_ids: Sequence[str], limit: int, deadline=None
    ) -> List[dict]:
        if not terms:
            return []
        patterns = [f"%{escape_like(term)}%" for term in terms]
        sql = f"""
            SELECT {SELECT_COLUMNS}
            FROM hidden_words
            WHERE (
                text ILIKE ANY(%s)
                OR addressee ILIKE ANY(%s)
                OR COALESCE(section_title, '') ILIKE ANY(%s)
              )
              AND id::text <> ALL(%s)
            {ORDER_BY}
            LIMIT %s
        """
        return self._fetch(
            "find_any_term",
            sql,
            (patterns, patterns, patterns, list(exclude_ids), limit),
            deadline,
        )

    def list_eligible(self, exclude_ids: Sequence[str], limit: int, deadline=None) -> List[dict]:
        sql = f"""
            SELECT {SELECT_COLUMNS}
            FROM hidden_words
            WHERE id::text <> ALL(%s)
            {ORDER_BY}
            LIMIT %s
        """
        return self._fetch("list_eligible", sql, (list(exclude_ids), limit), deadline)

    def get(self, quotation_id: str) -> Optional[dict]:
        sql = f"""
            SELECT {SELECT_COLUMNS}
            FROM hidden_words
            WHERE id::text = %s
        """
        rows = self._fetch("get", sql, (quotation_id,))
        return rows[0] if rows else None
