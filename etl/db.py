# etl/db.py
import psycopg2
from psycopg2.extras import execute_values

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS hidden_words (
  id uuid PRIMARY KEY,
  text text NOT NULL,
  addressee text NOT NULL DEFAULT '',
  part text NOT NULL CHECK (part IN ('arabic', 'persian')),
  number integer NOT NULL CHECK (number > 0),
  section_title text,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now(),
  UNIQUE (part, number)
);
CREATE INDEX IF NOT EXISTS hidden_words_order_idx ON hidden_words (number, part, id);
"""

UPSERT_QUOTATION_SQL = """
INSERT INTO hidden_words
(id, text, addressee, part, number, section_title)
VALUES %s
ON CONFLICT (id)
DO UPDATE SET
  text = EXCLUDED.text,
  addressee = EXCLUDED.addressee,
  part = EXCLUDED.part,
  number = EXCLUDED.number,
  section_title = EXCLUDED.section_title,
  updated_at = now();
"""


def get_conn(cfg):
    return psycopg2.connect(**cfg)


def ensure_schema(conn):
    with conn.cursor() as cur:
        cur.execute(CREATE_TABLE_SQL)


def count_quotations(conn):
    with conn.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM hidden_words")
        return cur.fetchone()[0]


def upsert_quotations(conn, rows, page_size=100):
    with conn.cursor() as cur:
        execute_values(cur, UPSERT_QUOTATION_SQL, rows, page_size=page_size)
