# etl/config.py
import os

DB = {
    "host": os.getenv("QUOTE_DB_HOST", "localhost"),
    "port": int(os.getenv("QUOTE_DB_PORT", "5432")),
    "dbname": os.getenv("QUOTE_DB_NAME", "hidden_words"),
    "user": os.getenv("QUOTE_DB_USER", "guide"),
    "password": os.getenv("QUOTE_DB_PASSWORD", "guidepassword"),
}

QUOTATIONS_PATH = os.getenv(
    "QUOTATIONS_PATH",
    os.path.join(os.path.dirname(__file__), "data", "hidden_words.json"),
)

PARTS = ("arabic", "persian")

# rows per execute_values page
BATCH_SIZE = 100
