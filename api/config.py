import os

DB = {
    "host": os.getenv("QUOTE_DB_HOST", "localhost"),
    "port": int(os.getenv("QUOTE_DB_PORT", "5432")),
    "dbname": os.getenv("QUOTE_DB_NAME", "hidden_words"),
    "user": os.getenv("QUOTE_DB_USER", "guide"),
    "password": os.getenv("QUOTE_DB_PASSWORD", "guidepassword"),
}

API_TITLE = "Hidden Words Guide API"
API_VERSION = "0.1.0"

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_URL = os.getenv("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "openai/gpt-oss-20b:free")
OPENROUTER_TIMEOUT_SEC = float(os.getenv("OPENROUTER_TIMEOUT_SEC", "30"))
OPENROUTER_MAX_TOKENS = int(os.getenv("OPENROUTER_MAX_TOKENS", "500"))
OPENROUTER_TEMPERATURE = float(os.getenv("OPENROUTER_TEMPERATURE", "0.8"))
OPENROUTER_REFERER = os.getenv("OPENROUTER_REFERER", "http://localhost:5173")
OPENROUTER_TITLE = os.getenv("OPENROUTER_TITLE", "Spiritual Chat App")

DIRECT_MATCH_LIMIT = int(os.getenv("DIRECT_MATCH_LIMIT", "1"))
CANDIDATE_LIMIT = int(os.getenv("CANDIDATE_LIMIT", "50"))
FALLBACK_POOL_SIZE = int(os.getenv("FALLBACK_POOL_SIZE", "10"))
SELECTION_TIMEOUT_SEC = float(os.getenv("SELECTION_TIMEOUT_SEC", "3.0"))
CONCEPT_TABLE_PATH = os.getenv("CONCEPT_TABLE_PATH", "")

HISTORY_TURNS = int(os.getenv("HISTORY_TURNS", "8"))
MESSAGE_MAX_CHARS = int(os.getenv("MESSAGE_MAX_CHARS", "2000"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CHAT_RATE_LIMIT = int(os.getenv("CHAT_RATE_LIMIT", "20"))
CHAT_RATE_WINDOW_SEC = int(os.getenv("CHAT_RATE_WINDOW_SEC", "60"))

EVENT_LOG_PATH = os.getenv("EVENT_LOG_PATH", "logs/events.log")
LOG_ID_SALT = os.getenv("LOG_ID_SALT", "")
STORE_SLOW_MS = int(os.getenv("STORE_SLOW_MS", "500"))
LLM_SLOW_MS = int(os.getenv("LLM_SLOW_MS", "2000"))
