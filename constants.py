import os

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

SERVER_ID = os.getenv("SERVER_ID", "unknown")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")

# Upper bound for any single Redis round-trip (store or bus)
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", 5))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

HISTORY_LIMIT = 100
