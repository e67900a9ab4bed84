from __future__ import annotations

import logging
import os


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./auction.db")
# Seconds a SQLite writer waits on a locked database before failing.
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "5"))

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "auction123")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HIGHLIGHT_LIMIT = int(os.getenv("HIGHLIGHT_LIMIT", "20"))
BID_HISTORY_LIMIT = int(os.getenv("BID_HISTORY_LIMIT", "50"))


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
