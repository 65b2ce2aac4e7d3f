import os

import uvicorn

from constants import HOST, PORT, LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app  # noqa: E402,F401

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Starting chat server on {HOST}:{PORT}")
    uvicorn.run("app:app", host=HOST, port=PORT, reload=os.getenv("RELOAD", "false").lower() == "true")
