"""
Runtime settings for the Barangay Health backend.

Values come from the environment (a local .env is loaded first). Bad or
missing values never stop the service from starting: a warning is logged
and the default is used instead.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using default {default}")
        return default


DATA_DIR = Path(os.getenv('BARANGAY_DATA_DIR', 'data/store'))
BLOB_DIR = Path(os.getenv('BARANGAY_BLOB_DIR', 'data/blobs'))
PUBLIC_URL = os.getenv('BARANGAY_PUBLIC_URL', 'http://localhost:8001/files').rstrip('/')

# 0 disables the background poller; the roster is then only refreshed on demand
RISK_POLL_INTERVAL_SEC = _int_env('RISK_POLL_INTERVAL_SEC', 300)
if RISK_POLL_INTERVAL_SEC < 0:
    logger.warning("RISK_POLL_INTERVAL_SEC is negative, polling disabled")
    RISK_POLL_INTERVAL_SEC = 0

REMINDER_WINDOW_DAYS = _int_env('REMINDER_WINDOW_DAYS', 3)
MATERIAL_FEED_LIMIT = _int_env('MATERIAL_FEED_LIMIT', 3)

HOST = os.getenv('HOST', '0.0.0.0')
PORT = _int_env('PORT', 8001)
