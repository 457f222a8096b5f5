"""Runtime configuration defaults for the API client, journal and flows."""

from __future__ import annotations

import os
from decimal import Decimal

API_BASE_URL = os.environ.get("TABLESIDE_API_BASE_URL", "http://localhost:3000/maestro/api/v1")
API_TIMEOUT_SECONDS = 30.0
API_MAX_RETRIES = 3
API_RETRY_DELAY_SECONDS = 1.0
# Only reads are retried; see api.ApiClient.
API_RETRYABLE_STATUS_CODES = frozenset({408, 500, 502, 503, 504})

DB_PATH = os.environ.get("TABLESIDE_DB_PATH", "data/tableside.db")
DEBUG_LOG_PATH = os.environ.get("TABLESIDE_DEBUG_LOG", "/tmp/tableside-debug.log")

MIN_QUANTITY = 1
MAX_QUANTITY = 99
MAX_NOTES_LENGTH = 500

SEND_COOLDOWN_SECONDS = 3.0
CACHE_STALE_SECONDS = 60.0

CURRENCY_SYMBOL = "$"
CENT = Decimal("0.01")
