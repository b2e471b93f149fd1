"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


STORAGE_PREFIX = os.getenv("INVOICE_STORAGE_PREFIX", "pdf-receipt-generator")

QUOTA_ENTERPRISE = env_int("INVOICE_QUOTA_ENTERPRISE", 2048)
QUOTA_TEMPLATES = env_int("INVOICE_QUOTA_TEMPLATES", 3072)
QUOTA_CURRENT_INVOICE = env_int("INVOICE_QUOTA_CURRENT_INVOICE", 1024)
QUOTA_PDF_CACHE = env_int("INVOICE_QUOTA_PDF_CACHE", 512)
QUOTA_PREFERENCES = env_int("INVOICE_QUOTA_PREFERENCES", 512)
QUOTA_TOTAL = env_int("INVOICE_QUOTA_TOTAL", 6656)

# Advisory thresholds, in percent of a quota.
APPROACHING_LIMIT_PERCENT = env_int("INVOICE_APPROACHING_LIMIT_PERCENT", 80)
AT_LIMIT_PERCENT = env_int("INVOICE_AT_LIMIT_PERCENT", 95)

MAX_TEMPLATES = env_int("INVOICE_MAX_TEMPLATES", 10)

LOGO_MAX_WIDTH = env_int("INVOICE_LOGO_MAX_WIDTH", 200)
LOGO_MAX_HEIGHT = env_int("INVOICE_LOGO_MAX_HEIGHT", 200)
LOGO_MAX_BYTES = env_int("INVOICE_LOGO_MAX_BYTES", 1024)

MAX_INPUT_BYTES = env_int("INVOICE_MAX_INPUT_BYTES", 16 * 1024 * 1024, minimum=1024)
MAX_PAGES = env_int("INVOICE_MAX_PAGES", 10000, minimum=1)
LOG_LEVEL = os.getenv("INVOICE_LOG_LEVEL", "WARNING")
