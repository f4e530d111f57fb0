"""
CONVEYANCE CONFIGURATION

Purpose:
- Single place for runtime settings
- Environment overrides (never hardcode deployment paths)
- Logging bootstrap for the Streamlit entry point and scripts

Environment:
    CONVEYANCE_DATA_DIR            directory for persisted JSON keys
    CONVEYANCE_TRANSACTION_ID      transaction the views operate on
    CONVEYANCE_SEND_TIMEOUT        seconds per persistence attempt
    CONVEYANCE_SEND_RETRIES        extra attempts after a failed persist
    CONVEYANCE_WRITE_RETRIES       optimistic write attempts in the file store
    CONVEYANCE_SIMULATED_LATENCY   artificial delay for async operations
    CONVEYANCE_POLL_INTERVAL       live refresh interval (seconds)
    CONVEYANCE_LOG_LEVEL           root log level
"""

import logging
import os
from datetime import date
from typing import FrozenSet


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring invalid %s=%r, using %s", name, raw, default
        )
        return default


def _int_env(name: str, default: int) -> int:
    return int(_float_env(name, float(default)))


# ══════════════════════════════════════════════════════════════
# STORAGE
# ══════════════════════════════════════════════════════════════

DATA_DIR = os.getenv("CONVEYANCE_DATA_DIR", os.path.join("data", "realtime"))

# Persisted keys owned by the real-time core
UPDATES_KEY = "realtime_updates"
PROPOSALS_KEY = "completion_proposals"
DOCUMENTS_KEY = "realtime_documents"
AMENDMENTS_KEY = "amendment_requests"

CORE_KEYS = (UPDATES_KEY, PROPOSALS_KEY, DOCUMENTS_KEY, AMENDMENTS_KEY)

WRITE_RETRIES = _int_env("CONVEYANCE_WRITE_RETRIES", 5)

# ══════════════════════════════════════════════════════════════
# REAL-TIME DELIVERY
# ══════════════════════════════════════════════════════════════

TRANSACTION_ID = os.getenv("CONVEYANCE_TRANSACTION_ID", "TXN-DEMO-001")

SEND_TIMEOUT = _float_env("CONVEYANCE_SEND_TIMEOUT", 5.0)
SEND_RETRIES = _int_env("CONVEYANCE_SEND_RETRIES", 2)
SIMULATED_LATENCY = _float_env("CONVEYANCE_SIMULATED_LATENCY", 0.0)
POLL_INTERVAL = _float_env("CONVEYANCE_POLL_INTERVAL", 2.0)

# ══════════════════════════════════════════════════════════════
# COMPLETION DATE RULES
# ══════════════════════════════════════════════════════════════

MIN_NOTICE_DAYS = 14

# England & Wales bank holidays
BANK_HOLIDAYS: FrozenSet[date] = frozenset(
    date.fromisoformat(d)
    for d in (
        "2024-05-06", "2024-05-27", "2024-08-26", "2024-12-25", "2024-12-26",
        "2025-01-01", "2025-04-18", "2025-04-21", "2025-05-05", "2025-05-26",
        "2025-08-25", "2025-12-25", "2025-12-26",
        "2026-01-01", "2026-04-03", "2026-04-06", "2026-05-04", "2026-05-25",
        "2026-08-31", "2026-12-25", "2026-12-28",
        "2027-01-01", "2027-03-26", "2027-03-29", "2027-05-03", "2027-05-31",
        "2027-08-30", "2027-12-27", "2027-12-28",
    )
)

# ══════════════════════════════════════════════════════════════
# LOGGING
# ══════════════════════════════════════════════════════════════

LOG_LEVEL = os.getenv("CONVEYANCE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging once; repeated calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        root.setLevel(level)
