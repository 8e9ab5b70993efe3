"""Configuration management for Velvet Wallet.

This module centralizes configuration values including storage paths,
remote service endpoints, and environment variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

# Base project root - assumes this file is in velvet_wallet/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Local storage slots
DATA_DIR = Path(os.getenv("VELVET_DATA_DIR", _PROJECT_ROOT / "data"))
TRANSACTIONS_SLOT = "velvet_tx"
PLANS_SLOT = "velvet_plans"
API_KEY_SLOT = "velvet_key"

# Sync gateway (key-value mirror)
SYNC_BASE_URL = os.getenv("VELVET_SYNC_URL", "https://api.keyvalue.xyz").rstrip("/")

# Advisory gateway
ADVICE_MODEL = os.getenv("VELVET_ADVICE_MODEL", "gemini-3-flash-preview")
ADVICE_BASE_URL = os.getenv(
    "VELVET_ADVICE_URL", "https://generativelanguage.googleapis.com/v1beta"
).rstrip("/")
RECENT_TRANSACTION_LIMIT = 20

HTTP_TIMEOUT = float(os.getenv("VELVET_HTTP_TIMEOUT", "15"))


def ensure_data_directories(data_dir: Optional[Path] = None) -> Path:
    """Create the data directory if it doesn't exist."""
    path = Path(data_dir or DATA_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def slot_path(slot: str, data_dir: Optional[Path] = None) -> Path:
    """Get the JSON file backing a named storage slot."""
    return Path(data_dir or DATA_DIR) / f"{slot}.json"


def get_env_api_key() -> str:
    """API key from the environment, used when no key has been saved."""
    return os.getenv("VELVET_GEMINI_API_KEY", "").strip()
