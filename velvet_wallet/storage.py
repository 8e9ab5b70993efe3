"""Local persistence for entries, plans and the advisory API key.

Each collection lives in its own named JSON slot under the data directory.
Slots are read once when a session starts and rewritten after every
mutation; they mirror the in-memory state and are never consulted while a
session is running.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, TypeVar

from . import config
from .errors import ValidationError
from .models import Plan, Transaction
from .stores import EntryStore, GoalStore

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _read_slot(path: Path) -> Any:
    """Return the decoded slot, or ``None`` when missing or unreadable."""
    if not path.exists():
        return None
    try:
        with path.open('r', encoding='utf-8') as handle:
            return json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable slot %s: %s", path, exc)
        return None


def _write_slot(path: Path, payload: Any) -> None:
    config.ensure_data_directories(path.parent)
    with path.open('w', encoding='utf-8') as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
    logger.debug("Wrote slot %s", path)


def _parse_rows(rows: List[Any], parse: Callable[[Mapping[str, Any]], T], path: Path) -> List[T]:
    parsed: List[T] = []
    for row in rows:
        try:
            parsed.append(parse(row))
        except ValidationError as exc:
            logger.warning("Skipping invalid record in %s: %s", path, exc)
    return parsed


class LocalStorage:
    """Reads and writes the named JSON slots."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else config.DATA_DIR

    def path(self, slot: str) -> Path:
        return config.slot_path(slot, self.data_dir)

    # Entries ---------------------------------------------------------------

    def load_transactions(self) -> EntryStore:
        """Stored entries, or an empty store when the slot is missing or bad."""
        path = self.path(config.TRANSACTIONS_SLOT)
        data = _read_slot(path)
        if not isinstance(data, list):
            return EntryStore()
        entries = {}
        for entry in _parse_rows(data, Transaction.from_dict, path):
            if entry.id in entries:
                logger.warning("Skipping duplicate entry %s in %s", entry.id, path)
                continue
            entries[entry.id] = entry
        return EntryStore(entries=tuple(entries.values()))

    def save_transactions(self, store: EntryStore) -> None:
        _write_slot(self.path(config.TRANSACTIONS_SLOT), store.to_dicts())

    # Plans -----------------------------------------------------------------

    def load_plans(self) -> GoalStore:
        """Stored plans, or the starter plans when the slot is missing or bad."""
        path = self.path(config.PLANS_SLOT)
        data = _read_slot(path)
        if not isinstance(data, list):
            return GoalStore.default()
        plans = _parse_rows(data, Plan.from_dict, path)
        return GoalStore(plans=tuple(plans))

    def save_plans(self, store: GoalStore) -> None:
        _write_slot(self.path(config.PLANS_SLOT), store.to_dicts())

    # API key ---------------------------------------------------------------

    def load_api_key(self) -> str:
        data = _read_slot(self.path(config.API_KEY_SLOT))
        if isinstance(data, str) and data.strip():
            return data.strip()
        return config.get_env_api_key()

    def save_api_key(self, api_key: str) -> None:
        _write_slot(self.path(config.API_KEY_SLOT), api_key or '')
