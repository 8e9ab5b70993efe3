"""Best-effort mirroring of the household state to a remote key-value store.

The remote copy is never authoritative during a session: pushes report
success or failure, pulls return ``None`` when nothing usable is there, and
no gateway failure ever propagates to the caller.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import secrets
import string
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Tuple

from . import config
from .errors import GatewayError, ValidationError
from .events import SnapshotChannel, plans_topic, transactions_topic
from .models import Plan, Transaction, parse_amount

logger = logging.getLogger(__name__)

# (method, url, body) -> (status, body)
Transport = Callable[[str, str, Optional[bytes]], Tuple[int, bytes]]

LOCAL_KEY_LENGTH = 13
_KEY_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class SyncData:
    """Everything mirrored remotely, in one replaceable document."""
    transactions: Tuple[Transaction, ...] = ()
    plans: Tuple[Plan, ...] = ()
    wise_balance: float = 0.0
    goal: float = 0.0
    last_updated: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactions': [entry.to_dict() for entry in self.transactions],
            'plans': [plan.to_dict() for plan in self.plans],
            'wiseBalance': self.wise_balance,
            'goal': self.goal,
            'lastUpdated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SyncData':
        if not isinstance(data, Mapping):
            raise ValidationError(f"Sync document must be an object, got {type(data).__name__}")
        transactions = data.get('transactions') or []
        plans = data.get('plans') or []
        if not isinstance(transactions, list) or not isinstance(plans, list):
            raise ValidationError("Sync document collections must be lists")
        return cls(
            transactions=tuple(Transaction.from_dict(row) for row in transactions),
            plans=tuple(Plan.from_dict(row) for row in plans),
            wise_balance=parse_amount(data.get('wiseBalance') or 0),
            goal=parse_amount(data.get('goal') or 0),
            last_updated=str(data.get('lastUpdated') or ''),
        )


def utc_timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def urllib_transport(method: str, url: str, body: Optional[bytes] = None) -> Tuple[int, bytes]:
    """Perform one HTTP request; non-2xx statuses are returned, not raised."""
    headers = {'Content-Type': 'application/json'} if body is not None else {}
    request = urllib.request.Request(url, data=body, method=method, headers=headers)
    try:
        with urllib.request.urlopen(request, timeout=config.HTTP_TIMEOUT) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read() or b''
    except (urllib.error.URLError, OSError) as exc:
        raise GatewayError(f"{method} {url} failed: {exc}") from exc


def generate_local_key() -> str:
    """Random key used when the remote store cannot issue one."""
    return ''.join(secrets.choice(_KEY_ALPHABET) for _ in range(LOCAL_KEY_LENGTH))


class SyncGateway(Protocol):
    def pull(self, key: str) -> Optional[SyncData]:
        ...

    def push(self, key: str, data: SyncData) -> bool:
        ...

    def create_key(self) -> str:
        ...


class KeyValueSyncClient:
    """HTTP client for the key-value mirror (``GET``/``POST {base}/{key}``)."""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[Transport] = None) -> None:
        self.base_url = (base_url or config.SYNC_BASE_URL).rstrip('/')
        self.transport = transport or urllib_transport

    def pull(self, key: str) -> Optional[SyncData]:
        if not key:
            return None
        try:
            status, body = self.transport('GET', f"{self.base_url}/{key}", None)
            if status != 200:
                logger.info("Sync pull for %s returned status %s", key, status)
                return None
            return SyncData.from_dict(json.loads(body.decode('utf-8')))
        except (GatewayError, ValidationError, ValueError) as exc:
            logger.warning("Sync pull failed: %s", exc)
            return None

    def push(self, key: str, data: SyncData) -> bool:
        if not key:
            return False
        payload = json.dumps(data.to_dict(), ensure_ascii=False).encode('utf-8')
        try:
            status, _ = self.transport('POST', f"{self.base_url}/{key}", payload)
        except GatewayError as exc:
            logger.warning("Sync push failed: %s", exc)
            return False
        if not 200 <= status < 300:
            logger.warning("Sync push for %s returned status %s", key, status)
            return False
        return True

    def create_key(self) -> str:
        """Ask the store for a new key; fall back to a locally generated one."""
        try:
            status, body = self.transport('POST', f"{self.base_url}/new", b'')
        except GatewayError as exc:
            logger.warning("Sync key request failed, generating locally: %s", exc)
            return generate_local_key()
        # The store answers with a URL whose last segment is the key.
        key = body.decode('utf-8', errors='replace').strip().rstrip('/').split('/')[-1]
        if not 200 <= status < 300 or not key:
            return generate_local_key()
        return key


def _months_of(entries: Iterable[Transaction]) -> Set[Tuple[int, int]]:
    return {(entry.date.year, entry.date.month) for entry in entries}


class InMemorySyncGateway:
    """Process-local mirror with realtime delivery through a channel.

    Every push publishes, for each month touched by the old or new document,
    that month's full entry list and the full plan list.
    """

    def __init__(self, channel: Optional[SnapshotChannel] = None) -> None:
        self.channel = channel or SnapshotChannel()
        self._documents: Dict[str, SyncData] = {}

    def pull(self, key: str) -> Optional[SyncData]:
        return self._documents.get(key)

    def push(self, key: str, data: SyncData) -> bool:
        if not key:
            return False
        previous = self._documents.get(key)
        self._documents[key] = data
        months = _months_of(data.transactions)
        if previous is not None:
            months |= _months_of(previous.transactions)
        for year, month in sorted(months):
            self._publish_month(key, data, year, month)
        return True

    def create_key(self) -> str:
        key = generate_local_key()
        while key in self._documents:
            key = generate_local_key()
        return key

    def _publish_month(self, key: str, data: SyncData, year: int, month: int) -> None:
        entries = month_slice(data.transactions, year, month)
        self.channel.publish(f"{key}/{transactions_topic(year, month)}", entries)
        self.channel.publish(f"{key}/{plans_topic(year, month)}", list(data.plans))

    def subscribe_transactions(
        self, key: str, year: int, month: int, handler: Callable[[List[Transaction]], None]
    ) -> Callable[[], None]:
        return self.channel.subscribe(f"{key}/{transactions_topic(year, month)}", handler)

    def subscribe_plans(
        self, key: str, year: int, month: int, handler: Callable[[List[Plan]], None]
    ) -> Callable[[], None]:
        return self.channel.subscribe(f"{key}/{plans_topic(year, month)}", handler)


def month_slice(entries: Iterable[Transaction], year: int, month: int) -> List[Transaction]:
    """Entries dated within one month, in their stored order."""
    return [entry for entry in entries if entry.date.year == year and entry.date.month == month]
