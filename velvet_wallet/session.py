"""Application state for one running household session.

``AppState`` is an immutable value: entries, plans, the advisory API key and
the two status slots fed by the gateways. ``BudgetSession`` owns exactly one
``AppState`` and replaces it with a single assignment per mutation, then
mirrors the change to local storage. Summaries are recomputed from the
current state on every call.

Remote pushes never run on the mutation path. A mutation only marks the
sync status ``pending``; inside a running event loop the push is scheduled
as a task, otherwise it waits for an explicit ``push_sync()``.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence, Set, Tuple, Union

from . import analytics
from .advisory import AdviceGateway, AdvisoryClient, recent_transactions
from .allocation import PlanAllocation, allocate_plans
from .errors import ValidationError
from .models import DEFAULT_PLAN_COLOR, Plan, PlanItem, Transaction
from .storage import LocalStorage
from .stores import EntryStore, GoalStore
from .sync import SyncData, SyncGateway, month_slice, utc_timestamp

logger = logging.getLogger(__name__)

SYNC_IDLE = 'idle'
SYNC_PENDING = 'pending'
SYNC_OK = 'synced'
SYNC_FAILED = 'failed'
SYNC_OFFLINE = 'offline'


class RealtimeFeed(Protocol):
    def subscribe_transactions(
        self, key: str, year: int, month: int, handler: Callable[[List[Transaction]], None]
    ) -> Callable[[], None]:
        ...

    def subscribe_plans(
        self, key: str, year: int, month: int, handler: Callable[[List[Plan]], None]
    ) -> Callable[[], None]:
        ...


@dataclass(frozen=True)
class AppState:
    entries: EntryStore = field(default_factory=EntryStore)
    goals: GoalStore = field(default_factory=GoalStore.default)
    api_key: str = ''
    sync_key: str = ''
    advice_text: str = ''
    sync_status: str = SYNC_IDLE

    def with_entries(self, entries: EntryStore) -> 'AppState':
        return replace(self, entries=entries)

    def with_goals(self, goals: GoalStore) -> 'AppState':
        return replace(self, goals=goals)

    def with_api_key(self, api_key: str) -> 'AppState':
        return replace(self, api_key=api_key)

    def with_sync_key(self, sync_key: str) -> 'AppState':
        return replace(self, sync_key=sync_key)

    def with_advice(self, advice_text: str) -> 'AppState':
        return replace(self, advice_text=advice_text)

    def with_sync_status(self, sync_status: str) -> 'AppState':
        return replace(self, sync_status=sync_status)

    def to_sync_data(self) -> SyncData:
        return SyncData(
            transactions=self.entries.entries,
            plans=self.goals.plans,
            wise_balance=analytics.total_savings_to_date(self.entries.entries),
            goal=float(sum(plan.total_needed for plan in self.goals.plans)),
            last_updated=utc_timestamp(),
        )


@dataclass(frozen=True)
class MonthView:
    """Everything the monthly dashboard shows, computed in one pass."""
    year: int
    month: int
    totals: analytics.MonthlyTotals
    balance: float
    breakdown: List[analytics.CategoryTotal]
    transactions: List[Transaction]
    wallet: float
    savings: float


class BudgetSession:
    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        *,
        sync_gateway: Optional[SyncGateway] = None,
        advisor: Optional[AdviceGateway] = None,
        sync_key: str = '',
        auto_push: bool = True,
    ) -> None:
        self.storage = storage or LocalStorage()
        self.sync_gateway = sync_gateway
        self.advisor = advisor or AdvisoryClient()
        self.auto_push = auto_push
        self.state = AppState(
            entries=self.storage.load_transactions(),
            goals=self.storage.load_plans(),
            api_key=self.storage.load_api_key(),
            sync_key=sync_key,
        )
        self._advice_requested = 0
        self._advice_applied = 0
        # Bumped on every local change that still has to reach the mirror.
        self._revision = 0
        self._push_tasks: Set[asyncio.Task] = set()
        self._push_lock: Optional[asyncio.Lock] = None
        self._push_loop: Optional[asyncio.AbstractEventLoop] = None

    # Commit ----------------------------------------------------------------

    def _commit(self, state: AppState, *, entries: bool = False, goals: bool = False, push: bool = True) -> None:
        self.state = state
        if entries:
            self.storage.save_transactions(state.entries)
        if goals:
            self.storage.save_plans(state.goals)
        if push and self.auto_push and (entries or goals):
            self._schedule_push()

    def _can_push(self) -> bool:
        return self.sync_gateway is not None and bool(self.state.sync_key)

    def _schedule_push(self) -> None:
        """Queue a push of the current state without waiting on the gateway."""
        self._revision += 1
        if not self._can_push():
            self.state = self.state.with_sync_status(SYNC_OFFLINE)
            return
        self.state = self.state.with_sync_status(SYNC_PENDING)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to deliver the result; the push waits for push_sync().
            return
        task = loop.create_task(self.push_sync_async())
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    # Entries ---------------------------------------------------------------

    def add_transaction(self, data: Mapping[str, Any]) -> Transaction:
        entries, entry = self.state.entries.add(data)
        self._commit(self.state.with_entries(entries), entries=True)
        return entry

    def update_transaction(self, entry_id: str, data: Mapping[str, Any]) -> Transaction:
        entries, entry = self.state.entries.update(entry_id, data)
        self._commit(self.state.with_entries(entries), entries=True)
        return entry

    def remove_transaction(self, entry_id: str) -> None:
        self._commit(self.state.with_entries(self.state.entries.remove(entry_id)), entries=True)

    # Plans -----------------------------------------------------------------

    def add_plan(self, title: str, color: str = DEFAULT_PLAN_COLOR) -> Plan:
        goals, plan = self.state.goals.add_plan(title, color)
        self._commit(self.state.with_goals(goals), goals=True)
        return plan

    def remove_plan(self, plan_id: str) -> None:
        self._commit(self.state.with_goals(self.state.goals.remove_plan(plan_id)), goals=True)

    def update_plan_title(self, plan_id: str, title: str) -> None:
        self._commit(self.state.with_goals(self.state.goals.update_plan_title(plan_id, title)), goals=True)

    def add_plan_item(self, plan_id: str, item: Union[PlanItem, Mapping[str, Any], None] = None) -> PlanItem:
        goals, new_item = self.state.goals.add_item(plan_id, item)
        self._commit(self.state.with_goals(goals), goals=True)
        return new_item

    def update_plan_item(self, plan_id: str, item_id: str, patch: Mapping[str, Any]) -> None:
        goals = self.state.goals.update_item(plan_id, item_id, patch)
        self._commit(self.state.with_goals(goals), goals=True)

    def remove_plan_item(self, plan_id: str, item_id: str) -> None:
        goals = self.state.goals.remove_item(plan_id, item_id)
        self._commit(self.state.with_goals(goals), goals=True)

    def set_api_key(self, api_key: str) -> None:
        api_key = (api_key or '').strip()
        self.state = self.state.with_api_key(api_key)
        self.storage.save_api_key(api_key)

    # Summaries -------------------------------------------------------------

    def month_view(self, year: int, month: int) -> MonthView:
        entries = self.state.entries.entries
        frame = analytics.to_frame(entries)
        return MonthView(
            year=year,
            month=month,
            totals=analytics.monthly_totals(frame, year, month),
            balance=analytics.monthly_balance(frame, year, month),
            breakdown=analytics.category_breakdown(frame, year, month),
            transactions=analytics.month_transactions(entries, year, month),
            wallet=analytics.wallet_balance(frame),
            savings=analytics.total_savings_to_date(frame),
        )

    def plan_progress(self) -> List[PlanAllocation]:
        """Waterfall progress for every plan against the lifetime savings pool."""
        pool = analytics.total_savings_to_date(self.state.entries.entries)
        return allocate_plans(pool, self.state.goals.plans)

    def day_activity(self, day: dt.date) -> analytics.DayActivity:
        return analytics.day_has_activity(self.state.entries.entries, day)

    # Sync ------------------------------------------------------------------

    def create_sync_key(self) -> str:
        if self.sync_gateway is None:
            raise RuntimeError("No sync gateway configured")
        key = self.sync_gateway.create_key()
        self.state = self.state.with_sync_key(key)
        return key

    def _push_request(self) -> Tuple[int, str, SyncData]:
        return self._revision, self.state.sync_key, self.state.to_sync_data()

    def _apply_push_result(self, revision: int, ok: bool) -> bool:
        if revision != self._revision:
            logger.debug("Push of revision %d superseded by revision %d", revision, self._revision)
            return False
        self.state = self.state.with_sync_status(SYNC_OK if ok else SYNC_FAILED)
        return True

    def push_sync(self) -> bool:
        """Mirror the current state remotely; the outcome lands in ``sync_status``."""
        if not self._can_push():
            self.state = self.state.with_sync_status(SYNC_OFFLINE)
            return False
        revision, key, data = self._push_request()
        ok = self.sync_gateway.push(key, data)
        self._apply_push_result(revision, ok)
        return ok

    async def push_sync_async(self) -> bool:
        """Push from a worker thread, one push per session at a time.

        The state is read when the push starts, so queued pushes always send
        the newest data. A result is only recorded if nothing changed locally
        while the push was in flight.
        """
        loop = asyncio.get_running_loop()
        if self._push_lock is None or self._push_loop is not loop:
            self._push_lock, self._push_loop = asyncio.Lock(), loop
        async with self._push_lock:
            if not self._can_push():
                self.state = self.state.with_sync_status(SYNC_OFFLINE)
                return False
            revision, key, data = self._push_request()
            ok = await asyncio.to_thread(self.sync_gateway.push, key, data)
            self._apply_push_result(revision, ok)
            return ok

    async def wait_for_pushes(self) -> None:
        """Wait until every scheduled push has finished."""
        while self._push_tasks:
            await asyncio.gather(*list(self._push_tasks))

    def pull_sync(self) -> bool:
        """Replace local entries and plans with the remote copy, if there is one."""
        if not self._can_push():
            self.state = self.state.with_sync_status(SYNC_OFFLINE)
            return False
        data = self.sync_gateway.pull(self.state.sync_key)
        if data is None:
            self.state = self.state.with_sync_status(SYNC_FAILED)
            return False
        try:
            entries = EntryStore(entries=data.transactions)
        except ValidationError as exc:
            logger.warning("Rejecting remote copy: %s", exc)
            self.state = self.state.with_sync_status(SYNC_FAILED)
            return False
        state = (
            self.state.with_entries(entries)
            .with_goals(GoalStore(plans=data.plans))
            .with_sync_status(SYNC_OK)
        )
        self._commit(state, entries=True, goals=True, push=False)
        return True

    def apply_remote_transactions(self, year: int, month: int, remote: Sequence[Transaction]) -> bool:
        """Accept a month's entry snapshot from the mirror unless it matches ours.

        An entry moved into this month from another one replaces its old
        copy. Returns whether local state changed.
        """
        current = month_slice(self.state.entries.entries, year, month)
        if {entry.id: entry for entry in current} == {entry.id: entry for entry in remote}:
            return False
        remote_ids = {entry.id for entry in remote}
        others = tuple(
            entry for entry in self.state.entries.entries
            if (entry.date.year, entry.date.month) != (year, month) and entry.id not in remote_ids
        )
        try:
            entries = EntryStore(entries=others + tuple(remote))
        except ValidationError as exc:
            logger.warning("Ignoring remote entries for %d-%02d: %s", year, month, exc)
            return False
        self._commit(self.state.with_entries(entries), entries=True, push=False)
        logger.info("Applied remote entries for %d-%02d (%d entries)", year, month, len(remote))
        return True

    def apply_remote_plans(self, remote: Sequence[Plan]) -> bool:
        """Accept the mirror's plan list unless it matches ours."""
        if tuple(remote) == self.state.goals.plans:
            return False
        self._commit(self.state.with_goals(GoalStore(plans=tuple(remote))), goals=True, push=False)
        logger.info("Applied remote plans (%d plans)", len(remote))
        return True

    def watch_month(self, feed: RealtimeFeed, year: int, month: int) -> Callable[[], None]:
        """Follow remote changes for one month; returns a callable that stops it."""
        key = self.state.sync_key
        stop_entries = feed.subscribe_transactions(
            key, year, month, lambda remote: self.apply_remote_transactions(year, month, remote)
        )
        stop_plans = feed.subscribe_plans(key, year, month, self.apply_remote_plans)

        def _stop() -> None:
            stop_entries()
            stop_plans()

        return _stop

    # Advice ----------------------------------------------------------------

    def _apply_advice(self, generation: int, text: str) -> bool:
        if generation < self._advice_applied:
            logger.debug("Dropping stale advice response #%d", generation)
            return False
        self._advice_applied = generation
        self.state = self.state.with_advice(text)
        return True

    def _advice_request(self) -> Tuple[int, List[Transaction], str]:
        self._advice_requested += 1
        snapshot = recent_transactions(self.state.entries.entries)
        return self._advice_requested, snapshot, self.state.api_key

    def refresh_advice(self) -> str:
        generation, snapshot, api_key = self._advice_request()
        text = self.advisor.get_advice(snapshot, api_key)
        self._apply_advice(generation, text)
        return self.state.advice_text

    async def refresh_advice_async(self) -> str:
        """Fetch advice in a worker thread; local mutations stay unblocked.

        A reply to an older request that arrives after a newer one was
        applied is discarded.
        """
        generation, snapshot, api_key = self._advice_request()
        text = await asyncio.to_thread(self.advisor.get_advice, snapshot, api_key)
        self._apply_advice(generation, text)
        return self.state.advice_text
