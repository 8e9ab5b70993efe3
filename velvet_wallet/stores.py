"""In-memory stores for entries and savings plans.

Both stores are immutable snapshots: every mutation returns a new store and
leaves the receiver untouched, so the owner swaps state in with a single
assignment. Unknown ids raise ``NotFound`` rather than being ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Tuple, Union

from .errors import NotFound, ValidationError
from .models import (
    DEFAULT_ITEM_LABEL,
    DEFAULT_PLAN_COLOR,
    Plan,
    PlanItem,
    Transaction,
    new_id,
    parse_amount,
    parse_transaction_data,
)

IdFactory = Callable[[], str]

DEFAULT_PLANS: Tuple[Plan, ...] = (
    Plan(
        id='p1',
        title='Аргентина 🇦🇷',
        color='bg-indigo-600',
        items=(
            PlanItem(id='i1', label='Билеты', amount=15000),
            PlanItem(id='i2', label='Жилье', amount=12000),
        ),
    ),
    Plan(
        id='p2',
        title='Европа 🇪🇺',
        color='bg-emerald-500',
        items=(PlanItem(id='i3', label='Тур', amount=20000),),
    ),
    Plan(
        id='p3',
        title='Украина (Квартира) 🏠',
        color='bg-slate-800',
        items=(PlanItem(id='i4', label='Первый взнос', amount=500000),),
    ),
)

_ITEM_PATCH_FIELDS = {'label', 'amount'}


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntryStore:
    """Snapshot of the session's entries in insertion order."""
    entries: Tuple[Transaction, ...] = ()

    def __post_init__(self) -> None:
        seen = set()
        for entry in self.entries:
            if entry.id in seen:
                raise ValidationError(f"Duplicate transaction id: {entry.id}")
            seen.add(entry.id)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self.entries)

    def _index(self, entry_id: str) -> int:
        for idx, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return idx
        raise NotFound('transaction', entry_id)

    def get(self, entry_id: str) -> Transaction:
        return self.entries[self._index(entry_id)]

    def add(self, data: Mapping[str, Any], *, id_factory: IdFactory = new_id) -> Tuple['EntryStore', Transaction]:
        """Validate ``data``, assign a fresh id and append the entry."""
        fields = parse_transaction_data(data)
        entry_id = id_factory()
        if any(entry.id == entry_id for entry in self.entries):
            raise ValidationError(f"Transaction id already in use: {entry_id}")
        entry = Transaction(id=entry_id, **fields)
        return replace(self, entries=self.entries + (entry,)), entry

    def update(self, entry_id: str, data: Mapping[str, Any]) -> Tuple['EntryStore', Transaction]:
        """Replace every field except the id; the entry keeps its position."""
        idx = self._index(entry_id)
        entry = Transaction(id=entry_id, **parse_transaction_data(data))
        entries = self.entries[:idx] + (entry,) + self.entries[idx + 1:]
        return replace(self, entries=entries), entry

    def remove(self, entry_id: str) -> 'EntryStore':
        idx = self._index(entry_id)
        return replace(self, entries=self.entries[:idx] + self.entries[idx + 1:])

    def list(self) -> List[Transaction]:
        """Entries newest first; same-day entries keep insertion order."""
        return sorted(self.entries, key=lambda entry: entry.date, reverse=True)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]

    @classmethod
    def from_dicts(cls, rows: Iterable[Mapping[str, Any]]) -> 'EntryStore':
        return cls(entries=tuple(Transaction.from_dict(row) for row in rows))


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


def _check_title(title: Any) -> str:
    if not isinstance(title, str):
        raise ValidationError(f"Plan title must be text, got {type(title).__name__}")
    return title


@dataclass(frozen=True)
class GoalStore:
    """Snapshot of the savings plans, each with its ordered items."""
    plans: Tuple[Plan, ...] = ()

    @classmethod
    def default(cls) -> 'GoalStore':
        """The starter plans a fresh household begins with."""
        return cls(plans=DEFAULT_PLANS)

    def __len__(self) -> int:
        return len(self.plans)

    def __iter__(self) -> Iterator[Plan]:
        return iter(self.plans)

    def _plan_index(self, plan_id: str) -> int:
        for idx, plan in enumerate(self.plans):
            if plan.id == plan_id:
                return idx
        raise NotFound('plan', plan_id)

    def _item_index(self, plan: Plan, item_id: str) -> int:
        for idx, item in enumerate(plan.items):
            if item.id == item_id:
                return idx
        raise NotFound('plan item', item_id)

    def _with_plan(self, idx: int, plan: Plan) -> 'GoalStore':
        return replace(self, plans=self.plans[:idx] + (plan,) + self.plans[idx + 1:])

    def get_plan(self, plan_id: str) -> Plan:
        return self.plans[self._plan_index(plan_id)]

    def add_plan(
        self,
        title: str,
        color: str = DEFAULT_PLAN_COLOR,
        *,
        id_factory: IdFactory = new_id,
    ) -> Tuple['GoalStore', Plan]:
        plan = Plan(id=id_factory(), title=_check_title(title), color=color)
        if any(existing.id == plan.id for existing in self.plans):
            raise ValidationError(f"Plan id already in use: {plan.id}")
        return replace(self, plans=self.plans + (plan,)), plan

    def remove_plan(self, plan_id: str) -> 'GoalStore':
        idx = self._plan_index(plan_id)
        return replace(self, plans=self.plans[:idx] + self.plans[idx + 1:])

    def update_plan_title(self, plan_id: str, title: str) -> 'GoalStore':
        idx = self._plan_index(plan_id)
        return self._with_plan(idx, replace(self.plans[idx], title=_check_title(title)))

    def add_item(
        self,
        plan_id: str,
        item: Union[PlanItem, Mapping[str, Any], None] = None,
        *,
        id_factory: IdFactory = new_id,
    ) -> Tuple['GoalStore', PlanItem]:
        """Append an item, making it the lowest funding priority.

        ``item`` may be a ready ``PlanItem``, a mapping with ``label`` and
        ``amount``, or omitted for a blank zero-cost item.
        """
        idx = self._plan_index(plan_id)
        plan = self.plans[idx]
        if isinstance(item, PlanItem):
            new_item = item
        else:
            fields = dict(item or {})
            unknown = set(fields) - _ITEM_PATCH_FIELDS
            if unknown:
                raise ValidationError(f"Unknown plan item fields: {', '.join(sorted(unknown))}")
            new_item = PlanItem(
                id=id_factory(),
                label=str(fields.get('label', DEFAULT_ITEM_LABEL)),
                amount=parse_amount(fields.get('amount', 0)),
            )
        if plan.find_item(new_item.id) is not None:
            raise ValidationError(f"Plan item id already in use: {new_item.id}")
        updated = replace(plan, items=plan.items + (new_item,))
        return self._with_plan(idx, updated), new_item

    def update_item(self, plan_id: str, item_id: str, patch: Mapping[str, Any]) -> 'GoalStore':
        """Apply a partial change (``label`` and/or ``amount``) to one item."""
        idx = self._plan_index(plan_id)
        plan = self.plans[idx]
        item_idx = self._item_index(plan, item_id)
        unknown = set(patch) - _ITEM_PATCH_FIELDS
        if unknown:
            raise ValidationError(f"Unknown plan item fields: {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        if 'label' in patch:
            changes['label'] = str(patch['label'])
        if 'amount' in patch:
            changes['amount'] = parse_amount(patch['amount'])
        item = replace(plan.items[item_idx], **changes)
        items = plan.items[:item_idx] + (item,) + plan.items[item_idx + 1:]
        return self._with_plan(idx, replace(plan, items=items))

    def remove_item(self, plan_id: str, item_id: str) -> 'GoalStore':
        idx = self._plan_index(plan_id)
        plan = self.plans[idx]
        item_idx = self._item_index(plan, item_id)
        items = plan.items[:item_idx] + plan.items[item_idx + 1:]
        return self._with_plan(idx, replace(plan, items=items))

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [plan.to_dict() for plan in self.plans]

    @classmethod
    def from_dicts(cls, rows: Iterable[Mapping[str, Any]]) -> 'GoalStore':
        return cls(plans=tuple(Plan.from_dict(row) for row in rows))
