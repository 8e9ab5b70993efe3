"""Waterfall distribution of the savings pool across plan items.

All savings sit in one undifferentiated pool. A plan's items are funded in
list order: each item takes as much of what is left as it needs before the
next one receives anything. The result is a projection recomputed on every
read, never stored, so reordering items or adding a deposit simply reflows
the numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import Plan, PlanItem


@dataclass(frozen=True)
class ItemAllocation:
    item: PlanItem
    applied: float
    progress_percent: float

    @property
    def is_funded(self) -> bool:
        return self.applied >= self.item.amount

    @property
    def shortfall(self) -> float:
        return max(0.0, self.item.amount - self.applied)


@dataclass(frozen=True)
class PlanAllocation:
    """Waterfall result for one list of items against one pool."""
    savings: float
    items: Tuple[ItemAllocation, ...]
    total_needed: float
    overall_percent: float
    plan_id: str = ''

    @property
    def total_applied(self) -> float:
        return sum(entry.applied for entry in self.items)


def allocate(savings: float, items: Sequence[PlanItem], *, plan_id: str = '') -> PlanAllocation:
    """Run the waterfall for ``items`` against a pool of ``savings``.

    Per item: ``applied = min(remaining, amount)`` and the pool shrinks by
    the item's full amount. Zero-cost items get ``0`` applied and ``0``
    progress. ``overall_percent`` is capped at 100.
    """
    pool = max(0.0, float(savings))
    remaining = pool
    allocations = []
    for item in items:
        applied = max(0.0, min(remaining, float(item.amount)))
        progress = (applied / item.amount) * 100 if item.amount > 0 else 0.0
        allocations.append(ItemAllocation(item=item, applied=applied, progress_percent=progress))
        remaining = max(0.0, remaining - item.amount)

    total_needed = float(sum(item.amount for item in items))
    overall = min((pool / total_needed) * 100, 100.0) if total_needed > 0 else 0.0
    return PlanAllocation(
        savings=pool,
        items=tuple(allocations),
        total_needed=total_needed,
        overall_percent=overall,
        plan_id=plan_id,
    )


def allocate_plan(savings: float, plan: Plan) -> PlanAllocation:
    return allocate(savings, plan.items, plan_id=plan.id)


def allocate_plans(savings: float, plans: Iterable[Plan]) -> List[PlanAllocation]:
    """Run the waterfall for each plan against the same, undivided pool.

    Plans do not draw down a shared balance: each one sees all of
    ``savings``.
    """
    return [allocate_plan(savings, plan) for plan in plans]
