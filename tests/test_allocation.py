from __future__ import annotations

import pytest

from velvet_wallet.allocation import allocate, allocate_plans
from velvet_wallet.models import Plan, PlanItem


def _items(*amounts):
    return [PlanItem(id=f"i{idx}", label=f"item {idx}", amount=amount) for idx, amount in enumerate(amounts)]


def test_partial_pool_fills_items_in_order():
    result = allocate(450, _items(200, 300, 500))
    assert [entry.applied for entry in result.items] == [200, 250, 0]
    assert [entry.progress_percent for entry in result.items] == [100, pytest.approx(250 / 3), 0]
    assert result.total_needed == 1000
    assert result.overall_percent == 45


def test_surplus_pool_caps_overall_percent():
    result = allocate(1200, _items(200, 300, 500))
    assert [entry.applied for entry in result.items] == [200, 300, 500]
    assert all(entry.is_funded for entry in result.items)
    assert result.overall_percent == 100


def test_zero_cost_item_gets_nothing_and_does_not_divide_by_zero():
    result = allocate(100, _items(0, 50))
    assert result.items[0].applied == 0
    assert result.items[0].progress_percent == 0
    assert result.items[1].applied == 50


def test_empty_plan_and_empty_pool():
    assert allocate(500, []).overall_percent == 0
    result = allocate(0, _items(10, 20))
    assert result.total_applied == 0
    assert result.overall_percent == 0
    assert result.items[0].shortfall == 10


def test_negative_pool_is_treated_as_empty():
    result = allocate(-50, _items(10))
    assert result.items[0].applied == 0
    assert result.overall_percent == 0


@pytest.mark.parametrize('savings', [0, 1, 199, 200, 201, 499, 500, 999, 1000, 5000])
def test_waterfall_properties(savings):
    items = _items(200, 300, 0, 500)
    result = allocate(savings, items)

    assert result.total_applied == min(savings, sum(item.amount for item in items))
    for entry in result.items:
        assert 0 <= entry.applied <= entry.item.amount

    underfunded = [idx for idx, entry in enumerate(result.items) if entry.applied < entry.item.amount]
    if underfunded:
        assert all(entry.applied == 0 for entry in result.items[underfunded[0] + 1:])


def test_allocation_is_idempotent():
    items = _items(120, 80, 40)
    assert allocate(150, items) == allocate(150, items)


def test_each_plan_sees_the_whole_pool():
    plans = [
        Plan(id='a', title='A', items=tuple(_items(300))),
        Plan(id='b', title='B', items=tuple(_items(300))),
    ]
    first, second = allocate_plans(300, plans)
    assert first.plan_id == 'a'
    assert second.plan_id == 'b'
    assert first.items[0].applied == 300
    assert second.items[0].applied == 300
