from __future__ import annotations

import datetime as dt

import pytest

from velvet_wallet.errors import ValidationError
from velvet_wallet.models import (
    CATEGORY_COLORS,
    CATEGORY_ICONS,
    Category,
    Plan,
    PlanItem,
    Transaction,
    TransactionType,
    User,
    parse_transaction_data,
)


def _income(amount=1000, day='2024-01-05'):
    return Transaction(
        id='t1',
        amount=amount,
        category=Category.INCOME,
        date=dt.date.fromisoformat(day),
        user=User.MARIA,
        type=TransactionType.INCOME,
        note='Зарплата',
    )


def test_every_category_has_color_and_icon():
    assert len(Category) == 20
    assert set(CATEGORY_COLORS) == set(Category)
    assert set(CATEGORY_ICONS) == set(Category)
    assert Category.SAVINGS.color == '#4f46e5'
    assert Category.INCOME.icon == 'trending-up'


def test_expense_categories_exclude_income():
    categories = Category.expense_categories()
    assert len(categories) == 19
    assert Category.INCOME not in categories
    assert categories[0] is Category.RENT


def test_parse_accepts_loose_input():
    fields = parse_transaction_data({
        'amount': ' 250.5 ',
        'category': 'FOOD',
        'date': '2024-03-02',
        'user': 'Виктория',
    })
    assert fields['amount'] == 250.5
    assert fields['category'] is Category.FOOD
    assert fields['type'] is TransactionType.EXPENSE
    assert fields['user'] is User.VIKTORIA
    assert fields['date'] == dt.date(2024, 3, 2)
    assert fields['note'] == ''


def test_parse_infers_income_type_from_category():
    fields = parse_transaction_data({
        'amount': 100, 'category': 'Доход', 'date': '2024-03-02', 'user': 'SHARED',
    })
    assert fields['type'] is TransactionType.INCOME
    assert fields['user'] is User.SHARED


@pytest.mark.parametrize('data', [
    {'amount': 'abc', 'category': 'FOOD', 'date': '2024-01-01', 'user': 'MARIA'},
    {'amount': -5, 'category': 'FOOD', 'date': '2024-01-01', 'user': 'MARIA'},
    {'amount': 'nan', 'category': 'FOOD', 'date': '2024-01-01', 'user': 'MARIA'},
    {'amount': 5, 'category': 'Pizza', 'date': '2024-01-01', 'user': 'MARIA'},
    {'amount': 5, 'category': 'FOOD', 'date': '01/02/2024', 'user': 'MARIA'},
    {'amount': 5, 'category': 'FOOD', 'date': '2024-01-01', 'user': 'Olga'},
    {'amount': 5, 'category': 'FOOD', 'date': '2024-01-01'},
    {'amount': 5, 'category': 'FOOD', 'date': '2024-01-01', 'user': 'MARIA', 'type': 'income'},
    {'amount': 5, 'category': 'INCOME', 'date': '2024-01-01', 'user': 'MARIA', 'type': 'expense'},
])
def test_parse_rejects_malformed_input(data):
    with pytest.raises(ValidationError):
        parse_transaction_data(data)


def test_transaction_enforces_invariants():
    with pytest.raises(ValidationError):
        Transaction(
            id='x', amount=10, category=Category.FOOD, date=dt.date(2024, 1, 1),
            user=User.MARIA, type=TransactionType.INCOME,
        )
    with pytest.raises(ValidationError):
        _income(amount=-1)


def test_signed_amount_follows_type():
    assert _income(amount=300).signed_amount == 300
    expense = Transaction(
        id='e', amount=40, category=Category.SAVINGS, date=dt.date(2024, 1, 1),
        user=User.SHARED, type=TransactionType.EXPENSE,
    )
    assert expense.signed_amount == -40
    assert expense.is_savings


def test_transaction_round_trip():
    original = _income()
    data = original.to_dict()
    assert data == {
        'id': 't1',
        'amount': 1000,
        'category': 'Доход',
        'date': '2024-01-05',
        'user': 'Мария',
        'note': 'Зарплата',
        'type': 'income',
    }
    assert Transaction.from_dict(data) == original


def test_transaction_from_dict_requires_id():
    data = _income().to_dict()
    del data['id']
    with pytest.raises(ValidationError):
        Transaction.from_dict(data)


def test_plan_round_trip():
    plan = Plan(
        id='p1',
        title='Аргентина',
        items=(PlanItem(id='i1', label='Билеты', amount=15000), PlanItem(id='i2', label='Жилье', amount=12000)),
        color='bg-indigo-600',
    )
    restored = Plan.from_dict(plan.to_dict())
    assert restored == plan
    assert restored.total_needed == 27000
    assert restored.find_item('i2').label == 'Жилье'
    assert restored.find_item('missing') is None


def test_plan_item_rejects_negative_amount():
    with pytest.raises(ValidationError):
        PlanItem(id='i', label='x', amount=-1)
