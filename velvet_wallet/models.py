"""Domain model for the household budget.

Transactions, savings plans and their line items are immutable dataclasses.
Categories, users and entry types are closed enumerations; the per-category
display colour and icon live in plain lookup tables next to the enum.

``to_dict``/``from_dict`` use the JSON shapes the household's stored data
already has, so slots written by older versions load unchanged.
"""

from __future__ import annotations

import datetime as dt
import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from .errors import ValidationError

E = TypeVar('E', bound=Enum)


class TransactionType(str, Enum):
    """Discriminator deciding the sign of an entry."""
    INCOME = 'income'
    EXPENSE = 'expense'


class User(str, Enum):
    """Household participants plus the shared pseudo-user."""
    MARIA = 'Мария'
    VIKTORIA = 'Виктория'
    SHARED = 'Общее'


class Category(str, Enum):
    """Closed set of entry categories.

    ``SAVINGS`` expenses feed the savings pool; ``INCOME`` is the only
    category an income entry may carry.
    """
    RENT = 'Аренда'
    ELECTRICITY = 'Электричество'
    INTERNET = 'Интернет'
    FOOD = 'Еда'
    SUBSCRIPTIONS = 'Подписки'
    COURSES = 'Курсы'
    GAS = 'Бензин'
    AUTO_REPAIR = 'СТО'
    CLOTHING = 'Одежда'
    PHARMACY = 'Аптека'
    DOCTOR = 'Врач'
    PARKING = 'Парковка'
    HOUSEHOLD_NEEDS = 'Хоз.нужды'
    ENTERTAINMENT = 'Развлечения'
    HOUSEHOLD_EXPENSES = 'Быт'
    TRAVEL = 'Путешествия'
    CAT_CARE = 'Кошачье хозяйство'
    UNFORESEEN = 'Непредвиденное'
    SAVINGS = 'Накопления'
    INCOME = 'Доход'

    @classmethod
    def expense_categories(cls) -> List['Category']:
        """Categories an expense may use, in declaration order."""
        return [category for category in cls if category is not cls.INCOME]

    @property
    def color(self) -> str:
        return CATEGORY_COLORS[self]

    @property
    def icon(self) -> str:
        return CATEGORY_ICONS[self]


CATEGORY_COLORS: Dict[Category, str] = {
    Category.RENT: '#6366f1',
    Category.ELECTRICITY: '#f59e0b',
    Category.INTERNET: '#3b82f6',
    Category.FOOD: '#10b981',
    Category.SUBSCRIPTIONS: '#ec4899',
    Category.COURSES: '#8b5cf6',
    Category.GAS: '#f43f5e',
    Category.AUTO_REPAIR: '#64748b',
    Category.CLOTHING: '#fb923c',
    Category.PHARMACY: '#14b8a6',
    Category.DOCTOR: '#ef4444',
    Category.PARKING: '#71717a',
    Category.HOUSEHOLD_NEEDS: '#a855f7',
    Category.ENTERTAINMENT: '#facc15',
    Category.HOUSEHOLD_EXPENSES: '#06b6d4',
    Category.TRAVEL: '#2dd4bf',
    Category.CAT_CARE: '#fb7185',
    Category.UNFORESEEN: '#475569',
    Category.SAVINGS: '#4f46e5',
    Category.INCOME: '#22c55e',
}

# Lucide icon names
CATEGORY_ICONS: Dict[Category, str] = {
    Category.RENT: 'home',
    Category.ELECTRICITY: 'zap',
    Category.INTERNET: 'globe',
    Category.FOOD: 'utensils',
    Category.SUBSCRIPTIONS: 'credit-card',
    Category.COURSES: 'graduation-cap',
    Category.GAS: 'fuel',
    Category.AUTO_REPAIR: 'settings',
    Category.CLOTHING: 'shopping-bag',
    Category.PHARMACY: 'pill',
    Category.DOCTOR: 'activity',
    Category.PARKING: 'map-pin',
    Category.HOUSEHOLD_NEEDS: 'trash-2',
    Category.ENTERTAINMENT: 'music',
    Category.HOUSEHOLD_EXPENSES: 'coffee',
    Category.TRAVEL: 'plane',
    Category.CAT_CARE: 'cat',
    Category.UNFORESEEN: 'help-circle',
    Category.SAVINGS: 'piggy-bank',
    Category.INCOME: 'trending-up',
}

DEFAULT_PLAN_COLOR = 'bg-indigo-600'
DEFAULT_ITEM_LABEL = 'Новый пункт'


def new_id() -> str:
    """Return a fresh identifier for an entry, plan or plan item."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _coerce_enum(enum_cls: Type[E], value: Any, label: str) -> E:
    """Accept a member, its value, or its name (any case)."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        pass
    if isinstance(value, str) and value.strip().upper() in enum_cls.__members__:
        return enum_cls.__members__[value.strip().upper()]
    raise ValidationError(f"Unknown {label}: {value!r}")


def parse_amount(value: Any) -> float:
    """Convert user input to a non-negative finite amount."""
    if isinstance(value, bool):
        raise ValidationError(f"Amount must be numeric: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Amount must be numeric: {value!r}") from None
    if not math.isfinite(amount):
        raise ValidationError(f"Amount must be finite: {value!r}")
    if amount < 0:
        raise ValidationError(f"Amount must not be negative: {value!r}")
    return amount


def parse_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"Date must be an ISO calendar date (YYYY-MM-DD): {value!r}")


def _check_category_type(category: Category, entry_type: TransactionType) -> None:
    if entry_type is TransactionType.INCOME and category is not Category.INCOME:
        raise ValidationError(
            f"Income entries must use the {Category.INCOME.name} category, got {category.name}"
        )
    if entry_type is TransactionType.EXPENSE and category is Category.INCOME:
        raise ValidationError(f"Expense entries cannot use the {Category.INCOME.name} category")


def parse_transaction_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate loosely typed entry input and return ``Transaction`` fields.

    ``id`` is ignored; the caller decides whether to keep or assign one.
    When ``type`` is omitted it follows the category: ``income`` for the
    income category, ``expense`` for everything else.

    Raises:
        ValidationError: a field is missing or malformed, or the category
            does not agree with the type.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"Entry data must be a mapping, got {type(data).__name__}")
    missing = [name for name in ('amount', 'category', 'date', 'user') if data.get(name) in (None, '')]
    if missing:
        raise ValidationError(f"Missing entry fields: {', '.join(missing)}")

    category = _coerce_enum(Category, data['category'], 'category')
    raw_type = data.get('type')
    if raw_type in (None, ''):
        entry_type = TransactionType.INCOME if category is Category.INCOME else TransactionType.EXPENSE
    else:
        entry_type = _coerce_enum(TransactionType, raw_type, 'entry type')
    _check_category_type(category, entry_type)

    note = data.get('note')
    return {
        'amount': parse_amount(data['amount']),
        'category': category,
        'date': parse_date(data['date']),
        'user': _coerce_enum(User, data['user'], 'user'),
        'type': entry_type,
        'note': '' if note is None else str(note),
    }


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """One income or expense entry. ``amount`` is never negative."""
    id: str
    amount: float
    category: Category
    date: dt.date
    user: User
    type: TransactionType
    note: str = ''

    def __post_init__(self) -> None:
        if not math.isfinite(self.amount) or self.amount < 0:
            raise ValidationError(f"Amount must be a non-negative number: {self.amount!r}")
        _check_category_type(self.category, self.type)

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type is TransactionType.INCOME else -self.amount

    @property
    def is_savings(self) -> bool:
        return self.category is Category.SAVINGS and self.type is TransactionType.EXPENSE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'category': self.category.value,
            'date': self.date.isoformat(),
            'user': self.user.value,
            'note': self.note,
            'type': self.type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Transaction':
        ident = data.get('id') if isinstance(data, Mapping) else None
        if ident in (None, ''):
            raise ValidationError("Stored entry has no id")
        return cls(id=str(ident), **parse_transaction_data(data))


@dataclass(frozen=True)
class PlanItem:
    """A sub-goal of a plan; ``amount`` is its target cost."""
    id: str
    label: str
    amount: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.amount) or self.amount < 0:
            raise ValidationError(f"Plan item amount must be a non-negative number: {self.amount!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'label': self.label, 'amount': self.amount}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PlanItem':
        if not isinstance(data, Mapping) or data.get('id') in (None, ''):
            raise ValidationError("Stored plan item has no id")
        return cls(
            id=str(data['id']),
            label=str(data.get('label') or ''),
            amount=parse_amount(data.get('amount', 0)),
        )


@dataclass(frozen=True)
class Plan:
    """A savings target. Item order is funding priority."""
    id: str
    title: str
    items: Tuple[PlanItem, ...] = ()
    color: str = DEFAULT_PLAN_COLOR

    @property
    def total_needed(self) -> float:
        return sum(item.amount for item in self.items)

    def find_item(self, item_id: str) -> Optional[PlanItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'items': [item.to_dict() for item in self.items],
            'color': self.color,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Plan':
        if not isinstance(data, Mapping) or data.get('id') in (None, ''):
            raise ValidationError("Stored plan has no id")
        raw_items = data.get('items') or []
        if not isinstance(raw_items, list):
            raise ValidationError(f"Plan items must be a list, got {type(raw_items).__name__}")
        return cls(
            id=str(data['id']),
            title=str(data.get('title') or ''),
            items=tuple(PlanItem.from_dict(item) for item in raw_items),
            color=str(data.get('color') or DEFAULT_PLAN_COLOR),
        )
