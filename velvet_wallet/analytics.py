"""Monthly and lifetime summaries derived from the entry log.

Every function here is pure: it takes the full collection of entries (or a
frame already built by ``to_frame``) and returns a fresh summary, so callers
simply recompute after each change instead of maintaining running sums.

Months are 1-based, as in ``datetime.date.month``.
"""

from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List, Union

import numpy as np
import pandas as pd

from .models import CATEGORY_COLORS, Category, Transaction, TransactionType

FRAME_COLUMNS = ['id', 'amount', 'category', 'date', 'user', 'type', 'note']

INCOME = TransactionType.INCOME.value
EXPENSE = TransactionType.EXPENSE.value

EntrySource = Union[pd.DataFrame, Iterable[Transaction]]


@dataclass(frozen=True)
class MonthlyTotals:
    income: float
    expense: float
    savings_out: float
    balance: float


@dataclass(frozen=True)
class CategoryTotal:
    category: Category
    total: float

    @property
    def color(self) -> str:
        return CATEGORY_COLORS[self.category]


@dataclass(frozen=True)
class DayActivity:
    has_income: bool
    has_expense: bool


@dataclass(frozen=True)
class DayTotals:
    income: float
    expense: float


@dataclass(frozen=True)
class MonthlyStats:
    """One bar of the yearly overview; ``month`` is a ``YYYY-MM`` label."""
    month: str
    income: float
    expense: float
    savings: float


# ---------------------------------------------------------------------------
# Frame preparation
# ---------------------------------------------------------------------------


def to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Build the working frame used by every summary.

    Enum fields are stored by value; ``signed`` carries the amount with the
    sign implied by the entry type; ``year``/``month`` support bucketing.
    """
    rows = [
        {
            'id': entry.id,
            'amount': float(entry.amount),
            'category': entry.category.value,
            'date': entry.date,
            'user': entry.user.value,
            'type': entry.type.value,
            'note': entry.note,
        }
        for entry in transactions
    ]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    frame['amount'] = frame['amount'].astype(float)
    frame['date'] = pd.to_datetime(frame['date'])
    frame['signed'] = np.where(frame['type'] == INCOME, frame['amount'], -frame['amount'])
    frame['year'] = frame['date'].dt.year
    frame['month'] = frame['date'].dt.month
    return frame


def _frame(source: EntrySource) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        return source
    return to_frame(source)


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")


def _month_rows(frame: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    _check_month(month)
    return frame[(frame['year'] == year) & (frame['month'] == month)]


def _day_rows(frame: pd.DataFrame, day: dt.date) -> pd.DataFrame:
    return frame[frame['date'] == pd.Timestamp(day)]


def _sum(series: pd.Series) -> float:
    return float(series.sum()) if not series.empty else 0.0


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def monthly_balance(transactions: EntrySource, year: int, month: int) -> float:
    """Lifetime balance as of the last day of ``month``.

    Covers every entry dated on or before the month end, not just that
    month's entries: income minus expense since the first entry.
    """
    _check_month(month)
    frame = _frame(transactions)
    month_end = dt.date(year, month, calendar.monthrange(year, month)[1])
    return _sum(frame.loc[frame['date'] <= pd.Timestamp(month_end), 'signed'])


def monthly_totals(transactions: EntrySource, year: int, month: int) -> MonthlyTotals:
    """Income, expense, savings deposits and net for one month only."""
    rows = _month_rows(_frame(transactions), year, month)
    is_income = rows['type'] == INCOME
    is_expense = rows['type'] == EXPENSE
    is_savings = is_expense & (rows['category'] == Category.SAVINGS.value)

    income = _sum(rows.loc[is_income, 'amount'])
    expense = _sum(rows.loc[is_expense, 'amount'])
    return MonthlyTotals(
        income=income,
        expense=expense,
        savings_out=_sum(rows.loc[is_savings, 'amount']),
        balance=income - expense,
    )


def category_breakdown(transactions: EntrySource, year: int, month: int) -> List[CategoryTotal]:
    """Expense totals per category for one month, largest first.

    Categories with equal totals keep the order in which they first appear
    in the input.
    """
    rows = _month_rows(_frame(transactions), year, month)
    expenses = rows[rows['type'] == EXPENSE]
    if expenses.empty:
        return []
    totals = expenses.groupby('category', sort=False)['amount'].sum()
    ordered = sorted(totals.items(), key=lambda pair: pair[1], reverse=True)
    return [CategoryTotal(category=Category(name), total=float(total)) for name, total in ordered]


def total_savings_to_date(transactions: EntrySource) -> float:
    """Lifetime sum of savings deposits: the pool that funds the plans."""
    frame = _frame(transactions)
    mask = (frame['type'] == EXPENSE) & (frame['category'] == Category.SAVINGS.value)
    return _sum(frame.loc[mask, 'amount'])


def wallet_balance(transactions: EntrySource) -> float:
    """Lifetime income minus lifetime expense."""
    return _sum(_frame(transactions)['signed'])


def day_has_activity(transactions: EntrySource, day: dt.date) -> DayActivity:
    """Whether any income or expense entry falls on ``day``."""
    rows = _day_rows(_frame(transactions), day)
    return DayActivity(
        has_income=bool((rows['type'] == INCOME).any()),
        has_expense=bool((rows['type'] == EXPENSE).any()),
    )


def day_totals(transactions: EntrySource, day: dt.date) -> DayTotals:
    rows = _day_rows(_frame(transactions), day)
    return DayTotals(
        income=_sum(rows.loc[rows['type'] == INCOME, 'amount']),
        expense=_sum(rows.loc[rows['type'] == EXPENSE, 'amount']),
    )


def month_transactions(transactions: Iterable[Transaction], year: int, month: int) -> List[Transaction]:
    """The month's entries newest first; same-day entries keep input order."""
    _check_month(month)
    selected = [entry for entry in transactions if entry.date.year == year and entry.date.month == month]
    return sorted(selected, key=lambda entry: entry.date, reverse=True)


def yearly_overview(transactions: EntrySource, year: int) -> List[MonthlyStats]:
    """Twelve zero-filled monthly rows for ``year``."""
    frame = _frame(transactions)
    year_rows = frame[frame['year'] == year]
    stats = []
    for month in range(1, 13):
        totals = monthly_totals(year_rows, year, month)
        stats.append(
            MonthlyStats(
                month=f"{year}-{month:02d}",
                income=totals.income,
                expense=totals.expense,
                savings=totals.savings_out,
            )
        )
    return stats
