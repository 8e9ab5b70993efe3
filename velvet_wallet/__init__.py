"""Top‑level package for Velvet Wallet, a two-person household budget.

The primary modules are:

* ``models`` – entries, savings plans and the closed category/user enums
* ``stores`` – immutable entry and plan stores with id-based mutations
* ``analytics`` – monthly and lifetime summaries of the entry log
* ``allocation`` – waterfall distribution of savings across plan items
* ``session`` – the application state object tying storage and gateways together

Remote collaborators live in ``sync`` (key-value mirror) and ``advisory``
(text-generation advice); both degrade to local-only behaviour on failure.
"""

from .errors import BudgetError, GatewayError, NotFound, ValidationError  # noqa: F401
from .models import Category, Plan, PlanItem, Transaction, TransactionType, User  # noqa: F401
from .session import AppState, BudgetSession  # noqa: F401
from .stores import EntryStore, GoalStore  # noqa: F401

__all__ = [
    "AppState",
    "BudgetError",
    "BudgetSession",
    "Category",
    "EntryStore",
    "GatewayError",
    "GoalStore",
    "NotFound",
    "Plan",
    "PlanItem",
    "Transaction",
    "TransactionType",
    "User",
    "ValidationError",
]
