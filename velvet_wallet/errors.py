"""Exception types shared across the budgeting core."""

from __future__ import annotations


class BudgetError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(BudgetError, ValueError):
    """Input to a mutation is malformed; the mutation is rejected."""


class NotFound(BudgetError, KeyError):
    """An operation referenced an id that does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return self.args[0]


class GatewayError(BudgetError):
    """A remote collaborator (sync store or advisory service) failed."""
