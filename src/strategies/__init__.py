"""Composite strategies built on the transaction engine."""

from .deferred_withdraw import (
    DeferredWithdrawOutcome,
    DeferredWithdrawStrategy,
    ScheduledWithdrawal,
)

__all__ = [
    "DeferredWithdrawOutcome",
    "DeferredWithdrawStrategy",
    "ScheduledWithdrawal",
]
