"""Error taxonomy for the action-to-transaction engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base exception for engine errors."""


class ConfigError(EngineError, ValueError):
    """Raised when required configuration is missing or invalid."""


class InsufficientFunds(EngineError):
    """Raised when no single coin of the requested type covers the amount."""

    def __init__(self, coin_type: str, amount: int) -> None:
        super().__init__(
            f"No coin of type {coin_type} with balance >= {amount} found."
        )
        self.coin_type = coin_type
        self.amount = amount


class NoFeeCoin(EngineError):
    """Raised when no separate native coin can pay the fee budget."""

    def __init__(self, coin_type: str, min_balance: int) -> None:
        super().__init__(
            f"No separate {coin_type} coin with balance >= {min_balance} available for gas."
        )
        self.coin_type = coin_type
        self.min_balance = min_balance


class ReserveNotFound(EngineError):
    """Raised when a token has no matching reserve slot."""

    def __init__(self, coin_type: str) -> None:
        super().__init__(f"Reserve not found for {coin_type}")
        self.coin_type = coin_type


class MissingField(EngineError):
    """Raised when an action lacks a required cross-reference."""

    def __init__(self, action_kind: str, field_name: str) -> None:
        super().__init__(f"{action_kind} action requires {field_name}")
        self.action_kind = action_kind
        self.field_name = field_name


class UnsupportedAction(EngineError):
    """Raised when an action kind has no compiler."""

    def __init__(self, action_kind: str) -> None:
        super().__init__(f"Unsupported action type: {action_kind}")
        self.action_kind = action_kind


class SubmissionException(EngineError):
    """Raised when a live submission fails at the network level.

    The on-chain outcome is unknown when this is raised, so it always propagates.
    """


class MissingObligationCapability(EngineError):
    """Raised when a supply produced no created object to use as capability."""


class WithdrawalAlreadyScheduled(EngineError):
    """Raised when a withdrawal is already pending for a capability."""

    def __init__(self, obligation_cap_id: str) -> None:
        super().__init__(
            f"A withdrawal is already scheduled for obligation cap {obligation_cap_id}"
        )
        self.obligation_cap_id = obligation_cap_id
