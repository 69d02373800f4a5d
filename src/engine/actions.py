"""Declarative action models accepted by the engine."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Sequence, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from engine.errors import ConfigError

U64_MAX = (1 << 64) - 1


class ActionKind(str, Enum):
    SUPPLY = "supply"
    WITHDRAW = "withdraw"
    REFRESH_PRICE = "refresh_price"
    SWAP = "swap"
    BORROW = "borrow"


# Alternate spellings accepted on input.
_TYPE_ALIASES = {
    "lend": ActionKind.SUPPLY.value,
    "deposit": ActionKind.SUPPLY.value,
    "refreshReservePrice": ActionKind.REFRESH_PRICE.value,
    "refreshPrice": ActionKind.REFRESH_PRICE.value,
}


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    protocol: str = "SuiLend"
    token: str
    amount: int = 0

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v: Any) -> int:
        """Amounts are raw u64 base units; strings are accepted for large values."""
        if isinstance(v, bool):
            raise ValueError("amount must be an integer")
        try:
            amount = int(str(v))
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid amount: {v}") from e
        if amount < 0 or amount > U64_MAX:
            raise ValueError(f"amount must fit in u64, got: {v}")
        return amount

    @property
    def kind(self) -> ActionKind:
        return ActionKind(getattr(self, "type"))


class SupplyAction(_ActionBase):
    type: Literal["supply"] = "supply"
    duration_minutes: float | None = Field(None, alias="durationMinutes")


class WithdrawAction(_ActionBase):
    type: Literal["withdraw"] = "withdraw"
    obligation_cap_id: str | None = Field(None, alias="obligationCapId")
    reserve_array_index: int | None = Field(None, alias="reserveArrayIndex", ge=0)
    price_info_id: str | None = Field(None, alias="priceInfo")


class RefreshPriceAction(_ActionBase):
    type: Literal["refresh_price"] = "refresh_price"
    reserve_array_index: int | None = Field(None, alias="reserveArrayIndex", ge=0)
    price_info_id: str | None = Field(None, alias="priceInfo")


class SwapAction(_ActionBase):
    type: Literal["swap"] = "swap"


class BorrowAction(_ActionBase):
    type: Literal["borrow"] = "borrow"


Action = Annotated[
    Union[SupplyAction, WithdrawAction, RefreshPriceAction, SwapAction, BorrowAction],
    Field(discriminator="type"),
]

_ACTIONS_ADAPTER: TypeAdapter[list[Action]] = TypeAdapter(list[Action])


def parse_actions(raw_actions: Sequence[Mapping[str, Any]]) -> list[Action]:
    """Parse caller-supplied mappings into typed actions."""
    normalized = []
    for item in raw_actions:
        entry = dict(item)
        action_type = entry.get("type")
        if isinstance(action_type, str):
            entry["type"] = _TYPE_ALIASES.get(action_type, action_type)
        normalized.append(entry)
    try:
        return _ACTIONS_ADAPTER.validate_python(normalized)
    except ValidationError as exc:
        raise ConfigError(f"Invalid action list: {exc}") from exc
