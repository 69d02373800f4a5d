"""Compile declarative lending actions into programmable transaction commands.

Each action kind maps to one pure compile function in ``ACTION_COMPILERS``.
Compile functions append commands to a shared ``TransactionBuilder`` and never
perform I/O; everything they need arrives through ``CompileContext``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from engine.actions import (
    Action,
    ActionKind,
    RefreshPriceAction,
    SupplyAction,
    WithdrawAction,
)
from engine.errors import ConfigError, MissingField, ReserveNotFound, UnsupportedAction
from engine.transaction_builder import Argument, TransactionBuilder
from sui_client.bcs import normalize_type
from sui_client.constants import (
    CLOCK_OBJECT_ID,
    MOVE_STDLIB_ADDRESS,
    SUI_COIN_TYPE,
    SYSTEM_STATE_OBJECT_ID,
)
from sui_client.models import CoinRecord, EnvConfig, ReserveInfo
from sui_client.reserves import find_reserve_index

LENDING_MODULE = "lending_market"


@dataclass(frozen=True)
class CompileContext:
    owner: str
    env: EnvConfig
    reserves: Sequence[ReserveInfo] = ()
    funding_coin: CoinRecord | None = None


@dataclass(frozen=True)
class CompiledAction:
    """What one action contributed to the transaction."""

    kind: ActionKind
    calls: tuple[str, ...] = ()
    result: Argument | None = None


ActionCompilerFn = Callable[[TransactionBuilder, Action, CompileContext], CompiledAction]


def _lending_target(env: EnvConfig, function: str) -> str:
    return f"{env.package_id}::{LENDING_MODULE}::{function}"


def _is_native(coin_type: str) -> bool:
    return normalize_type(coin_type) == normalize_type(SUI_COIN_TYPE)


def _calls_since(builder: TransactionBuilder, start: int) -> tuple[str, ...]:
    return tuple(builder.describe_calls()[start:])


def compile_supply(
    builder: TransactionBuilder, action: SupplyAction, context: CompileContext
) -> CompiledAction:
    """Deposit the funding coin into the token's reserve under a fresh obligation.

    Returns the obligation owner cap as the result handle; the cap is
    transferred to the owner at the end of the sequence.
    """
    if context.funding_coin is None:
        raise MissingField(action.kind.value, "funding_coin")
    reserve_index = find_reserve_index(list(context.reserves), action.token)
    if reserve_index is None:
        raise ReserveNotFound(action.token)

    env = context.env
    market_type = env.lending_market_type
    start = len(builder.commands)

    market = builder.shared_object(env.lending_market_id, mutable=True)
    cap = builder.move_call(
        _lending_target(env, "create_obligation"),
        [market],
        [market_type],
    )
    funding = builder.owned_object(context.funding_coin.to_ref())
    [deposit_coin] = builder.split_coins(funding, [builder.pure_u64(action.amount)])
    clock = builder.shared_object(CLOCK_OBJECT_ID, mutable=False)
    ctokens = builder.move_call(
        _lending_target(env, "deposit_liquidity_and_mint_ctokens"),
        [market, builder.pure_u64(reserve_index), clock, deposit_coin],
        [market_type, action.token],
    )
    builder.move_call(
        _lending_target(env, "deposit_ctokens_into_obligation"),
        [market, builder.pure_u64(reserve_index), cap, clock, ctokens],
        [market_type, action.token],
    )
    system_state = builder.shared_object(SYSTEM_STATE_OBJECT_ID, mutable=True)
    builder.move_call(
        _lending_target(env, "rebalance_staker"),
        [market, builder.pure_u64(reserve_index), system_state],
        [market_type],
    )
    builder.transfer_objects([cap], builder.pure_address(context.owner))
    return CompiledAction(
        kind=ActionKind.SUPPLY, calls=_calls_since(builder, start), result=cap
    )


def compile_withdraw(
    builder: TransactionBuilder, action: WithdrawAction, context: CompileContext
) -> CompiledAction:
    """Refresh the reserve price, burn ctokens and send the liquidity to the owner."""
    _require_withdraw_fields(action)
    env = context.env
    market_type = env.lending_market_type
    start = len(builder.commands)

    market = builder.shared_object(env.lending_market_id, mutable=True)
    clock = builder.shared_object(CLOCK_OBJECT_ID, mutable=False)
    price_info = builder.shared_object(action.price_info_id, mutable=False)
    builder.move_call(
        _lending_target(env, "refresh_reserve_price"),
        [market, builder.pure_u64(action.reserve_array_index), clock, price_info],
        [market_type],
    )
    cap = builder.owned_object_id(action.obligation_cap_id)
    ctokens = builder.move_call(
        _lending_target(env, "withdraw_ctokens"),
        [
            market,
            builder.pure_u64(action.reserve_array_index),
            cap,
            clock,
            builder.pure_u64(action.amount),
        ],
        [market_type, action.token],
    )
    exemption_type = (
        f"{env.package_id}::{LENDING_MODULE}::RateLimiterExemption"
        f"<{market_type}, {action.token}>"
    )
    no_exemption = builder.move_call(
        f"{MOVE_STDLIB_ADDRESS}::option::none", [], [exemption_type]
    )
    request = builder.move_call(
        _lending_target(env, "redeem_ctokens_and_withdraw_liquidity_request"),
        [market, builder.pure_u64(action.reserve_array_index), clock, ctokens, no_exemption],
        [market_type, action.token],
    )
    if _is_native(action.token):
        system_state = builder.shared_object(SYSTEM_STATE_OBJECT_ID, mutable=True)
        builder.move_call(
            _lending_target(env, "unstake_sui_from_staker"),
            [market, builder.pure_u64(action.reserve_array_index), request, system_state],
            [market_type],
        )
    coin = builder.move_call(
        _lending_target(env, "fulfill_liquidity_request"),
        [market, builder.pure_u64(action.reserve_array_index), request],
        [market_type, action.token],
    )
    builder.transfer_objects([coin], builder.pure_address(context.owner))
    return CompiledAction(
        kind=ActionKind.WITHDRAW, calls=_calls_since(builder, start), result=coin
    )


def compile_refresh_price(
    builder: TransactionBuilder, action: RefreshPriceAction, context: CompileContext
) -> CompiledAction:
    _require_refresh_fields(action)
    env = context.env
    start = len(builder.commands)
    builder.move_call(
        _lending_target(env, "refresh_reserve_price"),
        [
            builder.shared_object(env.lending_market_id, mutable=True),
            builder.pure_u64(action.reserve_array_index),
            builder.shared_object(CLOCK_OBJECT_ID, mutable=False),
            builder.shared_object(action.price_info_id, mutable=False),
        ],
        [env.lending_market_type],
    )
    return CompiledAction(kind=ActionKind.REFRESH_PRICE, calls=_calls_since(builder, start))


def compile_unsupported(
    builder: TransactionBuilder, action: Action, context: CompileContext
) -> CompiledAction:
    raise UnsupportedAction(action.kind.value)


ACTION_COMPILERS: dict[ActionKind, ActionCompilerFn] = {
    ActionKind.SUPPLY: compile_supply,
    ActionKind.WITHDRAW: compile_withdraw,
    ActionKind.REFRESH_PRICE: compile_refresh_price,
    ActionKind.SWAP: compile_unsupported,
    ActionKind.BORROW: compile_unsupported,
}

UNSUPPORTED_KINDS = frozenset(
    kind for kind, fn in ACTION_COMPILERS.items() if fn is compile_unsupported
)

_uncovered = set(ActionKind) - set(ACTION_COMPILERS)
if _uncovered:
    raise RuntimeError(f"No compiler registered for: {sorted(k.value for k in _uncovered)}")


def _require_withdraw_fields(action: WithdrawAction) -> None:
    if not action.obligation_cap_id:
        raise MissingField(action.kind.value, "obligation_cap_id")
    if action.reserve_array_index is None:
        raise MissingField(action.kind.value, "reserve_array_index")
    if not action.price_info_id:
        raise MissingField(action.kind.value, "price_info_id")


def _require_refresh_fields(action: RefreshPriceAction) -> None:
    if action.reserve_array_index is None:
        raise MissingField(action.kind.value, "reserve_array_index")
    if not action.price_info_id:
        raise MissingField(action.kind.value, "price_info_id")


def validate_actions(actions: Sequence[Action]) -> None:
    """Reject the whole list before anything is appended or fetched."""
    if not actions:
        raise ConfigError("Action list must not be empty")
    for action in actions:
        if action.kind in UNSUPPORTED_KINDS:
            raise UnsupportedAction(action.kind.value)
    for action in actions:
        if isinstance(action, WithdrawAction):
            _require_withdraw_fields(action)
        elif isinstance(action, RefreshPriceAction):
            _require_refresh_fields(action)


def requires_funding(actions: Sequence[Action]) -> bool:
    return any(action.kind is ActionKind.SUPPLY for action in actions)


def compile_actions(
    builder: TransactionBuilder,
    actions: Sequence[Action],
    context: CompileContext,
) -> list[CompiledAction]:
    """Compile every action in list order into ``builder``."""
    validate_actions(actions)
    return [ACTION_COMPILERS[action.kind](builder, action, context) for action in actions]


__all__ = [
    "ACTION_COMPILERS",
    "CompileContext",
    "CompiledAction",
    "compile_actions",
    "compile_refresh_price",
    "compile_supply",
    "compile_withdraw",
    "requires_funding",
    "validate_actions",
]
