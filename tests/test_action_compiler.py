import pytest

from conftest import CAP_ID, PACKAGE_ID, SUI, USDC, addr, make_coin
from engine.action_compiler import (
    ACTION_COMPILERS,
    CompileContext,
    compile_actions,
    validate_actions,
)
from engine.actions import (
    ActionKind,
    BorrowAction,
    RefreshPriceAction,
    SupplyAction,
    SwapAction,
    WithdrawAction,
)
from engine.errors import ConfigError, MissingField, ReserveNotFound, UnsupportedAction
from engine.transaction_builder import ArgumentKind, ObjectInput, TransactionBuilder
from sui_client.bcs import normalize_address

OWNER = addr(0x0E)
MODULE = f"{PACKAGE_ID}::lending_market"


def _context(env, reserves, funding=None):
    return CompileContext(owner=OWNER, env=env, reserves=reserves, funding_coin=funding)


def _withdraw(token=SUI, **overrides):
    fields = {
        "token": token,
        "amount": 1_000,
        "obligation_cap_id": CAP_ID,
        "reserve_array_index": 1,
        "price_info_id": addr(0xC2),
    }
    fields.update(overrides)
    return WithdrawAction(**fields)


def test_dispatch_table_covers_every_action_kind():
    assert set(ACTION_COMPILERS) == set(ActionKind)


def test_supply_emits_calls_in_order(env, reserves):
    builder = TransactionBuilder()
    funding = make_coin(addr(0xB1), USDC, 10_000_000)

    [compiled] = compile_actions(
        builder,
        [SupplyAction(token=USDC, amount=1_000_000)],
        _context(env, reserves, funding),
    )

    assert builder.describe_calls() == [
        f"{MODULE}::create_obligation",
        "SplitCoins",
        f"{MODULE}::deposit_liquidity_and_mint_ctokens",
        f"{MODULE}::deposit_ctokens_into_obligation",
        f"{MODULE}::rebalance_staker",
        "TransferObjects",
    ]
    assert compiled.kind is ActionKind.SUPPLY
    assert compiled.calls == tuple(builder.describe_calls())
    assert compiled.result.kind is ArgumentKind.RESULT
    assert compiled.result.index == 0
    assert builder.commands[-1].objects == (compiled.result,)


def test_supply_uses_first_matching_reserve_index(env, reserves):
    builder = TransactionBuilder()
    funding = make_coin(addr(0xA1), SUI, 5_000_000_000)

    compile_actions(
        builder,
        [SupplyAction(token=SUI, amount=1_000_000_000)],
        _context(env, reserves, funding),
    )

    deposit = builder.commands[2]
    index_arg = deposit.arguments[1]
    assert builder.inputs[index_arg.index].data == (1).to_bytes(8, "little")
    assert deposit.type_arguments == (env.lending_market_type, SUI)


def test_supply_marks_shared_objects_and_dedupes_market(env, reserves):
    builder = TransactionBuilder()
    funding = make_coin(addr(0xB1), USDC, 10_000_000)

    compile_actions(
        builder, [SupplyAction(token=USDC, amount=1)], _context(env, reserves, funding)
    )

    objects = {item.object_id: item for item in builder.referenced_objects()}
    market = objects[normalize_address(env.lending_market_id)]
    clock = objects[normalize_address("0x6")]
    system_state = objects[normalize_address("0x5")]
    coin = objects[normalize_address(addr(0xB1))]
    assert (market.shared, market.mutable) == (True, True)
    assert (clock.shared, clock.mutable) == (True, False)
    assert (system_state.shared, system_state.mutable) == (True, True)
    assert coin.shared is False and coin.ref is not None
    assert len(builder.referenced_objects()) == 4


def test_supply_without_reserve_fails_before_append(env, reserves):
    builder = TransactionBuilder()
    funding = make_coin(addr(1), "0xabc::token::A", 10)

    with pytest.raises(ReserveNotFound):
        compile_actions(
            builder,
            [SupplyAction(token="0xabc::token::A", amount=1)],
            _context(env, reserves, funding),
        )

    assert builder.commands == []


def test_supply_requires_funding_coin(env, reserves):
    with pytest.raises(MissingField) as excinfo:
        compile_actions(
            TransactionBuilder(),
            [SupplyAction(token=USDC, amount=1)],
            _context(env, reserves),
        )

    assert excinfo.value.field_name == "funding_coin"


def test_withdraw_native_token_includes_unstake(env, reserves):
    builder = TransactionBuilder()

    [compiled] = compile_actions(builder, [_withdraw()], _context(env, reserves))

    assert builder.describe_calls() == [
        f"{MODULE}::refresh_reserve_price",
        f"{MODULE}::withdraw_ctokens",
        f"{normalize_address('0x1')}::option::none",
        f"{MODULE}::redeem_ctokens_and_withdraw_liquidity_request",
        f"{MODULE}::unstake_sui_from_staker",
        f"{MODULE}::fulfill_liquidity_request",
        "TransferObjects",
    ]
    assert compiled.result.index == 5
    none_call = builder.commands[2]
    assert none_call.type_arguments == (
        f"{PACKAGE_ID}::lending_market::RateLimiterExemption"
        f"<{env.lending_market_type}, {SUI}>",
    )
    cap = next(
        item
        for item in builder.referenced_objects()
        if item.object_id == normalize_address(CAP_ID)
    )
    assert isinstance(cap, ObjectInput)
    assert cap.shared is False and cap.ref is None


def test_withdraw_other_token_skips_unstake(env, reserves):
    builder = TransactionBuilder()

    compile_actions(
        builder,
        [_withdraw(token=USDC, reserve_array_index=0, price_info_id=addr(0xC1))],
        _context(env, reserves),
    )

    assert f"{MODULE}::unstake_sui_from_staker" not in builder.describe_calls()
    assert len(builder.commands) == 6


@pytest.mark.parametrize(
    "missing", ["obligation_cap_id", "reserve_array_index", "price_info_id"]
)
def test_withdraw_missing_reference_appends_nothing(env, reserves, missing):
    builder = TransactionBuilder()

    with pytest.raises(MissingField) as excinfo:
        compile_actions(builder, [_withdraw(**{missing: None})], _context(env, reserves))

    assert excinfo.value.field_name == missing
    assert builder.commands == []
    assert builder.inputs == []


def test_refresh_price_emits_single_call(env, reserves):
    builder = TransactionBuilder()
    action = RefreshPriceAction(token=USDC, reserve_array_index=0, price_info_id=addr(0xC1))

    compile_actions(builder, [action], _context(env, reserves))

    assert builder.describe_calls() == [f"{MODULE}::refresh_reserve_price"]
    assert builder.commands[0].type_arguments == (env.lending_market_type,)


@pytest.mark.parametrize("unsupported", [SwapAction(token=SUI), BorrowAction(token=SUI)])
def test_unsupported_kind_anywhere_fails_before_any_append(env, reserves, unsupported):
    builder = TransactionBuilder()
    funding = make_coin(addr(0xB1), USDC, 10_000_000)

    with pytest.raises(UnsupportedAction):
        compile_actions(
            builder,
            [SupplyAction(token=USDC, amount=1), unsupported],
            _context(env, reserves, funding),
        )

    assert builder.commands == []


def test_validate_actions_rejects_empty_list():
    with pytest.raises(ConfigError):
        validate_actions([])


def test_compile_preserves_action_list_order(env, reserves):
    builder = TransactionBuilder()
    first = RefreshPriceAction(token=SUI, reserve_array_index=1, price_info_id=addr(0xC2))
    second = RefreshPriceAction(token=USDC, reserve_array_index=0, price_info_id=addr(0xC1))

    compiled = compile_actions(builder, [first, second], _context(env, reserves))

    assert [item.kind for item in compiled] == [ActionKind.REFRESH_PRICE] * 2
    price_inputs = [
        builder.inputs[command.arguments[3].index].object_id
        for command in builder.commands
    ]
    assert price_inputs == [normalize_address(addr(0xC2)), normalize_address(addr(0xC1))]
