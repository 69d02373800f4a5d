import pytest

from conftest import SUI, USDC, addr, make_coin
from engine.coin_selector import select_fee_payer, select_funding, summarize_balances
from engine.errors import InsufficientFunds, NoFeeCoin

TYPE_A = "0xabc::token::A"


def test_select_funding_is_first_fit_not_best_fit():
    coins = [
        make_coin(addr(1), TYPE_A, 2_000_000_000),
        make_coin(addr(2), TYPE_A, 500_000_000),
    ]

    selected = select_funding(coins, TYPE_A, 1_000_000_000)

    assert selected.object_id == addr(1)


def test_select_funding_skips_coins_below_amount_and_other_types():
    coins = [
        make_coin(addr(1), SUI, 9_000_000_000),
        make_coin(addr(2), TYPE_A, 10),
        make_coin(addr(3), TYPE_A, 100),
    ]

    assert select_funding(coins, TYPE_A, 50).object_id == addr(3)


def test_select_funding_matches_short_and_long_type_addresses():
    coins = [make_coin(addr(1), "0x" + "0" * 63 + "2::sui::SUI", 100)]

    assert select_funding(coins, SUI, 100).object_id == addr(1)


def test_select_funding_raises_when_nothing_covers_amount():
    coins = [make_coin(addr(1), TYPE_A, 10), make_coin(addr(2), TYPE_A, 20)]

    with pytest.raises(InsufficientFunds) as excinfo:
        select_funding(coins, TYPE_A, 25)

    assert excinfo.value.amount == 25
    assert excinfo.value.coin_type == TYPE_A


def test_select_fee_payer_never_returns_funding_coin():
    coins = [
        make_coin(addr(1), SUI, 5_000_000_000),
        make_coin(addr(2), SUI, 2_000_000_000),
    ]
    funding = select_funding(coins, SUI, 1_000_000_000)

    fee = select_fee_payer(coins, SUI, exclude_object_id=funding.object_id)

    assert fee.object_id == addr(2)
    assert fee.object_id != funding.object_id


def test_select_fee_payer_requires_budget():
    coins = [make_coin(addr(1), SUI, 10), make_coin(addr(2), SUI, 1_000)]

    assert select_fee_payer(coins, SUI, min_balance=500).object_id == addr(2)


def test_select_fee_payer_raises_when_only_native_coin_is_funding():
    coins = [make_coin(addr(1), SUI, 5_000_000_000), make_coin(addr(2), USDC, 5)]

    with pytest.raises(NoFeeCoin):
        select_fee_payer(coins, SUI, exclude_object_id=addr(1))


def test_summarize_balances_totals_per_type():
    coins = [
        make_coin(addr(1), SUI, 5),
        make_coin(addr(2), SUI, 7),
        make_coin(addr(3), USDC, 3),
    ]

    assert summarize_balances(coins) == {SUI: 12, USDC: 3}
