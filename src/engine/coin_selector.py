"""Funding and fee-payer coin selection over a wallet snapshot."""

from __future__ import annotations

from typing import Iterable

from engine.errors import InsufficientFunds, NoFeeCoin
from sui_client.bcs import normalize_type
from sui_client.constants import SUI_COIN_TYPE
from sui_client.models import CoinRecord


def select_funding(coins: Iterable[CoinRecord], token_type: str, amount: int) -> CoinRecord:
    """Return the first coin of ``token_type`` whose balance covers ``amount``.

    Holdings are scanned in the order given; this is first-fit, not best-fit.
    """
    wanted = normalize_type(token_type)
    for coin in coins:
        if normalize_type(coin.coin_type) == wanted and coin.balance >= amount:
            return coin
    raise InsufficientFunds(token_type, amount)


def select_fee_payer(
    coins: Iterable[CoinRecord],
    native_token_type: str = SUI_COIN_TYPE,
    exclude_object_id: str | None = None,
    min_balance: int = 0,
) -> CoinRecord:
    """Return the first native coin, other than ``exclude_object_id``, covering the budget."""
    wanted = normalize_type(native_token_type)
    for coin in coins:
        if exclude_object_id is not None and coin.object_id == exclude_object_id:
            continue
        if normalize_type(coin.coin_type) == wanted and coin.balance >= min_balance:
            return coin
    raise NoFeeCoin(native_token_type, min_balance)


def summarize_balances(coins: Iterable[CoinRecord]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for coin in coins:
        totals[coin.coin_type] = totals.get(coin.coin_type, 0) + coin.balance
    return totals
