"""Reserve metadata reader for the lending market object."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from sui_client.bcs import normalize_type
from sui_client.models import EnvConfig, ObjectSnapshot, ReserveInfo

LOGGER = logging.getLogger("sui_lend_bot.reserves")


class ReserveDataError(ValueError):
    """Raised when the lending market object does not have the expected layout."""


class ObjectReader(Protocol):
    async def get_object(
        self, object_id: str, options: Mapping[str, bool] | None = None
    ) -> ObjectSnapshot:
        ...


async def fetch_reserves(client: ObjectReader, env: EnvConfig) -> list[ReserveInfo]:
    """Load the static ``reserves`` vector of the lending market.

    The order of the returned list is the on-chain reserve array order, so a
    reserve's index in the list is its ``reserve_array_index``.
    """
    LOGGER.info("Loading lending market object %s", env.lending_market_id)
    market = await client.get_object(env.lending_market_id, {"showContent": True})
    reserves = parse_reserves(market.content or {})
    LOGGER.info("Parsed %d reserves", len(reserves))
    return reserves


def parse_reserves(content: Mapping[str, Any]) -> list[ReserveInfo]:
    fields = content.get("fields") or {}
    raw_reserves = fields.get("reserves")
    if not isinstance(raw_reserves, list):
        raise ReserveDataError("No static `reserves` vector found on lending market")
    return [_parse_reserve(index, entry) for index, entry in enumerate(raw_reserves)]


def _parse_reserve(index: int, entry: Mapping[str, Any]) -> ReserveInfo:
    fields = entry.get("fields", entry)

    raw_coin = fields.get("coin_type")
    coin_name = raw_coin if isinstance(raw_coin, str) else _nested(raw_coin, "fields", "name")
    if not coin_name:
        raise ReserveDataError(f"Reserve at index {index} missing coin type")
    coin_type = normalize_type(coin_name)

    price = _decimal_value(fields.get("price"))
    smoothed_price = _decimal_value(fields.get("smoothed_price"))
    last_update = str(fields.get("price_last_update_timestamp_s", ""))

    # The config cell lives in ReserveConfig.additional_fields.
    config_struct = _nested(fields, "config", "fields", "element")
    if not config_struct:
        raise ReserveDataError(f"Reserve at index {index} missing config struct")
    config_cell_id = _nested(config_struct, "fields", "additional_fields", "fields", "id", "id")
    if not config_cell_id:
        raise ReserveDataError(f"Reserve at index {index} missing config cell ID")

    LOGGER.debug(
        "Reserve[%d] %s: price=%s smoothed=%s config_cell=%s",
        index,
        coin_type,
        price,
        smoothed_price,
        config_cell_id,
    )
    return ReserveInfo(
        coin_type=coin_type,
        price=price,
        smoothed_price=smoothed_price,
        last_update_timestamp=last_update,
        price_info_id=str(config_cell_id),
        config_cell_id=str(config_cell_id),
    )


def find_reserve_index(reserves: list[ReserveInfo], coin_type: str) -> int | None:
    """Return the first reserve position whose coin type matches, if any."""
    wanted = normalize_type(coin_type)
    for index, reserve in enumerate(reserves):
        if normalize_type(reserve.coin_type) == wanted:
            return index
    return None


def _decimal_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int)):
        return str(value)
    return str(_nested(value, "fields", "value") or "")


def _nested(value: Any, *keys: str) -> Any:
    current = value
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current
