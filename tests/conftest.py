"""Shared fakes for engine tests."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import pytest

from sui_client.async_rpc import RpcResponseError
from sui_client.bcs import base58_encode, normalize_address, normalize_type
from sui_client.models import (
    CoinRecord,
    DevInspectResults,
    DryRunResponse,
    EnvConfig,
    ExecutionStatus,
    ObjectRef,
    ObjectSnapshot,
    OwnedObjectRef,
    ReserveInfo,
    TransactionBlockResponse,
    TransactionEffects,
)
from sui_client.signer import Ed25519Signer

SUI = "0x2::sui::SUI"
USDC = "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC"
PACKAGE_ID = "0xf95b06141ed4a174f239417323bde3f209b972f5930d8521ea38a52aff3a6ddf"
LENDING_MARKET_ID = "0x84030d26d85eaa7035084a057f2f11f701b7e2e4eda87551becbc7c97505ece1"
LENDING_MARKET_TYPE = f"{PACKAGE_ID}::suilend::MAIN_POOL"
CAP_ID = "0x" + "ca" * 32


def addr(n: int) -> str:
    return "0x" + f"{n:064x}"


def digest(n: int) -> str:
    return base58_encode(bytes([n]) * 32)


def make_coin(object_id: str, coin_type: str, balance: int, version: int = 7) -> CoinRecord:
    return CoinRecord(
        object_id=object_id,
        coin_type=coin_type,
        balance=balance,
        version=version,
        digest=digest(version),
    )


def shared_object(object_id: str, initial_version: int = 10) -> ObjectSnapshot:
    return ObjectSnapshot(
        object_id=normalize_address(object_id),
        version=initial_version + 100,
        digest=digest(initial_version),
        owner={"Shared": {"initial_shared_version": initial_version}},
    )


def owned_object(object_id: str, owner: str, version: int = 7) -> ObjectSnapshot:
    return ObjectSnapshot(
        object_id=object_id,
        version=version,
        digest=digest(version),
        owner={"AddressOwner": owner},
    )


def make_effects(
    status: str = "success",
    *,
    created: Sequence[tuple[str, str]] = (),
    error: str | None = None,
) -> TransactionEffects:
    return TransactionEffects(
        status=ExecutionStatus(status=status, error=error),
        created=tuple(
            OwnedObjectRef(
                owner={"AddressOwner": owner},
                reference=ObjectRef(object_id=object_id, version=1, digest=digest(1)),
            )
            for object_id, owner in created
        ),
    )


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def _record(self, level: str, msg: str, *args: Any, **kwargs: Any) -> None:
        self.records.append((level, msg % args if args else msg))

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("debug", msg, *args)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("info", msg, *args)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("warning", msg, *args)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("error", msg, *args)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("exception", msg, *args)

    def messages(self, level: str) -> list[str]:
        return [message for record_level, message in self.records if record_level == level]


class FakeLedgerClient:
    """In-memory ledger that records every call in order."""

    def __init__(self, owner: str, coins: list[CoinRecord]) -> None:
        self.owner = owner
        self.coins = coins
        self.objects: dict[str, ObjectSnapshot] = {}
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.gas_price = 750
        self.inspect_result = DevInspectResults(effects=make_effects())
        self.dry_run_result = DryRunResponse(
            effects=make_effects(created=[(CAP_ID, owner)])
        )
        self.executed_effects = make_effects(created=[(CAP_ID, owner)])
        self.executed: list[tuple[str, list[str]]] = []
        for coin in coins:
            self.add_object(owned_object(coin.object_id, owner, coin.version))

    def add_object(self, snapshot: ObjectSnapshot) -> None:
        self.objects[normalize_address(snapshot.object_id)] = snapshot

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def _lookup(self, object_id: str) -> ObjectSnapshot:
        try:
            return self.objects[normalize_address(object_id)]
        except KeyError as exc:
            raise RpcResponseError(f"Object {object_id} not found") from exc

    async def get_all_coins(self, owner: str) -> list[CoinRecord]:
        self._enter("get_all_coins")
        return list(self.coins)

    async def get_object(
        self, object_id: str, options: Mapping[str, bool] | None = None
    ) -> ObjectSnapshot:
        self._enter("get_object")
        return self._lookup(object_id)

    async def multi_get_objects(
        self, object_ids: Sequence[str], options: Mapping[str, bool] | None = None
    ) -> list[ObjectSnapshot]:
        self._enter("multi_get_objects")
        return [self._lookup(object_id) for object_id in object_ids]

    async def get_reference_gas_price(self) -> int:
        self._enter("get_reference_gas_price")
        return self.gas_price

    async def dev_inspect_transaction_block(
        self, sender: str, kind_bytes: bytes
    ) -> DevInspectResults:
        self._enter("dev_inspect_transaction_block")
        return self.inspect_result

    async def dry_run_transaction_block(self, tx_bytes: bytes) -> DryRunResponse:
        self._enter("dry_run_transaction_block")
        return self.dry_run_result

    async def execute_transaction_block(
        self,
        tx_bytes: bytes | str,
        signatures: Sequence[str],
        options: Mapping[str, bool] | None = None,
    ) -> TransactionBlockResponse:
        self._enter("execute_transaction_block")
        self.executed.append((str(tx_bytes), list(signatures)))
        return TransactionBlockResponse(digest="FakeDigest1", effects=self.executed_effects)

    async def sign_and_execute(
        self, signer: Any, tx_bytes: bytes, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        self._enter("sign_and_execute")
        signed = signer.sign_transaction(tx_bytes)
        self.executed.append((signed.tx_bytes, [signed.signature]))
        return TransactionBlockResponse(digest="FakeDigest1", effects=self.executed_effects)

    async def wait_for_transaction(
        self, digest: str, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        self._enter("wait_for_transaction")
        return TransactionBlockResponse(digest=digest, effects=self.executed_effects)


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer.from_secret_bytes(bytes(range(32)))


@pytest.fixture
def env() -> EnvConfig:
    return EnvConfig(
        package_id=PACKAGE_ID,
        lending_market_id=LENDING_MARKET_ID,
        lending_market_type=LENDING_MARKET_TYPE,
    )


@pytest.fixture
def reserves() -> list[ReserveInfo]:
    return [
        ReserveInfo(
            coin_type=normalize_type(USDC),
            price="1000000000000000000",
            smoothed_price="1000000000000000000",
            last_update_timestamp="1717000000",
            price_info_id=addr(0xC1),
            config_cell_id=addr(0xC1),
        ),
        ReserveInfo(
            coin_type=normalize_type(SUI),
            price="3500000000000000000",
            smoothed_price="3400000000000000000",
            last_update_timestamp="1717000000",
            price_info_id=addr(0xC2),
            config_cell_id=addr(0xC2),
        ),
    ]


@pytest.fixture
def coins() -> list[CoinRecord]:
    return [
        make_coin(addr(0xA1), SUI, 5_000_000_000),
        make_coin(addr(0xA2), SUI, 2_000_000_000),
        make_coin(addr(0xB1), USDC, 10_000_000),
    ]


@pytest.fixture
def ledger(signer, coins, env, reserves) -> FakeLedgerClient:
    client = FakeLedgerClient(signer.address, coins)
    for object_id in (env.lending_market_id, "0x5", "0x6"):
        client.add_object(shared_object(object_id))
    for reserve in reserves:
        client.add_object(shared_object(reserve.price_info_id, initial_version=20))
    return client


@pytest.fixture
def reserve_provider(reserves):
    async def provide(client, env) -> list[ReserveInfo]:
        return list(reserves)

    return provide


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
