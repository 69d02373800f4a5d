"""Simulate or submit a built transaction."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence, Union

from engine.errors import SubmissionException
from sui_client.async_rpc import RpcError
from sui_client.models import (
    DevInspectResults,
    DryRunResponse,
    TransactionBlockResponse,
    TransactionEffects,
)
from sui_client.signer import SignedTransaction
from utils.logging_config import LogSink, get_logger


class ExecutionMode(str, Enum):
    SIMULATE = "simulate"
    LIVE = "live"

    @classmethod
    def parse(cls, value: "ExecutionMode | str") -> "ExecutionMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown execution mode: {value!r}") from exc


@dataclass(frozen=True)
class SimulationFailure:
    stage: str
    message: str


@dataclass(frozen=True)
class LiveExecutionFailure:
    digest: str
    message: str


@dataclass(frozen=True)
class SimulationResult:
    inspect: DevInspectResults | None
    dry_run: DryRunResponse | None = None
    failure: SimulationFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class LiveResult:
    digest: str
    effects: TransactionEffects | None
    confirmed: TransactionBlockResponse | None = None
    failure: LiveExecutionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def created_ids(self) -> list[str]:
        return self.effects.created_ids if self.effects is not None else []


ExecutionResult = Union[SimulationResult, LiveResult]


class Signer(Protocol):
    @property
    def address(self) -> str:
        ...

    def sign_transaction(self, tx_bytes: bytes) -> SignedTransaction:
        ...


class ExecutionClient(Protocol):
    async def dev_inspect_transaction_block(
        self, sender: str, kind_bytes: bytes
    ) -> DevInspectResults:
        ...

    async def dry_run_transaction_block(self, tx_bytes: bytes) -> DryRunResponse:
        ...

    async def execute_transaction_block(
        self,
        tx_bytes: bytes | str,
        signatures: Sequence[str],
        options: Mapping[str, bool] | None = None,
    ) -> TransactionBlockResponse:
        ...

    async def sign_and_execute(
        self, signer: Any, tx_bytes: bytes, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        ...

    async def wait_for_transaction(
        self, digest: str, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        ...


class ExecutionController:
    """Runs a built payload in one mode.

    SIMULATE never commits: a cheap inspection runs first and the full dry run
    only follows when the inspection succeeded. LIVE signs, submits and always
    waits for the transaction to be observed before returning.
    """

    def __init__(
        self,
        client: ExecutionClient,
        signer: Signer,
        logger: LogSink | None = None,
        *,
        safe_mode: bool = False,
    ) -> None:
        self.client = client
        self.signer = signer
        self.safe_mode = safe_mode
        self.logger = logger or get_logger("sui_lend_bot.execution")

    async def run(
        self,
        mode: ExecutionMode | str,
        *,
        sender: str,
        kind_bytes: bytes,
        data_bytes: bytes,
    ) -> ExecutionResult:
        if ExecutionMode.parse(mode) is ExecutionMode.SIMULATE:
            return await self.simulate(sender, kind_bytes, data_bytes)
        return await self.execute(data_bytes)

    async def simulate(
        self, sender: str, kind_bytes: bytes, data_bytes: bytes
    ) -> SimulationResult:
        try:
            inspect = await self.client.dev_inspect_transaction_block(sender, kind_bytes)
        except RpcError as exc:
            self.logger.error("Inspection request failed: %s", exc)
            return SimulationResult(
                inspect=None, failure=SimulationFailure("inspect", str(exc))
            )

        if not inspect.is_success:
            message = inspect.error or _status_error(inspect.effects) or "inspection failed"
            self.logger.error("Inspection reported failure: %s", message)
            return SimulationResult(
                inspect=inspect, failure=SimulationFailure("inspect", message)
            )
        self.logger.info("Inspection succeeded; running full dry run")

        try:
            dry_run = await self.client.dry_run_transaction_block(data_bytes)
        except RpcError as exc:
            self.logger.error("Dry run request failed: %s", exc)
            return SimulationResult(
                inspect=inspect, failure=SimulationFailure("dry_run", str(exc))
            )

        if not dry_run.effects.status.is_success:
            message = _status_error(dry_run.effects) or "dry run failed"
            self.logger.warning("Dry run reported failure: %s", message)
            return SimulationResult(
                inspect=inspect,
                dry_run=dry_run,
                failure=SimulationFailure("dry_run", message),
            )

        self.logger.info(
            "Dry run succeeded; estimated gas %d", dry_run.effects.gas_used.net_cost
        )
        return SimulationResult(inspect=inspect, dry_run=dry_run)

    async def execute(self, data_bytes: bytes) -> LiveResult:
        try:
            if self.safe_mode:
                signed = self.signer.sign_transaction(data_bytes)
                submitted = await self.client.execute_transaction_block(
                    signed.tx_bytes, [signed.signature]
                )
            else:
                submitted = await self.client.sign_and_execute(self.signer, data_bytes)
            self.logger.info("Submitted transaction %s", submitted.digest)
            confirmed = await self.client.wait_for_transaction(submitted.digest)
        except RpcError as exc:
            self.logger.error("Live submission failed: %s", exc)
            raise SubmissionException(str(exc)) from exc

        effects = confirmed.effects or submitted.effects
        if effects is not None and not effects.status.is_success:
            message = _status_error(effects) or "execution failed"
            self.logger.error("Transaction %s failed on chain: %s", submitted.digest, message)
            return LiveResult(
                digest=submitted.digest,
                effects=effects,
                confirmed=confirmed,
                failure=LiveExecutionFailure(submitted.digest, message),
            )

        self.logger.info("Transaction %s confirmed", submitted.digest)
        return LiveResult(digest=submitted.digest, effects=effects, confirmed=confirmed)


def _status_error(effects: TransactionEffects | None) -> str | None:
    if effects is None:
        return None
    if effects.status.is_success:
        return None
    return effects.status.error or effects.status.status
