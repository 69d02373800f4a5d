"""Single entry point that turns an action list into one executed transaction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from engine.action_compiler import (
    CompileContext,
    compile_actions,
    requires_funding,
    validate_actions,
)
from engine.actions import Action, SupplyAction
from engine.coin_selector import select_fee_payer, select_funding, summarize_balances
from engine.errors import ConfigError
from engine.execution import (
    ExecutionController,
    ExecutionMode,
    ExecutionResult,
    LiveResult,
    SimulationResult,
)
from engine.transaction_builder import TransactionBuilder
from sui_client.bcs import normalize_type
from sui_client.constants import DEFAULT_GAS_BUDGET, SUI_COIN_TYPE
from sui_client.models import (
    CoinRecord,
    DevInspectResults,
    DryRunResponse,
    EnvConfig,
    ObjectSnapshot,
    ReserveInfo,
    TransactionBlockResponse,
)
from sui_client.reserves import fetch_reserves
from sui_client.signer import SignedTransaction, transaction_digest
from utils.config_validator import validate_strategy_config
from utils.logging_config import LogSink, get_logger


class LedgerClient(Protocol):
    async def get_all_coins(self, owner: str) -> list[CoinRecord]:
        ...

    async def get_object(
        self, object_id: str, options: Mapping[str, bool] | None = None
    ) -> ObjectSnapshot:
        ...

    async def multi_get_objects(
        self, object_ids: Sequence[str], options: Mapping[str, bool] | None = None
    ) -> list[ObjectSnapshot]:
        ...

    async def get_reference_gas_price(self) -> int:
        ...

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


class TransactionSigner(Protocol):
    @property
    def address(self) -> str:
        ...

    def sign_transaction(self, tx_bytes: bytes) -> SignedTransaction:
        ...


ReserveProvider = Callable[[Any, EnvConfig], Awaitable[list[ReserveInfo]]]


@dataclass(frozen=True)
class StrategyRequest:
    actions: Sequence[Action]
    coin_type: str
    amount: int
    env: EnvConfig
    mode: ExecutionMode | str = ExecutionMode.SIMULATE
    gas_budget: int = DEFAULT_GAS_BUDGET
    safe_mode: bool = False


def validate_request(request: StrategyRequest) -> ExecutionMode:
    """Check everything that can be checked without touching the network."""
    validate_strategy_config(
        {
            **request.env.model_dump(),
            "coin_type": request.coin_type,
            "amount": request.amount,
            "gas_budget": request.gas_budget,
            "safe_mode": request.safe_mode,
        }
    )
    try:
        mode = ExecutionMode.parse(request.mode)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    validate_actions(request.actions)
    wanted = normalize_type(request.coin_type)
    for action in request.actions:
        if isinstance(action, SupplyAction) and normalize_type(action.token) != wanted:
            raise ConfigError(
                f"Supply token {action.token} does not match funding coin type "
                f"{request.coin_type}"
            )
    return mode


def funding_amount(request: StrategyRequest) -> int:
    """Balance the funding coin must cover: every supply splits from it."""
    supplied = sum(
        action.amount for action in request.actions if isinstance(action, SupplyAction)
    )
    return max(request.amount, supplied)


async def run_strategy(
    request: StrategyRequest,
    *,
    client: LedgerClient,
    signer: TransactionSigner,
    reserve_provider: ReserveProvider = fetch_reserves,
    logger: LogSink | None = None,
) -> ExecutionResult:
    """Build the request's actions into one transaction and simulate or submit it."""
    log = logger or get_logger("sui_lend_bot.runner")
    mode = validate_request(request)
    owner = signer.address

    coins = await client.get_all_coins(owner)
    for coin_type, balance in summarize_balances(coins).items():
        log.info("Wallet balance %s: %d (raw)", coin_type, balance)

    funding: CoinRecord | None = None
    if requires_funding(request.actions):
        funding = select_funding(coins, request.coin_type, funding_amount(request))
    fee_coin = select_fee_payer(
        coins,
        SUI_COIN_TYPE,
        exclude_object_id=funding.object_id if funding is not None else None,
        min_balance=request.gas_budget,
    )

    gas_object = await client.get_object(fee_coin.object_id)
    if funding is not None:
        funding_object = await client.get_object(funding.object_id)
        funding = funding.model_copy(
            update={"version": funding_object.version, "digest": funding_object.digest}
        )

    reserves = await reserve_provider(client, request.env)

    builder = TransactionBuilder()
    builder.set_sender(owner)
    builder.set_gas_payment([gas_object.to_ref()])
    builder.set_gas_budget(request.gas_budget)

    compiled = compile_actions(
        builder,
        request.actions,
        CompileContext(
            owner=owner, env=request.env, reserves=reserves, funding_coin=funding
        ),
    )
    log.info(
        "Compiled %d action(s) into %d command(s): %s",
        len(compiled),
        len(builder.commands),
        ", ".join(builder.describe_calls()),
    )

    snapshot = await builder.resolve(client)
    kind_bytes = builder.build_kind(snapshot)
    data_bytes = builder.build_data(snapshot)
    log.debug(
        "Built transaction %s (%d bytes)", transaction_digest(data_bytes), len(data_bytes)
    )

    controller = ExecutionController(
        client, signer, log, safe_mode=request.safe_mode
    )
    log.info("Running %s", mode.value)
    return await controller.run(
        mode, sender=owner, kind_bytes=kind_bytes, data_bytes=data_bytes
    )


def created_object_ids(result: ExecutionResult) -> list[str]:
    """Ids of objects created by a live run or predicted by a dry run."""
    if isinstance(result, LiveResult):
        return result.created_ids
    if isinstance(result, SimulationResult) and result.dry_run is not None:
        return result.dry_run.effects.created_ids
    return []
