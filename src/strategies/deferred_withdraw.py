"""Supply now, refresh reserve prices, and withdraw after a delay.

Scheduling is in-memory only: a pending withdrawal runs at most once and is
lost if the process exits before the timer fires.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from engine.actions import RefreshPriceAction, SupplyAction, WithdrawAction
from engine.errors import (
    MissingObligationCapability,
    ReserveNotFound,
    WithdrawalAlreadyScheduled,
)
from engine.execution import ExecutionMode, ExecutionResult
from engine.runner import (
    LedgerClient,
    ReserveProvider,
    StrategyRequest,
    TransactionSigner,
    created_object_ids,
    run_strategy,
)
from sui_client.constants import DEFAULT_GAS_BUDGET
from sui_client.models import EnvConfig, ReserveInfo
from sui_client.reserves import fetch_reserves, find_reserve_index
from utils.logging_config import LogSink, get_logger


class ScheduledWithdrawal:
    """Handle for one pending withdraw; wraps the timer task."""

    def __init__(
        self,
        obligation_cap_id: str,
        action: WithdrawAction,
        delay_seconds: float,
        task: asyncio.Task,
    ) -> None:
        self.obligation_cap_id = obligation_cap_id
        self.action = action
        self.delay_seconds = delay_seconds
        self._task = task

    def cancel(self) -> bool:
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    async def wait(self) -> ExecutionResult:
        return await self._task


@dataclass(frozen=True)
class DeferredWithdrawOutcome:
    supply: ExecutionResult
    refresh: ExecutionResult
    obligation_cap_id: str
    withdrawal: ScheduledWithdrawal


class DeferredWithdrawStrategy:
    def __init__(
        self,
        client: LedgerClient,
        signer: TransactionSigner,
        env: EnvConfig,
        *,
        mode: ExecutionMode | str = ExecutionMode.SIMULATE,
        gas_budget: int = DEFAULT_GAS_BUDGET,
        safe_mode: bool = False,
        reserve_provider: ReserveProvider = fetch_reserves,
        logger: LogSink | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.signer = signer
        self.env = env
        self.mode = mode
        self.gas_budget = gas_budget
        self.safe_mode = safe_mode
        self.reserve_provider = reserve_provider
        self.logger = logger or get_logger("sui_lend_bot.deferred_withdraw")
        self._sleep = sleep
        self._pending: dict[str, ScheduledWithdrawal] = {}

    @property
    def pending(self) -> dict[str, ScheduledWithdrawal]:
        return dict(self._pending)

    async def run(
        self,
        supply_action: SupplyAction,
        delay_seconds: float,
        *,
        reserve_array_index: int | None = None,
    ) -> DeferredWithdrawOutcome:
        """Supply, refresh every reserve price, then arm the delayed withdraw."""
        supply = await self._submit([supply_action], supply_action)
        created = created_object_ids(supply)
        if not created:
            raise MissingObligationCapability(
                "Supply produced no created objects; cannot schedule withdraw"
            )
        cap_id = created[0]
        self.logger.info("Obligation cap from supply: %s", cap_id)

        reserves = await self.reserve_provider(self.client, self.env)
        refresh_actions = [
            RefreshPriceAction(
                token=reserve.coin_type,
                reserve_array_index=index,
                price_info_id=reserve.price_info_id,
            )
            for index, reserve in enumerate(reserves)
        ]
        refresh = await self._submit(refresh_actions, supply_action, reserves=reserves)
        if refresh.failure is not None:
            self.logger.warning("Reserve price refresh failed: %s", refresh.failure.message)

        withdrawal = self.schedule_withdrawal(
            cap_id,
            supply_action,
            delay_seconds,
            reserves=reserves,
            reserve_array_index=reserve_array_index,
        )
        return DeferredWithdrawOutcome(
            supply=supply,
            refresh=refresh,
            obligation_cap_id=cap_id,
            withdrawal=withdrawal,
        )

    def schedule_withdrawal(
        self,
        obligation_cap_id: str,
        supply_action: SupplyAction,
        delay_seconds: float,
        *,
        reserves: list[ReserveInfo],
        reserve_array_index: int | None = None,
    ) -> ScheduledWithdrawal:
        """Arm a one-shot withdraw of ``supply_action.amount`` after the delay."""
        existing = self._pending.get(obligation_cap_id)
        if existing is not None and not existing.done():
            raise WithdrawalAlreadyScheduled(obligation_cap_id)

        index = reserve_array_index
        if index is None:
            index = find_reserve_index(reserves, supply_action.token)
        if index is None or index >= len(reserves):
            raise ReserveNotFound(supply_action.token)

        action = WithdrawAction(
            token=supply_action.token,
            amount=supply_action.amount,
            obligation_cap_id=obligation_cap_id,
            reserve_array_index=index,
            price_info_id=reserves[index].price_info_id,
        )
        task = asyncio.get_running_loop().create_task(
            self._withdraw_after(action, delay_seconds, supply_action, reserves)
        )
        scheduled = ScheduledWithdrawal(obligation_cap_id, action, delay_seconds, task)
        self._pending[obligation_cap_id] = scheduled
        task.add_done_callback(lambda _: self._forget(obligation_cap_id, scheduled))
        self.logger.info(
            "Withdraw of %d from reserve %d scheduled in %.0fs for cap %s",
            action.amount,
            index,
            delay_seconds,
            obligation_cap_id,
        )
        return scheduled

    async def _withdraw_after(
        self,
        action: WithdrawAction,
        delay_seconds: float,
        supply_action: SupplyAction,
        reserves: list[ReserveInfo],
    ) -> ExecutionResult:
        await self._sleep(delay_seconds)
        self.logger.info("Running scheduled withdraw for cap %s", action.obligation_cap_id)
        try:
            return await self._submit([action], supply_action, reserves=reserves)
        except Exception:
            self.logger.exception(
                "Scheduled withdraw for cap %s failed", action.obligation_cap_id
            )
            raise

    async def _submit(
        self,
        actions: list,
        supply_action: SupplyAction,
        *,
        reserves: list[ReserveInfo] | None = None,
    ) -> ExecutionResult:
        provider = (
            self.reserve_provider if reserves is None else _fixed_reserves(reserves)
        )
        request = StrategyRequest(
            actions=actions,
            coin_type=supply_action.token,
            amount=supply_action.amount,
            env=self.env,
            mode=self.mode,
            gas_budget=self.gas_budget,
            safe_mode=self.safe_mode,
        )
        return await run_strategy(
            request,
            client=self.client,
            signer=self.signer,
            reserve_provider=provider,
            logger=self.logger,
        )

    def _forget(self, obligation_cap_id: str, scheduled: ScheduledWithdrawal) -> None:
        if self._pending.get(obligation_cap_id) is scheduled:
            del self._pending[obligation_cap_id]


def _fixed_reserves(reserves: list[ReserveInfo]) -> ReserveProvider:
    known = list(reserves)

    async def provide(client: object, env: EnvConfig) -> list[ReserveInfo]:
        return known

    return provide
