"""CLI entry point for the Sui lending bot."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import os
from pathlib import Path
from typing import Any, Sequence

import yaml

from engine.actions import ActionKind, SupplyAction, parse_actions
from engine.client_factory import (
    apply_env_fallbacks,
    build_env_config,
    build_rpc_client,
    build_signer,
)
from engine.errors import EngineError
from engine.execution import ExecutionResult, LiveResult, SimulationResult
from engine.runner import StrategyRequest, run_strategy
from sui_client.async_rpc import RpcError
from sui_client.constants import DEFAULT_GAS_BUDGET, SUI_COIN_TYPE
from sui_client.reserves import fetch_reserves
from strategies.deferred_withdraw import DeferredWithdrawStrategy
from utils.credentials import (
    DEFAULT_PRIVATE_KEY_ENV,
    DEFAULT_SERVICE_NAME,
    store_private_key,
)
from utils.logging_config import setup_logging

LOGGER = logging.getLogger("sui_lend_bot.cli")

SUPPORTED_FORMATS = (".json", ".yaml", ".yml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sui lending bot CLI")
    parser.add_argument("--version", action="version", version="sui-lend-bot 0.1.0")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Build the configured actions into one transaction and run it."
    )
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "--mode",
        choices=("simulate", "live"),
        help="Execution mode (overrides config; default: simulate).",
    )
    run_parser.add_argument(
        "--safe-mode",
        action="store_true",
        help="Sign locally and submit signed bytes in a separate call.",
    )
    run_parser.set_defaults(handler=run_command)

    reserves_parser = subparsers.add_parser(
        "reserves", help="List the lending market reserves and their slot indices."
    )
    _add_common_arguments(reserves_parser)
    reserves_parser.set_defaults(handler=reserves_command)

    schedule_parser = subparsers.add_parser(
        "schedule-withdraw",
        help="Supply, refresh reserve prices, and withdraw after a delay.",
    )
    _add_common_arguments(schedule_parser)
    schedule_parser.add_argument(
        "--mode",
        choices=("simulate", "live"),
        help="Execution mode (overrides config; default: simulate).",
    )
    schedule_parser.add_argument(
        "--delay-minutes",
        type=float,
        help="Minutes to wait before withdrawing (overrides config).",
    )
    schedule_parser.set_defaults(handler=schedule_withdraw_command)

    key_parser = subparsers.add_parser(
        "store-key", help="Store the signing key in the OS keychain."
    )
    key_parser.add_argument(
        "--service-name",
        default=DEFAULT_SERVICE_NAME,
        help=f"Keyring service name (default: {DEFAULT_SERVICE_NAME}).",
    )
    key_parser.add_argument(
        "--private-key",
        help=f"Private key (defaults to ${DEFAULT_PRIVATE_KEY_ENV} or prompt).",
    )
    key_parser.set_defaults(handler=store_key_command)
    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", required=True, help="Path to JSON/YAML config file."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument(
        "--log-file", help="Optional file to mirror log output into."
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if hasattr(args, "handler"):
        return args.handler(args)
    parser.print_help()
    return 1


def run_command(args: argparse.Namespace) -> int:
    configure_logging(args)
    try:
        config = apply_env_fallbacks(load_config(Path(args.config).expanduser()))
        if args.mode:
            config["mode"] = args.mode
        if args.safe_mode:
            config["safe_mode"] = True
        request = build_request(config)
        result = asyncio.run(_run(config, request))
    except (FileNotFoundError, RuntimeError, ValueError, EngineError, RpcError) as exc:
        LOGGER.error(str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - safeguard for unexpected issues.
        LOGGER.exception("Unexpected error during run: %s", exc)
        return 3
    print(json.dumps(summarize_result(result), indent=2))
    return 0 if result.failure is None else 1


async def _run(config: dict[str, Any], request: StrategyRequest) -> ExecutionResult:
    signer = build_signer(config)
    async with build_rpc_client(config) as client:
        return await run_strategy(request, client=client, signer=signer)


def reserves_command(args: argparse.Namespace) -> int:
    configure_logging(args)
    try:
        config = apply_env_fallbacks(load_config(Path(args.config).expanduser()))
        env = build_env_config(config)

        async def _fetch():
            async with build_rpc_client(config) as client:
                return await fetch_reserves(client, env)

        reserves = asyncio.run(_fetch())
    except (FileNotFoundError, RuntimeError, ValueError, EngineError, RpcError) as exc:
        LOGGER.error(str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - safeguard for unexpected issues.
        LOGGER.exception("Unexpected error while loading reserves: %s", exc)
        return 3
    for index, reserve in enumerate(reserves):
        print(
            json.dumps(
                {"reserve_array_index": index, **reserve.model_dump()}, sort_keys=True
            )
        )
    return 0


def schedule_withdraw_command(args: argparse.Namespace) -> int:
    configure_logging(args)
    try:
        config = apply_env_fallbacks(load_config(Path(args.config).expanduser()))
        if args.mode:
            config["mode"] = args.mode
        request = build_request(config)
        supply = next(
            (a for a in request.actions if a.kind is ActionKind.SUPPLY), None
        )
        if supply is None:
            supply = SupplyAction(token=request.coin_type, amount=request.amount)
        delay_minutes = args.delay_minutes
        if delay_minutes is None:
            delay_minutes = supply.duration_minutes or float(
                config.get("withdraw_delay_minutes", 60)
            )
        asyncio.run(_schedule(config, request, supply, delay_minutes * 60))
    except (FileNotFoundError, RuntimeError, ValueError, EngineError, RpcError) as exc:
        LOGGER.error(str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - safeguard for unexpected issues.
        LOGGER.exception("Unexpected error during scheduled withdraw: %s", exc)
        return 3
    return 0


async def _schedule(
    config: dict[str, Any],
    request: StrategyRequest,
    supply: SupplyAction,
    delay_seconds: float,
) -> None:
    signer = build_signer(config)
    async with build_rpc_client(config) as client:
        strategy = DeferredWithdrawStrategy(
            client,
            signer,
            request.env,
            mode=request.mode,
            gas_budget=request.gas_budget,
            safe_mode=request.safe_mode,
        )
        outcome = await strategy.run(supply, delay_seconds)
        print(
            json.dumps(
                {
                    "supply": summarize_result(outcome.supply),
                    "refresh": summarize_result(outcome.refresh),
                    "obligation_cap_id": outcome.obligation_cap_id,
                    "withdraw_in_seconds": delay_seconds,
                },
                indent=2,
            )
        )
        result = await outcome.withdrawal.wait()
        print(json.dumps({"withdraw": summarize_result(result)}, indent=2))


def store_key_command(args: argparse.Namespace) -> int:
    private_key = args.private_key or os.getenv(DEFAULT_PRIVATE_KEY_ENV)
    if not private_key:
        private_key = getpass.getpass("Enter Sui private key: ")
    try:
        store_private_key(args.service_name, private_key)
    except (RuntimeError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2
    print(f"Stored signing key in keychain service '{args.service_name}'.")
    return 0


def configure_logging(args: argparse.Namespace) -> None:
    """Configure logging with sanitization and proper formatting."""
    setup_logging(
        level=args.log_level,
        sanitize=True,
        structured=False,
        log_file=getattr(args, "log_file", None),
    )


def build_request(config: dict[str, Any]) -> StrategyRequest:
    """Turn a loaded config mapping into a strategy request."""
    env = build_env_config(config)
    raw_actions = config.get("actions")
    if raw_actions and not isinstance(raw_actions, list):
        raise ValueError("actions must be a list of action mappings")
    actions = parse_actions(raw_actions) if raw_actions else []
    supply_tokens = [a.token for a in actions if a.kind is ActionKind.SUPPLY]
    coin_type = str(
        config.get("coin_type")
        or (supply_tokens[0] if supply_tokens else SUI_COIN_TYPE)
    )
    if not actions:
        actions = parse_actions(
            [{"type": "supply", "token": coin_type, "amount": config.get("amount", 0)}]
        )
    amount = config.get("amount")
    if amount is None:
        amount = next((a.amount for a in actions if a.kind is ActionKind.SUPPLY), 0)
    return StrategyRequest(
        actions=actions,
        coin_type=coin_type,
        amount=int(str(amount)),
        env=env,
        mode=str(config.get("mode", "simulate")),
        gas_budget=int(str(config.get("gas_budget", DEFAULT_GAS_BUDGET))),
        safe_mode=bool(config.get("safe_mode", False)),
    )


def summarize_result(result: ExecutionResult) -> dict[str, Any]:
    if isinstance(result, LiveResult):
        return {
            "mode": "live",
            "digest": result.digest,
            "status": result.effects.status.status if result.effects else None,
            "created": result.created_ids,
            "failure": result.failure.message if result.failure else None,
        }
    if not isinstance(result, SimulationResult):
        raise TypeError(f"Unexpected execution result: {type(result).__name__}")
    dry_run = result.dry_run
    return {
        "mode": "simulate",
        "inspect_status": (
            result.inspect.effects.status.status
            if result.inspect is not None and result.inspect.effects is not None
            else None
        ),
        "dry_run_status": dry_run.effects.status.status if dry_run else None,
        "estimated_gas": dry_run.effects.gas_used.net_cost if dry_run else None,
        "created": dry_run.effects.created_ids if dry_run else [],
        "failure": result.failure.message if result.failure else None,
    }


def load_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. Ensure the path is correct and readable."
        )
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        supported = ", ".join(SUPPORTED_FORMATS)
        raise ValueError(
            f"Unsupported config format '{suffix}'. Supported formats: {supported}."
        )
    text = config_path.read_text(encoding="utf-8")
    try:
        if suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config file {config_path}: {exc}. Validate the file format."
        ) from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {config_path} must contain a JSON/YAML object mapping."
        )
    return data


if __name__ == "__main__":
    raise SystemExit(main())
