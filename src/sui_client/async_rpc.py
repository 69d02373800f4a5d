"""Async JSON-RPC client for Sui fullnodes."""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import aiohttp

from sui_client.models import (
    CoinRecord,
    DevInspectResults,
    DryRunResponse,
    ObjectSnapshot,
    TransactionBlockResponse,
)
from sui_client.signer import Ed25519Signer

DEFAULT_OBJECT_OPTIONS: Mapping[str, bool] = {
    "showType": True,
    "showOwner": True,
    "showContent": True,
}
DEFAULT_TX_OPTIONS: Mapping[str, bool] = {"showEffects": True, "showEvents": True}


@dataclass
class RpcRequest:
    method: str
    params: Sequence[Any] = ()


class RpcError(Exception):
    """Base exception for JSON-RPC client errors."""


class RpcTransportError(RpcError):
    """Raised for network or HTTP-level failures."""


class RpcResponseError(RpcError):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class RpcTimeoutError(RpcError):
    """Raised when a transaction is not observed before ``max_wait`` elapses."""


class AsyncRpcClient:
    """Async JSON-RPC client. Performs no retries; callers own retry policy."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
        poll_interval: float = 1.0,
        max_wait: float = 60.0,
        verify_ssl: bool = True,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._ssl_context = ssl_context
        if ssl_context is None and verify_ssl:
            self._ssl_context = ssl.create_default_context()
        elif ssl_context is None and not verify_ssl:
            self._ssl_context = ssl._create_unverified_context()
            logging.warning(
                "SSL certificate verification is DISABLED. "
                "This should NEVER be used against mainnet fullnodes."
            )
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "AsyncRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def call(self, method: str, *params: Any) -> Any:
        return await self.send(RpcRequest(method=method, params=params))

    async def send(self, request: RpcRequest) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": request.method,
            "params": list(request.params),
        }
        data_bytes = json.dumps(body, separators=(",", ":")).encode("utf8")
        headers = {"Accept": "application/json", "Content-Type": "application/json"}

        session = await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with session.request(
                "POST",
                self.base_url,
                headers=headers,
                data=data_bytes,
                timeout=timeout,
            ) as response:
                payload = await response.text()
                if response.status >= 400:
                    raise RpcTransportError(
                        self._build_http_error_message(response.status, payload)
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RpcTransportError(
                f"Network error while calling {request.method}"
            ) from exc

        try:
            parsed = json.loads(payload) if payload else {}
        except json.JSONDecodeError as exc:
            raise RpcTransportError(
                f"Invalid JSON in response to {request.method}"
            ) from exc

        error = parsed.get("error") if isinstance(parsed, dict) else None
        if error:
            raise RpcResponseError(
                f"{request.method} failed: {_extract_error_message(error)}",
                code=error.get("code") if isinstance(error, dict) else None,
            )
        return parsed.get("result") if isinstance(parsed, dict) else parsed

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            connector = aiohttp.TCPConnector(ssl=self._ssl_context)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
        return self._session

    def _build_http_error_message(self, status_code: int, payload: str) -> str:
        if payload:
            return f"HTTP error {status_code}: {payload}"
        return f"HTTP error {status_code}"

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    async def get_all_coins(self, owner: str) -> list[CoinRecord]:
        coins: list[CoinRecord] = []
        cursor: str | None = None
        while True:
            page = await self.call("suix_getAllCoins", owner, cursor, None) or {}
            for item in page.get("data", []):
                coins.append(CoinRecord.model_validate(item))
            if not page.get("hasNextPage"):
                return coins
            cursor = page.get("nextCursor")

    async def get_object(
        self, object_id: str, options: Mapping[str, bool] | None = None
    ) -> ObjectSnapshot:
        response = await self.call(
            "sui_getObject", object_id, dict(options or DEFAULT_OBJECT_OPTIONS)
        )
        return _parse_object_response(response, object_id)

    async def multi_get_objects(
        self, object_ids: Sequence[str], options: Mapping[str, bool] | None = None
    ) -> list[ObjectSnapshot]:
        if not object_ids:
            return []
        response = await self.call(
            "sui_multiGetObjects",
            list(object_ids),
            dict(options or DEFAULT_OBJECT_OPTIONS),
        )
        return [
            _parse_object_response(item, object_id)
            for item, object_id in zip(response or [], object_ids)
        ]

    async def get_reference_gas_price(self) -> int:
        return int(str(await self.call("suix_getReferenceGasPrice")))

    # ------------------------------------------------------------------
    # Simulation and execution API
    # ------------------------------------------------------------------

    async def dev_inspect_transaction_block(
        self, sender: str, kind_bytes: bytes
    ) -> DevInspectResults:
        result = await self.call(
            "sui_devInspectTransactionBlock",
            sender,
            _b64(kind_bytes),
            None,
            None,
            {"skipChecks": False},
        )
        payload = dict(result or {})
        return DevInspectResults.model_validate({**payload, "raw_payload": payload})

    async def dry_run_transaction_block(self, tx_bytes: bytes) -> DryRunResponse:
        result = await self.call("sui_dryRunTransactionBlock", _b64(tx_bytes))
        payload = dict(result or {})
        return DryRunResponse.model_validate({**payload, "raw_payload": payload})

    async def execute_transaction_block(
        self,
        tx_bytes: bytes | str,
        signatures: Sequence[str],
        options: Mapping[str, bool] | None = None,
    ) -> TransactionBlockResponse:
        encoded = tx_bytes if isinstance(tx_bytes, str) else _b64(tx_bytes)
        result = await self.call(
            "sui_executeTransactionBlock",
            encoded,
            list(signatures),
            dict(options or DEFAULT_TX_OPTIONS),
        )
        return _parse_tx_response(result)

    async def sign_and_execute(
        self,
        signer: Ed25519Signer,
        tx_bytes: bytes,
        options: Mapping[str, bool] | None = None,
    ) -> TransactionBlockResponse:
        signed = signer.sign_transaction(tx_bytes)
        return await self.execute_transaction_block(
            signed.tx_bytes, [signed.signature], options
        )

    async def get_transaction_block(
        self, digest: str, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        result = await self.call(
            "sui_getTransactionBlock", digest, dict(options or DEFAULT_TX_OPTIONS)
        )
        return _parse_tx_response(result)

    async def wait_for_transaction(
        self, digest: str, options: Mapping[str, bool] | None = None
    ) -> TransactionBlockResponse:
        """Poll until the node reports the transaction as executed."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_wait
        while True:
            try:
                return await self.get_transaction_block(digest, options)
            except RpcResponseError:
                if loop.time() >= deadline:
                    raise RpcTimeoutError(
                        f"Transaction {digest} not confirmed within {self.max_wait}s"
                    )
            await asyncio.sleep(self.poll_interval)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _extract_error_message(error: Any) -> str:
    if isinstance(error, dict):
        for key in ("message", "error", "code"):
            if error.get(key) is not None:
                return str(error[key])
    return str(error)


def _parse_object_response(response: Any, object_id: str) -> ObjectSnapshot:
    payload = response or {}
    if payload.get("error"):
        raise RpcResponseError(
            f"Object {object_id} unavailable: {_extract_error_message(payload['error'])}"
        )
    data = payload.get("data")
    if not data:
        raise RpcResponseError(f"Object {object_id} returned no data")
    return ObjectSnapshot.model_validate(data)


def _parse_tx_response(result: Any) -> TransactionBlockResponse:
    payload = dict(result or {})
    return TransactionBlockResponse.model_validate({**payload, "raw_payload": payload})
