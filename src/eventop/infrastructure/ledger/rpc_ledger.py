"""Ledger implementation over Solana JSON-RPC."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from typing import Any, Optional, Type
from types import TracebackType

import httpx
from solders.pubkey import Pubkey

from ...domain.errors import LedgerError, SubmissionFailedError
from ...domain.shared import AccountInfo, LatestBlockhash
from ..http.http_client import AsyncHttpClient
from ..timing import log_timing

logger = logging.getLogger(__name__)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}

# JSON-RPC "invalid params"; returned when a token account does not exist
_INVALID_PARAMS = -32602


class JsonRpcError(LedgerError):
    """Error object returned by the RPC node."""


class RpcLedger:
    """Reads accounts, submits signed transactions and polls for confirmation."""

    def __init__(
        self,
        http: AsyncHttpClient,
        *,
        commitment: str = "confirmed",
        confirm_timeout: float = 30.0,
        poll_interval: float = 0.5,
    ) -> None:
        if commitment not in _COMMITMENT_RANK:
            raise ValueError(f"Unknown commitment {commitment!r}")
        self._http = http
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http.post("", json=payload)
            body = resp.json()
        except httpx.HTTPStatusError as e:
            raise LedgerError(
                f"{method} failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise LedgerError(f"Could not reach RPC node for {method}: {e}") from e
        except ValueError as e:
            raise LedgerError(f"Invalid JSON from RPC node for {method}") from e

        error = body.get("error")
        if error is not None:
            raise JsonRpcError(
                f"{method}: {error.get('message', error)}", code=error.get("code")
            )
        return body.get("result")

    @log_timing("rpc.get_account")
    async def get_account(self, address: Pubkey) -> Optional[AccountInfo]:
        result = await self._call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
        )
        value = result.get("value") if result else None
        if value is None:
            return None
        data_b64, _encoding = value["data"]
        return AccountInfo(
            owner=Pubkey.from_string(value["owner"]),
            data=base64.b64decode(data_b64),
            lamports=value.get("lamports", 0),
            executable=value.get("executable", False),
        )

    @log_timing("rpc.get_token_balance")
    async def get_token_balance(self, address: Pubkey) -> int:
        try:
            result = await self._call(
                "getTokenAccountBalance",
                [str(address), {"commitment": self.commitment}],
            )
        except JsonRpcError as e:
            if e.code == _INVALID_PARAMS and "could not find account" in str(e):
                return 0
            raise
        return int(result["value"]["amount"])

    @log_timing("rpc.get_latest_blockhash")
    async def get_latest_blockhash(self) -> LatestBlockhash:
        result = await self._call(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        value = result["value"]
        return LatestBlockhash(
            blockhash=value["blockhash"],
            last_valid_block_height=value["lastValidBlockHeight"],
        )

    @log_timing("rpc.submit")
    async def submit(self, signed_transaction: bytes) -> str:
        encoded = base64.b64encode(signed_transaction).decode("ascii")
        try:
            signature = await self._call(
                "sendTransaction",
                [
                    encoded,
                    {"encoding": "base64", "preflightCommitment": self.commitment},
                ],
            )
        except LedgerError as e:
            raise SubmissionFailedError(f"Transaction rejected: {e}") from e
        logger.info("Submitted transaction %s", signature)
        return signature

    @log_timing("rpc.confirm")
    async def confirm(self, signature: str) -> None:
        target = _COMMITMENT_RANK[self.commitment]
        deadline = time.monotonic() + self.confirm_timeout
        while True:
            result = await self._call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": True}],
            )
            status = result["value"][0]
            if status is not None:
                if status.get("err") is not None:
                    raise SubmissionFailedError(
                        f"Transaction {signature} failed: {status['err']}",
                        signature=signature,
                    )
                reached = status.get("confirmationStatus") or "processed"
                if _COMMITMENT_RANK.get(reached, 0) >= target:
                    return
            if time.monotonic() >= deadline:
                raise SubmissionFailedError(
                    f"Transaction {signature} not {self.commitment} within "
                    f"{self.confirm_timeout}s",
                    signature=signature,
                )
            await asyncio.sleep(self.poll_interval)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "RpcLedger":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
