"""Unit tests for RpcLedger against a mocked JSON-RPC node."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable

import httpx
import pytest
from solders.keypair import Keypair

from eventop.domain.errors import LedgerError, SubmissionFailedError
from eventop.infrastructure.http.http_client import AsyncHttpClient
from eventop.infrastructure.ledger.rpc_ledger import RpcLedger

Responder = Callable[[str, list[Any]], dict[str, Any]]


def _ledger(responder: Responder, requests: list[dict] | None = None, **kwargs: Any) -> RpcLedger:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if requests is not None:
            requests.append(body)
        reply = responder(body["method"], body["params"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **reply})

    http = AsyncHttpClient("http://rpc.test", transport=httpx.MockTransport(handler))
    return RpcLedger(http, **kwargs)


class TestGetAccount:
    @pytest.mark.asyncio
    async def test_decodes_base64_account(self) -> None:
        owner = Keypair().pubkey()
        requests: list[dict] = []

        def responder(method: str, params: list[Any]) -> dict[str, Any]:
            return {
                "result": {
                    "context": {"slot": 1},
                    "value": {
                        "data": [base64.b64encode(b"\x01\x02").decode(), "base64"],
                        "owner": str(owner),
                        "lamports": 5,
                        "executable": False,
                    },
                }
            }

        ledger = _ledger(responder, requests)
        account = await ledger.get_account(Keypair().pubkey())

        assert account is not None
        assert account.owner == owner
        assert account.data == b"\x01\x02"
        assert requests[0]["method"] == "getAccountInfo"
        assert requests[0]["params"][1] == {"encoding": "base64", "commitment": "confirmed"}

    @pytest.mark.asyncio
    async def test_missing_account_is_none(self) -> None:
        ledger = _ledger(lambda m, p: {"result": {"context": {"slot": 1}, "value": None}})
        assert await ledger.get_account(Keypair().pubkey()) is None

    @pytest.mark.asyncio
    async def test_rpc_error_raises_ledger_error(self) -> None:
        ledger = _ledger(lambda m, p: {"error": {"code": -32005, "message": "node is behind"}})
        with pytest.raises(LedgerError, match="node is behind"):
            await ledger.get_account(Keypair().pubkey())


class TestGetTokenBalance:
    @pytest.mark.asyncio
    async def test_reads_raw_amount(self) -> None:
        ledger = _ledger(
            lambda m, p: {
                "result": {
                    "context": {"slot": 1},
                    "value": {"amount": "70030000", "decimals": 6, "uiAmountString": "70.03"},
                }
            }
        )
        assert await ledger.get_token_balance(Keypair().pubkey()) == 70_030_000

    @pytest.mark.asyncio
    async def test_missing_token_account_is_zero(self) -> None:
        ledger = _ledger(
            lambda m, p: {
                "error": {
                    "code": -32602,
                    "message": "Invalid param: could not find account",
                }
            }
        )
        assert await ledger.get_token_balance(Keypair().pubkey()) == 0


class TestSubmitAndConfirm:
    @pytest.mark.asyncio
    async def test_submit_sends_base64_and_returns_signature(self) -> None:
        requests: list[dict] = []
        ledger = _ledger(lambda m, p: {"result": "5sig"}, requests)

        signature = await ledger.submit(b"\x00\x01")

        assert signature == "5sig"
        assert requests[0]["method"] == "sendTransaction"
        assert requests[0]["params"][0] == base64.b64encode(b"\x00\x01").decode()

    @pytest.mark.asyncio
    async def test_rejected_transaction_raises_submission_failed(self) -> None:
        ledger = _ledger(
            lambda m, p: {
                "error": {"code": -32002, "message": "Transaction simulation failed"}
            }
        )
        with pytest.raises(SubmissionFailedError, match="simulation failed"):
            await ledger.submit(b"\x00")

    @pytest.mark.asyncio
    async def test_confirm_polls_until_commitment_reached(self) -> None:
        statuses = iter(
            [
                None,
                {"err": None, "confirmationStatus": "processed"},
                {"err": None, "confirmationStatus": "confirmed"},
            ]
        )
        calls: list[dict] = []
        ledger = _ledger(
            lambda m, p: {"result": {"context": {"slot": 1}, "value": [next(statuses)]}},
            calls,
            poll_interval=0,
        )

        await ledger.confirm("5sig")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_confirm_raises_on_failed_transaction(self) -> None:
        ledger = _ledger(
            lambda m, p: {
                "result": {
                    "context": {"slot": 1},
                    "value": [{"err": {"InstructionError": [0, "Custom"]}, "confirmationStatus": "confirmed"}],
                }
            },
            poll_interval=0,
        )
        with pytest.raises(SubmissionFailedError) as exc_info:
            await ledger.confirm("5sig")
        assert exc_info.value.signature == "5sig"

    @pytest.mark.asyncio
    async def test_confirm_times_out(self) -> None:
        ledger = _ledger(
            lambda m, p: {"result": {"context": {"slot": 1}, "value": [None]}},
            poll_interval=0,
            confirm_timeout=0,
        )
        with pytest.raises(SubmissionFailedError, match="not confirmed within"):
            await ledger.confirm("5sig")


@pytest.mark.asyncio
async def test_latest_blockhash() -> None:
    ledger = _ledger(
        lambda m, p: {
            "result": {
                "context": {"slot": 1},
                "value": {"blockhash": "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N", "lastValidBlockHeight": 42},
            }
        }
    )
    latest = await ledger.get_latest_blockhash()
    assert latest.blockhash == "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N"
    assert latest.last_valid_block_height == 42


@pytest.mark.asyncio
async def test_http_failure_raises_ledger_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    ledger = RpcLedger(
        AsyncHttpClient("http://rpc.test", transport=httpx.MockTransport(handler))
    )
    with pytest.raises(LedgerError, match="HTTP 503"):
        await ledger.get_latest_blockhash()
