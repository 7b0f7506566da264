"""Tests for the Solana RPC executor against an in-process mock transport."""

import json

import httpx
import pytest

from stableswap.core.execution.solana_executor import (
    SolanaConfirmationTimeout,
    SolanaExecutor,
    SolanaExecutorError,
    SolanaRpcConfig,
    SolanaTransactionStatus,
)

RPC_URL = "https://rpc.test"


class FakeRpc:
    """Answers JSON-RPC calls from a per-method queue of results."""

    def __init__(self, responses):
        self.responses = {method: list(values) for method, values in responses.items()}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        queue = self.responses[body["method"]]
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **reply})


def make_executor(responses, **config):
    rpc = FakeRpc(responses)
    config.setdefault("max_retries", 1)
    executor = SolanaExecutor(
        SolanaRpcConfig(rpc_url=RPC_URL, **config),
        transport=httpx.MockTransport(rpc),
    )
    return executor, rpc


def status(confirmation="confirmed", err=None):
    return {"result": {"value": [{"slot": 42, "confirmations": 1, "err": err, "confirmationStatus": confirmation}]}}


@pytest.mark.asyncio
async def test_send_transaction_skips_preflight():
    executor, rpc = make_executor({"sendTransaction": [{"result": "sig123"}]})

    signature = await executor.send_transaction("AQID", skip_preflight=True, max_retries=3)

    assert signature == "sig123"
    params = rpc.requests[0]["params"]
    assert params[0] == "AQID"
    assert params[1]["encoding"] == "base64"
    assert params[1]["skipPreflight"] is True
    assert params[1]["maxRetries"] == 3
    await executor.close()


@pytest.mark.asyncio
async def test_rpc_error_raises():
    executor, _ = make_executor({
        "sendTransaction": [{"error": {"code": -32002, "message": "Blockhash not found"}}],
    })

    with pytest.raises(SolanaExecutorError, match="Blockhash not found"):
        await executor.send_transaction("AQID", skip_preflight=True)
    await executor.close()


@pytest.mark.asyncio
async def test_http_error_raises_after_retries():
    executor, _ = make_executor({"getBalance": [httpx.Response(503)]})

    with pytest.raises(SolanaExecutorError, match="503"):
        await executor.get_balance("wallet")
    await executor.close()


@pytest.mark.asyncio
async def test_get_balance():
    executor, rpc = make_executor({"getBalance": [{"result": {"context": {"slot": 1}, "value": 12_345}}]})

    assert await executor.get_balance("wallet") == 12_345
    assert rpc.requests[0]["params"][0] == "wallet"
    await executor.close()


class TestSignatureStatus:

    @pytest.mark.asyncio
    async def test_unknown_signature_is_pending(self):
        executor, _ = make_executor({"getSignatureStatuses": [{"result": {"value": [None]}}]})

        result = await executor.get_signature_status("sig")

        assert result.status is SolanaTransactionStatus.PENDING
        await executor.close()

    @pytest.mark.asyncio
    async def test_processed_below_commitment_is_pending(self):
        executor, _ = make_executor({"getSignatureStatuses": [status("processed")]})

        result = await executor.get_signature_status("sig")

        assert result.status is SolanaTransactionStatus.PENDING
        await executor.close()

    @pytest.mark.asyncio
    async def test_err_is_failed(self):
        executor, _ = make_executor({
            "getSignatureStatuses": [status(err={"InstructionError": [2, {"Custom": 6001}]})],
        })

        result = await executor.get_signature_status("sig")

        assert result.status is SolanaTransactionStatus.FAILED
        assert "6001" in result.error
        assert not result.landed
        await executor.close()


class TestConfirmTransaction:

    @pytest.mark.asyncio
    async def test_confirmed(self):
        executor, _ = make_executor({"getSignatureStatuses": [status("confirmed")]})

        result = await executor.confirm_transaction("sig", timeout_s=5)

        assert result.status is SolanaTransactionStatus.CONFIRMED
        assert result.landed
        assert result.slot == 42
        await executor.close()

    @pytest.mark.asyncio
    async def test_polls_until_landed(self):
        executor, rpc = make_executor({
            "getSignatureStatuses": [{"result": {"value": [None]}}, status("finalized")],
        })

        result = await executor.confirm_transaction("sig", timeout_s=5, poll_interval_s=0)

        assert result.status is SolanaTransactionStatus.FINALIZED
        assert len(rpc.requests) == 2
        await executor.close()

    @pytest.mark.asyncio
    async def test_failed_returned_not_raised(self):
        executor, _ = make_executor({"getSignatureStatuses": [status(err="SlippageToleranceExceeded")]})

        result = await executor.confirm_transaction("sig", timeout_s=5)

        assert result.status is SolanaTransactionStatus.FAILED
        await executor.close()

    @pytest.mark.asyncio
    async def test_timeout(self):
        executor, _ = make_executor({"getSignatureStatuses": [{"result": {"value": [None]}}]})

        with pytest.raises(SolanaConfirmationTimeout):
            await executor.confirm_transaction("sig", timeout_s=0)
        await executor.close()

    @pytest.mark.asyncio
    async def test_query_error_propagates(self):
        executor, _ = make_executor({
            "getSignatureStatuses": [{"error": {"code": -32005, "message": "Node is behind"}}],
        })

        with pytest.raises(SolanaExecutorError, match="Node is behind"):
            await executor.confirm_transaction("sig", timeout_s=5)
        await executor.close()
