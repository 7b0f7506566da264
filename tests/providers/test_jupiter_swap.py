"""Tests for the Jupiter quote and swap-transaction client."""

import json
import time

import httpx
import pytest

from stableswap.core.recovery.errors import QuoteError, RateLimitError, TransactionBuildError
from stableswap.core.swap.constants import NATIVE_SOL_MINT, TOKENS
from stableswap.providers.jupiter import JupiterSwapProvider

API_URL = "https://jup.test/swap/v1"

QUOTE_PAYLOAD = {
    "inputMint": TOKENS["USDC"],
    "inAmount": "1000",
    "outputMint": TOKENS["USDT"],
    "outAmount": "999",
    "otherAmountThreshold": "994",
    "swapMode": "ExactIn",
    "slippageBps": 50,
    "priceImpactPct": "0.0001",
}


def make_provider(handler, **kwargs):
    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("slippage_bps", 50)
    kwargs.setdefault("priority_fee", 1000)
    return JupiterSwapProvider(
        api_url=API_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestGetSwapQuote:

    @pytest.mark.asyncio
    async def test_parses_quote_and_sends_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=QUOTE_PAYLOAD)

        provider = make_provider(handler)
        quote = await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)

        assert quote.in_amount == 1_000
        assert quote.out_amount == 999
        assert quote.other_amount_threshold == 994
        assert quote.price_impact_pct == pytest.approx(0.0001)
        assert quote.quote_response == QUOTE_PAYLOAD
        assert quote.is_valid

        request = seen[0]
        assert request.url.path == "/swap/v1/quote"
        assert request.headers["x-api-key"] == "test-key"
        params = request.url.params
        assert params["inputMint"] == TOKENS["USDC"]
        assert params["outputMint"] == TOKENS["USDT"]
        assert params["amount"] == "1000"
        assert params["slippageBps"] == "50"
        assert params["onlyDirectRoutes"] == "false"
        assert params["asLegacyTransaction"] == "false"

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_unset(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=QUOTE_PAYLOAD)

        provider = make_provider(handler, api_key="")
        await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)

        assert "x-api-key" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        provider = make_provider(lambda request: httpx.Response(429, text="slow down"))

        with pytest.raises(RateLimitError):
            await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)

    @pytest.mark.asyncio
    async def test_http_error_carries_status_and_body(self):
        provider = make_provider(lambda request: httpx.Response(400, text="Could not find any route"))

        with pytest.raises(QuoteError) as exc_info:
            await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)
        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "Quote failed: 400 - Could not find any route"

    @pytest.mark.asyncio
    async def test_error_field_in_body(self):
        provider = make_provider(lambda request: httpx.Response(200, json={"error": "No routes found"}))

        with pytest.raises(QuoteError, match="No routes found"):
            await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)

    @pytest.mark.asyncio
    async def test_transport_failure_is_quote_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(QuoteError, match="connection refused"):
            await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)


class TestBuildSwapTransaction:

    async def _quote(self, provider):
        return await provider.get_swap_quote(TOKENS["USDC"], TOKENS["USDT"], 1_000)

    @pytest.mark.asyncio
    async def test_posts_quote_and_priority_fee(self):
        bodies = []

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=QUOTE_PAYLOAD)
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={
                "swapTransaction": "AQID",
                "lastValidBlockHeight": 123,
                "prioritizationFeeLamports": 1000,
                "computeUnitLimit": 180_000,
            })

        provider = make_provider(handler)
        swap = await provider.build_swap_transaction(await self._quote(provider), "Wallet111")

        assert swap.swap_transaction == "AQID"
        assert swap.last_valid_block_height == 123
        assert swap.compute_unit_limit == 180_000

        body = bodies[0]
        assert body["quoteResponse"] == QUOTE_PAYLOAD
        assert body["userPublicKey"] == "Wallet111"
        assert body["wrapAndUnwrapSol"] is True
        assert body["dynamicComputeUnitLimit"] is True
        assert body["prioritizationFeeLamports"] == 1000

    @pytest.mark.asyncio
    async def test_auto_priority_fee(self):
        bodies = []

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=QUOTE_PAYLOAD)
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"swapTransaction": "AQID"})

        provider = make_provider(handler, priority_fee="auto")
        await provider.build_swap_transaction(await self._quote(provider), "Wallet111")

        assert bodies[0]["prioritizationFeeLamports"] == "auto"

    @pytest.mark.asyncio
    async def test_expired_quote_rejected(self):
        provider = make_provider(lambda request: httpx.Response(200, json=QUOTE_PAYLOAD))
        quote = await self._quote(provider)
        quote.fetched_at = time.time() - 60

        with pytest.raises(TransactionBuildError, match="expired"):
            await provider.build_swap_transaction(quote, "Wallet111")

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=QUOTE_PAYLOAD)
            return httpx.Response(500, text="internal")

        provider = make_provider(handler)

        with pytest.raises(TransactionBuildError) as exc_info:
            await provider.build_swap_transaction(await self._quote(provider), "Wallet111")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_missing_transaction(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=QUOTE_PAYLOAD)
            return httpx.Response(200, json={})

        provider = make_provider(handler)

        with pytest.raises(TransactionBuildError, match="empty swapTransaction"):
            await provider.build_swap_transaction(await self._quote(provider), "Wallet111")


class TestSolPrice:

    @pytest.mark.asyncio
    async def test_price_from_quote(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={**QUOTE_PAYLOAD, "inAmount": "1000000000", "outAmount": "152340000"})

        provider = make_provider(handler)

        assert await provider.get_sol_price_usdc() == pytest.approx(152.34)
        assert seen[0].url.params["inputMint"] == NATIVE_SOL_MINT

    @pytest.mark.asyncio
    async def test_unavailable_price_is_none(self):
        provider = make_provider(lambda request: httpx.Response(503, text="down"))

        assert await provider.get_sol_price_usdc() is None
