"""
Jupiter swap provider.

Wraps the two Jupiter swap API calls the swap executor needs:
- GET  /quote  -> expected output and price impact for an exact-in swap
- POST /swap   -> unsigned, base64 serialized versioned transaction

An API key (``x-api-key``) and an HTTP proxy are applied to every request
when configured.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx

from ..config import settings
from ..core.recovery.errors import QuoteError, RateLimitError, TransactionBuildError
from ..core.swap.constants import NATIVE_SOL_MINT, TOKENS, LAMPORTS_PER_SOL, token_decimals

logger = logging.getLogger(__name__)


@dataclass
class JupiterQuote:
    """Quote response from Jupiter."""
    input_mint: str
    output_mint: str
    in_amount: int                              # In smallest units
    out_amount: int                             # In smallest units
    other_amount_threshold: int                 # Minimum output (with slippage)
    swap_mode: str                              # "ExactIn" or "ExactOut"
    slippage_bps: int
    price_impact_pct: float

    # Raw payload, echoed back to /swap
    quote_response: Optional[Dict[str, Any]] = None

    # Timing
    fetched_at: float = field(default_factory=time.time)

    @property
    def is_valid(self) -> bool:
        """Check if quote is still valid (within 30 seconds)."""
        return (time.time() - self.fetched_at) < 30


@dataclass
class JupiterSwapResult:
    """Result of building a swap transaction."""
    swap_transaction: str                       # Base64 encoded transaction
    last_valid_block_height: int
    priority_fee_lamports: int
    compute_unit_limit: int


class JupiterSwapProvider:
    """
    Jupiter quote and swap-transaction client.

    Usage:
        provider = JupiterSwapProvider()

        quote = await provider.get_swap_quote(
            input_mint=TOKENS["USDC"],
            output_mint=TOKENS["USDT"],
            amount=1_000,  # 0.001 USDC
        )

        swap = await provider.build_swap_transaction(quote, user_public_key="...")
        # Sign swap.swap_transaction and send it via the Solana executor
    """

    def __init__(
        self,
        *,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        proxy_url: Optional[str] = None,
        slippage_bps: Optional[int] = None,
        priority_fee: Union[int, str, None] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = (api_url or settings.jup_api_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.jup_api_key
        self._proxy_url = proxy_url if proxy_url is not None else settings.proxy_url
        self._slippage_bps = slippage_bps if slippage_bps is not None else settings.slippage_bps
        self._priority_fee = priority_fee if priority_fee is not None else settings.priority_fee
        self._timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"timeout": self._timeout_s, "headers": self._headers()}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        elif self._proxy_url:
            kwargs["proxy"] = self._proxy_url
        return httpx.AsyncClient(**kwargs)

    async def get_swap_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: Optional[int] = None,
        only_direct_routes: bool = False,
        as_legacy_transaction: bool = False,
    ) -> JupiterQuote:
        """
        Get an exact-in swap quote from Jupiter.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest units
            slippage_bps: Slippage tolerance in basis points (50 = 0.5%)
            only_direct_routes: Only use direct routes (no multi-hop)
            as_legacy_transaction: Use legacy transaction format

        Returns:
            JupiterQuote with amounts and price impact
        """
        slippage = slippage_bps if slippage_bps is not None else self._slippage_bps
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage),
            "onlyDirectRoutes": str(only_direct_routes).lower(),
            "asLegacyTransaction": str(as_legacy_transaction).lower(),
        }

        try:
            async with self._client() as client:
                response = await client.get(f"{self._api_url}/quote", params=params)
                response.raise_for_status()
                data = response.json()

            if "error" in data:
                raise QuoteError(f"Quote failed: {data['error']}")

            return JupiterQuote(
                input_mint=data.get("inputMint", input_mint),
                output_mint=data.get("outputMint", output_mint),
                in_amount=int(data.get("inAmount", amount)),
                out_amount=int(data["outAmount"]),
                other_amount_threshold=int(data.get("otherAmountThreshold", data["outAmount"])),
                swap_mode=data.get("swapMode", "ExactIn"),
                slippage_bps=int(data.get("slippageBps", slippage)),
                price_impact_pct=float(data.get("priceImpactPct") or 0),
                quote_response=data,
            )

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise RateLimitError("Quote rate limited (429)")
            raise QuoteError(f"Quote failed: {status} - {e.response.text}", status_code=status)
        except (QuoteError, RateLimitError):
            raise
        except Exception as e:
            raise QuoteError(f"Quote failed: {e}")

    async def build_swap_transaction(
        self,
        quote: JupiterQuote,
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
        dynamic_compute_unit_limit: bool = True,
    ) -> JupiterSwapResult:
        """
        Build a swap transaction from a quote.

        Args:
            quote: The quote to build a transaction for
            user_public_key: Signer's Solana wallet public key
            wrap_and_unwrap_sol: Automatically wrap/unwrap SOL
            dynamic_compute_unit_limit: Let Jupiter size the compute budget

        Returns:
            JupiterSwapResult with base64 encoded transaction
        """
        if not quote.quote_response:
            raise TransactionBuildError("Quote response required for swap transaction")

        if not quote.is_valid:
            raise TransactionBuildError("Quote has expired, please get a new quote")

        payload = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": dynamic_compute_unit_limit,
            "prioritizationFeeLamports": self._priority_fee,
        }

        try:
            async with self._client() as client:
                response = await client.post(f"{self._api_url}/swap", json=payload)
                response.raise_for_status()
                data = response.json()

            if "error" in data:
                raise TransactionBuildError(f"Swap transaction failed: {data['error']}")

            if not data.get("swapTransaction"):
                raise TransactionBuildError("Swap transaction failed: empty swapTransaction")

            return JupiterSwapResult(
                swap_transaction=data["swapTransaction"],
                last_valid_block_height=data.get("lastValidBlockHeight", 0),
                priority_fee_lamports=data.get("prioritizationFeeLamports", 0),
                compute_unit_limit=data.get("computeUnitLimit", 200_000),
            )

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise RateLimitError("Swap build rate limited (429)")
            raise TransactionBuildError(
                f"Swap transaction failed: {status} - {e.response.text}",
                status_code=status,
            )
        except (TransactionBuildError, RateLimitError):
            raise
        except Exception as e:
            raise TransactionBuildError(f"Swap transaction failed: {e}")

    async def get_sol_price_usdc(self) -> Optional[float]:
        """
        Price of 1 SOL in USDC via a quote.

        Used to express gas in dollars; returns None when unavailable.
        """
        try:
            quote = await self.get_swap_quote(NATIVE_SOL_MINT, TOKENS["USDC"], LAMPORTS_PER_SOL)
        except (QuoteError, RateLimitError) as e:
            logger.debug(f"SOL price lookup failed: {e}")
            return None
        return quote.out_amount / 10 ** token_decimals("USDC")


# Singleton instance
_jupiter_swap_provider: Optional[JupiterSwapProvider] = None


def get_jupiter_swap_provider() -> JupiterSwapProvider:
    """Get the singleton Jupiter swap provider."""
    global _jupiter_swap_provider
    if _jupiter_swap_provider is None:
        _jupiter_swap_provider = JupiterSwapProvider()
    return _jupiter_swap_provider


__all__ = [
    "JupiterSwapProvider",
    "JupiterQuote",
    "JupiterSwapResult",
    "get_jupiter_swap_provider",
]
