"""
Solana Transaction Executor.

Handles sending and confirming Solana transactions built by Jupiter.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class SolanaTransactionStatus(str, Enum):
    """Status of a Solana transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass
class SolanaTransactionResult:
    """Result of a Solana transaction submission or status lookup."""
    signature: str
    status: SolanaTransactionStatus
    slot: Optional[int] = None
    error: Optional[str] = None

    @property
    def landed(self) -> bool:
        return self.status in (SolanaTransactionStatus.CONFIRMED, SolanaTransactionStatus.FINALIZED)


@dataclass
class SolanaRpcConfig:
    """Configuration for Solana RPC connection."""
    rpc_url: str
    commitment: str = "confirmed"
    max_retries: int = 3
    timeout_s: float = 30.0
    proxy_url: Optional[str] = None


class SolanaExecutorError(Exception):
    """Error in Solana transaction execution."""
    pass


class SolanaConfirmationTimeout(SolanaExecutorError):
    """The transaction did not reach the requested commitment in time."""
    pass


_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaExecutor:
    """
    Executor for Solana transactions.

    Handles:
    - Sending signed transactions to the network
    - Polling signature status until the configured commitment
    - SOL balance lookups (used for fee measurement)

    Usage:
        executor = SolanaExecutor(SolanaRpcConfig(
            rpc_url="https://api.mainnet-beta.solana.com"
        ))

        signature = await executor.send_transaction(signed_tx_base64, skip_preflight=True)
        result = await executor.confirm_transaction(signature)
    """

    def __init__(
        self,
        config: SolanaRpcConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            kwargs: Dict[str, Any] = {"timeout": self._config.timeout_s}
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif self._config.proxy_url:
                kwargs["proxy"] = self._config.proxy_url
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _rpc_call(
        self,
        method: str,
        params: List[Any],
    ) -> Dict[str, Any]:
        """Make an RPC call to Solana node."""
        client = await self._get_client()

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        for attempt in range(self._config.max_retries):
            try:
                response = await client.post(
                    self._config.rpc_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                data = response.json()

                if "error" in data:
                    error = data["error"]
                    error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    raise SolanaExecutorError(f"RPC error: {error_msg}")

                return data

            except httpx.HTTPStatusError as e:
                if attempt == self._config.max_retries - 1:
                    raise SolanaExecutorError(f"HTTP error: {e.response.status_code}")
                await asyncio.sleep(0.5 * (attempt + 1))
            except SolanaExecutorError:
                raise
            except Exception as e:
                if attempt == self._config.max_retries - 1:
                    raise SolanaExecutorError(str(e) or type(e).__name__)
                await asyncio.sleep(0.5 * (attempt + 1))

        raise SolanaExecutorError("Max retries exceeded")

    async def send_transaction(
        self,
        signed_transaction: str,
        skip_preflight: bool = False,
        max_retries: Optional[int] = None,
    ) -> str:
        """
        Send a signed transaction to the Solana network.

        Args:
            signed_transaction: Base64 encoded signed transaction
            skip_preflight: Skip preflight simulation
            max_retries: Node-side rebroadcast attempts

        Returns:
            Transaction signature (base58)
        """
        options = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": self._config.commitment,
            "maxRetries": max_retries if max_retries is not None else self._config.max_retries,
        }

        result = await self._rpc_call(
            "sendTransaction",
            [signed_transaction, options],
        )

        signature = result.get("result")
        if not signature:
            raise SolanaExecutorError("No signature returned from sendTransaction")

        return signature

    async def get_signature_status(
        self,
        signature: str,
    ) -> SolanaTransactionResult:
        """
        Get the current status of a transaction.

        Args:
            signature: Transaction signature (base58)

        Returns:
            SolanaTransactionResult with current status
        """
        result = await self._rpc_call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )

        statuses = (result.get("result") or {}).get("value") or [None]
        status = statuses[0]

        if status is None:
            # Not seen by the node yet
            return SolanaTransactionResult(
                signature=signature,
                status=SolanaTransactionStatus.PENDING,
            )

        if status.get("err") is not None:
            return SolanaTransactionResult(
                signature=signature,
                status=SolanaTransactionStatus.FAILED,
                slot=status.get("slot"),
                error=str(status.get("err")),
            )

        level = status.get("confirmationStatus") or "processed"
        if level == "finalized":
            tx_status = SolanaTransactionStatus.FINALIZED
        elif _COMMITMENT_RANK.get(level, 0) >= _COMMITMENT_RANK.get(self._config.commitment, 1):
            tx_status = SolanaTransactionStatus.CONFIRMED
        else:
            tx_status = SolanaTransactionStatus.PENDING

        return SolanaTransactionResult(
            signature=signature,
            status=tx_status,
            slot=status.get("slot"),
        )

    async def confirm_transaction(
        self,
        signature: str,
        timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
    ) -> SolanaTransactionResult:
        """
        Wait for a transaction to reach the configured commitment.

        Uses exponential backoff for polling. Returns a CONFIRMED/FINALIZED
        result, or a FAILED result when the transaction executed with an
        error. Raises SolanaExecutorError when the status query fails and
        SolanaConfirmationTimeout when the deadline passes; in both cases the
        transaction's fate is unknown.
        """
        start_time = time.monotonic()
        interval = poll_interval_s

        while True:
            result = await self.get_signature_status(signature)

            if result.status is not SolanaTransactionStatus.PENDING:
                return result

            if (time.monotonic() - start_time) >= timeout_s:
                raise SolanaConfirmationTimeout(
                    f"Transaction {signature} not confirmed after {timeout_s:.0f}s"
                )

            await asyncio.sleep(interval)
            # Exponential backoff, max 5 seconds
            interval = min(interval * 1.5, 5.0)

    async def get_balance(self, address: str) -> int:
        """
        Get SOL balance for an address.

        Args:
            address: Wallet address (base58)

        Returns:
            Balance in lamports
        """
        result = await self._rpc_call(
            "getBalance",
            [address, {"commitment": self._config.commitment}],
        )
        return int((result.get("result") or {}).get("value", 0))


# Singleton instance
_solana_executor: Optional[SolanaExecutor] = None


def get_solana_executor(rpc_url: Optional[str] = None) -> SolanaExecutor:
    """
    Get the singleton Solana executor.

    RPC URL resolution order:
    1. Explicit rpc_url parameter
    2. RPC_URL / SOLANA_RPC_URL setting
    """
    global _solana_executor

    if _solana_executor is None:
        from ...config import settings

        _solana_executor = SolanaExecutor(
            SolanaRpcConfig(
                rpc_url=rpc_url or settings.rpc_url,
                timeout_s=settings.request_timeout_seconds,
                proxy_url=settings.proxy_url or None,
            )
        )

    return _solana_executor


__all__ = [
    "SolanaExecutor",
    "SolanaRpcConfig",
    "SolanaTransactionResult",
    "SolanaTransactionStatus",
    "SolanaExecutorError",
    "SolanaConfirmationTimeout",
    "get_solana_executor",
]
