"""
Single Swap Executor

Runs one USDC/USDT swap end to end:
quote -> build -> sign -> submit (preflight skipped) -> confirm.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Literal, Optional

from ...config import settings
from ...providers.jupiter import JupiterSwapProvider, get_jupiter_swap_provider
from ..execution.signer import TransactionSigner
from ..execution.solana_executor import (
    SolanaExecutor,
    SolanaExecutorError,
    get_solana_executor,
)
from ..recovery.errors import ConfirmationQueryError, OnChainFailureError, SubmissionError
from .constants import TOKENS, explorer_url, format_amount, lamports_to_sol, to_base_units
from .models import AttemptOutcome, SwapAttemptResult, SwapDirection

ConfirmationPolicy = Literal["optimistic", "pessimistic"]


class SwapExecutor:
    """
    Executes a single swap in a given direction.

    Responsibilities:
    1. Resolve mints and the fixed per-swap amount for the direction
    2. Get a Jupiter quote and a signable transaction
    3. Sign and submit without preflight simulation
    4. Confirm, applying the confirmation policy when the query itself fails
    5. Best-effort fee measurement from the SOL balance delta

    Failures raise a RecoverableError subclass (QuoteError,
    TransactionBuildError, SubmissionError, OnChainFailureError, ...).
    """

    def __init__(
        self,
        swap_provider: JupiterSwapProvider,
        signer: TransactionSigner,
        rpc: SolanaExecutor,
        *,
        swap_amount: Optional[Decimal] = None,
        confirmation_policy: Optional[ConfirmationPolicy] = None,
        confirm_timeout_s: Optional[float] = None,
        measure_gas: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self._swap = swap_provider
        self._signer = signer
        self._rpc = rpc
        self._swap_amount = swap_amount if swap_amount is not None else settings.swap_amount
        self._policy = confirmation_policy or settings.confirmation_policy
        self._confirm_timeout_s = confirm_timeout_s or settings.confirm_timeout_seconds
        self._measure_gas = measure_gas
        self._logger = logger or logging.getLogger(__name__)

    @property
    def signer(self) -> TransactionSigner:
        return self._signer

    @property
    def confirmation_policy(self) -> str:
        return self._policy

    def input_amount_for(self, direction: SwapDirection) -> int:
        """Fixed swap amount in the input token's base units."""
        return to_base_units(self._swap_amount, direction.input_token)

    async def execute_swap(
        self,
        direction: SwapDirection,
        *,
        slot_index: int = 0,
        attempt: int = 1,
    ) -> SwapAttemptResult:
        """
        Execute one swap.

        Args:
            direction: Which stablecoin to sell
            slot_index: Batch slot this attempt belongs to (bookkeeping only)
            attempt: Attempt number within the slot (bookkeeping only)

        Returns:
            SwapAttemptResult with outcome SUCCESS or UNCONFIRMED
        """
        direction = SwapDirection(direction)
        started = time.perf_counter()

        balance_before = await self._balance_snapshot()

        input_token = direction.input_token
        output_token = direction.output_token
        input_amount = self.input_amount_for(direction)

        self._logger.info(f"Getting quote: {format_amount(input_amount, input_token)} -> {output_token}")
        quote = await self._swap.get_swap_quote(
            input_mint=TOKENS[input_token],
            output_mint=TOKENS[output_token],
            amount=input_amount,
        )
        self._logger.info(
            f"Expected output: {format_amount(quote.out_amount, output_token)} "
            f"(price impact {quote.price_impact_pct}%)"
        )

        self._logger.info("Building transaction...")
        swap_tx = await self._swap.build_swap_transaction(quote, self._signer.public_key)
        signed = self._signer.sign_serialized(swap_tx.swap_transaction)

        self._logger.info("Sending transaction...")
        try:
            signature = await self._rpc.send_transaction(
                signed.serialized,
                skip_preflight=True,
                max_retries=3,
            )
        except SolanaExecutorError as e:
            raise SubmissionError(f"Send failed: {e}") from e

        self._logger.info(f"Signature: {signature} ({explorer_url(signature)})")

        outcome = await self._confirm(signature)

        gas_lamports = await self._gas_used(balance_before)
        duration_ms = (time.perf_counter() - started) * 1000

        if gas_lamports is None:
            self._logger.info("Gas used: (unable to calculate)")
        else:
            self._logger.info(f"Gas used: {lamports_to_sol(gas_lamports):.6f} SOL")
        self._logger.info(f"Swap completed in {duration_ms:.0f}ms")

        return SwapAttemptResult(
            direction=direction,
            outcome=outcome,
            input_amount=input_amount,
            output_amount=quote.out_amount,
            signature=signature,
            duration_ms=duration_ms,
            gas_lamports=gas_lamports,
            slot_index=slot_index,
            attempt=attempt,
            price_impact_pct=quote.price_impact_pct,
        )

    async def _confirm(self, signature: str) -> AttemptOutcome:
        """
        Confirm a submitted transaction.

        An on-chain error is a failure. A failing confirmation query leaves
        the transaction's fate unknown: optimistic policy reports it as an
        unconfirmed success, pessimistic policy raises so the slot retries.
        """
        self._logger.info("Confirming transaction...")
        try:
            result = await self._rpc.confirm_transaction(signature, timeout_s=self._confirm_timeout_s)
        except SolanaExecutorError as e:
            if self._policy == "pessimistic":
                raise ConfirmationQueryError(
                    f"Confirmation check failed: {e}",
                    signature=signature,
                ) from e
            self._logger.warning(f"Confirmation check failed (tx may still be successful): {e}")
            return AttemptOutcome.UNCONFIRMED

        if not result.landed:
            raise OnChainFailureError(
                f"Transaction failed: {result.error}",
                signature=signature,
                reason=result.error,
            )
        self._logger.info(f"Confirmed in slot {result.slot} ({result.status.value})")
        return AttemptOutcome.SUCCESS

    async def _balance_snapshot(self) -> Optional[int]:
        if not self._measure_gas:
            return None
        try:
            return await self._rpc.get_balance(self._signer.public_key)
        except SolanaExecutorError as e:
            self._logger.debug(f"Balance fetch failed, gas will not be measured: {e}")
            return None

    async def _gas_used(self, balance_before: Optional[int]) -> Optional[int]:
        if balance_before is None:
            return None
        try:
            balance_after = await self._rpc.get_balance(self._signer.public_key)
        except SolanaExecutorError as e:
            self._logger.debug(f"Balance fetch failed after swap: {e}")
            return None
        gas = balance_before - balance_after
        if gas < 0:
            self._logger.debug(f"Balance rose by {-gas} lamports during swap, gas not measured")
            return None
        return gas


def build_swap_executor(signer: Optional[TransactionSigner] = None) -> SwapExecutor:
    """
    Wire a SwapExecutor from global settings.

    Raises ConfigurationError when the wallet key or API settings are unusable.
    """
    settings.require_trading_ready()
    signer = signer or TransactionSigner.from_base58(settings.solana_private_key)
    return SwapExecutor(
        swap_provider=get_jupiter_swap_provider(),
        signer=signer,
        rpc=get_solana_executor(),
    )
