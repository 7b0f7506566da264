"""
Batch Swap Engine

Drives the single swap executor until a target number of successful swaps
is reached, alternating direction per slot, retrying failed attempts within
a slot, and pacing every call to stay under the Jupiter API rate limit.

Per-slot lifecycle:
    PENDING -> (ATTEMPTING -> SUCCESS | ATTEMPT_FAILED)* -> SUCCESS | EXHAUSTED

The slot index (direction) advances exactly once per resolved slot; the
attempt counter is separate and only feeds bookkeeping.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from ...config import settings
from ..recovery.errors import ConfigurationError, UnrecoverableError, classify_error
from .executor import SwapExecutor
from .models import (
    BatchRunSummary,
    RetryState,
    SlotState,
    SwapAttemptResult,
    SwapDirection,
    summarize,
)

logger = logging.getLogger(__name__)
_slog = structlog.stdlib.get_logger("swap.batch")

SleepFn = Callable[[float], Awaitable[Any]]


class BatchSwapEngine:
    """
    Runs alternating USDC/USDT swaps until a success target is met.

    Strictly sequential: attempt N+1 never starts before attempt N's outcome
    is known, so the shared signer and RPC connection need no locking.

    Usage:
        engine = BatchSwapEngine(build_swap_executor())
        summary = await engine.run_batch(200, inter_attempt_delay=3.0)
    """

    def __init__(
        self,
        executor: SwapExecutor,
        *,
        max_retries: Optional[int] = None,
        sleep: SleepFn = asyncio.sleep,
        price_provider: Optional[Any] = None,
    ):
        """
        Args:
            executor: Single swap executor
            max_retries: Additional attempts per slot after the first failure
            sleep: Awaitable used for pacing/retry delays
            price_provider: Optional object with ``get_sol_price_usdc()`` used
                to express gas in USDC in the final report
        """
        self._executor = executor
        self._max_retries = settings.max_retries if max_retries is None else max_retries
        self._sleep = sleep
        self._price_provider = price_provider

        if self._max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def run_batch(
        self,
        target_success_count: int,
        inter_attempt_delay: Optional[float] = None,
        *,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BatchRunSummary:
        """
        Run swaps until ``target_success_count`` have succeeded.

        Args:
            target_success_count: Number of successful swaps to reach (>= 1)
            inter_attempt_delay: Seconds to wait between attempts and slots
                (default: SWAP_DELAY_MS)
            stop_event: Checked between slots only; when set the run stops
                before the next slot starts

        Returns:
            BatchRunSummary aggregated from every attempt

        Raises:
            ConfigurationError: invalid target or delay (before any attempt)
            UnrecoverableError: propagated from the executor, aborting the run
        """
        delay = settings.swap_delay_seconds if inter_attempt_delay is None else inter_attempt_delay
        self._validate(target_success_count, delay)

        run_id = uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(batch_run_id=run_id)
        started = time.perf_counter()

        _slog.info(
            "batch_started",
            target=target_success_count,
            delay_s=delay,
            max_retries=self._max_retries,
            confirmation_policy=self._executor.confirmation_policy,
        )

        results: List[SwapAttemptResult] = []
        success_count = 0
        slot_index = 0
        cancelled = False

        try:
            while success_count < target_success_count:
                if stop_event is not None and stop_event.is_set():
                    logger.warning(f"Stop requested; ending batch at {success_count}/{target_success_count}")
                    cancelled = True
                    break

                state = RetryState(
                    slot_index=slot_index,
                    direction=SwapDirection.for_slot(slot_index),
                    max_retries=self._max_retries,
                )
                await self._run_slot(state, delay, results, success_count, target_success_count)

                if state.state is SlotState.SUCCESS:
                    success_count += 1
                else:
                    _slog.warning(
                        "slot_exhausted",
                        slot=slot_index,
                        direction=state.direction.value,
                        attempts=state.attempts,
                        error=state.last_error,
                    )
                slot_index += 1

                if success_count < target_success_count:
                    logger.info(f"Waiting {delay:.2f}s before next swap...")
                    await self._sleep(delay)
        finally:
            structlog.contextvars.unbind_contextvars("batch_run_id")

        summary = summarize(results, target_success_count, cancelled=cancelled)

        _slog.info(
            "batch_completed",
            run_id=run_id,
            duration_s=round(time.perf_counter() - started, 3),
        )
        await self._report(summary)
        return summary

    async def _run_slot(
        self,
        state: RetryState,
        delay: float,
        results: List[SwapAttemptResult],
        success_count: int,
        target: int,
    ) -> None:
        """Attempt one slot until it succeeds or its retry budget is spent."""
        direction = state.direction

        while not state.exhausted:
            if state.is_retry:
                logger.info(f"Retry {state.attempts}/{self._max_retries}...")
                await self._sleep(delay)

            attempt = state.begin_attempt()
            _slog.info(
                "swap_attempt_started",
                progress=f"{success_count}/{target}",
                attempt_no=len(results) + 1,
                slot=state.slot_index,
                attempt=attempt,
                direction=direction.value,
            )

            started = time.perf_counter()
            try:
                result = await self._executor.execute_swap(
                    direction,
                    slot_index=state.slot_index,
                    attempt=attempt,
                )
            except UnrecoverableError:
                raise
            except Exception as e:
                error_ctx = classify_error(e)
                error = str(e) or type(e).__name__
                results.append(SwapAttemptResult.failed(
                    direction,
                    self._executor.input_amount_for(direction),
                    error,
                    error_category=error_ctx.category.value,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    slot_index=state.slot_index,
                    attempt=attempt,
                ))
                state.record_failure(error)
                _slog.warning(
                    "swap_attempt_failed",
                    slot=state.slot_index,
                    attempt=attempt,
                    category=error_ctx.category.value,
                    error=error,
                    signature=error_ctx.signature,
                    suggested_action=error_ctx.suggested_action,
                    **error_ctx.details,
                )
                continue

            results.append(result)
            state.record_success()
            return

    def _validate(self, target_success_count: int, delay: float) -> None:
        if isinstance(target_success_count, bool) or not isinstance(target_success_count, int):
            raise ConfigurationError(f"Target swap count must be an integer, got {target_success_count!r}")
        if target_success_count < 1:
            raise ConfigurationError(f"Target swap count must be positive, got {target_success_count}")
        if delay < 0:
            raise ConfigurationError(f"Delay between swaps must not be negative, got {delay}")

    async def _report(self, summary: BatchRunSummary) -> None:
        """Log the human readable batch summary."""
        logger.info("=" * 50)
        logger.info("BATCH SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Target swaps: {summary.target_count}")
        logger.info(f"Successful: {summary.successful}")
        if summary.unconfirmed:
            logger.info(f"  of which unconfirmed: {summary.unconfirmed}")
        logger.info(f"Failed (after retries): {summary.failed}")
        logger.info(f"Total attempts: {summary.total_attempts}")
        if summary.cancelled:
            logger.info("Batch stopped early on request")

        sol_price = None
        if self._price_provider is not None:
            sol_price = await self._price_provider.get_sol_price_usdc()

        gas_line = f"Total gas used: {summary.total_gas_sol:.6f} SOL"
        if sol_price:
            gas_line += f" (~${float(summary.total_gas_sol) * sol_price:.4f})"
        logger.info(gas_line)

        average = summary.average_gas_sol
        if average is not None:
            avg_line = f"Avg gas per swap: {average:.6f} SOL"
            if sol_price:
                avg_line += f" (~${float(average) * sol_price:.4f})"
            logger.info(avg_line)
