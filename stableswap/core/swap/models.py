"""Typed models used by the swap subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .constants import lamports_to_sol


class SwapDirection(str, Enum):
    """Which way a swap moves funds between the two stablecoins."""

    USDC_TO_USDT = "USDC_TO_USDT"
    USDT_TO_USDC = "USDT_TO_USDC"

    @property
    def input_token(self) -> str:
        return "USDC" if self is SwapDirection.USDC_TO_USDT else "USDT"

    @property
    def output_token(self) -> str:
        return "USDT" if self is SwapDirection.USDC_TO_USDT else "USDC"

    @classmethod
    def for_slot(cls, slot_index: int) -> "SwapDirection":
        """Even slots swap USDC→USDT, odd slots swap back."""
        return cls.USDC_TO_USDT if slot_index % 2 == 0 else cls.USDT_TO_USDC

    @classmethod
    def parse(cls, value: str) -> "SwapDirection":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown direction {value!r}; expected one of {[d.value for d in cls]}"
            ) from None


class AttemptOutcome(str, Enum):
    """Outcome of a single swap attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    # Submitted, but the confirmation query errored; counted as a success
    UNCONFIRMED = "unconfirmed"


class SlotState(str, Enum):
    """Lifecycle of one target swap slot."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    ATTEMPT_FAILED = "attempt_failed"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (SlotState.SUCCESS, SlotState.EXHAUSTED)


@dataclass(frozen=True)
class SwapAttemptResult:
    """Outcome of one executor invocation; never mutated after creation."""

    direction: SwapDirection
    outcome: AttemptOutcome
    input_amount: int
    output_amount: Optional[int] = None  # quoted estimate, base units
    signature: Optional[str] = None
    duration_ms: float = 0.0
    gas_lamports: Optional[int] = None  # None when the balance delta could not be measured
    error: Optional[str] = None
    error_category: Optional[str] = None
    slot_index: int = 0
    attempt: int = 1
    price_impact_pct: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.outcome is not AttemptOutcome.FAILED

    @property
    def input_token(self) -> str:
        return self.direction.input_token

    @property
    def output_token(self) -> str:
        return self.direction.output_token

    @classmethod
    def failed(
        cls,
        direction: SwapDirection,
        input_amount: int,
        error: str,
        *,
        error_category: Optional[str] = None,
        duration_ms: float = 0.0,
        slot_index: int = 0,
        attempt: int = 1,
    ) -> "SwapAttemptResult":
        return cls(
            direction=direction,
            outcome=AttemptOutcome.FAILED,
            input_amount=input_amount,
            duration_ms=duration_ms,
            error=error,
            error_category=error_category,
            slot_index=slot_index,
            attempt=attempt,
        )


@dataclass
class RetryState:
    """Attempt bookkeeping for the slot currently being resolved."""

    slot_index: int
    direction: SwapDirection
    max_retries: int
    attempts: int = 0
    last_error: Optional[str] = None
    state: SlotState = SlotState.PENDING

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def is_retry(self) -> bool:
        """True when the next attempt would be a retry rather than the first try."""
        return self.attempts > 0

    def begin_attempt(self) -> int:
        if self.state.is_terminal:
            raise RuntimeError(f"Slot {self.slot_index} already resolved ({self.state.value})")
        if self.exhausted:
            raise RuntimeError(f"Slot {self.slot_index} has no attempts left")
        self.attempts += 1
        self.state = SlotState.ATTEMPTING
        return self.attempts

    def record_success(self) -> None:
        self.state = SlotState.SUCCESS

    def record_failure(self, error: str) -> None:
        self.last_error = error
        self.state = SlotState.EXHAUSTED if self.exhausted else SlotState.ATTEMPT_FAILED


@dataclass(frozen=True)
class BatchRunSummary:
    """Aggregate totals for one batch run."""

    target_count: int
    successful: int
    failed: int  # slots exhausted without a success
    total_attempts: int
    unconfirmed: int = 0
    total_gas_lamports: int = 0
    cancelled: bool = False
    results: Tuple[SwapAttemptResult, ...] = field(default_factory=tuple)

    @property
    def slots_resolved(self) -> int:
        return self.successful + self.failed

    @property
    def total_gas_sol(self) -> Decimal:
        return lamports_to_sol(self.total_gas_lamports)

    @property
    def average_gas_sol(self) -> Optional[Decimal]:
        if self.successful == 0:
            return None
        return self.total_gas_sol / self.successful

    @property
    def directions(self) -> Tuple[SwapDirection, ...]:
        """Direction of each resolved slot, in slot order."""
        seen: Dict[int, SwapDirection] = {}
        for result in self.results:
            seen.setdefault(result.slot_index, result.direction)
        return tuple(seen[index] for index in sorted(seen))


def summarize(
    results: Iterable[SwapAttemptResult],
    target_count: int,
    *,
    cancelled: bool = False,
) -> BatchRunSummary:
    """
    Aggregate a result log into a summary.

    Pure function of its inputs: summarizing the same log twice yields the
    same totals. Gas is summed over successful attempts with a measurement.
    """
    log = tuple(results)

    successful = 0
    unconfirmed = 0
    total_gas = 0
    slot_succeeded: Dict[int, bool] = {}

    for result in log:
        slot_succeeded[result.slot_index] = slot_succeeded.get(result.slot_index, False) or result.success
        if not result.success:
            continue
        successful += 1
        if result.outcome is AttemptOutcome.UNCONFIRMED:
            unconfirmed += 1
        if result.gas_lamports is not None:
            total_gas += result.gas_lamports

    failed = sum(1 for ok in slot_succeeded.values() if not ok)

    return BatchRunSummary(
        target_count=target_count,
        successful=successful,
        failed=failed,
        total_attempts=len(log),
        unconfirmed=unconfirmed,
        total_gas_lamports=total_gas,
        cancelled=cancelled,
        results=log,
    )
