"""
Swap subsystem: direction/result models, the single swap executor
(``stableswap.core.swap.executor``) and the batch engine
(``stableswap.core.swap.batch``).
"""

from .models import (
    AttemptOutcome,
    BatchRunSummary,
    RetryState,
    SlotState,
    SwapAttemptResult,
    SwapDirection,
    summarize,
)

__all__ = [
    "AttemptOutcome",
    "BatchRunSummary",
    "RetryState",
    "SlotState",
    "SwapAttemptResult",
    "SwapDirection",
    "summarize",
]
