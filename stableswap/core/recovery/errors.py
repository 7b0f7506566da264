"""
Error Classification

Defines error types for the swap recovery loop.
Errors are classified as recoverable (the batch engine retries the slot) or
unrecoverable (the run is aborted before any swap is attempted).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    QUOTE = "quote"               # Quote or transaction build rejected
    SUBMISSION = "submission"     # Broadcast rejected by the network
    ON_CHAIN = "on_chain"         # Confirmed, but execution failed
    CONFIRMATION = "confirmation"  # Confirmation query itself failed
    NETWORK = "network"           # Network/connectivity issues
    RATE_LIMIT = "rate_limit"     # API rate limits
    TIMEOUT = "timeout"           # Operation timed out
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Not enough balance
    CONFIGURATION = "configuration"  # Missing/invalid settings or signing material
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    suggested_action: Optional[str] = None
    signature: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - Quote/route unavailable
    - Broadcast rejections
    - Rate limits
    - Transactions that failed on-chain (a fresh quote may succeed)
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """
    Base class for errors that cannot be retried.

    These errors require operator intervention:
    - Missing or invalid signing key
    - Invalid configuration
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


class QuoteError(RecoverableError):
    """The aggregator rejected the quote request."""

    def __init__(self, message: str = "Quote failed", status_code: Optional[int] = None):
        super().__init__(
            message,
            category=ErrorCategory.QUOTE,
            context=ErrorContext(
                category=ErrorCategory.QUOTE,
                recoverable=True,
                suggested_action="Retry with a fresh quote",
                details={"status_code": status_code} if status_code else {},
            ),
        )
        self.status_code = status_code


class TransactionBuildError(RecoverableError):
    """The aggregator could not build a swap transaction for the quote."""

    def __init__(self, message: str = "Swap transaction failed", status_code: Optional[int] = None):
        super().__init__(
            message,
            category=ErrorCategory.QUOTE,
            context=ErrorContext(
                category=ErrorCategory.QUOTE,
                recoverable=True,
                suggested_action="Retry with a fresh quote",
                details={"status_code": status_code} if status_code else {},
            ),
        )
        self.status_code = status_code


class RateLimitError(RecoverableError):
    """API rate limit exceeded."""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(
            message,
            category=ErrorCategory.RATE_LIMIT,
            context=ErrorContext(
                category=ErrorCategory.RATE_LIMIT,
                recoverable=True,
                suggested_action="Raise SWAP_DELAY_MS to stay under the API rate limit",
            ),
        )


class SubmissionError(RecoverableError):
    """The network refused to accept the signed transaction."""

    def __init__(self, message: str = "Transaction submission failed"):
        super().__init__(
            message,
            category=ErrorCategory.SUBMISSION,
            context=ErrorContext(
                category=ErrorCategory.SUBMISSION,
                recoverable=True,
                suggested_action="Retry with a fresh quote and blockhash",
            ),
        )


class OnChainFailureError(RecoverableError):
    """Transaction landed but reported an execution error."""

    def __init__(
        self,
        message: str = "Transaction failed",
        signature: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.ON_CHAIN,
            context=ErrorContext(
                category=ErrorCategory.ON_CHAIN,
                recoverable=True,
                signature=signature,
                suggested_action="Retry; slippage or stale routes usually clear on a new quote",
                details={"reason": reason} if reason else {},
            ),
        )
        self.signature = signature


class ConfirmationQueryError(RecoverableError):
    """
    The confirmation query errored; the transaction's fate is unknown.

    Only raised when the pessimistic confirmation policy is active. Under the
    default optimistic policy the attempt is reported as unconfirmed success.
    """

    def __init__(self, message: str = "Confirmation check failed", signature: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.CONFIRMATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIRMATION,
                recoverable=True,
                signature=signature,
                suggested_action="Check the signature on an explorer before re-running",
            ),
        )
        self.signature = signature


class ConfigurationError(UnrecoverableError):
    """Settings or signing material are missing or invalid."""

    def __init__(self, message: str = "Invalid configuration", problems: Optional[List[str]] = None):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIGURATION,
                recoverable=False,
                suggested_action="Fix the .env file and restart",
                details={"problems": list(problems or [])},
            ),
        )
        self.problems = list(problems or [message])


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    This function attempts to classify generic exceptions based on
    their message and type.
    """
    # Check if it's already a classified error
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    message = str(error).lower()

    # Rate limit patterns
    rate_limit_patterns = [
        "rate limit",
        "too many requests",
        "429",
        "throttl",
    ]
    if any(p in message for p in rate_limit_patterns):
        return ErrorContext(
            category=ErrorCategory.RATE_LIMIT,
            recoverable=True,
            suggested_action="Wait before retrying",
        )

    # Timeout patterns (checked before network: "connect timeout" is a timeout)
    timeout_patterns = ["timeout", "timed out", "deadline"]
    if any(p in message for p in timeout_patterns):
        return ErrorContext(
            category=ErrorCategory.TIMEOUT,
            recoverable=True,
            suggested_action="Retry with longer timeout",
        )

    # Network patterns
    network_patterns = [
        "connection",
        "network",
        "unreachable",
        "refused",
        "dns",
        "socket",
        "ssl",
    ]
    if any(p in message for p in network_patterns):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            recoverable=True,
            suggested_action="Check network connectivity",
        )

    # Insufficient funds patterns
    funds_patterns = [
        "insufficient",
        "not enough",
        "balance too low",
    ]
    if any(p in message for p in funds_patterns):
        return ErrorContext(
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            recoverable=True,
            suggested_action="Top up USDC/USDT and SOL for fees",
        )

    # Unknown errors default to recoverable (safer to retry)
    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=True,
        suggested_action="Review error details",
    )
