"""
Error Recovery Module

Provides the error taxonomy and classification used by the swap
executor and the batch engine to decide between retry and abort.
"""

from .errors import (
    ConfigurationError,
    ConfirmationQueryError,
    ErrorCategory,
    ErrorContext,
    OnChainFailureError,
    QuoteError,
    RateLimitError,
    RecoverableError,
    SubmissionError,
    TransactionBuildError,
    UnrecoverableError,
    classify_error,
)

__all__ = [
    "RecoverableError",
    "UnrecoverableError",
    "ErrorCategory",
    "ErrorContext",
    "QuoteError",
    "TransactionBuildError",
    "RateLimitError",
    "SubmissionError",
    "OnChainFailureError",
    "ConfirmationQueryError",
    "ConfigurationError",
    "classify_error",
]
