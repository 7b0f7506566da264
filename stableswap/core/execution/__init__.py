from .signer import SignedTransaction, TransactionSigner
from .solana_executor import (
    SolanaConfirmationTimeout,
    SolanaExecutor,
    SolanaExecutorError,
    SolanaRpcConfig,
    SolanaTransactionResult,
    SolanaTransactionStatus,
    get_solana_executor,
)

__all__ = [
    "TransactionSigner",
    "SignedTransaction",
    "SolanaExecutor",
    "SolanaRpcConfig",
    "SolanaTransactionResult",
    "SolanaTransactionStatus",
    "SolanaExecutorError",
    "SolanaConfirmationTimeout",
    "get_solana_executor",
]
