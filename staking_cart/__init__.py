__version__ = "0.1.0"

from staking_cart.cart import (
    CartTransaction,
    CartTransactionDraft,
    ExecutionRunner,
    ExecutionTracker,
    RawTransaction,
    TransactionCartStore,
)

__all__ = [
    "__version__",
    "CartTransaction",
    "CartTransactionDraft",
    "ExecutionRunner",
    "ExecutionTracker",
    "RawTransaction",
    "TransactionCartStore",
]
