from staking_cart.cart.constants import (
    ErrorKind,
    StepType,
    TransactionStatus,
    TransactionType,
)
from staking_cart.cart.models import (
    CartMetadata,
    CartTransaction,
    CartTransactionDraft,
    RawTransaction,
    TransactionDependency,
)
from staking_cart.cart.runner import ExecutionReport, ExecutionRunner
from staking_cart.cart.storage import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    SqliteStorage,
)
from staking_cart.cart.store import TransactionCartStore
from staking_cart.cart.tracker import ExecutionTracker

__all__ = [
    "CartMetadata",
    "CartTransaction",
    "CartTransactionDraft",
    "ErrorKind",
    "ExecutionReport",
    "ExecutionRunner",
    "ExecutionTracker",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "RawTransaction",
    "SqliteStorage",
    "StepType",
    "TransactionCartStore",
    "TransactionDependency",
    "TransactionStatus",
    "TransactionType",
]
