from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class TransactionStatus(StrEnum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(StrEnum):
    DELEGATION = "delegation"
    SELF_STAKE = "self-stake"
    SETUP = "setup"
    WALLET_DELEGATION = "wallet-delegation"
    WALLET_DIRECT_STAKE = "wallet-direct-stake"


class StepType(IntEnum):
    # Values are persisted; do not reorder.
    OPERATOR_UPDATE = 0
    STAKER_UPGRADE = 1
    TOKEN_APPROVAL = 2
    STAKE_WITH_PROVIDER = 3
    STAKE = 4
    WALLET_TOKEN_APPROVAL = 5
    WALLET_STAKE_WITH_PROVIDER = 6
    WALLET_DIRECT_STAKE = 7


STEP_NAMES: Final[dict[StepType, str]] = {
    StepType.OPERATOR_UPDATE: "Operator Update",
    StepType.STAKER_UPGRADE: "Staker Upgrade",
    StepType.TOKEN_APPROVAL: "Token Approval",
    StepType.STAKE_WITH_PROVIDER: "Delegate",
    StepType.STAKE: "Self Stake",
    StepType.WALLET_TOKEN_APPROVAL: "Approve Tokens",
    StepType.WALLET_STAKE_WITH_PROVIDER: "Delegate",
    StepType.WALLET_DIRECT_STAKE: "Register Sequencer",
}


class ErrorKind(StrEnum):
    USER_REJECTED = "user_rejected"
    REVERTED = "reverted"
    FAILED = "failed"


STORAGE_KEY: Final[str] = "transaction-cart"
CURRENT_EXECUTING_KEY: Final[str] = "transaction-cart-current-executing"
