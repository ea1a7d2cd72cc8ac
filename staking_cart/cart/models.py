from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from staking_cart.cart.constants import (
    STEP_NAMES,
    ErrorKind,
    StepType,
    TransactionStatus,
    TransactionType,
)


class _CamelModel(BaseModel):
    # Persisted state uses the dashboard's camelCase keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawTransaction(_CamelModel):
    to: str
    data: str = "0x"
    value: int = 0

    @field_validator("value")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    def signature(self) -> str:
        """Structural duplicate key over ``(to, data, value)``.

        Labels and metadata are ignored, so two different intents that encode
        to the same bytes share a signature.
        """
        return f"{self.to.lower()}-{self.data.lower()}-{self.value}"


class TransactionDependency(_CamelModel):
    step_type: StepType
    step_group_identifier: str
    step_name: str | None = None

    def display_name(self) -> str:
        return self.step_name or STEP_NAMES.get(self.step_type, self.step_type.name)


class CartMetadata(_CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    step_type: StepType | None = None
    step_group_identifier: str | None = None
    depends_on: list[TransactionDependency] = Field(default_factory=list)
    amount: int | None = None
    provider_id: int | None = None
    provider_name: str | None = None
    atp_address: str | None = None
    operator_address: str | None = None
    stake_count: int | None = None
    wallet_address: str | None = None
    attester_address: str | None = None

    def is_step(self, step_type: StepType, group: str) -> bool:
        return self.step_type == step_type and self.step_group_identifier == group


class CartTransactionDraft(_CamelModel):
    """A transaction as supplied by a staking flow, before it gets an id."""

    type: TransactionType
    label: str
    description: str | None = None
    transaction: RawTransaction
    metadata: CartMetadata | None = None

    @property
    def dependencies(self) -> list[TransactionDependency]:
        return list(self.metadata.depends_on) if self.metadata else []


class CartTransaction(CartTransactionDraft):
    id: str
    status: TransactionStatus = TransactionStatus.PENDING
    tx_hash: str | None = None
    safe_tx_hash: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v: Any) -> Any:
        # Entries written without a status are treated as pending.
        return TransactionStatus.PENDING if v is None else v

    @property
    def has_hash(self) -> bool:
        return bool(self.tx_hash or self.safe_tx_hash)
