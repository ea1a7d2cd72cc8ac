from __future__ import annotations

from collections.abc import Iterable, Sequence

from staking_cart.cart.constants import STEP_NAMES, StepType, TransactionStatus
from staking_cart.cart.errors import InvalidOrderError
from staking_cart.cart.models import (
    CartTransaction,
    CartTransactionDraft,
    TransactionDependency,
)


def build_dependency(step_type: StepType, group: str) -> TransactionDependency:
    return TransactionDependency(
        step_type=step_type,
        step_name=STEP_NAMES.get(step_type),
        step_group_identifier=group,
    )


def build_conditional_dependencies(
    group: str, conditions: Iterable[tuple[bool, StepType]]
) -> list[TransactionDependency]:
    """Dependencies on the steps whose condition holds, e.g. only when an
    operator update was actually queued for this ATP."""
    return [build_dependency(step, group) for cond, step in conditions if cond]


def _find_step(
    dep: TransactionDependency, transactions: Sequence[CartTransaction]
) -> CartTransaction | None:
    for tx in transactions:
        if tx.metadata and tx.metadata.is_step(dep.step_type, dep.step_group_identifier):
            return tx
    return None


def resolve_dependencies(
    tx: CartTransactionDraft, transactions: Sequence[CartTransaction]
) -> list[CartTransaction]:
    resolved = []
    for dep in tx.dependencies:
        found = _find_step(dep, transactions)
        if found is not None:
            resolved.append(found)
    return resolved


def missing_dependencies(
    tx: CartTransactionDraft, transactions: Sequence[CartTransaction]
) -> list[TransactionDependency]:
    return [dep for dep in tx.dependencies if _find_step(dep, transactions) is None]


def dependencies_completed(
    tx: CartTransactionDraft, transactions: Sequence[CartTransaction]
) -> bool:
    for dep in tx.dependencies:
        found = _find_step(dep, transactions)
        if found is None or found.status != TransactionStatus.COMPLETED:
            return False
    return True


def dependents_of(tx_id: str, transactions: Sequence[CartTransaction]) -> list[str]:
    if not any(tx.id == tx_id for tx in transactions):
        return []
    return [
        tx.id
        for tx in transactions
        if tx.id != tx_id
        and any(dep.id == tx_id for dep in resolve_dependencies(tx, transactions))
    ]


def has_dependents(tx_id: str, transactions: Sequence[CartTransaction]) -> bool:
    return bool(dependents_of(tx_id, transactions))


def validate_order(transactions: Sequence[CartTransaction]) -> None:
    positions = {tx.id: i for i, tx in enumerate(transactions)}
    for i, tx in enumerate(transactions):
        for dep in resolve_dependencies(tx, transactions):
            if positions[dep.id] > i:
                raise InvalidOrderError(tx.label, dep.label)
