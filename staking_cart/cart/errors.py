from __future__ import annotations

from staking_cart.cart.constants import ErrorKind
from staking_cart.cart.models import TransactionDependency


class CartError(Exception):
    pass


class TransactionNotFoundError(CartError, KeyError):
    def __init__(self, tx_id: str):
        self.tx_id = tx_id
        super().__init__(f"Transaction not found: {tx_id}")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateTransactionError(CartError):
    def __init__(self, label: str, existing_id: str):
        self.existing_id = existing_id
        super().__init__(f'"{label}" already exists in batch ({existing_id})')


class MissingDependencyError(CartError):
    def __init__(self, label: str, missing: list[TransactionDependency]):
        self.missing = missing
        names = ", ".join(dep.display_name() for dep in missing)
        super().__init__(f"Cannot add transaction {label}: missing dependencies ({names})")


class HasDependentsError(CartError):
    def __init__(self, tx_id: str, dependent_ids: list[str]):
        self.tx_id = tx_id
        self.dependent_ids = dependent_ids
        super().__init__(
            f"Cannot remove {tx_id}: other transactions depend on it ({', '.join(dependent_ids)})"
        )


class InvalidOrderError(CartError):
    def __init__(self, label: str, dependency_label: str):
        super().__init__(
            f'Invalid order: "{label}" depends on "{dependency_label}" which comes after it'
        )


class ExecutionInProgressError(CartError):
    pass


class CartInvariantError(CartError):
    pass


class WalletError(Exception):
    """Failure raised at the wallet boundary, tagged with its kind."""

    kind: ErrorKind = ErrorKind.FAILED

    def __init__(self, message: str, *, kind: ErrorKind | None = None):
        if kind is not None:
            self.kind = kind
        super().__init__(message)


class UserRejectedError(WalletError):
    kind = ErrorKind.USER_REJECTED
