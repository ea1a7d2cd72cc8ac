from __future__ import annotations

import secrets
import string
import time
from typing import Any

from loguru import logger

from staking_cart.cart import codec
from staking_cart.cart.constants import (
    CURRENT_EXECUTING_KEY,
    STORAGE_KEY,
    ErrorKind,
    TransactionStatus,
    TransactionType,
)
from staking_cart.cart.dependencies import (
    dependents_of,
    missing_dependencies,
    resolve_dependencies,
)
from staking_cart.cart.errors import (
    CartInvariantError,
    DuplicateTransactionError,
    HasDependentsError,
    MissingDependencyError,
    TransactionNotFoundError,
)
from staking_cart.cart.models import CartTransaction, CartTransactionDraft, RawTransaction
from staking_cart.cart.storage import KeyValueStorage

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _new_id(tx_type: TransactionType) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{tx_type}-{int(time.time() * 1000)}-{suffix}"


class TransactionCartStore:
    """Ordered cart of pending transactions, persisted on every change.

    On construction the cart is rehydrated from ``storage``. Entries left
    ``executing`` without any hash are demoted to ``pending``: the signing
    request that would have produced the hash cannot be recovered after a
    restart, so the transaction has to be submitted again.

    Every mutation re-reads ``storage`` before applying the change, so several
    stores (or CLI processes) sharing one storage do not overwrite each
    other's entries. The entry this instance is itself submitting is exempt
    from the demotion while it waits for the wallet.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        storage_key: str = STORAGE_KEY,
        executing_key: str = CURRENT_EXECUTING_KEY,
    ) -> None:
        self._storage = storage
        self._storage_key = storage_key
        self._executing_key = executing_key
        # Entry this instance moved to executing and has not finalized yet.
        self._submitting_id: str | None = None
        self._transactions: list[CartTransaction] = self._load_transactions()
        self._current_executing_id: str | None = self._load_current_executing_id()

    # -- loading / persistence -------------------------------------------------

    def _load_transactions(self) -> list[CartTransaction]:
        raw = self._storage.get_item(self._storage_key)
        if not raw:
            return []
        try:
            stored = codec.decode_transactions(raw)
        except Exception as exc:
            logger.warning(f"Discarding unreadable cart state: {exc}")
            return []

        loaded = []
        for tx in stored:
            if (
                tx.status == TransactionStatus.EXECUTING
                and not tx.has_hash
                and tx.id != self._submitting_id
            ):
                logger.info(f"Resetting {tx.id} to pending; no hash was recorded")
                tx = tx.model_copy(update={"status": TransactionStatus.PENDING})
            loaded.append(tx)
        return loaded

    def _read_current_executing_id(self) -> str | None:
        raw = self._storage.get_item(self._executing_key)
        if not raw:
            return None
        try:
            stored = codec.loads(raw)
        except ValueError:
            stored = raw
        return stored if isinstance(stored, str) and stored else None

    def _load_current_executing_id(self) -> str | None:
        stored = self._read_current_executing_id()
        if stored is None:
            if self._storage.get_item(self._executing_key):
                self._storage.remove_item(self._executing_key)
            return None

        tx = self._find(stored)
        if tx is not None and tx.status == TransactionStatus.PENDING and not tx.tx_hash:
            self._storage.remove_item(self._executing_key)
            return None
        return stored

    def _persist(self) -> None:
        self._storage.set_item(
            self._storage_key, codec.encode_transactions(self._transactions)
        )
        if self._current_executing_id:
            self._storage.set_item(
                self._executing_key, codec.dumps(self._current_executing_id)
            )
        else:
            self._storage.remove_item(self._executing_key)
        logger.debug(f"Persisted cart ({len(self._transactions)} transactions)")

    def reload(self) -> None:
        """Re-read the cart so changes made through other stores are seen."""
        self._transactions = self._load_transactions()
        self._current_executing_id = self._read_current_executing_id()

    # -- queries ---------------------------------------------------------------

    @property
    def transactions(self) -> list[CartTransaction]:
        return list(self._transactions)

    @property
    def current_executing_id(self) -> str | None:
        return self._current_executing_id

    def __len__(self) -> int:
        return len(self._transactions)

    def _find(self, tx_id: str) -> CartTransaction | None:
        return next((tx for tx in self._transactions if tx.id == tx_id), None)

    def get(self, tx_id: str) -> CartTransaction | None:
        return self._find(tx_id)

    def get_by_transaction(self, raw: RawTransaction) -> CartTransaction | None:
        signature = raw.signature()
        return next(
            (tx for tx in self._transactions if tx.transaction.signature() == signature),
            None,
        )

    def contains(self, raw: RawTransaction) -> bool:
        return self.get_by_transaction(raw) is not None

    def by_status(self, status: TransactionStatus) -> list[CartTransaction]:
        return [tx for tx in self._transactions if tx.status == status]

    # -- queue edits -----------------------------------------------------------

    def add(
        self,
        draft: CartTransactionDraft | dict[str, Any],
        *,
        prevent_duplicate: bool = False,
    ) -> CartTransaction:
        if isinstance(draft, dict):
            draft = CartTransactionDraft.model_validate(draft)
        self.reload()

        if prevent_duplicate:
            existing = self.get_by_transaction(draft.transaction)
            if existing is not None:
                logger.warning(f'"{draft.label}" already exists in batch')
                raise DuplicateTransactionError(draft.label, existing.id)

        missing = missing_dependencies(draft, self._transactions)
        if missing:
            raise MissingDependencyError(draft.label, missing)

        tx = CartTransaction(
            **draft.model_dump(),
            id=_new_id(draft.type),
            status=TransactionStatus.PENDING,
        )
        self._transactions.append(tx)
        self._persist()
        logger.info(f'Added "{tx.label}" to batch as {tx.id}')
        return tx

    def _drop(self, tx_ids: set[str]) -> int:
        before = len(self._transactions)
        self._transactions = [tx for tx in self._transactions if tx.id not in tx_ids]
        if self._current_executing_id in tx_ids:
            self._current_executing_id = None
        if self._submitting_id in tx_ids:
            self._submitting_id = None
        self._persist()
        return before - len(self._transactions)

    def remove(self, tx_id: str) -> bool:
        self.reload()
        dependents = dependents_of(tx_id, self._transactions)
        if dependents:
            raise HasDependentsError(tx_id, dependents)
        if self._find(tx_id) is None:
            return False
        self._drop({tx_id})
        logger.info(f"Removed {tx_id} from batch")
        return True

    def clear(self) -> None:
        self._transactions = []
        self._current_executing_id = None
        self._submitting_id = None
        self._persist()

    def clear_completed(self) -> int:
        """Drop completed entries that nothing unfinished still waits on.

        A completed step stays queued while a pending or failed entry depends
        on it, otherwise that entry could never satisfy its dependency again.
        """
        self.reload()
        unfinished = [
            tx for tx in self._transactions if tx.status != TransactionStatus.COMPLETED
        ]
        still_needed = {
            dep.id
            for tx in unfinished
            for dep in resolve_dependencies(tx, self._transactions)
        }
        completed = {
            tx.id
            for tx in self._transactions
            if tx.status == TransactionStatus.COMPLETED
        }
        if completed & still_needed:
            logger.info(
                f"Keeping {len(completed & still_needed)} completed transaction(s) "
                "that queued transactions depend on"
            )
        return self._drop(completed - still_needed)

    def clear_by_type(self, tx_type: TransactionType) -> int:
        """Drop every entry of ``tx_type``.

        Refuses, leaving the cart unchanged, when an entry of another type
        depends on one of them.
        """
        self.reload()
        doomed = {tx.id for tx in self._transactions if tx.type == tx_type}
        for tx_id in doomed:
            blocking = [
                dep_id
                for dep_id in dependents_of(tx_id, self._transactions)
                if dep_id not in doomed
            ]
            if blocking:
                raise HasDependentsError(tx_id, blocking)
        return self._drop(doomed)

    def _index_of(self, tx_id: str) -> int:
        return next(
            (i for i, tx in enumerate(self._transactions) if tx.id == tx_id), -1
        )

    def move_up(self, tx_id: str) -> bool:
        self.reload()
        index = self._index_of(tx_id)
        if index <= 0:
            return False
        txs = self._transactions
        txs[index - 1], txs[index] = txs[index], txs[index - 1]
        self._persist()
        return True

    def move_down(self, tx_id: str) -> bool:
        self.reload()
        index = self._index_of(tx_id)
        if index == -1 or index >= len(self._transactions) - 1:
            return False
        txs = self._transactions
        txs[index], txs[index + 1] = txs[index + 1], txs[index]
        self._persist()
        return True

    # -- status ----------------------------------------------------------------

    def _update(self, tx_id: str, **changes: Any) -> CartTransaction:
        for i, tx in enumerate(self._transactions):
            if tx.id == tx_id:
                updated = tx.model_copy(update=changes)
                self._transactions[i] = updated
                if (
                    self._submitting_id == tx_id
                    and updated.status != TransactionStatus.EXECUTING
                ):
                    self._submitting_id = None
                self._persist()
                return updated
        raise TransactionNotFoundError(tx_id)

    def set_current_executing(self, tx_id: str | None) -> None:
        self.reload()
        if tx_id is not None and self._find(tx_id) is None:
            raise TransactionNotFoundError(tx_id)
        self._current_executing_id = tx_id
        self._persist()

    def mark_executing(self, tx_id: str) -> CartTransaction:
        self.reload()
        others = [
            tx.id
            for tx in self.by_status(TransactionStatus.EXECUTING)
            if tx.id != tx_id
        ]
        if others:
            raise CartInvariantError(
                f"Cannot execute {tx_id}: {others[0]} is already executing"
            )
        updated = self._update(
            tx_id, status=TransactionStatus.EXECUTING, error=None, error_kind=None
        )
        self._submitting_id = tx_id
        return updated

    def set_tx_hash(self, tx_id: str, tx_hash: str) -> CartTransaction:
        self.reload()
        return self._update(tx_id, tx_hash=tx_hash)

    def set_safe_tx_hash(self, tx_id: str, safe_tx_hash: str) -> CartTransaction:
        self.reload()
        return self._update(tx_id, safe_tx_hash=safe_tx_hash)

    def mark_completed(self, tx_id: str, tx_hash: str | None = None) -> CartTransaction:
        self.reload()
        tx = self._find(tx_id)
        if tx is None:
            raise TransactionNotFoundError(tx_id)
        final_hash = tx_hash or tx.tx_hash
        if not final_hash:
            raise CartInvariantError(f"Cannot complete {tx_id} without a transaction hash")
        return self._update(
            tx_id,
            status=TransactionStatus.COMPLETED,
            tx_hash=final_hash,
            error=None,
            error_kind=None,
        )

    def mark_failed(
        self, tx_id: str, error: str, kind: ErrorKind = ErrorKind.FAILED
    ) -> CartTransaction:
        self.reload()
        return self._update(
            tx_id, status=TransactionStatus.FAILED, error=error, error_kind=kind
        )

    def reset_to_pending(self, tx_id: str) -> CartTransaction:
        self.reload()
        return self._update(tx_id, status=TransactionStatus.PENDING)

    def retry(self, tx_id: str) -> CartTransaction:
        """Put a failed transaction back in the queue.

        The previous hash is dropped so the runner submits it again instead of
        re-watching the failed one.
        """
        self.reload()
        tx = self._find(tx_id)
        if tx is None:
            raise TransactionNotFoundError(tx_id)
        if tx.status != TransactionStatus.FAILED:
            raise CartInvariantError(f"Only failed transactions can be retried ({tx.status})")
        return self._update(
            tx_id,
            status=TransactionStatus.PENDING,
            tx_hash=None,
            error=None,
            error_kind=None,
        )
