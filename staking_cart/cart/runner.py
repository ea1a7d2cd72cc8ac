from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from staking_cart.cart.constants import ErrorKind, TransactionStatus
from staking_cart.cart.dependencies import dependencies_completed, validate_order
from staking_cart.cart.errors import ExecutionInProgressError, WalletError
from staking_cart.cart.models import CartTransaction
from staking_cart.cart.store import TransactionCartStore
from staking_cart.cart.wallet import WalletClient, classify_error


@dataclass
class ExecutionReport:
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.failed is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "completed": self.completed,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
            "error_kind": self.error_kind,
        }


class ExecutionRunner:
    """Runs pending cart transactions one at a time against a wallet.

    A transaction is only picked once every dependency it declares is
    completed. The first failure stops the run; failed entries stay in the
    cart until retried or removed.
    """

    def __init__(self, store: TransactionCartStore, wallet: WalletClient) -> None:
        self.store = store
        self.wallet = wallet
        self._running = False

    @property
    def is_executing(self) -> bool:
        return self._running

    def _check_idle(self) -> None:
        if self._running:
            raise ExecutionInProgressError("Execution already in progress")
        self.store.reload()
        tracked = [
            tx
            for tx in self.store.by_status(TransactionStatus.EXECUTING)
            if tx.has_hash
        ]
        if tracked:
            raise ExecutionInProgressError(
                f"Please wait for the current transaction to complete ({tracked[0].id})"
            )

    async def execute_all(self) -> ExecutionReport:
        self._check_idle()
        validate_order(self.store.transactions)

        report = ExecutionReport()
        pending_ids = [tx.id for tx in self.store.by_status(TransactionStatus.PENDING)]
        if not pending_ids:
            logger.info("No pending transactions to execute")
            return report

        self._running = True
        try:
            for tx_id in pending_ids:
                self.store.reload()
                tx = self.store.get(tx_id)
                if tx is None or tx.status != TransactionStatus.PENDING:
                    continue
                if not dependencies_completed(tx, self.store.transactions):
                    logger.warning(f'Deferring "{tx.label}": dependencies not completed')
                    report.skipped.append(tx.id)
                    continue
                if not await self._execute_one(tx, report):
                    break
        finally:
            self._running = False
            self.store.set_current_executing(None)

        if report.ok:
            logger.info(f"Executed {len(report.completed)} transaction(s)")
        return report

    async def _execute_one(self, tx: CartTransaction, report: ExecutionReport) -> bool:
        self.store.set_current_executing(tx.id)
        self.store.mark_executing(tx.id)
        tx_hash = tx.tx_hash
        try:
            if not tx_hash:
                tx_hash = await self.wallet.send_transaction(tx.transaction)
                if not tx_hash:
                    raise WalletError("Wallet returned no transaction hash")
                # Recorded before waiting so a restart can resume watching it.
                self.store.set_tx_hash(tx.id, tx_hash)
            await self.wallet.wait_for_receipt(tx_hash)
        except Exception as exc:
            kind = classify_error(exc)
            message = str(exc) or exc.__class__.__name__
            self.store.mark_failed(tx.id, message, kind)
            if kind == ErrorKind.USER_REJECTED:
                logger.warning(f'User rejected transaction: "{tx.label}"')
            else:
                logger.error(f'Transaction "{tx.label}" failed: {message}')
            report.failed = tx.id
            report.error = message
            report.error_kind = kind
            return False

        self.store.mark_completed(tx.id, tx_hash)
        report.completed.append(tx.id)
        logger.info(f'Completed "{tx.label}" ({tx_hash})')
        return True
