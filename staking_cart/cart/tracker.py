from __future__ import annotations

import asyncio

from loguru import logger

from staking_cart.cart.constants import TransactionStatus
from staking_cart.cart.models import CartTransaction
from staking_cart.cart.safe import SafeTransactionServiceClient
from staking_cart.cart.store import TransactionCartStore
from staking_cart.cart.wallet import WalletClient, classify_error
from staking_cart.core.constants.base import DEFAULT_SAFE_POLL_INTERVAL


class ExecutionTracker:
    """Finishes transactions that were submitted before a restart.

    Nothing here signs or broadcasts: entries are only finalized from a
    receipt for a hash that is already recorded, or from the Safe service
    reporting the multisig transaction as executed.

    This package never proposes Safe transactions itself, so entries with a
    ``safe_tx_hash`` only exist when another writer recorded one. That is
    either the dashboard sharing the same storage or a caller using
    :meth:`TransactionCartStore.set_safe_tx_hash`. The Safe polling is a
    no-op otherwise.
    """

    def __init__(
        self,
        store: TransactionCartStore,
        wallet: WalletClient,
        safe_service: SafeTransactionServiceClient | None = None,
    ) -> None:
        self.store = store
        self.wallet = wallet
        self.safe_service = safe_service

    def _submitted(self) -> list[CartTransaction]:
        self.store.reload()
        return [
            tx
            for tx in self.store.by_status(TransactionStatus.EXECUTING)
            if tx.tx_hash
        ]

    def _awaiting_safe(self) -> list[CartTransaction]:
        self.store.reload()
        return [
            tx
            for tx in self.store.by_status(TransactionStatus.EXECUTING)
            if tx.safe_tx_hash and not tx.tx_hash
        ]

    def _release_pointer(self, tx_id: str) -> None:
        if self.store.current_executing_id == tx_id:
            self.store.set_current_executing(None)

    async def _finalize(self, tx: CartTransaction) -> bool:
        logger.info(f'Resuming "{tx.label}" ({tx.tx_hash})')
        try:
            await self.wallet.wait_for_receipt(tx.tx_hash)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self.store.mark_failed(tx.id, message, classify_error(exc))
            logger.error(f'Transaction "{tx.label}" failed: {message}')
            ok = False
        else:
            self.store.mark_completed(tx.id, tx.tx_hash)
            logger.info(f'Completed "{tx.label}" ({tx.tx_hash})')
            ok = True
        self._release_pointer(tx.id)
        return ok

    async def resume(self) -> dict[str, bool]:
        """Wait on every submitted transaction; returns id -> completed."""
        submitted = self._submitted()
        if not submitted:
            return {}
        results = await asyncio.gather(*(self._finalize(tx) for tx in submitted))
        return {tx.id: ok for tx, ok in zip(submitted, results, strict=True)}

    async def poll_safe_once(self) -> list[str]:
        """Completes Safe-proposed entries that have executed; returns their ids."""
        if self.safe_service is None:
            return []
        completed = []
        for tx in self._awaiting_safe():
            try:
                status = await self.safe_service.get_transaction(tx.safe_tx_hash)
            except Exception as exc:
                logger.warning(f"Safe status check failed for {tx.id}: {exc}")
                continue
            if not status.is_executed or not status.transaction_hash:
                continue
            if status.is_successful is False:
                self.store.set_tx_hash(tx.id, status.transaction_hash)
                self.store.mark_failed(tx.id, "Safe transaction execution failed")
                logger.error(f'Safe transaction "{tx.label}" failed on-chain')
            else:
                self.store.mark_completed(tx.id, status.transaction_hash)
                completed.append(tx.id)
                logger.info(
                    f'Safe transaction "{tx.label}" executed ({status.transaction_hash})'
                )
            self._release_pointer(tx.id)
        return completed

    async def watch_safe(
        self, interval_s: float = DEFAULT_SAFE_POLL_INTERVAL
    ) -> list[str]:
        """Polls until no Safe-proposed entry is left executing."""
        completed: list[str] = []
        if self.safe_service is None:
            return completed
        while self._awaiting_safe():
            completed.extend(await self.poll_safe_once())
            if not self._awaiting_safe():
                break
            await asyncio.sleep(interval_s)
        return completed
