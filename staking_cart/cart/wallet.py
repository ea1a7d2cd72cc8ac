from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from eth_account import Account
from eth_utils import to_checksum_address

from staking_cart.cart.constants import ErrorKind
from staking_cart.cart.errors import UserRejectedError, WalletError
from staking_cart.cart.models import RawTransaction
from staking_cart.core.constants.base import DEFAULT_TRANSACTION_TIMEOUT
from staking_cart.core.utils.transaction import (
    SignCallback,
    TransactionRevertedError,
    local_sign_callback,
    send_transaction,
    wait_for_transaction_receipt,
)

# EIP-1193 "User Rejected Request"
_USER_REJECTED_RPC_CODE = 4001


@runtime_checkable
class WalletClient(Protocol):
    async def send_transaction(self, raw: RawTransaction) -> str: ...

    async def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]: ...


def _rpc_error_code(exc: Exception) -> int | None:
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict):
        error = response.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), int):
            return error["code"]
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, WalletError):
        return exc.kind
    if isinstance(exc, TransactionRevertedError):
        return ErrorKind.REVERTED
    if isinstance(exc, Exception) and _rpc_error_code(exc) == _USER_REJECTED_RPC_CODE:
        return ErrorKind.USER_REJECTED
    return ErrorKind.FAILED


def confirming_sign_callback(
    inner: SignCallback, confirm: Callable[[dict], bool]
) -> SignCallback:
    """Ask ``confirm`` before every signature; declining is a user rejection."""

    async def sign_callback(tx: dict) -> bytes:
        if not confirm(tx):
            raise UserRejectedError("User rejected the signature request")
        return await inner(tx)

    return sign_callback


class Web3WalletClient:
    def __init__(
        self,
        *,
        chain_id: int,
        from_address: str,
        sign_callback: SignCallback,
        confirmations: int = 1,
        receipt_timeout: int = DEFAULT_TRANSACTION_TIMEOUT,
    ) -> None:
        self.chain_id = int(chain_id)
        self.from_address = to_checksum_address(from_address)
        self._sign_callback = sign_callback
        self._confirmations = int(confirmations)
        self._receipt_timeout = int(receipt_timeout)

    @classmethod
    def from_private_key(
        cls,
        private_key: str,
        *,
        chain_id: int,
        confirm: Callable[[dict], bool] | None = None,
        **kwargs: Any,
    ) -> Web3WalletClient:
        sign_callback = local_sign_callback(private_key)
        if confirm is not None:
            sign_callback = confirming_sign_callback(sign_callback, confirm)
        return cls(
            chain_id=chain_id,
            from_address=Account.from_key(private_key).address,
            sign_callback=sign_callback,
            **kwargs,
        )

    def build_transaction(self, raw: RawTransaction) -> dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "from": self.from_address,
            "to": to_checksum_address(raw.to),
            "data": raw.data,
            "value": int(raw.value),
        }

    async def send_transaction(self, raw: RawTransaction) -> str:
        try:
            return await send_transaction(
                self.build_transaction(raw), self._sign_callback
            )
        except WalletError:
            raise
        except Exception as exc:
            raise WalletError(str(exc), kind=classify_error(exc)) from exc

    async def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        try:
            return await wait_for_transaction_receipt(
                self.chain_id,
                tx_hash,
                timeout=self._receipt_timeout,
                confirmations=self._confirmations,
            )
        except Exception as exc:
            raise WalletError(str(exc), kind=classify_error(exc)) from exc
