from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from staking_cart.core.constants.base import DEFAULT_HTTP_TIMEOUT
from staking_cart.core.constants.chains import SAFE_TRANSACTION_SERVICE_URLS
from staking_cart.core.utils.retry import retry_transient


@dataclass(frozen=True)
class SafeTransactionStatus:
    safe_tx_hash: str
    is_executed: bool
    transaction_hash: str | None = None
    is_successful: bool | None = None


class SafeTransactionServiceClient:
    """Reads multisig transaction state from a Safe Transaction Service."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        )

    @classmethod
    def for_chain(cls, chain_id: int, **kwargs: Any) -> SafeTransactionServiceClient:
        base_url = SAFE_TRANSACTION_SERVICE_URLS.get(int(chain_id))
        if base_url is None:
            raise ValueError(f"No Safe Transaction Service known for chain {chain_id}")
        return cls(base_url=base_url, **kwargs)

    async def close(self) -> None:
        await self.client.aclose()

    async def get_transaction(self, safe_tx_hash: str) -> SafeTransactionStatus:
        url = f"{self.base_url}/api/v1/multisig-transactions/{safe_tx_hash}/"

        async def _get() -> httpx.Response:
            resp = await self.client.get(url, headers=self.headers)
            resp.raise_for_status()
            return resp

        resp = await retry_transient(_get, label=f"GET {url}")
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Safe Transaction Service returned unexpected response type")
        logger.debug(f"Safe tx {safe_tx_hash}: executed={data.get('isExecuted')}")
        return SafeTransactionStatus(
            safe_tx_hash=safe_tx_hash,
            is_executed=bool(data.get("isExecuted")),
            transaction_hash=data.get("transactionHash") or None,
            is_successful=data.get("isSuccessful"),
        )
