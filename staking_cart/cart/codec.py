"""JSON encoding of persisted cart state.

Large integers (wei amounts) are written as decimal strings so that the stored
state stays readable by JavaScript clients, and revived back to ``int`` on load
for the known amount-carrying keys.
"""

from __future__ import annotations

import json
import re
from typing import Any

from staking_cart.cart.models import CartTransaction

BIGINT_KEYS = frozenset({"value", "amount", "rewards"})
_DIGITS_RE = re.compile(r"^\d+$")


def _stringify_bigints(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: dict[str, Any] = {}
        for key, val in obj.items():
            if key in BIGINT_KEYS and isinstance(val, int) and not isinstance(val, bool):
                out[key] = str(val)
            else:
                out[key] = _stringify_bigints(val)
        return out
    if isinstance(obj, list):
        return [_stringify_bigints(v) for v in obj]
    return obj


def _revive_bigints(obj: dict[str, Any]) -> dict[str, Any]:
    for key in BIGINT_KEYS & obj.keys():
        val = obj[key]
        if isinstance(val, str) and _DIGITS_RE.match(val):
            obj[key] = int(val)
    return obj


def dumps(value: Any) -> str:
    return json.dumps(_stringify_bigints(value), separators=(",", ":"))


def loads(raw: str) -> Any:
    return json.loads(raw, object_hook=_revive_bigints)


def encode_transactions(transactions: list[CartTransaction]) -> str:
    return dumps(
        [
            tx.model_dump(mode="json", by_alias=True, exclude_none=True)
            for tx in transactions
        ]
    )


def decode_transactions(raw: str) -> list[CartTransaction]:
    data = loads(raw)
    if not isinstance(data, list):
        raise ValueError("stored cart is not a list")
    return [CartTransaction.model_validate(item) for item in data]
