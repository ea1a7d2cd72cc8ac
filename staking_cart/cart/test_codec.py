import json

import pytest

from staking_cart.cart import codec
from staking_cart.cart.constants import StepType, TransactionStatus, TransactionType
from staking_cart.cart.models import CartMetadata, CartTransaction, RawTransaction

ATP = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
WEI = 200_000 * 10**18


def _tx(**overrides) -> CartTransaction:
    fields = {
        "id": "delegation-1-abc",
        "type": TransactionType.DELEGATION,
        "label": "Approve Tokens",
        "transaction": RawTransaction(to=ATP, data="0x1234", value=WEI),
        "metadata": CartMetadata(
            step_type=StepType.TOKEN_APPROVAL,
            step_group_identifier=ATP,
            amount=WEI,
        ),
    }
    fields.update(overrides)
    return CartTransaction(**fields)


def test_bigints_are_written_as_decimal_strings():
    raw = codec.encode_transactions([_tx()])
    stored = json.loads(raw)

    assert stored[0]["transaction"]["value"] == str(WEI)
    assert stored[0]["metadata"]["amount"] == str(WEI)
    assert stored[0]["metadata"]["stepType"] == StepType.TOKEN_APPROVAL
    assert stored[0]["metadata"]["stepGroupIdentifier"] == ATP


def test_decode_revives_amounts_and_keeps_other_strings():
    decoded = codec.decode_transactions(codec.encode_transactions([_tx()]))

    assert decoded[0].transaction.value == WEI
    assert decoded[0].metadata.amount == WEI
    assert decoded[0].transaction.data == "0x1234"
    assert decoded[0].status == TransactionStatus.PENDING


def test_non_numeric_strings_under_bigint_keys_are_left_alone():
    assert codec.loads('{"value": "12abc", "amount": "42"}') == {
        "value": "12abc",
        "amount": 42,
    }


def test_booleans_are_not_stringified():
    assert json.loads(codec.dumps({"value": True})) == {"value": True}


def test_missing_status_loads_as_pending():
    stored = json.loads(codec.encode_transactions([_tx()]))
    del stored[0]["status"]
    decoded = codec.decode_transactions(json.dumps(stored))
    assert decoded[0].status == TransactionStatus.PENDING


def test_decode_rejects_non_list_state():
    with pytest.raises(ValueError, match="not a list"):
        codec.decode_transactions('{"id": "x"}')


def test_error_kind_and_hashes_survive_encoding():
    tx = _tx(
        status=TransactionStatus.FAILED,
        tx_hash="0xdead",
        error="Transaction reverted",
        error_kind="reverted",
    )
    decoded = codec.decode_transactions(codec.encode_transactions([tx]))[0]
    assert decoded.tx_hash == "0xdead"
    assert decoded.error_kind == "reverted"
    assert "txHash" in json.loads(codec.encode_transactions([tx]))[0]
