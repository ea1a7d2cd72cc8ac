import json

import pytest

from staking_cart.cart import codec
from staking_cart.cart.constants import (
    CURRENT_EXECUTING_KEY,
    STORAGE_KEY,
    ErrorKind,
    StepType,
    TransactionStatus,
    TransactionType,
)
from staking_cart.cart.dependencies import build_dependency
from staking_cart.cart.errors import (
    CartInvariantError,
    DuplicateTransactionError,
    HasDependentsError,
    MissingDependencyError,
    TransactionNotFoundError,
)
from staking_cart.cart.models import CartMetadata, CartTransactionDraft, RawTransaction
from staking_cart.cart.storage import FileStorage, MemoryStorage
from staking_cart.cart.store import TransactionCartStore

ATP = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
OTHER_ATP = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def draft(label, *, data="0x01", value=0, step=None, group=ATP, depends_on=()):
    metadata = None
    if step is not None or depends_on:
        metadata = CartMetadata(
            step_type=step,
            step_group_identifier=group,
            depends_on=[build_dependency(s, group) for s in depends_on],
        )
    return CartTransactionDraft(
        type=TransactionType.DELEGATION,
        label=label,
        transaction=RawTransaction(to=ATP, data=data, value=value),
        metadata=metadata,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return TransactionCartStore(storage)


class TestAdd:
    def test_assigns_id_and_pending_status(self, store):
        tx = store.add(draft("Set Operator"))
        assert tx.id.startswith("delegation-")
        assert len(tx.id.split("-")[-1]) == 9
        assert tx.status == TransactionStatus.PENDING
        assert store.transactions == [tx]

    def test_accepts_plain_dicts_with_dashboard_keys(self, store):
        tx = store.add(
            {
                "type": "setup",
                "label": "Set Operator",
                "transaction": {"to": ATP, "data": "0xab", "value": "5"},
                "metadata": {"stepType": 0, "stepGroupIdentifier": ATP},
            }
        )
        assert tx.transaction.value == 5
        assert tx.metadata.step_type == StepType.OPERATOR_UPDATE

    def test_duplicate_prevention_keeps_queue_size(self, store):
        first = store.add(draft("Approve Tokens", data="0xAB"))
        with pytest.raises(DuplicateTransactionError) as exc_info:
            store.add(draft("Approve again", data="0xab"), prevent_duplicate=True)
        assert exc_info.value.existing_id == first.id
        assert len(store) == 1

    def test_duplicates_allowed_without_prevention(self, store):
        store.add(draft("Delegate (1/2)"))
        store.add(draft("Delegate (2/2)"))
        assert len(store) == 2

    def test_missing_dependency_is_rejected(self, store):
        with pytest.raises(MissingDependencyError) as exc_info:
            store.add(
                draft(
                    "Approve Tokens",
                    step=StepType.TOKEN_APPROVAL,
                    depends_on=[StepType.OPERATOR_UPDATE],
                )
            )
        assert "Operator Update" in str(exc_info.value)
        assert [d.step_type for d in exc_info.value.missing] == [
            StepType.OPERATOR_UPDATE
        ]
        assert len(store) == 0

    def test_dependency_must_match_group(self, store):
        store.add(draft("Set Operator", step=StepType.OPERATOR_UPDATE, group=OTHER_ATP))
        with pytest.raises(MissingDependencyError):
            store.add(
                draft(
                    "Approve Tokens",
                    data="0x02",
                    step=StepType.TOKEN_APPROVAL,
                    depends_on=[StepType.OPERATOR_UPDATE],
                )
            )


class TestQueries:
    def test_lookup_by_transaction_signature(self, store):
        tx = store.add(draft("Set Operator", data="0xABCD", value=3))
        assert store.get_by_transaction(
            RawTransaction(to=ATP.lower(), data="0xabcd", value=3)
        ) == tx
        assert store.contains(RawTransaction(to=ATP, data="0xabcd", value=3))
        assert not store.contains(RawTransaction(to=ATP, data="0xabcd", value=4))

    def test_get_unknown_returns_none(self, store):
        assert store.get("nope") is None


class TestEdits:
    def test_remove(self, store):
        tx = store.add(draft("Set Operator"))
        assert store.remove(tx.id) is True
        assert store.remove(tx.id) is False
        assert len(store) == 0

    def test_remove_with_dependents_is_refused(self, store):
        operator = store.add(draft("Set Operator", step=StepType.OPERATOR_UPDATE))
        approval = store.add(
            draft(
                "Approve Tokens",
                data="0x02",
                step=StepType.TOKEN_APPROVAL,
                depends_on=[StepType.OPERATOR_UPDATE],
            )
        )
        with pytest.raises(HasDependentsError) as exc_info:
            store.remove(operator.id)
        assert exc_info.value.dependent_ids == [approval.id]
        assert len(store) == 2

        store.remove(approval.id)
        assert store.remove(operator.id) is True

    def test_move_up_and_down(self, store):
        a = store.add(draft("A", data="0x0a"))
        b = store.add(draft("B", data="0x0b"))
        c = store.add(draft("C", data="0x0c"))

        assert store.move_up(a.id) is False
        assert store.move_down(c.id) is False
        assert store.move_up(c.id) is True
        assert [t.id for t in store.transactions] == [a.id, c.id, b.id]
        assert store.move_down(a.id) is True
        assert [t.id for t in store.transactions] == [c.id, a.id, b.id]
        assert store.move_up("missing") is False

    def test_clear_variants(self, store):
        done = store.add(draft("Done", data="0x0a"))
        store.set_tx_hash(done.id, "0xaaa")
        store.mark_completed(done.id)
        store.add(
            CartTransactionDraft(
                type=TransactionType.SETUP,
                label="Setup",
                transaction=RawTransaction(to=ATP, data="0x0b"),
            )
        )
        store.add(draft("Pending", data="0x0c"))

        assert store.clear_completed() == 1
        assert store.clear_by_type(TransactionType.SETUP) == 1
        assert [t.label for t in store.transactions] == ["Pending"]
        store.clear()
        assert len(store) == 0

    def test_clear_completed_keeps_steps_still_depended_on(self, store):
        operator = store.add(draft("Set Operator", data="0x0a", step=StepType.OPERATOR_UPDATE))
        approval = store.add(
            draft(
                "Approve Tokens",
                data="0x0b",
                step=StepType.TOKEN_APPROVAL,
                depends_on=[StepType.OPERATOR_UPDATE],
            )
        )
        other = store.add(draft("Other", data="0x0c"))
        store.mark_completed(operator.id, "0xaaa")
        store.mark_completed(other.id, "0xccc")
        store.mark_failed(approval.id, "User rejected", ErrorKind.USER_REJECTED)

        assert store.clear_completed() == 1
        assert [t.id for t in store.transactions] == [operator.id, approval.id]

        store.retry(approval.id)
        store.mark_completed(approval.id, "0xbbb")
        assert store.clear_completed() == 2
        assert len(store) == 0

    def test_clear_by_type_refuses_when_other_types_depend(self, store):
        store.add(
            CartTransactionDraft(
                type=TransactionType.SETUP,
                label="Set Operator",
                transaction=RawTransaction(to=ATP, data="0x0a"),
                metadata=CartMetadata(
                    step_type=StepType.OPERATOR_UPDATE, step_group_identifier=ATP
                ),
            )
        )
        approval = store.add(
            draft(
                "Approve Tokens",
                data="0x0b",
                step=StepType.TOKEN_APPROVAL,
                depends_on=[StepType.OPERATOR_UPDATE],
            )
        )

        with pytest.raises(HasDependentsError, match=approval.id):
            store.clear_by_type(TransactionType.SETUP)
        assert len(store) == 2

        assert store.clear_by_type(TransactionType.DELEGATION) == 1
        assert store.clear_by_type(TransactionType.SETUP) == 1


class TestStatus:
    def test_completed_requires_hash(self, store):
        tx = store.add(draft("Set Operator"))
        with pytest.raises(CartInvariantError):
            store.mark_completed(tx.id)
        completed = store.mark_completed(tx.id, "0xfeed")
        assert completed.status == TransactionStatus.COMPLETED
        assert completed.tx_hash == "0xfeed"

    def test_only_one_executing(self, store):
        a = store.add(draft("A", data="0x0a"))
        b = store.add(draft("B", data="0x0b"))
        store.mark_executing(a.id)
        with pytest.raises(CartInvariantError):
            store.mark_executing(b.id)

    def test_retry_only_from_failed(self, store):
        tx = store.add(draft("A"))
        with pytest.raises(CartInvariantError):
            store.retry(tx.id)

        store.set_tx_hash(tx.id, "0xbad")
        store.mark_failed(tx.id, "Transaction reverted", ErrorKind.REVERTED)
        retried = store.retry(tx.id)
        assert retried.status == TransactionStatus.PENDING
        assert retried.tx_hash is None
        assert retried.error is None
        assert retried.error_kind is None

    def test_reset_to_pending_keeps_hash(self, store):
        tx = store.add(draft("A"))
        store.mark_executing(tx.id)
        store.set_tx_hash(tx.id, "0xabc")
        reset = store.reset_to_pending(tx.id)
        assert reset.status == TransactionStatus.PENDING
        assert reset.tx_hash == "0xabc"

    def test_unknown_ids_raise(self, store):
        with pytest.raises(TransactionNotFoundError):
            store.mark_failed("missing", "boom")
        with pytest.raises(TransactionNotFoundError):
            store.set_current_executing("missing")


class TestPersistence:
    def test_every_change_is_persisted(self, storage, store):
        tx = store.add(draft("Set Operator", value=10**24))
        stored = json.loads(storage.get_item(STORAGE_KEY))
        assert stored[0]["id"] == tx.id
        assert stored[0]["transaction"]["value"] == str(10**24)

        reloaded = TransactionCartStore(storage)
        assert reloaded.transactions == store.transactions

    def test_executing_without_hash_is_pending_after_reload(self, storage, store):
        tx = store.add(draft("Set Operator"))
        store.set_current_executing(tx.id)
        store.mark_executing(tx.id)

        reloaded = TransactionCartStore(storage)
        assert reloaded.get(tx.id).status == TransactionStatus.PENDING
        assert reloaded.current_executing_id is None
        assert storage.get_item(CURRENT_EXECUTING_KEY) is None

    def test_executing_with_hash_survives_reload(self, storage, store):
        tx = store.add(draft("Set Operator"))
        store.set_current_executing(tx.id)
        store.mark_executing(tx.id)
        store.set_tx_hash(tx.id, "0xabc")

        reloaded = TransactionCartStore(storage)
        assert reloaded.get(tx.id).status == TransactionStatus.EXECUTING
        assert reloaded.get(tx.id).tx_hash == "0xabc"
        assert reloaded.current_executing_id == tx.id

    def test_safe_hash_counts_as_recorded(self, storage, store):
        tx = store.add(draft("Set Operator"))
        store.mark_executing(tx.id)
        store.set_safe_tx_hash(tx.id, "0x5afe")

        reloaded = TransactionCartStore(storage)
        assert reloaded.get(tx.id).status == TransactionStatus.EXECUTING

    def test_pointer_is_json_encoded(self, storage, store):
        tx = store.add(draft("Set Operator"))
        store.set_current_executing(tx.id)
        assert storage.get_item(CURRENT_EXECUTING_KEY) == codec.dumps(tx.id)
        store.set_current_executing(None)
        assert storage.get_item(CURRENT_EXECUTING_KEY) is None

    def test_corrupt_state_starts_empty(self):
        storage = MemoryStorage({STORAGE_KEY: "{not json"})
        assert len(TransactionCartStore(storage)) == 0

    def test_custom_keys(self, storage):
        store = TransactionCartStore(storage, storage_key="cart-b", executing_key="cur-b")
        store.add(draft("A"))
        assert storage.get_item("cart-b") is not None
        assert storage.get_item(STORAGE_KEY) is None


class TestSharedStorage:
    def test_stores_on_one_directory_keep_each_others_entries(self, tmp_path):
        first = TransactionCartStore(FileStorage(tmp_path))
        a = first.add(draft("A", data="0x0a"))
        second = TransactionCartStore(FileStorage(tmp_path))
        c = second.add(draft("C", data="0x0c"))

        first.set_current_executing(a.id)
        first.mark_executing(a.id)

        reloaded = TransactionCartStore(FileStorage(tmp_path))
        assert [t.id for t in reloaded.transactions] == [a.id, c.id]
        assert first.get(c.id) is not None

    def test_duplicates_are_checked_against_current_state(self, tmp_path):
        first = TransactionCartStore(FileStorage(tmp_path))
        second = TransactionCartStore(FileStorage(tmp_path))
        first.add(draft("A", data="0x0a"))

        with pytest.raises(DuplicateTransactionError):
            second.add(draft("Again", data="0x0a"), prevent_duplicate=True)

    def test_in_flight_entry_survives_another_store_writing(self, tmp_path):
        first = TransactionCartStore(FileStorage(tmp_path))
        a = first.add(draft("A", data="0x0a"))
        first.mark_executing(a.id)

        # Another process sees the unsubmitted entry as pending.
        second = TransactionCartStore(FileStorage(tmp_path))
        assert second.get(a.id).status == TransactionStatus.PENDING

        first.set_tx_hash(a.id, "0xabc")
        tx = first.get(a.id)
        assert tx.status == TransactionStatus.EXECUTING
        assert tx.tx_hash == "0xabc"
