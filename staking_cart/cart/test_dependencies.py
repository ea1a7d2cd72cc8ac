import pytest

from staking_cart.cart.constants import StepType, TransactionStatus, TransactionType
from staking_cart.cart.dependencies import (
    build_conditional_dependencies,
    build_dependency,
    dependencies_completed,
    has_dependents,
    missing_dependencies,
    resolve_dependencies,
    validate_order,
)
from staking_cart.cart.errors import InvalidOrderError
from staking_cart.cart.models import CartMetadata, CartTransaction, RawTransaction

ATP = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


def tx(tx_id, step, *, depends_on=(), status=TransactionStatus.PENDING, label=None):
    return CartTransaction(
        id=tx_id,
        type=TransactionType.DELEGATION,
        label=label or tx_id,
        status=status,
        transaction=RawTransaction(to=ATP, data=f"0x{len(tx_id):02x}"),
        metadata=CartMetadata(
            step_type=step,
            step_group_identifier=ATP,
            depends_on=[build_dependency(s, ATP) for s in depends_on],
        ),
    )


def test_build_dependency_carries_step_name():
    dep = build_dependency(StepType.STAKER_UPGRADE, ATP)
    assert dep.step_name == "Staker Upgrade"
    assert dep.step_group_identifier == ATP
    assert dep.display_name() == "Staker Upgrade"


def test_conditional_dependencies_only_include_true_conditions():
    deps = build_conditional_dependencies(
        ATP,
        [
            (False, StepType.OPERATOR_UPDATE),
            (True, StepType.STAKER_UPGRADE),
            (True, StepType.TOKEN_APPROVAL),
        ],
    )
    assert [d.step_type for d in deps] == [
        StepType.STAKER_UPGRADE,
        StepType.TOKEN_APPROVAL,
    ]


def test_resolve_and_missing():
    operator = tx("op", StepType.OPERATOR_UPDATE)
    stake = tx(
        "stake",
        StepType.STAKE_WITH_PROVIDER,
        depends_on=[StepType.OPERATOR_UPDATE, StepType.TOKEN_APPROVAL],
    )

    assert resolve_dependencies(stake, [operator, stake]) == [operator]
    missing = missing_dependencies(stake, [operator, stake])
    assert [d.step_type for d in missing] == [StepType.TOKEN_APPROVAL]


def test_dependencies_completed_requires_every_dependency():
    operator = tx("op", StepType.OPERATOR_UPDATE, status=TransactionStatus.COMPLETED)
    approval = tx("approve", StepType.TOKEN_APPROVAL)
    stake = tx(
        "stake",
        StepType.STAKE_WITH_PROVIDER,
        depends_on=[StepType.OPERATOR_UPDATE, StepType.TOKEN_APPROVAL],
    )
    assert not dependencies_completed(stake, [operator, approval, stake])

    done = approval.model_copy(update={"status": TransactionStatus.COMPLETED})
    assert dependencies_completed(stake, [operator, done, stake])


def test_no_dependencies_is_always_ready():
    assert dependencies_completed(tx("op", StepType.OPERATOR_UPDATE), [])


def test_has_dependents():
    operator = tx("op", StepType.OPERATOR_UPDATE)
    approval = tx("approve", StepType.TOKEN_APPROVAL, depends_on=[StepType.OPERATOR_UPDATE])
    assert has_dependents("op", [operator, approval])
    assert not has_dependents("approve", [operator, approval])
    assert not has_dependents("missing", [operator, approval])


def test_validate_order_accepts_dependency_first():
    operator = tx("op", StepType.OPERATOR_UPDATE)
    approval = tx("approve", StepType.TOKEN_APPROVAL, depends_on=[StepType.OPERATOR_UPDATE])
    validate_order([operator, approval])


def test_validate_order_rejects_dependency_after_dependent():
    operator = tx("op", StepType.OPERATOR_UPDATE, label="Set Operator")
    approval = tx(
        "approve",
        StepType.TOKEN_APPROVAL,
        depends_on=[StepType.OPERATOR_UPDATE],
        label="Approve Tokens",
    )
    with pytest.raises(InvalidOrderError) as exc_info:
        validate_order([approval, operator])
    assert str(exc_info.value) == (
        'Invalid order: "Approve Tokens" depends on "Set Operator" which comes after it'
    )
