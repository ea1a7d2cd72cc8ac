"""Builders for the staking transactions queued in the cart.

Each builder returns a :class:`RawTransaction` with ABI-encoded calldata.
``plan_atp_delegation`` assembles the whole ATP delegation flow, wiring each
step to the earlier steps of the same ATP that it has to wait for.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from loguru import logger

from staking_cart.cart.constants import StepType, TransactionType
from staking_cart.cart.dependencies import build_conditional_dependencies
from staking_cart.cart.errors import DuplicateTransactionError
from staking_cart.cart.models import (
    CartMetadata,
    CartTransaction,
    CartTransactionDraft,
    RawTransaction,
)
from staking_cart.cart.store import TransactionCartStore
from staking_cart.core.constants.staking_abi import (
    ATP_ABI,
    ERC20_APPROVE_ABI,
    STAKER_ABI,
)

# Steps that may legitimately be queued several times with identical calldata.
REPEATABLE_STEPS = frozenset(
    {
        StepType.STAKE_WITH_PROVIDER,
        StepType.STAKE,
        StepType.WALLET_STAKE_WITH_PROVIDER,
        StepType.WALLET_DIRECT_STAKE,
    }
)


def _function_abi(abi: Sequence[dict[str, Any]], name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == name:
            return entry
    raise KeyError(f"Function {name} not found in ABI")


def encode_call(abi: Sequence[dict[str, Any]], name: str, args: Sequence[Any]) -> str:
    fn = _function_abi(abi, name)
    types = [i["type"] for i in fn["inputs"]]
    if len(types) != len(args):
        raise ValueError(f"{name} expects {len(types)} arguments, got {len(args)}")
    selector = function_signature_to_4byte_selector(f"{name}({','.join(types)})")
    return "0x" + selector.hex() + encode(types, list(args)).hex()


def build_operator_update_tx(atp_address: str, operator_address: str) -> RawTransaction:
    return RawTransaction(
        to=to_checksum_address(atp_address),
        data=encode_call(
            ATP_ABI, "updateStakerOperator", [to_checksum_address(operator_address)]
        ),
    )


def build_staker_upgrade_tx(atp_address: str, version: int) -> RawTransaction:
    return RawTransaction(
        to=to_checksum_address(atp_address),
        data=encode_call(ATP_ABI, "upgradeStaker", [int(version)]),
    )


def build_token_approval_tx(atp_address: str, amount: int) -> RawTransaction:
    return RawTransaction(
        to=to_checksum_address(atp_address),
        data=encode_call(ATP_ABI, "approveStaker", [int(amount)]),
    )


def build_stake_with_provider_tx(
    staker_address: str,
    *,
    version: int,
    provider_id: int,
    expected_take_rate: int,
    rewards_recipient: str,
    move_with_latest_rollup: bool = True,
) -> RawTransaction:
    if not 0 <= int(expected_take_rate) < 2**16:
        raise ValueError("expected_take_rate must fit in uint16")
    return RawTransaction(
        to=to_checksum_address(staker_address),
        data=encode_call(
            STAKER_ABI,
            "stakeWithProvider",
            [
                int(version),
                int(provider_id),
                int(expected_take_rate),
                to_checksum_address(rewards_recipient),
                bool(move_with_latest_rollup),
            ],
        ),
    )


def build_erc20_approve_tx(token_address: str, spender: str, amount: int) -> RawTransaction:
    return RawTransaction(
        to=to_checksum_address(token_address),
        data=encode_call(
            ERC20_APPROVE_ABI, "approve", [to_checksum_address(spender), int(amount)]
        ),
    )


def plan_atp_delegation(
    *,
    atp_address: str,
    staker_address: str,
    provider_id: int,
    activation_threshold: int,
    rewards_recipient: str,
    staker_version: int,
    provider_name: str | None = None,
    expected_take_rate: int = 0,
    stake_count: int = 1,
    operator_address: str | None = None,
    upgrade_staker: bool = False,
    approve: bool = True,
    move_with_latest_rollup: bool = True,
    tx_type: TransactionType = TransactionType.DELEGATION,
) -> list[CartTransactionDraft]:
    """Cart entries delegating ``stake_count`` stakes of one ATP to a provider.

    Setup steps are only planned when needed: the operator update when
    ``operator_address`` is given, the staker upgrade when ``upgrade_staker``
    is set, and the approval when ``approve`` is set. Later steps depend only
    on the setup steps that were actually planned.
    """
    if stake_count < 1:
        raise ValueError("stake_count must be at least 1")
    if activation_threshold <= 0:
        raise ValueError("activation_threshold must be positive")

    group = to_checksum_address(atp_address)
    needs_operator = operator_address is not None
    total_amount = int(activation_threshold) * int(stake_count)
    drafts: list[CartTransactionDraft] = []

    def _draft(
        label: str,
        description: str,
        raw: RawTransaction,
        step: StepType,
        depends_on: list[tuple[bool, StepType]],
        **metadata: Any,
    ) -> CartTransactionDraft:
        return CartTransactionDraft(
            type=tx_type,
            label=label,
            description=description,
            transaction=raw,
            metadata=CartMetadata(
                step_type=step,
                step_group_identifier=group,
                atp_address=group,
                depends_on=build_conditional_dependencies(group, depends_on),
                **metadata,
            ),
        )

    if needs_operator:
        drafts.append(
            _draft(
                "Set Operator",
                f"Set operator to {operator_address}",
                build_operator_update_tx(group, operator_address),
                StepType.OPERATOR_UPDATE,
                [],
                operator_address=to_checksum_address(operator_address),
            )
        )

    if upgrade_staker:
        drafts.append(
            _draft(
                "Set Staker Version",
                f"Upgrade staker to version {staker_version}",
                build_staker_upgrade_tx(group, staker_version),
                StepType.STAKER_UPGRADE,
                [(needs_operator, StepType.OPERATOR_UPDATE)],
            )
        )

    if approve:
        drafts.append(
            _draft(
                "Approve Tokens",
                f"Approve {total_amount}",
                build_token_approval_tx(group, total_amount),
                StepType.TOKEN_APPROVAL,
                [
                    (needs_operator, StepType.OPERATOR_UPDATE),
                    (upgrade_staker, StepType.STAKER_UPGRADE),
                ],
                amount=total_amount,
                stake_count=stake_count,
            )
        )

    stake_tx = build_stake_with_provider_tx(
        staker_address,
        version=staker_version,
        provider_id=provider_id,
        expected_take_rate=expected_take_rate,
        rewards_recipient=rewards_recipient,
        move_with_latest_rollup=move_with_latest_rollup,
    )
    name = provider_name or f"provider {provider_id}"
    for i in range(stake_count):
        suffix = f" ({i + 1}/{stake_count})" if stake_count > 1 else ""
        drafts.append(
            _draft(
                f"Delegate to {name}{suffix}",
                f"Delegate {activation_threshold}",
                stake_tx,
                StepType.STAKE_WITH_PROVIDER,
                [
                    (needs_operator, StepType.OPERATOR_UPDATE),
                    (upgrade_staker, StepType.STAKER_UPGRADE),
                    (approve, StepType.TOKEN_APPROVAL),
                ],
                amount=int(activation_threshold),
                provider_id=int(provider_id),
                provider_name=provider_name,
            )
        )
    return drafts


def enqueue(
    store: TransactionCartStore, drafts: Sequence[CartTransactionDraft]
) -> list[CartTransaction]:
    """Adds a plan to the cart in order.

    Setup steps already in the cart are left in place and reused by the
    steps that depend on them; repeatable stake steps are always added.
    """
    added = []
    for draft in drafts:
        step = draft.metadata.step_type if draft.metadata else None
        try:
            added.append(
                store.add(draft, prevent_duplicate=step not in REPEATABLE_STEPS)
            )
        except DuplicateTransactionError as exc:
            logger.info(f'Reusing queued "{draft.label}" ({exc.existing_id})')
    return added
