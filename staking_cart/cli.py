from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Callable
from typing import Any, NoReturn

import click
from loguru import logger

from staking_cart.cart.constants import TransactionStatus, TransactionType
from staking_cart.cart.errors import CartError, WalletError
from staking_cart.cart.models import CartTransaction, CartTransactionDraft, RawTransaction
from staking_cart.cart.runner import ExecutionRunner
from staking_cart.cart.safe import SafeTransactionServiceClient
from staking_cart.cart.storage import FileStorage
from staking_cart.cart.store import TransactionCartStore
from staking_cart.cart.tracker import ExecutionTracker
from staking_cart.cart.wallet import WalletClient, Web3WalletClient
from staking_cart.core import config
from staking_cart.steps import enqueue, plan_atp_delegation


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(exc: Exception) -> NoReturn:
    _echo_json({"ok": False, "error": str(exc)})
    sys.exit(1)


def _summary(tx: CartTransaction) -> dict[str, Any]:
    return tx.model_dump(mode="json", exclude_none=True)


def _open_store() -> TransactionCartStore:
    return TransactionCartStore(FileStorage(config.get_storage_dir()))


def _build_wallet(confirm: Callable[[dict], bool] | None) -> WalletClient:
    private_key = config.get_private_key()
    if not private_key:
        raise click.ClickException(
            "No signing key configured (wallet.private_key or STAKING_CART_PRIVATE_KEY)"
        )
    chain_id = config.get_chain_id()
    if chain_id is None:
        raise click.ClickException("cart.chain_id is not configured")
    return Web3WalletClient.from_private_key(
        private_key,
        chain_id=chain_id,
        confirm=confirm,
        confirmations=config.get_confirmations(),
        receipt_timeout=config.get_receipt_timeout(),
    )


def _build_safe_service() -> SafeTransactionServiceClient | None:
    url = config.get_safe_service_url()
    api_key = config.get_safe_api_key()
    if url:
        return SafeTransactionServiceClient(base_url=url, api_key=api_key)
    chain_id = config.get_chain_id()
    if chain_id is None:
        return None
    try:
        return SafeTransactionServiceClient.for_chain(chain_id, api_key=api_key)
    except ValueError:
        return None


def _confirm_prompt(tx: dict) -> bool:
    return click.confirm(
        f"Sign transaction to {tx.get('to')} (value {tx.get('value', 0)})?",
        default=False,
        err=True,
    )


@click.group(name="staking-cart", help="Batched transaction cart for ATP staking.")
@click.option("--config", "config_path", default=None, help="Path to config.json.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def cli(config_path: str | None, log_level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())
    if config_path:
        config.load_config(config_path, require_exists=True)


@cli.command(name="list", help="Show the queued transactions in order.")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TransactionStatus]),
    default=None,
)
def list_cmd(status: str | None) -> None:
    store = _open_store()
    txs = store.by_status(TransactionStatus(status)) if status else store.transactions
    _echo_json(
        {
            "ok": True,
            "result": {
                "current_executing_id": store.current_executing_id,
                "transactions": [_summary(tx) for tx in txs],
            },
        }
    )


@cli.command(name="remove", help="Remove a transaction from the cart.")
@click.argument("tx_id")
def remove_cmd(tx_id: str) -> None:
    try:
        removed = _open_store().remove(tx_id)
    except CartError as exc:
        _fail(exc)
    _echo_json({"ok": True, "result": {"removed": removed}})


@cli.command(name="clear", help="Clear the cart, or only part of it.")
@click.option("--completed", is_flag=True, help="Only drop completed transactions.")
@click.option(
    "--type",
    "tx_type",
    type=click.Choice([t.value for t in TransactionType]),
    default=None,
    help="Only drop transactions of this type.",
)
def clear_cmd(completed: bool, tx_type: str | None) -> None:
    store = _open_store()
    if completed and tx_type:
        raise click.UsageError("--completed and --type are mutually exclusive")
    try:
        if completed:
            count = store.clear_completed()
        elif tx_type:
            count = store.clear_by_type(TransactionType(tx_type))
        else:
            count = len(store)
            store.clear()
    except CartError as exc:
        _fail(exc)
    _echo_json({"ok": True, "result": {"removed": count}})


@cli.command(name="move-up", help="Move a transaction one place earlier.")
@click.argument("tx_id")
def move_up_cmd(tx_id: str) -> None:
    _echo_json({"ok": True, "result": {"moved": _open_store().move_up(tx_id)}})


@cli.command(name="move-down", help="Move a transaction one place later.")
@click.argument("tx_id")
def move_down_cmd(tx_id: str) -> None:
    _echo_json({"ok": True, "result": {"moved": _open_store().move_down(tx_id)}})


@cli.command(name="retry", help="Put a failed transaction back in the queue.")
@click.argument("tx_id")
def retry_cmd(tx_id: str) -> None:
    try:
        tx = _open_store().retry(tx_id)
    except CartError as exc:
        _fail(exc)
    _echo_json({"ok": True, "result": _summary(tx)})


@cli.command(name="add-raw", help="Queue an arbitrary contract call.")
@click.option("--to", "to_address", required=True)
@click.option("--data", default="0x", show_default=True)
@click.option("--value", type=int, default=0, show_default=True)
@click.option("--label", required=True)
@click.option("--description", default=None)
@click.option(
    "--type",
    "tx_type",
    type=click.Choice([t.value for t in TransactionType]),
    default=TransactionType.SETUP.value,
    show_default=True,
)
@click.option("--metadata-json", default=None, help="JSON object of cart metadata.")
@click.option("--allow-duplicate", is_flag=True, default=False)
def add_raw_cmd(
    to_address: str,
    data: str,
    value: int,
    label: str,
    description: str | None,
    tx_type: str,
    metadata_json: str | None,
    allow_duplicate: bool,
) -> None:
    try:
        metadata = json.loads(metadata_json) if metadata_json else None
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--metadata-json")
    try:
        draft = CartTransactionDraft(
            type=TransactionType(tx_type),
            label=label,
            description=description,
            transaction=RawTransaction(to=to_address, data=data, value=value),
            metadata=metadata,
        )
        tx = _open_store().add(draft, prevent_duplicate=not allow_duplicate)
    except (CartError, ValueError) as exc:
        _fail(exc)
    _echo_json({"ok": True, "result": _summary(tx)})


@cli.command(name="delegate", help="Queue the steps delegating an ATP to a provider.")
@click.option("--atp", "atp_address", required=True)
@click.option("--staker", "staker_address", required=True)
@click.option("--provider-id", type=int, required=True)
@click.option("--provider-name", default=None)
@click.option("--take-rate", "expected_take_rate", type=int, default=0, show_default=True)
@click.option("--activation-threshold", type=int, required=True)
@click.option("--stake-count", type=int, default=1, show_default=True)
@click.option("--rewards-recipient", required=True)
@click.option("--staker-version", type=int, required=True)
@click.option("--operator", "operator_address", default=None)
@click.option("--upgrade-staker", is_flag=True, default=False)
@click.option("--approve/--no-approve", default=True, show_default=True)
def delegate_cmd(
    atp_address: str,
    staker_address: str,
    provider_id: int,
    provider_name: str | None,
    expected_take_rate: int,
    activation_threshold: int,
    stake_count: int,
    rewards_recipient: str,
    staker_version: int,
    operator_address: str | None,
    upgrade_staker: bool,
    approve: bool,
) -> None:
    try:
        drafts = plan_atp_delegation(
            atp_address=atp_address,
            staker_address=staker_address,
            provider_id=provider_id,
            provider_name=provider_name,
            expected_take_rate=expected_take_rate,
            activation_threshold=activation_threshold,
            stake_count=stake_count,
            rewards_recipient=rewards_recipient,
            staker_version=staker_version,
            operator_address=operator_address,
            upgrade_staker=upgrade_staker,
            approve=approve,
        )
        added = enqueue(_open_store(), drafts)
    except (CartError, ValueError) as exc:
        _fail(exc)
    _echo_json({"ok": True, "result": [_summary(tx) for tx in added]})


@cli.command(name="execute", help="Sign and send every pending transaction in order.")
@click.option("--yes", is_flag=True, default=False, help="Skip per-transaction prompts.")
def execute_cmd(yes: bool) -> None:
    store = _open_store()
    wallet = _build_wallet(None if yes else _confirm_prompt)
    try:
        report = asyncio.run(ExecutionRunner(store, wallet).execute_all())
    except (CartError, WalletError) as exc:
        _fail(exc)
    _echo_json({"ok": report.ok, "result": report.to_dict()})
    if not report.ok:
        sys.exit(1)


async def _resume(tracker: ExecutionTracker, watch_safe: bool) -> dict[str, Any]:
    try:
        receipts = await tracker.resume()
        if watch_safe:
            safe_completed = await tracker.watch_safe()
        else:
            safe_completed = await tracker.poll_safe_once()
    finally:
        if tracker.safe_service is not None:
            await tracker.safe_service.close()
    return {"receipts": receipts, "safe_completed": safe_completed}


@cli.command(name="resume", help="Finish transactions submitted before a restart.")
@click.option("--watch-safe", is_flag=True, default=False, help="Poll Safe until done.")
def resume_cmd(watch_safe: bool) -> None:
    store = _open_store()
    tracker = ExecutionTracker(store, _build_wallet(None), _build_safe_service())
    result = asyncio.run(_resume(tracker, watch_safe))
    _echo_json({"ok": True, "result": result})


if __name__ == "__main__":
    cli()
