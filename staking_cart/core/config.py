import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from staking_cart.core.constants.chains import CHAIN_CODE_TO_ID, SUPPORTED_CHAINS

_CONFIG_ENV_KEYS = ("STAKING_CART_CONFIG_PATH", "STAKING_CART_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_PRIVATE_KEY_ENV = "STAKING_CART_PRIVATE_KEY"
_DEFAULT_STORAGE_DIR = ".staking_cart"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        data = json.loads(cfg_path.read_text())
    except Exception as exc:
        logger.warning(f"Ignoring unreadable config {cfg_path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def write_config_json(path: str | Path | None, config: dict[str, Any]) -> Path:
    cfg_path = resolve_config_path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(json.dumps(config, indent=2) + "\n")
    return cfg_path


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def _cart_section() -> dict[str, Any]:
    section = CONFIG.get("cart", {})
    return section if isinstance(section, dict) else {}


def get_chain_id() -> int | None:
    """Configured chain id; chain codes such as "sepolia" are accepted."""
    raw = _cart_section().get("chain_id")
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip().lower() in CHAIN_CODE_TO_ID:
        return CHAIN_CODE_TO_ID[raw.strip().lower()]
    chain_id = int(raw)
    if chain_id not in SUPPORTED_CHAINS:
        logger.warning(f"Chain {chain_id} is not a known chain; check rpc_urls")
    return chain_id


def get_storage_dir() -> Path:
    raw = str(_cart_section().get("storage_dir") or _DEFAULT_STORAGE_DIR).strip()
    p = Path(raw).expanduser()
    if p.is_absolute():
        return p
    root = _project_root()
    return (root / p) if root else p


def get_confirmations() -> int:
    return int(_cart_section().get("confirmations", 1))


def get_receipt_timeout() -> int:
    return int(_cart_section().get("receipt_timeout", 300))


def get_safe_service_url() -> str | None:
    safe = CONFIG.get("safe", {})
    url = safe.get("service_url") if isinstance(safe, dict) else None
    return str(url).strip() if url else None


def get_safe_api_key() -> str | None:
    safe = CONFIG.get("safe", {})
    api_key = safe.get("api_key") if isinstance(safe, dict) else None
    if api_key:
        return str(api_key).strip()
    return os.environ.get("STAKING_CART_SAFE_API_KEY")


def get_private_key() -> str | None:
    wallet = CONFIG.get("wallet", {})
    key = wallet.get("private_key") if isinstance(wallet, dict) else None
    if isinstance(key, str) and key.strip():
        return key.strip()
    return os.environ.get(_PRIVATE_KEY_ENV)
