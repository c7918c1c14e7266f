import json
import os
from pathlib import Path
from typing import Any

_CONFIG_ENV_KEYS = ("KIM_PATHS_CONFIG_PATH", "KIM_PATHS_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"


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
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config file is not valid JSON: {cfg_path}") from exc


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    Code that imported CONFIG at module import time sees the update.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("kim", {}).get("rpc_urls", {})


def get_subgraph_url() -> str | None:
    value = CONFIG.get("kim", {}).get("subgraph_url")
    if isinstance(value, str) and value.strip():
        return value.strip()
    env_val = os.getenv("KIM_SUBGRAPH_URL")
    if env_val and env_val.strip():
        return env_val.strip()
    return None


def get_contract_overrides() -> dict[str, str]:
    """Contract address overrides keyed by role (router, npm, factory, calculator)."""
    raw = CONFIG.get("kim", {}).get("contracts", {})
    return {str(k): str(v) for k, v in raw.items() if v}


def get_wallets() -> list[dict[str, Any]]:
    wallets = CONFIG.get("wallets", [])
    return [w for w in wallets if isinstance(w, dict)]
