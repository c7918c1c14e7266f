from __future__ import annotations

import os
from typing import Any

from kim_paths.adapters.kim_adapter import KimAdapter
from kim_paths.core.config import CONFIG, get_wallets
from kim_paths.core.utils.transaction import make_sign_callback

WALLET_LABEL_ENV = "KIM_WALLET_LABEL"


def ok(result: Any) -> dict[str, Any]:
    return {"ok": True, "result": result}


def err(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    return {
        "ok": False,
        "error": {"code": str(code), "message": str(message), "details": details},
    }


def find_wallet_by_label(label: str) -> dict[str, Any] | None:
    want = str(label).strip()
    if not want:
        return None
    for w in get_wallets():
        if str(w.get("label", "")).strip() == want:
            return w
    return None


def default_wallet_label() -> str | None:
    label = os.getenv(WALLET_LABEL_ENV) or CONFIG.get("kim", {}).get("wallet_label")
    if label:
        return str(label)
    wallets = get_wallets()
    return str(wallets[0].get("label")) if wallets else None


def build_kim_adapter(wallet_label: str | None = None) -> KimAdapter:
    """Build a KimAdapter that signs with a locally configured wallet (local dev only)."""
    label = wallet_label or default_wallet_label()
    if not label:
        raise ValueError("No wallet configured; add one to config.json")
    w = find_wallet_by_label(label)
    if not w:
        raise ValueError(f"Unknown wallet_label: {label}")
    address = w.get("address")
    pk = w.get("private_key") or w.get("private_key_hex")
    if not address or not pk:
        raise ValueError(
            "Wallet must include address and private_key_hex in config.json (local dev only)"
        )
    config = dict(CONFIG.get("kim", {}))
    config["strategy_wallet"] = {"address": address}
    return KimAdapter(config, strategy_wallet_signing_callback=make_sign_callback(pk))
