"""CLI interface for the KIM operation registry.

Usage:
  kim-paths tools
  kim-paths call kim_get_swap_router_address
  kim-paths call kim_decrease_liquidity --params '{"token_id": 1, "percentage": 50}'
  kim-paths call kim_get_lp_tokens --wallet main --params '{"user_address": "main"}'
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click

from kim_paths.adapters.kim_adapter import KimAdapter
from kim_paths.core.config import load_config
from kim_paths.mcp.registry import build_registry, describe_tools, dispatch
from kim_paths.mcp.utils import build_kim_adapter, err


def _echo_json(data: Any) -> None:
    """Pretty-print data as JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def _parse_params(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(
            f"not valid JSON: {exc}", param_hint="--params"
        ) from exc
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--params")
    return data


async def _call(adapter: KimAdapter, name: str, params: dict[str, Any]) -> dict[str, Any]:
    try:
        return await dispatch(build_registry(adapter), name, params)
    finally:
        await adapter.close()


@click.group(name="kim-paths", help="KIM Exchange swaps and liquidity positions.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.json (defaults to KIM_PATHS_CONFIG_PATH or the project root).",
)
def cli(config_path: str | None) -> None:
    if config_path:
        load_config(config_path, require_exists=True)


@cli.command(name="tools", help="List available operations and their input schemas.")
def tools_cmd() -> None:
    _echo_json(describe_tools())


@cli.command(name="call", help="Invoke an operation by name.")
@click.argument("name")
@click.option("--params", "params_json", default=None, help="JSON object of inputs.")
@click.option("--wallet", default=None, help="Wallet label from config.json.")
def call_cmd(name: str, params_json: str | None, wallet: str | None) -> None:
    params = _parse_params(params_json)
    try:
        adapter = build_kim_adapter(wallet)
    except ValueError as exc:
        result = err("invalid_wallet", str(exc))
    else:
        result = asyncio.run(_call(adapter, name, params))
    _echo_json(result)
    if not result.get("ok"):
        raise SystemExit(1)


def main():
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
