"""Explicit operation table for the KIM adapter.

Each entry maps a tool name to its input schema, an async handler and a
description. The table is built once per adapter; ``dispatch`` validates a raw
payload against the schema and returns an ``ok``/``err`` envelope.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from kim_paths.adapters.kim_adapter import KimAdapter
from kim_paths.adapters.kim_adapter.types import (
    DecreaseLiquidityParams,
    ExactInputParams,
    ExactInputSingleParams,
    ExactOutputParams,
    ExactOutputSingleParams,
    GetLPTokensParams,
    GetSwapRouterAddressParams,
    IncreaseLiquidityParams,
    MintParams,
    SwapPathParams,
    TokenIdParams,
)
from kim_paths.core.errors import ChainWriteError, KimError
from kim_paths.core.utils.swap_path import SwapPath
from kim_paths.mcp.utils import err, ok

Handler = Callable[[Any], Awaitable[Any]]

TX_HASH_NOTE = (
    " Returns a transaction hash on success; once a hash is returned the "
    "operation is complete and must not be called again for the same intent."
)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    schema: type[BaseModel]
    handler: Handler
    description: str


@dataclass(frozen=True)
class _ToolDef:
    name: str
    schema: type[BaseModel]
    description: str


TOOL_DEFINITIONS: tuple[_ToolDef, ...] = (
    _ToolDef(
        "kim_get_swap_router_address",
        GetSwapRouterAddressParams,
        "Get the address of the KIM swap router.",
    ),
    _ToolDef(
        "kim_swap_exact_input_single_hop",
        ExactInputSingleParams,
        "Swap an exact amount of input tokens for an output token in a single hop. "
        "Amounts are in base units. The router is approved for the input token."
        + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_swap_exact_output_single_hop",
        ExactOutputSingleParams,
        "Swap for an exact amount of output tokens in a single hop. Amounts are in "
        "base units. The router is approved for amount_in_maximum." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_swap_exact_input_multi_hop",
        ExactInputParams,
        "Swap an exact amount of input tokens through multiple pools. Amounts are "
        "human-readable decimals." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_swap_exact_output_multi_hop",
        ExactOutputParams,
        "Swap through multiple pools to receive an exact amount of output tokens. "
        "Amounts are human-readable decimals." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_mint_position",
        MintParams,
        "Mint a new liquidity position sized by the KIM risk calculator for the "
        "given risk level." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_increase_liquidity",
        IncreaseLiquidityParams,
        "Add liquidity to an existing position. Amounts are in base units."
        + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_decrease_liquidity",
        DecreaseLiquidityParams,
        "Remove a percentage (0-100) of a position's liquidity." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_collect",
        TokenIdParams,
        "Collect all owed tokens and fees of a position to the wallet."
        + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_burn",
        TokenIdParams,
        "Burn an empty position NFT. Fails on-chain if liquidity or owed tokens "
        "remain." + TX_HASH_NOTE,
    ),
    _ToolDef(
        "kim_get_lp_tokens",
        GetLPTokensParams,
        "Get all LP token positions for a user along with their APYs.",
    ),
)


def _swap_path(params: SwapPathParams) -> SwapPath:
    return SwapPath(
        token_in=params.token_in,
        token_out=params.token_out,
        intermediate_tokens=tuple(params.intermediate_tokens),
        fees=tuple(params.fees),
    )


def _handlers(adapter: KimAdapter) -> dict[str, Handler]:
    async def get_swap_router_address(_: GetSwapRouterAddressParams) -> str:
        return await adapter.get_swap_router_address()

    async def swap_exact_input_single_hop(p: ExactInputSingleParams) -> str:
        return await adapter.swap_exact_input_single_hop(
            p.token_in_address,
            p.token_out_address,
            p.amount_in,
            amount_out_minimum=p.amount_out_minimum,
            limit_sqrt_price=p.limit_sqrt_price,
            deadline=p.deadline,
        )

    async def swap_exact_output_single_hop(p: ExactOutputSingleParams) -> str:
        return await adapter.swap_exact_output_single_hop(
            p.token_in_address,
            p.token_out_address,
            p.amount_out,
            p.amount_in_maximum,
            limit_sqrt_price=p.limit_sqrt_price,
            deadline=p.deadline,
        )

    async def swap_exact_input_multi_hop(p: ExactInputParams) -> str:
        return await adapter.swap_exact_input_multi_hop(
            _swap_path(p.path),
            p.recipient,
            p.amount_in,
            amount_out_minimum=p.amount_out_minimum,
            deadline=p.deadline,
        )

    async def swap_exact_output_multi_hop(p: ExactOutputParams) -> str:
        return await adapter.swap_exact_output_multi_hop(
            _swap_path(p.path),
            p.recipient,
            p.amount_out,
            p.amount_in_maximum,
            deadline=p.deadline,
        )

    async def mint_position(p: MintParams) -> str:
        return await adapter.mint_position(
            p.token0_address,
            p.token1_address,
            p.amount0_desired,
            p.amount1_desired,
            p.risk_level,
            deadline=p.deadline,
        )

    async def increase_liquidity(p: IncreaseLiquidityParams) -> str:
        return await adapter.increase_liquidity(
            p.token_id,
            p.token0_address,
            p.token1_address,
            p.amount0_desired,
            p.amount1_desired,
        )

    async def decrease_liquidity(p: DecreaseLiquidityParams) -> str:
        return await adapter.decrease_liquidity(p.token_id, p.percentage)

    async def collect(p: TokenIdParams) -> str:
        return await adapter.collect(p.token_id)

    async def burn(p: TokenIdParams) -> str:
        return await adapter.burn(p.token_id)

    async def get_lp_tokens(p: GetLPTokensParams) -> list[dict[str, Any]]:
        tokens = await adapter.get_lp_tokens(p.user_address)
        return [t.to_dict() for t in tokens]

    return {
        "kim_get_swap_router_address": get_swap_router_address,
        "kim_swap_exact_input_single_hop": swap_exact_input_single_hop,
        "kim_swap_exact_output_single_hop": swap_exact_output_single_hop,
        "kim_swap_exact_input_multi_hop": swap_exact_input_multi_hop,
        "kim_swap_exact_output_multi_hop": swap_exact_output_multi_hop,
        "kim_mint_position": mint_position,
        "kim_increase_liquidity": increase_liquidity,
        "kim_decrease_liquidity": decrease_liquidity,
        "kim_collect": collect,
        "kim_burn": burn,
        "kim_get_lp_tokens": get_lp_tokens,
    }


def build_registry(adapter: KimAdapter) -> dict[str, ToolSpec]:
    handlers = _handlers(adapter)
    return {
        d.name: ToolSpec(
            name=d.name,
            schema=d.schema,
            handler=handlers[d.name],
            description=d.description,
        )
        for d in TOOL_DEFINITIONS
    }


def describe_tools() -> list[dict[str, Any]]:
    return [
        {
            "name": d.name,
            "description": d.description,
            "input_schema": d.schema.model_json_schema(),
        }
        for d in TOOL_DEFINITIONS
    ]


def _error_details(exc: KimError) -> dict[str, Any] | None:
    details: dict[str, Any] = {}
    if exc.cause is not None:
        details["cause"] = f"{type(exc.cause).__name__}: {exc.cause}"
    if isinstance(exc, ChainWriteError) and exc.tx_hash:
        details["tx_hash"] = exc.tx_hash
    return details or None


async def dispatch(
    registry: dict[str, ToolSpec], name: str, payload: dict[str, Any] | None
) -> dict[str, Any]:
    spec = registry.get(name)
    if spec is None:
        return err("not_found", f"Unknown tool: {name}", {"available": list(registry)})
    try:
        params = spec.schema.model_validate(payload or {})
    except SchemaValidationError as exc:
        error_details = [
            {"loc": e.get("loc"), "msg": e.get("msg")} for e in exc.errors()
        ]
        return err("invalid_request", f"{name} request validation failed", error_details)

    try:
        result = await spec.handler(params)
    except KimError as exc:
        return err(exc.code, exc.summary, _error_details(exc))
    return ok(result)
