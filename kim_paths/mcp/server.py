"""KIM Paths MCP server (FastMCP).

Run locally:
  poetry run python -m kim_paths.mcp.server

The signing wallet is the one labelled by ``KIM_WALLET_LABEL`` (or
``kim.wallet_label`` in config.json), falling back to the first wallet.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic_core import PydanticUndefined

from kim_paths.mcp.registry import ToolSpec, build_registry, dispatch
from kim_paths.mcp.utils import build_kim_adapter


def _signature_for(spec: ToolSpec) -> inspect.Signature:
    params = []
    for field_name, field in spec.schema.model_fields.items():
        default = (
            inspect.Parameter.empty
            if field.is_required()
            else (
                field.default_factory()
                if field.default_factory is not None
                else field.default
            )
        )
        if default is PydanticUndefined:
            default = inspect.Parameter.empty
        params.append(
            inspect.Parameter(
                field_name,
                inspect.Parameter.KEYWORD_ONLY,
                default=default,
                annotation=field.annotation,
            )
        )
    return inspect.Signature(params, return_annotation=dict[str, Any])


def _as_tool(registry: dict[str, ToolSpec], spec: ToolSpec):
    async def tool(**kwargs: Any) -> dict[str, Any]:
        return await dispatch(registry, spec.name, kwargs)

    tool.__name__ = spec.name
    tool.__doc__ = spec.description
    tool.__signature__ = _signature_for(spec)
    return tool


def create_server(registry: dict[str, ToolSpec]) -> FastMCP:
    server = FastMCP("kim")
    for spec in registry.values():
        server.add_tool(
            _as_tool(registry, spec), name=spec.name, description=spec.description
        )
    return server


def main() -> None:
    registry = build_registry(build_kim_adapter())
    create_server(registry).run()


if __name__ == "__main__":
    try:
        main()
    except RuntimeError as exc:
        if "asyncio.run()" in str(exc) and asyncio.get_event_loop().is_running():
            main()
        else:
            raise
