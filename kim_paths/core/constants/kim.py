"""KIM Exchange (Algebra Integral on Mode) deployment constants."""

from __future__ import annotations

from typing import Any

from eth_utils import to_checksum_address

from kim_paths.core.config import get_contract_overrides, get_subgraph_url
from kim_paths.core.constants.chains import CHAIN_ID_MODE

KIM_CHAIN_ID = CHAIN_ID_MODE

KIM_SWAP_ROUTER = to_checksum_address("0xAc48FcF1049668B285f3dC72483DF5Ae2162f7e8")
KIM_POSITION_MANAGER = to_checksum_address(
    "0x2e8614625226D26180aDf6530C3b1677d3D7cf10"
)
KIM_FACTORY = to_checksum_address("0xB5F00c2C5f8821155D8ed27E31932CFD9DB3C5D5")
KIM_CALCULATOR = to_checksum_address("0x6f8E2B58373aB12Be5f7c28658633dD27D689f0D")

KIM_SUBGRAPH_URL = (
    "https://api.goldsky.com/api/public/project_clmqdcfcs3f6d2ptj3yp05ndz"
    "/subgraphs/Algebra-Kim/0.0.4/gn"
)

KIM_CONTRACTS: dict[str, str] = {
    "router": KIM_SWAP_ROUTER,
    "npm": KIM_POSITION_MANAGER,
    "factory": KIM_FACTORY,
    "calculator": KIM_CALCULATOR,
}


def resolve_kim_contracts(config: dict[str, Any] | None = None) -> dict[str, str]:
    """Deployment addresses with global and per-adapter overrides applied."""
    contracts = dict(KIM_CONTRACTS)
    contracts.update(get_contract_overrides())
    if config and isinstance(config.get("contracts"), dict):
        contracts.update(
            {str(k): str(v) for k, v in config["contracts"].items() if v}
        )
    return {role: to_checksum_address(addr) for role, addr in contracts.items()}


def resolve_subgraph_url(config: dict[str, Any] | None = None) -> str:
    if config:
        value = config.get("subgraph_url")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return get_subgraph_url() or KIM_SUBGRAPH_URL
