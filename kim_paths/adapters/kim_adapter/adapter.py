from __future__ import annotations

import asyncio
from typing import Any

from eth_utils import is_address, to_checksum_address

from kim_paths.adapters.kim_adapter.types import LPTokenInfo
from kim_paths.core.adapters.BaseAdapter import BaseAdapter
from kim_paths.core.adapters.decorators import surface_errors
from kim_paths.core.clients.KimSubgraphClient import KimSubgraphClient
from kim_paths.core.constants import ZERO_ADDRESS
from kim_paths.core.constants.base import (
    DEFAULT_DEADLINE_SECONDS,
    LIQUIDITY_DEADLINE_SECONDS,
)
from kim_paths.core.constants.kim import (
    KIM_CHAIN_ID,
    resolve_kim_contracts,
    resolve_subgraph_url,
)
from kim_paths.core.constants.kim_abi import (
    KIM_CALCULATOR_ABI,
    KIM_FACTORY_ABI,
    KIM_POOL_ABI,
    KIM_POSITION_MANAGER_ABI,
    KIM_SWAP_ROUTER_ABI,
)
from kim_paths.core.errors import ChainReadError, ValidationError
from kim_paths.core.utils.algebra_math import (
    MAX_UINT128,
    Pool,
    Position,
    parse_position_struct,
)
from kim_paths.core.utils.algebra_math import deadline as deadline_in
from kim_paths.core.utils.approvals import (
    ApprovalIntent,
    ContractCall,
    approve_then_act,
)
from kim_paths.core.utils.chain_port import ChainAccessPort, Web3ChainPort
from kim_paths.core.utils.ordering import reconcile_with_pool, sort_pair
from kim_paths.core.utils.swap_path import SwapPath, encode_path
from kim_paths.core.utils.tick_data import TickDataProvider
from kim_paths.core.utils.token_resolver import TokenResolver
from kim_paths.core.utils.units import to_erc20_raw
from kim_paths.core.utils.yield_estimator import FeeTelemetry, estimate_position_apy


def _checksum(value: str, field: str) -> str:
    if not is_address(str(value)):
        raise ValidationError(f"{field} is not a valid address: {value}")
    return to_checksum_address(str(value))


def _distinct(token_a: str, token_b: str) -> tuple[str, str]:
    a = _checksum(token_a, "token_a")
    b = _checksum(token_b, "token_b")
    if a == b:
        raise ValidationError(f"Input and output token are the same: {a}")
    return a, b


def _to_raw(amount: str, decimals: int, field: str) -> int:
    try:
        return to_erc20_raw(amount, decimals)
    except ValueError as exc:
        raise ValidationError(f"{field}: {exc}", cause=exc) from exc


def validate_percentage(percentage: int) -> int:
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        raise ValidationError(f"percentage must be an integer, got {percentage!r}")
    if not 0 <= percentage <= 100:
        raise ValidationError(f"percentage must be within [0, 100], got {percentage}")
    return percentage


def liquidity_to_remove(liquidity: int, percentage: int) -> int:
    return int(liquidity) * validate_percentage(percentage) // 100


class KimAdapter(BaseAdapter):
    """Swaps and concentrated-liquidity positions on KIM Exchange (Algebra Integral)."""

    adapter_type = "KIM"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        port: ChainAccessPort | None = None,
        strategy_wallet_signing_callback=None,
        telemetry: FeeTelemetry | None = None,
    ) -> None:
        super().__init__("kim_adapter", config)
        self.chain_id: int = int(self.config.get("chain_id", KIM_CHAIN_ID))

        contracts = resolve_kim_contracts(self.config)
        self.router_address: str = contracts["router"]
        self.npm_address: str = contracts["npm"]
        self.factory_address: str = contracts["factory"]
        self.calculator_address: str = contracts["calculator"]

        if port is None:
            wallet = self.config.get("strategy_wallet") or {}
            addr = wallet.get("address")
            if not addr:
                raise ValueError("strategy_wallet.address is required for KimAdapter")
            port = Web3ChainPort(
                self.chain_id, str(addr), strategy_wallet_signing_callback
            )
        self.port: ChainAccessPort = port
        self.telemetry: FeeTelemetry = telemetry or KimSubgraphClient(
            subgraph_url=resolve_subgraph_url(self.config)
        )

    async def get_swap_router_address(self) -> str:
        return self.router_address

    # Swaps

    @surface_errors("Failed to swap exact input single hop")
    async def swap_exact_input_single_hop(
        self,
        token_in_address: str,
        token_out_address: str,
        amount_in: int,
        amount_out_minimum: int = 0,
        limit_sqrt_price: int = 0,
        deadline: int = DEFAULT_DEADLINE_SECONDS,
    ) -> str:
        token_in, token_out = _distinct(token_in_address, token_out_address)
        recipient = await self.port.get_own_address()

        def build() -> ContractCall:
            params = (
                token_in,
                token_out,
                recipient,
                deadline_in(deadline),
                int(amount_in),
                int(amount_out_minimum),
                int(limit_sqrt_price),
            )
            return ContractCall(
                self.router_address, KIM_SWAP_ROUTER_ABI, "exactInputSingle", (params,)
            )

        steps = await approve_then_act(
            self.port,
            [ApprovalIntent(token_in, self.router_address, int(amount_in))],
            build,
        )
        return steps[-1].tx_hash

    @surface_errors("Failed to swap exact output single hop")
    async def swap_exact_output_single_hop(
        self,
        token_in_address: str,
        token_out_address: str,
        amount_out: int,
        amount_in_maximum: int,
        limit_sqrt_price: int = 0,
        deadline: int = DEFAULT_DEADLINE_SECONDS,
    ) -> str:
        token_in, token_out = _distinct(token_in_address, token_out_address)
        recipient = await self.port.get_own_address()

        def build() -> ContractCall:
            params = (
                token_in,
                token_out,
                recipient,
                deadline_in(deadline),
                int(amount_out),
                int(amount_in_maximum),
                int(limit_sqrt_price),
            )
            return ContractCall(
                self.router_address,
                KIM_SWAP_ROUTER_ABI,
                "exactOutputSingle",
                (params,),
            )

        steps = await approve_then_act(
            self.port,
            [ApprovalIntent(token_in, self.router_address, int(amount_in_maximum))],
            build,
        )
        return steps[-1].tx_hash

    async def _path_decimals(self, path: SwapPath) -> tuple[int, int]:
        resolver = TokenResolver(self.port, self.chain_id)
        dec_in, dec_out = await asyncio.gather(
            resolver.decimals(path.token_in), resolver.decimals(path.token_out)
        )
        return dec_in, dec_out

    @surface_errors("Failed to swap exact input multi hop")
    async def swap_exact_input_multi_hop(
        self,
        path: SwapPath,
        recipient: str,
        amount_in: str,
        amount_out_minimum: str = "0",
        deadline: int = DEFAULT_DEADLINE_SECONDS,
    ) -> str:
        encoded = encode_path(path)
        recipient_address = await self.port.resolve_address(recipient)
        dec_in, dec_out = await self._path_decimals(path)
        raw_in = _to_raw(amount_in, dec_in, "amount_in")
        raw_out_min = _to_raw(amount_out_minimum, dec_out, "amount_out_minimum")
        token_in = to_checksum_address(path.token_in)

        def build() -> ContractCall:
            params = (
                encoded,
                recipient_address,
                deadline_in(deadline),
                raw_in,
                raw_out_min,
            )
            return ContractCall(
                self.router_address, KIM_SWAP_ROUTER_ABI, "exactInput", (params,)
            )

        steps = await approve_then_act(
            self.port,
            [ApprovalIntent(token_in, self.router_address, raw_in)],
            build,
        )
        return steps[-1].tx_hash

    @surface_errors("Failed to swap exact output multi hop")
    async def swap_exact_output_multi_hop(
        self,
        path: SwapPath,
        recipient: str,
        amount_out: str,
        amount_in_maximum: str,
        deadline: int = DEFAULT_DEADLINE_SECONDS,
    ) -> str:
        # Exact-output routing walks the path from the output token back.
        encoded = encode_path(path, reverse=True)
        recipient_address = await self.port.resolve_address(recipient)
        dec_in, dec_out = await self._path_decimals(path)
        raw_out = _to_raw(amount_out, dec_out, "amount_out")
        raw_in_max = _to_raw(amount_in_maximum, dec_in, "amount_in_maximum")
        token_in = to_checksum_address(path.token_in)

        def build() -> ContractCall:
            params = (
                encoded,
                recipient_address,
                deadline_in(deadline),
                raw_out,
                raw_in_max,
            )
            return ContractCall(
                self.router_address, KIM_SWAP_ROUTER_ABI, "exactOutput", (params,)
            )

        steps = await approve_then_act(
            self.port,
            [ApprovalIntent(token_in, self.router_address, raw_in_max)],
            build,
        )
        return steps[-1].tx_hash

    # Positions

    async def _pool_address(self, token_a: str, token_b: str) -> str:
        pool = await self.port.read(
            self.factory_address, KIM_FACTORY_ABI, "poolByPair", [token_a, token_b]
        )
        if not pool or str(pool).lower() == ZERO_ADDRESS:
            raise ValidationError(f"No KIM pool exists for {token_a}/{token_b}")
        return to_checksum_address(str(pool))

    @surface_errors("Failed to mint position")
    async def mint_position(
        self,
        token0_address: str,
        token1_address: str,
        amount0_desired: int,
        amount1_desired: int,
        risk_level: int,
        deadline: int = DEFAULT_DEADLINE_SECONDS,
    ) -> str:
        token_a, token_b = _distinct(token0_address, token1_address)
        pool_address = await self._pool_address(token_a, token_b)
        pool_token0 = await self.port.read(pool_address, KIM_POOL_ABI, "token0", [])
        pair = reconcile_with_pool(
            token_a, token_b, amount0_desired, amount1_desired, str(pool_token0)
        )

        optimal0, optimal1, tick_lower, tick_upper = await self.port.read(
            self.calculator_address,
            KIM_CALCULATOR_ABI,
            "calculateOptimalAmounts",
            [pool_address, pair.amount0, pair.amount1, int(risk_level)],
        )
        self.logger.info(
            f"Calculator suggests {optimal0}/{optimal1} in [{tick_lower}, {tick_upper}] "
            f"for pool {pool_address}"
        )
        owner = await self.port.get_own_address()

        def build() -> ContractCall:
            params = (
                pair.token0,
                pair.token1,
                int(tick_lower),
                int(tick_upper),
                int(optimal0),
                int(optimal1),
                0,
                0,
                owner,
                deadline_in(deadline),
            )
            return ContractCall(
                self.npm_address, KIM_POSITION_MANAGER_ABI, "mint", (params,)
            )

        steps = await approve_then_act(
            self.port,
            [
                ApprovalIntent(pair.token0, self.npm_address, int(optimal0)),
                ApprovalIntent(pair.token1, self.npm_address, int(optimal1)),
            ],
            build,
        )
        return steps[-1].tx_hash

    @surface_errors("Failed to increase liquidity")
    async def increase_liquidity(
        self,
        token_id: int,
        token0_address: str,
        token1_address: str,
        amount0_desired: int,
        amount1_desired: int,
    ) -> str:
        token_a, token_b = _distinct(token0_address, token1_address)
        pair = sort_pair(token_a, token_b, amount0_desired, amount1_desired)

        def build() -> ContractCall:
            params = (
                int(token_id),
                pair.amount0,
                pair.amount1,
                0,
                0,
                deadline_in(LIQUIDITY_DEADLINE_SECONDS),
            )
            return ContractCall(
                self.npm_address,
                KIM_POSITION_MANAGER_ABI,
                "increaseLiquidity",
                (params,),
            )

        steps = await approve_then_act(
            self.port,
            [
                ApprovalIntent(pair.token0, self.npm_address, pair.amount0),
                ApprovalIntent(pair.token1, self.npm_address, pair.amount1),
            ],
            build,
        )
        return steps[-1].tx_hash

    @surface_errors("Failed to decrease liquidity")
    async def decrease_liquidity(self, token_id: int, percentage: int) -> str:
        validate_percentage(percentage)

        raw = await self.port.read(
            self.npm_address, KIM_POSITION_MANAGER_ABI, "positions", [int(token_id)]
        )
        position = parse_position_struct(raw)
        liquidity = liquidity_to_remove(position.liquidity, percentage)
        self.logger.info(
            f"Removing {liquidity} of {position.liquidity} liquidity from #{token_id}"
        )

        params = (
            int(token_id),
            liquidity,
            0,
            0,
            deadline_in(LIQUIDITY_DEADLINE_SECONDS),
        )
        result = await self.port.send_transaction(
            self.npm_address, KIM_POSITION_MANAGER_ABI, "decreaseLiquidity", [params]
        )
        return result.hash

    @surface_errors("Failed to collect")
    async def collect(self, token_id: int) -> str:
        recipient = await self.port.get_own_address()
        params = (int(token_id), recipient, MAX_UINT128, MAX_UINT128)
        result = await self.port.send_transaction(
            self.npm_address, KIM_POSITION_MANAGER_ABI, "collect", [params]
        )
        return result.hash

    @surface_errors("Failed to burn")
    async def burn(self, token_id: int) -> str:
        result = await self.port.send_transaction(
            self.npm_address, KIM_POSITION_MANAGER_ABI, "burn", [int(token_id)]
        )
        return result.hash

    # Enumeration

    async def _read_pool(
        self, pool_address: str, resolver: TokenResolver, token0: str, token1: str
    ) -> Pool:
        t0, t1, global_state, liquidity, tick_spacing = await asyncio.gather(
            resolver.resolve(token0),
            resolver.resolve(token1),
            self.port.read(pool_address, KIM_POOL_ABI, "globalState", []),
            self.port.read(pool_address, KIM_POOL_ABI, "liquidity", []),
            self.port.read(pool_address, KIM_POOL_ABI, "tickSpacing", []),
        )
        # globalState() -> (price, tick, lastFee, pluginConfig, communityFee, unlocked)
        return Pool(
            token0=t0,
            token1=t1,
            fee=int(global_state[2]),
            sqrt_price_x96=int(global_state[0]),
            liquidity=int(liquidity),
            tick_current=int(global_state[1]),
            tick_spacing=int(tick_spacing),
            tick_data_provider=TickDataProvider(self.port, pool_address),
        )

    async def _lp_token_info(self, token_id: int, resolver: TokenResolver) -> LPTokenInfo:
        raw = await self.port.read(
            self.npm_address, KIM_POSITION_MANAGER_ABI, "positions", [token_id]
        )
        data = parse_position_struct(raw)
        pool_address = await self._pool_address(data.token0, data.token1)
        pool = await self._read_pool(pool_address, resolver, data.token0, data.token1)
        position = Position(
            pool=pool,
            tick_lower=data.tick_lower,
            tick_upper=data.tick_upper,
            liquidity=data.liquidity,
            token_id=token_id,
        )
        apy = await estimate_position_apy(position, pool_address, self.telemetry)
        return LPTokenInfo(
            token_id=token_id, apy=apy, position=position, pool_address=pool_address
        )

    @surface_errors("Failed to get LP tokens", fallback=ChainReadError)
    async def get_lp_tokens(self, user_address: str) -> list[LPTokenInfo]:
        owner = await self.port.resolve_address(user_address)
        balance = int(
            await self.port.read(
                self.npm_address, KIM_POSITION_MANAGER_ABI, "balanceOf", [owner]
            )
        )
        token_ids: list[int] = []
        for index in range(balance):
            token_id = await self.port.read(
                self.npm_address,
                KIM_POSITION_MANAGER_ABI,
                "tokenOfOwnerByIndex",
                [owner, index],
            )
            token_ids.append(int(token_id))

        resolver = TokenResolver(self.port, self.chain_id)
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(self._lp_token_info(tid, resolver))
                    for tid in token_ids
                ]
        except ExceptionGroup as group:
            # first failure wins; siblings were cancelled by the group
            raise group.exceptions[0] from None
        return [task.result() for task in tasks]
