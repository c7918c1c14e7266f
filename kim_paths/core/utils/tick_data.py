from __future__ import annotations

from eth_utils import to_checksum_address

from kim_paths.core.constants.kim_abi import KIM_POOL_ABI
from kim_paths.core.utils.chain_port import ChainAccessPort


class TickDataProvider:
    """On-demand tick reads for a single pool.

    Every call is a fresh chain read; nothing is prefetched or kept.
    """

    def __init__(self, port: ChainAccessPort, pool_address: str):
        self.port = port
        self.pool_address = to_checksum_address(pool_address)

    async def get_net_liquidity_at_tick(self, tick: int) -> int:
        raw = await self.port.read(self.pool_address, KIM_POOL_ABI, "ticks", [int(tick)])
        # ticks() -> (liquidityTotal, liquidityDelta, prevTick, nextTick, ...)
        return int(raw[1])

    async def next_initialized_tick(self, tick: int, lte: bool) -> tuple[int, bool]:
        # The pool tracks its nearest initialized neighbours globally, so the
        # input tick only selects the direction.
        fn_name = "prevTickGlobal" if lte else "nextTickGlobal"
        value = await self.port.read(self.pool_address, KIM_POOL_ABI, fn_name, [])
        return int(value), True
