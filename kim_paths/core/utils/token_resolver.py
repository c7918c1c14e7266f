from __future__ import annotations

import asyncio

from eth_utils import to_checksum_address

from kim_paths.core.constants.erc20_abi import ERC20_ABI
from kim_paths.core.utils.algebra_math import Token
from kim_paths.core.utils.chain_port import ChainAccessPort


class TokenResolver:
    """Per-operation token metadata lookups.

    Concurrent requests for the same address share one in-flight read. Create a
    fresh resolver for each operation; nothing is kept between operations.
    """

    def __init__(self, port: ChainAccessPort, chain_id: int):
        self.port = port
        self.chain_id = int(chain_id)
        self._pending: dict[str, asyncio.Task[int]] = {}

    async def _read_decimals(self, address: str) -> int:
        return int(await self.port.read(address, ERC20_ABI, "decimals", []))

    async def decimals(self, address: str) -> int:
        key = to_checksum_address(address)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._read_decimals(key))
            self._pending[key] = task
        return await task

    async def resolve(self, address: str) -> Token:
        key = to_checksum_address(address)
        return Token(
            chain_id=self.chain_id, address=key, decimals=await self.decimals(key)
        )
