"""Algebra Integral pool math as plain records and free functions.

Token, Pool and Position are immutable snapshots read fresh for each
operation. Amount math mirrors the on-chain integer formulas so a
``mint_amounts`` result matches what the position manager would pull.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, getcontext
from typing import Any

from eth_utils import to_checksum_address

from kim_paths.core.constants.base import DEFAULT_DEADLINE_SECONDS

getcontext().prec = 64

Q96 = 1 << 96
Q192 = 1 << 192
Q32 = 1 << 32
MIN_TICK = -887272
MAX_TICK = 887272
MAX_UINT128 = 2**128 - 1


@dataclass(frozen=True)
class Token:
    chain_id: int
    address: str
    decimals: int


@dataclass(frozen=True)
class Pool:
    """Snapshot of pool state read for one operation.

    ``tick_data_provider`` gives pool math outside this package (swap
    simulation across initialized ticks) on-demand access to the pool's tick
    tree. Nothing in the amount or price functions here reads it.
    """

    token0: Token
    token1: Token
    fee: int
    sqrt_price_x96: int
    liquidity: int
    tick_current: int
    tick_spacing: int
    tick_data_provider: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if int(self.token0.address, 16) >= int(self.token1.address, 16):
            raise ValueError("Pool tokens must be ordered token0 < token1")


@dataclass(frozen=True)
class Position:
    pool: Pool
    tick_lower: int
    tick_upper: int
    liquidity: int
    token_id: int | None = None

    def __post_init__(self) -> None:
        if self.tick_lower >= self.tick_upper:
            raise ValueError(
                f"tick_lower {self.tick_lower} must be below tick_upper {self.tick_upper}"
            )


@dataclass(frozen=True)
class PositionData:
    """Decoded ``positions(tokenId)`` result from the position manager."""

    nonce: int
    operator: str
    token0: str
    token1: str
    tick_lower: int
    tick_upper: int
    liquidity: int
    fee_growth_inside0_last_x128: int
    fee_growth_inside1_last_x128: int
    tokens_owed0: int
    tokens_owed1: int


def parse_position_struct(raw: tuple | list) -> PositionData:
    return PositionData(
        nonce=int(raw[0]),
        operator=to_checksum_address(raw[1]),
        token0=to_checksum_address(raw[2]),
        token1=to_checksum_address(raw[3]),
        tick_lower=int(raw[4]),
        tick_upper=int(raw[5]),
        liquidity=int(raw[6]),
        fee_growth_inside0_last_x128=int(raw[7]),
        fee_growth_inside1_last_x128=int(raw[8]),
        tokens_owed0=int(raw[9]),
        tokens_owed1=int(raw[10]),
    )


def sqrt_price_x96_from_tick(tick: int) -> int:
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick {tick} out of range [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = abs(tick)
    ratio = (
        0xFFFCB933BD6FAD37AA2D162D1A594001
        if abs_tick & 0x1
        else 0x100000000000000000000000000000000
    )
    for bit, magic in _TICK_MAGIC:
        if abs_tick & bit:
            ratio = (ratio * magic) >> 128

    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio

    # Round up so the price never undershoots the tick boundary.
    return (ratio >> 32) + (1 if ratio % Q32 else 0)


_TICK_MAGIC = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def amount0_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    lo, hi = sorted((int(sqrt_a), int(sqrt_b)))
    if lo <= 0:
        raise ValueError("sqrt price must be positive")
    numerator = (int(liquidity) << 96) * (hi - lo)
    if round_up:
        return _ceil_div(_ceil_div(numerator, hi), lo)
    return numerator // hi // lo


def amount1_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    lo, hi = sorted((int(sqrt_a), int(sqrt_b)))
    product = int(liquidity) * (hi - lo)
    if round_up:
        return _ceil_div(product, Q96)
    return product // Q96


def amounts_for_liquidity(
    sqrt_p: int, sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool = False
) -> tuple[int, int]:
    lo, hi = sorted((int(sqrt_a), int(sqrt_b)))
    if sqrt_p <= lo:
        return amount0_delta(lo, hi, liquidity, round_up), 0
    if sqrt_p < hi:
        return (
            amount0_delta(sqrt_p, hi, liquidity, round_up),
            amount1_delta(lo, sqrt_p, liquidity, round_up),
        )
    return 0, amount1_delta(lo, hi, liquidity, round_up)


def _position_amounts(position: Position, round_up: bool) -> tuple[int, int]:
    pool = position.pool
    sqrt_lower = sqrt_price_x96_from_tick(position.tick_lower)
    sqrt_upper = sqrt_price_x96_from_tick(position.tick_upper)
    if pool.tick_current < position.tick_lower:
        return amount0_delta(sqrt_lower, sqrt_upper, position.liquidity, round_up), 0
    if pool.tick_current < position.tick_upper:
        return (
            amount0_delta(
                pool.sqrt_price_x96, sqrt_upper, position.liquidity, round_up
            ),
            amount1_delta(
                sqrt_lower, pool.sqrt_price_x96, position.liquidity, round_up
            ),
        )
    return 0, amount1_delta(sqrt_lower, sqrt_upper, position.liquidity, round_up)


def mint_amounts(position: Position) -> tuple[int, int]:
    """Base-unit amounts needed to mint ``position`` at the current price, rounded up."""
    return _position_amounts(position, round_up=True)


def position_amounts(position: Position) -> tuple[int, int]:
    """Base-unit amounts the position is worth right now, rounded down."""
    return _position_amounts(position, round_up=False)


def token0_price(pool: Pool) -> Decimal:
    """Price of token0 in token1, adjusted for decimals."""
    raw = Decimal(pool.sqrt_price_x96) ** 2 / Decimal(Q192)
    return raw * Decimal(10) ** (pool.token0.decimals - pool.token1.decimals)


def token1_price(pool: Pool) -> Decimal:
    price = token0_price(pool)
    if price == 0:
        return Decimal(0)
    return Decimal(1) / price


def to_significant(value: Decimal, digits: int = 6) -> Decimal:
    if value == 0:
        return Decimal(0)
    exponent = value.adjusted() - digits + 1
    return value.quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_UP)


def deadline(seconds: int = DEFAULT_DEADLINE_SECONDS) -> int:
    return int(time.time()) + int(seconds)
