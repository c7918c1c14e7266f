"""Position APY from pool state plus daily fee telemetry."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Protocol

from loguru import logger

from kim_paths.core.constants.base import DAYS_PER_YEAR
from kim_paths.core.utils.algebra_math import (
    Position,
    mint_amounts,
    to_significant,
    token0_price,
    token1_price,
)

PRICE_SIGNIFICANT_DIGITS = 6


class FeeTelemetry(Protocol):
    async def get_native_price_usd(self) -> float: ...

    async def get_pool_day_fees_usd(self, pool_address: str) -> float: ...


def estimate_apy(
    position: Position,
    daily_fee_usd: float | None,
    native_price_usd: float,
) -> float:
    """Annualised fee yield for ``position`` in percent.

    TVL is valued from the raw mint amounts times the decimal-adjusted pool
    prices and the native token's USD price. Returns 0.0 when there is no fee,
    no pool liquidity, no TVL or a non-finite input.
    """
    if not daily_fee_usd or not math.isfinite(daily_fee_usd):
        return 0.0
    if not math.isfinite(native_price_usd):
        return 0.0
    pool = position.pool
    if pool.liquidity == 0:
        return 0.0

    liquidity_share = Decimal(position.liquidity) / Decimal(pool.liquidity)
    annualized = Decimal(str(daily_fee_usd)) * DAYS_PER_YEAR

    amount0, amount1 = mint_amounts(position)
    price0 = to_significant(token0_price(pool), PRICE_SIGNIFICANT_DIGITS)
    price1 = to_significant(token1_price(pool), PRICE_SIGNIFICANT_DIGITS)
    native = Decimal(str(native_price_usd))
    tvl = Decimal(amount0) * price0 * native + Decimal(amount1) * price1 * native
    if tvl == 0:
        return 0.0

    apy = float(annualized * liquidity_share / tvl * 100)
    return apy if math.isfinite(apy) else 0.0


async def estimate_position_apy(
    position: Position, pool_address: str, telemetry: FeeTelemetry
) -> float:
    """Fetch telemetry and estimate APY, degrading to 0.0 when data is missing."""
    try:
        daily_fee = await telemetry.get_pool_day_fees_usd(pool_address)
        if not daily_fee:
            return 0.0
        native_price = await telemetry.get_native_price_usd()
        return estimate_apy(position, daily_fee, native_price)
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"APY unavailable for position {position.token_id}: {exc}")
        return 0.0
