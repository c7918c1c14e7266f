from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kim_paths.core.constants.base import DEFAULT_DEADLINE_SECONDS
from kim_paths.core.utils.algebra_math import Position, position_amounts
from kim_paths.core.utils.units import from_erc20_raw


class KimParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GetSwapRouterAddressParams(KimParams):
    pass


class ExactInputSingleParams(KimParams):
    token_in_address: str = Field(description="Address of the token being sold")
    token_out_address: str = Field(description="Address of the token being bought")
    amount_in: int = Field(ge=0, description="Input amount in base units")
    amount_out_minimum: int = Field(
        default=0, ge=0, description="Minimum output amount in base units"
    )
    limit_sqrt_price: int = Field(
        default=0, ge=0, description="Price limit as sqrtPriceX96; 0 for none"
    )
    deadline: int = Field(
        default=DEFAULT_DEADLINE_SECONDS,
        gt=0,
        description="Seconds from now until the swap expires",
    )


class ExactOutputSingleParams(KimParams):
    token_in_address: str = Field(description="Address of the token being sold")
    token_out_address: str = Field(description="Address of the token being bought")
    amount_out: int = Field(ge=0, description="Exact output amount in base units")
    amount_in_maximum: int = Field(
        ge=0, description="Maximum input amount in base units"
    )
    limit_sqrt_price: int = Field(default=0, ge=0)
    deadline: int = Field(default=DEFAULT_DEADLINE_SECONDS, gt=0)


class SwapPathParams(KimParams):
    token_in: str
    token_out: str
    intermediate_tokens: list[str] = Field(default_factory=list)
    fees: list[int] = Field(description="Fee tier of each hop, input to output")


class ExactInputParams(KimParams):
    path: SwapPathParams
    recipient: str = Field(description="Recipient address or wallet label")
    amount_in: str = Field(description="Input amount in token units, e.g. '1.5'")
    amount_out_minimum: str = Field(default="0")
    deadline: int = Field(default=DEFAULT_DEADLINE_SECONDS, gt=0)


class ExactOutputParams(KimParams):
    path: SwapPathParams
    recipient: str = Field(description="Recipient address or wallet label")
    amount_out: str = Field(description="Output amount in token units, e.g. '100'")
    amount_in_maximum: str
    deadline: int = Field(default=DEFAULT_DEADLINE_SECONDS, gt=0)


class MintParams(KimParams):
    token0_address: str
    token1_address: str
    amount0_desired: int = Field(ge=0, description="Base units of token0_address")
    amount1_desired: int = Field(ge=0, description="Base units of token1_address")
    risk_level: int = Field(ge=0, le=255, description="Risk calculator profile")
    deadline: int = Field(default=DEFAULT_DEADLINE_SECONDS, gt=0)


class IncreaseLiquidityParams(KimParams):
    token_id: int = Field(ge=0)
    token0_address: str
    token1_address: str
    amount0_desired: int = Field(ge=0)
    amount1_desired: int = Field(ge=0)


class DecreaseLiquidityParams(KimParams):
    token_id: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100, description="Share of liquidity to remove")


class TokenIdParams(KimParams):
    token_id: int = Field(ge=0)


class GetLPTokensParams(KimParams):
    user_address: str = Field(description="Owner address or wallet label")


@dataclass(frozen=True)
class LPTokenInfo:
    token_id: int
    apy: float
    position: Position
    pool_address: str

    def to_dict(self) -> dict[str, Any]:
        amount0, amount1 = position_amounts(self.position)
        pool = self.position.pool
        # uint128 liquidity and base-unit amounts overflow JSON number precision.
        return {
            "token_id": self.token_id,
            "apy": self.apy,
            "pool_address": self.pool_address,
            "token0": pool.token0.address,
            "token1": pool.token1.address,
            "tick_lower": self.position.tick_lower,
            "tick_upper": self.position.tick_upper,
            "liquidity": str(self.position.liquidity),
            "amount0": str(amount0),
            "amount1": str(amount1),
            "amount0_tokens": str(from_erc20_raw(amount0, pool.token0.decimals)),
            "amount1_tokens": str(from_erc20_raw(amount1, pool.token1.decimals)),
        }
