from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from eth_utils import to_checksum_address

from kim_paths.adapters.kim_adapter import KimAdapter
from kim_paths.adapters.kim_adapter.adapter import liquidity_to_remove
from kim_paths.core.errors import (
    ChainReadError,
    ChainWriteError,
    TelemetryUnavailable,
    ValidationError,
)
from kim_paths.core.utils.algebra_math import MAX_UINT128, sqrt_price_x96_from_tick
from kim_paths.core.utils.swap_path import SwapPath
from kim_paths.testing.fake_chain import FAKE_OWNER, FakeChainPort

NOW = 1_700_000_000
OWNER = to_checksum_address(FAKE_OWNER)

TOKEN_LOW = "0x1111111111111111111111111111111111111111"
TOKEN_MID = "0x5555555555555555555555555555555555555555"
TOKEN_HIGH = "0x3333333333333333333333333333333333333333"
POOL = "0x4444444444444444444444444444444444444444"
TREASURY = "0x6666666666666666666666666666666666666666"
ZERO = "0x0000000000000000000000000000000000000000"

DECIMALS = {TOKEN_LOW: 6, TOKEN_MID: 18, TOKEN_HIGH: 18}


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    monkeypatch.setattr("kim_paths.core.utils.algebra_math.time.time", lambda: NOW)


def _positions_struct(liquidity: int) -> tuple:
    return (0, ZERO, TOKEN_LOW, TOKEN_HIGH, -600, 600, liquidity, 0, 0, 0, 0)


def _port(**reads) -> FakeChainPort:
    base = {
        "decimals": lambda addr, _args: DECIMALS[addr],
        "poolByPair": POOL,
        "token0": TOKEN_LOW,
        "globalState": (sqrt_price_x96_from_tick(0), 0, 500, 0, 0, True),
        "liquidity": 4 * 10**18,
        "tickSpacing": 60,
    }
    base.update(reads)
    return FakeChainPort(reads=base, labels={"treasury": TREASURY})


def _adapter(port: FakeChainPort, telemetry=None) -> KimAdapter:
    if telemetry is None:
        telemetry = AsyncMock()
        telemetry.get_pool_day_fees_usd.return_value = 0.0
        telemetry.get_native_price_usd.return_value = 2000.0
    return KimAdapter({}, port=port, telemetry=telemetry)


@pytest.mark.asyncio
async def test_swap_router_address_is_deployment_constant():
    adapter = _adapter(_port())
    assert await adapter.get_swap_router_address() == adapter.router_address


def test_default_port_requires_strategy_wallet():
    with pytest.raises(ValueError, match="strategy_wallet.address"):
        KimAdapter({}, telemetry=AsyncMock())


@pytest.mark.asyncio
async def test_exact_input_single_hop_approves_then_swaps():
    port = _port()
    adapter = _adapter(port)

    tx_hash = await adapter.swap_exact_input_single_hop(
        TOKEN_LOW, TOKEN_HIGH, 1_000, amount_out_minimum=900
    )

    assert port.sent_functions() == ["approve", "exactInputSingle"]
    assert port.sent[0].contract_address == TOKEN_LOW
    assert port.sent[0].args == (adapter.router_address, 1_000)
    assert port.sent[1].args == (
        (TOKEN_LOW, TOKEN_HIGH, OWNER, NOW + 300, 1_000, 900, 0),
    )
    assert tx_hash == f"0x{2:064x}"


@pytest.mark.asyncio
async def test_exact_output_single_hop_approves_maximum_input():
    port = _port()
    adapter = _adapter(port)

    await adapter.swap_exact_output_single_hop(
        TOKEN_LOW, TOKEN_HIGH, 500, 750, deadline=120
    )

    assert port.sent[0].args == (adapter.router_address, 750)
    assert port.sent[1].function_name == "exactOutputSingle"
    assert port.sent[1].args == (
        (TOKEN_LOW, TOKEN_HIGH, OWNER, NOW + 120, 500, 750, 0),
    )


@pytest.mark.asyncio
async def test_single_hop_rejects_identical_tokens():
    port = _port()

    with pytest.raises(ValidationError, match="same"):
        await _adapter(port).swap_exact_input_single_hop(TOKEN_LOW, TOKEN_LOW, 1)

    assert port.sent == []


@pytest.mark.asyncio
async def test_exact_input_multi_hop_encodes_path_and_converts_amounts():
    port = _port()
    adapter = _adapter(port)
    path = SwapPath(TOKEN_LOW, TOKEN_HIGH, (500, 3000), (TOKEN_MID,))

    await adapter.swap_exact_input_multi_hop(
        path, "treasury", "1.5", amount_out_minimum="2"
    )

    expected_path = bytes.fromhex(
        "11" * 20 + "0001f4" + "55" * 20 + "000bb8" + "33" * 20
    )
    assert port.sent_functions() == ["approve", "exactInput"]
    assert port.sent[0].contract_address == TOKEN_LOW
    assert port.sent[0].args == (adapter.router_address, 1_500_000)
    assert port.sent[1].args == (
        (expected_path, TREASURY, NOW + 300, 1_500_000, 2 * 10**18),
    )


@pytest.mark.asyncio
async def test_exact_output_multi_hop_reverses_path():
    port = _port()
    adapter = _adapter(port)
    path = SwapPath(TOKEN_LOW, TOKEN_HIGH, (500, 3000), (TOKEN_MID,))

    await adapter.swap_exact_output_multi_hop(path, TREASURY, "10", "25.25")

    expected_path = bytes.fromhex(
        "33" * 20 + "000bb8" + "55" * 20 + "0001f4" + "11" * 20
    )
    assert port.sent[0].args == (adapter.router_address, 25_250_000)
    assert port.sent[1].function_name == "exactOutput"
    assert port.sent[1].args == (
        (expected_path, TREASURY, NOW + 300, 10 * 10**18, 25_250_000),
    )


@pytest.mark.asyncio
async def test_multi_hop_rejects_bad_path_before_any_call():
    port = _port()
    path = SwapPath(TOKEN_LOW, TOKEN_HIGH, (500,), (TOKEN_MID,))

    with pytest.raises(ValidationError, match="Failed to swap exact input multi hop"):
        await _adapter(port).swap_exact_input_multi_hop(path, TREASURY, "1")

    assert port.read_calls == []
    assert port.sent == []


@pytest.mark.asyncio
async def test_multi_hop_rejects_unknown_recipient():
    port = _port()
    path = SwapPath(TOKEN_LOW, TOKEN_HIGH, (500,))

    with pytest.raises(ValidationError, match="Unknown address or wallet label"):
        await _adapter(port).swap_exact_input_multi_hop(path, "nobody", "1")

    assert port.sent == []


@pytest.mark.asyncio
async def test_mint_reorders_to_pool_token_order():
    calculator_args: list = []

    def calculator(_addr, args):
        calculator_args.append(args)
        return (700, 300, -1200, 1260)

    port = _port(calculateOptimalAmounts=calculator)
    adapter = _adapter(port)

    await adapter.mint_position(TOKEN_HIGH, TOKEN_LOW, 1_000, 2_000, risk_level=2)

    # token1 of the caller is the pool's token0, so amounts swap too.
    assert calculator_args == [[POOL, 2_000, 1_000, 2]]
    assert port.sent_functions() == ["approve", "approve", "mint"]
    assert port.sent[0].contract_address == TOKEN_LOW
    assert port.sent[0].args == (adapter.npm_address, 700)
    assert port.sent[1].contract_address == TOKEN_HIGH
    assert port.sent[1].args == (adapter.npm_address, 300)
    assert port.sent[2].args == (
        (TOKEN_LOW, TOKEN_HIGH, -1200, 1260, 700, 300, 0, 0, OWNER, NOW + 300),
    )


@pytest.mark.asyncio
async def test_mint_keeps_order_matching_pool():
    calculator_args: list = []

    def calculator(_addr, args):
        calculator_args.append(args)
        return (1, 2, -60, 60)

    port = _port(calculateOptimalAmounts=calculator)

    await _adapter(port).mint_position(TOKEN_LOW, TOKEN_HIGH, 5, 6, risk_level=0)

    assert calculator_args == [[POOL, 5, 6, 0]]


@pytest.mark.asyncio
async def test_mint_without_pool_fails_before_writes():
    port = _port(poolByPair=ZERO)

    with pytest.raises(ValidationError, match="Failed to mint position: No KIM pool"):
        await _adapter(port).mint_position(TOKEN_LOW, TOKEN_HIGH, 1, 1, risk_level=1)

    assert port.sent == []


@pytest.mark.asyncio
async def test_increase_liquidity_sorts_pair_with_short_deadline():
    port = _port()
    adapter = _adapter(port)

    await adapter.increase_liquidity(7, TOKEN_HIGH, TOKEN_LOW, 30, 10)

    assert port.sent_functions() == ["approve", "approve", "increaseLiquidity"]
    assert port.sent[0].contract_address == TOKEN_LOW
    assert port.sent[0].args == (adapter.npm_address, 10)
    assert port.sent[1].args == (adapter.npm_address, 30)
    assert port.sent[2].args == ((7, 10, 30, 0, 0, NOW + 60),)


@pytest.mark.asyncio
async def test_decrease_liquidity_removes_percentage():
    port = _port(positions=_positions_struct(1_001))

    await _adapter(port).decrease_liquidity(9, 50)

    assert port.reads_of("positions")[0].args == (9,)
    assert port.sent_functions() == ["decreaseLiquidity"]
    assert port.sent[0].args == ((9, 500, 0, 0, NOW + 60),)


@pytest.mark.parametrize("percentage", [-1, 101, 2.5, True])
@pytest.mark.asyncio
async def test_decrease_liquidity_rejects_bad_percentage(percentage):
    port = _port(positions=_positions_struct(1_000))

    with pytest.raises(ValidationError, match="Failed to decrease liquidity"):
        await _adapter(port).decrease_liquidity(9, percentage)

    assert port.read_calls == []
    assert port.sent == []


def test_liquidity_to_remove_bounds():
    assert liquidity_to_remove(1_000, 0) == 0
    assert liquidity_to_remove(1_000, 100) == 1_000
    assert liquidity_to_remove(999, 33) == 329


@pytest.mark.asyncio
async def test_decrease_revert_keeps_hash_and_prefix():
    port = _port(positions=_positions_struct(1_000))
    port.revert_on.add("decreaseLiquidity")

    with pytest.raises(ChainWriteError) as info:
        await _adapter(port).decrease_liquidity(9, 100)

    assert info.value.summary.startswith("Failed to decrease liquidity: ")
    assert info.value.tx_hash == "0xdead"


@pytest.mark.asyncio
async def test_collect_requests_everything_owed():
    port = _port()

    await _adapter(port).collect(3)

    assert port.sent[0].function_name == "collect"
    assert port.sent[0].args == ((3, OWNER, MAX_UINT128, MAX_UINT128),)


@pytest.mark.asyncio
async def test_burn_sends_token_id():
    port = _port()

    tx_hash = await _adapter(port).burn(3)

    assert port.sent[0].function_name == "burn"
    assert port.sent[0].args == (3,)
    assert tx_hash == f"0x{1:064x}"


@pytest.mark.asyncio
async def test_burn_revert_is_prefixed():
    port = _port()
    port.revert_on.add("burn")

    with pytest.raises(ChainWriteError, match="Failed to burn: burn reverted"):
        await _adapter(port).burn(3)


@pytest.mark.asyncio
async def test_get_lp_tokens_enumerates_in_index_order():
    ids = [21, 34]
    port = _port(
        balanceOf=2,
        tokenOfOwnerByIndex=lambda _addr, args: ids[args[1]],
        positions=lambda _addr, args: _positions_struct(10**18 + args[0]),
    )
    telemetry = AsyncMock()
    telemetry.get_pool_day_fees_usd.side_effect = TelemetryUnavailable("down")
    adapter = _adapter(port, telemetry)

    tokens = await adapter.get_lp_tokens("treasury")

    index_reads = port.reads_of("tokenOfOwnerByIndex")
    assert [c.args for c in index_reads] == [(TREASURY, 0), (TREASURY, 1)]
    assert len(port.reads_of("positions")) == 2
    assert [t.token_id for t in tokens] == ids
    assert [t.position.liquidity for t in tokens] == [10**18 + 21, 10**18 + 34]
    assert all(t.apy == 0.0 for t in tokens)
    assert tokens[0].pool_address == POOL
    assert tokens[0].position.pool.fee == 500
    assert tokens[0].position.pool.token0.decimals == 6
    # one decimals read per token for the whole enumeration
    assert len(port.reads_of("decimals")) == 2
    provider = tokens[0].position.pool.tick_data_provider
    assert provider.pool_address == POOL


@pytest.mark.asyncio
async def test_get_lp_tokens_with_no_positions():
    port = _port(balanceOf=0)

    assert await _adapter(port).get_lp_tokens(TREASURY) == []
    assert port.reads_of("tokenOfOwnerByIndex") == []


@pytest.mark.asyncio
async def test_get_lp_tokens_read_failure_is_prefixed():
    port = _port()

    with pytest.raises(ChainReadError, match="Failed to get LP tokens: balanceOf"):
        await _adapter(port).get_lp_tokens(TREASURY)


@pytest.mark.asyncio
async def test_lp_token_info_serializes_large_numbers_as_strings():
    port = _port(
        balanceOf=1,
        tokenOfOwnerByIndex=5,
        positions=_positions_struct(10**18),
    )

    (info,) = await _adapter(port).get_lp_tokens(TREASURY)
    data = info.to_dict()

    assert data["token_id"] == 5
    assert data["liquidity"] == str(10**18)
    assert data["token0"] == TOKEN_LOW
    assert data["tick_lower"] == -600
    assert isinstance(data["amount0"], str)


@pytest.mark.asyncio
async def test_get_lp_tokens_survives_unexpected_telemetry_errors():
    port = _port(
        balanceOf=1,
        tokenOfOwnerByIndex=5,
        positions=_positions_struct(10**18),
    )
    telemetry = AsyncMock()
    telemetry.get_pool_day_fees_usd.return_value = 12.5
    telemetry.get_native_price_usd.side_effect = httpx.InvalidURL("bad url")

    (info,) = await _adapter(port, telemetry).get_lp_tokens(TREASURY)

    assert info.token_id == 5
    assert info.apy == 0.0


@pytest.mark.asyncio
async def test_get_lp_tokens_single_position_failure_is_surfaced():
    ids = [21, 34]

    def positions(_addr, args):
        if args[0] == 34:
            raise ChainReadError("positions on npm reverted")
        return _positions_struct(10**18)

    port = _port(
        balanceOf=2,
        tokenOfOwnerByIndex=lambda _addr, args: ids[args[1]],
        positions=positions,
    )

    with pytest.raises(
        ChainReadError, match="Failed to get LP tokens: positions on npm reverted"
    ):
        await _adapter(port).get_lp_tokens(TREASURY)
