from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kim_paths.core.config import CONFIG, set_config
from kim_paths.core.constants.erc20_abi import ERC20_ABI
from kim_paths.core.errors import ChainReadError, ChainWriteError, ValidationError
from kim_paths.core.utils.chain_port import (
    TxResult,
    Web3ChainPort,
    resolve_address_or_label,
)
from kim_paths.core.utils.transaction import TransactionRevertedError

OWNER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
TOKEN = "0x1111111111111111111111111111111111111111"
MODULE = "kim_paths.core.utils.chain_port"


@pytest.fixture
def wallets_config():
    saved = dict(CONFIG)
    set_config(
        {
            "wallets": [
                {"label": "main", "address": OWNER.lower()},
                {"label": "broken", "address": "not-an-address"},
            ]
        }
    )
    yield
    set_config(saved)


def _web3_with_call(call: AsyncMock) -> MagicMock:
    fn = MagicMock()
    fn.return_value.call = call
    web3 = MagicMock()
    web3.eth.contract.return_value.functions.__getitem__.return_value = fn
    return web3


class TestResolveAddress:
    def test_checksums_raw_address(self):
        assert resolve_address_or_label(OWNER.lower()) == OWNER

    def test_resolves_wallet_label(self, wallets_config):
        assert resolve_address_or_label("main") == OWNER

    def test_label_without_valid_address(self, wallets_config):
        with pytest.raises(ValidationError, match="no valid address"):
            resolve_address_or_label("broken")

    def test_unknown_identifier(self, wallets_config):
        with pytest.raises(ValidationError, match="Unknown address"):
            resolve_address_or_label("nobody")

    def test_blank(self):
        with pytest.raises(ValidationError, match="required"):
            resolve_address_or_label("  ")


@pytest.mark.asyncio
class TestWeb3ChainPort:
    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_read_calls_contract_function(self, mock_web3_context):
        call = AsyncMock(return_value=18)
        web3 = _web3_with_call(call)
        mock_web3_context.return_value.__aenter__.return_value = web3

        port = Web3ChainPort(34443, OWNER)
        assert await port.read(TOKEN, ERC20_ABI, "decimals", []) == 18

        web3.eth.contract.return_value.functions.__getitem__.assert_called_once_with(
            "decimals"
        )
        call.assert_awaited_once_with(block_identifier="latest")

    @patch(f"{MODULE}.web3_from_chain_id")
    async def test_read_failure_is_chain_read_error(self, mock_web3_context):
        web3 = _web3_with_call(AsyncMock(side_effect=ValueError("execution reverted")))
        mock_web3_context.return_value.__aenter__.return_value = web3

        port = Web3ChainPort(34443, OWNER)
        with pytest.raises(ChainReadError, match="decimals") as exc_info:
            await port.read(TOKEN, ERC20_ABI, "decimals", [])
        assert isinstance(exc_info.value.cause, ValueError)

    async def test_send_requires_signer(self):
        port = Web3ChainPort(34443, OWNER)
        with pytest.raises(ChainWriteError, match="signing callback"):
            await port.send_transaction(TOKEN, ERC20_ABI, "approve", [OWNER, 1])

    async def test_send_returns_hash(self):
        tx = {"chainId": 34443, "from": OWNER, "to": TOKEN, "data": "0x", "value": 0}
        with (
            patch(f"{MODULE}.encode_call", AsyncMock(return_value=tx)) as encode,
            patch(f"{MODULE}.send_transaction", AsyncMock(return_value="0xabc")) as send,
        ):
            port = Web3ChainPort(34443, OWNER, AsyncMock(return_value=b"signed"))
            result = await port.send_transaction(TOKEN, ERC20_ABI, "approve", [OWNER, 1])

        assert result == TxResult(hash="0xabc")
        assert encode.call_args.kwargs["from_address"] == OWNER
        assert encode.call_args.kwargs["fn_name"] == "approve"
        send.assert_awaited_once()

    async def test_revert_is_chain_write_error(self):
        with (
            patch(f"{MODULE}.encode_call", AsyncMock(return_value={"chainId": 34443})),
            patch(
                f"{MODULE}.send_transaction",
                AsyncMock(side_effect=TransactionRevertedError("0xabc")),
            ),
        ):
            port = Web3ChainPort(34443, OWNER, AsyncMock(return_value=b"signed"))
            with pytest.raises(ChainWriteError, match="burn reverted") as exc_info:
                await port.send_transaction(TOKEN, [], "burn", [1])

        assert exc_info.value.tx_hash == "0xabc"

    async def test_identity(self):
        port = Web3ChainPort(34443, OWNER.lower())
        assert await port.get_own_address() == OWNER
        assert await port.get_chain_id() == 34443
