import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any

from eth_account import Account
from loguru import logger
from web3 import AsyncWeb3

from kim_paths.core.constants.base import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_TRANSACTION_TIMEOUT,
    GAS_BUFFER_MULTIPLIER,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_GAS_PRICE_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from kim_paths.core.constants.chains import PRE_EIP_1559_CHAIN_IDS
from kim_paths.core.utils.web3 import (
    get_transaction_chain_id,
    web3_from_chain_id,
    web3s_from_chain_id,
)

SignCallback = Callable[[dict[str, Any]], Awaitable[bytes]]


class TransactionRevertedError(RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")


def _revert_message(txn_hash: str, receipt: dict[str, Any], transaction: dict) -> str:
    gas_used = int(receipt.get("gasUsed") or 0)
    gas_limit = int(transaction.get("gas") or 0)
    if not (gas_used or gas_limit):
        return f"Transaction reverted (status=0): {txn_hash}"
    suffix = f" gasUsed={gas_used} gasLimit={gas_limit}"
    if gas_used and gas_limit and gas_used >= gas_limit:
        suffix += " (likely out of gas)"
    return f"Transaction reverted (status=0): {txn_hash}{suffix}"


def _with_0x(txn_hash: Any) -> str:
    text = txn_hash.hex() if isinstance(txn_hash, (bytes, bytearray)) else str(txn_hash)
    return text if text.startswith("0x") else f"0x{text}"


async def nonce_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    if "from" not in transaction:
        raise ValueError("Transaction does not contain from address")
    sender = AsyncWeb3.to_checksum_address(transaction["from"])

    async with web3s_from_chain_id(get_transaction_chain_id(transaction)) as web3s:
        nonces = await asyncio.gather(
            *[
                web3.eth.get_transaction_count(sender, block_identifier="pending")
                for web3 in web3s
            ]
        )
    # highest pending nonce across providers
    transaction["nonce"] = max(nonces)
    return transaction


async def gas_price_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    chain_id = get_transaction_chain_id(transaction)

    async with web3_from_chain_id(chain_id) as web3:
        if chain_id in PRE_EIP_1559_CHAIN_IDS:
            gas_price = await web3.eth.gas_price
            transaction["gasPrice"] = int(gas_price * SUGGESTED_GAS_PRICE_MULTIPLIER)
            return transaction

        latest_block = await web3.eth.get_block("latest")
        base_fee = int(latest_block.get("baseFeePerGas") or 0)
        fee_history = await web3.eth.fee_history(10, "latest", [80])
        rewards = [int(r[0]) for r in fee_history.get("reward", []) if r]
        priority_fee = sum(rewards) // len(rewards) if rewards else 0

    transaction["maxFeePerGas"] = int(
        base_fee * MAX_BASE_FEE_GROWTH_MULTIPLIER
        + priority_fee * SUGGESTED_PRIORITY_FEE_MULTIPLIER
    )
    transaction["maxPriorityFeePerGas"] = int(
        priority_fee * SUGGESTED_PRIORITY_FEE_MULTIPLIER
    )
    return transaction


async def gas_limit_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    transaction.pop("gas", None)

    async with web3_from_chain_id(get_transaction_chain_id(transaction)) as web3:
        gas_limit = await web3.eth.estimate_gas(transaction, block_identifier="latest")

    transaction["gas"] = int(math.ceil(gas_limit * GAS_BUFFER_MULTIPLIER))
    return transaction


async def broadcast_transaction(chain_id: int, signed_transaction: bytes) -> str:
    async with web3_from_chain_id(chain_id) as web3:
        tx_hash = await web3.eth.send_raw_transaction(signed_transaction)
    return _with_0x(tx_hash)


async def wait_for_transaction_receipt(
    chain_id: int,
    txn_hash: str,
    poll_interval: float = 0.5,
    timeout: int = DEFAULT_TRANSACTION_TIMEOUT,
    confirmations: int = DEFAULT_CONFIRMATIONS,
) -> dict:
    txn_hash = _with_0x(txn_hash)
    async with web3_from_chain_id(chain_id) as web3:
        receipt = await web3.eth.wait_for_transaction_receipt(
            txn_hash, poll_latency=poll_interval, timeout=timeout
        )
        if receipt.get("status") == 0:
            raise TransactionRevertedError(txn_hash, dict(receipt))

        target_block = receipt["blockNumber"] + confirmations - 1
        while await web3.eth.block_number < target_block:
            await asyncio.sleep(poll_interval)
    return dict(receipt)


async def send_transaction(
    transaction: dict, sign_callback: SignCallback | None, wait_for_receipt=True
) -> str:
    """Estimate, nonce, price, sign and broadcast ``transaction``.

    With ``wait_for_receipt`` the call only returns once the transaction is
    mined successfully; a status-0 receipt raises ``TransactionRevertedError``.
    """
    if sign_callback is None:
        raise ValueError("sign_callback must be provided to send transaction")

    chain_id = get_transaction_chain_id(transaction)
    logger.info(
        f"Broadcasting transaction to={transaction.get('to')} chain={chain_id}"
    )
    transaction = await gas_limit_transaction(transaction)
    transaction = await nonce_transaction(transaction)
    transaction = await gas_price_transaction(transaction)
    signed_transaction = await sign_callback(transaction)
    txn_hash = await broadcast_transaction(chain_id, signed_transaction)
    logger.info(f"Transaction broadcasted: {txn_hash}")

    if wait_for_receipt:
        try:
            await wait_for_transaction_receipt(chain_id, txn_hash)
        except TransactionRevertedError as exc:
            raise TransactionRevertedError(
                txn_hash,
                exc.receipt,
                message=_revert_message(txn_hash, exc.receipt, transaction),
            ) from exc
    return txn_hash


def make_sign_callback(private_key: str) -> SignCallback:
    account = Account.from_key(private_key)

    async def sign_callback(transaction: dict) -> bytes:
        signed = account.sign_transaction(transaction)
        return signed.raw_transaction

    return sign_callback


async def encode_call(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    async with web3_from_chain_id(chain_id) as web3:
        try:
            contract = web3.eth.contract(
                address=web3.to_checksum_address(target),
                abi=abi,
            )
            data = contract.encode_abi(fn_name, args)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Failed to encode {fn_name}: {exc}") from exc

    return {
        "chainId": int(chain_id),
        "from": AsyncWeb3.to_checksum_address(from_address),
        "to": AsyncWeb3.to_checksum_address(target),
        "data": data,
        "value": int(value),
    }
