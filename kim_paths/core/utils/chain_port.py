"""Chain access seam used by every KIM operation.

``ChainAccessPort`` is the only way the engine reads contract state or submits
transactions. Tests use an in-memory fake; production code uses
``Web3ChainPort``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from eth_utils import is_address, to_checksum_address
from loguru import logger

from kim_paths.core.config import get_wallets
from kim_paths.core.errors import ChainReadError, ChainWriteError, ValidationError
from kim_paths.core.utils.transaction import (
    SignCallback,
    TransactionRevertedError,
    encode_call,
    send_transaction,
)
from kim_paths.core.utils.web3 import web3_from_chain_id


@dataclass(frozen=True)
class TxResult:
    hash: str


class ChainAccessPort(Protocol):
    async def read(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> Any: ...

    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> TxResult: ...

    async def resolve_address(self, identifier: str) -> str: ...

    async def get_own_address(self) -> str: ...

    async def get_chain_id(self) -> int: ...


def resolve_address_or_label(identifier: str) -> str:
    """Return a checksum address for a raw address or a configured wallet label."""
    raw = str(identifier or "").strip()
    if not raw:
        raise ValidationError("Address or wallet label is required")
    if is_address(raw):
        return to_checksum_address(raw)
    for wallet in get_wallets():
        if str(wallet.get("label", "")).strip() == raw:
            address = wallet.get("address")
            if address and is_address(str(address)):
                return to_checksum_address(str(address))
            raise ValidationError(f"Wallet '{raw}' has no valid address")
    raise ValidationError(f"Unknown address or wallet label: {raw}")


class Web3ChainPort:
    def __init__(
        self,
        chain_id: int,
        owner: str,
        sign_callback: SignCallback | None = None,
    ):
        self.chain_id = int(chain_id)
        self.owner = to_checksum_address(owner)
        self.sign_callback = sign_callback

    async def read(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> Any:
        try:
            async with web3_from_chain_id(self.chain_id) as web3:
                contract = web3.eth.contract(
                    address=to_checksum_address(contract_address), abi=abi
                )
                fn = contract.functions[function_name]
                return await fn(*args).call(block_identifier="latest")
        except Exception as exc:  # noqa: BLE001
            raise ChainReadError(
                f"{function_name} on {contract_address} failed: {exc}", cause=exc
            ) from exc

    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> TxResult:
        if self.sign_callback is None:
            raise ChainWriteError("No signing callback configured for this wallet")
        try:
            tx = await encode_call(
                target=contract_address,
                abi=abi,
                fn_name=function_name,
                args=list(args),
                from_address=self.owner,
                chain_id=self.chain_id,
            )
            tx_hash = await send_transaction(tx, self.sign_callback)
        except TransactionRevertedError as exc:
            raise ChainWriteError(
                f"{function_name} reverted: {exc}", cause=exc, tx_hash=exc.txn_hash
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise ChainWriteError(f"{function_name} failed: {exc}", cause=exc) from exc
        logger.debug(f"{function_name} mined: {tx_hash}")
        return TxResult(hash=tx_hash)

    async def resolve_address(self, identifier: str) -> str:
        return resolve_address_or_label(identifier)

    async def get_own_address(self) -> str:
        return self.owner

    async def get_chain_id(self) -> int:
        return self.chain_id
