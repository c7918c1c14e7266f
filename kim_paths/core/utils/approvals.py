"""Approve-then-act pipeline.

Each write waits for its receipt before the next one is built, so an ERC-20
approval is always mined before the action that spends it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from eth_utils import to_checksum_address
from loguru import logger

from kim_paths.core.constants.erc20_abi import ERC20_ABI
from kim_paths.core.errors import ChainWriteError, KimError
from kim_paths.core.utils.chain_port import ChainAccessPort


@dataclass(frozen=True)
class ApprovalIntent:
    token: str
    spender: str
    amount: int


@dataclass(frozen=True)
class ContractCall:
    contract_address: str
    abi: list[dict[str, Any]]
    function_name: str
    args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class StepResult:
    kind: Literal["approve", "action"]
    tx_hash: str
    label: str


async def approve(port: ChainAccessPort, intent: ApprovalIntent) -> StepResult:
    token = to_checksum_address(intent.token)
    spender = to_checksum_address(intent.spender)
    try:
        result = await port.send_transaction(
            token, ERC20_ABI, "approve", [spender, int(intent.amount)]
        )
    except KimError as exc:
        raise ChainWriteError(
            f"Approval of {token} for {spender} failed: {exc.summary}", cause=exc
        ) from exc
    logger.info(f"Approved {intent.amount} of {token} for {spender}: {result.hash}")
    return StepResult(kind="approve", tx_hash=result.hash, label=token)


async def approve_then_act(
    port: ChainAccessPort,
    approvals: list[ApprovalIntent],
    action: ContractCall | Callable[[], ContractCall],
) -> list[StepResult]:
    """Submit ``approvals`` in order, then ``action``.

    ``action`` may be a zero-argument builder, called only once every approval
    is mined, so deadlines inside it are measured from submission time. A
    failed approval aborts the pipeline before the action is submitted. The
    action's result is always the last element.
    """
    steps = [await approve(port, intent) for intent in approvals]
    if callable(action):
        action = action()
    result = await port.send_transaction(
        action.contract_address,
        action.abi,
        action.function_name,
        list(action.args),
    )
    logger.info(f"{action.function_name} submitted: {result.hash}")
    steps.append(
        StepResult(kind="action", tx_hash=result.hash, label=action.function_name)
    )
    return steps
