from __future__ import annotations

from typing import NamedTuple

from eth_utils import to_checksum_address


class OrderedPair(NamedTuple):
    token0: str
    token1: str
    amount0: int
    amount1: int


def address_key(address: str) -> int:
    return int(str(address), 16)


def sort_pair(token_a: str, token_b: str, amount_a: int, amount_b: int) -> OrderedPair:
    """Order a token pair by address value, carrying the amounts along."""
    a = to_checksum_address(token_a)
    b = to_checksum_address(token_b)
    if address_key(a) > address_key(b):
        return OrderedPair(b, a, int(amount_b), int(amount_a))
    return OrderedPair(a, b, int(amount_a), int(amount_b))


def reconcile_with_pool(
    token_a: str,
    token_b: str,
    amount_a: int,
    amount_b: int,
    pool_token0: str,
) -> OrderedPair:
    """Order a pair the way an existing pool reports it.

    The pool's own ``token0`` wins: when ``token_a`` is not it, tokens and
    amounts are swapped.
    """
    a = to_checksum_address(token_a)
    b = to_checksum_address(token_b)
    if address_key(a) == address_key(pool_token0):
        return OrderedPair(a, b, int(amount_a), int(amount_b))
    return OrderedPair(b, a, int(amount_b), int(amount_a))
