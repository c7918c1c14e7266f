from __future__ import annotations

from dataclasses import dataclass, field

from eth_abi.packed import encode_packed
from eth_utils import is_address, to_checksum_address

from kim_paths.core.errors import ValidationError

MAX_FEE = 2**24 - 1


@dataclass(frozen=True)
class SwapPath:
    token_in: str
    token_out: str
    fees: tuple[int, ...]
    intermediate_tokens: tuple[str, ...] = field(default=())

    @property
    def tokens(self) -> list[str]:
        return [self.token_in, *self.intermediate_tokens, self.token_out]

    def validate(self) -> None:
        tokens = self.tokens
        for token in tokens:
            if not is_address(str(token)):
                raise ValidationError(f"Invalid token address in path: {token}")
        if len(self.fees) != len(tokens) - 1:
            raise ValidationError(
                f"Path with {len(tokens)} tokens needs {len(tokens) - 1} fees, "
                f"got {len(self.fees)}"
            )
        for fee in self.fees:
            if not 0 <= int(fee) <= MAX_FEE:
                raise ValidationError(f"Fee {fee} does not fit in uint24")
        for a, b in zip(tokens, tokens[1:], strict=False):
            if int(a, 16) == int(b, 16):
                raise ValidationError(f"Consecutive hops use the same token: {a}")


def encode_path(path: SwapPath, *, reverse: bool = False) -> bytes:
    """Pack ``path`` as address(20) | uint24 fee | address(20) | ...

    ``reverse`` encodes output to input, the order exact-output routing expects.
    """
    path.validate()
    tokens = [to_checksum_address(t) for t in path.tokens]
    fees = [int(f) for f in path.fees]
    if reverse:
        tokens.reverse()
        fees.reverse()

    types: list[str] = ["address"]
    values: list[object] = [tokens[0]]
    for fee, token in zip(fees, tokens[1:], strict=True):
        types += ["uint24", "address"]
        values += [fee, token]
    return encode_packed(types, values)
