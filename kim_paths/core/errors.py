"""Error taxonomy for the KIM engine.

Every failure surfaced to a caller is a ``KimError`` carrying a short
human-readable ``summary`` and, where one exists, the original ``cause``.
"""

from __future__ import annotations


class KimError(Exception):
    code: str = "kim_error"

    def __init__(self, summary: str, *, cause: BaseException | None = None):
        super().__init__(summary)
        self.summary = summary
        self.cause = cause

    def with_prefix(self, prefix: str) -> KimError:
        """Return a copy of this error whose summary starts with ``prefix``."""
        return type(self)(f"{prefix}: {self.summary}", cause=self.cause or self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(summary={self.summary!r})"


class ValidationError(KimError):
    """Caller input is malformed; raised before any chain call is made."""

    code = "invalid_request"


class ChainReadError(KimError):
    """A view call reverted or the target is not the expected contract."""

    code = "chain_read_failed"


class ChainWriteError(KimError):
    """A transaction could not be built, was rejected, or reverted."""

    code = "chain_write_failed"

    def __init__(
        self,
        summary: str,
        *,
        cause: BaseException | None = None,
        tx_hash: str | None = None,
    ):
        super().__init__(summary, cause=cause)
        self.tx_hash = tx_hash

    def with_prefix(self, prefix: str) -> ChainWriteError:
        return ChainWriteError(
            f"{prefix}: {self.summary}", cause=self.cause or self, tx_hash=self.tx_hash
        )


class TelemetryUnavailable(KimError):
    """Off-chain fee or price data could not be fetched."""

    code = "telemetry_unavailable"
