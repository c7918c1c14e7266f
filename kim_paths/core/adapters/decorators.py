from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

from kim_paths.core.errors import ChainWriteError, KimError

T = TypeVar("T")


def surface_errors(
    summary: str,
    *,
    fallback: type[KimError] = ChainWriteError,
) -> Callable[
    [Callable[..., Coroutine[Any, Any, T]]], Callable[..., Coroutine[Any, Any, T]]
]:
    """Prefix any failure of the wrapped adapter method with ``summary``.

    ``KimError`` subclasses keep their kind; anything else is wrapped in
    ``fallback``. The error is logged via ``self.logger`` and re-raised.
    """

    def decorator(
        fn: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @wraps(fn)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            try:
                return await fn(self, *args, **kwargs)
            except KimError as exc:
                surfaced = exc.with_prefix(summary)
                self.logger.error(f"Error in {fn.__name__}: {surfaced.summary}")
                raise surfaced from exc
            except Exception as exc:  # noqa: BLE001
                self.logger.error(f"Error in {fn.__name__}: {exc}")
                raise fallback(f"{summary}: {exc}", cause=exc) from exc

        return wrapper

    return decorator
