from typing import Any, Awaitable, Callable, Protocol


class RetryPort(Protocol):
    """Bounded retry with backoff for async operations.

    The push channel reconnects through this port, so the backoff policy
    lives in one adapter instead of inside the channel.
    """

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await `func(*args, **kwargs)` until it succeeds or attempts run out.

        Keyword overrides consumed by the port (not passed to `func`):
        attempts, wait_initial, wait_max, exception_types. The last error is
        re-raised once attempts are exhausted.
        """
        ...
