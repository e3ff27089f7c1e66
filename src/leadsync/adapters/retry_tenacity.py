from typing import Any, Awaitable, Callable, Iterable, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from leadsync.core.settings import logger


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.debug(
        f"[retry] attempt={retry_state.attempt_number} failed err={exc!r}; sleeping {wait:.2f}s"
    )


class TenacityRetryAdapter:
    """RetryPort backed by tenacity.

    Defaults match the push channel policy: six tries with exponential waits
    of 1s, 2s, 4s, then capped at 5s. Per-call keyword overrides (attempts,
    wait_initial, wait_max, exception_types) replace the defaults for one call.
    """

    def __init__(
        self,
        attempts: int = 6,
        wait_initial: float = 1.0,
        wait_max: float = 5.0,
        exception_types: Iterable[Type[BaseException]] = (Exception,),
    ) -> None:
        self.defaults = dict(
            attempts=attempts,
            wait_initial=wait_initial,
            wait_max=wait_max,
            exception_types=tuple(exception_types),
        )

    def _retrying(self, overrides: dict) -> AsyncRetrying:
        policy = {
            name: overrides.pop(name, default) for name, default in self.defaults.items()
        }
        return AsyncRetrying(
            stop=stop_after_attempt(policy["attempts"]),
            wait=wait_exponential(multiplier=policy["wait_initial"], max=policy["wait_max"]),
            retry=retry_if_exception_type(tuple(policy["exception_types"])),
            before_sleep=_log_before_sleep,
            reraise=True,
        )

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        retrying = self._retrying(kwargs)
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)
