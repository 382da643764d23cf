"""Retry logic for storage calls using tenacity."""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import settings
from .exceptions import MyFlixError, RepositoryError

F = TypeVar("F", bound=Callable[..., Any])

TRANSIENT_ERRORS = (TimeoutError, ConnectionError)


def with_storage_retry(
    backend: str,
    max_retries: int | None = None,
) -> Callable[[F], F]:
    """Decorator to add retry logic to repository methods.

    Transient errors are retried with exponential backoff. Anything that is
    still failing afterwards, and any other engine error, surfaces as
    ``RepositoryError``. Domain errors such as ``ConflictError`` pass through.

    Args:
        backend: Name of the storage backend for error messages
        max_retries: Maximum number of attempts (defaults to ``settings.storage_retries``)

    Returns:
        Decorated function with retry logic

    """
    attempts = max_retries if max_retries is not None else settings.storage_retries

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{backend} attempt {retry_state.attempt_number}: {retry_state.outcome.exception() if retry_state.outcome else 'Unknown error'}",
            ),
        )
        async def attempt(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await attempt(*args, **kwargs)
            except MyFlixError:
                raise
            except Exception as e:
                logger.error(f"{backend} storage error in {func.__name__}: {e}")
                raise RepositoryError(f"{backend} storage error: {e}") from e

        return wrapper  # type: ignore[return-value]

    return decorator
