"""Timing decorator used around stack runs."""
import time
import logging
import functools
from typing import Any, Callable, Optional, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: Optional[F] = None, *, label: Optional[str] = None):
    """Log how long a call took, on success and on failure.

    Usable bare (``@log_execution_time``) or with a label
    (``@log_execution_time(label="stack startup")``).

    Args:
        func: The function to decorate
        label: Name used in the log line, defaults to the qualified name

    Returns:
        Decorated function
    """
    def decorator(fn: F) -> F:
        name = label or fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{name} failed after {time.monotonic() - started:.1f}s "
                    f"({type(e).__name__})"
                )
                raise
            logger.info(f"{name} took {time.monotonic() - started:.1f}s")
            return result
        return cast(F, wrapper)

    if func is not None:
        return decorator(func)
    return decorator
