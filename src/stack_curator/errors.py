"""
Curator error taxonomy.

CONFIGURATION  - bad stack document or waiter bounds, raised before any remote call
REMOTE CALL    - an EC2 / Auto Scaling call failed
PREDICATE      - a waiter probe returned a malformed result
TIMEOUT        - a waiter ran out of its time budget
FAILURE        - a waiter reached a state it can never recover from
CANCELLED      - the run was interrupted by the operator or the run deadline

Every error is fatal to the run; nothing is retried above the waiter.
"""

from typing import Optional


class CuratorError(Exception):
    """Base class for all curator errors."""
    pass


class ConfigurationError(CuratorError):
    """Invalid stack document or waiter configuration."""
    pass


class RemoteCallError(CuratorError):
    """An AWS API call failed."""

    def __init__(self, operation: str, message: str, code: Optional[str] = None):
        self.operation = operation
        self.code = code
        super().__init__(f"{operation} failed: {message}")


class PredicateError(RemoteCallError):
    """A waiter probe returned a result the predicate cannot interpret."""

    def __init__(self, message: str, operation: str = "waiter predicate"):
        super().__init__(operation, message)


class WaiterTimeoutError(CuratorError):
    """A waiter exhausted its time budget without reaching the target state."""

    def __init__(self, name: str, target: str, max_wait: float):
        self.name = name
        self.target = target
        self.max_wait = max_wait
        super().__init__(
            f"exceeded max wait time of {max_wait:.0f}s for {name} waiter "
            f"(target state: {target})"
        )


class WaiterFailureError(CuratorError):
    """A waiter observed a terminal state that can never become the target."""

    def __init__(self, name: str, target: str, detail: str = ""):
        self.name = name
        self.target = target
        message = f"{name} waiter entered a failure state while waiting for {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class WaiterCancelledError(CuratorError):
    """The run was cancelled while a waiter was in progress."""

    def __init__(self, name: str, reason: str = "cancelled"):
        self.name = name
        self.reason = reason
        super().__init__(f"request {reason} while waiting for {name}")
