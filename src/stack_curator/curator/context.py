"""Run-scoped state shared by the sequencer, capacity controller and waiters."""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from stack_curator.config.settings import Settings, get_settings
from stack_curator.errors import WaiterCancelledError
from stack_curator.models import Stack

logger = logging.getLogger(__name__)


class CancelToken:
    """Cancellation signal with an optional monotonic deadline.

    The only place a run blocks is a waiter sleep, so ``sleep`` returns as
    soon as the token is cancelled or the deadline passes.
    """

    def __init__(self, deadline: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._event = threading.Event()
        self._clock = clock
        self.deadline = deadline
        self.reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "CancelToken":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            logger.warning(f"Run cancellation requested: {reason}")
        self._event.set()

    def time_left(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - self._clock()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        left = self.time_left()
        return left is not None and left <= 0

    def check(self, name: str) -> None:
        """Raise WaiterCancelledError if the token has fired."""
        if self.cancelled:
            raise WaiterCancelledError(name, self._describe())

    def sleep(self, seconds: float, name: str) -> None:
        """Sleep up to ``seconds``, aborting early on cancellation."""
        self.check(name)
        left = self.time_left()
        if left is not None and left < seconds:
            self._event.wait(max(left, 0))
            raise WaiterCancelledError(name, self._describe())
        if self._event.wait(seconds):
            raise WaiterCancelledError(name, self._describe())

    def _describe(self) -> str:
        if self._event.is_set():
            return self.reason or "cancelled"
        return "deadline exceeded"


@dataclass
class RunContext:
    """Everything a single stack run needs besides the AWS collaborators."""
    stack: Stack
    dry_run: bool = False
    token: CancelToken = field(default_factory=CancelToken)
    settings: Settings = field(default_factory=get_settings)

    @property
    def min_delay(self) -> float:
        return self.settings.wait_min_delay

    @property
    def max_delay(self) -> float:
        return self.settings.wait_max_delay

    @property
    def max_wait(self) -> float:
        return self.settings.wait_max_duration
