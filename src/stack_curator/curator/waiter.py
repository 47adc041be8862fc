"""
Bounded exponential-backoff polling.

Every asynchronous wait in the curator (ASG lifecycle transitions, EC2
stop/start) is a parameterization of ``wait_for``: a probe that describes
remote state, a predicate that classifies the probe result, and a
WaitPolicy that bounds delays and the total time budget.

Delay computation follows the AWS SDK waiter algorithm: the delay doubles
with every attempt from ``min_delay`` up to ``max_delay``, is jittered
between ``min_delay`` and the computed value, and never sleeps past the
remaining budget.
"""
import logging
import math
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from stack_curator.curator.context import CancelToken
from stack_curator.errors import (
    ConfigurationError,
    RemoteCallError,
    WaiterFailureError,
    WaiterTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MIN_DELAY = 15.0
DEFAULT_MAX_DELAY = 120.0
DEFAULT_WAIT_DURATION = 10 * 60.0


class WaitState(str, Enum):
    """Predicate verdict for a single probe result"""
    RETRY = "retry"
    SUCCESS = "success"
    FAILURE = "failure"


# (probe output, probe error) -> verdict; raising aborts the wait
Retryable = Callable[[Any, Optional[RemoteCallError]], WaitState]


@dataclass(frozen=True)
class WaitPolicy:
    """Bounds of a single wait, all durations in seconds."""
    retryable: Retryable
    min_delay: float = DEFAULT_MIN_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    max_wait: float = DEFAULT_WAIT_DURATION

    def resolved(self) -> "WaitPolicy":
        """Validate the bounds and fill in the default max delay.

        Raises:
            ConfigurationError: If the bounds can never produce a valid wait
        """
        if self.max_wait <= 0:
            raise ConfigurationError("maximum wait time for waiter must be greater than zero")

        max_delay = self.max_delay if self.max_delay > 0 else DEFAULT_MAX_DELAY
        if self.min_delay <= 0:
            raise ConfigurationError(
                f"minimum waiter delay must be greater than zero, got {self.min_delay}"
            )
        if self.min_delay > max_delay:
            raise ConfigurationError(
                f"minimum waiter delay {self.min_delay}s must be lesser than or equal "
                f"to maximum waiter delay of {max_delay}s"
            )
        if max_delay == self.max_delay:
            return self
        return WaitPolicy(self.retryable, self.min_delay, max_delay, self.max_wait)


def compute_delay(attempt: int, min_delay: float, max_delay: float,
                  remaining: float, rng: Optional[random.Random] = None) -> float:
    """Backoff delay before the next attempt.

    Args:
        attempt: 1-based number of the attempt that just finished
        min_delay: Lower bound of the delay
        max_delay: Upper bound of the delay
        remaining: Time left in the wait budget
        rng: Source of jitter, defaults to the module random generator

    Returns:
        Delay in seconds, never leaving less than min_delay of budget unslept
    """
    if remaining <= 0:
        return 0.0

    # last possible attempt: sleep so that exactly min_delay remains
    if remaining - min_delay <= min_delay:
        return remaining - min_delay

    attempt_ceiling = math.log(max_delay / min_delay, 2) + 1
    if attempt > int(attempt_ceiling):
        delay = max_delay
    else:
        delay = min_delay * (1 << (attempt - 1))

    if delay != min_delay:
        delay = (rng or random).uniform(min_delay, delay)

    if remaining - delay <= min_delay:
        delay = remaining - min_delay
    return delay


def wait_for(probe: Callable[[], T], policy: WaitPolicy, *, name: str, target: str,
             token: Optional[CancelToken] = None, log_attempts: bool = True,
             clock: Callable[[], float] = time.monotonic,
             rng: Optional[random.Random] = None) -> T:
    """Poll ``probe`` until the policy's predicate reports a terminal state.

    Args:
        probe: Describe call returning the current remote state
        policy: Predicate and time bounds
        name: Waiter name used in logs and errors
        target: Target state used in logs and errors
        token: Cancellation token shared by the run
        log_attempts: Log every attempt at INFO level

    Returns:
        Probe output of the successful attempt

    Raises:
        ConfigurationError: Invalid policy, raised before the first probe
        WaiterTimeoutError: Budget exhausted without a terminal state
        WaiterFailureError: Predicate reported a failure state
        WaiterCancelledError: Token fired before or during a sleep
        RemoteCallError: Probe error the predicate chose not to retry
    """
    policy = policy.resolved()
    remaining = policy.max_wait
    attempt = 0

    while True:
        attempt += 1
        if token is not None:
            token.check(name)

        start = clock()
        output, error = None, None
        try:
            output = probe()
        except RemoteCallError as e:
            error = e

        state = policy.retryable(output, error)
        if state == WaitState.SUCCESS:
            if log_attempts:
                logger.info(f"✅ {name}: reached {target} after {attempt} attempt(s)")
            return output
        if state == WaitState.FAILURE:
            raise WaiterFailureError(name, target, str(error) if error else "")

        remaining -= clock() - start
        if remaining < policy.min_delay or remaining <= 0:
            break

        delay = compute_delay(attempt, policy.min_delay, policy.max_delay, remaining, rng)
        if log_attempts:
            reason = f" ({error})" if error else ""
            logger.info(
                f"{name}: attempt {attempt} not yet {target}{reason}, "
                f"retrying in {delay:.1f}s ({remaining:.0f}s left)"
            )

        remaining -= delay
        if token is not None:
            token.sleep(delay, name)
        else:
            time.sleep(delay)

    logger.error(f"❌ {name}: gave up waiting for {target} after {attempt} attempt(s)")
    raise WaiterTimeoutError(name, target, policy.max_wait)
