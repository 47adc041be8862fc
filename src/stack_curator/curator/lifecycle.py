"""Target-state predicates and the waits built on them."""
import logging
from typing import Any, List, Optional, Sequence

from stack_curator.aws.base import AutoScalingAPI, ComputeAPI
from stack_curator.curator.context import CancelToken
from stack_curator.curator.waiter import Retryable, WaitPolicy, WaitState, wait_for
from stack_curator.errors import PredicateError, RemoteCallError
from stack_curator.models import (
    AutoScalingInstance,
    Instance,
    InstanceStateName,
    InstanceStatus,
    LifecycleState,
)

logger = logging.getLogger(__name__)

# EC2 is eventually consistent: freshly started instances may be unknown for a moment
NOT_FOUND_CODES = frozenset({'InvalidInstanceID.NotFound'})

STOPPED_FAILURE_STATES = frozenset({
    InstanceStateName.PENDING.value,
    InstanceStateName.TERMINATED.value,
    InstanceStateName.SHUTTING_DOWN.value,
})


def _require_list(output: Any, item_type: type) -> List[Any]:
    if not isinstance(output, list):
        raise PredicateError(f"waiter comparator expected list got {type(output).__name__}")
    for item in output:
        if not isinstance(item, item_type):
            raise PredicateError(
                f"waiter comparator expected {item_type.__name__} got {type(item).__name__}"
            )
    return output

def _covers(items: List[Any], instance_ids: Optional[Sequence[str]]) -> bool:
    """Every requested instance appears in the probe result."""
    if not items:
        return False
    if instance_ids is None:
        return True
    reported = {i.instance_id for i in items}
    return all(i in reported for i in instance_ids)


def lifecycle_state_predicate(target: LifecycleState,
                              instance_ids: Optional[Sequence[str]] = None) -> Retryable:
    """All requested ASG instances are in ``target``; an empty or partial result never matches."""
    expected = list(instance_ids) if instance_ids is not None else None

    def retryable(output: Optional[List[AutoScalingInstance]],
                  error: Optional[RemoteCallError]) -> WaitState:
        if error is not None:
            raise error
        instances = _require_list(output, AutoScalingInstance)
        for instance in instances:
            if instance.lifecycle_state is None:
                raise PredicateError(f"instance {instance.instance_id} has no lifecycle state")

        if _covers(instances, expected) and all(i.lifecycle_state == target for i in instances):
            return WaitState.SUCCESS
        return WaitState.RETRY

    return retryable


def instance_stopped_predicate(instance_ids: Optional[Sequence[str]] = None) -> Retryable:
    expected = list(instance_ids) if instance_ids is not None else None

    def retryable(output: Optional[List[Instance]],
                  error: Optional[RemoteCallError]) -> WaitState:
        if error is not None:
            raise error
        instances = _require_list(output, Instance)
        if any(i.state in STOPPED_FAILURE_STATES for i in instances):
            return WaitState.FAILURE
        if _covers(instances, expected) and all(
                i.state == InstanceStateName.STOPPED.value for i in instances):
            return WaitState.SUCCESS
        return WaitState.RETRY

    return retryable


def instance_status_ok_predicate(instance_ids: Optional[Sequence[str]] = None) -> Retryable:
    # pending instances are reported without status checks until they are running
    expected = list(instance_ids) if instance_ids is not None else None

    def retryable(output: Optional[List[InstanceStatus]],
                  error: Optional[RemoteCallError]) -> WaitState:
        if error is not None:
            if error.code in NOT_FOUND_CODES:
                return WaitState.RETRY
            raise error
        statuses = _require_list(output, InstanceStatus)
        if _covers(statuses, expected) and all(s.instance_status == 'ok' for s in statuses):
            return WaitState.SUCCESS
        return WaitState.RETRY

    return retryable


def wait_for_lifecycle_state(autoscaling: AutoScalingAPI, instance_ids: Sequence[str],
                             target: LifecycleState, *, min_delay: float, max_delay: float,
                             max_wait: float, token: Optional[CancelToken] = None
                             ) -> List[AutoScalingInstance]:
    """Block until every instance reports ``target`` in its Auto Scaling group."""
    ids = list(instance_ids)
    policy = WaitPolicy(
        retryable=lifecycle_state_predicate(target, ids),
        min_delay=min_delay,
        max_delay=max_delay,
        max_wait=max_wait,
    )
    return wait_for(
        lambda: autoscaling.describe_instances(ids),
        policy,
        name=f"AutoScalingInstance{target.value}",
        target=target.value,
        token=token,
    )


def wait_for_instances_stopped(compute: ComputeAPI, instance_ids: Sequence[str], *,
                               min_delay: float, max_delay: float, max_wait: float,
                               token: Optional[CancelToken] = None) -> List[Instance]:
    """Block until every instance is stopped."""
    ids = list(instance_ids)
    policy = WaitPolicy(instance_stopped_predicate(ids), min_delay, max_delay, max_wait)
    return wait_for(
        lambda: compute.describe_states(ids),
        policy,
        name="InstanceStopped",
        target=InstanceStateName.STOPPED.value,
        token=token,
    )


def wait_for_instance_status_ok(compute: ComputeAPI, instance_ids: Sequence[str], *,
                                min_delay: float, max_delay: float, max_wait: float,
                                token: Optional[CancelToken] = None) -> List[InstanceStatus]:
    """Block until every instance passes its status checks."""
    ids = list(instance_ids)
    policy = WaitPolicy(instance_status_ok_predicate(ids), min_delay, max_delay, max_wait)
    return wait_for(
        lambda: compute.describe_status(ids),
        policy,
        name="InstanceStatusOk",
        target="ok",
        token=token,
    )
