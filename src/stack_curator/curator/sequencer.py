"""
Group sequencing for stack startup and shutdown.

A stack lists its groups from the outermost tier inward: a tear-down walks
the groups in declared order and a bring-up walks them in reverse, so the
groups declared last are the first to come back. Groups are
processed one at a time and the first error ends the run; groups already
transitioned stay in their new state.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from stack_curator.aws.base import AutoScalingAPI, ComputeAPI
from stack_curator.curator.capacity import CapacityController
from stack_curator.curator.context import RunContext
from stack_curator.curator.lifecycle import wait_for_instance_status_ok, wait_for_instances_stopped
from stack_curator.models import Direction, Filter, Group, InstanceStateName
from stack_curator.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)

# Only instances that can be started or stopped belong to a group run
INSTANCE_STATE_FILTER = Filter(
    name="instance-state-name",
    values=[InstanceStateName.RUNNING.value, InstanceStateName.STOPPED.value],
)


@dataclass
class SequenceResult:
    """Outcome of a completed stack run."""
    stack_name: str
    direction: Direction
    dry_run: bool = False
    # group names in the order they were visited
    visited: List[str] = field(default_factory=list)
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def record(self, name: str, skipped: bool) -> None:
        self.visited.append(name)
        (self.skipped if skipped else self.processed).append(name)


class GroupSequencer:
    """Drives a stack through startup or shutdown, one group at a time."""

    def __init__(self, compute: ComputeAPI, autoscaling: AutoScalingAPI, context: RunContext,
                 reporter: Optional[Callable[[Group], None]] = None):
        self.compute = compute
        self.autoscaling = autoscaling
        self.context = context
        self.capacity = CapacityController(autoscaling, context)
        self.reporter = reporter

    @property
    def stack(self):
        return self.context.stack

    def ordered_groups(self, direction: Direction) -> List[Group]:
        groups = list(self.stack.groups)
        if direction == Direction.BRING_UP:
            groups.reverse()
        return groups

    def resolve_group(self, group: Group) -> Group:
        """Bind the group to the running/stopped instances its filters select."""
        filters = [*self.stack.group_filters(group), INSTANCE_STATE_FILTER]
        instances = self.compute.describe(filters)
        return group.with_instances(instances)

    def _wait_kwargs(self):
        return dict(
            min_delay=self.context.min_delay,
            max_delay=self.context.max_delay,
            max_wait=self.context.max_wait,
            token=self.context.token,
        )

    def _bring_up_group(self, group: Group) -> None:
        self.capacity.prepare_group_for_startup(group)
        if self.context.dry_run:
            return

        changes = self.compute.start(group.instance_ids)
        logger.info(f"Instance state changes in instance group {group.name}: {_state_changes(changes)}")

        statuses = wait_for_instance_status_ok(self.compute, group.instance_ids, **self._wait_kwargs())
        logger.info(
            f"Instance statuses in instance group {group.name}: "
            f"{ {s.instance_id: s.instance_status for s in statuses} }"
        )

    def _tear_down_group(self, group: Group) -> None:
        self.capacity.prepare_group_for_shutdown(group)
        if self.context.dry_run:
            return

        changes = self.compute.stop(group.instance_ids)
        logger.info(f"Instance state changes in instance group {group.name}: {_state_changes(changes)}")

        instances = wait_for_instances_stopped(self.compute, group.instance_ids, **self._wait_kwargs())
        logger.info(
            f"Instance states in instance group {group.name}: "
            f"{ {i.instance_id: i.state for i in instances} }"
        )

    @log_execution_time(label="stack run")
    def run(self, direction: Direction) -> SequenceResult:
        """Apply ``direction`` to every group of the stack in dependency order."""
        verb = "startup" if direction == Direction.BRING_UP else "shutdown"
        result = SequenceResult(self.stack.name, direction, dry_run=self.context.dry_run)
        if self.context.dry_run:
            logger.info("Dry run: no instance or Auto Scaling group will be changed")

        for declared in self.ordered_groups(direction):
            self.context.token.check(f"{verb} of instance stack {self.stack.name}")

            group = self.resolve_group(declared)
            if not group.instances:
                logger.info(f"No instances in instance group {group.name}")
                result.record(group.name, skipped=True)
                continue

            logger.info(f"Instances in instance group {group.name}: {group.instance_ids}")
            if self.reporter is not None:
                self.reporter(group)

            if direction == Direction.BRING_UP:
                self._bring_up_group(group)
            else:
                self._tear_down_group(group)

            result.record(group.name, skipped=False)
            logger.info(f"✅ Instance group {group.name}: {verb} has been completed")

        logger.info(f"✅ Instance stack {self.stack.name}: {verb} has been completed")
        return result

    def bring_up(self) -> SequenceResult:
        return self.run(Direction.BRING_UP)

    def tear_down(self) -> SequenceResult:
        return self.run(Direction.TEAR_DOWN)


def _state_changes(changes) -> dict:
    return {
        c.get('InstanceId'): f"{c.get('PreviousState', {}).get('Name')} -> {c.get('CurrentState', {}).get('Name')}"
        for c in changes
    }
