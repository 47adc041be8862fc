"""
ASG capacity bounds around manual standby transitions.

Moving instances into standby by hand is something the autoscaler will
happily undo: with an unchanged MinSize it launches replacements, and with a
MaxSize below the member count it refuses to take instances back. The
controller lowers MinSize before entering standby, raises MaxSize before
exiting standby, and raises MinSize back only once the instances are
confirmed InService.

Adjustments are planned from read-only describe calls first and applied
second, so a dry run can report exactly what would change. A failure in one
ASG aborts the group; ASGs already adjusted in the same call are left as they
are.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stack_curator.aws.base import AutoScalingAPI
from stack_curator.curator.context import RunContext
from stack_curator.curator.lifecycle import wait_for_lifecycle_state
from stack_curator.models import (
    AutoScalingGroup,
    AutoScalingInstance,
    Group,
    LifecycleState,
    lifecycle_state_name,
)

logger = logging.getLogger(__name__)


@dataclass
class CapacityAdjustment:
    """Planned change to one Auto Scaling group."""
    asg_name: str
    instance_ids: List[str]
    min_size: int
    max_size: int
    member_count: int
    # applied before the standby transition
    new_min_size: Optional[int] = None
    new_max_size: Optional[int] = None
    # applied after instances are confirmed InService
    final_min_size: Optional[int] = None
    activities: List[Dict] = field(default_factory=list)

    def describe(self) -> str:
        changes = []
        if self.new_min_size is not None:
            changes.append(f"min {self.min_size}->{self.new_min_size}")
        if self.new_max_size is not None:
            changes.append(f"max {self.max_size}->{self.new_max_size}")
        if self.final_min_size is not None:
            changes.append(f"min {self.min_size}->{self.final_min_size} once InService")
        bounds = ", ".join(changes) if changes else "bounds unchanged"
        return f"ASG {self.asg_name}: {len(self.instance_ids)} instance(s) {self.instance_ids}, {bounds}"


def _states(instances: List[AutoScalingInstance]) -> Dict[str, str]:
    return {i.instance_id: lifecycle_state_name(i.lifecycle_state) for i in instances}


def shutdown_min_size(current_min: int, leaving: int) -> Optional[int]:
    """MinSize to set before ``leaving`` instances enter standby, None to keep it."""
    if current_min <= 0:
        return None
    return max(0, current_min - leaving)


def startup_max_size(current_max: int, member_count: int) -> Optional[int]:
    """MaxSize to set before exiting standby, None to keep it. Never lowers."""
    if current_max < member_count:
        return member_count
    return None


def startup_min_size(current_min: int, returning: int) -> Optional[int]:
    """MinSize to set once ``returning`` instances are InService. Never lowers."""
    if current_min < returning:
        return returning
    return None


class CapacityController:
    """Keeps ASG min/max bounds consistent with standby moves of one group."""

    def __init__(self, autoscaling: AutoScalingAPI, context: RunContext):
        self.autoscaling = autoscaling
        self.context = context

    def _eligible_by_asg(self, group: Group, eligible_state: LifecycleState) -> Dict[str, List[str]]:
        by_asg: Dict[str, List[str]] = OrderedDict()
        if not group.instances:
            return by_asg

        for instance in self.autoscaling.describe_instances(group.instance_ids):
            if instance.lifecycle_state == eligible_state:
                by_asg.setdefault(instance.group_name, []).append(instance.instance_id)
        return by_asg

    def _describe_affected(self, group: Group, eligible_state: LifecycleState):
        """Eligible instances grouped by ASG, paired with the ASG description.

        Instances that dropped out of their ASG between the two describe calls
        are discarded so no mutation targets a group they no longer belong to.
        """
        by_asg = self._eligible_by_asg(group, eligible_state)
        if not by_asg:
            logger.info(f"No Auto Scaling Groups in instance group {group.name}")
            return []
        logger.info(f"Auto Scaling Groups in instance group {group.name}: {list(by_asg)}")

        affected = []
        for asg in self.autoscaling.describe_groups(list(by_asg)):
            instance_ids = by_asg.get(asg.name)
            if not instance_ids:
                continue
            members = set(asg.instance_ids)
            verified = [i for i in instance_ids if i in members]
            stale = [i for i in instance_ids if i not in members]
            if stale:
                logger.warning(f"Instances {stale} are no longer members of ASG {asg.name}, skipping them")
            if verified:
                affected.append((asg, verified))

        missing = set(by_asg) - {asg.name for asg, _ in affected}
        for name in sorted(missing):
            logger.warning(f"ASG {name} has no instances left to adjust in instance group {group.name}")
        return affected

    @staticmethod
    def _adjustment(asg: AutoScalingGroup, instance_ids: List[str]) -> CapacityAdjustment:
        return CapacityAdjustment(
            asg_name=asg.name,
            instance_ids=instance_ids,
            min_size=asg.min_size,
            max_size=asg.max_size,
            member_count=asg.member_count,
        )

    def plan_shutdown(self, group: Group) -> List[CapacityAdjustment]:
        """Read-only plan for moving the group's InService instances into standby."""
        plan = []
        for asg, instance_ids in self._describe_affected(group, LifecycleState.IN_SERVICE):
            adjustment = self._adjustment(asg, instance_ids)
            adjustment.new_min_size = shutdown_min_size(asg.min_size, len(instance_ids))
            plan.append(adjustment)
        return plan

    def plan_startup(self, group: Group) -> List[CapacityAdjustment]:
        """Read-only plan for returning the group's Standby instances to service."""
        plan = []
        for asg, instance_ids in self._describe_affected(group, LifecycleState.STANDBY):
            adjustment = self._adjustment(asg, instance_ids)
            adjustment.new_max_size = startup_max_size(asg.max_size, asg.member_count)
            adjustment.final_min_size = startup_min_size(asg.min_size, len(instance_ids))
            plan.append(adjustment)
        return plan

    def _wait(self, instance_ids: List[str], target: LifecycleState):
        return wait_for_lifecycle_state(
            self.autoscaling,
            instance_ids,
            target,
            min_delay=self.context.min_delay,
            max_delay=self.context.max_delay,
            max_wait=self.context.max_wait,
            token=self.context.token,
        )

    def _log_plan(self, group: Group, plan: List[CapacityAdjustment]) -> None:
        for adjustment in plan:
            logger.info(f"[dry-run] instance group {group.name}: {adjustment.describe()}")

    def prepare_group_for_shutdown(self, group: Group) -> List[CapacityAdjustment]:
        """Lower MinSize and move InService instances of the group into standby.

        Returns:
            Adjustments that were applied (or planned, in dry-run mode)
        """
        plan = self.plan_shutdown(group)
        if not plan:
            return plan
        if self.context.dry_run:
            self._log_plan(group, plan)
            return plan

        waiting: List[str] = []
        for adjustment in plan:
            # MinSize first, otherwise the ASG launches replacements right away
            if adjustment.new_min_size is not None:
                self.autoscaling.update_group(adjustment.asg_name, min_size=adjustment.new_min_size)

            adjustment.activities = self.autoscaling.enter_standby(
                adjustment.asg_name,
                adjustment.instance_ids,
                decrement_desired_capacity=True,
            )
            logger.info(
                f"Scaling activities in ASG {adjustment.asg_name}: "
                f"{[a.get('Description', a.get('ActivityId')) for a in adjustment.activities]}"
            )
            waiting.extend(adjustment.instance_ids)

        instances = self._wait(waiting, LifecycleState.STANDBY)
        logger.info(
            f"Auto Scaling instances in instance group {group.name}: "
            f"{_states(instances)}"
        )
        return plan

    def prepare_group_for_startup(self, group: Group) -> List[CapacityAdjustment]:
        """Raise MaxSize, return Standby instances to service, then raise MinSize.

        Returns:
            Adjustments that were applied (or planned, in dry-run mode)
        """
        plan = self.plan_startup(group)
        if not plan:
            return plan
        if self.context.dry_run:
            self._log_plan(group, plan)
            return plan

        waiting: List[str] = []
        for adjustment in plan:
            # MaxSize first, otherwise ExitStandby may be rejected
            if adjustment.new_max_size is not None:
                self.autoscaling.update_group(adjustment.asg_name, max_size=adjustment.new_max_size)

            adjustment.activities = self.autoscaling.exit_standby(
                adjustment.asg_name,
                adjustment.instance_ids,
            )
            logger.info(
                f"Scaling activities in ASG {adjustment.asg_name}: "
                f"{[a.get('Description', a.get('ActivityId')) for a in adjustment.activities]}"
            )
            waiting.extend(adjustment.instance_ids)

        instances = self._wait(waiting, LifecycleState.IN_SERVICE)
        logger.info(
            f"Auto Scaling instances in instance group {group.name}: "
            f"{_states(instances)}"
        )

        # MinSize last, once the instances are healthy members again
        for adjustment in plan:
            if adjustment.final_min_size is not None:
                self.autoscaling.update_group(adjustment.asg_name, min_size=adjustment.final_min_size)
        return plan
