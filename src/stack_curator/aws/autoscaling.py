"""Auto Scaling collaborator backed by boto3."""
import logging
from typing import Dict, Any, Iterator, List, Optional, Sequence

from stack_curator.aws.base import AutoScalingAPI, remote_call
from stack_curator.errors import PredicateError
from stack_curator.models import AutoScalingGroup, AutoScalingInstance, LifecycleState

logger = logging.getLogger(__name__)

# EnterStandby / ExitStandby accept at most 20 instance IDs per call
STANDBY_BATCH_SIZE = 20
# DescribeAutoScalingInstances accepts at most 50 instance IDs per call
DESCRIBE_BATCH_SIZE = 50


def _chunks(items: Sequence[str], size: int) -> Iterator[List[str]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def _lifecycle_state(value: str):
    try:
        return LifecycleState(value)
    except ValueError:
        # Pending, Terminating, EnteringStandby, ... never match a target
        return value


def _parse_instance(data: Dict[str, Any]) -> AutoScalingInstance:
    try:
        return AutoScalingInstance(
            instance_id=data['InstanceId'],
            group_name=data['AutoScalingGroupName'],
            lifecycle_state=_lifecycle_state(data['LifecycleState']),
        )
    except (KeyError, TypeError) as e:
        raise PredicateError(
            f"unexpected Auto Scaling instance shape, missing {e}",
            "DescribeAutoScalingInstances",
        ) from e


def _parse_group(data: Dict[str, Any]) -> AutoScalingGroup:
    try:
        return AutoScalingGroup(
            name=data['AutoScalingGroupName'],
            min_size=int(data['MinSize']),
            max_size=int(data['MaxSize']),
            desired_capacity=int(data.get('DesiredCapacity', 0)),
            instance_ids=[i['InstanceId'] for i in data.get('Instances', [])],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise PredicateError(
            f"unexpected Auto Scaling group shape: {e}",
            "DescribeAutoScalingGroups",
        ) from e


class AutoScalingService(AutoScalingAPI):
    """AutoScalingAPI implementation over a boto3 autoscaling client."""

    def __init__(self, autoscaling_client):
        self.autoscaling_client = autoscaling_client

    def describe_instances(self, instance_ids: Sequence[str]) -> List[AutoScalingInstance]:
        instances = []
        with remote_call('DescribeAutoScalingInstances'):
            paginator = self.autoscaling_client.get_paginator('describe_auto_scaling_instances')
            for batch in _chunks(list(instance_ids), DESCRIBE_BATCH_SIZE):
                for page in paginator.paginate(InstanceIds=batch):
                    for data in page.get('AutoScalingInstances', []):
                        instances.append(_parse_instance(data))
        return instances

    def describe_groups(self, names: Sequence[str]) -> List[AutoScalingGroup]:
        groups = []
        with remote_call('DescribeAutoScalingGroups'):
            paginator = self.autoscaling_client.get_paginator('describe_auto_scaling_groups')
            for page in paginator.paginate(AutoScalingGroupNames=list(names)):
                for data in page.get('AutoScalingGroups', []):
                    groups.append(_parse_group(data))
        return groups

    def update_group(self, name: str, min_size: Optional[int] = None,
                     max_size: Optional[int] = None) -> None:
        params = {'AutoScalingGroupName': name}
        if min_size is not None:
            params['MinSize'] = min_size
        if max_size is not None:
            params['MaxSize'] = max_size
        if len(params) == 1:
            return

        with remote_call('UpdateAutoScalingGroup'):
            self.autoscaling_client.update_auto_scaling_group(**params)
        logger.info(f"Updated ASG {name}: min={min_size}, max={max_size}")

    def enter_standby(self, name: str, instance_ids: Sequence[str],
                      decrement_desired_capacity: bool = True) -> List[Dict[str, Any]]:
        activities = []
        for batch in _chunks(list(instance_ids), STANDBY_BATCH_SIZE):
            with remote_call('EnterStandby'):
                response = self.autoscaling_client.enter_standby(
                    AutoScalingGroupName=name,
                    InstanceIds=batch,
                    ShouldDecrementDesiredCapacity=decrement_desired_capacity,
                )
            activities.extend(response.get('Activities', []))
        return activities

    def exit_standby(self, name: str, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        activities = []
        for batch in _chunks(list(instance_ids), STANDBY_BATCH_SIZE):
            with remote_call('ExitStandby'):
                response = self.autoscaling_client.exit_standby(
                    AutoScalingGroupName=name,
                    InstanceIds=batch,
                )
            activities.extend(response.get('Activities', []))
        return activities
