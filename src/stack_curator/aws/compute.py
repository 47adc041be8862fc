"""EC2 collaborator backed by boto3."""
import logging
from typing import Dict, Any, List, Sequence

from stack_curator.aws.base import ComputeAPI, remote_call
from stack_curator.errors import PredicateError
from stack_curator.models import Filter, Instance, InstanceStatus

logger = logging.getLogger(__name__)

NOT_APPLICABLE = 'not-applicable'


def _parse_instance(data: Dict[str, Any]) -> Instance:
    try:
        tags = {t['Key']: t.get('Value', '') for t in data.get('Tags', [])}
        return Instance(
            instance_id=data['InstanceId'],
            state=data['State']['Name'],
            name=tags.get('Name', ''),
            private_ip=data.get('PrivateIpAddress'),
            tags=tags,
        )
    except (KeyError, TypeError) as e:
        raise PredicateError(f"unexpected instance shape, missing {e}", "DescribeInstances") from e


def _parse_status(data: Dict[str, Any]) -> InstanceStatus:
    try:
        return InstanceStatus(
            instance_id=data['InstanceId'],
            instance_state=data['InstanceState']['Name'],
            # not-applicable for instances that are not running
            instance_status=data.get('InstanceStatus', {}).get('Status', NOT_APPLICABLE),
            system_status=data.get('SystemStatus', {}).get('Status', NOT_APPLICABLE),
        )
    except (KeyError, TypeError) as e:
        raise PredicateError(f"unexpected instance status shape, missing {e}", "DescribeInstanceStatus") from e


class EC2Compute(ComputeAPI):
    """ComputeAPI implementation over a boto3 EC2 client."""

    def __init__(self, ec2_client):
        self.ec2_client = ec2_client

    def _describe_instances(self, operation: str, **kwargs) -> List[Instance]:
        instances = []
        with remote_call(operation):
            paginator = self.ec2_client.get_paginator('describe_instances')
            for page in paginator.paginate(**kwargs):
                for reservation in page.get('Reservations', []):
                    for data in reservation.get('Instances', []):
                        instances.append(_parse_instance(data))
        return instances

    def describe(self, filters: Sequence[Filter]) -> List[Instance]:
        instances = self._describe_instances(
            'DescribeInstances',
            Filters=[f.to_boto() for f in filters],
        )
        logger.debug(f"Describe with {len(filters)} filter(s) matched {len(instances)} instance(s)")
        return instances

    def describe_states(self, instance_ids: Sequence[str]) -> List[Instance]:
        return self._describe_instances('DescribeInstances', InstanceIds=list(instance_ids))

    def describe_status(self, instance_ids: Sequence[str]) -> List[InstanceStatus]:
        statuses = []
        with remote_call('DescribeInstanceStatus'):
            paginator = self.ec2_client.get_paginator('describe_instance_status')
            for page in paginator.paginate(InstanceIds=list(instance_ids), IncludeAllInstances=True):
                for data in page.get('InstanceStatuses', []):
                    statuses.append(_parse_status(data))
        return statuses

    def start(self, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        with remote_call('StartInstances'):
            response = self.ec2_client.start_instances(InstanceIds=list(instance_ids))
        changes = response.get('StartingInstances', [])
        logger.info(f"Starting {len(changes)} instance(s): {list(instance_ids)}")
        return changes

    def stop(self, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        with remote_call('StopInstances'):
            response = self.ec2_client.stop_instances(InstanceIds=list(instance_ids))
        changes = response.get('StoppingInstances', [])
        logger.info(f"Stopping {len(changes)} instance(s): {list(instance_ids)}")
        return changes
