from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Any, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from stack_curator.errors import RemoteCallError
from stack_curator.models import (
    AutoScalingGroup,
    AutoScalingInstance,
    Filter,
    Instance,
    InstanceStatus,
)


@contextmanager
def remote_call(operation: str):
    """Translate botocore failures into RemoteCallError for the given operation."""
    try:
        yield
    except ClientError as e:
        error = e.response.get('Error', {})
        raise RemoteCallError(
            operation,
            error.get('Message') or str(e),
            code=error.get('Code'),
        ) from e
    except BotoCoreError as e:
        raise RemoteCallError(operation, str(e)) from e


class ComputeAPI(ABC):
    """EC2 operations the curator needs"""

    @abstractmethod
    def describe(self, filters: Sequence[Filter]) -> List[Instance]:
        """Find instances matching all filters

        Args:
            filters: EC2 describe filters

        Returns:
            Matching instances
        """
        pass

    @abstractmethod
    def describe_states(self, instance_ids: Sequence[str]) -> List[Instance]:
        """Describe the current state of the given instances"""
        pass

    @abstractmethod
    def describe_status(self, instance_ids: Sequence[str]) -> List[InstanceStatus]:
        """Describe status checks of the given instances"""
        pass

    @abstractmethod
    def start(self, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Start instances

        Returns:
            Instance state changes reported by EC2
        """
        pass

    @abstractmethod
    def stop(self, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Stop instances

        Returns:
            Instance state changes reported by EC2
        """
        pass


class AutoScalingAPI(ABC):
    """Auto Scaling operations the curator needs"""

    @abstractmethod
    def describe_instances(self, instance_ids: Sequence[str]) -> List[AutoScalingInstance]:
        """Describe ASG membership and lifecycle state of instances

        Instances that are not ASG-managed are absent from the result.
        """
        pass

    @abstractmethod
    def describe_groups(self, names: Sequence[str]) -> List[AutoScalingGroup]:
        """Describe Auto Scaling groups by name"""
        pass

    @abstractmethod
    def update_group(self, name: str, min_size: Optional[int] = None,
                     max_size: Optional[int] = None) -> None:
        """Update min and/or max size of an Auto Scaling group"""
        pass

    @abstractmethod
    def enter_standby(self, name: str, instance_ids: Sequence[str],
                      decrement_desired_capacity: bool = True) -> List[Dict[str, Any]]:
        """Move instances into standby

        Returns:
            Scaling activities started by the call
        """
        pass

    @abstractmethod
    def exit_standby(self, name: str, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Return instances from standby to service

        Returns:
            Scaling activities started by the call
        """
        pass
