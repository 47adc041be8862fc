from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union, List
from enum import Enum


class LifecycleState(str, Enum):
    """Auto Scaling lifecycle states the curator acts on"""
    IN_SERVICE = "InService"
    STANDBY = "Standby"


def lifecycle_state_name(state: Union[LifecycleState, str]) -> str:
    """Plain name of a lifecycle state; unknown states are already raw strings."""
    if isinstance(state, LifecycleState):
        return state.value
    return state


class InstanceStateName(str, Enum):
    """EC2 instance states"""
    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Direction(str, Enum):
    """Direction of a stack run"""
    BRING_UP = "bring-up"
    TEAR_DOWN = "tear-down"


# ==========================================
# Stack document
# ==========================================

class Filter(BaseModel):
    """EC2 describe filter, e.g. {name: "tag:Stack", values: ["prod"]}"""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    values: List[str] = Field(..., min_length=1)

    @field_validator('values')
    @classmethod
    def values_not_blank(cls, v: List[str]) -> List[str]:
        for i, value in enumerate(v):
            if not value:
                raise ValueError(f"values[{i}] must not be empty")
        return v

    def to_boto(self) -> Dict[str, Any]:
        return {"Name": self.name, "Values": list(self.values)}


@dataclass
class Instance:
    """EC2 instance as seen by a describe call"""
    instance_id: str
    state: str
    name: str = ""
    private_ip: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


class Group(BaseModel):
    """Named subset of the stack moved together"""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    filters: List[Filter] = Field(..., min_length=1)

    # Resolved at run time, never part of the document
    instances: List[Instance] = Field(default_factory=list, exclude=True)

    @model_validator(mode='before')
    @classmethod
    def drop_runtime_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'instances' in data:
            data = {k: v for k, v in data.items() if k != 'instances'}
        return data

    @property
    def instance_ids(self) -> List[str]:
        return [i.instance_id for i in self.instances]

    def with_instances(self, instances: List[Instance]) -> "Group":
        """Return a copy of the group bound to its resolved instances."""
        return self.model_copy(update={"instances": list(instances)})


class Stack(BaseModel):
    """Ordered list of instance groups sharing baseline filters.

    Groups are stopped in declared order and started in reverse.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    region: Optional[str] = Field(default=None, min_length=1)
    role_arn: Optional[str] = Field(default=None, min_length=1, alias="role-arn")
    filters: List[Filter] = Field(..., min_length=1)
    groups: List[Group] = Field(..., min_length=1)

    def group_filters(self, group: Group) -> List[Filter]:
        """Stack baseline filters combined with the group's own filters."""
        return [*self.filters, *group.filters]


# ==========================================
# Runtime views of AWS resources
# ==========================================

@dataclass
class AutoScalingInstance:
    """Membership record of an instance in an Auto Scaling group"""
    instance_id: str
    group_name: str
    lifecycle_state: Union[LifecycleState, str]


@dataclass
class AutoScalingGroup:
    """Capacity bounds and members of an Auto Scaling group"""
    name: str
    min_size: int
    max_size: int
    desired_capacity: int = 0
    instance_ids: List[str] = field(default_factory=list)

    @property
    def member_count(self) -> int:
        return len(self.instance_ids)


@dataclass
class InstanceStatus:
    """Result of an EC2 status check"""
    instance_id: str
    instance_state: str
    instance_status: str
    system_status: str
