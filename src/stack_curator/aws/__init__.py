"""
AWS collaborators for the curator.

Typed wrappers over the EC2 and Auto Scaling APIs plus session setup with
optional IAM role assumption.
"""

from .base import AutoScalingAPI, ComputeAPI
from .autoscaling import AutoScalingService
from .compute import EC2Compute
from .clients import AWSClientManager

__all__ = [
    'AutoScalingAPI', 'ComputeAPI',
    'AutoScalingService', 'EC2Compute',
    'AWSClientManager'
]
