"""
Lifecycle transition engine.

Poll-based waiters, lifecycle predicates, ASG capacity control and the group
sequencer that ties them together for a stack run.
"""

from .context import CancelToken, RunContext
from .waiter import WaitPolicy, WaitState, compute_delay, wait_for
from .capacity import CapacityAdjustment, CapacityController
from .sequencer import GroupSequencer, SequenceResult

__all__ = [
    'CancelToken', 'RunContext',
    'WaitPolicy', 'WaitState', 'compute_delay', 'wait_for',
    'CapacityAdjustment', 'CapacityController',
    'GroupSequencer', 'SequenceResult'
]
