"""
Unit tests for stack sequencing.
Stacks are wired to in-memory EC2 / Auto Scaling doubles sharing one call log.
"""

import pytest

from stack_curator.curator.context import CancelToken
from stack_curator.curator.sequencer import GroupSequencer, INSTANCE_STATE_FILTER
from stack_curator.errors import RemoteCallError, WaiterCancelledError
from stack_curator.models import Direction, LifecycleState
from tests.consts import TEST_ASG_NAME, TEST_STACK_NAME
from tests.fixtures.aws_fixtures import (
    CallLog,
    FakeAutoScaling,
    FakeCompute,
    make_context,
    make_stack,
)

IN_SERVICE = LifecycleState.IN_SERVICE
STANDBY = LifecycleState.STANDBY


class FailingCompute(FakeCompute):
    """Stop calls are rejected by EC2"""

    def stop(self, instance_ids):
        self.log.record("stop", list(instance_ids))
        raise RemoteCallError("StopInstances", "instance is protected", code="OperationNotPermitted")


class TestGroupSequencer:
    """Group ordering and per-group transitions"""

    @pytest.fixture(autouse=True)
    def setup_teardown(self):
        self.log = CallLog()
        self.compute = FakeCompute(self.log)
        self.autoscaling = FakeAutoScaling(self.log)
        self.reported = []
        yield

    def add(self, instance_id, group, state="stopped"):
        self.compute.add_instance(instance_id, state=state, Stack=TEST_STACK_NAME, Group=group)

    def sequencer(self, stack, dry_run=False, compute=None):
        return GroupSequencer(
            compute or self.compute,
            self.autoscaling,
            make_context(stack, dry_run=dry_run),
            reporter=self.reported.append,
        )

    def test_bring_up_runs_groups_in_reverse(self):
        stack = make_stack("A", "B", "C")
        for name in ("A", "B", "C"):
            self.add(f"i-{name.lower()}", name)

        result = self.sequencer(stack).bring_up()

        assert result.visited == ["C", "B", "A"]
        assert [c[1] for c in self.log.calls if c[0] == "start"] == [["i-c"], ["i-b"], ["i-a"]]
        assert result.direction == Direction.BRING_UP

    def test_tear_down_runs_groups_in_declared_order(self):
        stack = make_stack("A", "B", "C")
        for name in ("A", "B", "C"):
            self.add(f"i-{name.lower()}", name, state="running")

        result = self.sequencer(stack).tear_down()

        assert result.visited == ["A", "B", "C"]
        assert [c[1] for c in self.log.calls if c[0] == "stop"] == [["i-a"], ["i-b"], ["i-c"]]

    def test_empty_group_is_skipped(self):
        stack = make_stack("A", "B")
        self.add("i-a", "A")

        result = self.sequencer(stack).bring_up()

        assert result.skipped == ["B"]
        assert result.processed == ["A"]
        assert self.log.mutating() == [("start", ["i-a"])]
        assert [g.name for g in self.reported] == ["A"]

    def test_state_filter_is_appended(self):
        stack = make_stack("A")
        self.add("i-a", "A")
        self.add("i-gone", "A", state="terminated")

        self.sequencer(stack).bring_up()

        filters = self.compute.describe_filters[0]
        assert [f.name for f in filters] == ["tag:Stack", "tag:Group", "instance-state-name"]
        assert filters[-1] == INSTANCE_STATE_FILTER
        assert self.reported[0].instance_ids == ["i-a"]

    def test_bring_up_returns_standby_instances_to_service(self):
        stack = make_stack("g1")
        self.add("i-1", "g1")
        self.add("i-2", "g1")
        self.autoscaling.add_group(TEST_ASG_NAME, 0, 2, {"i-1": STANDBY, "i-2": STANDBY})

        self.sequencer(stack).bring_up()

        assert self.log.mutating() == [
            ("exit_standby", TEST_ASG_NAME, ["i-1", "i-2"]),
            ("update_group", TEST_ASG_NAME, {"min_size": 2, "max_size": None}),
            ("start", ["i-1", "i-2"]),
        ]
        group = self.autoscaling.groups[TEST_ASG_NAME]
        assert (group.min_size, group.max_size) == (2, 2)
        assert all(self.compute.instances[i].state == "running" for i in ("i-1", "i-2"))

    def test_tear_down_enters_standby_before_stopping(self):
        stack = make_stack("g1")
        self.add("i-1", "g1", state="running")
        self.add("i-2", "g1", state="running")
        self.autoscaling.add_group(TEST_ASG_NAME, 2, 2, {"i-1": IN_SERVICE, "i-2": IN_SERVICE})

        self.sequencer(stack).tear_down()

        assert self.log.mutating() == [
            ("update_group", TEST_ASG_NAME, {"min_size": 0, "max_size": None}),
            ("enter_standby", TEST_ASG_NAME, ["i-1", "i-2"], True),
            ("stop", ["i-1", "i-2"]),
        ]
        assert self.autoscaling.groups[TEST_ASG_NAME].desired_capacity == 0

    def test_dry_run_makes_no_changes(self):
        stack = make_stack("g1", "g2")
        self.add("i-1", "g1")
        self.add("i-2", "g2")
        self.autoscaling.add_group(TEST_ASG_NAME, 0, 1, {"i-1": STANDBY, "i-2": STANDBY})

        result = self.sequencer(stack, dry_run=True).bring_up()

        assert self.log.mutating() == []
        assert result.dry_run
        assert result.processed == ["g2", "g1"]

    def test_error_aborts_remaining_groups(self):
        stack = make_stack("A", "B")
        compute = FailingCompute(self.log)
        compute.add_instance("i-a", state="running", Stack=TEST_STACK_NAME, Group="A")
        compute.add_instance("i-b", state="running", Stack=TEST_STACK_NAME, Group="B")

        with pytest.raises(RemoteCallError):
            self.sequencer(stack, compute=compute).tear_down()

        assert len(compute.describe_filters) == 1
        assert self.log.mutating() == [("stop", ["i-a"])]

    def test_cancelled_run_processes_nothing(self):
        stack = make_stack("A")
        self.add("i-a", "A")
        context = make_context(stack)
        context.token = CancelToken()
        context.token.cancel("interrupted by SIGTERM")

        with pytest.raises(WaiterCancelledError):
            GroupSequencer(self.compute, self.autoscaling, context).bring_up()

        assert self.log.calls == []
