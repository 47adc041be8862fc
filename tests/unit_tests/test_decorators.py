import logging

import pytest

from stack_curator.utils.decorators import log_execution_time


def test_logs_duration_with_label(caplog):
    @log_execution_time(label="stack run")
    def run():
        return "done"

    with caplog.at_level(logging.INFO, logger="stack_curator.utils.decorators"):
        assert run() == "done"

    assert "stack run took" in caplog.text


def test_bare_decorator_uses_qualified_name(caplog):
    @log_execution_time
    def bring_up():
        return 1

    with caplog.at_level(logging.INFO, logger="stack_curator.utils.decorators"):
        bring_up()

    assert "bring_up took" in caplog.text


def test_failure_is_logged_and_reraised(caplog):
    @log_execution_time
    def broken():
        raise ValueError("boom")

    with caplog.at_level(logging.INFO, logger="stack_curator.utils.decorators"):
        with pytest.raises(ValueError):
            broken()

    assert "failed after" in caplog.text
    assert "ValueError" in caplog.text
