import io

from stack_curator.models import Instance
from stack_curator.report import HEADERS, group_rows, print_group, render_table
from tests.fixtures.aws_fixtures import make_stack


def resolved_group():
    group = make_stack("databases").groups[0]
    return group.with_instances([
        Instance("i-0001", "stopped", name="db-primary", private_ip="10.0.0.1"),
        Instance("i-0002", "stopped", name="db-replica"),
    ])


def test_group_name_only_on_first_row():
    rows = group_rows(resolved_group())
    assert [r[0] for r in rows] == ["databases", ""]
    assert rows[1] == ["", "i-0002", "db-replica", "", "stopped"]


def test_render_table_plain():
    table = render_table(group_rows(resolved_group()))
    lines = table.splitlines()

    assert lines[0] == lines[2] == lines[-1]
    assert all(h.upper() in lines[1] for h in HEADERS)
    assert "i-0001" in lines[3]
    assert "\x1b[" not in table
    assert len({len(line) for line in lines}) == 1


def test_print_group_to_stream():
    stream = io.StringIO()
    print_group(resolved_group(), stream=stream)
    output = stream.getvalue()
    assert "db-primary" in output
    assert "\x1b[" not in output
