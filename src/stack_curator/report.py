"""Console rendering of resolved instance groups."""
import sys
from typing import List, Optional, TextIO

import click

from stack_curator.models import Group

HEADERS = ["Group", "Instance ID", "Name", "Private IP", "State"]
COLUMN_COLORS = ["red", "yellow", "green", "green", "green"]


def group_rows(group: Group) -> List[List[str]]:
    """Table rows for a group; the group name is shown on the first row only."""
    rows = []
    for index, instance in enumerate(group.instances):
        rows.append([
            group.name if index == 0 else "",
            instance.instance_id,
            instance.name,
            instance.private_ip or "",
            instance.state,
        ])
    return rows


def render_table(rows: List[List[str]], color: bool = False) -> str:
    widths = [len(h) for h in HEADERS]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(cells, styled):
        parts = []
        for i, cell in enumerate(cells):
            text = cell.ljust(widths[i])
            if styled and cell:
                text = click.style(text, fg=COLUMN_COLORS[i])
            parts.append(text)
        return "| " + " | ".join(parts) + " |"

    border = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    lines = [border, line([h.upper() for h in HEADERS], False), border]
    lines.extend(line(row, color) for row in rows)
    lines.append(border)
    return "\n".join(lines)


def print_group(group: Group, stream: Optional[TextIO] = None) -> None:
    """Print the instances of a resolved group, colored on a terminal."""
    stream = stream or sys.stdout
    color = hasattr(stream, 'isatty') and stream.isatty()
    click.echo(render_table(group_rows(group), color=color), file=stream, color=color)
