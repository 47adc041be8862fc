# cli.py
import click
import logging
import signal
import sys
from typing import Optional

import boto3

from stack_curator.aws.clients import AWSClientManager
from stack_curator.config.settings import get_settings
from stack_curator.curator.context import CancelToken, RunContext
from stack_curator.curator.sequencer import GroupSequencer
from stack_curator.errors import CuratorError
from stack_curator.loader import load_stack
from stack_curator.models import Direction
from stack_curator.report import print_group

# Configure logging
logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    settings = get_settings()
    log_level = logging.DEBUG if debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=log_level, format='%(asctime)s %(levelname)s: %(message)s')
    if debug:
        # request/response logging from the AWS SDK
        boto3.set_stream_logger('botocore', logging.DEBUG)


def install_signal_handlers(token: CancelToken) -> dict:
    """Cancel the run on SIGINT/SIGTERM instead of dying mid-wait.

    Returns the previous handlers so they can be restored.
    """
    def handler(signum, frame):
        token.cancel(f"interrupted by {signal.Signals(signum).name}")

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)
    return previous


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--stack", "stack_file", required=True,
              type=click.Path(dir_okay=False),
              help="Path to a stack document")
@click.option("--debug", is_flag=True, default=False, help="Turn on debug logging")
@click.pass_context
def cli(ctx, stack_file, debug):
    """EC2 instance stack curator.

    Curates ASG based stacks of EC2 instances: executes startup and shutdown
    of groups of instances in a predictable sequential manner.
    """
    configure_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["stack_file"] = stack_file


def _load(ctx):
    try:
        return load_stack(ctx.obj["stack_file"])
    except CuratorError as e:
        logger.error(f"❌ {e}")
        ctx.exit(1)


def _run(ctx, direction: Direction, dry_run: bool, timeout: Optional[float]) -> None:
    stack = _load(ctx)
    token = CancelToken.with_timeout(timeout)
    previous_handlers = install_signal_handlers(token)
    context = RunContext(stack=stack, dry_run=dry_run, token=token)

    try:
        manager = AWSClientManager(region=stack.region, role_arn=stack.role_arn)
        sequencer = GroupSequencer(
            manager.compute(),
            manager.autoscaling(),
            context,
            reporter=print_group,
        )
        result = sequencer.run(direction)
    except CuratorError as e:
        logger.error(f"❌ Instance stack {stack.name}: {e}")
        ctx.exit(1)
    finally:
        for signum, previous in previous_handlers.items():
            signal.signal(signum, previous)

    click.echo(
        f"Instance stack {result.stack_name}: {len(result.processed)} group(s) processed, "
        f"{len(result.skipped)} skipped" + (" (dry run)" if result.dry_run else "")
    )


@cli.command()
@click.pass_context
def validate(ctx):
    """Validate instance stack"""
    stack = _load(ctx)
    click.echo(f"✅ Instance stack {stack.name} is valid ({len(stack.groups)} groups)")


@cli.command()
@click.option("--dry-run", is_flag=True, default=False,
              help="Discover and report only, without changing any instance")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Abort the run after this many seconds")
@click.pass_context
def startup(ctx, dry_run, timeout):
    """Startup instance stack"""
    _run(ctx, Direction.BRING_UP, dry_run, timeout)


@cli.command()
@click.option("--dry-run", is_flag=True, default=False,
              help="Discover and report only, without changing any instance")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Abort the run after this many seconds")
@click.pass_context
def shutdown(ctx, dry_run, timeout):
    """Shutdown instance stack"""
    _run(ctx, Direction.TEAR_DOWN, dry_run, timeout)


def main():
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
