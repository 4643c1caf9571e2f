"""CLI entrypoint for testfleet."""

import logging

import rich_click as click

from testfleet import __version__
from testfleet.config import ConfigError
from testfleet.scheduler.controllers import ListTasksCommand, RunCliController, RunCommand

click.rich_click.USE_MARKDOWN = True
RUN_CONTROLLER = RunCliController()

_SPEC_HELP = "Comma-separated spec file paths. Defaults to TESTFLEET_SPEC_GLOB matches."
_CAP_HELP = "Comma-separated capability names. Defaults to all configured capabilities."


@click.group()
@click.version_option(version=__version__, prog_name="testfleet")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Root logger level.",
)
def testfleet(log_level: str) -> None:
    """Capability-scoped test runner."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@testfleet.command("run")
@click.option("--spec", default=None, help=_SPEC_HELP)
@click.option("--cap", default=None, help=_CAP_HELP)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retry rounds for failed tasks. Overrides TESTFLEET_RETRIES.",
)
def run(spec: str | None, cap: str | None, retries: int | None) -> None:
    """Run the selected tests; exits 0 only if every task eventually passed."""

    RUN_CONTROLLER.run(RunCommand(spec=spec, cap=cap, retries=retries))


@testfleet.command("list")
@click.option("--spec", default=None, help=_SPEC_HELP)
@click.option("--cap", default=None, help=_CAP_HELP)
def list_tasks(spec: str | None, cap: str | None) -> None:
    """Print the task set after only-suite selection, without running it."""

    try:
        lines = RUN_CONTROLLER.list_tasks(ListTasksCommand(spec=spec, cap=cap))
    except ConfigError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@testfleet.command("capabilities")
def capabilities() -> None:
    """Show configured capabilities and their concurrency."""

    try:
        lines = RUN_CONTROLLER.capabilities()
    except ConfigError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    testfleet()
