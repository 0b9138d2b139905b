"""CLI entrypoint for adaptation-service."""

import logging

import rich_click as click

from adaptation_service import __version__
from adaptation_service.controllers import DispatcherCliController, RunDispatcherCommand
from adaptation_service.errors import AdaptationServiceError

click.rich_click.USE_MARKDOWN = True
DISPATCHER_CONTROLLER = DispatcherCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("adaptation_service")


@click.group()
@click.version_option(version=__version__, prog_name="adaptation-service")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Root logging level.",
)
def adaptation_service(log_level: str) -> None:
    """Dispatch file adaptation requests from RabbitMQ to Kubernetes worker pods."""

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)


@adaptation_service.command("run")
@click.option(
    "--metrics-port",
    type=click.IntRange(min=0),
    default=None,
    help="Expose prometheus metrics on this port (overrides METRICS_PORT, 0 disables).",
)
def run(metrics_port: int | None) -> None:
    """Consume adaptation requests until SIGINT or SIGTERM."""

    try:
        lines = DISPATCHER_CONTROLLER.run(RunDispatcherCommand(metrics_port=metrics_port))
    except AdaptationServiceError as error:
        logger.error("%s", error)
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@adaptation_service.command("check-config")
def check_config() -> None:
    """Validate the environment without connecting to the broker."""

    result = DISPATCHER_CONTROLLER.check_config()
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("init failed: environment variables missing or invalid.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    adaptation_service()
