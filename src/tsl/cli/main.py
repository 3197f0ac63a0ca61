"""TSL CLI entry point."""

import logging

import click

from tsl.config import TSLConfig

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (default: TSL_LOG_LEVEL or WARNING).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """TSL filter expression language CLI."""
    try:
        config = TSLConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e))

    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    ctx.obj = config


# Register subcommands
from tsl.cli.commands import aggregates, eval_cmd, filter_cmd, parse_cmd  # noqa: E402

cli.add_command(parse_cmd)
cli.add_command(eval_cmd)
cli.add_command(filter_cmd)
cli.add_command(aggregates)
