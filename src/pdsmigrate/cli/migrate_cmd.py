"""CLI command handler for the migrate workflow."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from pdsmigrate.cli.common import cli, configure_logging, handle_exception
from pdsmigrate.cli.interactive import run_interactive
from pdsmigrate.cli.pipe import handle_pipe
from pdsmigrate.config import MigratorConfig
from pdsmigrate.operations import Operations

logger = logging.getLogger(__name__)


@cli.command()
@click.option(
    "--pipe",
    "-p",
    "pipe_mode",
    is_flag=True,
    default=False,
    help="Read a serialized migration from stdin and write its new state to stdout",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=60.0,
    show_default=True,
    help="Per-request HTTP timeout in seconds",
)
@click.option(
    "--blob-page-size",
    type=click.IntRange(1, 1000),
    default=500,
    show_default=True,
    help="Blob CIDs requested per listBlobs page",
)
@click.option(
    "--no-tracing",
    is_flag=True,
    default=False,
    help="Do not emit OpenTelemetry spans",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Log progress to stderr (-vv for debug output)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Print full tracebacks on failure",
)
def migrate(
    pipe_mode: bool,
    timeout: float,
    blob_page_size: int,
    no_tracing: bool,
    verbose: int,
    debug: bool,
) -> None:
    """Perform a migration, interactively or as one step of a pipeline.

    Args:
        pipe_mode: Use the JSON stdin/stdout protocol instead of prompts.
        timeout: Per-request HTTP timeout in seconds.
        blob_page_size: Blob CIDs requested per listBlobs page.
        no_tracing: Disable OpenTelemetry spans.
        verbose: Logging verbosity.
        debug: Print full tracebacks on failure.
    """
    configure_logging(verbose)
    config = MigratorConfig(
        request_timeout=timeout,
        blob_page_size=blob_page_size,
        enable_tracing=not no_tracing,
    )
    operations = Operations.from_config(config)
    logger.debug("Starting migrate command with %s", config.to_dict())

    try:
        if pipe_mode:
            asyncio.run(
                handle_pipe(
                    sys.stdin,
                    sys.stdout,
                    operations=operations,
                    enable_tracing=config.enable_tracing,
                )
            )
        else:
            asyncio.run(
                run_interactive(operations=operations, enable_tracing=config.enable_tracing)
            )
    except click.Abort:
        raise
    except Exception as e:
        handle_exception(e, debug=debug)
        sys.exit(1)
