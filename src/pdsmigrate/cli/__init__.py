"""
Command line interface.

Importing this package registers every subcommand on the ``cli`` group.
"""

from pdsmigrate.cli import migrate_cmd  # noqa: F401
from pdsmigrate.cli.common import cli, configure_logging, handle_exception


def main() -> None:
    """Console script entry point."""
    cli()


__all__ = ["cli", "configure_logging", "handle_exception", "main"]
