"""Common CLI options for the CLI."""

import typer

from rdbrestore.core.adapters.reql import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_USER
from rdbrestore.core.models import DecodeErrorPolicy
from rdbrestore.core.pipeline import DEFAULT_BATCH_SIZE
from rdbrestore.core.pool import DEFAULT_POOL_SIZE

DirectoryArg = typer.Argument(
    ...,
    help="Dump root: one directory per database, one data file per table.",
    show_default=False,
)

HostOpt = typer.Option(
    DEFAULT_HOST,
    "--host",
    "-h",
    envvar="RDBRESTORE_HOST",
    help="Server host",
)

PortOpt = typer.Option(
    DEFAULT_PORT,
    "--port",
    "-p",
    envvar="RDBRESTORE_PORT",
    help="Server driver port",
)

UserOpt = typer.Option(
    DEFAULT_USER,
    "--user",
    envvar="RDBRESTORE_USER",
    help="Server user",
)

PasswordOpt = typer.Option(
    None,
    "--password",
    envvar="RDBRESTORE_PASSWORD",
    help="Server password",
    show_default=False,
)

BatchSizeOpt = typer.Option(
    DEFAULT_BATCH_SIZE,
    "--batch-size",
    min=1,
    help="Records per insert request",
)

PoolSizeOpt = typer.Option(
    DEFAULT_POOL_SIZE,
    "--pool-size",
    min=1,
    help="Maximum number of concurrent server connections",
)

WorkersOpt = typer.Option(
    None,
    "--workers",
    min=1,
    help="Maximum number of files restored at once (default: all)",
    show_default=False,
)

DecodeErrorsOpt = typer.Option(
    DecodeErrorPolicy.STOP,
    "--on-decode-error",
    case_sensitive=False,
    help="On a malformed data file: keep what was read (stop) or fail the file (fail)",
)

DropOpt = typer.Option(
    False,
    "--drop",
    help="Drop the dump's databases before recreating them",
)

YesOpt = typer.Option(
    False,
    "--yes",
    "-y",
    help="Do not ask for confirmation before dropping databases",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would be restored, but don't touch the server",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable debug logging",
)
