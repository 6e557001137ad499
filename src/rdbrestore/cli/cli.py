"""CLI application for restoring RethinkDB dumps."""

from pathlib import Path

import typer
from rich.markup import escape

from rdbrestore.cli.common.context import build_restore_context
from rdbrestore.cli.common.exits import die, exit_from_exc, ok_exit
from rdbrestore.cli.common.log_setup import configure_logging
from rdbrestore.cli.common.options import (
    BatchSizeOpt,
    DecodeErrorsOpt,
    DirectoryArg,
    DropOpt,
    DryRunOpt,
    HostOpt,
    PasswordOpt,
    PoolSizeOpt,
    PortOpt,
    UserOpt,
    VerboseOpt,
    WorkersOpt,
    YesOpt,
)
from rdbrestore.cli.common.output import out
from rdbrestore.cli.common.progress import RestoreProgress
from rdbrestore.core.catalog import build_catalog
from rdbrestore.core.errors import ConnectionUnavailableError, MetadataParseError
from rdbrestore.core.models import DecodeErrorPolicy
from rdbrestore.core.restore import check_root, discover_units, run_restore

app = typer.Typer(
    help="rdbrestore - restore a RethinkDB dump directory into a live server",
    no_args_is_help=True,
)


@app.command()
def restore(
    directory: Path = DirectoryArg,
    host: str = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: str | None = PasswordOpt,
    batch_size: int = BatchSizeOpt,
    pool_size: int = PoolSizeOpt,
    workers: int | None = WorkersOpt,
    on_decode_error: DecodeErrorPolicy = DecodeErrorsOpt,
    drop: bool = DropOpt,
    yes: bool = YesOpt,
    dry_run: bool = DryRunOpt,
    verbose: bool = VerboseOpt,
):
    """
    Recreate the dump's databases, tables and indexes, then load every data file.
    """
    configure_logging(verbose)

    try:
        check_root(directory)
    except OSError as exc:
        exit_from_exc(exc, message=escape(str(exc)), code=2)

    try:
        with out.status("Reading table metadata..."):
            catalog = build_catalog(directory)
    except MetadataParseError as exc:
        exit_from_exc(exc, message=f"Invalid table metadata: {escape(str(exc))}", code=1)

    units = discover_units(directory)

    out.header("Restore plan")
    out.kv(
        {
            "source": escape(str(directory)),
            "target": f"{host}:{port}",
            "databases": len(catalog.databases),
            "tables": len(catalog),
            "data files": len(units),
        }
    )

    if dry_run:
        out.catalog_table(catalog, title="Tables")
        out.units_table(units, title="Data files")
        ok_exit("Dry-run enabled: nothing was restored")

    if drop and not yes:
        names = ", ".join(db.name for db in catalog.databases)
        if not out.confirm(f"Drop database(s) {names} on {host}:{port}?"):
            ok_exit("Cancelled")

    appctx = build_restore_context(
        host, port, user=user, password=password, pool_size=pool_size
    )
    try:
        try:
            with out.status(f"Connecting to {host}:{port}..."):
                with appctx.pool.session():
                    pass
        except ConnectionUnavailableError as exc:
            exit_from_exc(exc, message=escape(str(exc)), code=1)

        with RestoreProgress(units) as progress:
            report = run_restore(
                directory,
                appctx.adapter,
                appctx.pool,
                batch_size=batch_size,
                decode_errors=on_decode_error,
                max_workers=workers,
                drop_existing=drop,
                listener=progress,
            )
    finally:
        appctx.close()

    if report.failed_schema_ops:
        out.schema_results_table(report.failed_schema_ops, title="Failed schema operations")
    out.unit_results_table(report.units, title="Restore results")

    if not report.ok:
        die(
            f"{len(report.failed_units)} of {len(report.units)} file(s) failed, "
            f"{len(report.failed_schema_ops)} schema operation(s) failed",
            code=1,
        )

    out.success(f"Restored {report.records_written} record(s) from {len(report.units)} file(s)")


if __name__ == "__main__":
    app()
