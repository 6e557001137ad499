"""Restore orchestration.

This module ties the restore together: it builds the catalog from the dump's
metadata files, brings the server's schema in line with it, and then restores
every data file as an independent unit running in its own worker thread.
Unit failures are collected, never propagated, so one bad file cannot abort
the others; the caller decides what the aggregate report means.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Protocol

from rdbrestore.core.catalog import build_catalog
from rdbrestore.core.models import DecodeErrorPolicy, RestoreReport, RestoreUnit
from rdbrestore.core.pipeline import (
    DEFAULT_BATCH_SIZE,
    OPENERS,
    RestoreListener,
    WriteAdapter,
    restore_unit,
)
from rdbrestore.core.pool import SessionPool
from rdbrestore.core.schema import SchemaAdapter, drop_databases, reconcile_schema

log = logging.getLogger(__name__)


class RestoreAdapter(SchemaAdapter, WriteAdapter, Protocol):
    """Everything the orchestrator needs from the server adapter."""


def check_root(root: Path) -> None:
    """Raise if `root` is not an existing directory."""
    if not root.exists():
        raise FileNotFoundError(f"dump directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"not a directory: {root}")


def discover_units(root: Path) -> list[RestoreUnit]:
    """
    Find the data files below `root` and derive their restore units.

    The database name is the parent directory name and the table name is the
    file stem. Files sitting directly in `root` belong to no database and are
    skipped.
    """
    units: list[RestoreUnit] = []
    paths = sorted(
        p for suffix in OPENERS for p in root.glob(f"**/*{suffix}") if p.is_file()
    )
    for path in paths:
        if path.parent == root:
            log.warning("skipping %s: data files must live in a database directory", path)
            continue
        units.append(RestoreUnit(database=path.parent.name, table=path.stem, path=path))
    return units


def run_restore(
    root: Path,
    adapter: RestoreAdapter,
    pool: SessionPool,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    decode_errors: DecodeErrorPolicy = DecodeErrorPolicy.STOP,
    max_workers: int | None = None,
    drop_existing: bool = False,
    listener: RestoreListener | None = None,
) -> RestoreReport:
    """
    Restore the dump at `root`.

    Schema reconciliation runs to completion before any data is loaded. Then
    every data file is restored concurrently; the session pool bounds how many
    of them talk to the server at once.

    Args:
        root: Dump root directory.
        adapter: Server adapter.
        pool: Session pool shared by schema work and every unit.
        batch_size: Records per insert.
        decode_errors: Policy for malformed data files.
        max_workers: Cap on concurrently running units (default: one thread
            per data file).
        drop_existing: Drop every catalog database before recreating it.
        listener: Optional receiver of per-unit progress events.

    Returns:
        A RestoreReport holding every schema result and one UnitResult per
        data file, in discovery order.

    Raises:
        FileNotFoundError: If `root` does not exist.
        MetadataParseError: If any `.info` file is malformed.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if max_workers is not None and max_workers < 1:
        raise ValueError("max_workers must be >= 1")
    check_root(root)

    catalog = build_catalog(root)
    units = discover_units(root)
    log.info(
        "restoring %d table(s) in %d database(s) from %d data file(s)",
        len(catalog),
        len(catalog.databases),
        len(units),
    )

    schema_results = []
    if drop_existing:
        schema_results.extend(drop_databases(catalog, adapter, pool))
    schema_results.extend(
        reconcile_schema(catalog, adapter, pool, max_parallel=pool.max_open)
    )

    if not units:
        return RestoreReport(schema=schema_results, units=[])

    workers = max_workers or len(units)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="restore") as executor:
        futures = [
            executor.submit(
                restore_unit,
                unit,
                adapter,
                pool,
                batch_size=batch_size,
                decode_errors=decode_errors,
                listener=listener,
            )
            for unit in units
        ]
        unit_results = [f.result() for f in futures]

    report = RestoreReport(schema=schema_results, units=unit_results)
    log.info(
        "restore finished: %d record(s) written, %d of %d unit(s) failed",
        report.records_written,
        len(report.failed_units),
        len(report.units),
    )
    return report
