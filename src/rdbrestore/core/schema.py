"""Schema reconciliation: create databases, tables and indexes before loading.

Reconciliation is best effort per entity. An entity that already exists is
reported as such and never treated as a failure, so running it twice against
the same server is harmless. Any other failure is recorded and logged, and
sibling operations carry on.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Protocol, Sequence

from rdbrestore.core.catalog import Catalog
from rdbrestore.core.errors import EntityExistsError, EntityMissingError
from rdbrestore.core.models import IndexDescriptor, SchemaOpResult, TableDescriptor
from rdbrestore.core.pool import DEFAULT_POOL_SIZE, SessionPool

log = logging.getLogger(__name__)


class SchemaAdapter(Protocol):
    """Interface for the schema requests issued during a restore."""

    def create_database(self, conn: Any, name: str) -> None:
        ...

    def drop_database(self, conn: Any, name: str) -> None:
        ...

    def create_table(self, conn: Any, db: str, name: str, primary_key: str) -> None:
        ...

    def create_index(self, conn: Any, db: str, table: str, index: IndexDescriptor) -> None:
        ...

    def wait_for_indexes(
        self, conn: Any, db: str, table: str, names: Sequence[str]
    ) -> None:
        ...


def _attempt(
    pool: SessionPool,
    operation: str,
    target: str,
    call: Callable[[Any], None],
    *,
    tolerate: type[Exception] = EntityExistsError,
) -> SchemaOpResult:
    """Run one schema request on a pooled session and capture its outcome."""
    try:
        with pool.session() as conn:
            call(conn)
    except tolerate as exc:
        log.info("%s %s: skipped (%s)", operation, target, exc)
        return SchemaOpResult(operation=operation, target=target, ok=True, skipped=True)
    except Exception as exc:  # noqa: BLE001
        log.error("%s %s failed: %s", operation, target, exc)
        return SchemaOpResult(operation=operation, target=target, ok=False, error=str(exc))

    log.info("%s %s: done", operation, target)
    return SchemaOpResult(operation=operation, target=target, ok=True)


def _reconcile_table(
    adapter: SchemaAdapter, pool: SessionPool, table: TableDescriptor
) -> list[SchemaOpResult]:
    """Create one table, then its indexes in declaration order."""
    db = table.database.name
    results = [
        _attempt(
            pool,
            "create table",
            table.full_name,
            lambda conn: adapter.create_table(conn, db, table.name, table.primary_key),
        )
    ]
    if not results[0].ok:
        return results

    created: list[str] = []
    for index in table.indexes:
        result = _attempt(
            pool,
            "create index",
            f"{table.full_name}:{index.name}",
            lambda conn, index=index: adapter.create_index(conn, db, table.name, index),
        )
        results.append(result)
        if result.ok and not result.skipped:
            created.append(index.name)

    if created:
        results.append(
            _attempt(
                pool,
                "wait for indexes",
                table.full_name,
                lambda conn: adapter.wait_for_indexes(conn, db, table.name, created),
            )
        )
    return results


def reconcile_schema(
    catalog: Catalog,
    adapter: SchemaAdapter,
    pool: SessionPool,
    *,
    max_parallel: int = DEFAULT_POOL_SIZE,
) -> list[SchemaOpResult]:
    """
    Create every database, table and index named in the catalog.

    All database creations are issued (concurrently) and answered before any
    table creation starts. Tables are then created concurrently; each table
    creates its own indexes once the table exists.

    Args:
        catalog: Tables grouped by database.
        adapter: Server adapter used to issue the requests.
        pool: Session pool; each request holds one session.
        max_parallel: Maximum number of requests in flight.

    Returns:
        One SchemaOpResult per request, databases first, then tables in
        catalog order, each followed by its index results.
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")
    if not catalog.databases:
        return []

    results: list[SchemaOpResult] = []

    with ThreadPoolExecutor(max_workers=max_parallel) as executor:
        db_futures = [
            executor.submit(
                _attempt,
                pool,
                "create database",
                db.name,
                lambda conn, name=db.name: adapter.create_database(conn, name),
            )
            for db in catalog.databases
        ]
        results.extend(f.result() for f in db_futures)

        table_futures = [
            executor.submit(_reconcile_table, adapter, pool, table)
            for table in catalog.tables()
        ]
        for f in table_futures:
            results.extend(f.result())

    return results


def drop_databases(
    catalog: Catalog,
    adapter: SchemaAdapter,
    pool: SessionPool,
) -> list[SchemaOpResult]:
    """Drop every database named in the catalog. Missing databases are skipped."""
    return [
        _attempt(
            pool,
            "drop database",
            db.name,
            lambda conn, name=db.name: adapter.drop_database(conn, name),
            tolerate=EntityMissingError,
        )
        for db in catalog.databases
    ]
