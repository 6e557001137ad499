from __future__ import annotations

import logging
from typing import Any, Sequence

from rethinkdb import RethinkDB
from rethinkdb.errors import ReqlDriverError, ReqlError, ReqlOpFailedError

from rdbrestore.core.errors import (
    ConnectionUnavailableError,
    EntityExistsError,
    EntityMissingError,
    RestoreError,
    SchemaOperationFailedError,
    WriteVerificationFailedError,
)
from rdbrestore.core.models import IndexDescriptor, WriteOutcome

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 28015
DEFAULT_USER = "admin"

# The driver refuses documents nested deeper than 20 levels by default.
_MAX_NESTING_DEPTH = 100

r = RethinkDB()

log = logging.getLogger(__name__)


class RethinkDBAdapter:
    """Adapter around the RethinkDB driver (connections, schema and writes)."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        user: str = DEFAULT_USER,
        password: str | None = None,
        timeout: int = 20,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def connect(self) -> Any:
        """Open a new connection to the configured server."""
        try:
            return r.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password or "",
                timeout=self.timeout,
            )
        except ReqlDriverError as exc:
            raise ConnectionUnavailableError(
                f"cannot connect to {self.host}:{self.port}: {exc}"
            ) from exc

    def _run_schema(self, conn: Any, query: Any, what: str) -> Any:
        """Run a schema query, translating driver errors into restore errors."""
        try:
            return query.run(conn)
        except ReqlDriverError as exc:
            raise ConnectionUnavailableError(f"{what}: {exc}") from exc
        except ReqlOpFailedError as exc:
            message = str(exc)
            if "already exists" in message:
                raise EntityExistsError(f"{what}: {message}") from exc
            if "does not exist" in message:
                raise EntityMissingError(f"{what}: {message}") from exc
            raise SchemaOperationFailedError(f"{what}: {message}") from exc
        except ReqlError as exc:
            raise SchemaOperationFailedError(f"{what}: {exc}") from exc

    def create_database(self, conn: Any, name: str) -> None:
        self._run_schema(conn, r.db_create(name), f"create database {name}")

    def drop_database(self, conn: Any, name: str) -> None:
        self._run_schema(conn, r.db_drop(name), f"drop database {name}")

    def create_table(self, conn: Any, db: str, name: str, primary_key: str) -> None:
        self._run_schema(
            conn,
            r.db(db).table_create(name, primary_key=primary_key),
            f"create table {db}.{name}",
        )

    def drop_table(self, conn: Any, db: str, name: str) -> None:
        self._run_schema(conn, r.db(db).table_drop(name), f"drop table {db}.{name}")

    def create_index(self, conn: Any, db: str, table: str, index: IndexDescriptor) -> None:
        """Create an index from its opaque serialized function."""
        self._run_schema(
            conn,
            r.db(db).table(table).index_create(index.name, index.envelope()),
            f"create index {db}.{table}:{index.name}",
        )

    def wait_for_indexes(
        self, conn: Any, db: str, table: str, names: Sequence[str]
    ) -> None:
        """Block until the named indexes are ready."""
        if not names:
            return
        self._run_schema(
            conn,
            r.db(db).table(table).index_wait(*names),
            f"wait for indexes on {db}.{table}",
        )

    def insert_batch(
        self, conn: Any, db: str, table: str, records: list[Any]
    ) -> WriteOutcome:
        """Insert one batch and return the server's write report."""
        what = f"insert into {db}.{table}"
        query = r.db(db).table(table).insert(
            r.expr(records, nesting_depth=_MAX_NESTING_DEPTH)
        )
        try:
            response = query.run(conn)
        except ReqlDriverError as exc:
            raise ConnectionUnavailableError(f"{what}: {exc}") from exc
        except ReqlError as exc:
            raise WriteVerificationFailedError(f"{what} rejected: {exc}") from exc

        if not isinstance(response, dict):
            raise RestoreError(f"{what}: unexpected response {response!r}")
        return WriteOutcome.from_response(response)
