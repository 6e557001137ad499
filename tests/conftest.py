from __future__ import annotations

import gzip
import json
import sys
import threading
from pathlib import Path
from typing import Any, Sequence

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from rdbrestore.core.errors import EntityExistsError, EntityMissingError  # noqa: E402
from rdbrestore.core.models import IndexDescriptor, WriteOutcome  # noqa: E402
from rdbrestore.core.pool import SessionPool  # noqa: E402


class FakeServer:
    """In-memory stand-in for the server adapter.

    Keeps databases/tables/indexes so repeated creates answer "already exists",
    records every call, and can be told to under-report specific inserts.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.calls: list[tuple] = []
        self.databases: set[str] = set()
        self.tables: dict[tuple[str, str], str] = {}
        self.indexes: dict[tuple[str, str, str], str] = {}
        self.inserts: list[tuple[str, str, list[Any]]] = []
        # (table, 1-based insert number for that table) -> reported count
        self.short_writes: dict[tuple[str, int], int] = {}
        self.failing_tables: set[str] = set()

    def _record(self, *call: Any) -> None:
        with self.lock:
            self.calls.append(call)

    def create_database(self, conn: Any, name: str) -> None:
        self._record("create_database", name)
        with self.lock:
            if name in self.databases:
                raise EntityExistsError(f"Database `{name}` already exists.")
            self.databases.add(name)

    def drop_database(self, conn: Any, name: str) -> None:
        self._record("drop_database", name)
        with self.lock:
            if name not in self.databases:
                raise EntityMissingError(f"Database `{name}` does not exist.")
            self.databases.discard(name)
            for key in [k for k in self.tables if k[0] == name]:
                del self.tables[key]

    def create_table(self, conn: Any, db: str, name: str, primary_key: str) -> None:
        self._record("create_table", db, name, primary_key)
        if name in self.failing_tables:
            raise RuntimeError(f"cannot create {db}.{name}")
        with self.lock:
            if (db, name) in self.tables:
                raise EntityExistsError(f"Table `{db}.{name}` already exists.")
            self.tables[(db, name)] = primary_key

    def create_index(self, conn: Any, db: str, table: str, index: IndexDescriptor) -> None:
        self._record("create_index", db, table, index.name, index.envelope())
        with self.lock:
            if (db, table, index.name) in self.indexes:
                raise EntityExistsError(f"Index `{index.name}` already exists.")
            self.indexes[(db, table, index.name)] = index.envelope()["data"]

    def wait_for_indexes(
        self, conn: Any, db: str, table: str, names: Sequence[str]
    ) -> None:
        self._record("wait_for_indexes", db, table, list(names))

    def insert_batch(
        self, conn: Any, db: str, table: str, records: list[Any]
    ) -> WriteOutcome:
        with self.lock:
            self.inserts.append((db, table, list(records)))
            number = sum(1 for _, t, _ in self.inserts if t == table)
        self._record("insert_batch", db, table, len(records))
        inserted = self.short_writes.get((table, number), len(records))
        return WriteOutcome(inserted=inserted)

    def inserted_sizes(self, table: str) -> list[int]:
        return [len(batch) for _, t, batch in self.inserts if t == table]


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def pool() -> SessionPool:
    return SessionPool(object, max_open=4)


def write_info(
    root: Path,
    db: str,
    table: str,
    *,
    primary_key: str = "id",
    indexes: list[dict[str, Any]] | None = None,
) -> Path:
    path = root / db / f"{table}.info"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {
                "name": table,
                "db": {"name": db},
                "primary_key": primary_key,
                "indexes": indexes or [],
            }
        )
    )
    return path


def write_data(
    root: Path, db: str, table: str, records: list[Any], *, compressed: bool = False
) -> Path:
    payload = json.dumps(records).encode("utf-8")
    suffix = ".jsongz" if compressed else ".json"
    path = root / db / f"{table}{suffix}"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(gzip.compress(payload) if compressed else payload)
    return path
