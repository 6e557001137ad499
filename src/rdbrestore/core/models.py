"""Core restore domain models.

This module defines the immutable data structures shared by the catalog,
schema and pipeline layers: descriptors parsed from `.info` metadata files,
the per-file restore unit, and the result types reported back to frontends.
It is intentionally free of driver and CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from rdbrestore.core.errors import ErrorKind

BINARY_REQL_TYPE = "BINARY"


@dataclass(frozen=True)
class DatabaseDescriptor:
    """A database named in the dump. Identity is the name."""

    name: str


@dataclass(frozen=True)
class IndexDescriptor:
    """
    A secondary index definition.

    Attributes:
        name: Index name.
        definition: The serialized index function exactly as read from the
            metadata file (the transport-encoded `data` member of a BINARY
            pseudo-type). It is opaque: never decoded or re-encoded.
    """

    name: str
    definition: str

    def envelope(self) -> dict[str, str]:
        """Wrap the definition in the server's binary-value envelope."""
        return {"$reql_type$": BINARY_REQL_TYPE, "data": self.definition}

    @classmethod
    def from_info(cls, payload: Mapping[str, Any]) -> IndexDescriptor:
        """Build an index descriptor from one entry of an `.info` `indexes` list."""
        name = payload.get("index")
        if not isinstance(name, str) or not name:
            raise ValueError("index entry has no `index` name")

        function = payload.get("function")
        if isinstance(function, Mapping):
            if function.get("$reql_type$") != BINARY_REQL_TYPE:
                raise ValueError(f"index `{name}` function is not a BINARY value")
            definition = function.get("data")
        else:
            definition = function
        if not isinstance(definition, str):
            raise ValueError(f"index `{name}` has no function data")

        return cls(name=name, definition=definition)


@dataclass(frozen=True)
class TableDescriptor:
    """A table as declared by its `.info` metadata file."""

    name: str
    database: DatabaseDescriptor
    primary_key: str = "id"
    indexes: tuple[IndexDescriptor, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.database.name}.{self.name}"

    @classmethod
    def from_info(cls, payload: Any) -> TableDescriptor:
        """
        Build a table descriptor from a decoded `.info` document.

        Raises:
            ValueError: If required fields are missing or have the wrong type.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("table info must be a JSON object")

        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("table info has no `name`")

        db = payload.get("db")
        db_name = db.get("name") if isinstance(db, Mapping) else None
        if not isinstance(db_name, str) or not db_name:
            raise ValueError("table info has no `db.name`")

        primary_key = payload.get("primary_key", "id")
        if not isinstance(primary_key, str) or not primary_key:
            raise ValueError("table info `primary_key` must be a non-empty string")

        raw_indexes = payload.get("indexes") or []
        if not isinstance(raw_indexes, list):
            raise ValueError("table info `indexes` must be a list")

        indexes = []
        for entry in raw_indexes:
            if not isinstance(entry, Mapping):
                raise ValueError("table info `indexes` entries must be objects")
            indexes.append(IndexDescriptor.from_info(entry))

        return cls(
            name=name,
            database=DatabaseDescriptor(db_name),
            primary_key=primary_key,
            indexes=tuple(indexes),
        )


@dataclass(frozen=True)
class WriteOutcome:
    """The server's report for one batch write."""

    inserted: int = 0
    replaced: int = 0
    unchanged: int = 0
    errors: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.inserted + self.replaced + self.unchanged

    def matches(self, batch_size: int) -> bool:
        """Return True if every record of the batch is accounted for."""
        return self.total == batch_size

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> WriteOutcome:
        """Build an outcome from a RethinkDB write response document."""
        errors: tuple[str, ...] = ()
        if response.get("errors"):
            first_error = response.get("first_error") or "unknown write error"
            errors = (str(first_error),)
        return cls(
            inserted=int(response.get("inserted", 0)),
            replaced=int(response.get("replaced", 0)),
            unchanged=int(response.get("unchanged", 0)),
            errors=errors,
        )


class DecodeErrorPolicy(str, Enum):
    """
    What a unit does when its data file turns out to be malformed.

    Values:
        STOP: Keep the records decoded so far and end the file there.
        FAIL: Fail the unit without writing the pending partial batch.
    """

    STOP = "stop"
    FAIL = "fail"


@dataclass(frozen=True)
class RestoreUnit:
    """One data file to load into one table."""

    database: str
    table: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.database}.{self.table}"


@dataclass(frozen=True)
class UnitResult:
    """Terminal state of a restore unit."""

    unit: RestoreUnit
    ok: bool
    batches: int = 0
    records: int = 0
    truncated: bool = False
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass(frozen=True)
class SchemaOpResult:
    """Result of one create/drop request issued against the server."""

    operation: str
    target: str
    ok: bool
    skipped: bool = False
    error: str | None = None


@dataclass(frozen=True)
class RestoreReport:
    """Aggregate result of a restore run."""

    schema: list[SchemaOpResult] = field(default_factory=list)
    units: list[UnitResult] = field(default_factory=list)

    @property
    def failed_units(self) -> list[UnitResult]:
        return [u for u in self.units if not u.ok]

    @property
    def failed_schema_ops(self) -> list[SchemaOpResult]:
        return [s for s in self.schema if not s.ok]

    @property
    def records_written(self) -> int:
        return sum(u.records for u in self.units)

    @property
    def ok(self) -> bool:
        return not self.failed_units and not self.failed_schema_ops
