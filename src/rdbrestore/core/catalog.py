from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from rdbrestore.core.errors import MetadataParseError
from rdbrestore.core.models import DatabaseDescriptor, TableDescriptor

INFO_SUFFIX = ".info"

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Catalog:
    """Table descriptors grouped by owning database, in discovery order."""

    databases: dict[DatabaseDescriptor, list[TableDescriptor]] = field(
        default_factory=dict
    )

    def tables(self) -> Iterator[TableDescriptor]:
        """Iterate over every table of every database."""
        for tables in self.databases.values():
            yield from tables

    def __len__(self) -> int:
        return sum(len(tables) for tables in self.databases.values())


def find_info_files(root: Path) -> list[Path]:
    """Return every table metadata file below `root`, sorted by path."""
    return sorted(p for p in root.glob(f"**/*{INFO_SUFFIX}") if p.is_file())


def parse_table_info(path: Path) -> TableDescriptor:
    """Parse one `.info` file into a TableDescriptor."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataParseError(f"{path}: {exc}") from exc

    try:
        return TableDescriptor.from_info(payload)
    except ValueError as exc:
        raise MetadataParseError(f"{path}: {exc}") from exc


def group_by_database(tables: list[TableDescriptor]) -> Catalog:
    """Group table descriptors by database, keeping their relative order."""
    databases: dict[DatabaseDescriptor, list[TableDescriptor]] = {}
    for table in tables:
        databases.setdefault(table.database, []).append(table)
    return Catalog(databases=databases)


def build_catalog(root: Path) -> Catalog:
    """
    Read every table metadata file below `root` and group the results.

    Raises:
        MetadataParseError: On the first malformed `.info` file. Schema work
            cannot proceed with a partial catalog, so this aborts the run.
    """
    paths = find_info_files(root)
    tables = [parse_table_info(p) for p in paths]
    catalog = group_by_database(tables)
    log.debug(
        "catalog built: %d database(s), %d table(s)", len(catalog.databases), len(catalog)
    )
    return catalog
