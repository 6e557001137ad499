"""Per-file batch write pipeline.

One restore unit streams one data file into one table: records are decoded
lazily, grouped into fixed-size batches in file order, and each batch is
written on its own pooled session. Batches of a unit are written one at a
time so the unit can stop cleanly at its first failed write.

A unit never raises. Whatever happens is captured in its UnitResult, which
keeps a failing file from disturbing the files restoring next to it.
"""

from __future__ import annotations

import gzip
import logging
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Protocol

from rdbrestore.core.decoder import DEFAULT_CHUNK_SIZE, iter_json_array
from rdbrestore.core.errors import (
    ErrorKind,
    MalformedInputError,
    RestoreError,
    WriteVerificationFailedError,
)
from rdbrestore.core.models import (
    DecodeErrorPolicy,
    RestoreUnit,
    UnitResult,
    WriteOutcome,
)
from rdbrestore.core.pool import SessionPool

DEFAULT_BATCH_SIZE = 200

log = logging.getLogger(__name__)


def _open_plain(path: Path) -> BinaryIO:
    return open(path, "rb", buffering=DEFAULT_CHUNK_SIZE)


def _open_gzip(path: Path) -> BinaryIO:
    # GzipFile reads any number of concatenated members
    return gzip.open(path, "rb")


OPENERS: dict[str, Callable[[Path], BinaryIO]] = {
    ".json": _open_plain,
    ".jsongz": _open_gzip,
}


class WriteAdapter(Protocol):
    """Interface for the batch write request."""

    def insert_batch(
        self, conn: Any, db: str, table: str, records: list[Any]
    ) -> WriteOutcome:
        ...


class RestoreListener(Protocol):
    """Receives progress events from running units. Called from worker threads."""

    def unit_started(self, unit: RestoreUnit) -> None:
        ...

    def batch_written(self, unit: RestoreUnit, records: int) -> None:
        ...

    def unit_finished(self, result: UnitResult) -> None:
        ...


def open_data_file(path: Path) -> BinaryIO:
    """Open a data file with the decompression its suffix calls for."""
    opener = OPENERS.get(path.suffix)
    if opener is None:
        raise MalformedInputError(f"{path}: unsupported data file format `{path.suffix}`")
    return opener(path)


def batched(records: Iterable[Any], size: int) -> Iterator[list[Any]]:
    """Group records into lists of `size`, keeping order. The last may be shorter."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    batch: list[Any] = []
    for record in records:
        batch.append(record)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def restore_unit(
    unit: RestoreUnit,
    adapter: WriteAdapter,
    pool: SessionPool,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    decode_errors: DecodeErrorPolicy = DecodeErrorPolicy.STOP,
    listener: RestoreListener | None = None,
) -> UnitResult:
    """
    Stream one data file into its table.

    Args:
        unit: The database/table/file triple to restore.
        adapter: Server adapter used for the inserts.
        pool: Session pool; one session is held per batch write.
        batch_size: Maximum number of records per insert.
        decode_errors: What to do when the file turns out to be malformed.
        listener: Optional receiver of progress events.

    Returns:
        The terminal UnitResult. An empty array is a success with no batches.
    """
    batches = 0
    records = 0
    truncated = False

    def _until_malformed(values: Iterator[Any]) -> Iterator[Any]:
        nonlocal truncated
        try:
            yield from values
        except MalformedInputError as exc:
            truncated = True
            log.warning("%s: stopped reading %s: %s", unit.label, unit.path, exc)

    def _result(**kwargs: Any) -> UnitResult:
        result = UnitResult(
            unit=unit, batches=batches, records=records, truncated=truncated, **kwargs
        )
        if listener is not None:
            try:
                listener.unit_finished(result)
            except Exception:  # noqa: BLE001
                log.exception("%s: progress listener failed", unit.label)
        return result

    log.debug("%s: restoring from %s", unit.label, unit.path)

    try:
        if listener is not None:
            listener.unit_started(unit)
        with open_data_file(unit.path) as stream:
            values = iter_json_array(stream)
            if decode_errors is DecodeErrorPolicy.STOP:
                values = _until_malformed(values)

            for batch in batched(values, batch_size):
                with pool.session() as conn:
                    outcome = adapter.insert_batch(conn, unit.database, unit.table, batch)

                if not outcome.matches(len(batch)):
                    detail = f"; {outcome.errors[0]}" if outcome.errors else ""
                    raise WriteVerificationFailedError(
                        f"batch {batches + 1}: expected {len(batch)} records written, "
                        f"server reported inserted={outcome.inserted} "
                        f"replaced={outcome.replaced} unchanged={outcome.unchanged}"
                        f"{detail}"
                    )

                batches += 1
                records += len(batch)
                log.debug("%s: batch %d written (%d records)", unit.label, batches, len(batch))
                if listener is not None:
                    listener.batch_written(unit, len(batch))
    except RestoreError as exc:
        log.error("%s: %s", unit.label, exc)
        return _result(ok=False, error_kind=exc.kind, error=str(exc))
    except OSError as exc:
        log.error("%s: cannot read %s: %s", unit.label, unit.path, exc)
        return _result(ok=False, error_kind=ErrorKind.IO_FAILURE, error=str(exc))
    except Exception as exc:  # noqa: BLE001
        log.exception("%s: unexpected failure", unit.label)
        return _result(ok=False, error=str(exc))

    log.info("%s: %d record(s) in %d batch(es)", unit.label, records, batches)
    return _result(ok=True)
