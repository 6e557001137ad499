from pathlib import Path

import pytest

from conftest import FakeServer, write_data
from rdbrestore.core.errors import ConnectionUnavailableError, ErrorKind
from rdbrestore.core.models import DecodeErrorPolicy, RestoreUnit, UnitResult
from rdbrestore.core.pipeline import batched, restore_unit
from rdbrestore.core.pool import SessionPool


def _unit(path: Path) -> RestoreUnit:
    return RestoreUnit(database=path.parent.name, table=path.stem, path=path)


def test_batched_keeps_order_and_shortens_last_batch():
    batches = list(batched(range(250), 200))

    assert [len(b) for b in batches] == [200, 50]
    assert batches[0][0] == 0 and batches[1][-1] == 249


def test_batched_rejects_non_positive_size():
    with pytest.raises(ValueError, match="batch size"):
        list(batched([1], 0))


def test_restores_file_in_fixed_size_batches(
    tmp_path: Path, server: FakeServer, pool: SessionPool
):
    path = write_data(tmp_path, "db1", "t1", [{"id": i} for i in range(250)])

    result = restore_unit(_unit(path), server, pool, batch_size=200)

    assert result.ok is True
    assert (result.batches, result.records) == (2, 250)
    assert server.inserted_sizes("t1") == [200, 50]
    written = [r["id"] for _, _, batch in server.inserts for r in batch]
    assert written == list(range(250))


@pytest.mark.parametrize("compressed", [False, True])
def test_empty_file_is_vacuously_successful(
    tmp_path: Path, server: FakeServer, pool: SessionPool, compressed: bool
):
    path = write_data(tmp_path, "db1", "t1", [], compressed=compressed)

    result = restore_unit(_unit(path), server, pool)

    assert result.ok is True
    assert result.batches == 0
    assert server.inserts == []


def test_verification_failure_stops_the_unit(
    tmp_path: Path, server: FakeServer, pool: SessionPool
):
    path = write_data(tmp_path, "db1", "t1", [{"id": i} for i in range(6)])
    server.short_writes[("t1", 2)] = 1

    result = restore_unit(_unit(path), server, pool, batch_size=2)

    assert result.ok is False
    assert result.error_kind is ErrorKind.WRITE_VERIFICATION_FAILED
    assert result.batches == 1
    assert result.records == 2
    assert server.inserted_sizes("t1") == [2, 2]


def test_malformed_tail_is_truncated_under_stop_policy(
    tmp_path: Path, server: FakeServer, pool: SessionPool
):
    path = tmp_path / "db1" / "t1.json"
    path.parent.mkdir()
    path.write_text('[{"id": 1}, {"id": 2}, {"id": 3}, oops')

    result = restore_unit(
        _unit(path), server, pool, batch_size=2, decode_errors=DecodeErrorPolicy.STOP
    )

    assert result.ok is True
    assert result.truncated is True
    assert result.records == 3
    assert server.inserted_sizes("t1") == [2, 1]


def test_malformed_tail_fails_unit_under_fail_policy(
    tmp_path: Path, server: FakeServer, pool: SessionPool
):
    path = tmp_path / "db1" / "t1.json"
    path.parent.mkdir()
    path.write_text('[{"id": 1}, {"id": 2}, {"id": 3}, oops')

    result = restore_unit(
        _unit(path), server, pool, batch_size=2, decode_errors=DecodeErrorPolicy.FAIL
    )

    assert result.ok is False
    assert result.error_kind is ErrorKind.MALFORMED_INPUT
    assert result.records == 2
    assert server.inserted_sizes("t1") == [2]


def test_unsupported_suffix_fails_the_unit(server: FakeServer, pool: SessionPool):
    result = restore_unit(
        RestoreUnit(database="db1", table="t1", path=Path("db1/t1.csv")), server, pool
    )

    assert result.ok is False
    assert result.error_kind is ErrorKind.MALFORMED_INPUT


def test_missing_file_is_an_io_failure(tmp_path: Path, server: FakeServer, pool: SessionPool):
    result = restore_unit(_unit(tmp_path / "db1" / "t1.json"), server, pool)

    assert result.ok is False
    assert result.error_kind is ErrorKind.IO_FAILURE


def test_lost_connection_fails_unit_and_discards_session(tmp_path: Path):
    class _Conn:
        closed = False

        def close(self):
            self.closed = True

    class _Adapter:
        def insert_batch(self, conn, db, table, records):
            raise ConnectionUnavailableError("connection reset")

    pool = SessionPool(_Conn, max_open=1)
    path = write_data(tmp_path, "db1", "t1", [{"id": 1}])

    result = restore_unit(_unit(path), _Adapter(), pool)
    with pool.session():
        pass

    assert result.error_kind is ErrorKind.CONNECTION_UNAVAILABLE
    assert pool.opened == 2


def test_listener_sees_start_batches_and_finish(
    tmp_path: Path, server: FakeServer, pool: SessionPool
):
    class _Listener:
        def __init__(self):
            self.events = []

        def unit_started(self, unit):
            self.events.append(("started", unit.label))

        def batch_written(self, unit, records):
            self.events.append(("batch", records))

        def unit_finished(self, result: UnitResult):
            self.events.append(("finished", result.ok, result.records))

    listener = _Listener()
    path = write_data(tmp_path, "db1", "t1", [{"id": i} for i in range(5)])

    restore_unit(_unit(path), server, pool, batch_size=3, listener=listener)

    assert listener.events == [
        ("started", "db1.t1"),
        ("batch", 3),
        ("batch", 2),
        ("finished", True, 5),
    ]


@pytest.mark.parametrize(
    ("policy", "ok", "kind"),
    [
        (DecodeErrorPolicy.STOP, True, None),
        (DecodeErrorPolicy.FAIL, False, ErrorKind.MALFORMED_INPUT),
    ],
)
def test_corrupt_gzip_file_follows_decode_policy(
    tmp_path: Path, server: FakeServer, pool: SessionPool, policy, ok, kind
):
    path = tmp_path / "db1" / "t1.jsongz"
    path.parent.mkdir()
    path.write_bytes(b"this is not gzip data")

    result = restore_unit(_unit(path), server, pool, decode_errors=policy)

    assert result.ok is ok
    assert result.error_kind is kind
    assert result.truncated is (policy is DecodeErrorPolicy.STOP)
    assert server.inserts == []


@pytest.mark.parametrize("failing_event", ["unit_started", "batch_written", "unit_finished"])
def test_failing_listener_never_escapes_the_unit(
    tmp_path: Path, server: FakeServer, pool: SessionPool, failing_event: str
):
    class _Listener:
        def unit_started(self, unit):
            self._maybe_fail("unit_started")

        def batch_written(self, unit, records):
            self._maybe_fail("batch_written")

        def unit_finished(self, result: UnitResult):
            self._maybe_fail("unit_finished")

        def _maybe_fail(self, event: str):
            if event == failing_event:
                raise RuntimeError(f"{event} broke")

    path = write_data(tmp_path, "db1", "t1", [{"id": 1}, {"id": 2}])

    result = restore_unit(_unit(path), server, pool, listener=_Listener())

    assert isinstance(result, UnitResult)
    assert result.ok is (failing_event == "unit_finished")
