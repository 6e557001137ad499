import pytest
from rethinkdb.errors import ReqlDriverError, ReqlOpFailedError, ReqlQueryLogicError

from rdbrestore.core.adapters.reql import RethinkDBAdapter
from rdbrestore.core.errors import (
    ConnectionUnavailableError,
    EntityExistsError,
    EntityMissingError,
    SchemaOperationFailedError,
)
from rdbrestore.core.models import WriteOutcome


class _Query:
    def __init__(self, error: Exception | None = None, response=None):
        self.error = error
        self.response = response

    def run(self, conn):
        if self.error is not None:
            raise self.error
        return self.response


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ReqlOpFailedError("Database `shop` already exists."), EntityExistsError),
        (ReqlOpFailedError("Database `shop` does not exist."), EntityMissingError),
        (ReqlOpFailedError("Table is not ready."), SchemaOperationFailedError),
        (ReqlQueryLogicError("Bad index function."), SchemaOperationFailedError),
        (ReqlDriverError("Connection is closed."), ConnectionUnavailableError),
    ],
)
def test_schema_errors_are_translated(error: Exception, expected: type):
    adapter = RethinkDBAdapter()

    with pytest.raises(expected, match="create database shop"):
        adapter._run_schema(object(), _Query(error), "create database shop")


def test_already_exists_is_still_a_schema_failure_subclass():
    assert issubclass(EntityExistsError, SchemaOperationFailedError)


def test_write_outcome_from_response():
    outcome = WriteOutcome.from_response(
        {"inserted": 3, "replaced": 1, "unchanged": 0, "errors": 1,
         "first_error": "Duplicate primary key `id`"}
    )

    assert outcome.total == 4
    assert outcome.matches(4) is True
    assert outcome.matches(5) is False
    assert outcome.errors == ("Duplicate primary key `id`",)


def test_connect_failure_is_connection_unavailable(monkeypatch):
    import rdbrestore.core.adapters.reql as reql

    def _refuse(**kwargs):
        raise ReqlDriverError("Could not connect to localhost:1.")

    monkeypatch.setattr(reql.r, "connect", _refuse)

    with pytest.raises(ConnectionUnavailableError, match="localhost:1"):
        RethinkDBAdapter("localhost", 1).connect()
