"""Error types raised by the restore core.

Every error carries an ErrorKind so results can report a failure category
without callers having to match on exception classes.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced in unit and schema results."""

    MALFORMED_INPUT = "MalformedInput"
    METADATA_PARSE = "MetadataParse"
    WRITE_VERIFICATION_FAILED = "WriteVerificationFailed"
    CONNECTION_UNAVAILABLE = "ConnectionUnavailable"
    SCHEMA_OPERATION_FAILED = "SchemaOperationFailed"
    IO_FAILURE = "IoFailure"


class RestoreError(RuntimeError):
    """Base class for restore failures."""

    kind: ErrorKind = ErrorKind.IO_FAILURE


class MalformedInputError(RestoreError):
    """Raised when a data file is not a well-formed JSON array."""

    kind = ErrorKind.MALFORMED_INPUT


class MetadataParseError(RestoreError):
    """Raised when a table `.info` file cannot be parsed."""

    kind = ErrorKind.METADATA_PARSE


class WriteVerificationFailedError(RestoreError):
    """Raised when a batch write was rejected or reported unexpected counts."""

    kind = ErrorKind.WRITE_VERIFICATION_FAILED


class ConnectionUnavailableError(RestoreError):
    """Raised when no usable server session could be obtained."""

    kind = ErrorKind.CONNECTION_UNAVAILABLE


class SchemaOperationFailedError(RestoreError):
    """Raised when the server rejects a create/drop request."""

    kind = ErrorKind.SCHEMA_OPERATION_FAILED


class EntityExistsError(SchemaOperationFailedError):
    """The database, table or index being created already exists."""


class EntityMissingError(SchemaOperationFailedError):
    """The database or table being dropped does not exist."""
