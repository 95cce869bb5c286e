"""Failure signals raised by the tracker services.

The pure reconciliation and aggregation functions never raise; these are used
at the boundaries (store, oracle, workflow validation) and converted to JSON
error responses by the handlers registered in :func:`sondagem.create_app`.
"""


class TrackerError(Exception):
    """Base class for every caller-visible tracker failure."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationConflict(TrackerError):
    """Duplicate natural key, or a delete blocked by a referencing student."""

    status_code = 409


class RecordNotFound(TrackerError):
    status_code = 404


class OracleFailure(TrackerError):
    """The classification oracle failed after retries, or for a non-retryable reason."""

    status_code = 502


class PersistenceFailure(TrackerError):
    """The record store rejected a read or a write."""

    status_code = 503
