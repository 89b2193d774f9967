from __future__ import annotations


class FieldSyncError(Exception):
    """Base exception for fieldsync."""


class StorageUnavailable(FieldSyncError):
    """The local queue database could not be read or written."""


class InvalidMutation(FieldSyncError):
    """A queued mutation cannot be replayed against the remote store."""

    def __init__(self, mutation_id: str, message: str) -> None:
        super().__init__(f"mutation {mutation_id} is invalid: {message}")
        self.mutation_id = mutation_id


class RemoteError(FieldSyncError):
    """Base exception for remote store calls."""


class RemoteConflict(RemoteError):
    """Duplicate key or missing row on replay; already applied."""

    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


class RemoteFailure(RemoteError):
    """Any other remote error, including transport failures and timeouts."""


class StatsFailure(FieldSyncError):
    """Updating derived scan counters failed."""
