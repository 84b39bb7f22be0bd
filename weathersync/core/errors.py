"""
Error taxonomy for weathersync.

Errors separate the internal cause (logged) from a message that is safe
to show to callers, and classify the failure so an outer surface can pick
a response status.
"""

from typing import Literal, Optional

ErrorKind = Literal["rejected", "unavailable", "not_found", "conflict", "internal"]

STATUS_BY_KIND = {
    "rejected": 400,
    "not_found": 404,
    "conflict": 409,
    "internal": 500,
    "unavailable": 503,
}

class SyncError(Exception):
    """Error carrying a safe external message and a classification."""

    def __init__(self, message: str, *, kind: ErrorKind = "internal",
                 cause: Optional[BaseException] = None):
        super().__init__(str(cause) if cause is not None else message)
        self.message = message
        self.kind = kind
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def response(self) -> tuple:
        """(status_code, safe message)"""
        return self.status_code, self.message

class RemoteStatusError(Exception):
    """Non-200 response from the remote weather API."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"invalid status code (status_code={status_code}, detail={detail})")
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

class PersistenceError(Exception):
    """A store operation failed and its transaction was rolled back."""

    def __init__(self, op: str, cause: BaseException):
        super().__init__(f"{op}: {cause}")
        self.op = op
        self.cause = cause
        self.__cause__ = cause

class FetchCancelledError(Exception):
    """The fetch task started after cancellation was requested."""

class PoolClosedError(RuntimeError):
    """Work submitted to a pool that is closing or closed."""

def is_retryable(err: BaseException) -> bool:
    """True for remote server faults (5xx)."""
    return isinstance(err, RemoteStatusError) and err.retryable

def classify_remote_error(err: BaseException, message: str) -> SyncError:
    """
    Maps a remote failure onto the error taxonomy.

    Args:
        err: Error raised by the remote client
        message: Safe message to attach

    Returns:
        A SyncError: rejected for 4xx, unavailable for 5xx, internal for
        anything else. A SyncError passed in is returned unchanged.
    """
    if isinstance(err, SyncError):
        return err
    if isinstance(err, RemoteStatusError):
        if 400 <= err.status_code < 500:
            return SyncError(message, kind="rejected", cause=err)
        if err.status_code >= 500:
            return SyncError(message, kind="unavailable", cause=err)
    return SyncError(message, kind="internal", cause=err)
