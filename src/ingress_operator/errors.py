"""Structured errors raised by the reconciliation core."""

from enum import Enum

from kubernetes.client.rest import ApiException


class ErrorKind(Enum):
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    CONFLICT = "Conflict"
    TRANSIENT = "TransientStoreError"
    FATAL = "Fatal"


class WorkloadError(Exception):
    """A failed store or reconciliation step.

    Carries the failure kind plus the operation, resource name and owning
    entity. The message is only assembled when the error is displayed.
    """

    def __init__(self, kind, operation, name, owner=None, cause=None):
        super().__init__(kind, operation, name, owner, cause)
        self.kind = kind
        self.operation = operation
        self.name = name
        self.owner = owner
        self.cause = cause

    @property
    def retryable(self):
        """Whether the next reconciliation pass may succeed without user action."""
        return self.kind != ErrorKind.FATAL

    def with_owner(self, owner):
        """Return a copy of this error attributed to ``owner``."""
        return WorkloadError(self.kind, self.operation, self.name, owner, self.cause)

    def __str__(self):
        message = f"{self.operation} deployment {self.name!r} failed ({self.kind.value})"
        if self.owner:
            message += f" for {self.owner!r}"
        if self.cause is not None:
            message += f": {_describe(self.cause)}"
        return message


def _describe(cause):
    if isinstance(cause, ApiException):
        return f"{cause.status} {cause.reason}".strip()
    return str(cause)


def error_from_api_exception(exc, operation, name, owner=None):
    """Translate a Kubernetes API exception into a ``WorkloadError``."""
    status = exc.status or 0
    if status == 404:
        kind = ErrorKind.NOT_FOUND
    elif status == 409:
        # The API server answers 409 both for duplicate creates and for stale
        # resource versions; only a create can collide with an existing name.
        kind = ErrorKind.ALREADY_EXISTS if operation == "create" else ErrorKind.CONFLICT
    elif status == 429 or status >= 500 or status == 0:
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.FATAL
    return WorkloadError(kind, operation, name, owner=owner, cause=exc)
