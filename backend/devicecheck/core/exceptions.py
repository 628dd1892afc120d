"""Error taxonomy shared by the store, the services and the HTTP layer."""

from __future__ import annotations


class DeviceCheckError(Exception):
    pass


class ValidationError(DeviceCheckError):
    """Malformed identifier, missing field or a write to an immutable field."""


class NotFoundError(DeviceCheckError):
    """The referenced employee or device check does not exist."""


class DependencyError(DeviceCheckError):
    """The document store is unreachable or rejected a write. Retryable."""


class ConflictError(DeviceCheckError):
    pass


class PreconditionFailedError(ConflictError):
    """A conditional write lost against a concurrent writer (etag mismatch)."""


class DocumentExistsError(ConflictError):
    pass
