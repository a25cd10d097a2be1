"""Exceptions raised by the service layer.

Controllers catch ``CloudDriveError`` and show ``str(exc)`` to the user.
"""


class CloudDriveError(Exception):
    status_code = 400


class ValidationError(CloudDriveError):
    """Bad form or JSON input."""


class NotFoundError(CloudDriveError):
    status_code = 404


class StorageLimitExceeded(CloudDriveError):
    """Raised when an upload would push usage over the user's quota."""

    def __init__(self, limit_mb, used_mb, required_mb):
        self.limit_mb = limit_mb
        self.used_mb = used_mb
        self.required_mb = required_mb
        super().__init__("Storage limit exceeded")


class BackendError(CloudDriveError):
    """Any failure talking to the database or the object store."""
    status_code = 502
