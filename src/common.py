"""Common errors and types for manifest reconciliation.

Every failure at the fetch/decode/create/update/delete boundary is raised as
an ApplierError subclass carrying a stable error code:

- E1xx: manifest retrieval
- E2xx: manifest decoding
- E3xx: backend operations and teardown
"""

from enum import Enum
from typing import Optional


class ApplierError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class UnsupportedTransportError(ApplierError):
    """Manifest location uses plaintext HTTP."""

    def __init__(self, location: str):
        super().__init__(
            "E101",
            f"data can't be retrieved from {location}: http is not supported, use https",
        )


class FetchFailedError(ApplierError):
    """Remote manifest could not be retrieved."""

    def __init__(self, location: str, reason: str):
        super().__init__("E102", f"failed to fetch {location}: {reason}")


class IncompleteTransferError(ApplierError):
    """Remote manifest body was truncated."""

    def __init__(self, location: str, received: int, expected: Optional[int] = None):
        self.received = received
        self.expected = expected
        if expected is None:
            message = f"received {received} bytes from {location} before the connection closed"
        else:
            message = f"received {received} bytes from {location}, expected {expected}"
        super().__init__("E103", message)


class ManifestNotFoundError(ApplierError):
    """Manifest path does not exist in the bundle."""

    def __init__(self, location: str, reason: str = 'no such manifest in bundle'):
        super().__init__("E104", f"{location}: {reason}")


class DecodeFailedError(ApplierError):
    """A manifest document could not be decoded.

    Attributes:
        resources: Resources decoded before the failing document
        manifest: Raw manifest text, for diagnostics
    """

    def __init__(self, reason: str, resources: Optional[list] = None, manifest: str = ''):
        self.resources = resources if resources is not None else []
        self.manifest = manifest
        super().__init__("E201", f"error parsing manifest: {reason}")


class BackendOperationError(ApplierError):
    """Base for errors raised by a backend call on a single resource."""

    operation = ''
    error_code = 'E300'

    def __init__(self, kind: str, name: str, namespace: str, reason: str):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        target = f"{kind} {namespace}/{name}" if namespace else f"{kind} {name}"
        super().__init__(self.error_code, f"error {self.operation} {target}: {reason}")


class ReadFailedError(BackendOperationError):
    """Live resource lookup failed with something other than not-found."""
    operation = 'getting'
    error_code = 'E301'


class CreateFailedError(BackendOperationError):
    """Create call failed."""
    operation = 'creating'
    error_code = 'E302'


class UpdateFailedError(BackendOperationError):
    """Update call failed."""
    operation = 'updating'
    error_code = 'E303'


class DeleteFailedError(BackendOperationError):
    """Delete call failed."""
    operation = 'deleting'
    error_code = 'E304'


class PublishFailedError(BackendOperationError):
    """ConfigCenter publish failed."""
    operation = 'publishing'
    error_code = 'E305'


class TeardownFailedError(ApplierError):
    """One or more teardown actions failed.

    Attributes:
        failures: (action name, exception) pairs in execution order
    """

    def __init__(self, failures: list):
        self.failures = failures
        names = ', '.join(name for name, _ in failures)
        super().__init__("E306", f"{len(failures)} teardown action(s) failed: {names}")


class ReconcileOutcome(Enum):
    """Result of reconciling a single resource."""
    CREATED = 'created'
    UPDATED = 'updated'
    ALREADY_EXISTS = 'already-exists'
