"""Backend protocols for resource reconciliation.

Two backends with different capabilities:
- LiveStore: get/create/update/delete, optimistic concurrency via
  metadata.resourceVersion
- ConfigCenter: publish/delete keyed by (kind, name, namespace), no read
  step and no version token; publish is an implicit upsert

Implementations signal the conditions the engine branches on with
ResourceNotFound and ResourceAlreadyExists. Any other failure is a
BackendError.
"""

from typing import Protocol, runtime_checkable

from resources import ResourceKey, StructuredResource


class BackendError(Exception):
    """Backend call failed."""


class ResourceNotFound(BackendError):
    """Resource does not exist in the backend."""


class ResourceAlreadyExists(BackendError):
    """Create rejected because the resource already exists."""


@runtime_checkable
class LiveStore(Protocol):
    """Structured-object store keyed by (group, kind, namespace, name).

    Every call takes a timeout in seconds; exceeding it must raise
    BackendError rather than block.
    """

    def get(self, key: ResourceKey, timeout: float) -> StructuredResource:
        """Read the live resource. Raises ResourceNotFound if absent."""

    def create(self, resource: StructuredResource, timeout: float) -> None:
        """Create the resource. Raises ResourceAlreadyExists if present."""

    def update(self, resource: StructuredResource, timeout: float) -> None:
        """Overwrite the resource; metadata.resourceVersion must be current."""

    def delete(self, key: ResourceKey, timeout: float) -> None:
        """Delete the resource."""


@runtime_checkable
class ConfigCenter(Protocol):
    """Configuration-distribution store."""

    def publish_config(self, kind: str, name: str, namespace: str, payload: str) -> None:
        """Publish (create or replace) a config entry."""

    def delete_config(self, kind: str, name: str, namespace: str) -> None:
        """Delete a config entry."""
