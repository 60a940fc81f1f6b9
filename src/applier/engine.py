"""Manifest-to-backend reconciliation.

The Applier prepares manifests (fetch, decode, environment mutations) and
reconciles the resulting resources against a backend:

- LiveStore: create-or-update with resourceVersion carry-over
- ConfigCenter: blind publish, the backend owns upsert semantics

Resources are processed strictly in manifest order. The first failure is
raised immediately; resources applied before it are not rolled back, their
teardown actions are already registered.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import yaml

from applier.teardown import TeardownRegistry
from backends.base import (
    BackendError,
    ConfigCenter,
    LiveStore,
    ResourceAlreadyExists,
    ResourceNotFound,
)
from common import (
    CreateFailedError,
    DecodeFailedError,
    DeleteFailedError,
    PublishFailedError,
    ReadFailedError,
    ReconcileOutcome,
    UpdateFailedError,
)
from config import TimeoutConfig
from loader import ManifestFetcher, decode_resources
from resources import ResourceKey, StructuredResource

logger = logging.getLogger(__name__)


def to_yaml_text(value: Any) -> str:
    """Serialize a value to YAML text, without the document end marker."""
    text = yaml.safe_dump(value, default_flow_style=False, sort_keys=True)
    if text.endswith('\n...\n'):
        text = text[:-4]
    return text


def _require_registry(registry: Optional[TeardownRegistry], cleanup: bool) -> None:
    if cleanup and registry is None:
        raise ValueError("cleanup requested without a teardown registry")


@dataclass
class Applier:
    """Prepares manifests and applies them to a backend.

    Attributes:
        namespace_labels: Labels merged into every core-group Namespace
        ingress_class: spec.ingressClassName for networking.k8s.io Ingresses
        fetcher: Resolves manifest locations
    """
    namespace_labels: dict = field(default_factory=dict)
    ingress_class: Optional[str] = None
    fetcher: ManifestFetcher = field(default_factory=ManifestFetcher)

    def prepare_resources(self, data: bytes) -> list[StructuredResource]:
        """Decode manifest bytes and apply the environment mutations."""
        return decode_resources(data, self.namespace_labels, self.ingress_class)

    def load(self, location: str, timeout_config: TimeoutConfig) -> list[StructuredResource]:
        """Fetch and decode a manifest.

        The raw manifest is logged when decoding fails.
        """
        raw = self.fetcher.fetch(location, timeout_config)
        try:
            return self.prepare_resources(raw.data)
        except DecodeFailedError:
            logger.error(f"Manifest {location}:\n{raw.text}")
            raise

    # LiveStore operations

    def apply_with_cleanup(
        self,
        registry: Optional[TeardownRegistry],
        store: LiveStore,
        timeout_config: TimeoutConfig,
        location: str,
        cleanup: bool = True,
    ) -> list[ReconcileOutcome]:
        """Create or update every resource in the manifest at location."""
        _require_registry(registry, cleanup)
        resources = self.load(location, timeout_config)
        return self.apply_resources_with_cleanup(registry, store, timeout_config, resources, cleanup)

    def apply_resources_with_cleanup(
        self,
        registry: Optional[TeardownRegistry],
        store: LiveStore,
        timeout_config: TimeoutConfig,
        resources: Iterable[StructuredResource],
        cleanup: bool = True,
    ) -> list[ReconcileOutcome]:
        """Create or update decoded resources in order.

        Missing resources are created. Existing ones are overwritten after
        taking the live resourceVersion. With cleanup, each created or updated
        resource gets a teardown delete.

        Raises:
            ReadFailedError: Lookup failed with something other than not-found
            CreateFailedError: Create failed (already-exists is tolerated)
            UpdateFailedError: Update failed
        """
        _require_registry(registry, cleanup)
        outcomes = []
        for resource in resources:
            outcome = self._create_or_update(store, timeout_config, resource)
            if cleanup and outcome is not ReconcileOutcome.ALREADY_EXISTS:
                self._register_delete(registry, store, timeout_config, resource.key)
            outcomes.append(outcome)
        return outcomes

    def _create_or_update(
        self,
        store: LiveStore,
        timeout_config: TimeoutConfig,
        resource: StructuredResource,
    ) -> ReconcileOutcome:
        key = resource.key
        timeout = timeout_config.create_timeout
        try:
            live: Optional[StructuredResource] = store.get(key, timeout)
        except ResourceNotFound:
            live = None
        except BackendError as e:
            raise ReadFailedError(key.kind, key.name, key.namespace, str(e)) from e

        if live is None:
            logger.info(f"Creating {resource.name} {resource.kind}")
            return self._create(store, resource, timeout)

        resource.resource_version = live.resource_version
        logger.info(f"Updating {resource.name} {resource.kind}")
        try:
            store.update(resource, timeout)
        except BackendError as e:
            raise UpdateFailedError(key.kind, key.name, key.namespace, str(e)) from e
        return ReconcileOutcome.UPDATED

    @staticmethod
    def _create(store: LiveStore, resource: StructuredResource, timeout: float) -> ReconcileOutcome:
        try:
            store.create(resource, timeout)
        except ResourceAlreadyExists:
            logger.info(f"{resource.name} {resource.kind} already exists")
            return ReconcileOutcome.ALREADY_EXISTS
        except BackendError as e:
            raise CreateFailedError(resource.kind, resource.name, resource.namespace, str(e)) from e
        return ReconcileOutcome.CREATED

    def apply_objects_with_cleanup(
        self,
        registry: Optional[TeardownRegistry],
        store: LiveStore,
        timeout_config: TimeoutConfig,
        resources: Iterable[Any],
        cleanup: bool = True,
    ) -> list[ReconcileOutcome]:
        """Create resources without an existence check.

        For fixtures that persist across tests: already-exists is tolerated
        and the teardown is registered either way.
        """
        _require_registry(registry, cleanup)
        outcomes = []
        for obj in resources:
            resource = StructuredResource.from_obj(obj)
            logger.info(f"Creating {resource.name} {resource.kind}")
            outcome = self._create(store, resource, timeout_config.create_timeout)
            if cleanup:
                self._register_delete(registry, store, timeout_config, resource.key)
            outcomes.append(outcome)
        return outcomes

    @staticmethod
    def _register_delete(
        registry: TeardownRegistry,
        store: LiveStore,
        timeout_config: TimeoutConfig,
        key: ResourceKey,
    ) -> None:
        def teardown() -> None:
            logger.info(f"Deleting {key.name} {key.kind}")
            try:
                store.delete(key, timeout_config.delete_timeout)
            except BackendError as e:
                raise DeleteFailedError(key.kind, key.name, key.namespace, str(e)) from e

        registry.register(f"delete {key}", teardown)

    def delete(self, store: LiveStore, timeout_config: TimeoutConfig, location: str) -> None:
        """Delete every resource in the manifest, stopping at the first failure."""
        for resource in self.load(location, timeout_config):
            key = resource.key
            logger.info(f"Deleting {key.name} {key.kind} {key.namespace}")
            try:
                store.delete(key, timeout_config.delete_timeout)
            except BackendError as e:
                raise DeleteFailedError(key.kind, key.name, key.namespace, str(e)) from e

    # ConfigCenter operations

    def publish_config(
        self,
        registry: Optional[TeardownRegistry],
        config_center: ConfigCenter,
        timeout_config: TimeoutConfig,
        location: str,
        cleanup: bool = True,
    ) -> None:
        """Publish every resource in the manifest as JSON to the config center."""
        _require_registry(registry, cleanup)
        for resource in self.load(location, timeout_config):
            kind, name, namespace = resource.kind, resource.name, resource.namespace
            logger.info(f"Publishing {name} {kind}")
            try:
                config_center.publish_config(kind, name, namespace, resource.to_json())
            except BackendError as e:
                raise PublishFailedError(kind, name, namespace, str(e)) from e
            if cleanup:
                self._register_config_delete(registry, config_center, kind, name, namespace)

    @staticmethod
    def _register_config_delete(
        registry: TeardownRegistry,
        config_center: ConfigCenter,
        kind: str,
        name: str,
        namespace: str,
    ) -> None:
        def teardown() -> None:
            logger.info(f"Deleting {name} {kind}")
            try:
                config_center.delete_config(kind, name, namespace)
            except BackendError as e:
                raise DeleteFailedError(kind, name, namespace, str(e)) from e

        registry.register(f"delete config {kind} {namespace}/{name}", teardown)

    def delete_config(
        self,
        config_center: ConfigCenter,
        timeout_config: TimeoutConfig,
        location: str,
    ) -> None:
        """Delete every resource in the manifest from the config center."""
        for resource in self.load(location, timeout_config):
            kind, name, namespace = resource.kind, resource.name, resource.namespace
            logger.info(f"Deleting {name} {kind}")
            try:
                config_center.delete_config(kind, name, namespace)
            except BackendError as e:
                raise DeleteFailedError(kind, name, namespace, str(e)) from e

    def patch_config_value(
        self,
        store: LiveStore,
        config_center: Optional[ConfigCenter],
        timeout_config: TimeoutConfig,
        namespace: str,
        name: str,
        key: str,
        value: Any,
        via_config_center: bool = False,
    ) -> StructuredResource:
        """Set one data key of a live ConfigMap to the YAML form of value.

        The modified ConfigMap is republished through the config center or
        written back to the LiveStore. Concurrent writers to the same
        ConfigMap are not detected.

        Returns:
            The ConfigMap as written
        """
        cm_key = ResourceKey(group='', kind='ConfigMap', namespace=namespace, name=name, version='v1')
        timeout = timeout_config.create_timeout
        try:
            cm = store.get(cm_key, timeout)
        except BackendError as e:
            raise ReadFailedError(cm_key.kind, name, namespace, str(e)) from e

        data = cm.obj.get('data')
        if data is None:
            data = cm.obj['data'] = {}
        data[key] = to_yaml_text(value)

        logger.info(f"Updating {name} {namespace}")
        if via_config_center:
            if config_center is None:
                raise ValueError("via_config_center requires a config center")
            try:
                config_center.publish_config('configmap', cm.name, cm.namespace, cm.to_yaml())
            except BackendError as e:
                raise PublishFailedError(cm_key.kind, name, namespace, str(e)) from e
            return cm

        try:
            store.update(cm, timeout)
        except BackendError as e:
            raise UpdateFailedError(cm_key.kind, name, namespace, str(e)) from e
        return cm
