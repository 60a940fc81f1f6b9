"""Shared pytest fixtures for applier tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from applier import Applier, TeardownRegistry  # noqa: E402
from backends.base import BackendError, ResourceAlreadyExists, ResourceNotFound  # noqa: E402
from config import TimeoutConfig  # noqa: E402
from loader import ManifestFetcher  # noqa: E402
from resources import StructuredResource  # noqa: E402


class FakeLiveStore:
    """In-memory LiveStore that records every call.

    Attributes:
        objects: Stored resources by key
        calls: (operation, key, timeout) in call order
        failures: operation -> exception raised on the next call
    """

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.failures = {}
        self.updated = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _maybe_fail(self, op):
        if op in self.failures:
            raise self.failures.pop(op)

    def seed(self, obj: dict) -> StructuredResource:
        """Store a resource directly, bypassing call recording."""
        resource = StructuredResource(obj).deep_copy()
        resource.resource_version = self._next_version()
        self.objects[resource.key] = resource
        return resource

    def ops(self) -> list:
        return [op for op, _, _ in self.calls]

    def get(self, key, timeout):
        self.calls.append(('get', key, timeout))
        self._maybe_fail('get')
        if key not in self.objects:
            raise ResourceNotFound(f"{key} not found")
        return self.objects[key].deep_copy()

    def create(self, resource, timeout):
        self.calls.append(('create', resource.key, timeout))
        self._maybe_fail('create')
        if resource.key in self.objects:
            raise ResourceAlreadyExists(f"{resource.key} already exists")
        stored = resource.deep_copy()
        stored.resource_version = self._next_version()
        self.objects[resource.key] = stored

    def update(self, resource, timeout):
        self.calls.append(('update', resource.key, timeout))
        self._maybe_fail('update')
        live = self.objects.get(resource.key)
        if live is None:
            raise ResourceNotFound(f"{resource.key} not found")
        if resource.resource_version != live.resource_version:
            raise BackendError(f"conflict on {resource.key}")
        self.updated.append(resource.deep_copy())
        stored = resource.deep_copy()
        stored.resource_version = self._next_version()
        self.objects[resource.key] = stored

    def delete(self, key, timeout):
        self.calls.append(('delete', key, timeout))
        self._maybe_fail('delete')
        if key not in self.objects:
            raise ResourceNotFound(f"{key} not found")
        del self.objects[key]


class FakeConfigCenter:
    """In-memory ConfigCenter that records publishes and deletes."""

    def __init__(self):
        self.entries = {}
        self.published = []
        self.deleted = []
        self.failures = {}

    def publish_config(self, kind, name, namespace, payload):
        if 'publish' in self.failures:
            raise self.failures.pop('publish')
        self.published.append((kind, name, namespace, payload))
        self.entries[(kind, name, namespace)] = payload

    def delete_config(self, kind, name, namespace):
        if 'delete' in self.failures:
            raise self.failures.pop('delete')
        self.deleted.append((kind, name, namespace))
        self.entries.pop((kind, name, namespace), None)


NAMESPACE_AND_CONFIGMAP = """\
apiVersion: v1
kind: Namespace
metadata:
  name: e2e
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: settings
  namespace: e2e
data:
  mode: strict
"""


@pytest.fixture
def live_store():
    return FakeLiveStore()


@pytest.fixture
def config_center():
    return FakeConfigCenter()


@pytest.fixture
def teardown_registry():
    """Registry drained at test end, like a test-scoped cleanup stack."""
    registry = TeardownRegistry()
    yield registry
    registry.run_all(raise_errors=False)


@pytest.fixture
def timeouts():
    return TimeoutConfig(create_timeout=5, delete_timeout=2, manifest_fetch_timeout=3)


@pytest.fixture
def bundle_dir(tmp_path):
    """Manifest bundle with a few fixtures.

    Creates:
    - base/namespace-configmap.yaml (Namespace + ConfigMap)
    - base/single.yaml (one ConfigMap)
    - base/broken.yaml (valid ConfigMap followed by invalid YAML)
    """
    base = tmp_path / 'manifests' / 'base'
    base.mkdir(parents=True)
    (base / 'namespace-configmap.yaml').write_text(NAMESPACE_AND_CONFIGMAP)
    (base / 'single.yaml').write_text("""\
apiVersion: v1
kind: ConfigMap
metadata:
  name: plugin-conf
  namespace: higress-system
data:
  key: value
""")
    (base / 'broken.yaml').write_text("""\
apiVersion: v1
kind: ConfigMap
metadata:
  name: first
  namespace: default
---
kind: ConfigMap
metadata: [unclosed
""")
    return tmp_path / 'manifests'


@pytest.fixture
def applier(bundle_dir):
    return Applier(namespace_labels={'env': 'test'}, fetcher=ManifestFetcher(bundle_dir))
