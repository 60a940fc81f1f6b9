"""LiveStore client for a Kubernetes-style REST API.

Paths follow the API server conventions:
- core group:   /api/v1[/namespaces/{ns}]/{plural}[/{name}]
- named groups: /apis/{group}/{version}[/namespaces/{ns}]/{plural}[/{name}]

An empty namespace addresses a cluster-scoped resource. Reads and deletes use
the version carried by the ResourceKey. Keys built without one fall back to
api_versions (group -> version), which is also updated from the apiVersion of
every resource written through the store.
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

import requests
import urllib3

from backends.base import BackendError, ResourceAlreadyExists, ResourceNotFound
from resources import ResourceKey, StructuredResource

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

DEFAULT_API_VERSIONS = {
    '': 'v1',
    'apps': 'v1',
    'batch': 'v1',
    'networking.k8s.io': 'v1',
    'rbac.authorization.k8s.io': 'v1',
    'apiextensions.k8s.io': 'v1',
    'gateway.networking.k8s.io': 'v1',
}

# Kinds whose plural is not derivable from the kind name
IRREGULAR_PLURALS = {
    'Endpoints': 'endpoints',
    'PodSecurityPolicy': 'podsecuritypolicies',
}


def plural_for_kind(kind: str) -> str:
    """Derive the REST resource name for a kind (ConfigMap -> configmaps)."""
    if kind in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[kind]
    lower = kind.lower()
    if lower.endswith(('s', 'x', 'ch', 'sh')):
        return lower + 'es'
    if lower.endswith('y') and len(lower) > 1 and lower[-2] not in 'aeiou':
        return lower[:-1] + 'ies'
    return lower + 's'


class KubeApiStore:
    """LiveStore backed by a Kubernetes-style API server."""

    def __init__(
        self,
        server: str,
        token: Optional[str] = None,
        ca_cert: Optional[Path] = None,
        insecure: bool = False,
        api_versions: Optional[dict] = None,
        plurals: Optional[dict] = None,
    ):
        """Initialize API store client.

        Args:
            server: API server URL (e.g., https://127.0.0.1:6443)
            token: Bearer token
            ca_cert: CA bundle for server certificate verification
            insecure: Skip certificate verification
            api_versions: Group -> version for keys that carry no version
            plurals: Kind -> resource name overrides (for CRDs)
        """
        self.server = server.rstrip('/')
        self.token = token
        self.ca_cert = ca_cert
        self.insecure = insecure
        self.api_versions = dict(DEFAULT_API_VERSIONS)
        self.api_versions.update(api_versions or {})
        self.plurals = dict(plurals or {})

        if insecure:
            # Test clusters commonly run with self-signed certs
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _verify(self):
        if self.insecure:
            return False
        if self.ca_cert:
            return str(self.ca_cert)
        return True

    def _headers(self) -> dict:
        headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _path(self, group: str, version: str, kind: str, namespace: str, name: str = '') -> str:
        base = f'/api/{version}' if not group else f'/apis/{group}/{version}'
        plural = self.plurals.get(kind) or plural_for_kind(kind)
        path = f'{base}/namespaces/{namespace}/{plural}' if namespace else f'{base}/{plural}'
        if name:
            path = f'{path}/{name}'
        return path

    def _key_path(self, key: ResourceKey) -> str:
        version = key.version or self.api_versions.get(key.group, 'v1')
        return self._path(key.group, version, key.kind, key.namespace, key.name)

    def _remember_version(self, resource: StructuredResource) -> None:
        if resource.version:
            self.api_versions[resource.group] = resource.version

    def _request(
        self, method: str, path: str, timeout: float, body: Optional[dict] = None
    ) -> tuple[int, bytes]:
        """Send one request and read the whole response before the deadline.

        Returns:
            (status code, response body)
        """
        url = f'{self.server}{path}'
        logger.debug(f"{method} {url}")
        deadline = time.monotonic() + timeout
        try:
            resp = requests.request(
                method,
                url,
                headers=self._headers(),
                json=body,
                verify=self._verify(),
                timeout=timeout,
                stream=True,
            )
            try:
                content = bytearray()
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    content.extend(chunk)
                    if time.monotonic() > deadline:
                        raise BackendError(f"{method} {path} timed out after {timeout}s")
            finally:
                resp.close()
        except requests.exceptions.Timeout as e:
            raise BackendError(f"{method} {path} timed out after {timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e
        return resp.status_code, bytes(content)

    @staticmethod
    def _status(content: bytes) -> tuple[str, str]:
        """Extract (reason, message) from a Status response body."""
        try:
            data = json.loads(content)
        except ValueError:
            return '', content.decode('utf-8', errors='replace')[:200]
        if not isinstance(data, dict):
            return '', str(data)[:200]
        return data.get('reason', ''), data.get('message', '')

    def _raise_for_status(self, status: int, content: bytes, method: str, path: str) -> None:
        if status < 400:
            return
        reason, message = self._status(content)
        detail = f"{method} {path}: HTTP {status} {reason} {message}".rstrip()
        if status == 404:
            raise ResourceNotFound(detail)
        if status == 409 and method == 'POST':
            # 409 on POST is AlreadyExists; on PUT it is a version conflict
            if reason in ('', 'AlreadyExists'):
                raise ResourceAlreadyExists(detail)
        raise BackendError(detail)

    def get(self, key: ResourceKey, timeout: float) -> StructuredResource:
        path = self._key_path(key)
        status, content = self._request('GET', path, timeout)
        self._raise_for_status(status, content, 'GET', path)
        try:
            obj = json.loads(content)
        except ValueError as e:
            raise BackendError(f"GET {path}: invalid JSON response: {e}") from e
        if not isinstance(obj, dict):
            raise BackendError(f"GET {path}: expected an object, got {type(obj).__name__}")
        return StructuredResource(obj)

    def create(self, resource: StructuredResource, timeout: float) -> None:
        self._remember_version(resource)
        path = self._path(resource.group, resource.version, resource.kind, resource.namespace)
        status, content = self._request('POST', path, timeout, body=resource.obj)
        self._raise_for_status(status, content, 'POST', path)

    def update(self, resource: StructuredResource, timeout: float) -> None:
        self._remember_version(resource)
        path = self._path(resource.group, resource.version, resource.kind,
                          resource.namespace, resource.name)
        status, content = self._request('PUT', path, timeout, body=resource.obj)
        self._raise_for_status(status, content, 'PUT', path)

    def delete(self, key: ResourceKey, timeout: float) -> None:
        path = self._key_path(key)
        status, content = self._request('DELETE', path, timeout)
        self._raise_for_status(status, content, 'DELETE', path)
