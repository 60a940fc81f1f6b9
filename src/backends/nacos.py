"""ConfigCenter client for the Nacos open API.

Each resource maps to one Nacos config entry:
- dataId: {namespace}.{kind}.{name} (kind lower-cased)
- group: configured group (DEFAULT_GROUP unless overridden)
- tenant: optional Nacos namespace id

Publish is an upsert on the Nacos side, so there is no read step.
"""

import logging
from typing import Optional

import requests

from backends.base import BackendError

logger = logging.getLogger(__name__)

CONFIGS_PATH = '/nacos/v1/cs/configs'


def data_id_for(kind: str, name: str, namespace: str) -> str:
    """Build the Nacos dataId for a resource identity."""
    return f"{namespace}.{kind.lower()}.{name}"


class NacosConfigCenter:
    """ConfigCenter backed by a Nacos server."""

    def __init__(
        self,
        server: str,
        group: str = 'DEFAULT_GROUP',
        tenant: Optional[str] = None,
        timeout: float = 10.0,
        delete_timeout: Optional[float] = None,
    ):
        """Initialize Nacos client.

        Args:
            server: Nacos server URL (e.g., http://127.0.0.1:8848)
            group: Config group for every entry
            tenant: Nacos namespace id
            timeout: Deadline for publish calls
            delete_timeout: Deadline for delete calls (defaults to timeout)
        """
        self.server = server.rstrip('/')
        self.group = group
        self.tenant = tenant
        self.timeout = timeout
        self.delete_timeout = delete_timeout if delete_timeout is not None else timeout

    def _params(self, kind: str, name: str, namespace: str) -> dict:
        params = {
            'dataId': data_id_for(kind, name, namespace),
            'group': self.group,
        }
        if self.tenant:
            params['tenant'] = self.tenant
        return params

    def _call(self, method: str, params: dict, timeout: float, data: Optional[dict] = None) -> None:
        url = f"{self.server}{CONFIGS_PATH}"
        try:
            resp = requests.request(
                method,
                url,
                params=params if data is None else None,
                data=data,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as e:
            raise BackendError(f"{method} {params['dataId']} timed out after {timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {params['dataId']} failed: {e}") from e

        if resp.status_code != 200 or resp.text.strip() != 'true':
            raise BackendError(
                f"{method} {params['dataId']}: HTTP {resp.status_code} {resp.text[:200]}"
            )

    def publish_config(self, kind: str, name: str, namespace: str, payload: str) -> None:
        params = self._params(kind, name, namespace)
        logger.debug(f"Publishing {params['dataId']} ({len(payload)} bytes)")
        self._call('POST', params, self.timeout, data={**params, 'content': payload})

    def delete_config(self, kind: str, name: str, namespace: str) -> None:
        params = self._params(kind, name, namespace)
        logger.debug(f"Deleting {params['dataId']}")
        self._call('DELETE', params, self.delete_timeout)
