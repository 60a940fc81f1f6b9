"""Loosely-typed structured resources.

A StructuredResource wraps the decoded mapping of one manifest document and
exposes typed accessors for the identity fields. Everything else stays in the
underlying dict untouched, so arbitrary resource schemas pass through.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml


@dataclass(frozen=True)
class ResourceKey:
    """Identity of a resource: (group, kind, namespace, name).

    version is the API version the resource was read or written with. It is
    an addressing hint for backends and takes no part in equality.
    """
    group: str
    kind: str
    namespace: str
    name: str
    version: str = field(default='', compare=False)

    def __str__(self) -> str:
        gk = f"{self.kind}.{self.group}" if self.group else self.kind
        if self.namespace:
            return f"{gk} {self.namespace}/{self.name}"
        return f"{gk} {self.name}"


def split_api_version(api_version: str) -> tuple[str, str]:
    """Split apiVersion into (group, version); core group is ''."""
    if '/' in api_version:
        group, version = api_version.split('/', 1)
        return group, version
    return '', api_version


class StructuredResource:
    """A decoded resource document.

    Attributes:
        obj: The full document as a plain dict
    """

    def __init__(self, obj: Optional[dict] = None):
        self.obj: dict = obj if obj is not None else {}

    def __repr__(self) -> str:
        return f"StructuredResource({self.key})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructuredResource):
            return NotImplemented
        return self.obj == other.obj

    @classmethod
    def from_obj(cls, value: Any) -> 'StructuredResource':
        """Coerce a dict or StructuredResource into a StructuredResource."""
        if isinstance(value, StructuredResource):
            return value
        if isinstance(value, dict):
            return cls(value)
        raise TypeError(f"Expected a resource mapping, got {type(value).__name__}")

    def _metadata(self, create: bool = False) -> dict:
        metadata = self.obj.get('metadata')
        if metadata is None:
            if not create:
                return {}
            metadata = self.obj['metadata'] = {}
        elif not isinstance(metadata, dict):
            if not create:
                return {}
            raise ValueError(
                f"metadata of {self.kind or 'resource'} is not a mapping: {type(metadata).__name__}"
            )
        return metadata

    @property
    def api_version(self) -> str:
        return self.obj.get('apiVersion') or ''

    @property
    def group(self) -> str:
        return split_api_version(self.api_version)[0]

    @property
    def version(self) -> str:
        return split_api_version(self.api_version)[1]

    @property
    def kind(self) -> str:
        return self.obj.get('kind') or ''

    @property
    def name(self) -> str:
        return self._metadata().get('name') or ''

    @property
    def namespace(self) -> str:
        return self._metadata().get('namespace') or ''

    @property
    def labels(self) -> Optional[dict]:
        """metadata.labels, or None when absent."""
        return self._metadata().get('labels')

    @labels.setter
    def labels(self, value: dict) -> None:
        self._metadata(create=True)['labels'] = value

    @property
    def resource_version(self) -> str:
        return self._metadata().get('resourceVersion') or ''

    @resource_version.setter
    def resource_version(self, value: str) -> None:
        metadata = self._metadata(create=True)
        if value:
            metadata['resourceVersion'] = value
        else:
            metadata.pop('resourceVersion', None)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(
            group=self.group,
            kind=self.kind,
            namespace=self.namespace,
            name=self.name,
            version=self.version,
        )

    def deep_copy(self) -> 'StructuredResource':
        return StructuredResource(copy.deepcopy(self.obj))

    def to_json(self) -> str:
        """Serialize to the compact JSON wire form."""
        return json.dumps(self.obj, separators=(',', ':'))

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.obj, default_flow_style=False, sort_keys=False)
