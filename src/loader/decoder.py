"""Multi-document YAML/JSON manifest decoding.

Documents are decoded lazily, one at a time. Empty documents (blank `---`
separators, `null`, `{}`) are skipped. Environment-specific mutations are
applied in place before a resource is yielded:

- Namespace (core group): namespace labels merged into metadata.labels
- Ingress (networking.k8s.io): spec.ingressClassName set when configured
"""

import json
import logging
from typing import Iterator, Optional, Union

import yaml

from common import DecodeFailedError
from resources import StructuredResource

logger = logging.getLogger(__name__)

INGRESS_GROUP = 'networking.k8s.io'


class _ManifestLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamps as plain strings, as JSON would."""


_ManifestLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers
            if tag != 'tag:yaml.org,2002:timestamp']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _is_json_stream(text: str) -> bool:
    return text.lstrip().startswith('{')


def _iter_json_documents(text: str) -> Iterator:
    """Yield concatenated JSON documents ({...}{...} or one per line)."""
    decoder = json.JSONDecoder()
    pos = 0
    end = len(text)
    while True:
        while pos < end and text[pos].isspace():
            pos += 1
        if pos >= end:
            return
        doc, pos = decoder.raw_decode(text, pos)
        yield doc


def _iter_documents(text: str) -> Iterator:
    if _is_json_stream(text):
        return _iter_json_documents(text)
    return yaml.load_all(text, Loader=_ManifestLoader)


def _is_string_map(value) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    )


def apply_namespace_labels(resource: StructuredResource, namespace_labels: Optional[dict]) -> None:
    """Merge namespace_labels into the resource's metadata.labels.

    The label map is only written back when it exists afterwards, so a
    Namespace without labels and an empty label set stays label-less.

    Raises:
        ValueError: If existing labels are not a string map
    """
    labels = resource.labels
    if labels is not None and not _is_string_map(labels):
        raise ValueError(f"error getting labels on Namespace {resource.name}: not a string map")

    for key, value in (namespace_labels or {}).items():
        if labels is None:
            labels = {}
        labels[key] = value

    if labels is not None:
        resource.labels = labels


def apply_ingress_class(resource: StructuredResource, ingress_class: str) -> None:
    """Set spec.ingressClassName on an Ingress resource.

    Raises:
        ValueError: If spec is present but not a mapping
    """
    spec = resource.obj.setdefault('spec', {})
    if spec is None:
        spec = resource.obj['spec'] = {}
    if not isinstance(spec, dict):
        raise ValueError(f"error setting ingressClassName on Ingress {resource.name}: spec is not a mapping")
    spec['ingressClassName'] = ingress_class


def iter_resources(
    data: Union[bytes, str],
    namespace_labels: Optional[dict] = None,
    ingress_class: Optional[str] = None,
) -> Iterator[StructuredResource]:
    """Lazily decode manifest documents into resources.

    Raises:
        DecodeFailedError: On the first malformed document; resources already
            yielded stay valid
    """
    if isinstance(data, bytes):
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeFailedError(
                f"invalid UTF-8: {e}", manifest=data.decode('utf-8', errors='replace')
            ) from e
    else:
        text = data
    documents = _iter_documents(text)

    while True:
        try:
            doc = next(documents)
        except StopIteration:
            return
        except (yaml.YAMLError, ValueError) as e:
            raise DecodeFailedError(str(e), manifest=text) from e

        if doc is None or doc == {}:
            continue
        if not isinstance(doc, dict):
            raise DecodeFailedError(
                f"expected a mapping document, got {type(doc).__name__}", manifest=text
            )
        if not doc.get('kind'):
            raise DecodeFailedError("Object 'Kind' is missing", manifest=text)

        resource = StructuredResource(doc)
        try:
            if resource.kind == 'Namespace' and resource.group == '':
                apply_namespace_labels(resource, namespace_labels)
            if ingress_class and resource.kind == 'Ingress' and resource.group == INGRESS_GROUP:
                apply_ingress_class(resource, ingress_class)
        except ValueError as e:
            raise DecodeFailedError(str(e), manifest=text) from e

        yield resource


def decode_resources(
    data: Union[bytes, str],
    namespace_labels: Optional[dict] = None,
    ingress_class: Optional[str] = None,
) -> list[StructuredResource]:
    """Decode all manifest documents.

    Raises:
        DecodeFailedError: With .resources set to the decoded prefix
    """
    resources: list[StructuredResource] = []
    try:
        for resource in iter_resources(data, namespace_labels, ingress_class):
            resources.append(resource)
    except DecodeFailedError as e:
        e.resources = resources
        raise
    logger.debug(f"Decoded {len(resources)} resource(s)")
    return resources
