"""Manifest loading: fetch raw manifests and decode them into resources."""

from loader.decoder import (
    apply_ingress_class,
    apply_namespace_labels,
    decode_resources,
    iter_resources,
)
from loader.fetcher import (
    LocationKind,
    ManifestFetcher,
    RawManifest,
    classify_location,
    fetch_manifest,
)

__all__ = [
    'apply_ingress_class',
    'apply_namespace_labels',
    'decode_resources',
    'iter_resources',
    'LocationKind',
    'ManifestFetcher',
    'RawManifest',
    'classify_location',
    'fetch_manifest',
]
