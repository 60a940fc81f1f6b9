"""Manifest retrieval from the local bundle or an HTTPS URL.

Location syntax:
- http://...  rejected, plaintext transport is never attempted
- https://... fetched once, bounded by manifest_fetch_timeout
- anything else: path inside the read-only manifest bundle

There are no retries at this layer. Callers abort the test on failure.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

import requests

from common import (
    FetchFailedError,
    IncompleteTransferError,
    ManifestNotFoundError,
    UnsupportedTransportError,
)
from config import TimeoutConfig, get_bundle_dir

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class LocationKind(Enum):
    """How a manifest location is resolved."""
    LOCAL = 'local'
    HTTPS = 'https'
    HTTP = 'http'


def classify_location(location: str) -> LocationKind:
    """Classify a manifest location by its scheme prefix."""
    if location.startswith('http://'):
        return LocationKind.HTTP
    if location.startswith('https://'):
        return LocationKind.HTTPS
    return LocationKind.LOCAL


@dataclass(frozen=True)
class RawManifest:
    """Fetched manifest bytes and where they came from."""
    data: bytes
    location: str

    @property
    def text(self) -> str:
        """Manifest text for diagnostics (undecodable bytes replaced)."""
        return self.data.decode('utf-8', errors='replace')


class ManifestFetcher:
    """Resolves manifest locations into RawManifest buffers."""

    def __init__(self, bundle_dir: Optional[Path] = None):
        """Initialize fetcher.

        Args:
            bundle_dir: Root of the local manifest bundle; resolved with
                get_bundle_dir() on first local read when not given
        """
        self._bundle_dir = Path(bundle_dir) if bundle_dir is not None else None

    @property
    def bundle_dir(self) -> Path:
        if self._bundle_dir is None:
            self._bundle_dir = get_bundle_dir()
        return self._bundle_dir

    def fetch(self, location: str, timeout_config: TimeoutConfig) -> RawManifest:
        """Fetch manifest contents.

        Raises:
            UnsupportedTransportError: Location is plaintext http://
            FetchFailedError: Transport error or non-2xx response
            IncompleteTransferError: Body shorter/longer than Content-Length
            ManifestNotFoundError: Bundle path does not exist
        """
        kind = classify_location(location)
        if kind is LocationKind.HTTP:
            raise UnsupportedTransportError(location)
        if kind is LocationKind.HTTPS:
            data = self._fetch_remote(location, timeout_config.manifest_fetch_timeout)
        else:
            data = self._read_bundle(location)
        return RawManifest(data=data, location=location)

    def _fetch_remote(self, location: str, timeout: float) -> bytes:
        logger.debug(f"Fetching manifest from {location} (timeout={timeout}s)")
        deadline = time.monotonic() + timeout
        try:
            resp = requests.get(location, timeout=timeout, stream=True)
        except requests.exceptions.RequestException as e:
            raise FetchFailedError(location, str(e)) from e

        try:
            if not 200 <= resp.status_code < 300:
                raise FetchFailedError(location, f"HTTP {resp.status_code}")

            expected = _declared_length(resp.headers)
            body = bytearray()
            try:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    body.extend(chunk)
                    # requests bounds each socket read, not the whole transfer
                    if time.monotonic() > deadline:
                        raise FetchFailedError(location, f"timed out after {timeout}s")
            except requests.exceptions.ChunkedEncodingError as e:
                raise IncompleteTransferError(location, len(body), expected) from e
            except requests.exceptions.RequestException as e:
                raise FetchFailedError(location, str(e)) from e
        finally:
            resp.close()

        if expected is not None and len(body) != expected:
            raise IncompleteTransferError(location, len(body), expected)

        logger.debug(f"Received {len(body)} bytes from {location}")
        return bytes(body)

    def _read_bundle(self, location: str) -> bytes:
        rel = PurePosixPath(location)
        if not location or rel.is_absolute() or '..' in rel.parts:
            raise ManifestNotFoundError(location, 'invalid bundle path')

        path = self.bundle_dir / rel
        if not path.is_file():
            raise ManifestNotFoundError(location)
        return path.read_bytes()


def _declared_length(headers) -> Optional[int]:
    """Content-Length of the body as read, or None when not comparable.

    A content coding (gzip etc.) means the declared length refers to the
    encoded bytes, not the decoded body we read.
    """
    if headers.get('Content-Encoding', 'identity').lower() != 'identity':
        return None
    value = headers.get('Content-Length')
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def fetch_manifest(
    location: str,
    timeout_config: TimeoutConfig,
    bundle_dir: Optional[Path] = None,
) -> RawManifest:
    """Fetch a manifest with a one-off fetcher."""
    return ManifestFetcher(bundle_dir).fetch(location, timeout_config)
