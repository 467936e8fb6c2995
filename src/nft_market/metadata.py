"""Token metadata resolution through an IPFS HTTP gateway."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from .config import StorageConfig
from .constants import DEFAULT_IPFS_GATEWAY, IPFS_SCHEME
from .exceptions import MetadataUnavailable
from .types import MetadataRecord

logger = logging.getLogger(__name__)


class MetadataResolver:
    """Resolve token URIs into :class:`MetadataRecord` values.

    ``resolve`` never raises: unreachable gateways, error statuses and
    malformed documents all produce the degraded "unavailable" record.
    Documents behind ``ipfs://`` URIs are immutable and cached per URI.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        gateway_url: str = DEFAULT_IPFS_GATEWAY,
        request_timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._gateway_url = gateway_url if gateway_url.endswith("/") else f"{gateway_url}/"
        self._request_timeout = request_timeout
        self._cache: dict[str, MetadataRecord] = {}

    @classmethod
    def from_config(cls, config: StorageConfig, session: requests.Session) -> MetadataResolver:
        return cls(session, gateway_url=config.gateway_url, request_timeout=config.request_timeout)

    def reset(self) -> None:
        self._cache.clear()

    def gateway_url(self, uri: str | None) -> str | None:
        """Rewrite an ``ipfs://`` URI to an HTTP gateway URL; other URIs pass through."""

        if not uri:
            return None
        uri = uri.strip()
        if not uri.startswith(IPFS_SCHEME):
            return uri
        path = uri[len(IPFS_SCHEME) :]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/") :]
        return f"{self._gateway_url}{path}"

    def image_url(self, metadata: MetadataRecord) -> str | None:
        return self.gateway_url(metadata.image_ref)

    def resolve(self, token_uri: Any) -> MetadataRecord:
        if not isinstance(token_uri, str) or not token_uri.strip():
            logger.debug("Empty or non-string token URI %r", token_uri)
            return MetadataRecord.unavailable()

        cached = self._cache.get(token_uri)
        if cached is not None:
            return cached

        try:
            record = MetadataRecord.from_document(self._fetch(token_uri))
        except MetadataUnavailable as exc:
            logger.warning("Metadata unavailable for %s: %s", token_uri, exc)
            return MetadataRecord.unavailable()
        except Exception as exc:
            logger.warning("Unexpected metadata failure for %s: %s", token_uri, exc)
            return MetadataRecord.unavailable()

        if token_uri.startswith(IPFS_SCHEME):
            self._cache[token_uri] = record
        return record

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch(self, token_uri: str) -> Mapping[str, Any]:
        url = self.gateway_url(token_uri)
        if not url or not url.startswith(("http://", "https://")):
            raise MetadataUnavailable(f"Unsupported metadata URI scheme: {token_uri}")

        try:
            response = self._session.get(url, timeout=self._request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise MetadataUnavailable(
                f"Gateway request failed: {exc}", details={"url": url}
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MetadataUnavailable("Metadata is not valid JSON", details={"url": url}) from exc

        if not isinstance(payload, Mapping):
            raise MetadataUnavailable("Metadata document is not a JSON object", details={"url": url})

        logger.debug("Fetched metadata for %s", token_uri)
        return payload
