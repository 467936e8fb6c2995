"""Pinata pinning client used to store token images and metadata on IPFS."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, BinaryIO

import requests

from .config import StorageConfig
from .exceptions import StorageUploadFailed, ValidationError

logger = logging.getLogger(__name__)

ImageSource = bytes | bytearray | BinaryIO | str | os.PathLike


class PinataStorage:
    """Pin blobs and JSON documents, returning their content identifiers."""

    def __init__(self, config: StorageConfig, session: requests.Session) -> None:
        self._config = config.with_defaulted_urls()
        self._session = session

    @property
    def configured(self) -> bool:
        return self._config.has_credentials

    def pin_file(self, source: ImageSource, filename: str | None = None) -> str:
        content, name = _read_image(source, filename)
        endpoint = f"{self._config.api_url}/pinning/pinFileToIPFS"
        payload = self._post(endpoint, files={"file": (name, content)})
        return self._extract_cid(payload, endpoint)

    def pin_json(self, document: Mapping[str, Any], name: str | None = None) -> str:
        endpoint = f"{self._config.api_url}/pinning/pinJSONToIPFS"
        body: dict[str, Any] = {"pinataContent": dict(document)}
        if name:
            body["pinataMetadata"] = {"name": name}
        payload = self._post(endpoint, json=body)
        return self._extract_cid(payload, endpoint)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        if self._config.jwt:
            return {"Authorization": f"Bearer {self._config.jwt}"}
        if self._config.api_key and self._config.secret_api_key:
            return {
                "pinata_api_key": self._config.api_key,
                "pinata_secret_api_key": self._config.secret_api_key,
            }
        raise StorageUploadFailed("Pinning service credentials are not configured")

    def _post(self, endpoint: str, **kwargs: Any) -> Any:
        headers = self._headers()
        try:
            response = self._session.post(
                endpoint,
                headers=headers,
                timeout=self._config.request_timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise StorageUploadFailed(
                "Pinning request failed", endpoint=endpoint, details={"error": str(exc)}
            ) from exc

        if not 200 <= response.status_code < 300:
            raise StorageUploadFailed(
                f"Pinning service returned HTTP {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
                details={"body": getattr(response, "text", "")[:500]},
            )

        try:
            return response.json()
        except ValueError as exc:
            raise StorageUploadFailed(
                "Pinning service returned a non-JSON response", endpoint=endpoint
            ) from exc

    def _extract_cid(self, payload: Any, endpoint: str) -> str:
        cid = payload.get("IpfsHash") if isinstance(payload, Mapping) else None
        if not isinstance(cid, str) or not cid:
            raise StorageUploadFailed(
                "Pinning service did not return a content identifier",
                endpoint=endpoint,
                details={"response": payload},
            )
        logger.info("Pinned content %s via %s", cid, endpoint)
        return cid


def _read_image(source: ImageSource, filename: str | None) -> tuple[bytes, str]:
    if isinstance(source, bytes | bytearray):
        return bytes(source), filename or "image"

    if isinstance(source, str | os.PathLike):
        path = Path(source)
        try:
            return path.read_bytes(), filename or path.name
        except OSError as exc:
            raise ValidationError(
                "Image file could not be read", field="image", value=str(path)
            ) from exc

    if hasattr(source, "read"):
        data = source.read()
        if not isinstance(data, bytes | bytearray):
            raise ValidationError("Image stream must be opened in binary mode", field="image")
        name = filename or Path(str(getattr(source, "name", "image"))).name
        return bytes(data), name

    raise ValidationError("Unsupported image source", field="image", value=type(source).__name__)
