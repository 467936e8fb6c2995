"""Configuration containers for the NFT marketplace client."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from web3.types import ChecksumAddress

from .abi import MARKETPLACE_ABI
from .constants import (
    DEFAULT_IPFS_GATEWAY,
    DEFAULT_PURCHASE_GAS_LIMIT,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    GAS_SAFETY_MARGIN,
    PINATA_API_URL,
)


@dataclass(frozen=True)
class StorageConfig:
    """Credentials and endpoints for the Pinata pinning service and IPFS gateway."""

    api_key: str | None = None
    secret_api_key: str | None = None
    jwt: str | None = None
    api_url: str = PINATA_API_URL
    gateway_url: str = DEFAULT_IPFS_GATEWAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def has_credentials(self) -> bool:
        return bool(self.jwt) or bool(self.api_key and self.secret_api_key)

    def with_defaulted_urls(self) -> StorageConfig:
        """Return a copy with normalised endpoint URLs."""

        gateway = self.gateway_url or DEFAULT_IPFS_GATEWAY
        if not gateway.endswith("/"):
            gateway = f"{gateway}/"
        return replace(
            self,
            api_url=(self.api_url or PINATA_API_URL).rstrip("/"),
            gateway_url=gateway,
        )


@dataclass(frozen=True)
class MarketplaceConfig:
    """Aggregated configuration used to construct the marketplace client."""

    contract_address: ChecksumAddress
    rpc_url: str | None = None
    abi: Sequence[dict[str, Any]] | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    wait_for_receipt: bool = True
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    purchase_gas_fallback: int = DEFAULT_PURCHASE_GAS_LIMIT
    gas_safety_margin: Decimal = GAS_SAFETY_MARGIN
    storage: StorageConfig = field(default_factory=StorageConfig)

    def with_defaults(self) -> MarketplaceConfig:
        """Return a copy with the default ABI and normalised storage URLs."""

        return replace(
            self,
            abi=list(self.abi) if self.abi is not None else list(MARKETPLACE_ABI),
            storage=self.storage.with_defaulted_urls(),
        )
