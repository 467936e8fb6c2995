"""Type definitions and data models for the NFT marketplace client."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import (
    ERROR_DESCRIPTION,
    ERROR_NAME,
    UNKNOWN_DESCRIPTION,
    UNKNOWN_NAME,
)

Address = str  # Ethereum address, compared lowercase
Wei = int


class WorkflowState(Enum):
    """States shared by every mutation workflow."""

    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    AWAITING_FINALITY = "awaiting_finality"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class MetadataRecord:
    """Displayable token metadata, possibly a degraded placeholder."""

    name: str
    description: str
    image_ref: str | None = None
    attributes: tuple[Mapping[str, Any], ...] = ()
    degraded: bool = False

    @classmethod
    def unavailable(cls) -> "MetadataRecord":
        return cls(name=UNKNOWN_NAME, description=UNKNOWN_DESCRIPTION, degraded=True)

    @classmethod
    def error(cls) -> "MetadataRecord":
        return cls(name=ERROR_NAME, description=ERROR_DESCRIPTION, degraded=True)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "MetadataRecord":
        """Build a record from a parsed metadata JSON object.

        Missing or non-string fields fall back to the "unavailable" values so a
        partially filled document still renders.
        """

        name = document.get("name")
        description = document.get("description")
        image = document.get("image") or document.get("image_url")
        raw_attributes = document.get("attributes")

        attributes: tuple[Mapping[str, Any], ...] = ()
        if isinstance(raw_attributes, Sequence) and not isinstance(raw_attributes, str):
            attributes = tuple(item for item in raw_attributes if isinstance(item, Mapping))

        missing = not isinstance(name, str) or not isinstance(description, str)
        return cls(
            name=name if isinstance(name, str) else UNKNOWN_NAME,
            description=description if isinstance(description, str) else UNKNOWN_DESCRIPTION,
            image_ref=image if isinstance(image, str) and image else None,
            attributes=attributes,
            degraded=missing,
        )


@dataclass(frozen=True)
class TokenRecord:
    """A token owned by the connected account."""

    token_id: int
    metadata: MetadataRecord
    is_listed: bool = False
    listing_price: str = "0"
    token_uri: str | None = None


@dataclass(frozen=True)
class RawListing:
    """One row of the contract's listing table, before verification."""

    token_id: int
    seller: Address
    price: Wei


@dataclass(frozen=True)
class Listing:
    """An active, ownership-verified sale offer."""

    token_id: int
    seller: Address
    price: str
    metadata: MetadataRecord = field(default_factory=MetadataRecord.unavailable)


@dataclass
class ListingDraft:
    """Token chosen for listing and the proposed price."""

    token: TokenRecord
    price: str = ""


@dataclass(frozen=True)
class FeeData:
    """Network fee data reported by the wallet provider (all in wei)."""

    gas_price: Wei | None = None
    max_fee_per_gas: Wei | None = None
    max_priority_fee_per_gas: Wei | None = None

    @property
    def effective_gas_price(self) -> Wei | None:
        if self.gas_price is not None:
            return self.gas_price
        return self.max_fee_per_gas


@dataclass
class Response:
    """Outcome of a mutation workflow."""

    success: bool
    transaction_hash: str | None = None
    error: str | None = None
    error_code: str | None = None
    token_id: int | None = None
    price: str | None = None
    token_uri: str | None = None
    message: str | None = None
    raw_response: dict[str, Any] | None = None
