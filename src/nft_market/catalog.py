"""Reconciliation of the contract's listing table into active listings."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .contract import ContractHandle
from .exceptions import ChainCallReverted, MarketplaceError
from .metadata import MetadataResolver
from .types import Listing, MetadataRecord, RawListing
from .utils import format_wei, is_active_listing, same_address, unpack_listing

logger = logging.getLogger(__name__)


class ListingCatalogBuilder:
    """Build the buyer-facing catalog from ``getAllListings``.

    Rows are dropped when they are tombstoned (zero seller or zero price) or
    when the recorded seller no longer owns the token, since transfers made
    outside the marketplace leave stale rows behind.
    """

    def __init__(self, resolver: MetadataResolver) -> None:
        self._resolver = resolver

    def read_raw_listings(self, handle: ContractHandle) -> list[RawListing]:
        try:
            raw_listings, token_ids = handle.call("getAllListings")
        except (TypeError, ValueError) as exc:
            raise ChainCallReverted(
                "getAllListings returned an unexpected shape",
                reason=str(exc),
                function_name="getAllListings",
            ) from exc

        return _pair_rows(raw_listings, token_ids)

    def build_catalog(self, handle: ContractHandle) -> list[Listing]:
        raw_rows = self.read_raw_listings(handle)
        logger.debug("Listing table returned %d rows", len(raw_rows))

        catalog: list[Listing] = []
        for row in raw_rows:
            listing = self._verify_row(handle, row)
            if listing is not None:
                catalog.append(listing)

        logger.info("Catalog contains %d active listings", len(catalog))
        return catalog

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _verify_row(self, handle: ContractHandle, row: RawListing) -> Listing | None:
        if not is_active_listing(row.seller, row.price):
            logger.debug("Skipping inactive listing for token %s", row.token_id)
            return None

        try:
            current_owner = handle.call("ownerOf", row.token_id)
        except MarketplaceError as exc:
            logger.info("Token %s ownership unreadable, skipping: %s", row.token_id, exc)
            return None

        if not same_address(current_owner, row.seller):
            logger.info(
                "Token %s owner mismatch (seller=%s owner=%s), skipping",
                row.token_id,
                row.seller,
                current_owner,
            )
            return None

        return Listing(
            token_id=row.token_id,
            seller=row.seller,
            price=format_wei(row.price),
            metadata=self._metadata_for(handle, row.token_id),
        )

    def _metadata_for(self, handle: ContractHandle, token_id: int) -> MetadataRecord:
        try:
            token_uri = handle.call("tokenURI", token_id)
        except MarketplaceError as exc:
            logger.warning("tokenURI failed for listed token %s: %s", token_id, exc)
            return MetadataRecord.error()
        return self._resolver.resolve(token_uri)


def _pair_rows(raw_listings: Sequence[Any], token_ids: Sequence[Any]) -> list[RawListing]:
    if len(raw_listings) != len(token_ids):
        logger.warning(
            "Listing table length mismatch: %d rows, %d token ids",
            len(raw_listings),
            len(token_ids),
        )

    rows: list[RawListing] = []
    for raw, token_id in zip(raw_listings, token_ids):
        try:
            rows.append(unpack_listing(int(token_id), raw))
        except (MarketplaceError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed listing row for token %s: %s", token_id, exc)
    return rows
