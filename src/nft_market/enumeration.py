"""Discovery of the tokens owned by an account.

Marketplace contracts differ in how much of ERC-721 enumeration they
implement, so ownership is discovered by trying strategies in order:

1. ``tokensOfOwner(account)``
2. ``balanceOf`` followed by ``tokenOfOwnerByIndex`` for each index
3. ``totalSupply`` (or ``getTotalSupply``) followed by ``ownerOf`` for every id

The first strategy that completes wins. When none does,
:class:`EnumerationUnavailable` reports every strategy's cause.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from .contract import ContractHandle
from .exceptions import (
    CapabilityMissing,
    EnumerationUnavailable,
    MarketplaceError,
    StrategyUnavailable,
)
from .metadata import MetadataResolver
from .types import Address, MetadataRecord, TokenRecord
from .utils import format_wei, is_active_listing, same_address, unpack_listing

logger = logging.getLogger(__name__)


class EnumerationStrategy(ABC):
    """One way of listing the token ids owned by an account."""

    name: str = "strategy"

    @abstractmethod
    def enumerate(self, handle: ContractHandle, account: Address) -> list[int]:
        """Return owned token ids or raise :class:`StrategyUnavailable`."""


class TokensOfOwnerStrategy(EnumerationStrategy):
    name = "tokensOfOwner"

    def enumerate(self, handle: ContractHandle, account: Address) -> list[int]:
        try:
            token_ids = handle.call("tokensOfOwner", account)
        except MarketplaceError as exc:
            raise StrategyUnavailable(self.name, str(exc)) from exc
        return [int(token_id) for token_id in token_ids]


class IndexedEnumerationStrategy(EnumerationStrategy):
    name = "tokenOfOwnerByIndex"

    def enumerate(self, handle: ContractHandle, account: Address) -> list[int]:
        # A zero balance never reaches tokenOfOwnerByIndex, so probe the ABI up front.
        if not handle.has_function("tokenOfOwnerByIndex"):
            raise StrategyUnavailable(self.name, "contract does not expose 'tokenOfOwnerByIndex'")
        try:
            balance = int(handle.call("balanceOf", account))
            return [
                int(handle.call("tokenOfOwnerByIndex", account, index)) for index in range(balance)
            ]
        except MarketplaceError as exc:
            raise StrategyUnavailable(self.name, str(exc)) from exc


class SupplyScanStrategy(EnumerationStrategy):
    """Check ``ownerOf`` for every id below the total supply.

    Ids whose ownership read fails (burned or never minted) are skipped.
    """

    name = "ownerOf scan"

    def enumerate(self, handle: ContractHandle, account: Address) -> list[int]:
        total_supply = self._total_supply(handle)
        logger.debug("Scanning %s token ids for %s", total_supply, account)

        owned: list[int] = []
        for token_id in range(total_supply):
            try:
                owner = handle.call("ownerOf", token_id)
            except CapabilityMissing as exc:
                raise StrategyUnavailable(self.name, str(exc)) from exc
            except MarketplaceError:
                continue
            if same_address(owner, account):
                owned.append(token_id)
        return owned

    def _total_supply(self, handle: ContractHandle) -> int:
        errors: list[str] = []
        for function_name in ("getTotalSupply", "totalSupply"):
            try:
                return int(handle.call(function_name))
            except MarketplaceError as exc:
                errors.append(str(exc))
        raise StrategyUnavailable(self.name, "; ".join(errors))


DEFAULT_STRATEGIES: tuple[EnumerationStrategy, ...] = (
    TokensOfOwnerStrategy(),
    IndexedEnumerationStrategy(),
    SupplyScanStrategy(),
)


class TokenEnumerator:
    """Build the owned-token view for an account."""

    def __init__(
        self,
        resolver: MetadataResolver,
        strategies: Sequence[EnumerationStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self._resolver = resolver
        self._strategies = tuple(strategies)

    def enumerate_owned(self, handle: ContractHandle, account: Address) -> list[int]:
        causes: dict[str, str] = {}
        for strategy in self._strategies:
            try:
                token_ids = strategy.enumerate(handle, account)
            except StrategyUnavailable as exc:
                logger.info("Enumeration via %s failed, trying next: %s", strategy.name, exc.reason)
                causes[strategy.name] = exc.reason
                continue
            logger.info("Enumerated %d tokens via %s", len(token_ids), strategy.name)
            return token_ids

        raise EnumerationUnavailable(
            "Could not enumerate owned tokens; check the contract implementation",
            causes=causes,
        )

    def build_records(
        self, handle: ContractHandle, account: Address, token_ids: Sequence[int]
    ) -> list[TokenRecord]:
        return [self._build_record(handle, account, token_id) for token_id in token_ids]

    def refresh(self, handle: ContractHandle, account: Address) -> list[TokenRecord]:
        """Enumerate and build a fresh record for every owned token."""

        return self.build_records(handle, account, self.enumerate_owned(handle, account))

    # ------------------------------------------------------------------
    # Per-token helpers
    # ------------------------------------------------------------------
    def _build_record(self, handle: ContractHandle, account: Address, token_id: int) -> TokenRecord:
        try:
            token_uri = handle.call("tokenURI", token_id)
        except MarketplaceError as exc:
            logger.warning("Error processing token %s: %s", token_id, exc)
            return TokenRecord(token_id=token_id, metadata=MetadataRecord.error())

        is_listed, price = self._listing_status(handle, account, token_id)
        return TokenRecord(
            token_id=token_id,
            metadata=self._resolver.resolve(token_uri),
            is_listed=is_listed,
            listing_price=price,
            token_uri=str(token_uri),
        )

    def _listing_status(
        self, handle: ContractHandle, account: Address, token_id: int
    ) -> tuple[bool, str]:
        try:
            listed, seller, price = handle.call("getListingInfo", token_id)
            active = bool(listed) and is_active_listing(seller, price)
        except (MarketplaceError, TypeError, ValueError) as exc:
            logger.debug("getListingInfo unavailable for token %s: %s", token_id, exc)
            try:
                raw = unpack_listing(token_id, handle.call("listings", token_id))
            except MarketplaceError as fallback_exc:
                logger.info("No listing found for token %s: %s", token_id, fallback_exc)
                return False, "0"
            seller, price = raw.seller, raw.price
            active = is_active_listing(seller, price)

        if active and same_address(seller, account):
            return True, format_wei(price)
        return False, "0"
