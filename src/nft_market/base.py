"""NFT marketplace client base interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .storage import ImageSource
from .types import Address, Listing, Response, TokenRecord


class MarketplaceBase(ABC):
    """NFT marketplace client interface."""

    @abstractmethod
    def mint(
        self,
        name: str,
        description: str,
        image: ImageSource | None,
        filename: str | None = None,
    ) -> Response:
        pass

    @abstractmethod
    def list_token(self, token_id: int, price: str) -> Response:
        pass

    @abstractmethod
    def buy(self, token_id: int, expected_price: str | None = None) -> Response:
        pass

    @abstractmethod
    def cancel_listing(self, token_id: int) -> Response:
        pass

    @abstractmethod
    def refresh_catalog(self) -> list[Listing]:
        pass

    @abstractmethod
    def refresh_owned(self) -> list[TokenRecord]:
        pass

    @abstractmethod
    def probe_connection(self) -> Address | None:
        pass

    @abstractmethod
    def connect(self) -> Address:
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def on_accounts_changed(self, accounts: Sequence[Address]) -> None:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass
