"""NFT Marketplace Client - mint, list, buy and cancel NFTs from Python.

This library orchestrates wallet connection, IPFS metadata storage and the
multi-step contract interactions of a single ERC-721 marketplace contract.
"""

from .base import MarketplaceBase
from .catalog import ListingCatalogBuilder
from .client import MarketplaceClient
from .config import MarketplaceConfig, StorageConfig
from .connection import ConnectionEvent, ConnectionManager
from .contract import ContractHandle
from .enumeration import (
    EnumerationStrategy,
    IndexedEnumerationStrategy,
    SupplyScanStrategy,
    TokenEnumerator,
    TokensOfOwnerStrategy,
)
from .exceptions import (
    AlreadyListed,
    ApprovalFailed,
    ChainCallReverted,
    EnumerationUnavailable,
    InsufficientFunds,
    MarketplaceError,
    MarketplaceNotApproved,
    MetadataUnavailable,
    NetworkError,
    NoLongerListed,
    NotConnected,
    NotOwner,
    OperationInProgress,
    RequestAlreadyPending,
    SelfPurchase,
    SellerNoLongerOwner,
    StorageUploadFailed,
    UserRejected,
    ValidationError,
)
from .guard import OperationGuard
from .metadata import MetadataResolver
from .storage import PinataStorage
from .types import (
    Address,
    FeeData,
    Listing,
    ListingDraft,
    MetadataRecord,
    Response,
    TokenRecord,
    Wei,
    WorkflowState,
)
from .utils import format_wei, is_active_listing, normalize_address, to_wei_amount
from .wallet import WalletProvider, Web3WalletProvider

__version__ = "0.1.0"

__all__ = [
    # Clients and components
    "MarketplaceBase",
    "MarketplaceClient",
    "ConnectionManager",
    "ConnectionEvent",
    "ContractHandle",
    "MetadataResolver",
    "PinataStorage",
    "TokenEnumerator",
    "EnumerationStrategy",
    "TokensOfOwnerStrategy",
    "IndexedEnumerationStrategy",
    "SupplyScanStrategy",
    "ListingCatalogBuilder",
    "OperationGuard",
    "WalletProvider",
    "Web3WalletProvider",
    # Configuration
    "MarketplaceConfig",
    "StorageConfig",
    # Types
    "Address",
    "Wei",
    "FeeData",
    "Listing",
    "ListingDraft",
    "MetadataRecord",
    "Response",
    "TokenRecord",
    "WorkflowState",
    # Exceptions
    "MarketplaceError",
    "NetworkError",
    "ValidationError",
    "UserRejected",
    "RequestAlreadyPending",
    "NotConnected",
    "OperationInProgress",
    "EnumerationUnavailable",
    "MetadataUnavailable",
    "NotOwner",
    "AlreadyListed",
    "ApprovalFailed",
    "NoLongerListed",
    "SellerNoLongerOwner",
    "SelfPurchase",
    "InsufficientFunds",
    "MarketplaceNotApproved",
    "ChainCallReverted",
    "StorageUploadFailed",
    # Utility functions
    "format_wei",
    "is_active_listing",
    "normalize_address",
    "to_wei_amount",
]
