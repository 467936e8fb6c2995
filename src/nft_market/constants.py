"""Constants for the NFT marketplace client."""

from decimal import Decimal
from enum import Enum

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

IPFS_SCHEME = "ipfs://"
DEFAULT_IPFS_GATEWAY = "https://gateway.pinata.cloud/ipfs/"
PINATA_API_URL = "https://api.pinata.cloud"

# Fallback gas limit for purchases when the node refuses to simulate the call
DEFAULT_PURCHASE_GAS_LIMIT = 500_000
GAS_SAFETY_MARGIN = Decimal("1.2")

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 120.0

UNKNOWN_NAME = "Unknown"
UNKNOWN_DESCRIPTION = "Metadata unavailable"
ERROR_NAME = "Error"
ERROR_DESCRIPTION = "Failed to load NFT data"


class WalletErrorCode(int, Enum):
    """EIP-1193 provider error codes surfaced by wallet RPCs."""

    USER_REJECTED = 4001
    UNAUTHORIZED = 4100
    REQUEST_ALREADY_PENDING = -32002
