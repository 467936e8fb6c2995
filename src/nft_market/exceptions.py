"""Exception hierarchy for the NFT marketplace client."""

from typing import Any


class MarketplaceError(Exception):
    """Base exception for all marketplace client errors."""

    code = "marketplace_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NetworkError(MarketplaceError):
    """Raised when network/connection issues occur."""

    code = "network_error"

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class ValidationError(MarketplaceError):
    """Raised when input validation fails."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


# ----------------------------------------------------------------------
# Wallet / connection
# ----------------------------------------------------------------------
class UserRejected(MarketplaceError):
    """The user declined a wallet prompt."""

    code = "user_rejected"


class RequestAlreadyPending(MarketplaceError):
    """A wallet authorization prompt is already open."""

    code = "request_already_pending"


class NotConnected(MarketplaceError):
    """No account or contract handle is bound."""

    code = "not_connected"


class OperationInProgress(MarketplaceError):
    """Another mutation currently holds the operation guard."""

    code = "operation_in_progress"

    def __init__(self, message: str, operation: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.operation = operation


# ----------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------
class EnumerationUnavailable(MarketplaceError):
    """Every token enumeration strategy failed."""

    code = "enumeration_unavailable"

    def __init__(self, message: str, causes: dict[str, str] | None = None):
        super().__init__(message, details={"causes": dict(causes or {})})
        self.causes = dict(causes or {})


class MetadataUnavailable(MarketplaceError):
    """Token metadata could not be fetched or parsed.

    Never reaches callers of the resolver; it is logged and degraded.
    """

    code = "metadata_unavailable"


class StrategyUnavailable(MarketplaceError):
    """A single enumeration strategy is not supported by the contract."""

    code = "strategy_unavailable"

    def __init__(self, strategy: str, reason: str):
        super().__init__(f"{strategy} unavailable: {reason}", details={"reason": reason})
        self.strategy = strategy
        self.reason = reason


class CapabilityMissing(MarketplaceError):
    """The bound contract ABI does not expose a function."""

    code = "capability_missing"

    def __init__(self, function_name: str):
        super().__init__(f"Contract does not expose '{function_name}'")
        self.function_name = function_name


# ----------------------------------------------------------------------
# Workflow validation
# ----------------------------------------------------------------------
class NotOwner(MarketplaceError):
    """The acting account does not own the token."""

    code = "not_owner"


class AlreadyListed(MarketplaceError):
    """The token already has an active listing."""

    code = "already_listed"


class ApprovalFailed(MarketplaceError):
    """The marketplace approval did not take effect."""

    code = "approval_failed"


class NoLongerListed(MarketplaceError):
    """The listing was removed or sold."""

    code = "no_longer_listed"


class SellerNoLongerOwner(MarketplaceError):
    """The recorded seller has transferred the token away."""

    code = "seller_no_longer_owner"


class SelfPurchase(MarketplaceError):
    """The buyer is the seller."""

    code = "self_purchase"


class InsufficientFunds(MarketplaceError):
    """The wallet balance does not cover price plus gas."""

    code = "insufficient_funds"

    def __init__(
        self,
        message: str,
        required: int | None = None,
        available: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.required = required
        self.available = available


class MarketplaceNotApproved(MarketplaceError):
    """The seller has not approved the marketplace to move the token."""

    code = "marketplace_not_approved"


# ----------------------------------------------------------------------
# Chain / storage
# ----------------------------------------------------------------------
class ChainCallReverted(MarketplaceError):
    """A contract call or transaction failed on chain."""

    code = "chain_call_reverted"

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        function_name: str | None = None,
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.reason = reason
        self.function_name = function_name
        self.tx_hash = tx_hash

    def __str__(self) -> str:
        if self.reason and self.reason not in self.message:
            return f"{self.message}: {self.reason}"
        return self.message


class StorageUploadFailed(MarketplaceError):
    """The pinning service did not return a content identifier."""

    code = "storage_upload_failed"

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code
