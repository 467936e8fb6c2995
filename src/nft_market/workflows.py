"""State-changing marketplace workflows: mint, list, buy and cancel.

Every workflow walks the same states::

    IDLE -> VALIDATING -> SUBMITTING -> AWAITING_FINALITY -> REFRESHING -> IDLE

and drops into FAILED from any step. The operation guard is taken before
validation and released on every exit path. Failures are returned as a
:class:`~nft_market.types.Response` carrying the tagged error code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from .connection import ConnectionManager
from .constants import DEFAULT_PURCHASE_GAS_LIMIT, GAS_SAFETY_MARGIN, IPFS_SCHEME
from .contract import ContractHandle
from .exceptions import (
    AlreadyListed,
    ApprovalFailed,
    ChainCallReverted,
    InsufficientFunds,
    MarketplaceError,
    MarketplaceNotApproved,
    NetworkError,
    NoLongerListed,
    NotOwner,
    SelfPurchase,
    SellerNoLongerOwner,
    ValidationError,
)
from .guard import OperationGuard
from .storage import ImageSource, PinataStorage
from .transactions import SubmittedTransaction, TransactionDispatcher
from .types import Address, Response, WorkflowState
from .utils import (
    coerce_token_id,
    format_wei,
    is_active_listing,
    same_address,
    to_wei_amount,
    unpack_listing,
)

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], None]
TransitionCallback = Callable[["MutationWorkflow", WorkflowState], None]


class MutationWorkflow(ABC):
    """Shared state machine for a single state-changing contract call."""

    action: str = "mutation"

    def __init__(
        self,
        connections: ConnectionManager,
        guard: OperationGuard,
        dispatcher: TransactionDispatcher,
        *,
        refresh: RefreshCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self._connections = connections
        self._guard = guard
        self._dispatcher = dispatcher
        self._refresh = refresh
        self._on_transition = on_transition
        self._handle: ContractHandle | None = None
        self.state = WorkflowState.IDLE
        self.history: list[WorkflowState] = [WorkflowState.IDLE]

    # ------------------------------------------------------------------
    # Steps implemented by each workflow
    # ------------------------------------------------------------------
    @abstractmethod
    def validate(self, handle: ContractHandle) -> None:
        """Pre-flight checks; raise a tagged error to abort before submission."""

    @abstractmethod
    def submit(self, handle: ContractHandle) -> SubmittedTransaction:
        """Broadcast exactly one state-changing call."""

    def response_fields(self) -> dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def run(self) -> Response:
        try:
            token = self._guard.acquire(self.action)
        except MarketplaceError as exc:
            logger.info("%s rejected: %s", self.action, exc)
            return self._failure(exc)

        try:
            self._transition(WorkflowState.VALIDATING)
            handle = self._borrow_handle()
            self.validate(handle)

            self._transition(WorkflowState.SUBMITTING)
            submitted = self.submit(handle)

            self._transition(WorkflowState.AWAITING_FINALITY)
            result = self._dispatcher.await_finality(handle, submitted)

            self._transition(WorkflowState.REFRESHING)
            message = self._refresh_views()

            self._transition(WorkflowState.IDLE)
            return Response(
                success=True,
                transaction_hash=submitted.tx_hash,
                message=message,
                raw_response=result,
                **self.response_fields(),
            )
        except MarketplaceError as exc:
            self._transition(WorkflowState.FAILED)
            logger.warning("%s failed: %s", self.action, exc)
            return self._failure(exc)
        except Exception as exc:
            self._transition(WorkflowState.FAILED)
            logger.exception("Unexpected %s failure", self.action)
            return Response(
                success=False,
                error=str(exc) or exc.__class__.__name__,
                error_code="unexpected_error",
                **self.response_fields(),
            )
        finally:
            self._handle = None
            self._guard.release(token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _borrow_handle(self) -> ContractHandle:
        self._connections.ensure_connected()
        self._handle = self._connections.handle
        return self._handle

    def _transition(self, state: WorkflowState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("%s -> %s", self.action, state.value)
        if self._on_transition is not None:
            self._on_transition(self, state)

    def _refresh_views(self) -> str | None:
        if self._refresh is None:
            return None
        try:
            self._refresh()
        except MarketplaceError as exc:
            # The transaction is final; a stale view is reported, not a failure.
            logger.warning("Refresh after %s failed: %s", self.action, exc)
            return f"Refresh failed: {exc}"
        return None

    def _failure(self, exc: MarketplaceError) -> Response:
        return Response(
            success=False,
            error=str(exc),
            error_code=exc.code,
            transaction_hash=getattr(exc, "tx_hash", None),
            raw_response={"details": exc.details} if exc.details else None,
            **self.response_fields(),
        )

    def _marketplace_approved(self, handle: ContractHandle, owner: Address, token_id: int) -> bool:
        marketplace = handle.address
        try:
            if same_address(handle.call("getApproved", token_id), marketplace):
                return True
        except ChainCallReverted as exc:
            logger.debug("getApproved(%s) failed: %s", token_id, exc)
        return bool(handle.call("isApprovedForAll", owner, marketplace))


class MintWorkflow(MutationWorkflow):
    """Pin the image and metadata, then mint a token pointing at the metadata."""

    action = "mint"

    def __init__(
        self,
        connections: ConnectionManager,
        guard: OperationGuard,
        dispatcher: TransactionDispatcher,
        storage: PinataStorage,
        *,
        name: str,
        description: str,
        image: ImageSource | None,
        filename: str | None = None,
        refresh: RefreshCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        super().__init__(
            connections, guard, dispatcher, refresh=refresh, on_transition=on_transition
        )
        self._storage = storage
        self.name = (name or "").strip()
        self.description = (description or "").strip()
        self.image = image
        self.filename = filename
        self.token_uri: str | None = None

    def validate(self, handle: ContractHandle) -> None:
        if not self.name:
            raise ValidationError("Name is required", field="name")
        if not self.description:
            raise ValidationError("Description is required", field="description")
        if self.image is None or (isinstance(self.image, bytes | bytearray) and not self.image):
            raise ValidationError("An image is required", field="image")

    def submit(self, handle: ContractHandle) -> SubmittedTransaction:
        image_cid = self._storage.pin_file(self.image, self.filename)  # type: ignore[arg-type]
        metadata_cid = self._storage.pin_json(
            {
                "name": self.name,
                "description": self.description,
                "image": f"{IPFS_SCHEME}{image_cid}",
            },
            name=self.name,
        )
        self.token_uri = f"{IPFS_SCHEME}{metadata_cid}"
        return self._dispatcher.submit(
            handle,
            "mintNFT",
            [self.token_uri],
            action=self.action,
            context={"token_uri": self.token_uri, "image_cid": image_cid},
        )

    def response_fields(self) -> dict[str, Any]:
        return {"token_uri": self.token_uri}


class ListWorkflow(MutationWorkflow):
    """Offer an owned token for sale, approving the marketplace when needed.

    The approval transaction, when one is required, is sent and awaited in
    the SUBMITTING step ahead of the listing call.
    """

    action = "list"

    def __init__(
        self,
        connections: ConnectionManager,
        guard: OperationGuard,
        dispatcher: TransactionDispatcher,
        *,
        token_id: int,
        price: str,
        refresh: RefreshCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        super().__init__(
            connections, guard, dispatcher, refresh=refresh, on_transition=on_transition
        )
        self.token_id = token_id
        self.price = price
        self.price_wei: int | None = None

    def validate(self, handle: ContractHandle) -> None:
        token_id = coerce_token_id(self.token_id)
        self.token_id = token_id
        self.price_wei = to_wei_amount(self.price)
        account = handle.account

        owner = handle.call("ownerOf", token_id)
        if not same_address(owner, account):
            raise NotOwner(
                f"You no longer own token #{token_id}",
                details={"owner": str(owner), "account": account},
            )

        existing = unpack_listing(token_id, handle.call("listings", token_id))
        if is_active_listing(existing.seller, existing.price):
            raise AlreadyListed(
                f"Token #{token_id} is already listed for sale",
                details={"seller": existing.seller, "price": format_wei(existing.price)},
            )

    def submit(self, handle: ContractHandle) -> SubmittedTransaction:
        self._ensure_approval(handle, handle.account, self.token_id)
        return self._dispatcher.submit(
            handle,
            "listing",
            [self.token_id, self.price_wei],
            action=self.action,
            context={"token_id": self.token_id, "price_wei": self.price_wei},
        )

    def response_fields(self) -> dict[str, Any]:
        return {"token_id": self.token_id, "price": str(self.price)}

    def _ensure_approval(self, handle: ContractHandle, account: Address, token_id: int) -> None:
        if self._marketplace_approved(handle, account, token_id):
            logger.debug("Marketplace already approved for token %s", token_id)
            return

        logger.info("Approving marketplace for token %s", token_id)
        try:
            approval = self._dispatcher.submit(
                handle,
                "approve",
                [handle.address, token_id],
                action="approve",
                context={"token_id": token_id},
            )
            self._dispatcher.await_finality(handle, approval)
        except ChainCallReverted as exc:
            raise ApprovalFailed(
                f"Failed to approve marketplace: {exc}", details={"token_id": token_id}
            ) from exc

        if not self._marketplace_approved(handle, account, token_id):
            raise ApprovalFailed(
                "Approval failed - please try again", details={"token_id": token_id}
            )


class BuyWorkflow(MutationWorkflow):
    """Purchase a listed token after re-validating the offer and funds.

    When no wallet is connected the workflow asks the connection manager to
    prompt for one instead of failing.
    """

    action = "buy"

    def __init__(
        self,
        connections: ConnectionManager,
        guard: OperationGuard,
        dispatcher: TransactionDispatcher,
        *,
        token_id: int,
        expected_price: str | None = None,
        gas_fallback: int = DEFAULT_PURCHASE_GAS_LIMIT,
        gas_margin: Decimal = GAS_SAFETY_MARGIN,
        refresh: RefreshCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        super().__init__(
            connections, guard, dispatcher, refresh=refresh, on_transition=on_transition
        )
        self.token_id = token_id
        self.expected_price = expected_price
        self.gas_fallback = gas_fallback
        self.gas_margin = gas_margin
        self.price_wei: int | None = None
        self.gas_estimate: int | None = None

    def _borrow_handle(self) -> ContractHandle:
        if not self._connections.is_connected():
            logger.info("Buy requested without a wallet; requesting connection")
            self._connections.request_connection()
        return super()._borrow_handle()

    def validate(self, handle: ContractHandle) -> None:
        token_id = coerce_token_id(self.token_id)
        self.token_id = token_id
        account = handle.account

        listing = unpack_listing(token_id, handle.call("listings", token_id))
        if not is_active_listing(listing.seller, listing.price):
            raise NoLongerListed(f"Token #{token_id} is no longer listed")

        if self.expected_price is not None and to_wei_amount(self.expected_price) != listing.price:
            raise ValidationError(
                f"Listing price changed to {format_wei(listing.price)}",
                field="price",
                value=self.expected_price,
            )

        owner = handle.call("ownerOf", token_id)
        if not same_address(owner, listing.seller):
            raise SellerNoLongerOwner(
                f"The seller no longer owns token #{token_id}",
                details={"seller": listing.seller, "owner": str(owner)},
            )

        if same_address(account, listing.seller):
            raise SelfPurchase("You cannot purchase your own NFT")

        self.price_wei = listing.price
        self._check_funds(handle, account, token_id, listing.price)

        if not self._marketplace_approved(handle, listing.seller, token_id):
            raise MarketplaceNotApproved(
                "The marketplace is not approved to transfer this NFT",
                details={"seller": listing.seller},
            )

    def submit(self, handle: ContractHandle) -> SubmittedTransaction:
        if self.gas_estimate is not None:
            gas_limit = int(Decimal(self.gas_estimate) * self.gas_margin)
        else:
            gas_limit = self.gas_fallback
        return self._dispatcher.submit(
            handle,
            "buyNFT",
            [self.token_id],
            action=self.action,
            context={"token_id": self.token_id, "price_wei": self.price_wei},
            value=self.price_wei,
            gas=gas_limit,
        )

    def response_fields(self) -> dict[str, Any]:
        price = format_wei(self.price_wei) if self.price_wei is not None else self.expected_price
        return {"token_id": self.token_id, "price": price}

    def _check_funds(
        self, handle: ContractHandle, account: Address, token_id: int, price_wei: int
    ) -> None:
        wallet = self._connections.wallet
        try:
            self.gas_estimate = handle.estimate_gas("buyNFT", token_id, value=price_wei)
        except ChainCallReverted as exc:
            raise ChainCallReverted(
                "Transaction would fail", reason=exc.reason, function_name="buyNFT"
            ) from exc
        except NetworkError as exc:
            logger.warning("Gas estimation failed, skipping balance check: %s", exc)
            self.gas_estimate = None
            return

        try:
            gas_price = wallet.get_fee_data().effective_gas_price
            balance = wallet.get_balance(account)
        except NetworkError as exc:
            logger.warning("Fee data unavailable, skipping balance check: %s", exc)
            return

        if gas_price is None:
            return

        total_cost = price_wei + self.gas_estimate * gas_price
        if balance < total_cost:
            raise InsufficientFunds(
                f"Insufficient balance. Need {format_wei(total_cost)} ETH (including gas)",
                required=total_cost,
                available=balance,
            )


class CancelWorkflow(MutationWorkflow):
    """Withdraw a listing; the contract rejects invalid cancellations."""

    action = "cancel"

    def __init__(
        self,
        connections: ConnectionManager,
        guard: OperationGuard,
        dispatcher: TransactionDispatcher,
        *,
        token_id: int,
        refresh: RefreshCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        super().__init__(
            connections, guard, dispatcher, refresh=refresh, on_transition=on_transition
        )
        self.token_id = token_id

    def validate(self, handle: ContractHandle) -> None:
        self.token_id = coerce_token_id(self.token_id)

    def submit(self, handle: ContractHandle) -> SubmittedTransaction:
        return self._dispatcher.submit(
            handle,
            "cancelListing",
            [self.token_id],
            action=self.action,
            context={"token_id": self.token_id},
        )

    def response_fields(self) -> dict[str, Any]:
        return {"token_id": self.token_id}
