"""Marketplace client that wires connection, views and workflows together."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

import requests
from web3 import Web3

from .base import MarketplaceBase
from .catalog import ListingCatalogBuilder
from .config import MarketplaceConfig, StorageConfig
from .connection import ConnectionEvent, ConnectionManager
from .constants import (
    DEFAULT_IPFS_GATEWAY,
    DEFAULT_PURCHASE_GAS_LIMIT,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    GAS_SAFETY_MARGIN,
)
from .enumeration import DEFAULT_STRATEGIES, EnumerationStrategy, TokenEnumerator
from .exceptions import MarketplaceError, ValidationError
from .guard import OperationGuard
from .metadata import MetadataResolver
from .storage import ImageSource, PinataStorage
from .transactions import TransactionDispatcher
from .types import Address, Listing, ListingDraft, MetadataRecord, Response, TokenRecord
from .utils import coerce_token_id
from .wallet import WalletProvider, Web3WalletProvider
from .workflows import (
    BuyWorkflow,
    CancelWorkflow,
    ListWorkflow,
    MintWorkflow,
    MutationWorkflow,
    TransitionCallback,
)

logger = logging.getLogger(__name__)


class MarketplaceClient(MarketplaceBase):
    """Mint, list, buy and cancel NFTs against one marketplace contract."""

    def __init__(
        self,
        contract_address: str,
        *,
        wallet: WalletProvider | None = None,
        rpc_url: str | None = None,
        private_keys: Iterable[str] = (),
        abi: Sequence[dict[str, Any]] | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        wait_for_receipt: bool = True,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        purchase_gas_fallback: int = DEFAULT_PURCHASE_GAS_LIMIT,
        gas_safety_margin: Decimal = GAS_SAFETY_MARGIN,
        pinata_api_key: str | None = None,
        pinata_secret_api_key: str | None = None,
        pinata_jwt: str | None = None,
        gateway_url: str = DEFAULT_IPFS_GATEWAY,
        session: requests.Session | None = None,
        strategies: Sequence[EnumerationStrategy] = DEFAULT_STRATEGIES,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        config = MarketplaceConfig(
            contract_address=Web3.to_checksum_address(contract_address),
            rpc_url=rpc_url,
            abi=abi,
            request_timeout=request_timeout,
            wait_for_receipt=wait_for_receipt,
            receipt_timeout=receipt_timeout,
            purchase_gas_fallback=purchase_gas_fallback,
            gas_safety_margin=gas_safety_margin,
            storage=StorageConfig(
                api_key=pinata_api_key,
                secret_api_key=pinata_secret_api_key,
                jwt=pinata_jwt,
                gateway_url=gateway_url,
                request_timeout=request_timeout,
            ),
        ).with_defaults()

        if wallet is None:
            wallet = Web3WalletProvider(
                rpc_url, private_keys=private_keys, request_timeout=request_timeout
            )

        self._config = config
        self._session = session or requests.Session()
        self._connections = ConnectionManager(wallet, config)
        self._resolver = MetadataResolver.from_config(config.storage, self._session)
        self._storage = PinataStorage(config.storage, self._session)
        self._enumerator = TokenEnumerator(self._resolver, strategies)
        self._catalog = ListingCatalogBuilder(self._resolver)
        self._guard = OperationGuard()
        self._dispatcher = TransactionDispatcher(
            wait_for_receipt=config.wait_for_receipt,
            receipt_timeout=config.receipt_timeout,
        )
        self._on_transition = on_transition

        self._owned: tuple[TokenRecord, ...] = ()
        self._listings: tuple[Listing, ...] = ()
        self._draft: ListingDraft | None = None

        self._connections.add_listener(self._on_connection_event)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    def probe_connection(self) -> Address | None:
        return self._connections.probe_existing_connection()

    def connect(self) -> Address:
        return self._connections.request_connection()

    def disconnect(self) -> None:
        self._connections.disconnect()

    def on_accounts_changed(self, accounts: Sequence[Address]) -> None:
        self._connections.on_accounts_changed(accounts)

    def is_connected(self) -> bool:
        return self._connections.is_connected()

    def close(self) -> None:
        self._connections.close()
        self._session.close()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def account(self) -> Address | None:
        return self._connections.account if self._connections.is_connected() else None

    @property
    def owned_tokens(self) -> tuple[TokenRecord, ...]:
        return self._owned

    @property
    def listings(self) -> tuple[Listing, ...]:
        return self._listings

    @property
    def listing_draft(self) -> ListingDraft | None:
        return self._draft

    @property
    def busy(self) -> bool:
        return self._guard.busy

    @property
    def config(self) -> MarketplaceConfig:
        return self._config

    def image_url(self, metadata: MetadataRecord) -> str | None:
        return self._resolver.image_url(metadata)

    def refresh_owned(self) -> list[TokenRecord]:
        self._connections.ensure_connected()
        handle = self._connections.handle
        try:
            records = self._enumerator.refresh(handle, handle.account)
        except MarketplaceError:
            self._owned = ()
            raise
        self._owned = tuple(records)
        return records

    def refresh_catalog(self) -> list[Listing]:
        self._connections.ensure_connected()
        try:
            catalog = self._catalog.build_catalog(self._connections.handle)
        except MarketplaceError:
            self._listings = ()
            raise
        self._listings = tuple(catalog)
        return catalog

    def refresh_all(self) -> None:
        """Rebuild both views; raise the first failure after attempting both."""

        errors: list[MarketplaceError] = []
        for refresh in (self.refresh_catalog, self.refresh_owned):
            try:
                refresh()
            except MarketplaceError as exc:
                errors.append(exc)
        if errors:
            raise errors[0]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def mint(
        self,
        name: str,
        description: str,
        image: ImageSource | None,
        filename: str | None = None,
    ) -> Response:
        workflow = MintWorkflow(
            self._connections,
            self._guard,
            self._dispatcher,
            self._storage,
            name=name,
            description=description,
            image=image,
            filename=filename,
            refresh=self.refresh_owned,
            on_transition=self._on_transition,
        )
        return self._run(workflow)

    def open_listing(self, token_id: int) -> ListingDraft:
        """Select a token for listing; the draft lives until submitted or closed."""

        token_id = coerce_token_id(token_id)
        token = next((item for item in self._owned if item.token_id == token_id), None)
        if token is None:
            token = TokenRecord(token_id=token_id, metadata=MetadataRecord.unavailable())
        self._draft = ListingDraft(token=token)
        return self._draft

    def close_listing(self) -> None:
        self._draft = None

    def submit_listing(self, price: str | None = None) -> Response:
        draft = self._draft
        if draft is None:
            error = ValidationError("No token selected for listing", field="token_id")
            return Response(success=False, error=str(error), error_code=error.code)
        if price is not None:
            draft.price = str(price)

        workflow = ListWorkflow(
            self._connections,
            self._guard,
            self._dispatcher,
            token_id=draft.token.token_id,
            price=draft.price,
            refresh=self.refresh_all,
            on_transition=self._on_transition,
        )
        response = self._run(workflow)
        if response.success and self._draft is draft:
            self._draft = None
        return response

    def list_token(self, token_id: int, price: str) -> Response:
        try:
            self.open_listing(token_id)
        except ValidationError as exc:
            return Response(success=False, error=str(exc), error_code=exc.code)
        return self.submit_listing(price)

    def buy(self, token_id: int, expected_price: str | None = None) -> Response:
        workflow = BuyWorkflow(
            self._connections,
            self._guard,
            self._dispatcher,
            token_id=token_id,
            expected_price=expected_price,
            gas_fallback=self._config.purchase_gas_fallback,
            gas_margin=self._config.gas_safety_margin,
            refresh=self.refresh_all,
            on_transition=self._on_transition,
        )
        return self._run(workflow)

    def cancel_listing(self, token_id: int) -> Response:
        workflow = CancelWorkflow(
            self._connections,
            self._guard,
            self._dispatcher,
            token_id=token_id,
            refresh=self.refresh_all,
            on_transition=self._on_transition,
        )
        return self._run(workflow)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run(self, workflow: MutationWorkflow) -> Response:
        response = workflow.run()
        if response.success:
            logger.info(
                "%s succeeded tx=%s token=%s", workflow.action, response.transaction_hash, response.token_id
            )
        return response

    def _on_connection_event(self, event: ConnectionEvent, account: Address | None) -> None:
        if event is ConnectionEvent.DISCONNECTED:
            self._owned = ()
            self._listings = ()
            self._draft = None
            # An in-flight workflow fails on its invalidated handle and frees the guard itself.
            self._resolver.reset()
        elif event is ConnectionEvent.ACCOUNT_CHANGED:
            self._owned = ()
            self._draft = None
