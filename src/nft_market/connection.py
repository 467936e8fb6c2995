"""Wallet connection lifecycle and contract handle ownership."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import Enum

from web3 import Web3

from .config import MarketplaceConfig
from .contract import ContractHandle
from .exceptions import (
    MarketplaceError,
    NotConnected,
    RequestAlreadyPending,
    UserRejected,
    ValidationError,
)
from .types import Address
from .utils import normalize_address
from .wallet import WalletProvider

logger = logging.getLogger(__name__)


class ConnectionEvent(Enum):
    CONNECTED = "connected"
    ACCOUNT_CHANGED = "account_changed"
    DISCONNECTED = "disconnected"


ConnectionListener = Callable[[ConnectionEvent, Address | None], None]


class ConnectionManager:
    """Own the connected account and the contract handle bound to its signer."""

    def __init__(self, wallet: WalletProvider, config: MarketplaceConfig) -> None:
        self._wallet = wallet
        self._config = config.with_defaults()
        self._account: Address | None = None
        self._handle: ContractHandle | None = None
        self._listeners: list[ConnectionListener] = []
        self._unsubscribe = wallet.subscribe_accounts_changed(self.on_accounts_changed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def probe_existing_connection(self) -> Address | None:
        """Bind an already-authorized account without prompting the user."""

        try:
            accounts = self._wallet.list_accounts()
        except MarketplaceError as exc:
            logger.debug("Existing connection probe failed: %s", exc)
            return None

        if not accounts:
            logger.debug("No previously authorized wallet accounts")
            return None

        self._bind(accounts[0], ConnectionEvent.CONNECTED)
        return self._account

    def request_connection(self) -> Address:
        """Prompt the wallet for authorization and bind the first granted account."""

        try:
            accounts = self._wallet.request_accounts()
        except UserRejected:
            logger.info("Wallet connection rejected by user")
            raise
        except RequestAlreadyPending:
            logger.info("Wallet connection request already pending")
            raise

        if not accounts:
            raise NotConnected("Wallet returned no accounts")

        self._bind(accounts[0], ConnectionEvent.CONNECTED)
        return self.account

    def disconnect(self) -> None:
        """Clear local connection state; wallet-level revocation is best effort.

        Wallets do not let a site force a disconnect, so the user may still
        need to remove the site from the wallet itself.
        """

        try:
            self._wallet.revoke_permissions()
        except Exception as exc:
            logger.info("Wallet permission revocation not supported: %s", exc)

        self._clear()
        logger.info("Wallet disconnected")

    def on_accounts_changed(self, accounts: Sequence[Address]) -> None:
        """Handle an ``accountsChanged`` notification from the wallet."""

        if not accounts:
            logger.info("Wallet reported no accounts; disconnecting")
            self._clear()
            return

        if self._account is not None and normalize_address(accounts[0]) == normalize_address(
            self._account
        ):
            return

        self._bind(accounts[0], ConnectionEvent.ACCOUNT_CHANGED)

    def close(self) -> None:
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def is_connected(self) -> bool:
        return self._account is not None and self._handle is not None

    def ensure_connected(self) -> None:
        if not self.is_connected():
            raise NotConnected("Please connect your wallet first")

    @property
    def account(self) -> Address:
        if self._account is None:
            raise NotConnected("No wallet account connected")
        return self._account

    @property
    def handle(self) -> ContractHandle:
        if self._handle is None:
            raise NotConnected("Contract not available; connect the wallet first")
        return self._handle

    @property
    def wallet(self) -> WalletProvider:
        return self._wallet

    @property
    def config(self) -> MarketplaceConfig:
        return self._config

    def add_listener(self, listener: ConnectionListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------
    def _bind(self, account: Address, event: ConnectionEvent) -> None:
        try:
            checksum = Web3.to_checksum_address(account)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Wallet returned an invalid account", field="account", value=account
            ) from exc

        web3 = self._wallet.web3_for(checksum)
        contract = web3.eth.contract(
            address=Web3.to_checksum_address(self._config.contract_address),
            abi=self._config.abi,
        )

        if self._handle is not None:
            self._handle.invalidate()
        self._account = checksum
        self._handle = ContractHandle(contract, web3, checksum)
        logger.info("Wallet %s: %s", event.value, checksum)
        self._notify(event)

    def _clear(self) -> None:
        if self._handle is not None:
            self._handle.invalidate()
        self._account = None
        self._handle = None
        self._notify(ConnectionEvent.DISCONNECTED)

    def _notify(self, event: ConnectionEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self._account)
