"""Wallet provider interface and its web3.py implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from typing import Any, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import RPCEndpoint

from .constants import DEFAULT_REQUEST_TIMEOUT, WalletErrorCode
from .exceptions import (
    NetworkError,
    NotConnected,
    RequestAlreadyPending,
    UserRejected,
    ValidationError,
)
from .types import Address, FeeData, Wei
from .utils import normalize_address

logger = logging.getLogger(__name__)

AccountsListener = Callable[[list[Address]], None]


class WalletProvider(ABC):
    """Capabilities consumed from the user's wallet."""

    @abstractmethod
    def list_accounts(self) -> list[Address]:
        """Return already-authorized accounts without prompting."""

    @abstractmethod
    def request_accounts(self) -> list[Address]:
        """Prompt for authorization and return the granted accounts."""

    @abstractmethod
    def web3_for(self, account: Address) -> Web3:
        """Return a Web3 instance whose transactions are signed by ``account``."""

    @abstractmethod
    def get_balance(self, account: Address) -> Wei:
        pass

    @abstractmethod
    def get_fee_data(self) -> FeeData:
        pass

    @abstractmethod
    def subscribe_accounts_changed(self, listener: AccountsListener) -> Callable[[], None]:
        """Register for account-change notifications; returns an unsubscribe callable."""

    @abstractmethod
    def revoke_permissions(self) -> None:
        """Ask the wallet to drop this site's authorization (best effort)."""


class Web3WalletProvider(WalletProvider):
    """Wallet backed by a JSON-RPC node and, optionally, local signing keys.

    With local keys every transaction is signed in-process through the web3
    signing middleware. Without them the node's own account RPCs
    (``eth_accounts`` / ``eth_requestAccounts``) are used, which is how
    browser-bridged and node-managed wallets behave.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        private_keys: Iterable[str] = (),
        web3: Web3 | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        if web3 is None:
            if not rpc_url:
                raise ValidationError("rpc_url or web3 is required", field="rpc_url")
            web3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self._web3 = web3
        self._rpc_url = rpc_url
        self._signers: dict[Address, LocalAccount] = {}
        self._order: list[Address] = []
        self._listeners: list[AccountsListener] = []

        for key in private_keys:
            self._register_signer(key)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    @property
    def has_local_signers(self) -> bool:
        return bool(self._signers)

    def list_accounts(self) -> list[Address]:
        if self._signers:
            return [self._signers[key].address for key in self._order]
        result = self._rpc("eth_accounts", [])
        return [str(item) for item in result or []]

    def request_accounts(self) -> list[Address]:
        if self._signers:
            return self.list_accounts()
        result = self._rpc("eth_requestAccounts", [])
        return [str(item) for item in result or []]

    def add_signer(self, private_key: str) -> Address:
        """Load another local key and make it the active account."""

        address = self._register_signer(private_key)
        self.select_account(address)
        return address

    def select_account(self, account: Address) -> None:
        key = normalize_address(account)
        if key not in self._signers:
            raise ValidationError("Unknown local account", field="account", value=account)
        self._order.remove(key)
        self._order.insert(0, key)
        self.emit_accounts_changed(self.list_accounts())

    def remove_signer(self, account: Address) -> None:
        key = normalize_address(account)
        if self._signers.pop(key, None) is None:
            return
        self._order.remove(key)
        self.emit_accounts_changed(self.list_accounts())

    # ------------------------------------------------------------------
    # Signing, balances, fees
    # ------------------------------------------------------------------
    def web3_for(self, account: Address) -> Web3:
        web3 = Web3(self._web3.provider)
        signer = self._signers.get(normalize_address(account))
        if signer is not None:
            web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(signer))  # type: ignore[arg-type]
        web3.eth.default_account = Web3.to_checksum_address(account)
        return web3

    def get_balance(self, account: Address) -> Wei:
        try:
            return int(self._web3.eth.get_balance(Web3.to_checksum_address(account)))
        except Exception as exc:
            raise NetworkError(
                "Failed to read wallet balance",
                endpoint=self._rpc_url,
                details={"account": account, "error": str(exc)},
            ) from exc

    def get_fee_data(self) -> FeeData:
        eth = self._web3.eth
        try:
            gas_price = int(eth.gas_price)
        except Exception as exc:
            raise NetworkError(
                "Failed to read gas price", endpoint=self._rpc_url, details={"error": str(exc)}
            ) from exc

        max_fee: int | None = None
        priority: int | None = None
        try:
            block = eth.get_block("latest")
            base_fee = block.get("baseFeePerGas")
            if base_fee is not None:
                priority = int(eth.max_priority_fee)
                max_fee = int(base_fee) * 2 + priority
        except Exception as exc:
            logger.debug("EIP-1559 fee data unavailable: %s", exc)

        return FeeData(
            gas_price=gas_price,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def subscribe_accounts_changed(self, listener: AccountsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit_accounts_changed(self, accounts: Sequence[Address]) -> None:
        """Deliver an ``accountsChanged`` notification to subscribers."""

        snapshot = list(accounts)
        for listener in list(self._listeners):
            listener(snapshot)

    def revoke_permissions(self) -> None:
        if self._signers:
            # Local keys have no site permission to revoke.
            return
        self._rpc("wallet_revokePermissions", [{"eth_accounts": {}}])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _register_signer(self, private_key: str) -> Address:
        try:
            signer = cast(LocalAccount, Account.from_key(private_key))  # type: ignore[arg-type]
        except Exception as exc:
            raise ValidationError(
                "Failed to derive signer account from provided private key",
                field="private_key",
                details={"error": str(exc)},
            ) from exc

        key = normalize_address(signer.address)
        if key not in self._signers:
            self._order.append(key)
        self._signers[key] = signer
        return signer.address

    def _rpc(self, method: str, params: list[Any]) -> Any:
        try:
            response = self._web3.provider.make_request(RPCEndpoint(method), params)
        except Exception as exc:
            raise NetworkError(
                f"Wallet request {method} failed",
                endpoint=self._rpc_url,
                details={"error": str(exc)},
            ) from exc

        error = response.get("error") if isinstance(response, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            if code == WalletErrorCode.USER_REJECTED:
                raise UserRejected(message or "User rejected the request", details={"method": method})
            if code == WalletErrorCode.REQUEST_ALREADY_PENDING:
                raise RequestAlreadyPending(
                    message or "A wallet request is already pending", details={"method": method}
                )
            if code == WalletErrorCode.UNAUTHORIZED:
                raise NotConnected(
                    message or "The wallet has not authorized this account", details={"method": method}
                )
            raise NetworkError(
                message or f"Wallet request {method} failed",
                endpoint=self._rpc_url,
                details={"method": method, "code": code},
            )

        return response.get("result") if isinstance(response, dict) else None
