"""Signer-bound contract handle shared with the orchestration components."""

from __future__ import annotations

import logging
from typing import Any

import requests
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ABIFunctionNotFound, ContractLogicError

from .constants import WalletErrorCode
from .exceptions import (
    CapabilityMissing,
    ChainCallReverted,
    NetworkError,
    NotConnected,
    UserRejected,
)
from .types import Address
from .utils import error_reason, rpc_error_code

logger = logging.getLogger(__name__)


class ContractHandle:
    """A marketplace contract bound to one signer.

    Handles are created and invalidated by the connection manager only. Any
    use after invalidation raises :class:`NotConnected`.
    """

    def __init__(self, contract: Contract, web3: Web3, account: Address) -> None:
        self._contract = contract
        self._web3 = web3
        self._account = account
        self._valid = True

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def account(self) -> Address:
        self._ensure_valid()
        return self._account

    @property
    def address(self) -> Address:
        self._ensure_valid()
        return str(self._contract.address)

    @property
    def web3(self) -> Web3:
        self._ensure_valid()
        return self._web3

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        self._valid = False

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------
    def has_function(self, name: str) -> bool:
        try:
            self._function(name)
        except CapabilityMissing:
            return False
        return True

    def call(self, name: str, *args: Any) -> Any:
        """Execute a read-only call, mapping failures to tagged errors."""

        fn = self._function(name)(*args)
        try:
            return fn.call()
        except ContractLogicError as exc:
            raise ChainCallReverted(
                f"{name} reverted", reason=error_reason(exc), function_name=name
            ) from exc
        except requests.RequestException as exc:
            raise NetworkError(
                f"{name} call failed", endpoint=name, details={"error": str(exc)}
            ) from exc
        except Exception as exc:
            raise ChainCallReverted(
                f"{name} call failed", reason=error_reason(exc), function_name=name
            ) from exc

    def estimate_gas(self, name: str, *args: Any, value: int | None = None) -> int:
        fn = self._function(name)(*args)
        try:
            return int(fn.estimate_gas(self._tx_params(value=value)))
        except ContractLogicError as exc:
            raise ChainCallReverted(
                f"{name} would revert", reason=error_reason(exc), function_name=name
            ) from exc
        except Exception as exc:
            raise NetworkError(
                f"Gas estimation for {name} failed", endpoint=name, details={"error": str(exc)}
            ) from exc

    def transact(
        self,
        name: str,
        *args: Any,
        value: int | None = None,
        gas: int | None = None,
    ) -> str:
        """Broadcast a state-changing call and return its hash as 0x-hex."""

        fn = self._function(name)(*args)
        try:
            tx_hash = fn.transact(self._tx_params(value=value, gas=gas))
        except ContractLogicError as exc:
            raise ChainCallReverted(
                f"{name} reverted", reason=error_reason(exc), function_name=name
            ) from exc
        except Exception as exc:
            if rpc_error_code(exc) == WalletErrorCode.USER_REJECTED:
                raise UserRejected("Transaction cancelled by user", details={"function": name}) from exc
            raise ChainCallReverted(
                f"Failed to submit {name}", reason=error_reason(exc), function_name=name
            ) from exc

        return tx_hash.to_0x_hex() if hasattr(tx_hash, "to_0x_hex") else str(tx_hash)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_valid(self) -> None:
        if not self._valid:
            raise NotConnected("Contract handle was released; reconnect the wallet")

    def _function(self, name: str) -> Any:
        self._ensure_valid()
        try:
            return getattr(self._contract.functions, name)
        except (ABIFunctionNotFound, AttributeError) as exc:
            raise CapabilityMissing(name) from exc

    def _tx_params(self, *, value: int | None = None, gas: int | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"from": self._account}
        if value is not None:
            params["value"] = int(value)
        if gas is not None:
            params["gas"] = int(gas)
        return params
