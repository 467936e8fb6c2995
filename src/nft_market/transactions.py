"""Transaction dispatch helpers for the marketplace client."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .contract import ContractHandle
from .exceptions import ChainCallReverted, NetworkError
from .utils import error_reason, serialise_receipt

logger = logging.getLogger(__name__)


@dataclass
class SubmittedTransaction:
    """A broadcast transaction that has not been confirmed yet."""

    tx_hash: str
    function: str
    action: str
    context: dict[str, Any] = field(default_factory=dict)


class TransactionDispatcher:
    """Encapsulate contract transaction submission and receipt handling."""

    def __init__(self, *, wait_for_receipt: bool, receipt_timeout: float) -> None:
        self._wait_for_receipt = wait_for_receipt
        self._receipt_timeout = receipt_timeout

    def submit(
        self,
        handle: ContractHandle,
        function_name: str,
        args: Sequence[Any],
        *,
        action: str,
        context: Mapping[str, Any] | None = None,
        value: int | None = None,
        gas: int | None = None,
    ) -> SubmittedTransaction:
        logger.info("Dispatching %s via %s", action, function_name)
        tx_hash = handle.transact(function_name, *args, value=value, gas=gas)
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hash)
        return SubmittedTransaction(
            tx_hash=tx_hash,
            function=function_name,
            action=action,
            context=dict(context or {}),
        )

    def await_finality(self, handle: ContractHandle, submitted: SubmittedTransaction) -> dict[str, Any]:
        """Wait for the receipt and raise :class:`ChainCallReverted` on a failed status."""

        result: dict[str, Any] = {
            "tx_hash": submitted.tx_hash,
            "action": submitted.action,
            "context": dict(submitted.context),
            "receipt": None,
            "block_number": None,
        }
        if not self._wait_for_receipt:
            return result

        web3 = handle.web3
        try:
            receipt = web3.eth.wait_for_transaction_receipt(
                submitted.tx_hash, timeout=self._receipt_timeout
            )
        except Exception as exc:
            raise NetworkError(
                f"Waiting for {submitted.action} confirmation failed: {error_reason(exc)}",
                endpoint=submitted.function,
                details={"tx_hash": submitted.tx_hash, "error": error_reason(exc)},
            ) from exc

        serialised = serialise_receipt(receipt)
        status = serialised.get("status", 1) if isinstance(serialised, Mapping) else 1
        block_number = serialised.get("blockNumber") if isinstance(serialised, Mapping) else None
        result["receipt"] = serialised
        result["block_number"] = block_number

        if status != 1:
            logger.warning(
                "Transaction reverted for action=%s hash=%s block=%s",
                submitted.action,
                submitted.tx_hash,
                block_number,
            )
            raise ChainCallReverted(
                f"{submitted.action} transaction reverted",
                reason="Transaction reverted",
                function_name=submitted.function,
                tx_hash=submitted.tx_hash,
                details=result,
            )

        logger.info(
            "Transaction confirmed for action=%s hash=%s block=%s",
            submitted.action,
            submitted.tx_hash,
            block_number,
        )
        return result
