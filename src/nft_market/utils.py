"""Utility functions for the NFT marketplace client."""

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from .constants import ZERO_ADDRESS
from .exceptions import ValidationError
from .types import Address, RawListing, Wei


def normalize_address(address: Any) -> Address:
    """Return the lowercase form used for all address comparisons."""
    if address is None:
        return ""
    return str(address).lower()


def same_address(left: Any, right: Any) -> bool:
    """Case-insensitive address equality; empty addresses never match."""
    lhs = normalize_address(left)
    return bool(lhs) and lhs == normalize_address(right)


def is_zero_address(address: Any) -> bool:
    normalized = normalize_address(address)
    return not normalized or normalized == ZERO_ADDRESS


def is_active_listing(seller: Any, price: int) -> bool:
    """Canonical listing validity: a real seller and a non-zero price."""
    return not is_zero_address(seller) and int(price) > 0


def parse_price(price: str | Decimal | int | float) -> Decimal:
    """Parse a user-supplied price in whole units and require it to be positive."""
    if isinstance(price, float):
        price = str(price)
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Price must be a decimal number", field="price", value=price)

    if not value.is_finite():
        raise ValidationError("Price must be a decimal number", field="price", value=price)
    if value <= 0:
        raise ValidationError("Price must be greater than zero", field="price", value=price)
    return value


def to_wei_amount(price: str | Decimal | int | float) -> Wei:
    """Convert a positive decimal price to the contract's smallest unit."""
    value = parse_price(price)
    try:
        wei = int(Web3.to_wei(value, "ether"))
    except ValueError:
        raise ValidationError("Price is above the largest representable amount", field="price", value=price)
    if wei <= 0:
        raise ValidationError("Price is below the smallest unit", field="price", value=price)
    return wei


def format_wei(amount: int) -> str:
    """Format a wei amount as a plain decimal string in whole units."""
    value = Decimal(Web3.from_wei(int(amount), "ether"))
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def coerce_token_id(token_id: Any) -> int:
    try:
        value = int(token_id, 0) if isinstance(token_id, str) else int(token_id)
    except (TypeError, ValueError):
        raise ValidationError("Token id must be an integer", field="token_id", value=token_id)
    if value < 0:
        raise ValidationError("Token id cannot be negative", field="token_id", value=token_id)
    return value


def unpack_listing(token_id: int, raw: Any) -> RawListing:
    """Normalise a ``(seller, price)`` struct returned by web3 into a RawListing."""
    if isinstance(raw, Mapping):
        seller = raw.get("seller")
        price = raw.get("price", 0)
    elif hasattr(raw, "seller") and hasattr(raw, "price"):
        seller = raw.seller
        price = raw.price
    elif isinstance(raw, Sequence) and len(raw) >= 2:
        seller, price = raw[0], raw[1]
    else:
        raise ValidationError("Unrecognised listing entry", field="listing", value=raw)

    return RawListing(token_id=int(token_id), seller=str(seller or ZERO_ADDRESS), price=int(price or 0))


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


def rpc_error_code(exc: BaseException) -> int | None:
    """Extract a JSON-RPC / EIP-1193 error code from a web3 exception, if any."""
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, Mapping):
        error = response.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("code"), int):
            return error["code"]

    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code

    for arg in getattr(exc, "args", ()):
        if isinstance(arg, Mapping) and isinstance(arg.get("code"), int):
            return arg["code"]
    return None


def error_reason(exc: BaseException) -> str:
    """Return the richest human-readable reason carried by an exception."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, Mapping) and arg.get("message"):
            return str(arg["message"])
    return str(exc) or exc.__class__.__name__
