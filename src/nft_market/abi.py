"""Default ABI for the NFT marketplace contract.

The contract is both the ERC-721 token and the marketplace. Optional
enumeration helpers (``tokensOfOwner``, ``tokenOfOwnerByIndex``,
``getTotalSupply``, ``getListingInfo``) are included; deployments that do not
implement them revert, which callers treat as the capability being absent.
"""

from __future__ import annotations

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[dict[str, Any]],
    state_mutability: str = "view",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"internalType": typ, "name": arg, "type": typ} for arg, typ in inputs],
        "outputs": outputs,
        "stateMutability": state_mutability,
    }


def _out(typ: str, name: str = "") -> dict[str, Any]:
    return {"internalType": typ, "name": name, "type": typ}


_LISTING_COMPONENTS = [
    _out("address", "seller"),
    _out("uint256", "price"),
]

MARKETPLACE_ABI: list[dict[str, Any]] = [
    # Minting and ERC-721 reads
    _fn("mintNFT", [("tokenURI", "string")], [_out("uint256")], "nonpayable"),
    _fn("balanceOf", [("owner", "address")], [_out("uint256")]),
    _fn("ownerOf", [("tokenId", "uint256")], [_out("address")]),
    _fn("tokenURI", [("tokenId", "uint256")], [_out("string")]),
    _fn("totalSupply", [], [_out("uint256")]),
    _fn("getTotalSupply", [], [_out("uint256")]),
    _fn("tokensOfOwner", [("owner", "address")], [_out("uint256[]")]),
    _fn(
        "tokenOfOwnerByIndex",
        [("owner", "address"), ("index", "uint256")],
        [_out("uint256")],
    ),
    # Approvals
    _fn("approve", [("to", "address"), ("tokenId", "uint256")], [], "nonpayable"),
    _fn("getApproved", [("tokenId", "uint256")], [_out("address")]),
    _fn(
        "isApprovedForAll",
        [("owner", "address"), ("operator", "address")],
        [_out("bool")],
    ),
    # Marketplace
    _fn("listing", [("tokenId", "uint256"), ("price", "uint256")], [], "nonpayable"),
    _fn("cancelListing", [("tokenId", "uint256")], [], "nonpayable"),
    _fn("buyNFT", [("tokenId", "uint256")], [], "payable"),
    _fn(
        "listings",
        [("tokenId", "uint256")],
        [_out("address", "seller"), _out("uint256", "price")],
    ),
    _fn(
        "getListingInfo",
        [("tokenId", "uint256")],
        [_out("bool", "isListed"), _out("address", "seller"), _out("uint256", "price")],
    ),
    _fn(
        "getAllListings",
        [],
        [
            {
                "components": _LISTING_COMPONENTS,
                "internalType": "struct NFTMarketplace.Listing[]",
                "name": "",
                "type": "tuple[]",
            },
            _out("uint256[]"),
        ],
    ),
]
