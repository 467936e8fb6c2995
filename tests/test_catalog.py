from __future__ import annotations

from typing import Any

import pytest

from nft_market.constants import ZERO_ADDRESS
from nft_market.exceptions import ChainCallReverted

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
SELLER = "0x3333333333333333333333333333333333333333"
GATEWAY = "https://gateway.pinata.cloud/ipfs/"


def test_tombstoned_rows_are_discarded(client: Any, chain: Any, session: Any) -> None:
    chain.mint_to(SELLER, 9, "ipfs://QmNine")
    chain.raw_table = ([(ZERO_ADDRESS, 0), (SELLER, 2 * 10**18)], [3, 9])
    session.documents[f"{GATEWAY}QmNine"] = {"name": "Nine", "description": "listed"}

    catalog = client.refresh_catalog()

    assert len(catalog) == 1
    (listing,) = catalog
    assert (listing.token_id, listing.seller, listing.price) == (9, SELLER, "2")
    assert listing.metadata.name == "Nine"
    assert client.listings == tuple(catalog)


def test_zero_seller_with_price_and_zero_price_with_seller_are_inactive(
    client: Any, chain: Any
) -> None:
    chain.mint_to(SELLER, 1)
    chain.mint_to(SELLER, 2)
    chain.raw_table = ([(ZERO_ADDRESS, 10**18), (SELLER, 0)], [1, 2])

    assert client.refresh_catalog() == []
    assert "ownerOf" not in chain.read_names()


def test_stale_rows_after_transfer_are_dropped(client: Any, chain: Any) -> None:
    chain.mint_to(BOB, 5)  # transferred away from the seller outside the marketplace
    chain.mint_to(SELLER, 6)
    chain.listings = {5: (SELLER, 10**18), 6: (SELLER, 3 * 10**18)}

    catalog = client.refresh_catalog()

    assert [listing.token_id for listing in catalog] == [6]
    for listing in catalog:
        assert chain.owners[listing.token_id].lower() == listing.seller.lower()


def test_checksum_case_does_not_cause_mismatch(client: Any, chain: Any) -> None:
    mixed = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
    chain.mint_to(mixed.lower(), 8)
    chain.listings = {8: (mixed, 10**18)}

    (listing,) = client.refresh_catalog()

    assert listing.seller == mixed


def test_burned_token_rows_are_skipped(client: Any, chain: Any) -> None:
    chain.listings = {4: (SELLER, 10**18)}

    assert client.refresh_catalog() == []


def test_missing_token_uri_degrades_metadata_only(client: Any, chain: Any) -> None:
    chain.mint_to(SELLER, 2)
    del chain.token_uris[2]
    chain.listings = {2: (SELLER, 10**18)}

    (listing,) = client.refresh_catalog()

    assert listing.metadata.name == "Error"


def test_table_read_failure_clears_catalog(client: Any, chain: Any) -> None:
    chain.mint_to(SELLER, 1)
    chain.listings = {1: (SELLER, 10**18)}
    client.refresh_catalog()
    assert len(client.listings) == 1

    chain.reverting.add("getAllListings")
    with pytest.raises(ChainCallReverted):
        client.refresh_catalog()
    assert client.listings == ()


def test_malformed_rows_are_ignored(client: Any, chain: Any) -> None:
    chain.mint_to(SELLER, 1)
    chain.raw_table = ([42, (SELLER, 10**18)], [0, 1])

    assert [listing.token_id for listing in client.refresh_catalog()] == [1]
