from __future__ import annotations

from typing import Any

import pytest

from nft_market.exceptions import EnumerationUnavailable

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
GATEWAY = "https://gateway.pinata.cloud/ipfs/"


def _enumerator(client: Any) -> Any:
    return client._enumerator


def test_tokens_of_owner_preferred(client: Any, chain: Any) -> None:
    chain.mint_to(ALICE, 1)
    chain.mint_to(BOB, 2)
    chain.mint_to(ALICE, 3)

    handle = client._connections.handle
    token_ids = _enumerator(client).enumerate_owned(handle, ALICE)

    assert token_ids == [1, 3]
    assert "balanceOf" not in chain.read_names()


def test_indexed_lookup_when_tokens_of_owner_absent(client: Any, chain: Any) -> None:
    chain.supported.discard("tokensOfOwner")
    chain.mint_to(ALICE, 7)
    chain.mint_to(ALICE, 19)
    chain.mint_to(BOB, 8)

    handle = client._connections.handle
    token_ids = _enumerator(client).enumerate_owned(handle, ALICE)

    assert token_ids == [7, 19]
    assert chain.read_names().count("tokenOfOwnerByIndex") == 2
    assert "totalSupply" not in chain.read_names()
    assert "getTotalSupply" not in chain.read_names()
    assert "ownerOf" not in chain.read_names()


def test_supply_scan_when_enumeration_absent(client: Any, chain: Any) -> None:
    chain.supported -= {"tokensOfOwner", "tokenOfOwnerByIndex"}
    for token_id, owner in enumerate([ALICE, BOB, ALICE, BOB, ALICE]):
        chain.mint_to(owner, token_id)

    handle = client._connections.handle
    token_ids = _enumerator(client).enumerate_owned(handle, ALICE)

    assert token_ids == [0, 2, 4]
    for token_id in token_ids:
        assert chain.owners[token_id] == ALICE


def test_supply_scan_skips_burned_ids(client: Any, chain: Any) -> None:
    chain.supported -= {"tokensOfOwner", "tokenOfOwnerByIndex", "getTotalSupply"}
    chain.mint_to(ALICE, 0)
    chain.mint_to(ALICE, 3)
    chain.total_supply = 5

    handle = client._connections.handle
    assert _enumerator(client).enumerate_owned(handle, ALICE) == [0, 3]


def test_reverting_optional_functions_fall_through(client: Any, chain: Any) -> None:
    chain.reverting |= {"tokensOfOwner", "tokenOfOwnerByIndex", "getTotalSupply"}
    chain.mint_to(BOB, 0)
    chain.mint_to(ALICE, 1)

    handle = client._connections.handle
    assert _enumerator(client).enumerate_owned(handle, ALICE) == [1]
    assert "totalSupply" in chain.read_names()


def test_all_strategies_failing_names_causes(client: Any, chain: Any) -> None:
    chain.supported -= {"tokensOfOwner", "tokenOfOwnerByIndex", "totalSupply", "getTotalSupply"}

    with pytest.raises(EnumerationUnavailable) as excinfo:
        client.refresh_owned()

    assert set(excinfo.value.causes) == {"tokensOfOwner", "tokenOfOwnerByIndex", "ownerOf scan"}
    assert client.owned_tokens == ()


def test_refresh_builds_records_with_listing_status(
    client: Any, chain: Any, session: Any
) -> None:
    chain.mint_to(ALICE, 1, "ipfs://QmOne")
    chain.mint_to(ALICE, 2, "ipfs://QmTwo")
    chain.listings[1] = (ALICE, 2 * 10**18)
    session.documents[f"{GATEWAY}QmOne"] = {"name": "One", "description": "first"}

    records = client.refresh_owned()

    assert [record.token_id for record in records] == [1, 2]
    first, second = records
    assert first.is_listed and first.listing_price == "2"
    assert first.metadata.name == "One"
    assert not second.is_listed and second.listing_price == "0"
    assert second.metadata.name == "Unknown"
    assert client.owned_tokens == tuple(records)


def test_listing_status_falls_back_to_listing_table(client: Any, chain: Any) -> None:
    chain.supported.discard("getListingInfo")
    chain.mint_to(ALICE, 4)
    chain.listings[4] = (ALICE, 5 * 10**17)

    (record,) = client.refresh_owned()

    assert record.is_listed
    assert record.listing_price == "0.5"
    assert "listings" in chain.read_names()


def test_listing_by_someone_else_is_not_reported(client: Any, chain: Any) -> None:
    chain.mint_to(ALICE, 4)
    chain.listings[4] = (BOB, 10**18)

    (record,) = client.refresh_owned()

    assert not record.is_listed


def test_one_bad_token_does_not_hide_the_rest(client: Any, chain: Any) -> None:
    chain.mint_to(ALICE, 1)
    chain.mint_to(ALICE, 2)
    del chain.token_uris[1]
    chain.reverting |= {"getListingInfo", "listings"}

    records = client.refresh_owned()

    assert [record.token_id for record in records] == [1, 2]
    assert records[0].metadata == records[0].metadata.error()
    assert records[0].metadata.description == "Failed to load NFT data"
    assert not records[1].is_listed



def test_zero_balance_without_indexed_lookup_is_not_trusted(client: Any, chain: Any) -> None:
    chain.supported -= {"tokensOfOwner", "tokenOfOwnerByIndex"}
    chain.mint_to(BOB, 0)

    handle = client._connections.handle
    assert _enumerator(client).enumerate_owned(handle, ALICE) == []
    assert "balanceOf" not in chain.read_names()
    assert "ownerOf" in chain.read_names()
