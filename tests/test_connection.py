from __future__ import annotations

from typing import Any

import pytest

from nft_market.connection import ConnectionEvent
from nft_market.exceptions import NotConnected, RequestAlreadyPending, UserRejected

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"


def test_probe_without_authorized_accounts_leaves_state(make_client: Any, wallet: Any) -> None:
    client = make_client()

    assert client.probe_connection() is None
    assert not client.is_connected()
    assert client.account is None
    assert wallet.requests == 0


def test_probe_binds_existing_account(make_client: Any, wallet: Any) -> None:
    wallet.authorized = [ALICE]
    client = make_client()

    assert client.probe_connection() == ALICE
    assert client.is_connected()
    assert wallet.requests == 0


def test_request_connection_binds_account(make_client: Any, wallet: Any) -> None:
    client = make_client()

    assert client.connect() == ALICE
    assert client.account == ALICE
    assert wallet.requests == 1


@pytest.mark.parametrize(
    "error, expected",
    [
        (UserRejected("User rejected the request"), UserRejected),
        (RequestAlreadyPending("Already processing eth_requestAccounts"), RequestAlreadyPending),
    ],
)
def test_request_connection_errors_are_distinct(
    make_client: Any, wallet: Any, error: Exception, expected: type[Exception]
) -> None:
    wallet.request_error = error
    client = make_client()

    with pytest.raises(expected):
        client.connect()
    assert not client.is_connected()


def test_disconnect_clears_everything_even_if_revoke_fails(client: Any, chain: Any, wallet: Any) -> None:
    chain.mint_to(ALICE, 1)
    chain.listings[1] = (ALICE, 10**18)
    client.refresh_owned()
    client.refresh_catalog()
    client.open_listing(1)
    handle = client._connections.handle
    wallet.revoke_error = RuntimeError("wallet_revokePermissions not supported")

    client.disconnect()

    assert wallet.revoked == 1
    assert not client.is_connected()
    assert client.account is None
    assert client.owned_tokens == ()
    assert client.listings == ()
    assert client.listing_draft is None
    assert not client.busy
    with pytest.raises(NotConnected):
        handle.call("ownerOf", 1)


def test_empty_accounts_notification_disconnects(client: Any, wallet: Any) -> None:
    wallet.emit([])

    assert not client.is_connected()
    with pytest.raises(NotConnected):
        client.refresh_owned()


def test_account_switch_rebinds_handle(client: Any, chain: Any, wallet: Any) -> None:
    chain.mint_to(ALICE, 1)
    client.refresh_owned()
    old_handle = client._connections.handle
    events: list[tuple[ConnectionEvent, Any]] = []
    client._connections.add_listener(lambda event, account: events.append((event, account)))

    wallet.emit([BOB])

    new_handle = client._connections.handle
    assert client.account == BOB
    assert new_handle is not old_handle
    assert new_handle.account == BOB
    assert not old_handle.is_valid
    assert client.owned_tokens == ()
    assert events == [(ConnectionEvent.ACCOUNT_CHANGED, BOB)]


def test_same_account_notification_keeps_handle(client: Any, wallet: Any) -> None:
    handle = client._connections.handle

    wallet.emit([ALICE.upper().replace("0X", "0x")])

    assert client._connections.handle is handle


def test_mutations_after_disconnect_report_not_connected(client: Any) -> None:
    client.disconnect()

    response = client.cancel_listing(1)

    assert not response.success
    assert response.error_code == "not_connected"
