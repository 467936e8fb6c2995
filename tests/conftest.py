from __future__ import annotations

from collections.abc import Callable, Sequence
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from nft_market.client import MarketplaceClient
from nft_market.constants import ZERO_ADDRESS
from nft_market.types import FeeData
from nft_market.wallet import AccountsListener, WalletProvider

CONTRACT = "0x4444444444444444444444444444444444444444"
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"

ETHER = 10**18

ALL_FUNCTIONS = {
    "mintNFT",
    "tokensOfOwner",
    "balanceOf",
    "tokenOfOwnerByIndex",
    "totalSupply",
    "getTotalSupply",
    "ownerOf",
    "tokenURI",
    "getListingInfo",
    "listings",
    "getAllListings",
    "buyNFT",
    "approve",
    "getApproved",
    "isApprovedForAll",
    "listing",
    "cancelListing",
}


class FakeChain:
    """In-memory marketplace contract state behind a web3-shaped facade."""

    def __init__(self) -> None:
        self.owners: dict[int, str] = {}
        self.token_uris: dict[int, str] = {}
        self.listings: dict[int, tuple[str, int]] = {}
        self.approved: dict[int, str] = {}
        self.operators: set[tuple[str, str]] = set()
        self.total_supply: int | None = None
        self.raw_table: tuple[list[Any], list[int]] | None = None
        self.supported: set[str] = set(ALL_FUNCTIONS)
        self.reverting: set[str] = set()
        self.estimate_error: Exception | None = None
        self.transact_error: Exception | None = None
        self.gas_estimate = 100_000
        self.receipt_status = 1
        self.receipt_error: Exception | None = None
        self.ignore_approve = False
        self.reads: list[tuple[str, tuple[Any, ...]]] = []
        self.transactions: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.estimates: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.web3 = FakeWeb3(self)

    # helpers -----------------------------------------------------------
    def mint_to(self, owner: str, token_id: int, uri: str | None = None) -> None:
        self.owners[token_id] = owner
        self.token_uris[token_id] = uri or f"ipfs://meta{token_id}"

    def read_names(self) -> list[str]:
        return [name for name, _ in self.reads]

    def tx_names(self) -> list[str]:
        return [name for name, _, _ in self.transactions]

    def _owned(self, owner: str) -> list[int]:
        return [tid for tid, who in sorted(self.owners.items()) if who.lower() == owner.lower()]

    # reads -------------------------------------------------------------
    def read(self, name: str, args: tuple[Any, ...]) -> Any:
        self.reads.append((name, args))
        if name in self.reverting:
            raise ContractLogicError("execution reverted")

        if name == "ownerOf":
            (token_id,) = args
            if token_id not in self.owners:
                raise ContractLogicError("ERC721: invalid token ID")
            return self.owners[token_id]
        if name == "tokenURI":
            (token_id,) = args
            if token_id not in self.token_uris:
                raise ContractLogicError("ERC721: invalid token ID")
            return self.token_uris[token_id]
        if name == "tokensOfOwner":
            (owner,) = args
            return self._owned(owner)
        if name == "balanceOf":
            (owner,) = args
            return len(self._owned(owner))
        if name == "tokenOfOwnerByIndex":
            owner, index = args
            return self._owned(owner)[index]
        if name in ("totalSupply", "getTotalSupply"):
            if self.total_supply is not None:
                return self.total_supply
            return max(self.owners, default=-1) + 1
        if name == "listings":
            (token_id,) = args
            return self.listings.get(token_id, (ZERO_ADDRESS, 0))
        if name == "getListingInfo":
            (token_id,) = args
            seller, price = self.listings.get(token_id, (ZERO_ADDRESS, 0))
            return (price > 0, seller, price)
        if name == "getAllListings":
            if self.raw_table is not None:
                return self.raw_table
            ids = sorted(self.listings)
            return ([self.listings[tid] for tid in ids], ids)
        if name == "getApproved":
            (token_id,) = args
            return self.approved.get(token_id, ZERO_ADDRESS)
        if name == "isApprovedForAll":
            owner, operator = args
            return (owner.lower(), operator.lower()) in self.operators
        raise AssertionError(f"unexpected read {name}")

    # writes ------------------------------------------------------------
    def transact(self, name: str, args: tuple[Any, ...], params: dict[str, Any]) -> HexBytes:
        self.transactions.append((name, args, dict(params)))
        if self.transact_error is not None:
            raise self.transact_error
        if name in self.reverting:
            raise ContractLogicError(f"{name}: execution reverted")

        sender = params["from"]
        if name == "mintNFT":
            token_id = max(self.owners, default=-1) + 1
            self.mint_to(sender, token_id, args[0])
        elif name == "approve" and not self.ignore_approve:
            operator, token_id = args
            self.approved[token_id] = operator
        elif name == "listing":
            token_id, price = args
            self.listings[token_id] = (sender, price)
        elif name == "cancelListing":
            (token_id,) = args
            self.listings.pop(token_id, None)
        elif name == "buyNFT":
            (token_id,) = args
            self.owners[token_id] = sender
            self.listings.pop(token_id, None)
            self.approved.pop(token_id, None)
        return HexBytes(len(self.transactions).to_bytes(32, "big"))

    def estimate(self, name: str, args: tuple[Any, ...], params: dict[str, Any]) -> int:
        self.estimates.append((name, args, dict(params)))
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.gas_estimate


class FakeCall:
    def __init__(self, chain: FakeChain, name: str, args: tuple[Any, ...]) -> None:
        self._chain = chain
        self._name = name
        self._args = args

    def call(self) -> Any:
        return self._chain.read(self._name, self._args)

    def transact(self, params: dict[str, Any]) -> HexBytes:
        return self._chain.transact(self._name, self._args, params)

    def estimate_gas(self, params: dict[str, Any]) -> int:
        return self._chain.estimate(self._name, self._args, params)


class FakeFunctions:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain

    def __getattr__(self, name: str) -> Callable[..., FakeCall]:
        if name.startswith("_") or name not in self._chain.supported:
            raise AttributeError(name)
        return lambda *args: FakeCall(self._chain, name, args)


class FakeContract:
    def __init__(self, chain: FakeChain, address: str) -> None:
        self.address = address
        self.functions = FakeFunctions(chain)


class FakeWeb3:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain
        self.eth = SimpleNamespace(
            contract=lambda address, abi: FakeContract(chain, address),
            wait_for_transaction_receipt=self._receipt,
        )

    def _receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]:
        if self._chain.receipt_error is not None:
            raise self._chain.receipt_error
        return {
            "status": self._chain.receipt_status,
            "blockNumber": 100 + len(self._chain.transactions),
            "transactionHash": HexBytes(tx_hash),
        }


class FakeWallet(WalletProvider):
    def __init__(self, chain: FakeChain, accounts: Sequence[str] = (ALICE,)) -> None:
        self.chain = chain
        self.authorized: list[str] = []
        self.grantable = list(accounts)
        self.request_error: Exception | None = None
        self.revoke_error: Exception | None = None
        self.balances: dict[str, int] = {}
        self.fee_data = FeeData(gas_price=1_000_000_000)
        self.listeners: list[AccountsListener] = []
        self.requests = 0
        self.revoked = 0

    def list_accounts(self) -> list[str]:
        return list(self.authorized)

    def request_accounts(self) -> list[str]:
        self.requests += 1
        if self.request_error is not None:
            raise self.request_error
        self.authorized = list(self.grantable)
        return list(self.authorized)

    def web3_for(self, account: str) -> Any:
        return self.chain.web3

    def get_balance(self, account: str) -> int:
        return self.balances.get(account.lower(), 100 * ETHER)

    def get_fee_data(self) -> FeeData:
        return self.fee_data

    def subscribe_accounts_changed(self, listener: AccountsListener) -> Callable[[], None]:
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def revoke_permissions(self) -> None:
        self.revoked += 1
        if self.revoke_error is not None:
            raise self.revoke_error

    def emit(self, accounts: Sequence[str]) -> None:
        for listener in list(self.listeners):
            listener(list(accounts))


class DummyResponse:
    def __init__(self, payload: Any, *, status_code: int = 200, raise_json: bool = False) -> None:
        self._payload = payload
        self.status_code = status_code
        self._raise_json = raise_json
        self.text = str(payload)

    def raise_for_status(self) -> None:
        if not (200 <= self.status_code < 300):
            raise requests.HTTPError(f"status={self.status_code}")

    def json(self) -> Any:
        if self._raise_json:
            raise ValueError("Expecting value")
        return self._payload


class DummySession(requests.Session):
    def __init__(self) -> None:
        super().__init__()
        self.documents: dict[str, Any] = {}
        self.pins: list[Any] = []
        self.get_calls: list[str] = []
        self.post_calls: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, timeout: float | None = None, **_kwargs: Any) -> Any:  # type: ignore[override]
        self.get_calls.append(url)
        document = self.documents.get(url)
        if isinstance(document, Exception):
            raise document
        if isinstance(document, DummyResponse):
            return document
        if document is None:
            return DummyResponse({}, status_code=404)
        return DummyResponse(document)

    def post(self, url: str, timeout: float | None = None, **kwargs: Any) -> Any:  # type: ignore[override]
        self.post_calls.append((url, kwargs))
        response = self.pins.pop(0) if self.pins else DummyResponse({"IpfsHash": f"Qm{len(self.post_calls)}"})
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def wallet(chain: FakeChain) -> FakeWallet:
    return FakeWallet(chain)


@pytest.fixture
def session() -> DummySession:
    return DummySession()


@pytest.fixture
def make_client(
    wallet: FakeWallet, session: DummySession
) -> Callable[..., MarketplaceClient]:
    def factory(**kwargs: Any) -> MarketplaceClient:
        kwargs.setdefault("pinata_jwt", "test-jwt")
        return MarketplaceClient(CONTRACT, wallet=wallet, session=session, **kwargs)

    return factory


@pytest.fixture
def client(make_client: Callable[..., MarketplaceClient]) -> MarketplaceClient:
    instance = make_client()
    instance.connect()
    return instance


@pytest.fixture
def response_factory() -> type[DummyResponse]:
    return DummyResponse
