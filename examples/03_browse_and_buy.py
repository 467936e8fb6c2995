"""Example: Browse the active listings and buy the cheapest one."""

from __future__ import annotations

import logging
import os
from decimal import Decimal

from dotenv import load_dotenv

from nft_market import MarketplaceClient

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main() -> None:
    """Print the catalog and purchase the lowest-priced listing."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")
    contract_address = os.getenv("MARKETPLACE_ADDRESS")
    if not contract_address:
        raise ValueError("MARKETPLACE_ADDRESS not found in environment variables")

    client = MarketplaceClient(
        contract_address,
        rpc_url=os.getenv("RPC_URL", "https://sepolia.drpc.org"),
        private_keys=[private_key],
        gateway_url=os.getenv("IPFS_GATEWAY", "https://gateway.pinata.cloud/ipfs/"),
    )

    client.connect()
    try:
        catalog = client.refresh_catalog()
        if not catalog:
            print("No active listings")
            return

        for listing in catalog:
            image = client.image_url(listing.metadata) or "-"
            print(f"#{listing.token_id} {listing.metadata.name} {listing.price} ETH by {listing.seller} {image}")

        candidates = [item for item in catalog if item.seller.lower() != (client.account or "").lower()]
        if not candidates:
            print("Every listing belongs to this account")
            return

        cheapest = min(candidates, key=lambda item: Decimal(item.price))
        response = client.buy(cheapest.token_id, expected_price=cheapest.price)
        if response.success:
            print(f"Bought #{cheapest.token_id} for {response.price} ETH in tx {response.transaction_hash}")
        else:
            print(f"Purchase failed ({response.error_code}): {response.error}")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
