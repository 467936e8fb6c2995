"""Example: Pin an image with Pinata and mint it as an NFT."""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from nft_market import MarketplaceClient

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main() -> None:
    """Mint the image given on the command line."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")
    contract_address = os.getenv("MARKETPLACE_ADDRESS")
    if not contract_address:
        raise ValueError("MARKETPLACE_ADDRESS not found in environment variables")
    if len(sys.argv) < 2:
        raise SystemExit("usage: 01_mint.py IMAGE [NAME] [DESCRIPTION]")

    image_path = sys.argv[1]
    name = sys.argv[2] if len(sys.argv) > 2 else os.path.basename(image_path)
    description = sys.argv[3] if len(sys.argv) > 3 else "Minted from the command line"

    client = MarketplaceClient(
        contract_address,
        rpc_url=os.getenv("RPC_URL", "https://sepolia.drpc.org"),
        private_keys=[private_key],
        pinata_jwt=os.getenv("PINATA_JWT"),
        pinata_api_key=os.getenv("PINATA_API_KEY"),
        pinata_secret_api_key=os.getenv("PINATA_SECRET_API_KEY"),
    )

    client.connect()
    try:
        response = client.mint(name, description, image_path)
        if not response.success:
            print(f"Mint failed ({response.error_code}): {response.error}")
            return

        print(f"Minted {response.token_uri} in tx {response.transaction_hash}")
        for token in client.owned_tokens:
            print(f"  #{token.token_id}: {token.metadata.name}")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
