"""Example: List an owned NFT for sale, then cancel the listing."""

from __future__ import annotations

import logging
import os
import sys
import time

from dotenv import load_dotenv

from nft_market import MarketplaceClient

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

PRICE = "0.01"


def main() -> None:
    """List token ``argv[1]`` at PRICE and withdraw it again."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")
    contract_address = os.getenv("MARKETPLACE_ADDRESS")
    if not contract_address:
        raise ValueError("MARKETPLACE_ADDRESS not found in environment variables")
    if len(sys.argv) < 2:
        raise SystemExit("usage: 02_list_and_cancel.py TOKEN_ID")

    client = MarketplaceClient(
        contract_address,
        rpc_url=os.getenv("RPC_URL", "https://sepolia.drpc.org"),
        private_keys=[private_key],
    )

    client.connect()
    try:
        client.refresh_owned()
        draft = client.open_listing(int(sys.argv[1]))
        print(f"Listing #{draft.token.token_id} ({draft.token.metadata.name}) for {PRICE} ETH")

        listed = client.submit_listing(PRICE)
        if not listed.success:
            print(f"Listing failed ({listed.error_code}): {listed.error}")
            client.close_listing()
            return
        print(f"Listed in tx {listed.transaction_hash}")

        time.sleep(3)

        cancelled = client.cancel_listing(draft.token.token_id)
        if cancelled.success:
            print(f"Listing cancelled in tx {cancelled.transaction_hash}")
        else:
            print(f"Cancel failed ({cancelled.error_code}): {cancelled.error}")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
