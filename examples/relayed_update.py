#!/usr/bin/env python3
"""
Example of a relayed (meta-transaction) update.

The identity owner signs the change off-chain; a relayer account submits
it and pays for gas.
"""
import os

from ethr_did_sdk import IdentityController, LocalSigner, RegistryAdapter


def main():
    NETWORK = os.environ.get("ETHR_NETWORK", "sepolia")
    OWNER_KEY = os.environ.get("OWNER_PRIVATE_KEY")
    RELAYER_KEY = os.environ.get("RELAYER_PRIVATE_KEY")
    DELEGATE = os.environ.get("DELEGATE_ADDRESS")

    if not (OWNER_KEY and RELAYER_KEY and DELEGATE):
        print("ERROR: OWNER_PRIVATE_KEY, RELAYER_PRIVATE_KEY and DELEGATE_ADDRESS are required")
        return

    owner = LocalSigner(OWNER_KEY)
    relayer = LocalSigner(RELAYER_KEY)
    registry = RegistryAdapter.from_network(NETWORK)
    controller = IdentityController(registry, owner.address, signer=relayer, network=NETWORK)

    # Hash binds the owner's current registry nonce, so it is single use
    digest = controller.create_add_delegate_hash("sigAuth", DELEGATE, 3600)
    signature = owner.sign_meta_hash(digest)

    receipt = controller.add_delegate("sigAuth", DELEGATE, 3600, signature=signature)
    print(f"Delegate added for {controller.did} in tx {receipt.tx_hash}")


if __name__ == "__main__":
    main()
