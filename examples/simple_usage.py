#!/usr/bin/env python3
"""
Simple example of using the ethr-did SDK.
"""
import json
import os

from ethr_did_sdk import EthrDIDResolver, IdentityController, LocalSigner, RegistryAdapter


def main():
    """
    Demonstrate the did:ethr lifecycle.

    This example shows how to:
    1. Connect to a registry deployment
    2. Publish a service endpoint and add a signing delegate
    3. Resolve the DID document
    """
    # Read configuration from environment
    NETWORK = os.environ.get("ETHR_NETWORK", "sepolia")
    RPC_URL = os.environ.get("RPC_URL")
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")

    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return

    signer = LocalSigner(PRIVATE_KEY)
    registry = RegistryAdapter.from_network(NETWORK, rpc_url=RPC_URL)
    controller = IdentityController(registry, signer.address, signer=signer, network=NETWORK)
    print(f"Managing {controller.did}")

    try:
        receipt = controller.set_attribute("did/svc/Messaging", "https://messaging.example.com", 86400)
        print(f"Service published in block {receipt.block_number}")

        delegate, receipt = controller.create_signing_delegate("veriKey", 3600)
        print(f"Delegate {delegate.address} added in block {receipt.block_number}")
    except Exception as e:
        print(f"Error updating identity: {str(e)}")
        return

    resolver = EthrDIDResolver({NETWORK: registry})
    result = resolver.resolve_with_metadata(controller.did)
    print(json.dumps(result.did_document.to_dict(), indent=2))
    print(json.dumps(result.did_document_metadata, indent=2))


if __name__ == "__main__":
    main()
