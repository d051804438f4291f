"""
Tests for the IdentityController.
"""
import pytest
from unittest.mock import MagicMock
from web3 import Web3

from ethr_did_sdk.controller import IdentityController, coerce_signature
from ethr_did_sdk.exceptions import ContractRevertError, SigningError
from ethr_did_sdk.models import MetaSignature
from ethr_did_sdk.signer import LocalSigner
from ethr_did_sdk.utils import string_to_bytes32

from tests.test_helpers import TEST_PRIV_KEY

DELEGATE = "0x2345678901234567890123456789012345678901"
NEW_OWNER = "0x3456789012345678901234567890123456789012"


class TestConstruction:
    """Identity parsing"""

    def test_from_address(self, fake_registry, owner_signer):
        controller = IdentityController(fake_registry, owner_signer.address.lower(), network="sepolia")

        assert controller.identity == owner_signer.address
        assert controller.did == f"did:ethr:sepolia:{owner_signer.address.lower()}"

    def test_from_did(self, fake_registry, owner_signer):
        did = f"did:ethr:development:{owner_signer.address}"
        controller = IdentityController(fake_registry, did)

        assert controller.identity == owner_signer.address
        assert controller.network == "development"
        assert controller.did == did

    def test_from_public_key(self, fake_registry, owner_signer):
        controller = IdentityController(fake_registry, owner_signer.public_key)

        assert controller.identity == owner_signer.address
        assert controller.did == f"did:ethr:{owner_signer.public_key}"

    def test_address_requires_signer(self, fake_registry, owner_signer):
        controller = IdentityController(fake_registry, owner_signer.address)
        with pytest.raises(ValueError):
            controller.address
        with pytest.raises(ValueError):
            controller.change_owner(NEW_OWNER)


class TestCallShapes:
    """Arguments handed to the registry"""

    @pytest.fixture
    def registry(self):
        registry = MagicMock()
        registry.registry_address = "0x" + "11" * 20
        registry.get_owner.side_effect = lambda identity: identity
        registry.get_nonce.return_value = 0
        return registry

    def test_add_delegate_arguments(self, registry, owner_signer):
        controller = IdentityController(registry, owner_signer.address, signer=owner_signer)

        controller.add_delegate("veriKey", DELEGATE, 3600, gas=120000)

        registry.submit.assert_called_once_with(
            "addDelegate",
            [owner_signer.address, string_to_bytes32("veriKey"), DELEGATE, 3600],
            owner_signer,
            gas=120000,
            wait_for_receipt=True,
        )

    def test_signed_variant_inserts_signature(self, registry, owner_signer):
        controller = IdentityController(registry, owner_signer.address, signer=owner_signer)
        signature = MetaSignature(v=27, r=b"\x01" * 32, s=b"\x02" * 32)

        controller.set_attribute("did/svc/Messaging", "https://msg.example.com", 60, signature=signature)

        name, args, _ = registry.submit.call_args[0]
        assert name == "setAttributeSigned"
        assert args == [
            owner_signer.address, 27, b"\x01" * 32, b"\x02" * 32,
            string_to_bytes32("did/svc/Messaging"), b"https://msg.example.com", 60,
        ]

    def test_revoke_attribute_hex_value_is_decoded(self, registry, owner_signer):
        controller = IdentityController(registry, owner_signer.address, signer=owner_signer)

        controller.revoke_attribute("did/pub/Secp256k1/veriKey/hex", "0xdeadbeef")

        _, args, _ = registry.submit.call_args[0]
        assert args[2] == bytes.fromhex("deadbeef")

    @pytest.mark.parametrize("validity", [0, -5])
    def test_non_positive_validity_rejected(self, registry, owner_signer, validity):
        controller = IdentityController(registry, owner_signer.address, signer=owner_signer)
        with pytest.raises(ValueError):
            controller.add_delegate("veriKey", DELEGATE, validity)
        with pytest.raises(ValueError):
            controller.set_attribute("did/svc/X", "y", validity)
        registry.submit.assert_not_called()

    def test_meta_hash_layout(self, registry, owner_signer):
        registry.get_nonce.return_value = 5
        controller = IdentityController(registry, owner_signer.address)

        digest = controller.create_change_owner_hash(NEW_OWNER)

        expected = Web3.solidity_keccak(
            ["bytes1", "bytes1", "address", "uint256", "address", "string", "address"],
            [b"\x19", b"\x00", registry.registry_address, 5, owner_signer.address, "changeOwner", NEW_OWNER],
        )
        assert digest == bytes(expected)
        registry.get_nonce.assert_called_once_with(owner_signer.address)

    def test_meta_hash_uses_nonce_of_current_owner(self, registry, owner_signer):
        registry.get_owner.side_effect = lambda identity: NEW_OWNER
        controller = IdentityController(registry, owner_signer.address)

        controller.create_revoke_delegate_hash("veriKey", DELEGATE)

        registry.get_nonce.assert_called_once_with(NEW_OWNER)


class TestCoerceSignature:
    def test_accepts_raw_bytes_and_hex(self):
        raw = b"\x0a" * 32 + b"\x0b" * 32 + b"\x01"

        from_bytes = coerce_signature(raw)
        from_hex = coerce_signature("0x" + raw.hex())

        assert from_bytes == from_hex
        assert from_bytes.v == 28
        assert from_bytes.r == b"\x0a" * 32

    def test_rejects_wrong_length(self):
        with pytest.raises(SigningError):
            coerce_signature(b"\x00" * 64)


class TestLifecycle:
    """Writes against the in-memory registry"""

    def test_owner_writes_and_reads_back(self, fake_registry, controller):
        receipt = controller.add_delegate("veriKey", DELEGATE, 3600)

        assert receipt.status == 1
        assert fake_registry.get_change_pointer(controller.identity) == receipt.block_number
        assert fake_registry.is_valid_delegate(controller.identity, "veriKey", DELEGATE)

        controller.revoke_delegate("veriKey", DELEGATE)
        assert not fake_registry.is_valid_delegate(controller.identity, "veriKey", DELEGATE)

    def test_non_owner_is_rejected(self, fake_registry, owner_signer, relayer_signer):
        controller = IdentityController(fake_registry, owner_signer.address, signer=relayer_signer)

        with pytest.raises(ContractRevertError) as exc_info:
            controller.add_delegate("veriKey", DELEGATE, 3600)
        assert exc_info.value.reason == "bad_actor"
        assert fake_registry.get_change_pointer(owner_signer.address) == 0

    def test_relayed_write_with_owner_signature(self, fake_registry, owner_signer, relayer_signer):
        owner = IdentityController(fake_registry, owner_signer.address)
        relayed = IdentityController(fake_registry, owner_signer.address, signer=relayer_signer)

        digest = owner.create_add_delegate_hash("sigAuth", DELEGATE, 600)
        signature = owner_signer.sign_meta_hash(digest)
        relayed.add_delegate("sigAuth", DELEGATE, 600, signature=signature)

        assert fake_registry.submitted[-1][0] == "addDelegateSigned"
        assert fake_registry.is_valid_delegate(owner_signer.address, "sigAuth", DELEGATE)
        assert fake_registry.get_nonce(owner_signer.address) == 1

    def test_replayed_signature_is_rejected(self, fake_registry, owner_signer, relayer_signer):
        owner = IdentityController(fake_registry, owner_signer.address)
        relayed = IdentityController(fake_registry, owner_signer.address, signer=relayer_signer)
        signature = owner_signer.sign_meta_hash(
            owner.create_set_attribute_hash("did/svc/Messaging", "https://msg.example.com", 60)
        )
        relayed.set_attribute("did/svc/Messaging", "https://msg.example.com", 60, signature=signature)

        with pytest.raises(ContractRevertError) as exc_info:
            relayed.set_attribute("did/svc/Messaging", "https://msg.example.com", 60, signature=signature)
        assert exc_info.value.reason == "bad_signature"

    def test_signature_from_non_owner_is_rejected(self, fake_registry, owner_signer, relayer_signer):
        relayed = IdentityController(fake_registry, owner_signer.address, signer=relayer_signer)
        digest = relayed.create_change_owner_hash(NEW_OWNER)

        with pytest.raises(ContractRevertError, match="bad_signature"):
            relayed.change_owner(NEW_OWNER, signature=relayer_signer.sign_meta_hash(digest))
        assert fake_registry.get_owner(owner_signer.address) == owner_signer.address

    def test_ownership_transfer_moves_control(self, fake_registry, controller, relayer_signer):
        controller.change_owner(relayer_signer.address)

        assert controller.lookup_owner() == relayer_signer.address
        with pytest.raises(ContractRevertError, match="bad_actor"):
            controller.add_delegate("veriKey", DELEGATE, 60)
        with pytest.raises(ContractRevertError, match="bad_actor"):
            controller.change_owner(NEW_OWNER)
        assert controller.lookup_owner() == relayer_signer.address

        new_controller = IdentityController(fake_registry, controller.identity, signer=relayer_signer)
        new_controller.add_delegate("veriKey", DELEGATE, 60)
        assert fake_registry.is_valid_delegate(controller.identity, "veriKey", DELEGATE)

    def test_relayed_write_after_transfer_uses_new_owner_nonce(self, fake_registry, controller, relayer_signer):
        new_owner_key = LocalSigner(TEST_PRIV_KEY[:-2] + "ff")
        controller.change_owner(new_owner_key.address)
        relayed = IdentityController(fake_registry, controller.identity, signer=relayer_signer)

        digest = relayed.create_revoke_delegate_hash("veriKey", DELEGATE)
        relayed.revoke_delegate("veriKey", DELEGATE, signature=new_owner_key.sign_meta_hash(digest))

        assert fake_registry.get_nonce(new_owner_key.address) == 1
        assert fake_registry.get_nonce(controller.identity) == 0

    def test_create_signing_delegate(self, fake_registry, controller):
        delegate, receipt = controller.create_signing_delegate("sigAuth", 600)

        assert receipt.status == 1
        assert fake_registry.is_valid_delegate(controller.identity, "sigAuth", delegate.address)
