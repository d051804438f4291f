"""
Pytest fixtures for the ethr-did SDK tests.
"""
import time

import pytest
from unittest.mock import MagicMock
from web3.providers.rpc import HTTPProvider

from ethr_did_sdk._rate_limited_log import reset_rate_limits
from ethr_did_sdk.config import NetworkConfig
from ethr_did_sdk.controller import IdentityController
from ethr_did_sdk.resolver import EthrDIDResolver
from ethr_did_sdk.signer import LocalSigner

from tests.test_helpers import (
    TEST_CHAIN_ID, TEST_DELEGATE_KEY, TEST_PRIV_KEY, TEST_REGISTRY, TEST_RELAYER_KEY,
    FakeRegistry, create_test_adapter
)


# Make time.sleep instantaneous so receipt polling doesn't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    def _dummy(self, method, params=None, _=None):
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": 1, "result": hex(TEST_CHAIN_ID)}
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture(autouse=True)
def _reset_shared_state(monkeypatch):
    """Each test starts with fresh network and log-suppression state"""
    monkeypatch.delenv("ETHR_DID_MAX_HOPS", raising=False)
    NetworkConfig._networks_cache = None
    reset_rate_limits()
    yield
    NetworkConfig._networks_cache = None
    reset_rate_limits()


@pytest.fixture
def owner_signer():
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def relayer_signer():
    return LocalSigner(TEST_RELAYER_KEY)


@pytest.fixture
def delegate_signer():
    return LocalSigner(TEST_DELEGATE_KEY)


@pytest.fixture
def fake_registry():
    """In-memory registry with a controllable clock"""
    return FakeRegistry(chain_id=TEST_CHAIN_ID)


@pytest.fixture
def controller(fake_registry, owner_signer):
    """Controller for the owner's own identity, sending as the owner"""
    return IdentityController(
        fake_registry, owner_signer.address, signer=owner_signer, network="development"
    )


@pytest.fixture
def resolver(fake_registry):
    """Resolver for the "development" network, reading the fake's clock"""
    return EthrDIDResolver({"development": fake_registry}, clock=lambda: fake_registry.now)


@pytest.fixture
def mock_w3():
    """Mock Web3 instance whose eth namespace behaves like a healthy node"""
    w3 = MagicMock()
    w3.eth.chain_id = TEST_CHAIN_ID
    w3.eth.block_number = 500
    w3.eth.get_transaction_count = MagicMock(return_value=7)
    w3.eth.get_block = MagicMock(side_effect=lambda n: {"number": n, "timestamp": 1_700_000_000 + n})
    w3.eth.get_logs = MagicMock(return_value=[])
    w3.eth.send_raw_transaction = MagicMock(return_value=bytes.fromhex("ab" * 32))
    w3.eth.wait_for_transaction_receipt = MagicMock(return_value={
        "transactionHash": bytes.fromhex("ab" * 32),
        "blockNumber": 501,
        "blockHash": bytes.fromhex("cd" * 32),
        "status": 1,
        "gasUsed": 45000,
        "from": "0x1234567890123456789012345678901234567890",
        "to": TEST_REGISTRY,
        "logs": [],
    })
    return w3


@pytest.fixture
def adapter(mock_w3):
    """RegistryAdapter over the mocked node with a programmable contract"""
    return create_test_adapter(mock_w3)
