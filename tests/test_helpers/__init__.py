from .fake_registry import FAKE_REGISTRY_ADDRESS, FakeRegistry
from .registry_creator import (
    TEST_CHAIN_ID, TEST_DELEGATE_KEY, TEST_PRIV_KEY, TEST_REGISTRY, TEST_RELAYER_KEY,
    TEST_RPC_URL, create_test_adapter, make_log
)

__all__ = [
    "FAKE_REGISTRY_ADDRESS",
    "FakeRegistry",
    "TEST_CHAIN_ID",
    "TEST_DELEGATE_KEY",
    "TEST_PRIV_KEY",
    "TEST_REGISTRY",
    "TEST_RELAYER_KEY",
    "TEST_RPC_URL",
    "create_test_adapter",
    "make_log",
]
