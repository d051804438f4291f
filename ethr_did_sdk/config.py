"""
Network configuration for the ethr-did SDK.

Registry deployments are shipped in ``networks.json``; RPC URLs can be
overridden per network with ``<NETWORK>_RPC_URL`` environment variables.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, Optional

from eth_utils import to_checksum_address

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 1000


class NetworkConfig:
    """Lookup of chain id, RPC endpoint and registry address by network name"""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions from the packaged networks.json.

        Returns:
            Mapping of network name to its configuration
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        data = importlib.resources.files("ethr_did_sdk").joinpath("networks.json").read_text()
        cls._networks_cache = json.loads(data)
        logger.debug("Loaded %d network definitions", len(cls._networks_cache))
        return cls._networks_cache

    @classmethod
    def get_network(cls, network_name: str) -> Dict[str, Any]:
        """
        Get the configuration of a network.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network_name not in networks:
            available = ", ".join(sorted(networks.keys()))
            raise ValueError(f"Network '{network_name}' not found. Available networks: {available}")
        return networks[network_name]

    @classmethod
    def find_by_chain_id(cls, chain_id: int) -> Optional[str]:
        """Return the name of the network with the given chain id, if any"""
        for name, network in cls.load_networks().items():
            if int(network["chainId"]) == int(chain_id):
                return name
        return None

    @classmethod
    def get_rpc_url(cls, network_name: str, override: Optional[str] = None) -> str:
        """
        Resolve the RPC URL for a network.

        Priority: explicit override, ``<NETWORK>_RPC_URL`` environment
        variable, then networks.json.
        """
        if override:
            return override

        env_var = f"{network_name.upper().replace('-', '_')}_RPC_URL"
        env_url = os.environ.get(env_var)
        if env_url:
            logger.debug("Using RPC URL from %s", env_var)
            return env_url

        return cls.get_network(network_name)["rpc"]

    @classmethod
    def get_chain_id(cls, network_name: str) -> int:
        return int(cls.get_network(network_name)["chainId"])

    @classmethod
    def get_registry_address(cls, network_name: str) -> str:
        """Checksummed ERC-1056 registry address for a network"""
        return to_checksum_address(cls.get_network(network_name)["registry"])


def get_max_hops(override: Optional[int] = None) -> int:
    """
    Maximum number of blocks the history walker visits per identity.

    Priority: explicit override, ``ETHR_DID_MAX_HOPS``, then the default.
    """
    if override is not None:
        return int(override)
    env_value = os.environ.get("ETHR_DID_MAX_HOPS")
    if env_value:
        try:
            return int(env_value)
        except ValueError:
            logger.warning("Invalid ETHR_DID_MAX_HOPS value %r, using %d", env_value, DEFAULT_MAX_HOPS)
    return DEFAULT_MAX_HOPS
