"""
EthrDIDResolver - resolves did:ethr identifiers to DID documents.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from cachetools import LRUCache

from .config import NetworkConfig
from .exceptions import NotFoundError
from .history import EventHistoryWalker
from .models import DIDDocument, DIDResolutionResult, Event
from .reducer import DIDStateReducer
from .registry import RegistryAdapter
from .utils import DEFAULT_NETWORK, parse_did, short_address

logger = logging.getLogger(__name__)


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class EthrDIDResolver:
    """
    Resolve did:ethr DIDs by walking registry history and reducing it.

    Each call reads on-chain state afresh, so concurrent and repeated calls
    are safe. With ``cache_size > 0`` walked histories are memoized per
    ``(network, identity, change pointer)``: a history never changes for a
    given pointer, while the reduction (and therefore expiry) is always
    evaluated against the current clock.
    """

    def __init__(
        self,
        registries: Dict[str, RegistryAdapter],
        max_hops: Optional[int] = None,
        cache_size: int = 0,
        clock: Optional[Callable[[], int]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            registries: Registry adapter per network name
            max_hops: History walk limit per identity
            cache_size: Number of histories to memoize (0 disables caching)
            clock: Returns the current unix time; used for validity checks
            logger: Optional logger instance
        """
        if not registries:
            raise ValueError("At least one registry must be configured")
        self.registries = dict(registries)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or (lambda: int(time.time()))
        self._walkers = {
            name: EventHistoryWalker(registry, max_hops=max_hops, logger=self.logger)
            for name, registry in self.registries.items()
        }
        self._cache: Optional[LRUCache] = LRUCache(maxsize=cache_size) if cache_size > 0 else None
        self._cache_lock = threading.RLock()

    @classmethod
    def from_networks(
        cls,
        networks: Optional[List[str]] = None,
        rpc_urls: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> "EthrDIDResolver":
        """
        Build a resolver for networks defined in networks.json.

        Args:
            networks: Network names (defaults to all known networks)
            rpc_urls: Optional RPC override per network
        """
        names = networks or list(NetworkConfig.load_networks().keys())
        rpc_urls = rpc_urls or {}
        registries = {
            name: RegistryAdapter.from_network(name, rpc_url=rpc_urls.get(name)) for name in names
        }
        return cls(registries, **kwargs)

    def _registry_for(self, network: str) -> Tuple[str, RegistryAdapter]:
        if network in self.registries:
            return network, self.registries[network]

        if network.startswith("0x"):
            chain_id = int(network, 16)
            for name, registry in self.registries.items():
                if registry.chain_id == chain_id:
                    return name, registry
            known = NetworkConfig.find_by_chain_id(chain_id)
            if known and known in self.registries:
                return known, self.registries[known]

        raise NotFoundError(f"No registry configured for network '{network}'")

    def _history(self, network: str, registry: RegistryAdapter, address: str) -> List[Event]:
        """Oldest-first history of an identity, memoized by change pointer"""
        pointer = registry.get_change_pointer(address)
        key = (network, address, pointer)
        if self._cache is not None:
            with self._cache_lock:
                cached = self._cache.get(key)
            if cached is not None:
                self.logger.debug("History cache hit for %s at block %d", short_address(address), pointer)
                return list(cached)

        history = list(reversed(self._walkers[network].walk(address, start_block=pointer)))
        if self._cache is not None:
            with self._cache_lock:
                self._cache[key] = tuple(history)
        return history

    def resolve_with_metadata(self, did: str, version_id: Optional[int] = None) -> DIDResolutionResult:
        """
        Resolve a DID and return the document with resolution metadata.

        Args:
            did: did:ethr identifier
            version_id: Resolve the document as of this block height

        Raises:
            InvalidDIDError: If the DID is malformed
            NotFoundError: If the DID's network has no registry
            HistoryTruncatedError: If the history exceeds the hop limit
            RpcError: On node failures
        """
        parsed = parse_did(did)
        network, registry = self._registry_for(parsed.network)
        history = self._history(network, registry, parsed.address)

        if version_id is not None:
            applied = [e for e in history if e.block_number <= version_id]
            later = [e for e in history if e.block_number > version_id]
            now = registry.get_block_timestamp(version_id)
        else:
            applied, later = history, []
            now = self.clock()

        reducer = DIDStateReducer(registry.chain_id, logger=self.logger)
        state = reducer.reduce(parsed.address, applied, now)
        document = reducer.to_document(
            parsed.did,
            state,
            public_key=parsed.public_key,
            network=parsed.network if parsed.network != DEFAULT_NETWORK else None
        )

        metadata: Dict[str, object] = {}
        if state.version_id:
            metadata["versionId"] = str(state.version_id)
            metadata["updated"] = _iso(registry.get_block_timestamp(state.version_id))
        if later:
            next_block = min(e.block_number for e in later)
            metadata["nextVersionId"] = str(next_block)
            metadata["nextUpdate"] = _iso(registry.get_block_timestamp(next_block))
        if state.deactivated:
            metadata["deactivated"] = True

        self.logger.debug("Resolved %s (%d events applied)", did, len(applied))
        return DIDResolutionResult(did_document=document, did_document_metadata=metadata)

    def resolve(self, did: str, version_id: Optional[int] = None) -> DIDDocument:
        """Resolve a DID to its current (or ``version_id``) document"""
        return self.resolve_with_metadata(did, version_id=version_id).did_document

    def clear_cache(self) -> None:
        if self._cache is not None:
            with self._cache_lock:
                self._cache.clear()
