"""
Event history walking for ERC-1056 identities.

The registry keeps a single ``changed[identity]`` pointer to the block of
the latest event; every event carries the pointer value from before it was
applied (``previousChange``). Following these pointers backward visits
every block holding an event for the identity, newest first.
"""
import logging
import time
from typing import TYPE_CHECKING, List, Optional

from .config import get_max_hops
from .exceptions import HistoryTruncatedError
from .models import Event
from .utils import short_address, to_identity_address

if TYPE_CHECKING:
    from .registry import RegistryAdapter

logger = logging.getLogger(__name__)


class EventHistoryWalker:
    """
    Walks the ``previousChange`` chain of an identity through the registry.

    Each step is one ``eth_getLogs`` call addressed by block height, so the
    walk never holds more than the events collected so far. The number of
    visited blocks is capped by ``max_hops``.
    """

    def __init__(
        self,
        registry: "RegistryAdapter",
        max_hops: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            registry: Adapter used for pointer and log reads
            max_hops: Maximum number of blocks to visit (defaults to
                ``ETHR_DID_MAX_HOPS`` or 1000)
            logger: Optional logger instance
        """
        self.registry = registry
        self.max_hops = get_max_hops(max_hops)
        if self.max_hops < 1:
            raise ValueError(f"max_hops must be positive, got {self.max_hops}")
        self.logger = logger or logging.getLogger(__name__)

    def walk(
        self,
        identity: str,
        to_block: Optional[int] = None,
        start_block: Optional[int] = None
    ) -> List[Event]:
        """
        Collect the identity's events, newest first.

        Args:
            identity: Identity address (or DID / public key)
            to_block: Exclude events mined after this block
            start_block: Start from this pointer instead of reading
                ``changed`` (used when the caller already fetched it)

        Returns:
            Events ordered newest first; within one block, the last emitted first

        Raises:
            HistoryTruncatedError: If ``max_hops`` blocks were visited before
                reaching the start of the chain
            RpcError: On node failures
        """
        address = to_identity_address(identity)
        cursor = self.registry.get_change_pointer(address) if start_block is None else start_block
        if not cursor:
            self.logger.debug("No history for %s", short_address(address))
            return []

        started = time.time()
        history: List[Event] = []
        hops = 0
        while cursor:
            if hops >= self.max_hops:
                self.logger.warning(
                    "History walk for %s stopped after %d blocks at block %d",
                    short_address(address), hops, cursor
                )
                raise HistoryTruncatedError(address, self.max_hops, cursor, history)

            block = cursor
            events = self.registry.get_events(address, block)
            hops += 1

            for event in reversed(events):
                if to_block is None or event.block_number <= to_block:
                    history.append(event)

            if not events:
                self.logger.warning(
                    "Change pointer of %s references block %d without events",
                    short_address(address), block
                )
            # previousChange equal to this block points at a sibling event;
            # anything not below it would loop and is never followed
            cursor = min((e.previous_change for e in events if e.previous_change < block), default=0)

        elapsed_ms = (time.time() - started) * 1000
        self.logger.debug(
            "Walked %d blocks (%d events) for %s in %.2f ms",
            hops, len(history), short_address(address), elapsed_ms
        )
        return history

    def history(self, identity: str, to_block: Optional[int] = None) -> List[Event]:
        """Collect the identity's events oldest first, ready for reduction"""
        return list(reversed(self.walk(identity, to_block=to_block)))
