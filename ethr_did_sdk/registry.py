"""
RegistryAdapter - read and write access to the ERC-1056 registry contract.
"""
import logging
import urllib.parse
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import requests
from eth_abi import decode as abi_decode
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from ._rate_limited_log import rate_limited_log
from .abi import ERC1056_ABI, EVENT_DATA_TYPES, EVENT_SIGNATURES
from .config import NetworkConfig
from .exceptions import ContractRevertError, EthrDIDError, RpcError, SigningError
from .models import AttributeChanged, DelegateChanged, Event, OwnerChanged, TxReceipt
from .signer import Signer
from .utils import (
    address_to_topic, bytes32_to_string, short_address, string_to_bytes32,
    strip_0x, to_identity_address, topic_to_address
)

logger = logging.getLogger(__name__)


def _hex(value: Any) -> str:
    """Normalize HexBytes/bytes/str into a lowercase 0x-prefixed hex string"""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return "0x" + strip_0x(str(value)).lower()


def _to_plain(value: Any) -> Any:
    """Convert web3 AttributeDicts and HexBytes into JSON-friendly values"""
    if isinstance(value, (bytes, bytearray)):
        return _hex(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {k: _to_plain(v) for k, v in dict(value).items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def _revert_reason(error: ContractLogicError) -> str:
    message = getattr(error, "message", None) or str(error)
    prefix = "execution reverted: "
    if message.startswith(prefix):
        message = message[len(prefix):]
    return message or "execution reverted"


class RegistryAdapter:
    """
    Adapter over one deployment of the ERC-1056 EthereumDIDRegistry.

    All contract access of the SDK goes through this class. It never
    retries: transport failures raise ``RpcError`` and reverts raise
    ``ContractRevertError`` so the caller can decide what to do.
    """

    TOPIC_TO_EVENT = {
        _hex(Web3.keccak(text=signature)): name for name, signature in EVENT_SIGNATURES.items()
    }

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        registry_address: Optional[str] = None,
        chain_id: Optional[int] = None,
        w3: Optional[Web3] = None,
        receipt_timeout: int = 120,
        poll_interval: float = 0.1,
        request_timeout: int = 30,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the adapter

        Args:
            rpc_url: Ethereum RPC endpoint URL (ignored when ``w3`` is given)
            registry_address: Address of the ERC-1056 registry contract
            chain_id: Chain id used in blockchainAccountId references
                (queried from the node when omitted)
            w3: Preconfigured Web3 instance
            receipt_timeout: Seconds to wait for a transaction receipt
            poll_interval: Receipt polling interval in seconds
            request_timeout: HTTP timeout for RPC requests in seconds
            logger: Optional logger instance

        Raises:
            ValueError: If no registry address is given, or the RPC URL is
                plain http to a non-local host
        """
        if not registry_address:
            raise ValueError("registry_address must be provided")
        if w3 is None and not rpc_url:
            raise ValueError("Either rpc_url or w3 must be provided")

        if w3 is None:
            parsed = urllib.parse.urlparse(rpc_url)
            host = parsed.netloc.split(":")[0]
            if parsed.scheme != "https" and host not in ("localhost", "127.0.0.1"):
                raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))

        self.w3 = w3
        self.rpc_url = rpc_url
        self.registry_address = to_checksum_address(registry_address)
        self.contract = self.w3.eth.contract(address=self.registry_address, abi=ERC1056_ABI)
        self._chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_network(
        cls,
        network: str,
        rpc_url: Optional[str] = None,
        **kwargs
    ) -> "RegistryAdapter":
        """
        Create an adapter for a network defined in networks.json.

        Args:
            network: Network name, e.g. "sepolia"
            rpc_url: Optional RPC override (see NetworkConfig.get_rpc_url)
        """
        return cls(
            rpc_url=NetworkConfig.get_rpc_url(network, override=rpc_url),
            registry_address=NetworkConfig.get_registry_address(network),
            chain_id=NetworkConfig.get_chain_id(network),
            **kwargs
        )

    @contextmanager
    def _rpc_errors(self, operation: str) -> Iterator[None]:
        """Translate web3/transport failures into the SDK error taxonomy"""
        try:
            yield
        except ContractLogicError as e:
            reason = _revert_reason(e)
            self.logger.warning("%s reverted: %s", operation, reason)
            raise ContractRevertError(reason, operation) from e
        except EthrDIDError:
            raise
        # web3 6.x raises JSON-RPC error responses as plain ValueError
        except (Web3Exception, requests.RequestException, ConnectionError, TimeoutError, ValueError) as e:
            rate_limited_log(
                f"Registry RPC failure during {operation}: {e}",
                level="error",
                logger_instance=self.logger
            )
            raise RpcError(f"{operation} failed: {e}", operation) from e

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            with self._rpc_errors("eth_chainId"):
                self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def _call(self, function_name: str, *args: Any) -> Any:
        with self._rpc_errors(function_name):
            return getattr(self.contract.functions, function_name)(*args).call()

    # ── reads ────────────────────────────────────────────────────────────

    def get_owner(self, identity: str) -> str:
        """Current owner of an identity (the identity itself when never transferred)"""
        return to_checksum_address(self._call("identityOwner", to_identity_address(identity)))

    def get_raw_owner(self, identity: str) -> str:
        """Raw ``owners`` mapping entry (zero address when never set)"""
        return to_checksum_address(self._call("owners", to_identity_address(identity)))

    def get_change_pointer(self, identity: str) -> int:
        """Block height of the latest event for an identity, 0 when it has no history"""
        return int(self._call("changed", to_identity_address(identity)) or 0)

    def get_nonce(self, address: str) -> int:
        """Meta-transaction nonce of a signer (an identity owner)"""
        return int(self._call("nonce", to_identity_address(address)))

    def get_delegate_validity(self, identity: str, delegate_type: str, delegate: str) -> int:
        """Expiry timestamp of a delegate, 0 when never added"""
        return int(self._call(
            "delegates",
            to_identity_address(identity),
            string_to_bytes32(delegate_type),
            to_checksum_address(delegate)
        ))

    def is_valid_delegate(self, identity: str, delegate_type: str, delegate: str) -> bool:
        return bool(self._call(
            "validDelegate",
            to_identity_address(identity),
            string_to_bytes32(delegate_type),
            to_checksum_address(delegate)
        ))

    def get_block_timestamp(self, block_number: int) -> int:
        with self._rpc_errors("eth_getBlockByNumber"):
            return int(self.w3.eth.get_block(block_number)["timestamp"])

    def get_latest_block(self) -> int:
        with self._rpc_errors("eth_blockNumber"):
            return int(self.w3.eth.block_number)

    def get_events(self, identity: str, block_number: int) -> List[Event]:
        """
        Fetch every registry event of an identity emitted in one block.

        Args:
            identity: Identity address
            block_number: Exact block height to query

        Returns:
            Decoded events in emission order
        """
        address = to_identity_address(identity)
        with self._rpc_errors("eth_getLogs"):
            logs = self.w3.eth.get_logs({
                "address": self.registry_address,
                "fromBlock": block_number,
                "toBlock": block_number,
                "topics": [list(self.TOPIC_TO_EVENT.keys()), address_to_topic(address)],
            })

        events = [event for event in (self.decode_log(log) for log in logs) if event is not None]
        events.sort(key=lambda e: e.position)
        self.logger.debug("Block %d: %d events for %s", block_number, len(events), short_address(address))
        return events

    def decode_log(self, log: Dict[str, Any]) -> Optional[Event]:
        """
        Decode a raw log into an event model.

        Returns:
            The event, or None if the log is not a registry event
        """
        topics = log.get("topics") or []
        if len(topics) < 2:
            return None
        name = self.TOPIC_TO_EVENT.get(_hex(topics[0]))
        if name is None:
            return None

        data = log.get("data", b"")
        if isinstance(data, str):
            data = bytes.fromhex(strip_0x(data))
        values = abi_decode(EVENT_DATA_TYPES[name], bytes(data))
        common = {
            "identity": topic_to_address(topics[1]),
            "block_number": int(log["blockNumber"]),
            "log_index": int(log.get("logIndex") or 0),
        }

        if name == "DIDOwnerChanged":
            return OwnerChanged(owner=to_checksum_address(values[0]), previous_change=int(values[1]), **common)
        if name == "DIDDelegateChanged":
            return DelegateChanged(
                delegate_type=bytes32_to_string(values[0]),
                delegate=to_checksum_address(values[1]),
                valid_to=int(values[2]),
                previous_change=int(values[3]),
                **common
            )
        return AttributeChanged(
            name=bytes32_to_string(values[0]),
            value=bytes(values[1]),
            valid_to=int(values[2]),
            previous_change=int(values[3]),
            **common
        )

    # ── writes ───────────────────────────────────────────────────────────

    def submit(
        self,
        function_name: str,
        args: Sequence[Any],
        signer: Signer,
        gas: Optional[int] = None,
        wait_for_receipt: bool = True
    ) -> TxReceipt:
        """
        Build, sign and send a registry transaction.

        Args:
            function_name: Registry function, e.g. "addDelegateSigned"
            args: Encoded contract arguments
            signer: Signer paying for the transaction
            gas: Optional gas limit (the node estimates it otherwise)
            wait_for_receipt: Block until the transaction is mined

        Returns:
            The confirmed receipt, or a placeholder carrying only the hash
            when ``wait_for_receipt`` is False (``status`` None)

        Raises:
            ContractRevertError: If the call reverts during estimation or
                the mined transaction has a failed status
            RpcError: On transport failures or receipt timeout
            SigningError: If the signer fails
        """
        if signer is None:
            raise ValueError("A signer is required to submit transactions")

        with self._rpc_errors(function_name):
            tx_params: Dict[str, Any] = {
                "from": signer.address,
                "nonce": self.w3.eth.get_transaction_count(signer.address),
            }
            if gas is not None:
                tx_params["gas"] = gas
            tx = getattr(self.contract.functions, function_name)(*args).build_transaction(tx_params)

        try:
            signed_tx = signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error("Transaction signing failed: %s", e)
            raise SigningError(f"Failed to sign {function_name} transaction: {e}") from e

        raw_tx = getattr(signed_tx, "raw_transaction", None) or getattr(signed_tx, "rawTransaction")
        with self._rpc_errors(function_name):
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
            self.logger.info("%s sent: %s", function_name, _hex(tx_hash))

            if not wait_for_receipt:
                return TxReceipt(
                    transactionHash=_hex(tx_hash),
                    blockNumber=0,
                    blockHash="0x" + "00" * 32,
                    status=None,
                    gasUsed=0,
                    **{"from": signer.address},
                    to=self.registry_address,
                    logs=[]
                )

            web3_receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_interval
            )

        receipt = self._convert_receipt(web3_receipt)
        if receipt.status != 1:
            self.logger.error("%s mined with failed status in block %d", function_name, receipt.block_number)
            raise ContractRevertError("transaction reverted", function_name, receipt.tx_hash)
        return receipt

    def _convert_receipt(self, web3_receipt: Any) -> TxReceipt:
        """Convert a web3 receipt into our TxReceipt model"""
        return TxReceipt.model_validate(_to_plain(web3_receipt))
