"""
ABI of the ERC-1056 EthereumDIDRegistry contract.
"""
from typing import Any, Dict, List


def _fn(name: str, inputs: List[tuple], outputs: List[tuple], mutability: str) -> Dict[str, Any]:
    return {
        "constant": mutability == "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "name": name,
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "payable": False,
        "stateMutability": mutability,
        "type": "function",
    }


def _event(name: str, inputs: List[tuple]) -> Dict[str, Any]:
    return {
        "anonymous": False,
        "inputs": [{"indexed": indexed, "name": n, "type": t} for n, t, indexed in inputs],
        "name": name,
        "type": "event",
    }


_SIG = [("sigV", "uint8"), ("sigR", "bytes32"), ("sigS", "bytes32")]

ERC1056_ABI: List[Dict[str, Any]] = [
    _fn("owners", [("", "address")], [("", "address")], "view"),
    _fn("delegates", [("", "address"), ("", "bytes32"), ("", "address")], [("", "uint256")], "view"),
    _fn("nonce", [("", "address")], [("", "uint256")], "view"),
    _fn("changed", [("", "address")], [("", "uint256")], "view"),
    _fn("identityOwner", [("identity", "address")], [("", "address")], "view"),
    _fn(
        "validDelegate",
        [("identity", "address"), ("delegateType", "bytes32"), ("delegate", "address")],
        [("", "bool")],
        "view",
    ),
    _fn("changeOwner", [("identity", "address"), ("newOwner", "address")], [], "nonpayable"),
    _fn(
        "changeOwnerSigned",
        [("identity", "address")] + _SIG + [("newOwner", "address")],
        [],
        "nonpayable",
    ),
    _fn(
        "addDelegate",
        [("identity", "address"), ("delegateType", "bytes32"), ("delegate", "address"), ("validity", "uint256")],
        [],
        "nonpayable",
    ),
    _fn(
        "addDelegateSigned",
        [("identity", "address")] + _SIG
        + [("delegateType", "bytes32"), ("delegate", "address"), ("validity", "uint256")],
        [],
        "nonpayable",
    ),
    _fn(
        "revokeDelegate",
        [("identity", "address"), ("delegateType", "bytes32"), ("delegate", "address")],
        [],
        "nonpayable",
    ),
    _fn(
        "revokeDelegateSigned",
        [("identity", "address")] + _SIG + [("delegateType", "bytes32"), ("delegate", "address")],
        [],
        "nonpayable",
    ),
    _fn(
        "setAttribute",
        [("identity", "address"), ("name", "bytes32"), ("value", "bytes"), ("validity", "uint256")],
        [],
        "nonpayable",
    ),
    _fn(
        "setAttributeSigned",
        [("identity", "address")] + _SIG + [("name", "bytes32"), ("value", "bytes"), ("validity", "uint256")],
        [],
        "nonpayable",
    ),
    _fn(
        "revokeAttribute",
        [("identity", "address"), ("name", "bytes32"), ("value", "bytes")],
        [],
        "nonpayable",
    ),
    _fn(
        "revokeAttributeSigned",
        [("identity", "address")] + _SIG + [("name", "bytes32"), ("value", "bytes")],
        [],
        "nonpayable",
    ),
    _event(
        "DIDOwnerChanged",
        [("identity", "address", True), ("owner", "address", False), ("previousChange", "uint256", False)],
    ),
    _event(
        "DIDDelegateChanged",
        [
            ("identity", "address", True),
            ("delegateType", "bytes32", False),
            ("delegate", "address", False),
            ("validTo", "uint256", False),
            ("previousChange", "uint256", False),
        ],
    ),
    _event(
        "DIDAttributeChanged",
        [
            ("identity", "address", True),
            ("name", "bytes32", False),
            ("value", "bytes", False),
            ("validTo", "uint256", False),
            ("previousChange", "uint256", False),
        ],
    ),
]

# Canonical signatures used for topic0 and for decoding non-indexed log data
EVENT_SIGNATURES: Dict[str, str] = {
    "DIDOwnerChanged": "DIDOwnerChanged(address,address,uint256)",
    "DIDDelegateChanged": "DIDDelegateChanged(address,bytes32,address,uint256,uint256)",
    "DIDAttributeChanged": "DIDAttributeChanged(address,bytes32,bytes,uint256,uint256)",
}

EVENT_DATA_TYPES: Dict[str, List[str]] = {
    "DIDOwnerChanged": ["address", "uint256"],
    "DIDDelegateChanged": ["bytes32", "address", "uint256", "uint256"],
    "DIDAttributeChanged": ["bytes32", "bytes", "uint256", "uint256"],
}
