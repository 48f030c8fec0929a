"""
Contract ABIs and the ContractCall value passed to the registry RPC backend.

Only the functions the client calls are listed. Overloaded names (addr,
safeTransferFrom) carry a single overload so lookups by name stay unambiguous.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

# ERC-165 interface ids advertised by TNS contracts
INTERFACES = {
    "legacyRegistrar": "0x7ba18ba1",
    "permanentRegistrar": "0x018fac06",
    "permanentRegistrarWithConfig": "0xca27ac4c",
    "baseRegistrar": "0x6ccb2df4",
    "dnsRegistrar": "0x1aa2e641",
    "bulkRenewal": "0x3150bfba",
    "dnssecClaimOld": "0x1aa2e641",
    "dnssecClaimNew": "0x17d8f49b",
}


def interface_id(name: str) -> bytes:
    return bytes.fromhex(INTERFACES[name][2:])


REGISTRY = "registry"
RESOLVER = "resolver"
BASE_REGISTRAR = "base_registrar"
CONTROLLER = "controller"
BULK_RENEWAL = "bulk_renewal"
DNS_REGISTRAR = "dns_registrar"
DNS_REGISTRAR_OLD = "dns_registrar_old"
TEST_REGISTRAR = "test_registrar"


@dataclass(frozen=True)
class ContractCall:
    """One function invocation on one deployed contract."""

    contract: str
    address: str
    function: str
    args: Tuple[Any, ...] = ()
    value: int = 0

    def describe(self) -> str:
        return f"{self.contract}.{self.function}"


def _fn(name: str, inputs: List[Tuple[str, str]], outputs: Optional[List[str]] = None, mutability: str = "view") -> dict:
    return {
        "name": name,
        "type": "function",
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in (outputs or [])],
    }


_RRSET_TUPLE = {
    "name": "input",
    "type": "tuple[]",
    "components": [
        {"name": "rrset", "type": "bytes"},
        {"name": "sig", "type": "bytes"},
    ],
}

REGISTRY_ABI = [
    _fn("resolver", [("node", "bytes32")], ["address"]),
    _fn("owner", [("node", "bytes32")], ["address"]),
    _fn("recordExists", [("node", "bytes32")], ["bool"]),
]

RESOLVER_ABI = [
    _fn("addr", [("node", "bytes32")], ["address"]),
    _fn("text", [("node", "bytes32"), ("key", "string")], ["string"]),
    _fn("interfaceImplementer", [("node", "bytes32"), ("interfaceID", "bytes4")], ["address"]),
]

BASE_REGISTRAR_ABI = [
    _fn("available", [("id", "uint256")], ["bool"]),
    _fn("nameExpires", [("id", "uint256")], ["uint256"]),
    _fn("ownerOf", [("tokenId", "uint256")], ["address"]),
    _fn("GRACE_PERIOD", [], ["uint256"]),
    _fn("reclaim", [("id", "uint256"), ("owner", "address")], mutability="nonpayable"),
    _fn(
        "safeTransferFrom",
        [("from", "address"), ("to", "address"), ("tokenId", "uint256")],
        mutability="nonpayable",
    ),
]

CONTROLLER_ABI = [
    _fn("available", [("name", "string")], ["bool"]),
    _fn("rentPrice", [("name", "string"), ("duration", "uint256")], ["uint256"]),
    _fn("minCommitmentAge", [], ["uint256"]),
    _fn("maxCommitmentAge", [], ["uint256"]),
    _fn("commitments", [("commitment", "bytes32")], ["uint256"]),
    _fn("commit", [("commitment", "bytes32")], mutability="nonpayable"),
    _fn(
        "register",
        [("name", "string"), ("owner", "address"), ("duration", "uint256"), ("secret", "bytes32")],
        mutability="payable",
    ),
    _fn(
        "registerWithConfig",
        [
            ("name", "string"),
            ("owner", "address"),
            ("duration", "uint256"),
            ("secret", "bytes32"),
            ("resolver", "address"),
            ("addr", "address"),
        ],
        mutability="payable",
    ),
    _fn("renew", [("name", "string"), ("duration", "uint256")], mutability="payable"),
]

BULK_RENEWAL_ABI = [
    _fn("rentPrice", [("names", "string[]"), ("duration", "uint256")], ["uint256"]),
    _fn("renewAll", [("names", "string[]"), ("duration", "uint256")], mutability="payable"),
]

DNS_REGISTRAR_ABI = [
    _fn("supportsInterface", [("interfaceID", "bytes4")], ["bool"], mutability="pure"),
    _fn("oracle", [], ["address"]),
    _fn("claim", [("name", "bytes"), ("proof", "bytes")], mutability="nonpayable"),
    {
        "name": "proveAndClaim",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "name", "type": "bytes"}, _RRSET_TUPLE, {"name": "proof", "type": "bytes"}],
        "outputs": [],
    },
    {
        "name": "proveAndClaimWithResolver",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "bytes"},
            _RRSET_TUPLE,
            {"name": "proof", "type": "bytes"},
            {"name": "resolver", "type": "address"},
            {"name": "addr", "type": "address"},
        ],
        "outputs": [],
    },
]

DNS_REGISTRAR_OLD_ABI = [
    _fn("supportsInterface", [("interfaceID", "bytes4")], ["bool"], mutability="pure"),
    _fn("oracle", [], ["address"]),
    _fn("claim", [("name", "bytes"), ("proof", "bytes")], mutability="nonpayable"),
    _fn("proveAndClaim", [("name", "bytes"), ("input", "bytes"), ("proof", "bytes")], mutability="nonpayable"),
]

TEST_REGISTRAR_ABI = [
    _fn("register", [("label", "bytes32"), ("owner", "address")], mutability="nonpayable"),
    _fn("expiryTimes", [("label", "bytes32")], ["uint256"]),
]

ABIS: Dict[str, list] = {
    REGISTRY: REGISTRY_ABI,
    RESOLVER: RESOLVER_ABI,
    BASE_REGISTRAR: BASE_REGISTRAR_ABI,
    CONTROLLER: CONTROLLER_ABI,
    BULK_RENEWAL: BULK_RENEWAL_ABI,
    DNS_REGISTRAR: DNS_REGISTRAR_ABI,
    DNS_REGISTRAR_OLD: DNS_REGISTRAR_OLD_ABI,
    TEST_REGISTRAR: TEST_REGISTRAR_ABI,
}
