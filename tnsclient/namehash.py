"""
Name hashing and name validation.

namehash folds labels right to left: node = keccak(node + labelhash(label)),
starting from 32 zero bytes, so 'alice.tomo' shares the 'tomo' node with
every other name under the TLD. '[root]' is the root node itself.
"""

import re
from typing import List

from eth_utils import keccak
from web3 import Web3

from tnsclient.config import DEFAULT_TLD, EMPTY_NODE
from tnsclient.errors import InputError
from tnsclient.labelhash import ROOT_LABEL, is_encoded_labelhash, labelhash, normalize_label

_TLD_RE = re.compile(r"[^.]+$")


def split_name(name: str) -> List[str]:
    if not isinstance(name, str) or not name:
        raise InputError("Name must be a non-empty string", details={"name": name})
    labels = name.split(".")
    if any(len(label) == 0 for label in labels):
        raise InputError("Domain cannot have empty labels", details={"name": name})
    return labels


def namehash(name: str) -> bytes:
    """32-byte node identifier of a dotted name."""
    if name == ROOT_LABEL:
        return EMPTY_NODE
    node = EMPTY_NODE
    for label in reversed(split_name(name)):
        node = keccak(node + labelhash(label))
    return node


def namehash_hex(name: str) -> str:
    return "0x" + namehash(name).hex()


def validate_name(name: str) -> str:
    """Return the normalized name; raise InputError if any label is invalid."""
    normalized = []
    for label in split_name(name):
        if label == ROOT_LABEL or is_encoded_labelhash(label):
            normalized.append(label)
        else:
            normalized.append(normalize_label(label))
    return ".".join(normalized)


def is_label_valid(label: str) -> bool:
    """A single, normalizable label (no dots)."""
    if "." in label:
        return False
    try:
        validate_name(label)
    except InputError:
        return False
    return True


def parse_search_term(term: str, valid_tld: bool, tld: str = DEFAULT_TLD) -> str:
    """
    Classify what a user typed into a search box.

    Returns one of: invalid, short, supported, unsupported, address, tld, search.
    valid_tld tells whether the term's last label is a TLD the registry knows.
    """
    try:
        validate_name(term)
    except InputError:
        return "invalid"

    if "." in term:
        labels = term.split(".")
        match = _TLD_RE.search(term)
        term_tld = match.group(0) if match else ""
        if valid_tld:
            # code-point length, not byte length
            if term_tld == tld and len(labels[-2]) < 3:
                return "short"
            return "supported"
        return "unsupported"
    if Web3.is_address(term):
        return "address"
    if valid_tld:
        return "tld"
    return "search"
