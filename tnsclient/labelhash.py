"""
Label hashing.

A label is either plain text, which is normalized (UTS-46 mapping: case and
width folding, then NFC) before being keccak-hashed, or an encoded label of
the form "[<64 hex chars>]" carrying a hash whose preimage is unknown.
"""

import unicodedata

import idna
from eth_utils import keccak

from tnsclient.errors import InputError

ROOT_LABEL = "[root]"
ENCODED_LABEL_LENGTH = 66


def is_encoded_labelhash(label: str) -> bool:
    return (
        len(label) == ENCODED_LABEL_LENGTH
        and label.startswith("[")
        and label.endswith("]")
    )


def encode_labelhash(hash_hex: str) -> str:
    """'0x<64 hex>' -> '[<64 hex>]'."""
    if not hash_hex.startswith("0x"):
        raise InputError("Expected label hash to start with 0x", details={"hash": hash_hex})
    if len(hash_hex) != 66:
        raise InputError("Expected label hash to have a length of 66", details={"hash": hash_hex})
    return f"[{hash_hex[2:]}]"


def decode_labelhash(label: str) -> bytes:
    """'[<64 hex>]' -> 32 raw bytes."""
    if not (label.startswith("[") and label.endswith("]")):
        raise InputError(
            "Expected encoded labelhash to start and end with square brackets",
            details={"label": label},
        )
    if len(label) != ENCODED_LABEL_LENGTH:
        raise InputError("Expected encoded labelhash to have a length of 66", details={"label": label})
    try:
        return bytes.fromhex(label[1:-1])
    except ValueError:
        raise InputError("Encoded labelhash is not valid hex", details={"label": label}) from None


def is_decrypted(name: str) -> bool:
    """True when no label of the name is an encoded labelhash."""
    return not any(is_encoded_labelhash(label) for label in name.split("."))


def normalize_label(label: str) -> str:
    if not label:
        raise InputError("Domain cannot have empty labels")
    if "." in label:
        raise InputError("A label cannot contain a dot", details={"label": label})
    try:
        mapped = idna.uts46_remap(label, std3_rules=True, transitional=False)
    except idna.IDNAError as e:
        raise InputError(f"Label cannot be normalized: {e}", details={"label": label}) from e
    mapped = unicodedata.normalize("NFC", mapped)
    if not mapped or "." in mapped:
        raise InputError("Label does not normalize to a single label", details={"label": label})
    return mapped


def labelhash(label: str) -> bytes:
    """32-byte hash of one label; encoded labels are decoded, not hashed."""
    if is_encoded_labelhash(label):
        return decode_labelhash(label)
    return keccak(text=normalize_label(label))


def labelhash_hex(label: str) -> str:
    return "0x" + labelhash(label).hex()


def label_token_id(label: str) -> int:
    """ERC-721 token id of a second-level name: its labelhash as an integer."""
    return int.from_bytes(labelhash(label), "big")
