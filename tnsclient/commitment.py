"""
Commit-reveal commitments, computed locally.

Both schemes match the registrar controller byte for byte:

    simple:      keccak(labelhash ++ owner ++ secret)
    with config: keccak(labelhash ++ owner ++ resolver ++ addr ++ secret)

With-config collapses to the simple scheme when resolver and addr are both
zero, exactly like the controller's makeCommitmentWithConfig.
"""

import secrets
from typing import Optional, Union

from eth_abi.packed import encode_packed
from eth_utils import keccak

from tnsclient.config import EMPTY_ADDRESS, checksum_address, is_empty_address
from tnsclient.errors import InputError
from tnsclient.labelhash import is_encoded_labelhash, labelhash

SECRET_LENGTH = 32


def generate_secret() -> bytes:
    return secrets.token_bytes(SECRET_LENGTH)


def to_secret(secret: Union[bytes, str]) -> bytes:
    """
    Coerce a caller secret to bytes32.

    Accepts 32 raw bytes, a 0x-prefixed 64-digit hex string, or a short text
    secret (at most 32 UTF-8 bytes, right-padded with zeros).
    """
    if isinstance(secret, (bytes, bytearray)):
        if len(secret) != SECRET_LENGTH:
            raise InputError(f"Secret must be {SECRET_LENGTH} bytes, got {len(secret)}")
        return bytes(secret)
    if not isinstance(secret, str):
        raise InputError(f"Secret must be bytes or str, got {type(secret).__name__}")
    if secret.startswith("0x") and len(secret) == 2 + 2 * SECRET_LENGTH:
        try:
            return bytes.fromhex(secret[2:])
        except ValueError:
            raise InputError("Secret is not valid hex", details={"secret": secret}) from None
    raw = secret.encode("utf-8")
    if len(raw) > SECRET_LENGTH:
        raise InputError(f"Text secret is longer than {SECRET_LENGTH} bytes")
    return raw.ljust(SECRET_LENGTH, b"\x00")


def make_commitment(
    label: str,
    owner: str,
    secret: Union[bytes, str],
    resolver: Optional[str] = None,
    addr: Optional[str] = None,
) -> bytes:
    """
    Commitment for registering `label` to `owner`.

    Pass resolver and addr to get the with-config scheme; the same pair must
    be given to register or the reveal will not match.
    """
    if is_encoded_labelhash(label):
        raise InputError("Cannot commit to an encoded label; the plaintext is required", details={"label": label})
    label_hash = labelhash(label)
    owner = checksum_address(owner, "owner")
    secret_bytes = to_secret(secret)

    if is_empty_address(resolver) and is_empty_address(addr):
        packed = encode_packed(["bytes32", "address", "bytes32"], [label_hash, owner, secret_bytes])
        return keccak(packed)

    if is_empty_address(resolver):
        raise InputError("A resolver is required when an address record is set")
    resolver = checksum_address(resolver, "resolver")
    addr = checksum_address(addr, "addr") if addr else EMPTY_ADDRESS
    packed = encode_packed(
        ["bytes32", "address", "address", "address", "bytes32"],
        [label_hash, owner, resolver, addr, secret_bytes],
    )
    return keccak(packed)
