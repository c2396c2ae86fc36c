# src/forth/crypto/sig.py
from __future__ import annotations

from typing import Any, Tuple

import rlp
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def keccak256(data: bytes) -> bytes:
    return keccak(primitive=bytes(data))


def normalize_address(v: Any) -> str:
    """Return the EIP-55 checksum form of an address.

    Accepts hex strings (any case, with 0x prefix) and 20-byte values.
    Raises ValueError for anything else.
    """
    if isinstance(v, (bytes, bytearray)) and len(v) == 20:
        return to_checksum_address(bytes(v))
    if not isinstance(v, str) or not is_address(v.strip()):
        raise ValueError(f"not an address: {v!r}")
    return to_checksum_address(v.strip())


def _decode_word(v: Any) -> bytes:
    """Decode a 32-byte signature component given as hex str, bytes or int."""
    if isinstance(v, int) and not isinstance(v, bool):
        if v < 0 or v >= 2**256:
            raise ValueError("signature component out of range")
        return v.to_bytes(32, "big")
    if isinstance(v, (bytes, bytearray)):
        b = bytes(v)
    elif isinstance(v, str):
        s = v.strip()
        if s.startswith(("0x", "0X")):
            s = s[2:]
        b = bytes.fromhex(s)
    else:
        raise ValueError("unsupported signature component")
    if len(b) > 32:
        raise ValueError("signature component longer than 32 bytes")
    return b.rjust(32, b"\x00")


def address_from_private_key(privkey: bytes) -> str:
    return keys.PrivateKey(bytes(privkey)).public_key.to_checksum_address()


def sign_digest(*, digest: bytes, privkey: bytes) -> Tuple[int, str, str]:
    """Sign a 32-byte digest, returning Ethereum-style (v, r, s).

    v is 27 or 28; r and s are 0x-prefixed 32-byte hex strings.
    """
    if len(digest) != 32:
        raise ValueError("digest must be 32 bytes")
    sig = keys.PrivateKey(bytes(privkey)).sign_msg_hash(bytes(digest))
    r = "0x" + sig.r.to_bytes(32, "big").hex()
    s = "0x" + sig.s.to_bytes(32, "big").hex()
    return int(sig.v) + 27, r, s


def recover_address(*, digest: bytes, v: Any, r: Any, s: Any) -> str:
    """ecrecover: recover the signing address or return the zero address.

    Never raises for malformed signatures; the caller decides what a zero
    recovery means.
    """
    try:
        v_int = int(v)
        r_int = int.from_bytes(_decode_word(r), "big")
        s_int = int.from_bytes(_decode_word(s), "big")
    except (TypeError, ValueError):
        return ZERO_ADDRESS

    if v_int not in (27, 28) or r_int == 0 or s_int == 0 or len(digest) != 32:
        return ZERO_ADDRESS

    try:
        sig = keys.Signature(vrs=(v_int - 27, r_int, s_int))
        pub = sig.recover_public_key_from_msg_hash(bytes(digest))
    except (BadSignature, ValidationError, ValueError):
        return ZERO_ADDRESS
    return pub.to_checksum_address()


def contract_address(*, deployer: str, nonce: int) -> str:
    """Address of a contract created by `deployer` at account nonce `nonce`."""
    if int(nonce) < 0:
        raise ValueError("nonce must be >= 0")
    encoded = rlp.encode([to_canonical_address(normalize_address(deployer)), int(nonce)])
    return to_checksum_address(keccak256(encoded)[12:])
