# src/forth/crypto/eip712.py
"""EIP-712 typed-data hashing for the Forth token.

Pure functions only: nothing here reads or mutates token state. Callers pass
the nonce they expect and verify the recovered signer themselves.

Layout (bit-exact):

  domainSeparator = keccak256(abi.encode(DOMAIN_TYPEHASH, keccak256(name), chainId, verifyingContract))
  structHash      = keccak256(abi.encode(TYPEHASH, ...fields))
  digest          = keccak256("\\x19\\x01" || domainSeparator || structHash)
"""

from __future__ import annotations

from eth_abi import encode

from forth.crypto.sig import keccak256, normalize_address

DOMAIN_TYPE = "EIP712Domain(string name,uint256 chainId,address verifyingContract)"
PERMIT_TYPE = "Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)"
DELEGATION_TYPE = "Delegation(address delegatee,uint256 nonce,uint256 expiry)"

DOMAIN_TYPEHASH: bytes = keccak256(DOMAIN_TYPE.encode("utf-8"))
PERMIT_TYPEHASH: bytes = keccak256(PERMIT_TYPE.encode("utf-8"))
DELEGATION_TYPEHASH: bytes = keccak256(DELEGATION_TYPE.encode("utf-8"))


def domain_separator(*, name: str, chain_id: int, verifying_contract: str) -> bytes:
    return keccak256(
        encode(
            ["bytes32", "bytes32", "uint256", "address"],
            [DOMAIN_TYPEHASH, keccak256(name.encode("utf-8")), int(chain_id), normalize_address(verifying_contract)],
        )
    )


def permit_struct_hash(*, owner: str, spender: str, value: int, nonce: int, deadline: int) -> bytes:
    return keccak256(
        encode(
            ["bytes32", "address", "address", "uint256", "uint256", "uint256"],
            [
                PERMIT_TYPEHASH,
                normalize_address(owner),
                normalize_address(spender),
                int(value),
                int(nonce),
                int(deadline),
            ],
        )
    )


def delegation_struct_hash(*, delegatee: str, nonce: int, expiry: int) -> bytes:
    return keccak256(
        encode(
            ["bytes32", "address", "uint256", "uint256"],
            [DELEGATION_TYPEHASH, normalize_address(delegatee), int(nonce), int(expiry)],
        )
    )


def typed_data_digest(*, domain_sep: bytes, struct_hash: bytes) -> bytes:
    if len(domain_sep) != 32 or len(struct_hash) != 32:
        raise ValueError("domain separator and struct hash must be 32 bytes")
    return keccak256(b"\x19\x01" + bytes(domain_sep) + bytes(struct_hash))


def permit_digest(
    *,
    name: str,
    chain_id: int,
    verifying_contract: str,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> bytes:
    return typed_data_digest(
        domain_sep=domain_separator(name=name, chain_id=chain_id, verifying_contract=verifying_contract),
        struct_hash=permit_struct_hash(owner=owner, spender=spender, value=value, nonce=nonce, deadline=deadline),
    )


def delegation_digest(
    *,
    name: str,
    chain_id: int,
    verifying_contract: str,
    delegatee: str,
    nonce: int,
    expiry: int,
) -> bytes:
    return typed_data_digest(
        domain_sep=domain_separator(name=name, chain_id=chain_id, verifying_contract=verifying_contract),
        struct_hash=delegation_struct_hash(delegatee=delegatee, nonce=nonce, expiry=expiry),
    )
