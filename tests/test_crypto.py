from __future__ import annotations

import pytest

from forth.crypto.eip712 import DELEGATION_TYPEHASH, DOMAIN_TYPEHASH, PERMIT_TYPEHASH, typed_data_digest
from forth.crypto.sig import (
    ZERO_ADDRESS,
    contract_address,
    keccak256,
    normalize_address,
    recover_address,
    sign_digest,
)
from forth.testing.sigtools import deterministic_wallet


def test_keccak256_empty() -> None:
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_typehashes() -> None:
    assert DOMAIN_TYPEHASH.hex() == "8cad95687ba82c2ce50e74f7b754645e5117c3a5bec8151c0726d5857980a866"
    assert PERMIT_TYPEHASH.hex() == "6e71edae12b1b97f4d1f60370fef10105fa2faae0126114a169c64845d6126c9"
    assert DELEGATION_TYPEHASH.hex() == "e48329057bfd03d55e49b547132e39cffd9c1820ad7b9d4c5307691425d15adf"


def test_contract_address_vectors() -> None:
    deployer = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"
    assert contract_address(deployer=deployer, nonce=0).lower() == "0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d"
    assert contract_address(deployer=deployer, nonce=1).lower() == "0x343c43a37d37dff08ae8c4a11544c718abb4fcf8"


def test_normalize_address() -> None:
    w = deterministic_wallet(label="wallet")
    assert normalize_address(w.address.lower()) == w.address
    assert normalize_address(bytes.fromhex(w.address[2:])) == w.address
    with pytest.raises(ValueError):
        normalize_address("0x1234")
    with pytest.raises(ValueError):
        normalize_address(None)


def test_deterministic_wallet_is_stable() -> None:
    a = deterministic_wallet(label="alice")
    assert a == deterministic_wallet(label="alice")
    assert a.address != deterministic_wallet(label="bob").address


def test_sign_and_recover() -> None:
    w = deterministic_wallet(label="signer")
    digest = keccak256(b"forth")
    v, r, s = sign_digest(digest=digest, privkey=w.private_key)

    assert v in (27, 28)
    assert recover_address(digest=digest, v=v, r=r, s=s) == w.address
    # Flipping v recovers some other key.
    assert recover_address(digest=digest, v=55 - v, r=r, s=s) != w.address


def test_recover_malformed_signature_returns_zero_address() -> None:
    w = deterministic_wallet(label="signer")
    digest = keccak256(b"forth")
    v, r, s = sign_digest(digest=digest, privkey=w.private_key)

    assert recover_address(digest=digest, v=0, r=r, s=s) == ZERO_ADDRESS
    assert recover_address(digest=digest, v=v, r=0, s=s) == ZERO_ADDRESS
    assert recover_address(digest=digest, v=v, r="0xzz", s=s) == ZERO_ADDRESS
    assert recover_address(digest=digest, v=v, r=r, s="0x" + "ff" * 33) == ZERO_ADDRESS
    assert recover_address(digest=b"short", v=v, r=r, s=s) == ZERO_ADDRESS
    assert recover_address(digest=digest, v="x", r=r, s=s) == ZERO_ADDRESS


def test_typed_data_digest_rejects_bad_lengths() -> None:
    with pytest.raises(ValueError):
        typed_data_digest(domain_sep=b"\x00" * 31, struct_hash=b"\x00" * 32)
