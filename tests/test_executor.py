# tests/test_executor.py
from __future__ import annotations

import copy
import json
import logging

import pytest

from forth.crypto.sig import ZERO_ADDRESS
from forth.ledger.constants import INITIAL_SUPPLY
from forth.runtime.contract import TokenContract
from forth.runtime.errors import ApplyError
from forth.runtime.executor import ChainExecutor, ExecutorError
from forth.runtime.tx_types import TxEnvelope


def test_genesis_block(executor) -> None:
    assert executor.head.number == 0
    assert executor.pending_block_number == 1
    assert executor.block(0) is executor.head
    assert executor.block(1) is None
    assert executor.contracts() == []


def test_each_tx_mines_one_block(executor, forth, wallet, other0) -> None:
    start = executor.head.number
    receipt = forth.transfer(other0, 1)

    assert receipt.block_number == start + 1
    assert executor.head.number == start + 1
    assert executor.head.tx_hashes == (receipt.tx_hash,)
    assert executor.head.parent_hash == executor.block(start).hash
    assert executor.receipt(receipt.tx_hash) == receipt


def test_reverted_tx_rolls_back_but_consumes_nonce(executor, forth, wallet, other0) -> None:
    """A reverted tx is still mined and still bumps the sender's nonce.

    Nothing it touched before the failing check survives.
    """
    forth.approve(other0, 10)
    before = copy.deepcopy(executor.read_state()["contracts"])
    nonce_before = executor.tx_nonce(other0.address)
    head_before = executor.head.number

    # The allowance is spent before the zero-address check fails.
    receipt = executor.submit(
        TxEnvelope(
            tx_type="TRANSFER_FROM",
            signer=other0.address,
            to=forth.address,
            payload={"src": wallet.address, "to": ZERO_ADDRESS, "amount": 5},
        )
    )
    assert receipt.ok is False
    assert receipt.code == "zero_address"
    assert receipt.reason == "Forth::_transferTokens: cannot transfer to the zero address"
    assert receipt.events == []

    assert executor.read_state()["contracts"] == before
    assert forth.allowance(wallet, other0) == 10
    assert executor.tx_nonce(other0.address) == nonce_before + 1
    assert executor.head.number == head_before + 1
    assert executor.head.tx_hashes == (receipt.tx_hash,)


def test_failed_permit_does_not_consume_permit_nonce(executor, forth, wallet, other0) -> None:
    before = copy.deepcopy(executor.read_state()["contracts"])
    receipt = executor.submit(
        TxEnvelope(
            tx_type="PERMIT",
            signer=other0.address,
            to=forth.address,
            payload={
                "owner": wallet.address,
                "spender": other0.address,
                "value": 1,
                "deadline": 2**256 - 1,
                "v": 27,
                "r": "0x" + "11" * 32,
                "s": "0x" + "22" * 32,
            },
        )
    )
    assert receipt.ok is False
    assert executor.read_state()["contracts"] == before


def test_bad_nonce_is_rejected_without_mining(executor, forth, wallet, other0) -> None:
    head = executor.head.number
    expected = executor.tx_nonce(wallet.address)

    with pytest.raises(ApplyError) as ei:
        executor.submit(
            TxEnvelope(
                tx_type="TRANSFER",
                signer=wallet.address,
                to=forth.address,
                payload={"to": other0.address, "amount": 1},
                nonce=expected + 5,
            )
        )
    assert ei.value.reason == "bad_nonce"
    assert ei.value.details == {"expected": expected, "got": expected + 5}
    assert executor.head.number == head

    receipt = executor.submit(
        TxEnvelope(
            tx_type="TRANSFER",
            signer=wallet.address,
            to=forth.address,
            payload={"to": other0.address, "amount": 1},
            nonce=expected,
        )
    )
    assert receipt.ok is True
    assert receipt.nonce == expected


def test_bad_signer_is_rejected(executor, forth) -> None:
    with pytest.raises(ApplyError) as ei:
        executor.submit({"tx_type": "TRANSFER", "signer": "alice", "to": forth.address, "payload": {}})
    assert ei.value.reason == "bad_signer"


def test_unknown_contract_and_tx_type(executor, forth, wallet, other0) -> None:
    receipt = executor.submit(
        TxEnvelope(tx_type="TRANSFER", signer=wallet.address, to=other0.address, payload={"to": other0.address, "amount": 1})
    )
    assert receipt.ok is False
    assert receipt.reason == "contract_not_deployed"

    receipt = executor.submit(TxEnvelope(tx_type="SELFDESTRUCT", signer=wallet.address, to=forth.address, payload={}))
    assert receipt.ok is False
    assert receipt.code == "tx_unimplemented"

    receipt = executor.submit(TxEnvelope(tx_type="TRANSFER", signer=wallet.address, to=forth.address, payload={"to": "nope", "amount": 1}))
    assert receipt.ok is False
    assert receipt.reason == "bad_to"

    with pytest.raises(ExecutorError):
        executor.view(other0.address)


def test_contract_address_is_predictable(executor, wallet) -> None:
    predicted = executor.contract_address(wallet.address)
    now = executor.head.timestamp
    forth = TokenContract.deploy(executor, deployer=wallet, account=wallet, minter=wallet, minting_allowed_after=now)

    assert forth.address == predicted
    assert executor.contracts() == [predicted]
    assert executor.contract_address(wallet.address) != predicted


def test_deploy_receipt_events(executor, wallet, other0) -> None:
    now = executor.head.timestamp
    receipt = executor.deploy_token(
        deployer=wallet.address,
        account=other0.address,
        minter=wallet.address,
        minting_allowed_after=now + 10,
    )
    assert receipt.ok is True
    assert receipt.to == receipt.result["contract_address"]
    assert [e["event"] for e in receipt.events] == ["Transfer", "MinterChanged"]
    assert executor.view(receipt.to).balance_of(other0.address) == INITIAL_SUPPLY


def test_constructor_rejects_minting_before_deployment(executor, wallet) -> None:
    now = executor.head.timestamp
    with pytest.raises(ApplyError) as ei:
        TokenContract.deploy(executor, deployer=wallet, account=wallet, minter=wallet, minting_allowed_after=now - 1)
    assert ei.value.reason == "Forth::constructor: minting can only begin after deployment"
    assert executor.contracts() == []
    assert executor.tx_nonce(wallet.address) == 1


def test_mine_block_moves_time_forward(executor) -> None:
    t0 = executor.head.timestamp
    blk = executor.mine_block(t0 + 100)
    assert blk.timestamp == t0 + 100

    # Time continues from the new offset.
    assert executor.mine_block().timestamp == t0 + 100

    with pytest.raises(ExecutorError):
        executor.mine_block(t0)


def test_chain_time_follows_clock() -> None:
    now = [1_000]
    ex = ChainExecutor(clock=lambda: now[0])
    assert ex.head.timestamp == 1_000

    now[0] = 1_050
    assert ex.mine_block().timestamp == 1_050

    ex.mine_block(2_000)
    now[0] = 1_060
    assert ex.mine_block().timestamp == 2_010


def test_snapshot_and_revert(executor, forth, wallet, other0) -> None:
    sid = executor.snapshot()
    head = executor.head

    forth.transfer(other0, 50)
    executor.mine_block(head.timestamp + 1000)
    assert forth.balance_of(other0) == 50

    executor.revert(sid)
    assert forth.balance_of(other0) == 0
    assert executor.head == head
    assert executor.tx_nonce(wallet.address) == 1

    # The snapshot stays usable after a revert.
    forth.transfer(other0, 1)
    executor.revert(sid)
    assert forth.balance_of(other0) == 0

    with pytest.raises(ExecutorError):
        executor.revert(sid + 100)


def test_chain_id_must_be_positive() -> None:
    with pytest.raises(ExecutorError):
        ChainExecutor(chain_id=0)


def test_receipt_json_shape(executor, forth, wallet, other0) -> None:
    ok = forth.transfer(other0, 1).to_json()
    assert ok["ok"] is True
    assert "error" not in ok

    bad = executor.submit(TxEnvelope(tx_type="BURN", signer=other0.address, to=forth.address, payload={"amount": 2})).to_json()
    assert bad["ok"] is False
    assert bad["error"]["reason"] == "Forth::_burn: amount exceeds balance"


def test_call_by_contract_function_name(executor, forth, wallet, other0) -> None:
    forth.approve(other0, 3)

    assert executor.call(forth.address, "totalSupply") == INITIAL_SUPPLY
    assert executor.call(forth.address, "balanceOf", wallet.address) == INITIAL_SUPPLY
    assert executor.call(forth.address, "allowance", wallet.address, other0.address) == 3
    assert executor.call(forth.address, "balance_of", other0.address) == 0
    assert executor.call(forth.address, "DOMAIN_SEPARATOR") == forth.domain_separator()

    with pytest.raises(ExecutorError):
        executor.call(forth.address, "balances")
    with pytest.raises(ExecutorError):
        executor.call(forth.address, "__class__")


def test_fractional_amounts_are_rejected_not_truncated(executor, forth, wallet, other0) -> None:
    receipt = executor.submit(
        TxEnvelope(tx_type="TRANSFER", signer=wallet.address, to=forth.address, payload={"to": other0.address, "amount": 1.7})
    )
    assert receipt.ok is False
    assert receipt.code == "invalid_payload"
    assert receipt.reason == "bad_amount"
    assert forth.balance_of(other0) == 0

    receipt = executor.submit(
        TxEnvelope(
            tx_type="PERMIT",
            signer=wallet.address,
            to=forth.address,
            payload={
                "owner": wallet.address,
                "spender": other0.address,
                "value": 1,
                "deadline": 1e12,
                "v": 27,
                "r": "0x" + "11" * 32,
                "s": "0x" + "22" * 32,
            },
        )
    )
    assert receipt.ok is False
    assert receipt.reason == "bad_deadline"

    # Integer-valued strings are still accepted.
    receipt = executor.submit(
        TxEnvelope(tx_type="TRANSFER", signer=wallet.address, to=forth.address, payload={"to": other0.address, "amount": "0x10"})
    )
    assert receipt.ok is True
    assert forth.balance_of(other0) == 16


def test_deploy_rejects_out_of_range_mint_params(executor, wallet) -> None:
    now = executor.head.timestamp
    base = {"minting_allowed_after": now + 60}

    for extra, reason in (
        ({"mint_cap": -5}, "bad_mint_cap"),
        ({"mint_cap": 101}, "bad_mint_cap"),
        ({"minimum_time_between_mints": -100}, "bad_minimum_time_between_mints"),
        ({"initial_supply": -1}, "bad_initial_supply"),
        ({"mint_cap": 2.5}, "bad_mint_cap"),
    ):
        receipt = executor.submit(TxEnvelope(tx_type="DEPLOY", signer=wallet.address, payload={**base, **extra}))
        assert receipt.ok is False, extra
        assert receipt.code == "invalid_payload"
        assert receipt.reason == reason

    assert executor.contracts() == []

    receipt = executor.submit(TxEnvelope(tx_type="DEPLOY", signer=wallet.address, payload={**base, "mint_cap": 100, "minimum_time_between_mints": 0}))
    assert receipt.ok is True
    assert executor.view(receipt.to).mint_cap == 100


def test_failures_are_logged_as_warnings(executor, forth, wallet, other0, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="forth.executor")

    with pytest.raises(ApplyError) as ei:
        forth.connect(other0).burn(1)
    assert ei.value.is_revert
    assert str(ei.value) == "Forth::_burn: amount exceeds balance"

    receipt = executor.submit(
        TxEnvelope(tx_type="TRANSFER", signer=wallet.address, to=forth.address, payload={"to": other0.address, "amount": "lots"})
    )
    assert not ApplyError.from_receipt(receipt).is_revert

    lines = [json.loads(r.getMessage()) for r in caplog.records if r.name == "forth.executor" and r.levelno == logging.WARNING]
    assert [line["event"] for line in lines] == ["tx_reverted", "tx_rejected"]
    assert lines[0]["reason"] == "Forth::_burn: amount exceeds balance"
    assert lines[1]["reason"] == "bad_amount"
