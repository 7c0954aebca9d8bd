"""
In-memory and JSON file transaction stores.
"""
import json

from btcpop.generate import PopGenerator
from btcpop.store import JsonFileTransactionStore, MemoryTransactionStore
from btcpop.validate import PopValidator


def test_memory_store(setup):
    store = MemoryTransactionStore()
    assert store.get_transaction(setup.payment.txid) is None
    store.add(setup.payment)
    assert store.get_transaction(setup.payment.txid) is setup.payment
    assert store.get_transaction(bytearray(setup.payment.txid)) is setup.payment
    assert len(store) == 1


def test_json_store_round_trip(setup, tmp_path):
    store = JsonFileTransactionStore(str(tmp_path / "txs"))
    for tx in setup.fundings:
        store.add(tx)
    assert len(store) == 2

    reopened = JsonFileTransactionStore(str(tmp_path / "txs"))
    tx = reopened.get_transaction(setup.fundings[1].txid)
    assert tx == setup.fundings[1]
    assert reopened.get_transaction(setup.fundings[1].txid) is tx
    assert reopened.get_transaction(setup.payment.txid) is None


def test_json_store_file_layout(setup, tmp_path):
    store = JsonFileTransactionStore(str(tmp_path))
    store.add(setup.payment)
    data = json.loads((tmp_path / "transactions.json").read_text())
    assert data == {setup.payment.txid_hex: setup.payment.to_hex()}


def test_json_store_ignores_mismatching_entry(setup, tmp_path):
    (tmp_path / "transactions.json").write_text(json.dumps({
        setup.payment.txid_hex: setup.fundings[0].to_hex(),
    }))
    store = JsonFileTransactionStore(str(tmp_path))
    assert store.get_transaction(setup.payment.txid) is None


def test_json_store_empty_file(tmp_path, setup):
    (tmp_path / "transactions.json").write_text("")
    store = JsonFileTransactionStore(str(tmp_path))
    assert len(store) == 0
    assert store.get_transaction(setup.payment.txid) is None


def test_validate_against_json_store(setup, nonce, tmp_path):
    store = JsonFileTransactionStore(str(tmp_path))
    for tx in setup.fundings + [setup.payment]:
        store.add(tx)
    gen = PopGenerator()
    raw = gen.sign_pop(gen.create_pop(setup.payment, nonce), setup.wallet).serialize()

    validator = PopValidator(JsonFileTransactionStore(str(tmp_path)))
    assert validator.validate_bytes(raw, nonce).transaction.txid == setup.payment.txid
    assert not validator.validate_bytes(raw, bytes(6)).ok
