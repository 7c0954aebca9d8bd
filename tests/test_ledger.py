"""
Transaction codec, structural checks and P2PKH signing.
"""
import pytest

from btcpop.config import MAX_MONEY
from btcpop.crypto import dbl_sha256, sha256
from btcpop.errors import ConnectError, TransactionDecodeError, VerificationError
from btcpop.ledger import (
    OutPoint,
    Transaction,
    TxIn,
    TxOut,
    connect_input,
    parse_pushes,
    push_data,
    self_verify,
    signature_hash,
    varbytes,
    verify_input,
)

GENESIS_COINBASE_HEX = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff"
    "4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72"
    "206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff"
    "0100f2052a01000000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f"
    "61deb649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_COINBASE_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"


def simple_tx(**overrides) -> Transaction:
    fields = dict(
        inputs=[TxIn(OutPoint(sha256(b"a"), 0), b"\x51"), TxIn(OutPoint(sha256(b"b"), 3), b"\x51")],
        outputs=[TxOut(1000, b"\x51")],
    )
    fields.update(overrides)
    return Transaction(**fields)


# ------------------------------
# Codec
# ------------------------------
def test_parse_genesis_coinbase():
    tx = Transaction.from_hex(GENESIS_COINBASE_HEX)
    assert tx.version == 1
    assert tx.is_coinbase()
    assert tx.outputs[0].value == 5000000000
    assert tx.lock_time == 0
    assert tx.txid_hex == GENESIS_COINBASE_TXID
    assert tx.to_hex() == GENESIS_COINBASE_HEX
    self_verify(tx)


def test_txid_is_reversed_double_sha():
    tx = simple_tx()
    assert tx.txid == dbl_sha256(tx.serialize())[::-1]


def test_outpoint_txid_reversed_on_wire():
    txid = bytes(range(32))
    assert OutPoint(txid, 1).serialize() == txid[::-1] + b"\x01\x00\x00\x00"


def test_serialize_parse_round_trip():
    tx = simple_tx(version=2, lock_time=499999999)
    tx.inputs[1].sequence = 0
    parsed = Transaction.parse(tx.serialize())
    assert parsed == tx
    assert parsed.txid == tx.txid


def test_clone_is_independent_and_unconnected(setup):
    clone = setup.payment.clone()
    assert clone == setup.payment
    assert clone is not setup.payment
    assert all(i.funding_tx is None for i in clone.inputs)
    clone.lock_time = 5
    assert setup.payment.lock_time == 0


@pytest.mark.parametrize("n,prefix", [
    (0, b"\x00"),
    (0xfc, b"\xfc"),
    (0xfd, b"\xfd\xfd\x00"),
    (0x10000, b"\xfe\x00\x00\x01\x00"),
])
def test_varbytes_length_prefix(n, prefix):
    data = bytes(n)
    assert varbytes(data) == prefix + data


def test_parse_truncated():
    raw = simple_tx().serialize()
    with pytest.raises(TransactionDecodeError):
        Transaction.parse(raw[:-1])


def test_parse_trailing_bytes():
    with pytest.raises(TransactionDecodeError):
        Transaction.parse(simple_tx().serialize() + b"\x00")


def test_parse_absurd_input_count():
    with pytest.raises(TransactionDecodeError):
        Transaction.parse(b"\x01\x00\x00\x00\xfe\xff\xff\xff\xff")


def test_from_hex_rejects_non_hex():
    with pytest.raises(TransactionDecodeError):
        Transaction.from_hex("zz")


# ------------------------------
# Scripts
# ------------------------------
@pytest.mark.parametrize("size", [0, 1, 75, 76, 255, 256, 70000])
def test_push_data_round_trip(size):
    data = bytes([7]) * size
    assert parse_pushes(push_data(data)) == [data]


def test_parse_pushes_rejects_opcodes():
    with pytest.raises(VerificationError):
        parse_pushes(b"\x76\xa9")


def test_parse_pushes_rejects_truncated_push():
    with pytest.raises(VerificationError):
        parse_pushes(b"\x05ab")


# ------------------------------
# Structural checks
# ------------------------------
def test_self_verify_ok():
    self_verify(simple_tx())


@pytest.mark.parametrize("tx,message", [
    (simple_tx(inputs=[]), "no inputs"),
    (simple_tx(outputs=[]), "no outputs"),
    (simple_tx(outputs=[TxOut(-1, b"")]), "negative"),
    (simple_tx(outputs=[TxOut(MAX_MONEY + 1, b"")]), "out of range"),
    (simple_tx(outputs=[TxOut(MAX_MONEY, b""), TxOut(1, b"")]), "total"),
    (simple_tx(inputs=[TxIn(OutPoint(sha256(b"a"), 0)), TxIn(OutPoint(sha256(b"a"), 0))]), "duplicated"),
    (simple_tx(inputs=[TxIn(OutPoint(sha256(b"a"), 0)), TxIn(OutPoint(bytes(32), 0xffffffff))]), "null outpoint"),
    (simple_tx(inputs=[TxIn(OutPoint(bytes(32), 0xffffffff), b"\x01")]), "coinbase"),
])
def test_self_verify_failures(tx, message):
    with pytest.raises(VerificationError, match=message):
        self_verify(tx)


# ------------------------------
# Connecting and signatures
# ------------------------------
def test_payment_inputs_verify(setup):
    for i in range(len(setup.payment.inputs)):
        verify_input(setup.payment, i)


def test_connected_output(setup):
    inp = setup.payment.inputs[1]
    assert inp.connected_output == setup.fundings[1].outputs[0]
    inp.disconnect()
    assert inp.connected_output is None


def test_connect_wrong_transaction(setup):
    tx = setup.payment.clone()
    with pytest.raises(ConnectError):
        connect_input(tx, 0, setup.fundings[1])


def test_connect_index_out_of_range(setup):
    tx = setup.payment.clone()
    tx.inputs[0] = TxIn(OutPoint(setup.fundings[0].txid, 5))
    with pytest.raises(ConnectError):
        connect_input(tx, 0, setup.fundings[0])


def test_verify_unconnected_input(setup):
    tx = setup.payment.clone()
    with pytest.raises(VerificationError, match="not connected"):
        verify_input(tx, 0)


def test_verify_detects_changed_output(setup):
    setup.payment.outputs[0].value -= 1
    with pytest.raises(VerificationError, match="bad signature"):
        verify_input(setup.payment, 0)


def test_verify_detects_swapped_signatures(setup):
    tx = setup.payment
    tx.inputs[0].script_sig, tx.inputs[1].script_sig = tx.inputs[1].script_sig, tx.inputs[0].script_sig
    with pytest.raises(VerificationError, match="public key does not match"):
        verify_input(tx, 0)


def test_verify_rejects_empty_script(setup):
    setup.payment.inputs[0].script_sig = b""
    with pytest.raises(VerificationError):
        verify_input(setup.payment, 0)


def test_signature_hash_depends_on_index(setup):
    script = setup.fundings[0].outputs[0].script_pubkey
    assert signature_hash(setup.payment, 0, script) != signature_hash(setup.payment, 1, script)


def test_signature_hash_only_sighash_all(setup):
    with pytest.raises(VerificationError):
        signature_hash(setup.payment, 0, b"", 0x81)
