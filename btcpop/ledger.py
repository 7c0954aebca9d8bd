"""
Minimal legacy Bitcoin transaction engine.

Covers what proof-of-payment needs from a ledger library:
  - transaction codec (legacy, non-segwit wire format) and txid
  - structural self-verification
  - connecting inputs to the transactions that fund them
  - legacy SIGHASH_ALL signature hashes, P2PKH signing and verification

Transaction ids are kept in display order (byte-reversed double SHA-256),
the same order used by block explorers and by the PoP output script. They are
reversed only on the wire, inside outpoints.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from bitsv.utils import int_to_varint
from ecdsa import BadSignatureError, MalformedPointError
from ecdsa.der import UnexpectedDER
from ecdsa.util import sigdecode_der

from .config import MAX_MONEY
from .crypto import dbl_sha256, h160, load_verifying_key, priv_to_pub_compressed, sign_digest
from .errors import ConnectError, TransactionDecodeError, VerificationError

log = logging.getLogger(__name__)

SIGHASH_ALL = 0x01
SEQUENCE_FINAL = 0xffffffff
MAX_TX_SIZE = 1000000
NULL_TXID = b"\x00" * 32
NULL_INDEX = 0xffffffff

OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_DUP = 0x76
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xa9
OP_CHECKSIG = 0xac


# ------------------------------
# Little-endian helpers
# ------------------------------
def le32(i: int) -> bytes:
    return (i & 0xffffffff).to_bytes(4, "little")

def le64(i: int) -> bytes:
    return i.to_bytes(8, "little", signed=True)

def varbytes(b: bytes) -> bytes:
    return int_to_varint(len(b)) + b


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def remaining(self) -> int:
        return len(self.data) - self.pos

    def read(self, n: int) -> bytes:
        if n > self.remaining():
            raise TransactionDecodeError(f"unexpected end of data at offset {self.pos} (need {n} bytes)")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def uint(self, n: int) -> int:
        return int.from_bytes(self.read(n), "little")

    def sint(self, n: int) -> int:
        return int.from_bytes(self.read(n), "little", signed=True)

    def varint(self) -> int:
        prefix = self.uint(1)
        if prefix < 0xfd:
            return prefix
        if prefix == 0xfd:
            return self.uint(2)
        if prefix == 0xfe:
            return self.uint(4)
        return self.uint(8)

    def varbytes(self) -> bytes:
        return self.read(self.varint())

    def count(self, min_item_size: int) -> int:
        n = self.varint()
        if n * min_item_size > self.remaining():
            raise TransactionDecodeError(f"item count {n} exceeds remaining data at offset {self.pos}")
        return n


# ------------------------------
# Data model
# ------------------------------
@dataclass(frozen=True)
class OutPoint:
    txid: bytes      # display order
    index: int

    def serialize(self) -> bytes:
        return self.txid[::-1] + le32(self.index)

    def is_null(self) -> bool:
        return self.txid == NULL_TXID and self.index == NULL_INDEX

    def __str__(self) -> str:
        return f"{self.txid.hex()}:{self.index}"


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return le64(self.value) + varbytes(self.script_pubkey)


@dataclass
class TxIn:
    outpoint: OutPoint
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    # the transaction holding the output this input spends, once connected
    funding_tx: Optional["Transaction"] = field(default=None, repr=False, compare=False)

    @property
    def connected_output(self) -> Optional[TxOut]:
        if self.funding_tx is None:
            return None
        return self.funding_tx.outputs[self.outpoint.index]

    def disconnect(self):
        self.funding_tx = None

    def serialize(self) -> bytes:
        return self.outpoint.serialize() + varbytes(self.script_sig) + le32(self.sequence)


@dataclass
class Transaction:
    version: int = 1
    inputs: List[TxIn] = field(default_factory=list)
    outputs: List[TxOut] = field(default_factory=list)
    lock_time: int = 0

    def serialize(self) -> bytes:
        parts = [self.version.to_bytes(4, "little", signed=True), int_to_varint(len(self.inputs))]
        parts.extend(i.serialize() for i in self.inputs)
        parts.append(int_to_varint(len(self.outputs)))
        parts.extend(o.serialize() for o in self.outputs)
        parts.append(le32(self.lock_time))
        return b"".join(parts)

    @staticmethod
    def parse(data: bytes) -> "Transaction":
        if data is None:
            raise TransactionDecodeError("no transaction data")
        r = _Reader(bytes(data))
        version = r.sint(4)
        inputs = []
        for _ in range(r.count(41)):
            txid = r.read(32)[::-1]
            index = r.uint(4)
            script_sig = r.varbytes()
            sequence = r.uint(4)
            inputs.append(TxIn(OutPoint(txid, index), script_sig, sequence))
        outputs = []
        for _ in range(r.count(9)):
            value = r.sint(8)
            outputs.append(TxOut(value, r.varbytes()))
        lock_time = r.uint(4)
        if r.remaining():
            raise TransactionDecodeError(f"{r.remaining()} trailing bytes after transaction")
        return Transaction(version=version, inputs=inputs, outputs=outputs, lock_time=lock_time)

    @staticmethod
    def from_hex(tx_hex: str) -> "Transaction":
        try:
            raw = bytes.fromhex(tx_hex)
        except ValueError as e:
            raise TransactionDecodeError(f"invalid transaction hex: {e}") from e
        return Transaction.parse(raw)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> bytes:
        return dbl_sha256(self.serialize())[::-1]

    @property
    def txid_hex(self) -> str:
        return self.txid.hex()

    def clone(self) -> "Transaction":
        """Independent structural copy; input connections are not carried over."""
        return Transaction.parse(self.serialize())

    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].outpoint.is_null()


# ------------------------------
# Scripts
# ------------------------------
def push_data(data: bytes) -> bytes:
    n = len(data)
    if n < OP_PUSHDATA1:
        return bytes([n]) + data
    if n <= 0xff:
        return bytes([OP_PUSHDATA1, n]) + data
    if n <= 0xffff:
        return bytes([OP_PUSHDATA2]) + n.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + n.to_bytes(4, "little") + data

def parse_pushes(script: bytes) -> List[bytes]:
    """Split a push-only script into its data items."""
    items = []
    r = _Reader(script)
    try:
        while r.remaining():
            op = r.uint(1)
            if 0 < op < OP_PUSHDATA1:
                items.append(r.read(op))
            elif op == 0:
                items.append(b"")
            elif op == OP_PUSHDATA1:
                items.append(r.read(r.uint(1)))
            elif op == OP_PUSHDATA2:
                items.append(r.read(r.uint(2)))
            elif op == OP_PUSHDATA4:
                items.append(r.read(r.uint(4)))
            else:
                raise VerificationError(f"non-push opcode 0x{op:02x} in script")
    except TransactionDecodeError as e:
        raise VerificationError(f"truncated push in script: {e}") from e
    return items

def p2pkh_script(pubkey_hash: bytes) -> bytes:
    return bytes([OP_DUP, OP_HASH160, 20]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])

def p2pkh_hash(script_pubkey: bytes) -> Optional[bytes]:
    """The pubkey hash of a P2PKH output script, None for any other script."""
    if (len(script_pubkey) == 25 and script_pubkey[:3] == bytes([OP_DUP, OP_HASH160, 20])
            and script_pubkey[23:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])):
        return script_pubkey[3:23]
    return None


# ------------------------------
# Engine operations
# ------------------------------
def self_verify(tx: Transaction):
    """Context-free structural checks. Raises VerificationError."""
    if not tx.inputs:
        raise VerificationError("transaction has no inputs")
    if not tx.outputs:
        raise VerificationError("transaction has no outputs")
    if len(tx.serialize()) > MAX_TX_SIZE:
        raise VerificationError("transaction larger than MAX_TX_SIZE")
    total = 0
    for o in tx.outputs:
        if o.value < 0:
            raise VerificationError("transaction output negative")
        if o.value > MAX_MONEY:
            raise VerificationError("transaction output value out of range")
        total += o.value
        if total > MAX_MONEY:
            raise VerificationError("total transaction output value out of range")
    seen = set()
    for i in tx.inputs:
        if i.outpoint in seen:
            raise VerificationError(f"duplicated outpoint {i.outpoint}")
        seen.add(i.outpoint)
    if tx.is_coinbase():
        if not 2 <= len(tx.inputs[0].script_sig) <= 100:
            raise VerificationError("coinbase script size out of range")
    elif any(i.outpoint.is_null() for i in tx.inputs):
        raise VerificationError("null outpoint in non-coinbase transaction")

def connect_input(tx: Transaction, index: int, funding_tx: Transaction):
    inp = tx.inputs[index]
    if funding_tx.txid != inp.outpoint.txid:
        raise ConnectError(f"transaction {funding_tx.txid_hex} does not fund outpoint {inp.outpoint}")
    if inp.outpoint.index >= len(funding_tx.outputs):
        raise ConnectError(f"outpoint {inp.outpoint} out of range, funding transaction has "
                           f"{len(funding_tx.outputs)} outputs")
    inp.funding_tx = funding_tx

def signature_hash(tx: Transaction, index: int, script_code: bytes, hash_type: int = SIGHASH_ALL) -> bytes:
    """Legacy (pre-segwit) signature hash. Only SIGHASH_ALL is supported."""
    if hash_type != SIGHASH_ALL:
        raise VerificationError(f"unsupported sighash type 0x{hash_type:02x}")
    if index >= len(tx.inputs):
        raise VerificationError(f"input index {index} out of range")
    stripped = Transaction(
        version=tx.version,
        inputs=[TxIn(i.outpoint, script_code if n == index else b"", i.sequence) for n, i in enumerate(tx.inputs)],
        outputs=list(tx.outputs),
        lock_time=tx.lock_time,
    )
    return dbl_sha256(stripped.serialize() + le32(hash_type))

def sign_input(tx: Transaction, index: int, priv: int, hash_type: int = SIGHASH_ALL):
    out = tx.inputs[index].connected_output
    if out is None:
        raise ConnectError(f"input {index} is not connected")
    digest = signature_hash(tx, index, out.script_pubkey, hash_type)
    sig = sign_digest(priv, digest) + bytes([hash_type])
    tx.inputs[index].script_sig = push_data(sig) + push_data(priv_to_pub_compressed(priv))

def verify_input(tx: Transaction, index: int):
    """Run the P2PKH spend check of one connected input. Raises VerificationError."""
    inp = tx.inputs[index]
    out = inp.connected_output
    if out is None:
        raise VerificationError(f"input {index} is not connected")
    pubkey_hash = p2pkh_hash(out.script_pubkey)
    if pubkey_hash is None:
        raise VerificationError(f"input {index} spends an unsupported output script")
    items = parse_pushes(inp.script_sig)
    if len(items) != 2 or not items[0]:
        raise VerificationError(f"input {index}: expected <sig> <pubkey> script")
    sig, pubkey = items
    if h160(pubkey) != pubkey_hash:
        raise VerificationError(f"input {index}: public key does not match output")
    digest = signature_hash(tx, index, out.script_pubkey, sig[-1])
    try:
        load_verifying_key(pubkey).verify_digest(sig[:-1], digest, sigdecode=sigdecode_der)
    except (BadSignatureError, UnexpectedDER, MalformedPointError) as e:
        log.debug("signature check failed on input %d: %r", index, e)
        raise VerificationError(f"input {index}: bad signature") from e
