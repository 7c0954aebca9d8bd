"""
The proof-of-payment (PoP) artifact.

A PoP has the exact wire format of a Bitcoin transaction but can never be
mined: its lock-time is the highest block height (499999999) and every input
has sequence 0 so that lock-time is enforced. It spends the same outpoints as
the payment it proves, in the same order, and has a single zero-value output

    OP_RETURN 0x01 0x00 <txid to prove, 32 bytes> <nonce>

The Pop class wraps a ledger Transaction instead of extending it; use
Pop.from_transaction / Pop.to_transaction to cross between the two.
"""

from typing import List, Optional

from .config import NONCE_LENGTH, OP_RETURN, POP_LOCK_TIME, POP_SEQUENCE, POP_VERSION, TXID_LENGTH
from .errors import IllegalInput
from .ledger import Transaction, TxIn, TxOut

TXID_OFFSET = 1 + len(POP_VERSION)
NONCE_OFFSET = TXID_OFFSET + TXID_LENGTH


def pop_output_script(txid_to_prove: bytes, nonce: bytes) -> bytes:
    return bytes([OP_RETURN]) + POP_VERSION + txid_to_prove + nonce


def check_nonce(nonce: Optional[bytes], nonce_length: int = NONCE_LENGTH) -> bytes:
    if nonce is None:
        raise IllegalInput("nonce must not be None")
    if len(nonce) != nonce_length:
        raise IllegalInput(f"nonce must be exactly {nonce_length} bytes, got {len(nonce)}")
    return bytes(nonce)


class Pop:
    def __init__(self, transaction: Transaction):
        self._tx = transaction

    # ------------------------------
    # Construction / conversion
    # ------------------------------
    @staticmethod
    def build(payment_bytes: bytes, nonce: bytes, nonce_length: int = NONCE_LENGTH) -> "Pop":
        """
        Build an unsigned PoP for the serialized payment transaction.
        Raises TransactionDecodeError for bad payment bytes and IllegalInput
        for a missing or wrongly sized nonce.
        """
        tx = Transaction.parse(payment_bytes)
        nonce = check_nonce(nonce, nonce_length)
        txid_to_prove = tx.txid

        tx.lock_time = POP_LOCK_TIME
        for inp in tx.inputs:
            inp.sequence = POP_SEQUENCE
            # the payment's signatures don't cover the PoP
            inp.script_sig = b""
        tx.outputs = [TxOut(0, pop_output_script(txid_to_prove, nonce))]
        return Pop(tx)

    @staticmethod
    def from_bytes(raw: bytes) -> "Pop":
        return Pop(Transaction.parse(raw))

    @staticmethod
    def from_transaction(tx: Transaction) -> "Pop":
        return Pop(tx)

    def to_transaction(self) -> Transaction:
        """An independent copy as a plain transaction."""
        return self._tx.clone()

    @property
    def transaction(self) -> Transaction:
        """The wrapped transaction itself; signing and validation connect its inputs."""
        return self._tx

    def serialize(self) -> bytes:
        return self._tx.serialize()

    def to_hex(self) -> str:
        return self._tx.to_hex()

    # ------------------------------
    # Read-only view
    # ------------------------------
    @property
    def txid(self) -> bytes:
        return self._tx.txid

    @property
    def version(self) -> int:
        return self._tx.version

    @property
    def lock_time(self) -> int:
        return self._tx.lock_time

    @property
    def inputs(self) -> List[TxIn]:
        return list(self._tx.inputs)

    @property
    def outputs(self) -> List[TxOut]:
        return list(self._tx.outputs)

    @property
    def output_script(self) -> Optional[bytes]:
        """Script of the single PoP output, None if the output count is not 1."""
        if len(self._tx.outputs) != 1:
            return None
        return self._tx.outputs[0].script_pubkey

    @property
    def txid_to_prove(self) -> Optional[bytes]:
        script = self.output_script
        if script is None or len(script) < NONCE_OFFSET:
            return None
        return script[TXID_OFFSET:NONCE_OFFSET]

    @property
    def nonce(self) -> Optional[bytes]:
        script = self.output_script
        if script is None or len(script) < NONCE_OFFSET:
            return None
        return script[NONCE_OFFSET:]

    def __eq__(self, other) -> bool:
        return isinstance(other, Pop) and self.serialize() == other.serialize()

    def __repr__(self) -> str:
        return f"Pop(txid={self.txid.hex()}, inputs={len(self._tx.inputs)})"
