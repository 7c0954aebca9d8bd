"""
Shared pytest fixtures: deterministic keys, funding transactions and a signed
payment to prove.
"""
from dataclasses import dataclass
from typing import List

import pytest

from btcpop.crypto import N, sha256
from btcpop.ledger import OutPoint, Transaction, TxIn, TxOut, connect_input
from btcpop.store import MemoryTransactionStore
from btcpop.wallet import Wallet

NONCE = bytes([1, 2, 3, 4, 5, 6])


def priv_from_seed(seed: bytes) -> int:
    return int.from_bytes(sha256(seed), "big") % N


def make_funding_tx(script_pubkey: bytes, value: int, seed: bytes) -> Transaction:
    """A transaction paying `value` to `script_pubkey`, spending a made-up outpoint."""
    return Transaction(
        inputs=[TxIn(OutPoint(sha256(seed), 0), b"\x51")],
        outputs=[TxOut(value, script_pubkey)],
    )


def make_payment(wallet: Wallet, fundings: List[Transaction], outputs: List[TxOut]) -> Transaction:
    tx = Transaction(inputs=[TxIn(OutPoint(f.txid, 0)) for f in fundings], outputs=outputs)
    for i, f in enumerate(fundings):
        connect_input(tx, i, f)
    wallet.sign_transaction(tx)
    return tx


@dataclass
class PaymentSetup:
    wallet: Wallet
    fundings: List[Transaction]
    payment: Transaction
    store: MemoryTransactionStore


@pytest.fixture
def payer_wallet() -> Wallet:
    wallet = Wallet()
    wallet.import_key(priv_from_seed(b"payer-1"))
    wallet.import_key(priv_from_seed(b"payer-2"))
    return wallet


@pytest.fixture
def payee_script() -> bytes:
    payee = Wallet()
    pub = payee.import_key(priv_from_seed(b"payee"))
    return payee.script_for(pub)


@pytest.fixture
def setup(payer_wallet: Wallet, payee_script: bytes) -> PaymentSetup:
    """Two funding transactions (1 and 2 BTC) and a signed 2-input payment of 3 BTC."""
    pub1, pub2 = payer_wallet.pubkeys()
    fundings = [
        make_funding_tx(payer_wallet.script_for(pub1), 100000000, b"funding-1"),
        make_funding_tx(payer_wallet.script_for(pub2), 200000000, b"funding-2"),
    ]
    payment = make_payment(payer_wallet, fundings, [TxOut(300000000, payee_script)])
    store = MemoryTransactionStore(fundings + [payment])
    return PaymentSetup(wallet=payer_wallet, fundings=fundings, payment=payment, store=store)


@pytest.fixture
def nonce() -> bytes:
    return NONCE


@pytest.fixture
def stranger_wallet() -> Wallet:
    """A wallet holding none of the payer's keys."""
    wallet = Wallet()
    wallet.import_key(priv_from_seed(b"stranger"))
    return wallet
