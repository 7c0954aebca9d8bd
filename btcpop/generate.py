"""
Proving side: turn a payment transaction into a signed PoP.

    gen = PopGenerator()
    pop = gen.create_pop(payment, nonce)
    gen.sign_pop(pop, wallet, decryption_key)
"""

import logging
from typing import Optional

from .config import NONCE_LENGTH
from .errors import ConnectError, GenerationError, IllegalInput, KeyCrypterError, LedgerError, SigningError
from .ledger import Transaction, connect_input
from .pop import Pop
from .wallet import Wallet

log = logging.getLogger(__name__)


class PopGenerator:
    def __init__(self, nonce_length: int = NONCE_LENGTH):
        self.nonce_length = nonce_length

    def create_pop(self, transaction: Transaction, nonce: bytes) -> Pop:
        """
        Create an unsigned PoP for a payment whose inputs are all connected to
        their funding transactions. The PoP inputs are connected to the same
        funding transactions so it can be signed.

        Raises TypeError if transaction is None and GenerationError if the PoP
        can't be built or the payment is not fully connected.
        """
        if transaction is None:
            raise TypeError("transaction must not be None")
        try:
            pop = Pop.build(transaction.serialize(), nonce, self.nonce_length)
        except (IllegalInput, LedgerError) as e:
            raise GenerationError(f"could not create PoP: {e}") from e

        for index, inp in enumerate(transaction.inputs):
            if inp.funding_tx is None:
                raise GenerationError("transaction to prove is not fully connected")
            try:
                connect_input(pop.transaction, index, inp.funding_tx)
            except ConnectError as e:
                raise GenerationError(f"could not connect PoP input {index}: {e}") from e
        log.debug("created PoP for %s with %d inputs", transaction.txid_hex, len(transaction.inputs))
        return pop

    def sign_pop(self, pop: Pop, wallet: Wallet, decryption_key: Optional[bytes] = None) -> Pop:
        """
        Sign all PoP inputs with the wallet, exactly as an ordinary payment is
        signed. Returns the same, now signed, PoP.
        """
        try:
            wallet.sign_transaction(pop.transaction, decryption_key)
        except KeyCrypterError as e:
            raise SigningError(f"couldn't sign PoP: {e}", bad_decryption_key=True) from e
        except LedgerError as e:
            raise SigningError(f"could not sign PoP: {e}") from e
        return pop
