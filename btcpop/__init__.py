"""
btcpop - Bitcoin proof-of-payment (PoP) requests, generation and validation.
"""

from .config import NONCE_LENGTH, POP_LOCK_TIME, Settings
from .errors import (
    GenerationError,
    IllegalInput,
    InvalidPop,
    LedgerError,
    PopError,
    SigningError,
)
from .generate import PopGenerator
from .ledger import OutPoint, Transaction, TxIn, TxOut
from .pop import Pop
from .request import PopRequest, PopRequestURI
from .sender import HttpPopSender, PopSender, SendResult
from .store import JsonFileTransactionStore, MemoryTransactionStore, TransactionStore
from .validate import PopValidator, ValidationResult
from .wallet import Wallet

__version__ = "0.1.0"
