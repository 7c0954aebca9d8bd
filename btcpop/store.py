"""
Transaction stores used by the validator to look up the proven transaction and
the transactions funding its inputs.

Lookups hand out the stored object itself, so input connections made during
validation stick to it. Share a store between concurrent validations only with
external locking.
"""

import json
import logging
import pathlib
from typing import Dict, Iterable, Optional

from .ledger import Transaction

log = logging.getLogger(__name__)


class TransactionStore:
    def get_transaction(self, txid: bytes) -> Optional[Transaction]:
        raise NotImplementedError


class MemoryTransactionStore(TransactionStore):
    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._txs: Dict[bytes, Transaction] = {}
        for tx in transactions:
            self.add(tx)

    def add(self, tx: Transaction):
        self._txs[tx.txid] = tx

    def get_transaction(self, txid: bytes) -> Optional[Transaction]:
        return self._txs.get(bytes(txid))

    def __len__(self) -> int:
        return len(self._txs)


class JsonFileTransactionStore(TransactionStore):
    """
    Minimal JSON-backed store.
    - directory: folder holding transactions.json (txid hex -> raw tx hex)
    Parsed transactions are cached so repeated lookups return the same object.
    """
    def __init__(self, directory: str):
        self.dir = pathlib.Path(directory)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.tx_file = self.dir / "transactions.json"
        if not self.tx_file.exists():
            self.tx_file.write_text(json.dumps({}))
        self._cache: Dict[bytes, Transaction] = {}

    def _load(self) -> Dict[str, str]:
        s = self.tx_file.read_text()
        return json.loads(s) if s else {}

    def _save(self, txs: Dict[str, str]):
        self.tx_file.write_text(json.dumps(txs, ensure_ascii=False, separators=(",", ":"), sort_keys=True))

    def add(self, tx: Transaction):
        txs = self._load()
        txs[tx.txid_hex] = tx.to_hex()
        self._save(txs)
        self._cache[tx.txid] = tx

    def get_transaction(self, txid: bytes) -> Optional[Transaction]:
        txid = bytes(txid)
        if txid in self._cache:
            return self._cache[txid]
        tx_hex = self._load().get(txid.hex())
        if tx_hex is None:
            return None
        tx = Transaction.from_hex(tx_hex)
        if tx.txid != txid:
            log.warning("stored transaction %s hashes to %s, ignoring", txid.hex(), tx.txid_hex)
            return None
        self._cache[txid] = tx
        return tx

    def __len__(self) -> int:
        return len(self._load())
