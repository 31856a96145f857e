"""
XMRSCAN Transaction Stores
Sources of already-published transactions, looked up by hash.
"""

import os
import json
import logging
from typing import List, Dict, Optional, Iterable
from threading import Lock

from .errors import TransactionNotFound, MalformedTransaction
from .transaction import Transaction
import config

logger = logging.getLogger(__name__)


class TransactionStore:
    """Interface: fetch(txid) returns the transaction or raises TransactionNotFound."""

    def fetch(self, txid: str) -> Transaction:
        raise NotImplementedError

    def fetch_many(self, txids: Iterable[str]) -> List[Transaction]:
        """Fetch several transactions, in the given order."""
        return [self.fetch(txid) for txid in txids]


class MemoryTransactionStore(TransactionStore):
    """Transactions held in a dictionary."""

    def __init__(self, transactions: Optional[Iterable[Transaction]] = None):
        self.transactions: Dict[str, Transaction] = {}
        for tx in transactions or []:
            self.add(tx)

    def add(self, tx: Transaction):
        self.transactions[tx.txid] = tx

    def fetch(self, txid: str) -> Transaction:
        try:
            return self.transactions[txid]
        except KeyError:
            raise TransactionNotFound(txid)

    def __len__(self) -> int:
        return len(self.transactions)

    @classmethod
    def from_file(cls, filepath: str) -> 'MemoryTransactionStore':
        """
        Load transactions from a JSON file.

        The file holds either a list of transaction dictionaries or an
        object with a "transactions" list.
        """
        with open(filepath, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise MalformedTransaction(f"Invalid transaction file {filepath}: {e}")

        if isinstance(data, dict):
            data = data.get('transactions', [])

        store = cls(Transaction.from_dict(tx_data) for tx_data in data)
        logger.info(f"Loaded {len(store)} transactions from {filepath}")
        return store


class JsonTransactionStore(TransactionStore):
    """One <txid>.json file per transaction in a directory."""

    def __init__(self, data_dir: str = None):
        self.data_dir = data_dir or config.get_tx_dir()
        self.lock = Lock()

    def _path(self, txid: str) -> str:
        if not txid or any(c not in '0123456789abcdefABCDEF' for c in txid):
            raise TransactionNotFound(txid)
        return os.path.join(self.data_dir, f"{txid.lower()}.json")

    def save(self, tx: Transaction):
        """Save a transaction document."""
        with self.lock:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(self._path(tx.txid), 'w') as f:
                json.dump(tx.to_dict(), f)

    def fetch(self, txid: str) -> Transaction:
        path = self._path(txid)
        if not os.path.exists(path):
            raise TransactionNotFound(txid)

        with open(path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise MalformedTransaction(f"Corrupt transaction file {path}: {e}")

        tx = Transaction.from_dict(data)
        if str(tx.txid).lower() != txid.lower():
            raise MalformedTransaction(f"File {path} holds transaction {tx.txid}")
        return tx

    def list_txids(self) -> List[str]:
        """List hashes of stored transactions."""
        if not os.path.isdir(self.data_dir):
            return []
        return sorted(f[:-5] for f in os.listdir(self.data_dir) if f.endswith('.json'))
