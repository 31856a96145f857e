"""
XMRSCAN Balance Aggregator
Drives the scanner over an ordered sequence of transactions.
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import List, Dict, Optional, Any, Iterable, FrozenSet, Tuple, Callable, Sequence, Mapping
from dataclasses import dataclass, field, replace
from concurrent.futures import ThreadPoolExecutor, ProcessPoolExecutor

from .crypto import generate_key_derivation
from .scanner import (
    OwnedOutput,
    SpentInput,
    SpendCheck,
    scan_outputs,
    generate_key_image,
    check_spends,
)
from .transaction import Transaction
from .wallet import AccountKeys
import config

logger = logging.getLogger(__name__)


class ScanStatus(Enum):
    """Aggregator lifecycle."""
    IDLE = 'idle'
    SCANNING = 'scanning'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class ScanState:
    """
    Key images known so far and the running balance.

    Never mutated in place: every step returns a new ScanState.
    image_origins maps each key image to (txid, output index) and is
    read-only; each state holds its own copy.
    """

    known_images: FrozenSet[bytes] = frozenset()
    running_balance: int = 0
    image_origins: Mapping[bytes, Tuple[str, int]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'known_images', frozenset(self.known_images))
        object.__setattr__(self, 'image_origins', MappingProxyType(dict(self.image_origins)))

    def with_images(self, images: Dict[bytes, Tuple[str, int]]) -> 'ScanState':
        """Return a state that also knows the given key images."""
        if not images:
            return self
        origins = dict(self.image_origins)
        origins.update(images)
        return replace(self, known_images=self.known_images | frozenset(images), image_origins=origins)

    def with_net(self, net: int) -> 'ScanState':
        """Return a state with net added to the running balance."""
        return replace(self, running_balance=self.running_balance + net)


@dataclass
class TransactionSummary:
    """Per-transaction scan record."""

    txid: str
    owned_outputs: List[OwnedOutput] = field(default_factory=list)
    spent_inputs: List[SpentInput] = field(default_factory=list)
    per_input: List[bool] = field(default_factory=list)
    received: int = 0
    spent: int = 0
    running_balance: int = 0

    @property
    def net(self) -> int:
        return self.received - self.spent

    @property
    def key_images(self) -> List[bytes]:
        return [out.key_image for out in self.owned_outputs]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'txid': self.txid,
            'owned_outputs': [out.to_dict() for out in self.owned_outputs],
            'spent_inputs': [inp.to_dict() for inp in self.spent_inputs],
            'received': self.received,
            'spent': self.spent,
            'net': self.net,
            'running_balance': self.running_balance,
        }


@dataclass
class ScanResult:
    """Final outcome of a completed scan."""

    running_balance: int
    summaries: List[TransactionSummary]
    known_images: FrozenSet[bytes]

    @property
    def total_received(self) -> int:
        return sum(s.received for s in self.summaries)

    @property
    def total_spent(self) -> int:
        return sum(s.spent for s in self.summaries)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'running_balance': self.running_balance,
            'total_received': self.total_received,
            'total_spent': self.total_spent,
            'transactions': [s.to_dict() for s in self.summaries],
            'key_images': sorted(image.hex() for image in self.known_images),
        }


# ============================================================================
# SCAN STEPS
# ============================================================================

def scan_received(tx: Transaction, keys: AccountKeys) -> List[OwnedOutput]:
    """
    Find owned outputs of one transaction and attach their key images.

    Depends on nothing but the transaction and the keys, so it can run in
    parallel across transactions.

    Raises:
        MissingTxPublicKey: If the transaction has no public key
        InvalidPoint: If the public key is not a curve point
    """
    tx_public_key = tx.require_public_key()
    derivation = generate_key_derivation(tx_public_key, keys.private_view)

    owned = scan_outputs(tx, derivation, keys.public_spend)
    for out in owned:
        out.key_image = generate_key_image(derivation, out.index, keys.private_spend, keys.public_spend)

    return owned


def _image_origins(txid: str, owned: List[OwnedOutput]) -> Dict[bytes, Tuple[str, int]]:
    return {out.key_image: (txid, out.index) for out in owned}


def _summarize(state: ScanState, tx: Transaction, owned: List[OwnedOutput],
               check: SpendCheck) -> Tuple[ScanState, TransactionSummary]:
    received = sum(out.amount for out in owned)
    state = state.with_net(received - check.spent_amount)

    summary = TransactionSummary(
        txid=tx.txid,
        owned_outputs=owned,
        spent_inputs=check.spent_inputs,
        per_input=check.per_input,
        received=received,
        spent=check.spent_amount,
        running_balance=state.running_balance,
    )
    return state, summary


def apply_transaction(state: ScanState, tx: Transaction,
                      keys: AccountKeys) -> Tuple[ScanState, TransactionSummary]:
    """
    Scan one transaction on top of a state.

    Key images of this transaction's owned outputs are added before its
    inputs are checked. The given state is left untouched; on error nothing
    is returned.

    Returns:
        Tuple of (new_state, summary)
    """
    owned = scan_received(tx, keys)
    state = state.with_images(_image_origins(tx.txid, owned))
    check = check_spends(tx, state.known_images)
    return _summarize(state, tx, owned, check)


def _run_ordered(fn: Callable, args_list: Sequence[tuple], workers: Optional[int],
                 use_processes: bool) -> List[Any]:
    """Run fn over args_list in an executor; results keep input order."""
    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor

    with executor_cls(max_workers=workers or None) as executor:
        futures = [executor.submit(fn, *args) for args in args_list]
        results = []
        try:
            for future in futures:
                results.append(future.result())
        except Exception:
            for future in futures:
                future.cancel()
            raise
    return results


# ============================================================================
# AGGREGATOR
# ============================================================================

class BalanceAggregator:
    """
    Scan session for one account.

    Idle -> Scanning -> Done, or Failed on the first error. A failed or
    unfinished session never exposes its balance as a result.
    """

    def __init__(self, keys: AccountKeys, state: Optional[ScanState] = None):
        self.keys = keys
        self.state = state or ScanState()
        self.status = ScanStatus.IDLE
        self.summaries: List[TransactionSummary] = []
        self.error: Optional[Exception] = None

    def _start(self):
        if self.status in (ScanStatus.DONE, ScanStatus.FAILED):
            raise RuntimeError(f"Scan session already {self.status.value}")
        self.status = ScanStatus.SCANNING

    def _fail(self, error: Exception):
        self.status = ScanStatus.FAILED
        self.error = error
        logger.error(f"Scan failed: {error}")

    def feed(self, tx: Transaction) -> TransactionSummary:
        """
        Process the next transaction in ledger order.

        Returns:
            Summary of the transaction
        """
        self._start()
        try:
            state, summary = apply_transaction(self.state, tx, self.keys)
        except Exception as e:
            self._fail(e)
            raise

        self.state = state
        self.summaries.append(summary)
        logger.info(f"Scanned {tx.txid[:16]}...: received {summary.received}, "
                    f"spent {summary.spent}, balance {state.running_balance}")
        return summary

    def finish(self) -> ScanResult:
        """Close the session and return the result."""
        if self.status == ScanStatus.FAILED:
            raise RuntimeError("Scan session failed") from self.error
        self.status = ScanStatus.DONE
        return self.result

    @property
    def result(self) -> ScanResult:
        """Result of a completed scan."""
        if self.status != ScanStatus.DONE:
            raise RuntimeError(f"Scan not complete (status: {self.status.value})")
        return ScanResult(
            running_balance=self.state.running_balance,
            summaries=list(self.summaries),
            known_images=self.state.known_images,
        )

    def run(self, transactions: Iterable[Transaction]) -> ScanResult:
        """
        Scan transactions one by one in the given order.

        A spend is only recognised when the output it spends was seen in an
        earlier transaction (or earlier in the same one).
        """
        for tx in transactions:
            self.feed(tx)
        return self.finish()

    def run_batch(self, transactions: Iterable[Transaction], workers: Optional[int] = None,
                  use_processes: Optional[bool] = None) -> ScanResult:
        """
        Scan a batch in two phases.

        Phase 1 finds owned outputs and key images of every transaction in
        parallel. Phase 2 checks every transaction's inputs against the key
        images of the whole batch, so spends are recognised regardless of the
        order of transactions inside the batch.

        Args:
            transactions: Batch to scan
            workers: Executor size (default config.SCAN_WORKERS)
            use_processes: Use processes instead of threads
                (default config.SCAN_EXECUTOR == "process")
        """
        txs = list(transactions)
        if workers is None:
            workers = config.SCAN_WORKERS
        if use_processes is None:
            use_processes = config.SCAN_EXECUTOR == 'process'

        self._start()
        try:
            owned_per_tx = _run_ordered(scan_received, [(tx, self.keys) for tx in txs],
                                        workers, use_processes)

            images: Dict[bytes, Tuple[str, int]] = {}
            for tx, owned in zip(txs, owned_per_tx):
                images.update(_image_origins(tx.txid, owned))
            state = self.state.with_images(images)
            logger.info(f"Phase 1 complete: {len(txs)} transactions, {len(images)} key images")

            checks = _run_ordered(check_spends, [(tx, state.known_images) for tx in txs],
                                  workers, use_processes)
        except Exception as e:
            self._fail(e)
            raise

        summaries = []
        for tx, owned, check in zip(txs, owned_per_tx, checks):
            state, summary = _summarize(state, tx, owned, check)
            summaries.append(summary)

        self.state = state
        self.summaries.extend(summaries)
        return self.finish()

    def scan_hashes(self, store, txids: Iterable[str], batch: bool = False,
                    workers: Optional[int] = None) -> ScanResult:
        """
        Fetch transactions from a store, then scan them.

        Every hash is fetched once before scanning starts.

        Raises:
            TransactionNotFound: If the store misses a hash
        """
        unique = []
        for txid in txids:
            if txid in unique:
                logger.warning(f"Duplicate transaction hash ignored: {txid}")
                continue
            unique.append(txid)

        self._start()
        try:
            txs = store.fetch_many(unique)
        except Exception as e:
            self._fail(e)
            raise

        if batch:
            return self.run_batch(txs, workers=workers)
        return self.run(txs)
