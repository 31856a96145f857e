"""
XMRSCAN Daemon RPC Client
Fetches transactions from a node's HTTP RPC interface.
"""

import logging
from typing import Any, Dict, List, Iterable

import requests

from xmrscan.errors import ScanError, TransactionNotFound, MalformedTransaction
from xmrscan.store import TransactionStore
from xmrscan.transaction import Transaction
import config

logger = logging.getLogger(__name__)


class DaemonError(ScanError):
    """Node could not be reached or answered with an HTTP error."""
    pass


class DaemonResponseError(DaemonError):
    """Node answered with an RPC error."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class DaemonClient(TransactionStore):
    """
    Transaction store backed by a running node.

    Uses the /get_transactions endpoint with decode_as_json so that
    transactions arrive in the node's JSON representation.
    """

    def __init__(
        self,
        url: str = None,
        timeout: int = config.HTTP_TIMEOUT,
        batch_size: int = config.RPC_BATCH_SIZE,
        session: requests.Session = None,
    ):
        """
        Initialize daemon client.

        Args:
            url: Node RPC base URL
            timeout: Request timeout in seconds
            batch_size: Maximum hashes per request
            session: Optional requests session
        """
        self.url = (url or config.DAEMON_URL).rstrip('/')
        self.timeout = timeout
        self.batch_size = batch_size
        self.session = session or requests.Session()

        # Request ID counter
        self._id = 0

    @classmethod
    def for_network(cls, network: str = 'mainnet', host: str = '127.0.0.1') -> 'DaemonClient':
        """Create client for the default RPC port of a network."""
        return cls(url=config.get_daemon_url(network, host))

    def _request(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded response."""
        url = f"{self.url}{path}"

        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise DaemonError(f"Request to {url} timed out") from e
        except requests.exceptions.ConnectionError as e:
            raise DaemonError(f"Cannot connect to node at {self.url}") from e
        except requests.exceptions.RequestException as e:
            raise DaemonError(f"Connection error: {e}") from e

        if resp.status_code != 200:
            raise DaemonError(f"HTTP error: {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise DaemonError(f"Invalid JSON response: {e}") from e

    def json_rpc(self, method: str, params: Dict[str, Any] = None) -> Any:
        """Call a method on the /json_rpc endpoint."""
        self._id += 1
        result = self._request('/json_rpc', {
            'jsonrpc': '2.0',
            'id': self._id,
            'method': method,
            'params': params or {},
        })

        if result.get('error') is not None:
            error = result['error']
            raise DaemonResponseError(error.get('code', -1), error.get('message', 'Unknown error'))

        return result.get('result')

    def get_height(self) -> int:
        """Get current blockchain height."""
        return self.json_rpc('get_block_count')['count']

    def get_transactions(self, txids: List[str]) -> Dict[str, Transaction]:
        """
        Fetch a set of transactions in one request.

        Raises:
            TransactionNotFound: If the node misses any of them
        """
        result = self._request('/get_transactions', {
            'txs_hashes': list(txids),
            'decode_as_json': True,
        })

        if result.get('status') != 'OK':
            raise DaemonError(f"get_transactions failed: {result.get('status')}")

        missed = result.get('missed_tx') or []
        if missed:
            raise TransactionNotFound(missed[0])

        found = {}
        for entry in result.get('txs', []):
            txid = entry.get('tx_hash')
            if not txid or 'as_json' not in entry:
                raise MalformedTransaction(f"Incomplete transaction entry: {entry}")
            found[txid] = Transaction.from_daemon_json(txid, entry['as_json'])

        for txid in txids:
            if txid not in found:
                raise TransactionNotFound(txid)

        logger.debug(f"Fetched {len(found)} transactions from {self.url}")
        return found

    def fetch(self, txid: str) -> Transaction:
        return self.get_transactions([txid])[txid]

    def fetch_many(self, txids: Iterable[str]) -> List[Transaction]:
        """Fetch transactions in batches, keeping the given order."""
        txids = list(txids)
        found: Dict[str, Transaction] = {}
        for start in range(0, len(txids), self.batch_size):
            found.update(self.get_transactions(txids[start:start + self.batch_size]))
        return [found[txid] for txid in txids]
