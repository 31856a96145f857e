"""
XMRSCAN Errors
Every failure of a scan is raised as a ScanError subclass.
"""


class ScanError(Exception):
    """Base class for scan failures."""
    pass


class InvalidKeyEncoding(ScanError):
    """Secret key string is malformed or not a reduced scalar."""
    pass


class InvalidPoint(ScanError):
    """Bytes do not decode to a point on the curve."""
    pass


class MissingTxPublicKey(ScanError):
    """Transaction carries no public key in its extra field."""

    def __init__(self, txid: str):
        self.txid = txid
        super().__init__(f"Cant get public key of tx with hash: {txid}")


class TransactionNotFound(ScanError):
    """Transaction store has no transaction with the given hash."""

    def __init__(self, txid: str):
        self.txid = txid
        super().__init__(f"Cant find transaction with hash: {txid}")


class UnsupportedOutputType(ScanError):
    """Output target is not a one-time key."""
    pass


class UnsupportedInputType(ScanError):
    """Input is neither a key input nor a coinbase input."""
    pass


class MalformedTransaction(ScanError):
    """Transaction document cannot be parsed."""
    pass
