"""
XMRSCAN Core Module
View-key scanning: ownership of outputs, key images, spends and balance.
"""

from .errors import (
    ScanError,
    InvalidKeyEncoding,
    InvalidPoint,
    MissingTxPublicKey,
    TransactionNotFound,
    UnsupportedOutputType,
    UnsupportedInputType,
    MalformedTransaction,
)
from .crypto import generate_key_derivation, parse_secret_key
from .transaction import Transaction, ToKeyOutput, OtherOutput, ToKeyInput, GenInput, OtherInput
from .wallet import AccountKeys
from .scanner import scan_outputs, generate_key_image, check_spends
from .balance import BalanceAggregator, ScanState, ScanResult, ScanStatus, apply_transaction
from .store import TransactionStore, MemoryTransactionStore, JsonTransactionStore

__all__ = [
    'ScanError',
    'InvalidKeyEncoding',
    'InvalidPoint',
    'MissingTxPublicKey',
    'TransactionNotFound',
    'UnsupportedOutputType',
    'UnsupportedInputType',
    'MalformedTransaction',
    'generate_key_derivation',
    'parse_secret_key',
    'Transaction',
    'ToKeyOutput',
    'OtherOutput',
    'ToKeyInput',
    'GenInput',
    'OtherInput',
    'AccountKeys',
    'scan_outputs',
    'generate_key_image',
    'check_spends',
    'BalanceAggregator',
    'ScanState',
    'ScanResult',
    'ScanStatus',
    'apply_transaction',
    'TransactionStore',
    'MemoryTransactionStore',
    'JsonTransactionStore',
]
