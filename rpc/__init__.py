"""
XMRSCAN RPC Module
Node RPC access for fetching transactions.
"""

from .client import DaemonClient, DaemonError, DaemonResponseError

__all__ = [
    'DaemonClient',
    'DaemonError',
    'DaemonResponseError',
]
