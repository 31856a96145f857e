"""
XMRSCAN Configuration
View-key scanning for CryptoNote ledgers
"""

import os

# ============================================================================
# CORE SPECIFICATIONS
# ============================================================================

COIN_NAME = "Monero"
COIN_TICKER = "XMR"
COIN_UNIT = 1_000_000_000_000  # Atomic units per XMR (12 decimal places)
COIN_DECIMALS = 12

# ============================================================================
# NODE RPC
# ============================================================================

# Mainnet
RPC_PORT = 18081

# Testnet
TESTNET_RPC_PORT = 28081

# Stagenet
STAGENET_RPC_PORT = 38081

NETWORK_RPC_PORTS = {
    'mainnet': RPC_PORT,
    'testnet': TESTNET_RPC_PORT,
    'stagenet': STAGENET_RPC_PORT,
}

DAEMON_URL = os.environ.get('XMRSCAN_DAEMON_URL', f"http://127.0.0.1:{RPC_PORT}")

# Request timeout (seconds)
HTTP_TIMEOUT = 30

# Maximum hashes per /get_transactions request
RPC_BATCH_SIZE = 100

# ============================================================================
# SCANNING
# ============================================================================

# Phase 1 workers for batch scans (0 = let the executor decide)
SCAN_WORKERS = int(os.environ.get('XMRSCAN_WORKERS', '4'))

# "thread" or "process"
SCAN_EXECUTOR = os.environ.get('XMRSCAN_EXECUTOR', 'thread')

# ============================================================================
# FILE PATHS
# ============================================================================

TX_DIR_NAME = "transactions"


def get_data_dir(network: str = 'mainnet') -> str:
    """Get default data directory."""
    data_dir = os.environ.get('XMRSCAN_DATA_DIR')
    if not data_dir:
        data_dir = os.path.join(os.path.expanduser('~'), '.xmrscan')

    if network != 'mainnet':
        data_dir = os.path.join(data_dir, network)

    return data_dir


def get_tx_dir(network: str = 'mainnet') -> str:
    """Get directory holding cached transaction documents."""
    return os.path.join(get_data_dir(network), TX_DIR_NAME)


def get_daemon_url(network: str = 'mainnet', host: str = '127.0.0.1') -> str:
    """Get node RPC URL for a network."""
    if network == 'mainnet' and 'XMRSCAN_DAEMON_URL' in os.environ:
        return DAEMON_URL
    if network not in NETWORK_RPC_PORTS:
        raise ValueError(f"Unknown network: {network}")
    return f"http://{host}:{NETWORK_RPC_PORTS[network]}"

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = os.environ.get('XMRSCAN_LOG_LEVEL', 'WARNING')
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = '%H:%M:%S'

# ============================================================================
# VERSION INFO
# ============================================================================

VERSION = "0.1.0"
CLIENT_NAME = "xmrscan"
