#!/usr/bin/env python3
"""
XMRSCAN CLI
Find an account's outputs, spends and balance in a set of transactions.

Usage:
    xmrscan-cli keys --viewkey <hex> --spendkey <hex>
    xmrscan-cli scan --viewkey <hex> --spendkey <hex> --txhash <hash> [--txhash <hash> ...]
    xmrscan-cli scan --viewkey <hex> --spendkey <hex> --tx-file txs.json [--batch]
    xmrscan-cli fetch <hash> [<hash> ...]       Cache transactions from a node
"""

import sys
import os
import argparse
import json
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from xmrscan.balance import BalanceAggregator
from xmrscan.errors import ScanError
from xmrscan.report import format_keys, format_result
from xmrscan.store import MemoryTransactionStore, JsonTransactionStore
from xmrscan.wallet import AccountKeys
from rpc.client import DaemonClient
import config

logger = logging.getLogger('xmrscan')


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.WARNING),
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATEFMT,
    )


def load_keys(args) -> AccountKeys:
    """Parse the account keys given on the command line."""
    try:
        return AccountKeys.from_hex(args.spendkey, args.viewkey)
    except ScanError as e:
        print(f"❌ Cant parse keys: {e}")
        sys.exit(1)


def get_store(args):
    """Pick the transaction source."""
    if args.tx_file:
        return MemoryTransactionStore.from_file(args.tx_file)
    if args.data_dir:
        return JsonTransactionStore(args.data_dir)
    if args.daemon:
        return DaemonClient(url=args.daemon)
    return DaemonClient.for_network(args.network)


def cmd_keys(args):
    """Show public keys of an account."""
    keys = load_keys(args)
    print(format_keys(keys, show_private=True))


def cmd_scan(args):
    """Scan transactions for an account."""
    keys = load_keys(args)

    try:
        store = get_store(args)
    except (OSError, ScanError) as e:
        print(f"❌ Cant open transaction source: {e}")
        sys.exit(1)

    txids = list(dict.fromkeys(args.txhash))
    if not txids:
        if isinstance(store, MemoryTransactionStore):
            txids = list(store.transactions)
        elif isinstance(store, JsonTransactionStore):
            txids = store.list_txids()
        else:
            print("❌ No transaction hashes given (use --txhash)")
            sys.exit(1)

    aggregator = BalanceAggregator(keys)
    try:
        transactions = store.fetch_many(txids)
        if args.batch:
            result = aggregator.run_batch(transactions, workers=args.workers)
        else:
            result = aggregator.run(transactions)
    except ScanError as e:
        print(f"❌ Scan failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    print()
    print(format_keys(keys))
    print()
    print(format_result(result, transactions))
    print()


def cmd_fetch(args):
    """Fetch transactions from a node into the local cache."""
    client = DaemonClient(url=args.daemon) if args.daemon else DaemonClient.for_network(args.network)
    store = JsonTransactionStore(args.data_dir or config.get_tx_dir(args.network))

    try:
        transactions = client.fetch_many(args.txhash)
    except ScanError as e:
        print(f"❌ Fetch failed: {e}")
        sys.exit(1)

    for tx in transactions:
        store.save(tx)
        print(f"✓ {tx.txid}")
    print(f"\nSaved {len(transactions)} transactions to {store.data_dir}")


def main():
    parser = argparse.ArgumentParser(description=f'{config.CLIENT_NAME} {config.VERSION}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--network', default='mainnet', choices=sorted(config.NETWORK_RPC_PORTS),
                        help='Network (selects default RPC port and data dir)')
    parser.add_argument('--daemon', help='Node RPC URL')
    parser.add_argument('--data-dir', help='Directory of cached transaction files')
    subparsers = parser.add_subparsers(dest='command')

    keys_parser = subparsers.add_parser('keys', help='Show account keys')
    keys_parser.add_argument('--viewkey', required=True, help='Private view key (hex)')
    keys_parser.add_argument('--spendkey', required=True, help='Private spend key (hex)')

    scan_parser = subparsers.add_parser('scan', help='Scan transactions')
    scan_parser.add_argument('--viewkey', required=True, help='Private view key (hex)')
    scan_parser.add_argument('--spendkey', required=True, help='Private spend key (hex)')
    scan_parser.add_argument('-t', '--txhash', action='append', default=[],
                             help='Transaction hash, in ledger order (repeatable)')
    scan_parser.add_argument('--tx-file', help='JSON file with transactions')
    scan_parser.add_argument('--batch', action='store_true',
                             help='Two-phase parallel scan of the whole batch')
    scan_parser.add_argument('--workers', type=int, default=config.SCAN_WORKERS,
                             help='Workers for --batch')
    scan_parser.add_argument('--json', action='store_true', help='Print result as JSON')

    fetch_parser = subparsers.add_parser('fetch', help='Cache transactions from a node')
    fetch_parser.add_argument('txhash', nargs='+', help='Transaction hashes')

    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.command == 'keys':
        cmd_keys(args)
    elif args.command == 'scan':
        cmd_scan(args)
    elif args.command == 'fetch':
        cmd_fetch(args)
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
