"""
XMRSCAN Report
Plain-text rendering of scan results.
"""

from typing import List, Dict, Optional

from .balance import ScanResult, TransactionSummary
from .crypto import scalar_to_bytes
from .transaction import Transaction, ToKeyOutput, ToKeyInput, GenInput
from .wallet import AccountKeys
import config


def format_money(amount: int) -> str:
    """Format atomic units as whole coins with all decimals."""
    sign = '-' if amount < 0 else ''
    whole, frac = divmod(abs(amount), config.COIN_UNIT)
    return f"{sign}{whole}.{frac:0{config.COIN_DECIMALS}d}"


def format_keys(keys: AccountKeys, show_private: bool = False) -> str:
    lines = []
    if show_private:
        lines.append(f"Private spend key: {scalar_to_bytes(keys.private_spend).hex()}")
    lines.append(f"Public spend key : {keys.public_spend.hex()}")
    if show_private:
        lines.append(f"Private view key : {scalar_to_bytes(keys.private_view).hex()}")
    lines.append(f"Public view key  : {keys.public_view.hex()}")
    return '\n'.join(lines)


def format_transaction(summary: TransactionSummary, tx: Optional[Transaction] = None) -> str:
    """
    Render one transaction summary.

    With the transaction itself every output and input is listed,
    otherwise only the owned outputs and spent inputs.
    """
    lines = [f"tx hash          : <{summary.txid}>"]

    owned = {out.index: out for out in summary.owned_outputs}
    if tx is not None:
        if tx.public_key:
            lines.append(f"public tx key    : {tx.public_key.hex()}")
        if tx.is_ringct():
            lines.append(f"note             : RingCT tx (version {tx.version}), amounts are hidden and counted as 0")
        for out in tx.outputs:
            key = out.key.hex() if isinstance(out, ToKeyOutput) else '-'
            if out.index in owned:
                lines.append(f"Output no: {out.index}, {key}, mine key: {format_money(out.amount)}")
            else:
                lines.append(f"Output no: {out.index}, {key}, not mine key")
        for i, inp in enumerate(tx.inputs):
            if isinstance(inp, GenInput):
                lines.append(f"Input no: {i}, coinbase (height {inp.height})")
            elif isinstance(inp, ToKeyInput):
                mine = i < len(summary.per_input) and summary.per_input[i]
                if mine:
                    lines.append(f"Input no: {i}, {inp.key_image.hex()}, mine key: {format_money(inp.amount)}")
                else:
                    lines.append(f"Input no: {i}, {inp.key_image.hex()}, not mine key")
    else:
        for out in summary.owned_outputs:
            lines.append(f"Output no: {out.index}, {out.key.hex()}, mine key: {format_money(out.amount)}")
        for inp in summary.spent_inputs:
            lines.append(f"Input no: {inp.index}, {inp.key_image.hex()}, mine key: {format_money(inp.amount)}")

    for out in summary.owned_outputs:
        lines.append(f"Key image for output {out.index}: {out.key_image.hex()}")

    lines.append(f"Total received   : {format_money(summary.received)}")
    lines.append(f"Total spent      : {format_money(summary.spent)}")
    lines.append(f"Net              : {format_money(summary.net)}")
    return '\n'.join(lines)


def format_result(result: ScanResult, transactions: Optional[List[Transaction]] = None) -> str:
    """Render a full scan result."""
    by_txid: Dict[str, Transaction] = {tx.txid: tx for tx in transactions or []}

    blocks = [format_transaction(s, by_txid.get(s.txid)) for s in result.summaries]
    blocks.append('\n'.join([
        f"Transactions     : {len(result.summaries)}",
        f"Total received   : {format_money(result.total_received)} {config.COIN_TICKER}",
        f"Total spent      : {format_money(result.total_spent)} {config.COIN_TICKER}",
        f"Balance          : {format_money(result.running_balance)} {config.COIN_TICKER}",
    ]))
    return '\n\n'.join(blocks)
