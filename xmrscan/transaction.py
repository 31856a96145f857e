"""
XMRSCAN Transaction Model
Transactions as published on the ledger, with explicit output/input variants.
"""

import json
from typing import List, Dict, Optional, Any, Tuple, Union
from dataclasses import dataclass, field

from .crypto import KEY_SIZE, encode_varint
from .errors import MissingTxPublicKey, MalformedTransaction


# tx_extra field tags
TX_EXTRA_TAG_PADDING = 0x00
TX_EXTRA_TAG_PUBKEY = 0x01
TX_EXTRA_NONCE = 0x02
TX_EXTRA_MERGE_MINING_TAG = 0x03
TX_EXTRA_TAG_ADDITIONAL_PUBKEYS = 0x04
TX_EXTRA_MYSTERIOUS_MINERGATE_TAG = 0xDE


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a 7-bit little-endian varint.

    Returns:
        Tuple of (value, offset after the varint)
    """
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise MalformedTransaction("Truncated varint")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7f) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7
        if shift > 63:
            raise MalformedTransaction("Varint too long")


@dataclass
class TxExtra:
    """Fields recovered from a transaction's extra blob."""

    public_key: Optional[bytes] = None
    additional_public_keys: List[bytes] = field(default_factory=list)
    nonce: bytes = b''


def parse_extra(extra: bytes) -> TxExtra:
    """
    Parse the tx_extra blob.

    Parsing stops at padding or at the first unknown tag; fields read
    before that point are kept. Only the first public key counts.
    """
    result = TxExtra()
    extra = bytes(extra)
    pos = 0

    while pos < len(extra):
        tag = extra[pos]
        pos += 1

        if tag == TX_EXTRA_TAG_PADDING:
            break
        elif tag == TX_EXTRA_TAG_PUBKEY:
            if pos + KEY_SIZE > len(extra):
                break
            if result.public_key is None:
                result.public_key = extra[pos:pos + KEY_SIZE]
            pos += KEY_SIZE
        elif tag == TX_EXTRA_TAG_ADDITIONAL_PUBKEYS:
            try:
                count, pos = decode_varint(extra, pos)
            except MalformedTransaction:
                break
            if pos + count * KEY_SIZE > len(extra):
                break
            result.additional_public_keys = [
                extra[pos + i * KEY_SIZE:pos + (i + 1) * KEY_SIZE] for i in range(count)
            ]
            pos += count * KEY_SIZE
        elif tag in (TX_EXTRA_NONCE, TX_EXTRA_MERGE_MINING_TAG, TX_EXTRA_MYSTERIOUS_MINERGATE_TAG):
            try:
                size, pos = decode_varint(extra, pos)
            except MalformedTransaction:
                break
            if pos + size > len(extra):
                break
            if tag == TX_EXTRA_NONCE:
                result.nonce = extra[pos:pos + size]
            pos += size
        else:
            break

    return result


def build_extra(public_key: Optional[bytes] = None, nonce: bytes = b'') -> bytes:
    """Build a tx_extra blob carrying a public key and an optional nonce."""
    data = b''
    if public_key is not None:
        data += bytes([TX_EXTRA_TAG_PUBKEY]) + public_key
    if nonce:
        data += bytes([TX_EXTRA_NONCE]) + encode_varint(len(nonce)) + nonce
    return data


def _key_from_hex(value: Any, what: str) -> bytes:
    try:
        data = bytes.fromhex(value)
    except (TypeError, ValueError):
        raise MalformedTransaction(f"Invalid {what}: {value!r}")
    if len(data) != KEY_SIZE:
        raise MalformedTransaction(f"Invalid {what} length: {len(data)}")
    return data


def _amount(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2 ** 64:
        raise MalformedTransaction(f"Invalid amount: {value!r}")
    return value


def _height(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedTransaction(f"Invalid coinbase height: {value!r}")
    return value


# ============================================================================
# OUTPUTS
# ============================================================================

@dataclass
class ToKeyOutput:
    """Output locked to a one-time public key."""

    index: int
    amount: int
    key: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'key', 'amount': self.amount, 'key': self.key.hex()}


@dataclass
class OtherOutput:
    """Output with a target this scanner does not understand (script, scripthash)."""

    index: int
    amount: int
    target_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.target_type, 'amount': self.amount}


TxOutput = Union[ToKeyOutput, OtherOutput]


def output_from_dict(index: int, data: Dict[str, Any]) -> TxOutput:
    """Create output from dictionary."""
    out_type = data.get('type', 'key')
    amount = _amount(data.get('amount', 0))
    if out_type == 'key':
        return ToKeyOutput(index=index, amount=amount, key=_key_from_hex(data.get('key'), 'output key'))
    return OtherOutput(index=index, amount=amount, target_type=str(out_type))


# ============================================================================
# INPUTS
# ============================================================================

@dataclass
class ToKeyInput:
    """Input spending a one-time key, identified by its key image."""

    key_image: bytes
    amount: int
    key_offsets: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'key',
            'key_image': self.key_image.hex(),
            'amount': self.amount,
            'key_offsets': list(self.key_offsets),
        }


@dataclass
class GenInput:
    """Coinbase input."""

    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'gen', 'height': self.height}


@dataclass
class OtherInput:
    """Input type this scanner does not understand."""

    input_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.input_type}


TxInput = Union[ToKeyInput, GenInput, OtherInput]


def input_from_dict(data: Dict[str, Any]) -> TxInput:
    """Create input from dictionary."""
    in_type = data.get('type', 'key')
    if in_type == 'key':
        return ToKeyInput(
            key_image=_key_from_hex(data.get('key_image'), 'key image'),
            amount=_amount(data.get('amount', 0)),
            key_offsets=list(data.get('key_offsets', [])),
        )
    if in_type == 'gen':
        return GenInput(height=_height(data.get('height', 0)))
    return OtherInput(input_type=str(in_type))


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass
class Transaction:
    """A published transaction, read-only for the scanner."""

    txid: str
    public_key: Optional[bytes] = None
    outputs: List[TxOutput] = field(default_factory=list)
    inputs: List[TxInput] = field(default_factory=list)
    fee: int = 0
    version: int = 1
    unlock_time: int = 0
    extra: bytes = b''

    def __post_init__(self):
        """Recover the public key from extra when not given."""
        if self.public_key is None and self.extra:
            self.public_key = parse_extra(self.extra).public_key

    def require_public_key(self) -> bytes:
        """
        Get the transaction public key.

        Raises:
            MissingTxPublicKey: If the transaction carries none
        """
        if not self.public_key:
            raise MissingTxPublicKey(self.txid)
        return self.public_key

    def is_coinbase(self) -> bool:
        """Check if this is a coinbase transaction."""
        return len(self.inputs) == 1 and isinstance(self.inputs[0], GenInput)

    def is_ringct(self) -> bool:
        """Check if amounts are hidden (version 2+), so they appear as 0."""
        return self.version >= 2

    def get_total_output_value(self) -> int:
        """Get total value of outputs."""
        return sum(out.amount for out in self.outputs)

    def get_total_input_value(self) -> int:
        """Get total value of key inputs."""
        return sum(inp.amount for inp in self.inputs if isinstance(inp, ToKeyInput))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'txid': self.txid,
            'public_key': self.public_key.hex() if self.public_key else None,
            'version': self.version,
            'unlock_time': self.unlock_time,
            'fee': self.fee,
            'extra': self.extra.hex(),
            'inputs': [inp.to_dict() for inp in self.inputs],
            'outputs': [out.to_dict() for out in self.outputs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create from dictionary."""
        if 'txid' not in data:
            raise MalformedTransaction("Transaction has no txid")

        public_key = data.get('public_key')
        try:
            extra = bytes.fromhex(data.get('extra', ''))
        except (TypeError, ValueError):
            raise MalformedTransaction(f"Invalid extra in {data['txid']}")

        return cls(
            txid=data['txid'],
            public_key=_key_from_hex(public_key, 'public key') if public_key else None,
            outputs=[output_from_dict(i, out) for i, out in enumerate(data.get('outputs', []))],
            inputs=[input_from_dict(inp) for inp in data.get('inputs', [])],
            fee=_amount(data.get('fee', 0)),
            version=data.get('version', 1),
            unlock_time=data.get('unlock_time', 0),
            extra=extra,
        )

    @classmethod
    def from_daemon_json(cls, txid: str, data: Union[str, Dict[str, Any]]) -> 'Transaction':
        """
        Create from a node's JSON transaction representation.

        Args:
            txid: Transaction hash
            data: The "as_json" document (string or already decoded)

        Returns:
            Transaction
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise MalformedTransaction(f"Invalid transaction JSON for {txid}: {e}")

        try:
            extra = bytes(data.get('extra', []))
        except (TypeError, ValueError):
            raise MalformedTransaction(f"Invalid extra in {txid}")

        inputs: List[TxInput] = []
        for vin in data.get('vin', []):
            if 'key' in vin:
                key = vin['key']
                inputs.append(ToKeyInput(
                    key_image=_key_from_hex(key.get('k_image'), 'key image'),
                    amount=_amount(key.get('amount', 0)),
                    key_offsets=list(key.get('key_offsets', [])),
                ))
            elif 'gen' in vin:
                inputs.append(GenInput(height=_height(vin['gen'].get('height', 0))))
            else:
                inputs.append(OtherInput(input_type=next(iter(vin), 'unknown')))

        outputs: List[TxOutput] = []
        for index, vout in enumerate(data.get('vout', [])):
            amount = _amount(vout.get('amount', 0))
            target = vout.get('target', {})
            if 'key' in target:
                outputs.append(ToKeyOutput(index, amount, _key_from_hex(target['key'], 'output key')))
            elif 'tagged_key' in target:
                key = target['tagged_key'].get('key')
                outputs.append(ToKeyOutput(index, amount, _key_from_hex(key, 'output key')))
            else:
                outputs.append(OtherOutput(index, amount, next(iter(target), 'unknown')))

        version = data.get('version', 1)
        if version >= 2:
            fee = data.get('rct_signatures', {}).get('txnFee', 0)
        else:
            fee = 0
            if not any(isinstance(inp, GenInput) for inp in inputs):
                fee = max(0, sum(i.amount for i in inputs if isinstance(i, ToKeyInput))
                          - sum(o.amount for o in outputs))

        return cls(
            txid=txid,
            outputs=outputs,
            inputs=inputs,
            fee=_amount(fee),
            version=version,
            unlock_time=data.get('unlock_time', 0),
            extra=extra,
        )
