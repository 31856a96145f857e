"""
XMRSCAN Output Scanner
Ownership test for outputs, key images for owned outputs, spend detection.
"""

import logging
from typing import List, Dict, Optional, Any, AbstractSet
from dataclasses import dataclass, field

from .crypto import (
    decode_point,
    derive_public_key,
    derive_secret_key,
    generate_key_image as _key_image_from_keypair,
    points_equal,
)
from .errors import UnsupportedOutputType, UnsupportedInputType
from .transaction import (
    Transaction,
    ToKeyOutput,
    OtherOutput,
    ToKeyInput,
    GenInput,
    OtherInput,
)

logger = logging.getLogger(__name__)


@dataclass
class OwnedOutput:
    """Output recognised as belonging to the account."""

    index: int
    amount: int
    key: bytes
    key_image: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'amount': self.amount,
            'key': self.key.hex(),
            'key_image': self.key_image.hex() if self.key_image else None,
        }


@dataclass
class SpentInput:
    """Input recognised as a spend of one of the account's outputs."""

    index: int
    key_image: bytes
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'key_image': self.key_image.hex(),
            'amount': self.amount,
        }


@dataclass
class SpendCheck:
    """Result of matching a transaction's inputs against known key images."""

    spent_amount: int = 0
    per_input: List[bool] = field(default_factory=list)
    spent_inputs: List[SpentInput] = field(default_factory=list)


def scan_outputs(tx: Transaction, derivation: bytes, public_spend: bytes) -> List[OwnedOutput]:
    """
    Find the outputs of a transaction that belong to an account.

    An output at index i is ours when its key equals
    Hs(derivation || i) * G + public_spend.

    Args:
        tx: Transaction to scan
        derivation: Shared secret of tx and the account's view key
        public_spend: Account's public spend key

    Returns:
        Owned outputs in output order

    Raises:
        UnsupportedOutputType: If an output is not locked to a key
        InvalidPoint: If an output key is not a curve point
    """
    owned = []

    for out in tx.outputs:
        if isinstance(out, ToKeyOutput):
            decode_point(out.key)
            expected = derive_public_key(derivation, out.index, public_spend)
            mine = points_equal(expected, out.key)
            logger.debug(f"{tx.txid[:16]} output {out.index}: {out.key.hex()} "
                         f"{'mine' if mine else 'not mine'}")
            if mine:
                owned.append(OwnedOutput(index=out.index, amount=out.amount, key=out.key))
        elif isinstance(out, OtherOutput):
            raise UnsupportedOutputType(
                f"Output {out.index} of {tx.txid} has unsupported target '{out.target_type}'"
            )
        else:
            raise UnsupportedOutputType(f"Unknown output object in {tx.txid}: {out!r}")

    return owned


def generate_key_image(derivation: bytes, index: int, private_spend: int, public_spend: bytes) -> bytes:
    """
    Key image of the output at `index`.

    Reconstructs the one-time keypair
    x = Hs(derivation || index) + private_spend, P = x * G
    and returns x * Hp(P). Only meaningful for owned outputs.
    """
    ephemeral_pub = derive_public_key(derivation, index, public_spend)
    ephemeral_sec = derive_secret_key(derivation, index, private_spend)
    return _key_image_from_keypair(ephemeral_pub, ephemeral_sec)


def check_spends(tx: Transaction, known_images: AbstractSet[bytes]) -> SpendCheck:
    """
    Match a transaction's inputs against the account's key images.

    Coinbase inputs are never spends. known_images is not modified.

    Raises:
        UnsupportedInputType: If an input is neither a key nor a coinbase input
        InvalidPoint: If a declared key image is not a curve point
    """
    result = SpendCheck()

    for i, inp in enumerate(tx.inputs):
        if isinstance(inp, ToKeyInput):
            decode_point(inp.key_image)
            mine = inp.key_image in known_images
            logger.debug(f"{tx.txid[:16]} input {i}: {inp.key_image.hex()} "
                         f"{'mine' if mine else 'not mine'}")
            if mine:
                result.spent_amount += inp.amount
                result.spent_inputs.append(SpentInput(i, inp.key_image, inp.amount))
            result.per_input.append(mine)
        elif isinstance(inp, GenInput):
            result.per_input.append(False)
        elif isinstance(inp, OtherInput):
            raise UnsupportedInputType(f"Input {i} of {tx.txid} has unsupported type '{inp.input_type}'")
        else:
            raise UnsupportedInputType(f"Unknown input object in {tx.txid}: {inp!r}")

    return result
