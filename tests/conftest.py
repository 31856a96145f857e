"""
Shared fixtures for XMRSCAN tests.
"""

import os
import sys
import secrets

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from xmrscan.crypto import generate_keys, generate_key_derivation, derive_public_key, is_valid_point
from xmrscan.transaction import Transaction, ToKeyOutput, build_extra
from xmrscan.wallet import AccountKeys


def make_payment(recipients, inputs=(), txid=None, with_public_key=True):
    """
    Build a transaction the way a sender would.

    Args:
        recipients: List of (AccountKeys, amount), one output each
        inputs: Transaction inputs
        txid: Hash to use (random if omitted)
        with_public_key: Put the tx public key into extra
    """
    tx_secret, tx_public = generate_keys()

    outputs = []
    for index, (keys, amount) in enumerate(recipients):
        derivation = generate_key_derivation(keys.public_view, tx_secret)
        outputs.append(ToKeyOutput(index, amount, derive_public_key(derivation, index, keys.public_spend)))

    return Transaction(
        txid=txid or secrets.token_hex(32),
        outputs=outputs,
        inputs=list(inputs),
        extra=build_extra(tx_public) if with_public_key else b'',
    )


@pytest.fixture(scope='session')
def alice():
    return AccountKeys.generate()


@pytest.fixture(scope='session')
def bob():
    return AccountKeys.generate()


@pytest.fixture
def pay():
    return make_payment


@pytest.fixture(scope='session')
def off_curve():
    """32 bytes whose y coordinate has no matching x on the curve."""
    for y in range(2, 100):
        data = y.to_bytes(32, 'little')
        if not is_valid_point(data):
            return data
