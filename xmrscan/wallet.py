"""
XMRSCAN Account Keys
Spend/view keypairs of the account being scanned.
"""

from typing import Dict, Any
from dataclasses import dataclass

from .crypto import (
    parse_secret_key,
    secret_key_to_public_key,
    random_scalar,
    hash_to_scalar,
    scalar_to_bytes,
)


@dataclass(frozen=True)
class AccountKeys:
    """
    Private and public keys of an account.

    public_spend = private_spend * G and public_view = private_view * G.
    Use one of the constructors so both public keys are derived.
    """

    private_spend: int
    private_view: int
    public_spend: bytes
    public_view: bytes

    @classmethod
    def from_secret_keys(cls, private_spend: int, private_view: int) -> 'AccountKeys':
        """Create from secret scalars."""
        return cls(
            private_spend=private_spend,
            private_view=private_view,
            public_spend=secret_key_to_public_key(private_spend),
            public_view=secret_key_to_public_key(private_view),
        )

    @classmethod
    def from_hex(cls, spend_key_str: str, view_key_str: str) -> 'AccountKeys':
        """
        Create from hex-encoded secret keys.

        Raises:
            InvalidKeyEncoding: If either key string is invalid
        """
        return cls.from_secret_keys(
            parse_secret_key(spend_key_str),
            parse_secret_key(view_key_str),
        )

    @classmethod
    def from_spend_key(cls, private_spend: int) -> 'AccountKeys':
        """Create a deterministic account: view key = Hs(spend key)."""
        private_view = hash_to_scalar(scalar_to_bytes(private_spend))
        return cls.from_secret_keys(private_spend, private_view)

    @classmethod
    def generate(cls) -> 'AccountKeys':
        """Create a new random deterministic account."""
        return cls.from_spend_key(random_scalar())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (public keys only)."""
        return {
            'public_spend': self.public_spend.hex(),
            'public_view': self.public_view.hex(),
        }

    def to_dict_with_private(self) -> Dict[str, Any]:
        """Convert to dictionary including private keys."""
        data = self.to_dict()
        data['private_spend'] = scalar_to_bytes(self.private_spend).hex()
        data['private_view'] = scalar_to_bytes(self.private_view).hex()
        return data
