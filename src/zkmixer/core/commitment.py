"""Deposit notes: the depositor's secrets and the values derived from them.

Notes are produced and kept client-side. The mixer itself only ever sees the
commitment (at deposit) and the nullifier hash (at withdrawal).
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from zkmixer.utils.hash import (
    DEFAULT_HASHER,
    FIELD_MODULUS,
    FieldHasher,
    compute_commitment,
    compute_nullifier_hash,
    is_field_element,
)
from zkmixer.utils.encoding import field_to_hex, hex_to_field


def random_field_element() -> int:
    """Uniformly random non-zero field element from the OS CSPRNG."""
    return secrets.randbelow(FIELD_MODULUS - 1) + 1


@dataclass(frozen=True)
class Note:
    """
    Secret material behind one deposit.

    Attributes:
        secret: Random field element known only to the depositor
        nullifier_secret: Random field element revealed only as its hash
    """

    secret: int
    nullifier_secret: int
    hasher: FieldHasher = DEFAULT_HASHER

    def __post_init__(self):
        if not is_field_element(self.secret):
            raise ValueError("Secret must be a field element")
        if not is_field_element(self.nullifier_secret):
            raise ValueError("Nullifier secret must be a field element")

    @classmethod
    def generate(cls, hasher: Optional[FieldHasher] = None) -> "Note":
        """Create a note with fresh random secrets."""
        return cls(
            secret=random_field_element(),
            nullifier_secret=random_field_element(),
            hasher=hasher or DEFAULT_HASHER,
        )

    @property
    def commitment(self) -> int:
        """``H(secret, nullifier_secret)``, the value inserted at deposit."""
        return compute_commitment(self.secret, self.nullifier_secret, self.hasher)

    @property
    def nullifier_hash(self) -> int:
        """``H(nullifier_secret)``, disclosed at withdrawal."""
        return compute_nullifier_hash(self.nullifier_secret, self.hasher)

    def to_dict(self) -> dict:
        return {
            "secret": field_to_hex(self.secret),
            "nullifier_secret": field_to_hex(self.nullifier_secret),
        }

    @classmethod
    def from_dict(cls, data: dict, hasher: Optional[FieldHasher] = None) -> "Note":
        return cls(
            secret=hex_to_field(data["secret"]),
            nullifier_secret=hex_to_field(data["nullifier_secret"]),
            hasher=hasher or DEFAULT_HASHER,
        )

    def __repr__(self) -> str:
        # Never print the secrets
        return f"Note(commitment={field_to_hex(self.commitment)[:18]}...)"
