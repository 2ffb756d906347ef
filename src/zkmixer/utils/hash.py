"""Field hash primitive shared by the accumulator, commitments and nullifiers.

The same primitive must be used inside the withdrawal circuit. The default
``Sha256FieldHasher`` is a deterministic stand-in over the BN254 scalar field;
deployments backed by a Poseidon circuit inject a matching ``FieldHasher``.
"""

import hashlib
from typing import Protocol, Union

# BN254 (alt_bn128) scalar field, the circuit field of Groth16 on Ethereum
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BYTES = 32


class FieldHasher(Protocol):
    """Fixed-arity hash ``H: Field^k -> Field``."""

    def hash(self, *elements: int) -> int:
        ...


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte SHA-256 hash
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).digest()


def is_field_element(value: object) -> bool:
    """Return True if value is an int in ``[0, FIELD_MODULUS)``."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < FIELD_MODULUS
    )


def field_to_bytes(value: int) -> bytes:
    """Encode a field element as 32 big-endian bytes."""
    if not is_field_element(value):
        raise ValueError(f"Not a field element: {value!r}")
    return value.to_bytes(FIELD_BYTES, "big")


def bytes_to_field(data: bytes) -> int:
    """Interpret bytes as a big-endian integer reduced into the field."""
    return int.from_bytes(data, "big") % FIELD_MODULUS


class Sha256FieldHasher:
    """
    SHA-256 based field hash.

    ``H(x1..xk) = SHA256(k || x1 || .. || xk) mod p`` with each ``xi`` encoded
    as 32 big-endian bytes. The arity prefix keeps ``H(x)`` and ``H(x, y)``
    in separate domains.
    """

    MAX_ARITY = 2

    def hash(self, *elements: int) -> int:
        if not 1 <= len(elements) <= self.MAX_ARITY:
            raise ValueError(f"Arity must be between 1 and {self.MAX_ARITY}, got {len(elements)}")

        data = bytes([len(elements)]) + b"".join(field_to_bytes(e) for e in elements)
        return bytes_to_field(sha256(data))

    def __repr__(self) -> str:
        return "Sha256FieldHasher()"


DEFAULT_HASHER = Sha256FieldHasher()

# Value of an empty leaf; nothing-up-my-sleeve derivation
ZERO_LEAF = bytes_to_field(sha256(b"zkmixer.zero-leaf"))


def merkle_hash(left: int, right: int, hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """
    Combine two sibling nodes.

    Argument order is always ``(left, right)``; callers decide sides from the
    leaf index bits (see ``zkmixer.core.merkle_tree``).
    """
    return hasher.hash(left, right)


def compute_commitment(secret: int, nullifier_secret: int, hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """Compute ``commitment = H(secret, nullifier_secret)``."""
    return hasher.hash(secret, nullifier_secret)


def compute_nullifier_hash(nullifier_secret: int, hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """Compute ``nullifier_hash = H(nullifier_secret)``."""
    return hasher.hash(nullifier_secret)
