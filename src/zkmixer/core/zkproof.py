"""Transparent withdrawal proofs for development and testing.

This backend checks the same statement as the withdrawal circuit, but the
proof carries the witness in the clear. It is NOT zero-knowledge: anyone
holding a proof learns the note and its leaf index. Production deployments
use ``SnarkjsGroth16Verifier`` (or another real backend) instead.

Statement checked by ``TransparentVerifier``:
    1. commitment = H(secret, nullifier_secret)
    2. the authentication path folds commitment up to the public root
    3. nullifier_hash = H(nullifier_secret)
    4. the proof was bound to exactly these public inputs, recipient included
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from zkmixer.core.commitment import Note
from zkmixer.core.merkle_tree import MerklePath, compute_root_from_path
from zkmixer.core.verifier import PublicInputs
from zkmixer.utils.hash import DEFAULT_HASHER, FieldHasher, field_to_bytes, sha256
from zkmixer.utils.encoding import bytes_to_hex, field_to_hex, hex_to_bytes, hex_to_field

BINDING_DOMAIN = b"zkmixer.withdraw.v1"


def binding_digest(public_inputs: Sequence[int]) -> bytes:
    """SHA-256 over the domain tag and the ordered public inputs."""
    return sha256(BINDING_DOMAIN + b"".join(field_to_bytes(x) for x in public_inputs))


@dataclass
class TransparentProof:
    """Witness-carrying withdrawal proof."""

    secret: int
    nullifier_secret: int
    leaf_index: int
    path_elements: List[int]
    binding: bytes

    def to_dict(self) -> dict:
        """Serialize to dictionary"""
        return {
            "secret": field_to_hex(self.secret),
            "nullifier_secret": field_to_hex(self.nullifier_secret),
            "leaf_index": self.leaf_index,
            "path_elements": [field_to_hex(e) for e in self.path_elements],
            "binding": bytes_to_hex(self.binding),
        }

    @staticmethod
    def from_dict(data: dict) -> "TransparentProof":
        """Deserialize from dictionary"""
        return TransparentProof(
            secret=hex_to_field(data["secret"]),
            nullifier_secret=hex_to_field(data["nullifier_secret"]),
            leaf_index=int(data["leaf_index"]),
            path_elements=[hex_to_field(e) for e in data["path_elements"]],
            binding=hex_to_bytes(data["binding"]),
        )


class TransparentProver:
    """Builds TransparentProof objects from a note and its path."""

    def __init__(self, hasher: FieldHasher = DEFAULT_HASHER):
        self.hasher = hasher

    def prove(self, note: Note, path: MerklePath, root: int, recipient: str) -> TransparentProof:
        """
        Create a proof that ``note`` is a leaf under ``root``, bound to ``recipient``.

        Args:
            note: Depositor's note
            path: Authentication path of the note's leaf
            root: Root to prove against (usually ``path.root``)
            recipient: Address that will receive the funds
        """
        public_inputs = PublicInputs(root=root, nullifier_hash=note.nullifier_hash, recipient=recipient)
        return TransparentProof(
            secret=note.secret,
            nullifier_secret=note.nullifier_secret,
            leaf_index=path.leaf_index,
            path_elements=list(path.siblings),
            binding=binding_digest(public_inputs.as_list()),
        )


class TransparentVerifier:
    """ProofVerifier for TransparentProof (object or its dict form)."""

    PUBLIC_INPUT_COUNT = 3

    def __init__(self, hasher: FieldHasher = DEFAULT_HASHER, depth: Optional[int] = None):
        self.hasher = hasher
        self.depth = depth

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        if isinstance(proof, dict):
            proof = TransparentProof.from_dict(proof)
        if not isinstance(proof, TransparentProof):
            raise TypeError(f"Unsupported proof type: {type(proof).__name__}")
        if len(public_inputs) != self.PUBLIC_INPUT_COUNT:
            return False
        if self.depth is not None and len(proof.path_elements) != self.depth:
            return False

        root, nullifier_hash, _recipient = public_inputs

        if proof.binding != binding_digest(public_inputs):
            return False

        commitment = self.hasher.hash(proof.secret, proof.nullifier_secret)
        computed_root = compute_root_from_path(commitment, proof.leaf_index, proof.path_elements, self.hasher)
        if computed_root != root:
            return False

        return self.hasher.hash(proof.nullifier_secret) == nullifier_hash
