"""Proof verification gateway.

The proving system lives outside this package. The orchestrator only needs
``verify(proof, public_inputs) -> bool`` where the public inputs are always
``[root, nullifier_hash, recipient]`` as field elements, in that order.

Backends:
    - SnarkjsGroth16Verifier: runs ``snarkjs groth16 verify`` in a subprocess
    - TransparentVerifier (zkmixer.core.zkproof): development backend
    - AcceptAllVerifier / RejectAllVerifier / RecordingVerifier: test doubles
"""

import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union

from zkmixer.utils.encoding import address_to_field, field_to_hex, normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicInputs:
    """Public inputs of the withdrawal statement."""

    root: int
    nullifier_hash: int
    recipient: str

    def as_list(self) -> List[int]:
        """Field elements in circuit order ``[root, nullifier_hash, recipient]``."""
        return [self.root, self.nullifier_hash, address_to_field(self.recipient)]

    def to_dict(self) -> dict:
        return {
            "root": field_to_hex(self.root),
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "recipient": normalize_address(self.recipient),
        }


class ProofVerifier(Protocol):
    """Pure, deterministic proof check."""

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        ...


class VerificationGateway:
    """
    Adapter between the orchestrator and a ProofVerifier.

    A ``False`` result, a malformed proof and an exception raised by the
    backend are all reported as ``False``; callers map that to InvalidProof.
    """

    def __init__(self, verifier: ProofVerifier):
        self.verifier = verifier

    def verify(self, proof: Any, public_inputs: PublicInputs) -> bool:
        if proof is None:
            return False
        try:
            result = self.verifier.verify(proof, public_inputs.as_list())
        except Exception as e:
            logger.error(f"Proof verifier raised {type(e).__name__}: {e}", exc_info=True)
            return False
        return result is True


class AcceptAllVerifier:
    """Accepts every proof. Tests only."""

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        return True


class RejectAllVerifier:
    """Rejects every proof. Tests only."""

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        return False


@dataclass
class RecordingVerifier:
    """Echoes the inputs it was called with and returns a fixed result."""

    result: bool = True
    calls: List[Tuple[Any, List[int]]] = field(default_factory=list)

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        self.calls.append((proof, list(public_inputs)))
        return self.result


GROTH16_PROOF_KEYS = ("pi_a", "pi_b", "pi_c")


class SnarkjsGroth16Verifier:
    """
    Subprocess backend for snarkjs Groth16 verification.

    Runs ``snarkjs groth16 verify vk.json public.json proof.json``. The proof
    is the JSON object snarkjs emits (``pi_a``, ``pi_b``, ``pi_c``); public
    inputs are written as decimal strings in circuit order.
    """

    def __init__(
        self,
        verification_key_path: Union[str, Path],
        snarkjs_bin: str = "snarkjs",
        timeout: int = 20,
    ):
        self.verification_key_path = Path(verification_key_path)
        if not self.verification_key_path.is_file():
            raise FileNotFoundError(f"Verification key not found: {self.verification_key_path}")
        self.snarkjs_bin = snarkjs_bin
        self.timeout = timeout

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        if not isinstance(proof, dict) or not all(k in proof for k in GROTH16_PROOF_KEYS):
            raise ValueError("Groth16 proof must contain pi_a, pi_b and pi_c")
        if not self.verification_key_path.exists():
            raise FileNotFoundError(f"Verification key not found: {self.verification_key_path}")

        with tempfile.TemporaryDirectory(prefix="zkmixer_snarkjs_") as d:
            td = Path(d)
            proof_path = td / "proof.json"
            public_path = td / "public.json"

            proof_path.write_text(json.dumps(proof), encoding="utf-8")
            public_path.write_text(json.dumps([str(x) for x in public_inputs]), encoding="utf-8")

            cmd = [
                self.snarkjs_bin,
                "groth16",
                "verify",
                str(self.verification_key_path),
                str(public_path),
                str(proof_path),
            ]

            try:
                proc = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired:
                raise TimeoutError("snarkjs verify timed out")

        if proc.returncode != 0:
            logger.warning(f"snarkjs verify rejected proof (rc={proc.returncode})")
            return False
        return True


def build_verifier(
    backend: str,
    verification_key_path: Optional[Union[str, Path]] = None,
    snarkjs_bin: str = "snarkjs",
    timeout: int = 20,
) -> ProofVerifier:
    """Construct the verifier named by configuration."""
    if backend == "snarkjs":
        if verification_key_path is None:
            raise ValueError("snarkjs backend requires a verification key path")
        return SnarkjsGroth16Verifier(verification_key_path, snarkjs_bin=snarkjs_bin, timeout=timeout)

    if backend == "transparent":
        from zkmixer.core.zkproof import TransparentVerifier

        logger.warning("Using the transparent development verifier; proofs are not zero-knowledge")
        return TransparentVerifier()

    raise ValueError(f"Unknown verifier backend: {backend}")
