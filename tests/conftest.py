"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from zkmixer.core.commitment import Note
from zkmixer.core.mixer import WithdrawalRequest, ZKMixer
from zkmixer.core.transfer import InMemoryLedger
from zkmixer.core.zkproof import TransparentProver, TransparentVerifier

RECIPIENT = "0x0000000000000000000000000000000000000abc"
TEST_DEPTH = 8


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a temporary database URL."""
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def ledger():
    """In-memory asset transfer backend."""
    return InMemoryLedger()


@pytest.fixture
def mixer(ledger):
    """Mixer with the transparent verifier and a small tree."""
    return ZKMixer(verifier=TransparentVerifier(), transfer=ledger, depth=TEST_DEPTH)


@pytest.fixture
def prover():
    return TransparentProver()


@pytest.fixture
def deposit_note(mixer):
    """Deposit a (fresh or given) note into the mixer and return it."""
    def _deposit(note=None):
        note = note or Note.generate()
        mixer.deposit(note.commitment, mixer.deposit_amount)
        return note
    return _deposit


@pytest.fixture
def withdrawal_request(mixer, prover):
    """Build a valid withdrawal request for a deposited note against the current root."""
    def _build(note, recipient=RECIPIENT):
        leaf_index = mixer.commitments().index(note.commitment)
        path = mixer.get_path(leaf_index)
        proof = prover.prove(note, path, path.root, recipient)
        return WithdrawalRequest(
            proof=proof,
            root=path.root,
            nullifier_hash=note.nullifier_hash,
            recipient=recipient,
        )
    return _build
