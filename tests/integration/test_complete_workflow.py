"""Integration tests for the complete ZK-Mixer system."""

import threading

import pytest

from zkmixer.core.commitment import Note
from zkmixer.core.merkle_tree import build_path_from_leaves
from zkmixer.core.mixer import DEFAULT_OWNER, WithdrawalRequest, ZKMixer
from zkmixer.core.transfer import InMemoryLedger
from zkmixer.core.zkproof import TransparentProver, TransparentVerifier
from zkmixer.exceptions import NullifierAlreadySpentError, ZKMixerException
from zkmixer.storage.database import DatabaseManager
from zkmixer.utils.hash import DEFAULT_HASHER

RECIPIENT = "0xABC"


class TestCompleteMixerWorkflow:
    """Tests for complete mixer workflows."""

    @pytest.fixture
    def ledger(self):
        return InMemoryLedger()

    @pytest.fixture
    def mixer(self, ledger):
        """Create a mixer for testing."""
        return ZKMixer(verifier=TransparentVerifier(depth=20), transfer=ledger)

    def test_deposit_and_withdraw_known_note(self, mixer, ledger):
        """Test deposit of H(3,7) and withdrawal to 0xABC."""
        note = Note(secret=3, nullifier_secret=7)
        assert note.commitment == DEFAULT_HASHER.hash(3, 7)

        # Step 1: Deposit, R0 -> R1
        empty_root = mixer.get_current_root()
        receipt = mixer.deposit(note.commitment, mixer.deposit_amount)
        new_root = receipt.root
        assert new_root != empty_root
        assert mixer.is_known_root(new_root)
        assert mixer.is_known_root(empty_root)

        # Step 2: Client rebuilds the path from the public leaf array
        path = build_path_from_leaves(mixer.commitments(), receipt.leaf_index, depth=mixer.depth)
        assert path.root == new_root

        # Step 3: Prove and withdraw
        proof = TransparentProver().prove(note, path, new_root, RECIPIENT)
        mixer.withdraw(proof, new_root, DEFAULT_HASHER.hash(7), RECIPIENT)

        assert ledger.balance_of(RECIPIENT) == mixer.deposit_amount
        assert mixer.is_spent(DEFAULT_HASHER.hash(7))

        # Step 4: The identical call is a replay
        with pytest.raises(NullifierAlreadySpentError):
            mixer.withdraw(proof, new_root, DEFAULT_HASHER.hash(7), RECIPIENT)
        assert ledger.balance_of(RECIPIENT) == mixer.deposit_amount

    def test_many_users(self, mixer, ledger):
        """Test several depositors withdrawing in a different order."""
        prover = TransparentProver()
        notes = [Note.generate() for _ in range(5)]
        for note in notes:
            mixer.deposit(note.commitment, mixer.deposit_amount)

        recipients = [f"0x{i + 1:040x}" for i in range(5)]
        for note, recipient in zip(reversed(notes), recipients):
            path = mixer.get_path(mixer.commitments().index(note.commitment))
            proof = prover.prove(note, path, path.root, recipient)
            mixer.withdraw(proof, path.root, note.nullifier_hash, recipient)

        for recipient in recipients:
            assert ledger.balance_of(recipient) == mixer.deposit_amount
        assert mixer.custody_balance == 0
        assert len(mixer.nullifiers) == 5

    def test_batch_with_spent_middle_request(self, mixer, ledger):
        """Test [ok, spent, ok] returns [True, False, True] without rollback."""
        prover = TransparentProver()
        notes = [Note.generate() for _ in range(3)]
        for note in notes:
            mixer.deposit(note.commitment, mixer.deposit_amount)

        def request_for(note):
            path = mixer.get_path(mixer.commitments().index(note.commitment))
            proof = prover.prove(note, path, path.root, RECIPIENT)
            return WithdrawalRequest(proof, path.root, note.nullifier_hash, RECIPIENT)

        spent = request_for(notes[1])
        mixer.withdraw(spent.proof, spent.root, spent.nullifier_hash, spent.recipient)

        results = mixer.withdraw_batch([request_for(notes[0]), spent, request_for(notes[2])])
        assert results == [True, False, True]
        assert ledger.balance_of(RECIPIENT) == 3 * mixer.deposit_amount

    def test_pause_drain_lifecycle(self, mixer, ledger):
        """Test incident response: pause, drain, and unredeemable notes."""
        note = Note.generate()
        mixer.deposit(note.commitment, mixer.deposit_amount)
        path = mixer.get_path(0)
        proof = TransparentProver().prove(note, path, path.root, RECIPIENT)

        mixer.pause(DEFAULT_OWNER)
        vault = "0x00000000000000000000000000000000000000ff"
        assert mixer.emergency_drain(DEFAULT_OWNER, vault).amount == mixer.deposit_amount
        mixer.unpause(DEFAULT_OWNER)

        with pytest.raises(ZKMixerException) as exc_info:
            mixer.withdraw(proof, path.root, note.nullifier_hash, RECIPIENT)
        assert exc_info.value.code == "TransferFailed"
        assert not mixer.is_spent(note.nullifier_hash)
        assert ledger.balance_of(vault) == mixer.deposit_amount


class TestConcurrency:
    """Concurrent callers against one mixer."""

    def test_concurrent_deposits(self):
        """Test parallel deposits get distinct leaves and consistent roots."""
        mixer = ZKMixer(verifier=TransparentVerifier(), depth=8)
        notes = [Note.generate() for _ in range(40)]
        barrier = threading.Barrier(8)

        def worker(chunk):
            barrier.wait()
            for note in chunk:
                mixer.deposit(note.commitment, mixer.deposit_amount)

        threads = [threading.Thread(target=worker, args=(notes[i::8],)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(mixer.commitments()) == 40
        assert sorted(mixer.commitments()) == sorted(n.commitment for n in notes)
        assert mixer.custody_balance == 40 * mixer.deposit_amount
        assert len(mixer.roots()) == 41
        for index, commitment in enumerate(mixer.commitments()):
            assert build_path_from_leaves(mixer.commitments(), index, depth=8).root == mixer.get_current_root()

    def test_concurrent_double_spend(self):
        """Test the same withdrawal submitted from many threads pays once."""
        ledger = InMemoryLedger()
        mixer = ZKMixer(verifier=TransparentVerifier(), transfer=ledger, depth=8)
        note = Note.generate()
        mixer.deposit(note.commitment, mixer.deposit_amount)
        mixer.deposit(Note.generate().commitment, mixer.deposit_amount)
        path = mixer.get_path(0)
        proof = TransparentProver().prove(note, path, path.root, RECIPIENT)

        outcomes = []
        barrier = threading.Barrier(10)

        def attempt():
            barrier.wait()
            try:
                mixer.withdraw(proof, path.root, note.nullifier_hash, RECIPIENT)
                outcomes.append("ok")
            except ZKMixerException as e:
                outcomes.append(e.code)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("NullifierAlreadySpent") == 9
        assert ledger.balance_of(RECIPIENT) == mixer.deposit_amount
        assert mixer.custody_balance == mixer.deposit_amount


class TestPersistentWorkflow:
    """Mixer backed by SQLite across a restart."""

    def test_restart_between_deposit_and_withdrawal(self, temp_db):
        db = DatabaseManager(temp_db)
        db.create_tables()

        note = Note.generate()
        mixer = ZKMixer(verifier=TransparentVerifier(), depth=8, store=db)
        mixer.deposit(note.commitment, mixer.deposit_amount)
        path = mixer.get_path(0)
        proof = TransparentProver().prove(note, path, path.root, RECIPIENT)

        ledger = InMemoryLedger()
        restored = ZKMixer.from_snapshot(
            db.load_snapshot(), verifier=TransparentVerifier(), transfer=ledger, depth=8, store=db
        )
        restored.withdraw(proof, path.root, note.nullifier_hash, RECIPIENT)

        assert ledger.balance_of(RECIPIENT) == restored.deposit_amount
        assert db.is_nullifier_spent(note.nullifier_hash)
        db.engine.dispose()
