"""Tests for the nullifier registry."""

import threading

import pytest

from zkmixer.core.nullifier import NullifierRegistry
from zkmixer.exceptions import NullifierAlreadySpentError
from zkmixer.utils.encoding import field_to_hex
from zkmixer.utils.hash import compute_nullifier_hash


@pytest.fixture
def registry():
    return NullifierRegistry()


class TestNullifierRegistry:
    """Tests for spend tracking."""

    def test_initially_unspent(self, registry):
        assert not registry.is_spent(compute_nullifier_hash(7))
        assert len(registry) == 0

    def test_mark_spent(self, registry):
        """Test marking records the hash and the root."""
        nullifier_hash = compute_nullifier_hash(7)
        record = registry.mark_spent(nullifier_hash, root=42)

        assert registry.is_spent(nullifier_hash)
        assert nullifier_hash in registry
        assert record.nullifier_hash == field_to_hex(nullifier_hash)
        assert record.root == field_to_hex(42)
        assert registry.get_record(nullifier_hash) == record

    def test_double_spend(self, registry):
        """Test a hash can only be marked once."""
        nullifier_hash = compute_nullifier_hash(7)
        registry.mark_spent(nullifier_hash)
        with pytest.raises(NullifierAlreadySpentError):
            registry.mark_spent(nullifier_hash)
        assert registry.size == 1

    def test_spending_order(self, registry):
        for secret in (3, 1, 2):
            registry.mark_spent(compute_nullifier_hash(secret))
        assert registry.spent_hashes() == [compute_nullifier_hash(s) for s in (3, 1, 2)]

    def test_concurrent_mark_spent(self, registry):
        """Test exactly one of many concurrent markers wins."""
        nullifier_hash = compute_nullifier_hash(7)
        results = []
        barrier = threading.Barrier(8)

        def spend():
            barrier.wait()
            try:
                registry.mark_spent(nullifier_hash)
                results.append(True)
            except NullifierAlreadySpentError:
                results.append(False)

        threads = [threading.Thread(target=spend) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7

    def test_serialization(self, registry):
        """Test registry survives a JSON round trip."""
        registry.mark_spent(compute_nullifier_hash(1), root=5)
        registry.mark_spent(compute_nullifier_hash(2))

        restored = NullifierRegistry.deserialize(registry.serialize())
        assert restored.spent_hashes() == registry.spent_hashes()
        assert restored.get_record(compute_nullifier_hash(1)).root == field_to_hex(5)
