#!/usr/bin/env python3
"""
Quick start guide for the ZK-Mixer system.

Run this to see a complete deposit / withdraw workflow with the transparent
development verifier.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkmixer.core.commitment import Note
from zkmixer.core.merkle_tree import build_path_from_leaves
from zkmixer.core.mixer import DEFAULT_OWNER, WithdrawalRequest, ZKMixer
from zkmixer.core.transfer import InMemoryLedger
from zkmixer.core.zkproof import TransparentProver, TransparentVerifier
from zkmixer.exceptions import ZKMixerException
from zkmixer.utils.encoding import field_to_hex


def main():
    """Run a simple example of the ZK-Mixer system."""

    print("=" * 70)
    print("ZK-MIXER QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Initialize the mixer
    print("Step 1: Initialize the ZK-Mixer")
    print("-" * 70)
    ledger = InMemoryLedger()
    mixer = ZKMixer(verifier=TransparentVerifier(), transfer=ledger, depth=8)
    print(f"Mixer created with 8-level Merkle tree ({mixer.tree.capacity} deposits)")
    print(f"  Denomination: {mixer.deposit_amount} wei")
    print(f"  Empty root:   {field_to_hex(mixer.get_current_root())[:26]}...")
    print()

    # Step 2: Alice and Bob deposit
    print("Step 2: Alice and Bob deposit (only commitments are published)")
    print("-" * 70)
    alice, bob = Note.generate(), Note.generate()
    alice_receipt = mixer.deposit(alice.commitment, mixer.deposit_amount)
    bob_receipt = mixer.deposit(bob.commitment, mixer.deposit_amount)
    print(f"  Alice: leaf {alice_receipt.leaf_index}, commitment {field_to_hex(alice.commitment)[:26]}...")
    print(f"  Bob:   leaf {bob_receipt.leaf_index}, commitment {field_to_hex(bob.commitment)[:26]}...")
    print(f"  Custody: {mixer.custody_balance} wei")
    print()

    # Step 3: Alice builds her path from the public leaf array and proves
    print("Step 3: Alice withdraws to a fresh address")
    print("-" * 70)
    recipient = "0x00000000000000000000000000000000000a11ce"
    path = build_path_from_leaves(mixer.commitments(), alice_receipt.leaf_index, depth=mixer.depth)
    proof = TransparentProver().prove(alice, path, path.root, recipient)
    receipt = mixer.withdraw(proof, path.root, alice.nullifier_hash, recipient)
    print(f"  Paid {receipt.amount} wei to {receipt.recipient}")
    print(f"  Nullifier spent: {mixer.is_spent(alice.nullifier_hash)}")
    print()

    # Step 4: Replay is rejected
    print("Step 4: Replaying the same withdrawal")
    print("-" * 70)
    try:
        mixer.withdraw(proof, path.root, alice.nullifier_hash, recipient)
    except ZKMixerException as e:
        print(f"  Rejected: {e.code}")
    print()

    # Step 5: Batch withdrawal, one bad request
    print("Step 5: Batch withdrawal [Bob, Alice replay]")
    print("-" * 70)
    bob_path = mixer.get_path(bob_receipt.leaf_index)
    bob_proof = TransparentProver().prove(bob, bob_path, bob_path.root, "0xb0b")
    results = mixer.withdraw_batch(
        [
            WithdrawalRequest(bob_proof, bob_path.root, bob.nullifier_hash, "0xb0b"),
            WithdrawalRequest(proof, path.root, alice.nullifier_hash, recipient),
        ]
    )
    print(f"  Results: {results}")
    print()

    # Step 6: Admin pause
    print("Step 6: Owner pauses the mixer")
    print("-" * 70)
    mixer.pause(DEFAULT_OWNER)
    print(f"  Paused: {mixer.get_state().paused}")
    print()

    state = mixer.get_state()
    print("=" * 70)
    print(f"Final state: {state.num_commitments} commitments, {state.num_nullifiers} nullifiers, "
          f"custody {state.custody_balance} wei")
    print("=" * 70)


if __name__ == "__main__":
    main()
