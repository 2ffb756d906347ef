"""Core Mixer: deposit/withdraw orchestration over a fixed denomination.

The mixer owns the accumulator, the root history, the nullifier registry and
the custody balance, and guards all four with one re-entrant lock. Each
deposit or withdrawal is a single critical section that either completes or
raises one of the protocol errors without side effects (the one exception is
TransferFailed, see below).

Transaction Flow:

    DEPOSIT(commitment, value):
        1. Mixer not paused
        2. value == FIXED_DEPOSIT_AMOUNT            else WrongAmount
        3. Insert commitment into the accumulator   else DuplicateCommitment /
                                                         CapacityExceeded
        4. Record the new root, custody += value

    WITHDRAW(proof, root, nullifier_hash, recipient):
        1. Mixer not paused
        2. recipient != null address                else InvalidRecipient
        3. nullifier_hash not spent                 else NullifierAlreadySpent
        4. root in root history                     else InvalidRoot
        5. proof verifies on [root, nullifier_hash, recipient]
                                                    else InvalidProof
        6. Mark nullifier spent, custody -= amount
        7. Transfer FIXED_DEPOSIT_AMOUNT to recipient (last step)

Transfer failure policy:
    The nullifier stays spent when the transfer fails. The claim is lost
    rather than reopened, so a recipient that re-enters the mixer during the
    transfer can never observe the nullifier as unspent. The undelivered
    amount is credited back to custody and TransferFailed is raised.

Persistence:
    With a store attached, every change is written to the store before memory
    is touched. A StorageError therefore leaves the mixer exactly as it was,
    except when the refund after a failed transfer cannot be written: then
    memory keeps matching what the store holds.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Protocol, Sequence, Union

from zkmixer.core.merkle_tree import DEFAULT_DEPTH, MerkleAccumulator, MerklePath
from zkmixer.core.nullifier import NullifierRegistry
from zkmixer.core.root_history import RootHistory
from zkmixer.core.transfer import AssetTransfer, InMemoryLedger
from zkmixer.core.verifier import ProofVerifier, PublicInputs, VerificationGateway
from zkmixer.utils.hash import DEFAULT_HASHER, FieldHasher, is_field_element
from zkmixer.utils.encoding import NULL_ADDRESS, field_to_hex, normalize_address
from zkmixer.exceptions import (
    AdminError,
    InvalidMixerStateError,
    InvalidProofError,
    InvalidRecipientError,
    InvalidRootError,
    NullifierAlreadySpentError,
    SystemPausedError,
    TransferFailedError,
    UnauthorizedError,
    WrongAmountError,
    ZKMixerException,
)

logger = logging.getLogger(__name__)

# 0.1 ETH in wei
DEFAULT_DEPOSIT_AMOUNT = 10**17
DEFAULT_OWNER = "0x0000000000000000000000000000000000000001"


class StateStore(Protocol):
    """
    Persistence hook called inside the mixer's critical section.

    Each call must write all of its rows in one transaction or none of them.
    The mixer calls the store before changing memory, so a raising store
    leaves both sides unchanged.
    """

    def record_deposit(self, leaf_index: int, commitment: int, root: int, custody_balance: int) -> None:
        ...

    def record_nullifier(self, nullifier_hash: int, root: int, custody_balance: int) -> None:
        ...

    def record_custody(self, balance: int) -> None:
        ...


class DepositReceipt:
    """Receipt (and event) for a successful deposit."""

    def __init__(self, commitment: int, leaf_index: int, root: int, timestamp: datetime):
        self.commitment = commitment
        self.leaf_index = leaf_index
        self.root = root
        self.timestamp = timestamp

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "event": "Deposit",
            "commitment": field_to_hex(self.commitment),
            "leaf_index": self.leaf_index,
            "root": field_to_hex(self.root),
            "timestamp": self.timestamp.isoformat(),
        }


class WithdrawalReceipt:
    """Receipt (and event) for a successful withdrawal."""

    def __init__(self, recipient: str, nullifier_hash: int, amount: int, timestamp: datetime):
        self.recipient = recipient
        self.nullifier_hash = nullifier_hash
        self.amount = amount
        self.timestamp = timestamp

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "event": "Withdrawal",
            "recipient": self.recipient,
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
        }


class DrainReceipt:
    """Receipt for an emergency drain."""

    def __init__(self, recipient: str, amount: int, timestamp: datetime):
        self.recipient = recipient
        self.amount = amount
        self.timestamp = timestamp

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "recipient": self.recipient,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
        }


MixerEvent = Union[DepositReceipt, WithdrawalReceipt]


@dataclass
class WithdrawalRequest:
    """One withdrawal attempt: ``(proof, root, nullifier_hash, recipient)``."""

    proof: Any
    root: int
    nullifier_hash: int
    recipient: str


@dataclass
class MixerState:
    """Read-only snapshot of the mixer's public state."""

    root: int
    depth: int
    capacity: int
    num_commitments: int
    num_nullifiers: int
    num_roots: int
    root_history_policy: str
    custody_balance: int
    deposit_amount: int
    paused: bool

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "root": field_to_hex(self.root),
            "depth": self.depth,
            "capacity": self.capacity,
            "num_commitments": self.num_commitments,
            "num_nullifiers": self.num_nullifiers,
            "num_roots": self.num_roots,
            "root_history_policy": self.root_history_policy,
            "custody_balance": self.custody_balance,
            "deposit_amount": self.deposit_amount,
            "paused": self.paused,
        }


@dataclass
class MixerSnapshot:
    """Persisted state, enough to rebuild a mixer."""

    commitments: List[int] = field(default_factory=list)
    roots: List[int] = field(default_factory=list)  # root after each deposit
    nullifiers: List[int] = field(default_factory=list)
    custody_balance: int = 0


class ZKMixer:
    """
    Deposit/withdraw orchestrator.

    All collaborators are injected, so independent instances never share
    state and tests can swap the verifier or the transfer backend.
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        transfer: Optional[AssetTransfer] = None,
        depth: int = DEFAULT_DEPTH,
        deposit_amount: int = DEFAULT_DEPOSIT_AMOUNT,
        root_history_size: Optional[int] = None,
        owner: str = DEFAULT_OWNER,
        hasher: FieldHasher = DEFAULT_HASHER,
        store: Optional[StateStore] = None,
    ):
        """
        Initialize mixer with empty state.

        Args:
            verifier: Proof verification backend
            transfer: Asset transfer backend (in-memory ledger by default)
            depth: Merkle tree depth (default 20)
            deposit_amount: Fixed denomination
            root_history_size: Root window size, None for unbounded
            owner: Address allowed to use the administrative surface
            hasher: Field hash, must match the circuit
            store: Optional persistence hook
        """
        if deposit_amount <= 0:
            raise ValueError("Deposit amount must be positive")

        self.tree = MerkleAccumulator(depth=depth, hasher=hasher)
        self.root_history = RootHistory(max_size=root_history_size)
        self.nullifiers = NullifierRegistry()
        self.gateway = VerificationGateway(verifier)
        self.transfer = transfer if transfer is not None else InMemoryLedger()
        self.deposit_amount = deposit_amount
        self.owner = normalize_address(owner)
        self.store = store

        self.custody_balance = 0
        self.paused = False
        self.events: List[MixerEvent] = []
        self._listeners: List[Callable[[MixerEvent], None]] = []
        self._lock = threading.RLock()

        # Withdrawals may target the empty tree's root as well
        self.root_history.record_root(self.tree.root)

    @classmethod
    def from_settings(cls, settings, verifier: ProofVerifier, **kwargs) -> "ZKMixer":
        """Build a mixer from ``MixerSettings``."""
        return cls(
            verifier=verifier,
            depth=settings.tree_depth,
            deposit_amount=settings.deposit_amount,
            root_history_size=settings.root_history_size,
            owner=settings.owner_address,
            **kwargs,
        )

    # ========== DEPOSIT ==========

    def deposit(self, commitment: int, value: int) -> DepositReceipt:
        """
        Accept a deposit of exactly the fixed denomination.

        Args:
            commitment: ``H(secret, nullifier_secret)`` computed by the depositor
            value: Amount sent with the deposit

        Returns:
            DepositReceipt: Leaf index and the new root

        Raises:
            SystemPausedError: If the mixer is paused
            WrongAmountError: If value differs from the denomination
            DuplicateCommitmentError: If the commitment already exists
            CapacityExceededError: If the tree is full
        """
        with self._lock:
            self._require_not_paused()

            if value != self.deposit_amount:
                logger.warning(f"Deposit rejected: amount {value} != {self.deposit_amount}")
                raise WrongAmountError(f"Deposit must be exactly {self.deposit_amount}")

            leaf_index, root = self.tree.preview_insert(commitment)
            if self.store is not None:
                self.store.record_deposit(leaf_index, commitment, root, self.custody_balance + value)

            self.tree.insert(commitment)
            self.root_history.record_root(root)
            self.custody_balance += value

            receipt = DepositReceipt(
                commitment=commitment,
                leaf_index=leaf_index,
                root=root,
                timestamp=datetime.now(timezone.utc),
            )
            self._emit(receipt)

        logger.info(f"Deposit accepted at leaf {leaf_index}")
        return receipt

    # ========== WITHDRAW ==========

    def withdraw(self, proof: Any, root: int, nullifier_hash: int, recipient: str) -> WithdrawalReceipt:
        """
        Redeem one deposit to ``recipient``.

        Checks run cheapest first and stop at the first failure; no state
        changes unless all of them pass.

        Raises:
            SystemPausedError: If the mixer is paused
            InvalidRecipientError: If recipient is null or malformed
            NullifierAlreadySpentError: If the nullifier was already redeemed
            InvalidRootError: If root is not in the root history
            InvalidProofError: If the proof does not verify
            TransferFailedError: If the payout did not go through
        """
        with self._lock:
            self._require_not_paused()
            recipient = self._check_recipient(recipient)

            if self.nullifiers.is_spent(nullifier_hash):
                logger.warning("Withdrawal rejected: nullifier already spent")
                raise NullifierAlreadySpentError("Nullifier already spent")

            if not self.root_history.is_valid_root(root):
                logger.warning("Withdrawal rejected: unknown root")
                raise InvalidRootError("Root is not in the root history")

            if not is_field_element(nullifier_hash):
                raise InvalidProofError("Proof verification failed")

            public_inputs = PublicInputs(root=root, nullifier_hash=nullifier_hash, recipient=recipient)
            if not self.gateway.verify(proof, public_inputs):
                logger.warning("Withdrawal rejected: proof did not verify")
                raise InvalidProofError("Proof verification failed")

            amount = self.deposit_amount
            if self.custody_balance < amount:
                raise TransferFailedError("Insufficient funds in custody")

            # Effects before the external call
            if self.store is not None:
                self.store.record_nullifier(nullifier_hash, root, self.custody_balance - amount)
            self.nullifiers.mark_spent(nullifier_hash, root)
            self.custody_balance -= amount

            self._pay(recipient, amount)

            receipt = WithdrawalReceipt(
                recipient=recipient,
                nullifier_hash=nullifier_hash,
                amount=amount,
                timestamp=datetime.now(timezone.utc),
            )
            self._emit(receipt)

        logger.info(f"Withdrawal of {amount} paid to {recipient}")
        return receipt

    def withdraw_batch(self, requests: Sequence[WithdrawalRequest]) -> List[bool]:
        """
        Process independent withdrawals.

        Each request is its own atomic attempt; a failing request never rolls
        back or blocks the others.

        Returns:
            List[bool]: Success flag per request, in request order
        """
        results = []
        for position, request in enumerate(requests):
            try:
                self.withdraw(request.proof, request.root, request.nullifier_hash, request.recipient)
                results.append(True)
            except ZKMixerException as e:
                logger.warning(f"Batch withdrawal #{position} failed: {e.code}")
                results.append(False)
        return results

    def _check_recipient(self, recipient: str) -> str:
        try:
            normalized = normalize_address(recipient)
        except (ValueError, TypeError):
            raise InvalidRecipientError("Recipient is not a valid address")
        if normalized == NULL_ADDRESS:
            raise InvalidRecipientError("Recipient must not be the null address")
        return normalized

    def _pay(self, recipient: str, amount: int) -> None:
        try:
            delivered = self.transfer.transfer(recipient, amount)
        except Exception as e:
            logger.error(f"Transfer to {recipient} raised: {e}", exc_info=True)
            delivered = False

        if delivered is not True:
            # Nullifier stays spent; funds never left custody
            if self.store is not None:
                self.store.record_custody(self.custody_balance + amount)
            self.custody_balance += amount
            raise TransferFailedError("Transfer to recipient failed")

    # ========== ADMINISTRATION ==========

    def pause(self, caller: str) -> None:
        """Stop deposits and withdrawals. Owner only."""
        self._require_owner(caller)
        with self._lock:
            self.paused = True
        logger.info("Mixer paused")

    def unpause(self, caller: str) -> None:
        """Resume deposits and withdrawals. Owner only."""
        self._require_owner(caller)
        with self._lock:
            self.paused = False
        logger.info("Mixer unpaused")

    def emergency_drain(self, caller: str, recipient: str) -> DrainReceipt:
        """
        Move the whole custody balance to ``recipient``.

        Only allowed for the owner while paused. Notes deposited before the
        drain can no longer be paid out.

        Returns:
            DrainReceipt: Normalized recipient and the amount drained
        """
        self._require_owner(caller)
        with self._lock:
            if not self.paused:
                raise AdminError("Emergency drain requires the mixer to be paused")
            recipient = self._check_recipient(recipient)

            amount = self.custody_balance
            receipt = DrainReceipt(recipient=recipient, amount=amount, timestamp=datetime.now(timezone.utc))
            if amount == 0:
                return receipt

            if self.store is not None:
                self.store.record_custody(0)
            self.custody_balance = 0
            self._pay(recipient, amount)

        logger.warning(f"Emergency drain of {amount} to {recipient}")
        return receipt

    def _require_owner(self, caller: str) -> None:
        try:
            is_owner = normalize_address(caller) == self.owner
        except (ValueError, TypeError):
            is_owner = False
        if not is_owner:
            logger.warning("Rejected administrative call from non-owner")
            raise UnauthorizedError("Caller is not the owner")

    def _require_not_paused(self) -> None:
        if self.paused:
            raise SystemPausedError("Mixer is paused")

    # ========== EVENTS ==========

    def subscribe(self, listener: Callable[[MixerEvent], None]) -> None:
        """Register a callback for deposit and withdrawal events."""
        self._listeners.append(listener)

    def _emit(self, event: MixerEvent) -> None:
        self.events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed: {e}", exc_info=True)

    # ========== QUERIES ==========

    @property
    def depth(self) -> int:
        return self.tree.depth

    def get_current_root(self) -> int:
        return self.tree.root

    def is_known_root(self, root: int) -> bool:
        return self.root_history.is_valid_root(root)

    def is_spent(self, nullifier_hash: int) -> bool:
        return self.nullifiers.is_spent(nullifier_hash)

    def has_commitment(self, commitment: int) -> bool:
        return self.tree.contains(commitment)

    def commitments(self) -> List[int]:
        """Ordered leaf array."""
        with self._lock:
            return list(self.tree.leaves)

    def roots(self) -> List[int]:
        """Root history window, oldest first."""
        with self._lock:
            return self.root_history.roots()

    def get_path(self, leaf_index: int) -> MerklePath:
        """Authentication path of a leaf against the current root."""
        with self._lock:
            return self.tree.get_path(leaf_index)

    def get_state(self) -> MixerState:
        """Return current mixer state."""
        with self._lock:
            return MixerState(
                root=self.tree.root,
                depth=self.tree.depth,
                capacity=self.tree.capacity,
                num_commitments=len(self.tree),
                num_nullifiers=len(self.nullifiers),
                num_roots=len(self.root_history),
                root_history_policy=self.root_history.policy,
                custody_balance=self.custody_balance,
                deposit_amount=self.deposit_amount,
                paused=self.paused,
            )

    def snapshot(self) -> MixerSnapshot:
        """Capture persisted-state layout in memory."""
        with self._lock:
            return MixerSnapshot(
                commitments=list(self.tree.leaves),
                roots=self._deposit_roots(),
                nullifiers=self.nullifiers.spent_hashes(),
                custody_balance=self.custody_balance,
            )

    def _deposit_roots(self) -> List[int]:
        # Roots after each insertion, recomputed from the leaves so a bounded
        # window does not lose them
        replay = MerkleAccumulator(depth=self.tree.depth, hasher=self.tree.hasher)
        return [replay.insert(c)[1] for c in self.tree.leaves]

    @classmethod
    def from_snapshot(cls, snapshot: MixerSnapshot, verifier: ProofVerifier, **kwargs) -> "ZKMixer":
        """
        Rebuild a mixer from persisted state.

        Commitments are replayed in order and every recomputed root must match
        the stored one.

        Raises:
            InvalidMixerStateError: If the snapshot is inconsistent
        """
        store = kwargs.pop("store", None)
        mixer = cls(verifier=verifier, **kwargs)

        if len(snapshot.roots) != len(snapshot.commitments):
            raise InvalidMixerStateError("Snapshot must hold one root per commitment")

        for commitment, expected_root in zip(snapshot.commitments, snapshot.roots):
            _, root = mixer.tree.insert(commitment)
            if root != expected_root:
                raise InvalidMixerStateError("Stored root does not match replayed commitments")
            mixer.root_history.record_root(root)

        for nullifier_hash in snapshot.nullifiers:
            mixer.nullifiers.mark_spent(nullifier_hash)

        mixer.custody_balance = snapshot.custody_balance
        mixer.store = store

        logger.info(
            f"Restored mixer with {len(mixer.tree)} commitments and {len(mixer.nullifiers)} nullifiers"
        )
        return mixer

    def __repr__(self) -> str:
        return (
            f"ZKMixer(depth={self.tree.depth}, commitments={len(self.tree)}, "
            f"nullifiers={len(self.nullifiers)}, paused={self.paused})"
        )
