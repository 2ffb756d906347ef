"""Registry of spent nullifier hashes.

The registry is the sole double-spend defense: every nullifier hash moves
from unspent to spent exactly once and never back. It does not validate
proofs; that is the verification gateway's job.

Records deliberately hold no leaf index or commitment, so the registry can be
published without linking withdrawals to deposits.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from zkmixer.utils.encoding import field_to_hex, hex_to_field
from zkmixer.exceptions import NullifierAlreadySpentError

logger = logging.getLogger(__name__)


@dataclass
class NullifierRecord:
    """Record of a spent nullifier."""

    nullifier_hash: str  # 0x-prefixed field element
    spent_at: str  # ISO-8601 timestamp, informational only
    root: Optional[str] = None  # Root the withdrawal proved against

    def serialize(self) -> str:
        """Serialize to JSON."""
        return json.dumps(asdict(self))


class NullifierRegistry:
    """
    Set of spent nullifier hashes with atomic check-and-set.

    ``mark_spent`` holds an internal lock, so no two callers can both observe
    a hash as unspent and both mark it.
    """

    def __init__(self):
        self._spent: Dict[int, NullifierRecord] = {}
        self._lock = threading.Lock()

    def is_spent(self, nullifier_hash: int) -> bool:
        """Check if a nullifier hash has been spent."""
        return nullifier_hash in self._spent

    def mark_spent(self, nullifier_hash: int, root: Optional[int] = None) -> NullifierRecord:
        """
        Mark a nullifier hash as spent.

        Args:
            nullifier_hash: Public nullifier hash from the withdrawal
            root: Root the withdrawal was proven against

        Returns:
            NullifierRecord: The stored record

        Raises:
            NullifierAlreadySpentError: If already marked
        """
        with self._lock:
            if nullifier_hash in self._spent:
                raise NullifierAlreadySpentError("Nullifier already spent")

            record = NullifierRecord(
                nullifier_hash=field_to_hex(nullifier_hash),
                spent_at=datetime.now(timezone.utc).isoformat(),
                root=field_to_hex(root) if root is not None else None,
            )
            self._spent[nullifier_hash] = record

        logger.debug(f"Nullifier {record.nullifier_hash[:18]}... marked spent")
        return record

    def get_record(self, nullifier_hash: int) -> Optional[NullifierRecord]:
        """Get spending record for a nullifier hash."""
        return self._spent.get(nullifier_hash)

    def spent_hashes(self) -> List[int]:
        """Spent hashes in spending order."""
        return list(self._spent)

    @property
    def size(self) -> int:
        """Number of spent nullifiers."""
        return len(self._spent)

    def __contains__(self, nullifier_hash: object) -> bool:
        return nullifier_hash in self._spent

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._spent))

    def __len__(self) -> int:
        return len(self._spent)

    def serialize(self) -> str:
        """Serialize registry to JSON."""
        return json.dumps(
            {
                "records": [asdict(record) for record in self._spent.values()],
                "total_spent": self.size,
            }
        )

    @classmethod
    def deserialize(cls, json_str: str) -> "NullifierRegistry":
        """Deserialize registry from JSON."""
        data = json.loads(json_str)

        registry = cls()
        for record_data in data["records"]:
            record = NullifierRecord(
                nullifier_hash=record_data["nullifier_hash"],
                spent_at=record_data["spent_at"],
                root=record_data.get("root"),
            )
            registry._spent[hex_to_field(record.nullifier_hash)] = record

        return registry
