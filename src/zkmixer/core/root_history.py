"""Window of historical Merkle roots accepted for withdrawals.

A withdrawal proof is generated off-line against whatever root the client
saw; by the time it is submitted more deposits may have moved the tree on.
The window keeps earlier roots valid.

Policies:
    - Unbounded (``max_size=None``, default): every root ever recorded stays
      valid. Storage grows with the number of deposits.
    - Bounded (``max_size=N``): ring buffer of the last N roots. A proof
      against an evicted root becomes permanently unredeemable and the client
      must regenerate it against a newer root.
"""

import logging
from collections import deque
from typing import Deque, Iterator, List, Optional

from zkmixer.utils.encoding import field_to_hex

logger = logging.getLogger(__name__)


class RootHistory:
    """Insertion-ordered, optionally bounded set of valid roots."""

    def __init__(self, max_size: Optional[int] = None):
        if max_size is not None and max_size < 1:
            raise ValueError("Root history size must be positive or None")

        self.max_size = max_size
        self._roots: Deque[int] = deque(maxlen=max_size)

    @property
    def policy(self) -> str:
        return "unbounded" if self.max_size is None else f"bounded({self.max_size})"

    def record_root(self, root: int) -> None:
        """Append a root; in bounded mode the oldest root may be evicted."""
        if self.max_size is not None and len(self._roots) == self.max_size:
            logger.debug(f"Evicting root {field_to_hex(self._roots[0])[:18]}... from history")
        self._roots.append(root)

    def is_valid_root(self, root: int) -> bool:
        """Check whether a root is inside the window."""
        return any(candidate == root for candidate in self._roots)

    @property
    def latest(self) -> Optional[int]:
        return self._roots[-1] if self._roots else None

    def roots(self) -> List[int]:
        """Snapshot of the window, oldest first."""
        return list(self._roots)

    def __contains__(self, root: object) -> bool:
        return isinstance(root, int) and self.is_valid_root(root)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._roots))

    def __len__(self) -> int:
        return len(self._roots)

    def __repr__(self) -> str:
        return f"RootHistory(policy={self.policy}, roots={len(self._roots)})"
