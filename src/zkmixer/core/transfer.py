"""Asset transfer capability used to pay out withdrawals."""

import logging
from typing import Callable, Dict, Optional, Protocol, Set

from zkmixer.utils.encoding import normalize_address

logger = logging.getLogger(__name__)

ReceiveHook = Callable[[str, int], None]


class AssetTransfer(Protocol):
    """Moves funds out of custody. May fail for reasons outside the mixer."""

    def transfer(self, recipient: str, amount: int) -> bool:
        ...


class InMemoryLedger:
    """
    Account balances kept in memory.

    Recipients can be set to refuse funds, and a receive hook can run
    arbitrary code when an account is paid (including calls back into the
    mixer), which is how on-chain recipients behave.
    """

    def __init__(self):
        self.balances: Dict[str, int] = {}
        self._refusing: Set[str] = set()
        self._hooks: Dict[str, ReceiveHook] = {}

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def refuse_funds(self, address: str, refuse: bool = True) -> None:
        """Make an account reject (or accept again) incoming transfers."""
        address = normalize_address(address)
        if refuse:
            self._refusing.add(address)
        else:
            self._refusing.discard(address)

    def set_receive_hook(self, address: str, hook: Optional[ReceiveHook]) -> None:
        address = normalize_address(address)
        if hook is None:
            self._hooks.pop(address, None)
        else:
            self._hooks[address] = hook

    def transfer(self, recipient: str, amount: int) -> bool:
        recipient = normalize_address(recipient)
        if amount <= 0:
            return False
        if recipient in self._refusing:
            logger.warning(f"Recipient {recipient} refused transfer")
            return False

        hook = self._hooks.get(recipient)
        if hook is not None:
            hook(recipient, amount)

        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        return True
