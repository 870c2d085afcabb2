"""PIN-based access control.

A single shared PIN guards the destructive operations of the ledger. The PIN
is read from the persistence adapter when the session starts and falls back to
:data:`~shop_ledger.constants.DEFAULT_PIN` when nothing has been stored yet.
"""

from __future__ import annotations

from typing import Optional

from . import log
from .constants import DEFAULT_PIN, MIN_PIN_LENGTH, StoreKey
from .core_logic import BusinessRuleViolation, LedgerStore, PersistenceAdapter


class AccessDenied(BusinessRuleViolation):
    """Base class for rejected PIN operations."""


class WrongCurrentSecret(AccessDenied):
    """Raised when the supplied PIN does not match the stored one."""


class TooShort(AccessDenied):
    """Raised when a new PIN has fewer than ``MIN_PIN_LENGTH`` characters."""


class PinMismatch(AccessDenied):
    """Raised when a new PIN and its confirmation differ."""


class AccessControl:
    """Verify and change the shared PIN.

    Args:
        adapter: Persistence adapter the PIN is loaded from and saved to.
    """

    def __init__(self, adapter: PersistenceAdapter):
        self.adapter = adapter
        stored = adapter.load(StoreKey.PIN)
        self._pin: str = stored if stored else DEFAULT_PIN
        if not stored:
            log.info("No stored PIN found; using the default PIN")

    def verify(self, candidate: Optional[str]) -> bool:
        """Exact comparison of ``candidate`` against the stored PIN."""

        return candidate == self._pin

    def change(self, current: str, new_pin: str, *, confirmation: Optional[str] = None) -> None:
        """Replace the stored PIN.

        Checks run in order: the current PIN, the new PIN's length, then the
        optional confirmation. Nothing is stored unless all of them pass.

        Args:
            current (str): The PIN the user believes is current.
            new_pin (str): The replacement PIN.
            confirmation (str | None): Repeated new PIN, when the caller
                collected one.

        Raises:
            WrongCurrentSecret: If ``current`` is not the stored PIN.
            TooShort: If ``new_pin`` is shorter than ``MIN_PIN_LENGTH``.
            PinMismatch: If ``confirmation`` is given and differs from
                ``new_pin``.
        """

        if not self.verify(current):
            log.warning("PIN change rejected: current PIN is incorrect")
            raise WrongCurrentSecret("Current PIN is incorrect")
        if len(new_pin) < MIN_PIN_LENGTH:
            log.warning("PIN change rejected: new PIN shorter than %d characters", MIN_PIN_LENGTH)
            raise TooShort(f"New PIN must be at least {MIN_PIN_LENGTH} characters")
        if confirmation is not None and confirmation != new_pin:
            log.warning("PIN change rejected: confirmation does not match")
            raise PinMismatch("New PIN and confirmation do not match")

        self._pin = new_pin
        self.adapter.save(StoreKey.PIN, new_pin)
        log.info("PIN changed")

    def clear_all_data(self, store: LedgerStore, candidate: Optional[str]) -> None:
        """Wipe every product, sale and staff member after checking the PIN.

        Raises:
            WrongCurrentSecret: If ``candidate`` is not the stored PIN; the
                ledger is left untouched.
        """

        if not self.verify(candidate):
            log.warning("Clear-all-data rejected: incorrect PIN")
            raise WrongCurrentSecret("Incorrect PIN; data not cleared")
        store.clear()
