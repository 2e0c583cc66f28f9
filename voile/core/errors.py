"""Exception types for the Voile ledgers and matching core.

Three families, each terminal for the call that raised it:

- ``ValidationError``: the parameters are wrong (bounds, balance, zero amount).
  Retry with different parameters or a different offer.
- ``StateError``: the target entity is in an incompatible state or unknown.
  Re-query state before retrying.
- ``ConsistencyError``: a stored commitment disagrees with the one supplied.
  Always fatal to the enclosing operation.

Every class carries a short ``code`` used in log lines and rejection strings.
"""

from __future__ import annotations


class VoileError(Exception):
    """Base class for all protocol errors."""

    code = "error"


class ValidationError(VoileError):
    """Raised when an operation's parameters fail a domain or bounds check."""

    code = "validation"


class InsufficientBalance(ValidationError):
    """Raised when a debit exceeds the available balance."""

    code = "insufficient_balance"

    def __init__(self, available: int, requested: int) -> None:
        self.available = available
        self.requested = requested
        super().__init__(f"insufficient balance: available {available}, requested {requested}")


class StateError(VoileError):
    """Raised when an operation is attempted in an incompatible state."""

    code = "state"


class NotFound(StateError):
    """Raised when an id does not refer to a live record."""

    code = "not_found"


class AlreadyMatched(StateError):
    code = "already_matched"


class AlreadySettled(StateError):
    code = "already_settled"


class AlreadyCancelled(StateError):
    code = "already_cancelled"


class CooldownActive(StateError):
    """Raised when settlement is attempted before the cooldown has elapsed."""

    code = "cooldown_active"

    def __init__(self, current_timestamp: int, cooldown_end_timestamp: int) -> None:
        self.current_timestamp = current_timestamp
        self.cooldown_end_timestamp = cooldown_end_timestamp
        super().__init__(
            f"cooldown active until {cooldown_end_timestamp} (now {current_timestamp})"
        )


class ConsistencyError(VoileError):
    """Raised when a stored commitment does not match the expected one."""

    code = "consistency"

    def __init__(self, what: str, stored: int, expected: int) -> None:
        self.what = what
        self.stored = stored
        self.expected = expected
        super().__init__(f"{what} mismatch: stored {stored:#x}, expected {expected:#x}")


class InvariantViolation(VoileError):
    """Raised when a committed ledger state violates one or more invariants."""

    code = "invariant"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
