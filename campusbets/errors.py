"""Error types shared across campusbets.

Code ranges:
  1xxx: Auth/session
  2xxx: Account
  3xxx: Market
  4xxx: Wager
  9xxx: Store/system
"""

from __future__ import annotations

from typing import Optional, Sequence


class AppError(Exception):
    """Base application error carrying a numeric code and a readable message."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Auth/session ---

class ProfileFetchTimeout(AppError):
    def __init__(self, user_id: str, timeout: float) -> None:
        self.user_id = user_id
        self.timeout = timeout
        super().__init__(1002, f"Profile fetch for {user_id} timed out after {timeout:g}s")


# --- 3xxx: Market ---

class MarketRejected(AppError):
    """A market could not be created because its input was invalid."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(3001, reason)


# --- 4xxx: Wager ---

NOT_SIGNED_IN = "not signed in"
UNKNOWN_MARKET = "unknown market"
MARKET_CLOSED = "market closed"
ALREADY_WAGERED = "already wagered"
NON_POSITIVE_AMOUNT = "amount must be positive"
INSUFFICIENT_BALANCE = "insufficient balance"

_WAGER_CODES = {
    NOT_SIGNED_IN: 4001,
    UNKNOWN_MARKET: 4002,
    MARKET_CLOSED: 4003,
    ALREADY_WAGERED: 4004,
    NON_POSITIVE_AMOUNT: 4005,
    INSUFFICIENT_BALANCE: 4006,
}


class WagerRejected(AppError):
    """A wager failed validation; nothing was written."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(_WAGER_CODES.get(reason, 4000), reason)


class PartialPlacementError(AppError):
    """Some placement steps reached the store and a later one failed.

    Nothing is rolled back. The next successful fetch reconciles the view.
    """

    def __init__(
        self,
        completed: Sequence[str],
        failed: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.completed = tuple(completed)
        self.failed = failed
        self.cause = cause
        done = ", ".join(self.completed) or "nothing"
        super().__init__(
            4100,
            f"Wager only partly recorded: completed {done}; '{failed}' failed: {cause}",
        )
