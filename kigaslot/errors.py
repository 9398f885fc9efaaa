"""Error codes and exceptions for the spin engine."""
from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error and rejection codes."""

    GAME_OVER = "GAME_OVER"
    INSUFFICIENT_MEDALS = "INSUFFICIENT_MEDALS"
    EMPTY_DECK = "EMPTY_DECK"
    PHASE_PENDING = "PHASE_PENDING"
    UNKNOWN_SYMBOL = "UNKNOWN_SYMBOL"
    UNKNOWN_RELIC = "UNKNOWN_RELIC"
    UNKNOWN_ENEMY = "UNKNOWN_ENEMY"
    INVALID_CATALOG = "INVALID_CATALOG"


# Recoverable means the caller can fix it without changing content:
# earn or wait for medals, finish the pending phase, etc.
ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.GAME_OVER: False,
    ErrorCode.INSUFFICIENT_MEDALS: False,
    ErrorCode.EMPTY_DECK: True,
    ErrorCode.PHASE_PENDING: True,
    ErrorCode.UNKNOWN_SYMBOL: False,
    ErrorCode.UNKNOWN_RELIC: False,
    ErrorCode.UNKNOWN_ENEMY: False,
    ErrorCode.INVALID_CATALOG: False,
}


class ErrorBody(BaseModel):
    """Serializable error shape (used in logs and audit output)."""

    code: str
    message: str
    recoverable: bool


class GameError(Exception):
    """Base engine error for content and programming mistakes.

    Spin eligibility failures are not raised; they come back as a rejected
    SpinResult carrying the matching ErrorCode.
    """

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or f"Error: {code.value}"
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_body(self) -> ErrorBody:
        """Convert to the serializable error body."""
        return ErrorBody(
            code=self.code.value,
            message=self.message,
            recoverable=self.recoverable,
        )
