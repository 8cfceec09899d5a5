from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import AnimationResult, WinnerRecord


class WheelEngineError(Exception):
    """Base exception for wheel engine failures."""


class EmptyPoolError(WheelEngineError):
    """Raised when no participant holds any entries."""


class InvalidPoolError(WheelEngineError, ValueError):
    """Raised when an entry pool contains malformed counts."""


class WinnerMismatchError(WheelEngineError):
    """Raised when a pre-chosen winner is not among the drawable segments."""


class InvalidConfigError(WheelEngineError, ValueError):
    """Raised when a wheel configuration value is out of range."""


class RenderError(WheelEngineError):
    """Raised when drawing a frame fails."""


class EncodeError(WheelEngineError):
    """Raised when frames cannot be assembled into an animated asset."""


class VisualizationError(WheelEngineError):
    """Raised when both the animation and the static fallback failed.

    The winner was already drawn, so it travels with the error and the caller
    can still persist it.
    """

    def __init__(self, message: str, winner: WinnerRecord) -> None:
        super().__init__(message)
        self.winner = winner


class GiveawayNotFoundError(WheelEngineError):
    """Raised when a giveaway has no stored record."""


class AlreadyDrawnError(WheelEngineError):
    """Raised when a giveaway already has a committed winner."""

    def __init__(self, giveaway_id: str, winner_id: str | None = None) -> None:
        super().__init__(f"Giveaway {giveaway_id} already has a winner")
        self.giveaway_id = giveaway_id
        self.winner_id = winner_id


class SpinInProgressError(WheelEngineError):
    """Raised when a spin for the same giveaway is already running."""


class StorageError(WheelEngineError):
    """Raised when the giveaway table cannot be read or written.

    ``winner`` is set when the failure happened after a winner was drawn, and
    ``result`` when the wheel had already been rendered, so the caller can
    still announce both.
    """

    def __init__(
        self,
        message: str,
        winner: WinnerRecord | None = None,
        result: AnimationResult | None = None,
    ) -> None:
        super().__init__(message)
        self.winner = winner
        self.result = result
