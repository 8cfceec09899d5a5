"""Weighted lottery wheel for community giveaways."""

from .config import (
    WheelConfig,
    env_bool,
    env_float,
    env_int,
    env_str,
    read_wheel_config,
)
from .engine import WheelEngine
from .errors import (
    AlreadyDrawnError,
    EmptyPoolError,
    EncodeError,
    GiveawayNotFoundError,
    InvalidConfigError,
    InvalidPoolError,
    RenderError,
    SpinInProgressError,
    StorageError,
    VisualizationError,
    WheelEngineError,
    WinnerMismatchError,
)
from .models import (
    AnimationResult,
    AnimationStats,
    FramePlan,
    Segment,
    SpinPlan,
    WinnerRecord,
)
from .segments import build_segments, contrast_text_color
from .selection import WinnerSelector, select_winner

__all__ = [
    "WheelConfig",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "read_wheel_config",
    "WheelEngine",
    "AlreadyDrawnError",
    "EmptyPoolError",
    "EncodeError",
    "GiveawayNotFoundError",
    "InvalidConfigError",
    "InvalidPoolError",
    "RenderError",
    "SpinInProgressError",
    "StorageError",
    "VisualizationError",
    "WheelEngineError",
    "WinnerMismatchError",
    "AnimationResult",
    "AnimationStats",
    "FramePlan",
    "Segment",
    "SpinPlan",
    "WinnerRecord",
    "build_segments",
    "contrast_text_color",
    "WinnerSelector",
    "select_winner",
]
