"""Configuration helpers for the wheel engine."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from .errors import InvalidConfigError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_HEX_COLOR = re.compile(r"#[0-9A-Fa-f]{6}$")

LOOP_STRATEGIES = ("bounded", "split")

DEFAULT_PALETTE: tuple[str, ...] = (
    "#FF0000",  # red
    "#0000FF",  # blue
    "#FFFF00",  # yellow
    "#00FF00",  # green
    "#FFA500",  # orange
    "#800080",  # purple
    "#FFC0CB",  # pink
    "#00FFFF",  # cyan
    "#00FF80",  # spring green
    "#FF00FF",  # magenta
    "#FF7F50",  # coral
    "#008080",  # teal
    "#4169E1",  # royal blue
    "#FF1493",  # deep pink
    "#32CD32",  # lime green
    "#FF4500",  # orange red
)

# Discord rejects uploads above this size for unboosted guilds.
DISCORD_UPLOAD_LIMIT = 10 * 1024 * 1024


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_str(name: str, *, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped or default


def parse_palette(raw: str) -> tuple[str, ...]:
    """Parse a comma separated list of ``#RRGGBB`` colours."""
    colors = tuple(part.strip().upper() for part in raw.split(",") if part.strip())
    if not colors:
        raise InvalidConfigError("Palette must contain at least one colour")
    for color in colors:
        if not _HEX_COLOR.match(color):
            raise InvalidConfigError(f"Invalid palette colour: {color}")
    return colors


@dataclass(frozen=True, slots=True)
class WheelConfig:
    """Immutable rendering and animation settings for one spin."""

    wheel_size: int = 500
    palette_colors: tuple[str, ...] = field(default=DEFAULT_PALETTE)
    font_family: str | None = None
    frame_rate: int = 25
    spin_revolutions: int = 8
    spin_duration_frames: int = 100
    celebration_duration_frames: int = 50
    celebration_repeats: int = 4
    max_frames: int = 400
    loop_strategy: str = "bounded"
    max_asset_bytes: int = DISCORD_UPLOAD_LIMIT
    render_workers: int = 4
    web_safe_colors: bool = False
    background_color: str = "#F8F9FA"

    def __post_init__(self) -> None:
        if self.wheel_size < 100:
            raise InvalidConfigError("Wheel size must be at least 100 pixels")
        if not self.palette_colors:
            raise InvalidConfigError("Palette must contain at least one colour")
        for color in (*self.palette_colors, self.background_color):
            if not _HEX_COLOR.match(color):
                raise InvalidConfigError(f"Invalid colour: {color}")
        if not 1 <= self.frame_rate <= 100:
            raise InvalidConfigError("Frame rate must be between 1 and 100")
        if self.spin_revolutions < 1:
            raise InvalidConfigError("Spin revolutions must be at least 1")
        if self.spin_duration_frames < 1:
            raise InvalidConfigError("Spin phase needs at least one frame")
        if self.celebration_duration_frames < 1:
            raise InvalidConfigError("Celebration phase needs at least one frame")
        if self.celebration_repeats < 1:
            raise InvalidConfigError("Celebration must play at least once")
        one_loop = self.spin_duration_frames + self.celebration_duration_frames
        if self.max_frames < one_loop:
            raise InvalidConfigError(
                "Frame budget must fit the spin and one celebration loop"
            )
        if self.loop_strategy not in LOOP_STRATEGIES:
            raise InvalidConfigError(
                f"Unknown loop strategy {self.loop_strategy!r}; "
                f"expected one of {', '.join(LOOP_STRATEGIES)}"
            )
        if self.max_asset_bytes <= 0:
            raise InvalidConfigError("Asset size limit must be positive")
        if self.render_workers < 1:
            raise InvalidConfigError("At least one render worker is required")

    @property
    def frame_duration_ms(self) -> int:
        return max(10, round(1000 / self.frame_rate))

    @property
    def celebration_seconds(self) -> float:
        return self.celebration_duration_frames / self.frame_rate


def read_wheel_config() -> WheelConfig:
    """Build a ``WheelConfig`` from ``WHEEL_*`` environment variables."""
    defaults = WheelConfig()
    palette = defaults.palette_colors
    raw_palette = env_str("WHEEL_PALETTE")
    if raw_palette:
        palette = parse_palette(raw_palette)

    return WheelConfig(
        wheel_size=env_int("WHEEL_SIZE", default=defaults.wheel_size),
        palette_colors=palette,
        font_family=env_str("WHEEL_FONT"),
        frame_rate=env_int("WHEEL_FRAME_RATE", default=defaults.frame_rate),
        spin_revolutions=env_int(
            "WHEEL_SPIN_REVOLUTIONS", default=defaults.spin_revolutions
        ),
        spin_duration_frames=env_int(
            "WHEEL_SPIN_FRAMES", default=defaults.spin_duration_frames
        ),
        celebration_duration_frames=env_int(
            "WHEEL_CELEBRATION_FRAMES", default=defaults.celebration_duration_frames
        ),
        celebration_repeats=env_int(
            "WHEEL_CELEBRATION_REPEATS", default=defaults.celebration_repeats
        ),
        max_frames=env_int("WHEEL_MAX_FRAMES", default=defaults.max_frames),
        loop_strategy=env_str("WHEEL_LOOP_STRATEGY", default=defaults.loop_strategy),
        max_asset_bytes=env_int(
            "WHEEL_MAX_ASSET_BYTES", default=defaults.max_asset_bytes
        ),
        render_workers=env_int("WHEEL_RENDER_WORKERS", default=defaults.render_workers),
        web_safe_colors=env_bool("WHEEL_WEB_SAFE_COLORS", default=False),
        background_color=env_str(
            "WHEEL_BACKGROUND", default=defaults.background_color
        ),
    )
