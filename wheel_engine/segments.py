"""Weight model: turns entry counts into angular wheel segments."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from .config import DEFAULT_PALETTE
from .errors import EmptyPoolError, InvalidPoolError
from .models import TAU, Segment

log = logging.getLogger("wheel-engine.segments")

BLACK = "#000000"
WHITE = "#FFFFFF"
_WEB_SAFE_STEPS = (0x00, 0x33, 0x66, 0x99, 0xCC, 0xFF)


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected #RRGGBB colour, got {color!r}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def rgb_to_hex(rgb: Sequence[int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(*(max(0, min(255, int(c))) for c in rgb))


def relative_luminance(color: str) -> float:
    r, g, b = hex_to_rgb(color)
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255


def contrast_text_color(fill_color: str) -> str:
    """Pick black or white text for legibility on ``fill_color``."""
    return BLACK if relative_luminance(fill_color) > 0.5 else WHITE


def lighten_color(color: str, amount: float) -> str:
    """Blend ``color`` towards white; ``amount`` 0 keeps it, 1 gives white."""
    amount = max(0.0, min(1.0, amount))
    return rgb_to_hex(c + (255 - c) * amount for c in hex_to_rgb(color))


def to_web_safe(color: str) -> str:
    """Snap a colour to the nearest entry of the 216-colour web-safe cube."""
    return rgb_to_hex(
        min(_WEB_SAFE_STEPS, key=lambda step: abs(step - channel))
        for channel in hex_to_rgb(color)
    )


def default_label(participant_id: str) -> str:
    return f"User {participant_id[-4:]}"


def total_entries(pool: Mapping[str, int]) -> int:
    return sum(count for count in pool.values() if count > 0)


def validate_pool(pool: Mapping[str, int]) -> None:
    for participant_id, count in pool.items():
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidPoolError(
                f"Entry count for {participant_id} must be an integer, got {count!r}"
            )
        if count < 0:
            raise InvalidPoolError(
                f"Entry count for {participant_id} cannot be negative ({count})"
            )


def build_segments(
    pool: Mapping[str, int],
    *,
    labels: Mapping[str, str] | None = None,
    palette: Sequence[str] = DEFAULT_PALETTE,
) -> list[Segment]:
    """Lay out one segment per participant with entries, in pool order.

    Each span is proportional to the participant's share of all entries and
    the spans tile [0, 2π) exactly. Colours cycle through ``palette`` by
    segment index.
    """
    validate_pool(pool)
    total = total_entries(pool)
    if total == 0:
        raise EmptyPoolError("No participant has any entries")
    if not palette:
        raise ValueError("Palette must contain at least one colour")

    labels = labels or {}
    drawable = [(pid, count) for pid, count in pool.items() if count > 0]
    segments: list[Segment] = []
    cumulative = 0
    start = 0.0
    for index, (participant_id, count) in enumerate(drawable):
        cumulative += count
        # Derive each boundary from the running sum so rounding never drifts.
        end = TAU if index == len(drawable) - 1 else TAU * cumulative / total
        fill = palette[index % len(palette)]
        segments.append(
            Segment(
                participant_id=participant_id,
                label=labels.get(participant_id) or default_label(participant_id),
                entries=count,
                start_angle=start,
                end_angle=end,
                fill_color=fill,
                text_color=contrast_text_color(fill),
            )
        )
        start = end

    skipped = len(pool) - len(drawable)
    if skipped:
        log.debug("Excluded %s zero-entry participant(s) from the wheel", skipped)
    return segments


def segment_at_angle(
    segments: Sequence[Segment], angle: float, rotation: float = 0.0
) -> Segment | None:
    """Segment shown at screen ``angle`` when the wheel is turned by ``rotation``."""
    if not segments:
        return None
    wheel_angle = (angle - rotation) % TAU
    for segment in segments:
        if segment.start_angle <= wheel_angle < segment.end_angle:
            return segment
    return segments[-1]
