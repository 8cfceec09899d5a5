"""Frame timing for the spin, celebration and idle animations.

Every pose is derived from a frame index, never from the clock, so the same
plan always renders the same animation.
"""

from __future__ import annotations

import math

from .config import WheelConfig
from .models import TAU, FramePlan, Segment

IDLE_FRAMES_MIN = 60
IDLE_FRAMES_MAX = 80


def ease_out_cubic(progress: float) -> float:
    progress = max(0.0, min(1.0, progress))
    return 1 - (1 - progress) ** 3


def target_rotation(winner_mid_angle: float, revolutions: int) -> float:
    """Total rotation that parks ``winner_mid_angle`` under the pointer.

    The pointer sits at screen angle 0, so the winner is aligned once
    ``mid + rotation`` is a whole number of turns.
    """
    return revolutions * TAU - winner_mid_angle


def rest_rotation(winner_mid_angle: float) -> float:
    """The final spin pose with the full turns removed."""
    return (-winner_mid_angle) % TAU


def spin_frames(winner: Segment, config: WheelConfig) -> list[FramePlan]:
    total = config.spin_duration_frames
    target = target_rotation(winner.mid_angle, config.spin_revolutions)
    if total == 1:
        return [FramePlan(rotation=target)]
    last = total - 1
    return [
        FramePlan(rotation=ease_out_cubic(index / last) * target)
        for index in range(total)
    ]


def celebration_frames(winner: Segment, config: WheelConfig) -> list[FramePlan]:
    rotation = rest_rotation(winner.mid_angle)
    return [
        FramePlan(
            rotation=rotation,
            celebrating=True,
            anim_time=index / config.frame_rate,
        )
        for index in range(config.celebration_duration_frames)
    ]


def idle_frames(participant_count: int) -> list[FramePlan]:
    """One slow, seamless revolution used to preview the current wheel."""
    total = min(IDLE_FRAMES_MAX, max(IDLE_FRAMES_MIN, participant_count * 2))
    step = TAU / total
    return [FramePlan(rotation=index * step) for index in range(total)]


def celebration_repeat_count(config: WheelConfig) -> int:
    """How many celebration loops fit after the spin within the frame budget."""
    room = config.max_frames - config.spin_duration_frames
    fitting = room // config.celebration_duration_frames
    return max(1, min(config.celebration_repeats, fitting))


def pointer_offset(rotation: float, winner: Segment) -> float:
    """Signed distance (radians) between the winner's mid-angle and the pointer."""
    offset = (winner.mid_angle + rotation) % TAU
    return offset - TAU if offset > math.pi else offset
