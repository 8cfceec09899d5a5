from __future__ import annotations

import math
from dataclasses import dataclass

TAU = 2 * math.pi


@dataclass(frozen=True, slots=True)
class Segment:
    participant_id: str
    label: str
    entries: int
    start_angle: float
    end_angle: float
    fill_color: str
    text_color: str

    @property
    def span(self) -> float:
        return self.end_angle - self.start_angle

    @property
    def mid_angle(self) -> float:
        return (self.start_angle + self.end_angle) / 2


@dataclass(frozen=True, slots=True)
class WinnerRecord:
    participant_id: str
    label: str
    entries: int
    fill_color: str
    win_probability: float

    @classmethod
    def from_segment(cls, segment: Segment, total_entries: int) -> WinnerRecord:
        return cls(
            participant_id=segment.participant_id,
            label=segment.label,
            entries=segment.entries,
            fill_color=segment.fill_color,
            win_probability=segment.entries / total_entries,
        )


@dataclass(frozen=True, slots=True)
class FramePlan:
    """Pose of the wheel for one frame."""

    rotation: float
    celebrating: bool = False
    anim_time: float = 0.0


@dataclass(frozen=True, slots=True)
class SpinPlan:
    """A drawn (or validated) winner together with the wheel layout."""

    segments: tuple[Segment, ...]
    winner_segment: Segment
    winner: WinnerRecord
    total_entries: int


@dataclass(frozen=True, slots=True)
class AnimationStats:
    participant_count: int
    total_entries: int
    spin_frame_count: int
    celebration_frame_count: int
    celebration_repeats: int = 0
    loop_strategy: str | None = None


@dataclass(frozen=True, slots=True)
class AnimationResult:
    encoded_asset: bytes
    winner: WinnerRecord
    stats: AnimationStats
    media_type: str = "image/gif"
    is_static: bool = False
    celebration_asset: bytes | None = None
    fallback_reason: str | None = None

    @property
    def file_extension(self) -> str:
        return "png" if self.media_type == "image/png" else "gif"
