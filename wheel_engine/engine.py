"""Wheel engine: draw a weighted winner and animate the spin that lands on it."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

from PIL import Image

from .config import WheelConfig
from .encoder import LOOP_FOREVER, ImageEncoder, encode_gif, render_static
from .errors import EncodeError, RenderError, VisualizationError, WinnerMismatchError
from .models import (
    AnimationResult,
    AnimationStats,
    FramePlan,
    Segment,
    SpinPlan,
    WinnerRecord,
)
from .renderer import FrameRenderer
from .segments import build_segments, to_web_safe, total_entries, validate_pool
from .selection import RandomSource, select_winner
from .sequencer import celebration_frames, idle_frames, pointer_offset, spin_frames

log = logging.getLogger("wheel-engine")

IDLE_FRAME_DELAY_MS = 80


class WheelEngine:
    """Turn an entry pool snapshot into a winner and its wheel animation.

    The engine keeps no state between calls beyond its immutable config, so
    one instance can serve many giveaways.
    """

    def __init__(
        self,
        config: WheelConfig | None = None,
        *,
        renderer: FrameRenderer | None = None,
        encoder: ImageEncoder | None = None,
    ) -> None:
        self.config = config or WheelConfig()
        self.renderer = renderer or FrameRenderer(self.config)
        self.encoder = encoder or ImageEncoder(self.config)

    @property
    def palette(self) -> tuple[str, ...]:
        if self.config.web_safe_colors:
            return tuple(to_web_safe(color) for color in self.config.palette_colors)
        return self.config.palette_colors

    def build_segments(
        self, pool: Mapping[str, int], labels: Mapping[str, str] | None = None
    ) -> list[Segment]:
        return build_segments(pool, labels=labels, palette=self.palette)

    def prepare(
        self,
        pool: Mapping[str, int],
        *,
        winner_id: str | None = None,
        labels: Mapping[str, str] | None = None,
        rng: RandomSource | None = None,
    ) -> SpinPlan:
        """Lay out the wheel and settle the winner before any drawing happens.

        A caller-supplied ``winner_id`` skips the draw but must name a
        participant with entries.
        """
        segments = tuple(self.build_segments(pool, labels))
        total = sum(segment.entries for segment in segments)

        if winner_id is None:
            winner_id = select_winner(segments, rng)
        winner_segment = next(
            (s for s in segments if s.participant_id == winner_id), None
        )
        if winner_segment is None:
            raise WinnerMismatchError(
                f"Winner {winner_id} is not among the participants with entries"
            )

        winner = WinnerRecord.from_segment(winner_segment, total)
        log.info(
            "Winner %s settled with %s/%s entries (%.2f%% chance)",
            winner.participant_id,
            winner.entries,
            total,
            winner.win_probability * 100,
        )
        return SpinPlan(
            segments=segments,
            winner_segment=winner_segment,
            winner=winner,
            total_entries=total,
        )

    def render_frames(
        self,
        segments: Sequence[Segment],
        plans: Sequence[FramePlan],
        *,
        winner: Segment | None = None,
        title: str | None = None,
    ) -> list[Image.Image]:
        """Render every planned frame, in order, on a bounded worker pool."""

        def draw(plan: FramePlan) -> Image.Image:
            return self.renderer.render(
                segments,
                plan.rotation,
                winner=winner,
                celebrating=plan.celebrating,
                anim_time=plan.anim_time,
                title=title,
            )

        if self.config.render_workers == 1 or len(plans) < 2:
            return [draw(plan) for plan in plans]
        with ThreadPoolExecutor(
            max_workers=self.config.render_workers,
            thread_name_prefix="wheel-render",
        ) as pool:
            return list(pool.map(draw, plans))

    def animate(self, plan: SpinPlan, *, title: str | None = None) -> AnimationResult:
        """Render and encode the spin; degrade to a still image on failure."""
        spin_plan = spin_frames(plan.winner_segment, self.config)
        celebration_plan = celebration_frames(plan.winner_segment, self.config)

        try:
            landing = pointer_offset(spin_plan[-1].rotation, plan.winner_segment)
            if abs(landing) > plan.winner_segment.span / 2:
                raise RenderError(
                    f"Spin stops {landing:.4f} rad away from the winner's segment"
                )
            spin_images = self.render_frames(
                plan.segments, spin_plan, winner=plan.winner_segment, title=title
            )
            celebration_images = self.render_frames(
                plan.segments, celebration_plan, winner=plan.winner_segment, title=title
            )
            encoded = self.encoder.encode(spin_images, celebration_images)
        except (RenderError, EncodeError) as exc:
            log.exception(
                "Wheel animation failed for winner %s; using static image: %s",
                plan.winner.participant_id,
                exc,
            )
            return self.static_result(plan, title=title, reason=str(exc))

        stats = AnimationStats(
            participant_count=len(plan.segments),
            total_entries=plan.total_entries,
            spin_frame_count=len(spin_plan),
            celebration_frame_count=len(celebration_plan),
            celebration_repeats=encoded.celebration_repeats,
            loop_strategy=self.config.loop_strategy,
        )
        log.info(
            "Wheel animation ready: %s participants, %s spin frames, %s celebration "
            "frames, %.2fMB",
            stats.participant_count,
            stats.spin_frame_count,
            stats.celebration_frame_count,
            len(encoded.asset) / 1024 / 1024,
        )
        return AnimationResult(
            encoded_asset=encoded.asset,
            winner=plan.winner,
            stats=stats,
            celebration_asset=encoded.celebration_asset,
        )

    def static_result(
        self,
        plan: SpinPlan,
        *,
        title: str | None = None,
        reason: str | None = None,
    ) -> AnimationResult:
        """Still image of the wheel at rest with the winner highlighted.

        Raises ``VisualizationError`` carrying the winner if even this fails.
        """
        try:
            asset = render_static(
                self.renderer, plan.segments, plan.winner_segment, title=title
            )
        except (RenderError, EncodeError) as exc:
            log.exception(
                "Static fallback failed for winner %s: %s",
                plan.winner.participant_id,
                exc,
            )
            raise VisualizationError(
                f"Could not visualise the draw: {exc}", plan.winner
            ) from exc

        return AnimationResult(
            encoded_asset=asset,
            winner=plan.winner,
            stats=AnimationStats(
                participant_count=len(plan.segments),
                total_entries=plan.total_entries,
                spin_frame_count=0,
                celebration_frame_count=0,
            ),
            media_type="image/png",
            is_static=True,
            fallback_reason=reason,
        )

    def spin(
        self,
        pool: Mapping[str, int],
        *,
        winner_id: str | None = None,
        labels: Mapping[str, str] | None = None,
        rng: RandomSource | None = None,
        title: str | None = None,
    ) -> AnimationResult:
        plan = self.prepare(pool, winner_id=winner_id, labels=labels, rng=rng)
        return self.animate(plan, title=title)

    def render_wheel_state(
        self,
        pool: Mapping[str, int],
        *,
        labels: Mapping[str, str] | None = None,
        title: str | None = None,
    ) -> bytes:
        """Slowly turning GIF of the current wheel, without drawing a winner.

        A pool without entries renders a single "No participants" frame.
        """
        validate_pool(pool)
        delay = max(IDLE_FRAME_DELAY_MS, self.config.frame_duration_ms + 40)
        if total_entries(pool) == 0:
            return encode_gif([self.renderer.render_empty(title)], [delay], loop=None)

        segments = self.build_segments(pool, labels)
        plans = idle_frames(len(segments))
        frames = self.render_frames(segments, plans, title=title)
        return encode_gif(
            frames,
            [delay] * len(frames),
            loop=LOOP_FOREVER,
            max_bytes=self.config.max_asset_bytes,
        )
