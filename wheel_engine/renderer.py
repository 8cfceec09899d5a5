"""Frame renderer: draws one still image of the wheel with Pillow."""

from __future__ import annotations

import functools
import logging
import math
import textwrap
from collections.abc import Sequence

from PIL import Image, ImageDraw, ImageFont

from .config import WheelConfig
from .errors import RenderError
from .models import TAU, Segment
from .segments import lighten_color, segment_at_angle

log = logging.getLogger("wheel-engine.renderer")

LABEL_MAX_LENGTH = 12
LABEL_KEEP = 10
TEXT_RADIUS_FACTOR = 0.7
SPARKLE_COUNT = 12
PULSES_PER_LOOP = 4
STATIC_HIGHLIGHT = 0.35

BORDER_COLOR = "#FFFFFF"
HUB_FILL = "#333333"
POINTER_FILL = "#FFD700"
CELEBRATION_GOLD = "#FFD700"
EMPTY_WHEEL_FILL = "#E9ECEF"
EMPTY_TEXT = "#6C757D"

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def truncate_label(label: str) -> str:
    if len(label) > LABEL_MAX_LENGTH:
        return label[:LABEL_KEEP] + ".."
    return label


@functools.lru_cache(maxsize=32)
def load_font(font_family: str | None, size: int) -> Font:
    """Load ``font_family`` at ``size``, substituting Pillow's default font."""
    if font_family:
        try:
            return ImageFont.truetype(font_family, size)
        except OSError as exc:
            log.warning(
                "Font %s unavailable (%s); substituting the default font",
                font_family,
                exc,
            )
    return ImageFont.load_default(size=size)


def _text_size(font: Font, text: str) -> tuple[int, int, int, int]:
    left, top, right, bottom = font.getbbox(text)
    return left, top, right - left, bottom - top


class FrameRenderer:
    """Pure drawing of wheel frames for one immutable configuration."""

    def __init__(self, config: WheelConfig) -> None:
        self.config = config
        self.size = config.wheel_size
        self.center = self.size / 2
        self.radius = self.size * 0.38
        self.hub_radius = max(24.0, self.radius * 0.18)
        family = config.font_family
        self.label_font = load_font(family, max(10, round(self.size * 0.028)))
        self.count_font = load_font(family, max(8, round(self.size * 0.02)))
        self.hub_font_size = max(9, round(self.size * 0.022))
        self.hub_font = load_font(family, self.hub_font_size)
        self.empty_font = load_font(family, max(14, round(self.size * 0.05)))

    def render(
        self,
        segments: Sequence[Segment],
        rotation: float = 0.0,
        *,
        winner: Segment | None = None,
        celebrating: bool = False,
        anim_time: float = 0.0,
        highlight: bool = False,
        title: str | None = None,
    ) -> Image.Image:
        """Draw the wheel turned by ``rotation`` radians (clockwise on screen).

        ``celebrating`` animates the winner highlight, ring and sparkles from
        ``anim_time`` (seconds into the celebration loop); ``highlight`` marks
        the winner without motion.
        """
        try:
            image = self._canvas()
            draw = ImageDraw.Draw(image)
            phase = TAU * anim_time / self.config.celebration_seconds

            for segment in segments:
                fill = segment.fill_color
                is_winner = (
                    winner is not None
                    and segment.participant_id == winner.participant_id
                )
                if is_winner:
                    if celebrating:
                        pulse = (math.sin(PULSES_PER_LOOP * phase) + 1) / 2
                        fill = lighten_color(fill, 0.15 + 0.35 * pulse)
                    elif highlight:
                        fill = lighten_color(fill, STATIC_HIGHLIGHT)
                self._draw_sector(draw, segment, rotation, fill)

            if highlight and winner is not None and not celebrating:
                self._draw_sector(
                    draw, winner, rotation, None, outline=CELEBRATION_GOLD, width=5
                )

            for segment in segments:
                self._draw_label(image, segment, rotation)

            self._draw_hub(draw, title)
            self._draw_pointer(draw, segments, rotation)

            if celebrating and winner is not None:
                self._draw_ring(draw, phase)
                self._draw_sparkles(draw, phase)
        except (OSError, ValueError, TypeError) as exc:
            raise RenderError(f"Failed to draw wheel frame: {exc}") from exc
        return image

    def render_empty(self, title: str | None = None) -> Image.Image:
        """Draw a blank wheel for a giveaway without entries."""
        try:
            image = self._canvas()
            draw = ImageDraw.Draw(image)
            draw.ellipse(
                self._bbox(self.radius),
                fill=EMPTY_WHEEL_FILL,
                outline=HUB_FILL,
                width=3,
            )
            self._draw_pointer(draw, (), 0.0)
            message = "No participants"
            left, top, width, height = _text_size(self.empty_font, message)
            origin = (
                self.center - width / 2 - left,
                self.center + self.radius * 0.45 - top,
            )
            draw.text(
                origin,
                message,
                font=self.empty_font,
                fill=EMPTY_TEXT,
            )
            self._draw_hub(draw, title)
        except (OSError, ValueError, TypeError) as exc:
            raise RenderError(f"Failed to draw empty wheel: {exc}") from exc
        return image

    def _canvas(self) -> Image.Image:
        return Image.new("RGB", (self.size, self.size), self.config.background_color)

    def _bbox(self, radius: float) -> tuple[float, float, float, float]:
        return (
            self.center - radius,
            self.center - radius,
            self.center + radius,
            self.center + radius,
        )

    def _draw_sector(
        self,
        draw: ImageDraw.ImageDraw,
        segment: Segment,
        rotation: float,
        fill: str | None,
        *,
        outline: str = BORDER_COLOR,
        width: int = 2,
    ) -> None:
        bbox = self._bbox(self.radius)
        if segment.span >= TAU - 1e-9:
            draw.ellipse(bbox, fill=fill, outline=outline, width=width)
            return
        start = math.degrees(segment.start_angle + rotation) % 360
        end = start + math.degrees(segment.span)
        draw.pieslice(
            bbox, start=start, end=end, fill=fill, outline=outline, width=width
        )

    def _draw_label(
        self, image: Image.Image, segment: Segment, rotation: float
    ) -> None:
        angle = (segment.mid_angle + rotation) % TAU
        text_radius = self.radius * TEXT_RADIUS_FACTOR
        x = self.center + math.cos(angle) * text_radius
        y = self.center + math.sin(angle) * text_radius

        lines = [
            (truncate_label(segment.label), self.label_font),
            (f"{segment.entries} entries", self.count_font),
        ]
        tile = self._text_tile(lines, segment.text_color)

        # Text runs along the radius; flip it on the left half so it reads upright.
        degrees = math.degrees(angle)
        if math.pi / 2 < angle < 3 * math.pi / 2:
            degrees += 180
        rotated = tile.rotate(-degrees, resample=Image.Resampling.BICUBIC, expand=True)
        image.paste(
            rotated,
            (round(x - rotated.width / 2), round(y - rotated.height / 2)),
            rotated,
        )

    def _text_tile(self, lines: list[tuple[str, Font]], color: str) -> Image.Image:
        gap = 2
        metrics = [_text_size(font, text) for text, font in lines]
        width = max(m[2] for m in metrics) + 4
        height = sum(m[3] for m in metrics) + gap * (len(lines) - 1) + 4
        tile = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        cursor = 2
        for (text, font), (left, top, text_width, text_height) in zip(lines, metrics):
            draw.text(
                ((width - text_width) / 2 - left, cursor - top),
                text,
                font=font,
                fill=color,
            )
            cursor += text_height + gap
        return tile

    def _draw_hub(self, draw: ImageDraw.ImageDraw, title: str | None) -> None:
        draw.ellipse(
            self._bbox(self.hub_radius), fill=HUB_FILL, outline=BORDER_COLOR, width=3
        )
        if not title:
            return
        chars_per_line = max(4, int(self.hub_radius * 1.6 / (self.hub_font_size * 0.6)))
        lines = textwrap.wrap(title, width=chars_per_line)
        if len(lines) > 3:
            lines = lines[:3]
            lines[2] = lines[2][: max(1, chars_per_line - 2)] + ".."
        metrics = [_text_size(self.hub_font, line) for line in lines]
        block = sum(m[3] for m in metrics) + 2 * (len(lines) - 1)
        cursor = self.center - block / 2
        for line, (left, top, width, height) in zip(lines, metrics):
            draw.text(
                (self.center - width / 2 - left, cursor - top),
                line,
                font=self.hub_font,
                fill=BORDER_COLOR,
            )
            cursor += height + 2

    def _draw_pointer(
        self, draw: ImageDraw.ImageDraw, segments: Sequence[Segment], rotation: float
    ) -> None:
        tip = (self.center + self.radius * 0.94, self.center)
        base_x = self.center + self.radius * 1.14
        half = self.radius * 0.09
        current = segment_at_angle(segments, 0.0, rotation)
        outline = current.fill_color if current is not None else HUB_FILL
        draw.polygon(
            [tip, (base_x, self.center - half), (base_x, self.center + half)],
            fill=POINTER_FILL,
            outline=outline,
            width=3,
        )

    def _draw_ring(self, draw: ImageDraw.ImageDraw, phase: float) -> None:
        wobble = math.sin(2 * PULSES_PER_LOOP * phase)
        ring_radius = self.radius * (1.06 + 0.03 * wobble)
        dashes = 48
        step = 360 / dashes
        offset = math.degrees(phase) % 360
        bbox = self._bbox(ring_radius)
        for index in range(dashes):
            start = offset + index * step
            draw.arc(
                bbox,
                start=start,
                end=start + step * 0.66,
                fill=CELEBRATION_GOLD,
                width=5,
            )

    def _draw_sparkles(self, draw: ImageDraw.ImageDraw, phase: float) -> None:
        for index in range(SPARKLE_COUNT):
            angle = TAU * index / SPARKLE_COUNT + phase
            orbit = self.radius * (1.16 + 0.04 * math.sin(2 * phase + index))
            x = self.center + math.cos(angle) * orbit
            y = self.center + math.sin(angle) * orbit
            size = 3 + 2 * math.sin(3 * phase + index)
            draw.ellipse(
                (x - size, y - size, x + size, y + size), fill=CELEBRATION_GOLD
            )
            arm = size * 2
            draw.line((x - arm, y, x + arm, y), fill=CELEBRATION_GOLD, width=1)
            draw.line((x, y - arm, x, y + arm), fill=CELEBRATION_GOLD, width=1)
