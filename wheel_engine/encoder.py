"""Assemble rendered frames into GIF assets, with a PNG still as fallback."""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image

from .config import WheelConfig
from .errors import EncodeError
from .models import Segment
from .renderer import FrameRenderer
from .sequencer import celebration_repeat_count, rest_rotation

log = logging.getLogger("wheel-engine.encoder")

LOOP_FOREVER = 0


@dataclass(frozen=True, slots=True)
class EncodedAnimation:
    asset: bytes
    celebration_asset: bytes | None
    celebration_repeats: int


def encode_gif(
    frames: Sequence[Image.Image],
    durations_ms: Sequence[int],
    *,
    loop: int | None,
    max_bytes: int | None = None,
) -> bytes:
    """Write ``frames`` as one GIF.

    ``loop=None`` writes no loop extension so viewers play the sequence once;
    ``loop=0`` repeats it forever.
    """
    if not frames:
        raise EncodeError("No frames to encode")
    if len(durations_ms) != len(frames):
        raise EncodeError(
            f"Got {len(durations_ms)} durations for {len(frames)} frames"
        )

    params: dict[str, object] = {
        "format": "GIF",
        "save_all": True,
        "append_images": list(frames[1:]),
        "duration": list(durations_ms),
        "disposal": 2,
        "optimize": False,
    }
    if loop is not None:
        params["loop"] = loop

    buffer = io.BytesIO()
    try:
        frames[0].save(buffer, **params)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise EncodeError(f"GIF encoding failed: {exc}") from exc

    data = buffer.getvalue()
    if not data:
        raise EncodeError("Encoded GIF is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise EncodeError(
            f"Encoded GIF is {len(data) / 1024 / 1024:.2f}MB, "
            f"above the {max_bytes / 1024 / 1024:.2f}MB limit"
        )
    return data


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError(f"PNG encoding failed: {exc}") from exc
    return buffer.getvalue()


class ImageEncoder:
    """Apply the configured loop policy to spin and celebration frames.

    ``bounded``: the spin plays once, followed by the celebration loop
    repeated as often as the frame budget allows; the asset itself plays
    once, so the spin never replays.

    ``split``: a spin asset that plays once plus a separate celebration
    asset that loops forever, to be shown one after the other.
    """

    def __init__(self, config: WheelConfig) -> None:
        self.config = config

    def encode(
        self,
        spin_frames: Sequence[Image.Image],
        celebration_frames: Sequence[Image.Image],
    ) -> EncodedAnimation:
        duration = self.config.frame_duration_ms
        if self.config.loop_strategy == "split":
            spin_asset = encode_gif(
                spin_frames,
                [duration] * len(spin_frames),
                loop=None,
                max_bytes=self.config.max_asset_bytes,
            )
            celebration_asset = encode_gif(
                celebration_frames,
                [duration] * len(celebration_frames),
                loop=LOOP_FOREVER,
                max_bytes=self.config.max_asset_bytes,
            )
            return EncodedAnimation(spin_asset, celebration_asset, 1)

        repeats = celebration_repeat_count(self.config)
        frames = [*spin_frames, *(list(celebration_frames) * repeats)]
        asset = encode_gif(
            frames,
            [duration] * len(frames),
            loop=None,
            max_bytes=self.config.max_asset_bytes,
        )
        log.debug(
            "Encoded %s spin + %sx%s celebration frames (%s bytes)",
            len(spin_frames),
            repeats,
            len(celebration_frames),
            len(asset),
        )
        return EncodedAnimation(asset, None, repeats)


def render_static(
    renderer: FrameRenderer,
    segments: Sequence[Segment],
    winner: Segment,
    *,
    title: str | None = None,
) -> bytes:
    """Render the wheel at rest with the winner highlighted, as PNG bytes.

    The wheel is turned so the winner sits under the pointer, matching the
    last frame of the spin.
    """
    image = renderer.render(
        segments,
        rest_rotation(winner.mid_angle),
        winner=winner,
        highlight=True,
        title=title,
    )
    return encode_png(image)
