#!/usr/bin/env python3
"""Render a wheel spin for a made-up entry pool and write it to disk.

Handy for eyeballing palette, font and timing changes without a Discord bot:

    python scripts/render_sample_wheel.py --participants 12 --output wheel.gif

Settings come from the same ``WHEEL_*`` environment variables the bot reads;
``--seed`` makes the draw repeatable.
"""

from __future__ import annotations

import argparse
import logging
import random
from pathlib import Path

from wheel_engine import WheelEngine, read_wheel_config

log = logging.getLogger(__name__)


def sample_pool(
    participants: int, max_entries: int, rng: random.Random
) -> dict[str, int]:
    return {
        f"{100000000000000000 + index}": rng.randint(1, max_entries)
        for index in range(participants)
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--participants", type=int, default=8)
    parser.add_argument("--max-entries", type=int, default=20)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--title", default="Sample Giveaway")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("sample-wheel.gif"),
        help="Where to write the spin asset (the extension follows the media type)",
    )
    parser.add_argument(
        "--state",
        action="store_true",
        help="Render the idle wheel preview instead of a spin",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
    )

    rng = random.Random(args.seed)
    pool = sample_pool(args.participants, args.max_entries, rng)
    engine = WheelEngine(read_wheel_config())

    if args.state:
        args.output.write_bytes(engine.render_wheel_state(pool, title=args.title))
        log.info("Wrote wheel preview to %s", args.output)
        return

    result = engine.spin(pool, rng=rng, title=args.title)
    output = args.output.with_suffix(f".{result.file_extension}")
    output.write_bytes(result.encoded_asset)
    log.info(
        "Winner %s (%s entries, %.2f%%); wrote %s",
        result.winner.participant_id,
        result.winner.entries,
        result.winner.win_probability * 100,
        output,
    )
    if result.celebration_asset is not None:
        celebration = output.with_name(f"{output.stem}-celebration.gif")
        celebration.write_bytes(result.celebration_asset)
        log.info("Wrote celebration loop to %s", celebration)


if __name__ == "__main__":
    main()
