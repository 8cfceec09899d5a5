"""Weighted winner selection over wheel segments."""

from __future__ import annotations

import bisect
import itertools
import logging
import random
from collections.abc import Sequence
from typing import Protocol

from .errors import EmptyPoolError
from .models import Segment

log = logging.getLogger("wheel-engine.selection")


class RandomSource(Protocol):
    def random(self) -> float: ...


class WinnerSelector:
    """Draw a participant with probability proportional to their entries.

    Keeps a cumulative entry table and binary-searches a uniform draw in
    ``[0, total)``, so a draw costs O(log n) regardless of how many entries
    each participant holds.
    """

    def __init__(
        self, segments: Sequence[Segment], rng: RandomSource | None = None
    ) -> None:
        self._segments = [segment for segment in segments if segment.entries > 0]
        self._cumulative = list(
            itertools.accumulate(segment.entries for segment in self._segments)
        )
        self.total_entries = self._cumulative[-1] if self._cumulative else 0
        if self.total_entries == 0:
            raise EmptyPoolError("Cannot draw a winner from an empty pool")
        self._rng = rng if rng is not None else random.SystemRandom()

    def select_segment(self) -> Segment:
        ticket = self._rng.random() * self.total_entries
        index = bisect.bisect_right(self._cumulative, ticket)
        # random() < 1.0, but guard against sources that return exactly 1.0
        index = min(index, len(self._segments) - 1)
        return self._segments[index]

    def select(self) -> str:
        return self.select_segment().participant_id


def select_winner(segments: Sequence[Segment], rng: RandomSource | None = None) -> str:
    """Convenience wrapper returning the winning participant id."""
    winner = WinnerSelector(segments, rng).select_segment()
    log.info(
        "Selected %s holding %s entries (%.2f%% chance)",
        winner.participant_id,
        winner.entries,
        100 * winner.entries / sum(s.entries for s in segments),
    )
    return winner.participant_id
