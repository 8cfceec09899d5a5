"""Async coordination of wheel spins for stored giveaways."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass

from botocore.exceptions import BotoCoreError, ClientError

from .engine import WheelEngine
from .errors import (
    AlreadyDrawnError,
    GiveawayNotFoundError,
    SpinInProgressError,
    StorageError,
    VisualizationError,
)
from .models import AnimationResult, SpinPlan
from .selection import RandomSource
from .storage import GiveawaySnapshot, GiveawayStorage

log = logging.getLogger("wheel-engine.service")

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class SpinOutcome:
    giveaway_id: str
    giveaway_name: str
    participant_count: int
    total_entries: int
    result: AnimationResult


class SpinService:
    """Runs at most one spin per giveaway and commits its winner exactly once.

    Rendering happens on the event loop's executor so command handlers stay
    responsive. A spin that outlives ``timeout`` seconds is abandoned in
    favour of the static image for the same winner.
    """

    def __init__(
        self,
        storage: GiveawayStorage,
        engine: WheelEngine | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        rng: RandomSource | None = None,
    ) -> None:
        self.storage = storage
        self.engine = engine or WheelEngine()
        self.timeout = timeout
        self._rng = rng
        self._locks: dict[str, asyncio.Lock] = {}

    def is_spinning(self, giveaway_id: str) -> bool:
        lock = self._locks.get(giveaway_id)
        return lock is not None and lock.locked()

    def _load(self, giveaway_id: str) -> GiveawaySnapshot:
        try:
            snapshot = self.storage.get_snapshot(giveaway_id)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not load giveaway {giveaway_id}: {exc}") from exc
        if snapshot is None:
            raise GiveawayNotFoundError(f"Giveaway {giveaway_id} not found")
        return snapshot

    async def spin(self, giveaway_id: str) -> SpinOutcome:
        if self.is_spinning(giveaway_id):
            raise SpinInProgressError(f"A spin for {giveaway_id} is already running")
        lock = self._locks.setdefault(giveaway_id, asyncio.Lock())
        async with lock:
            try:
                return await self._spin_locked(giveaway_id)
            finally:
                self._locks.pop(giveaway_id, None)

    async def _spin_locked(self, giveaway_id: str) -> SpinOutcome:
        snapshot = self._load(giveaway_id)
        if snapshot.has_winner:
            raise AlreadyDrawnError(giveaway_id, snapshot.winner_id)

        plan = self.engine.prepare(snapshot.pool, labels=snapshot.labels, rng=self._rng)
        loop = asyncio.get_running_loop()
        log.info(
            "Spinning wheel for %s: %s participants, %s entries",
            giveaway_id,
            len(plan.segments),
            plan.total_entries,
        )

        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    functools.partial(self.engine.animate, plan, title=snapshot.name),
                ),
                timeout=self.timeout,
            )
        except TimeoutError:
            log.warning(
                "Wheel animation for %s exceeded %ss; sending static image",
                giveaway_id,
                self.timeout,
            )
            try:
                result = await loop.run_in_executor(
                    None,
                    functools.partial(
                        self.engine.static_result,
                        plan,
                        title=snapshot.name,
                        reason="animation timed out",
                    ),
                )
            except VisualizationError:
                self._commit(giveaway_id, plan)
                raise
        except VisualizationError:
            self._commit(giveaway_id, plan)
            raise

        self._commit(giveaway_id, plan, result)
        return SpinOutcome(
            giveaway_id=giveaway_id,
            giveaway_name=snapshot.name,
            participant_count=len(plan.segments),
            total_entries=plan.total_entries,
            result=result,
        )

    def _commit(
        self,
        giveaway_id: str,
        plan: SpinPlan,
        result: AnimationResult | None = None,
    ) -> None:
        winner_id = plan.winner.participant_id
        try:
            committed = self.storage.commit_winner(giveaway_id, winner_id)
            current = None if committed else self.storage.get_snapshot(giveaway_id)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(
                f"Winner {winner_id} of {giveaway_id} was drawn but not saved: {exc}",
                winner=plan.winner,
                result=result,
            ) from exc
        if not committed:
            raise AlreadyDrawnError(
                giveaway_id, current.winner_id if current is not None else None
            )

    async def preview(self, giveaway_id: str) -> tuple[GiveawaySnapshot, bytes]:
        """Render the current wheel for a giveaway without drawing a winner."""
        snapshot = self._load(giveaway_id)
        loop = asyncio.get_running_loop()
        asset = await loop.run_in_executor(
            None,
            functools.partial(
                self.engine.render_wheel_state,
                snapshot.pool,
                labels=snapshot.labels,
                title=snapshot.name,
            ),
        )
        return snapshot, asset
