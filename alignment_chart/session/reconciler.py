"""
Optimistic placement state for one chart session.

Lifecycle per placement id:

    create  -> pending (loading=True, shown immediately)
    resolve -> resolved (patched in place by id)
    fail    -> removed (unexpected pipeline exception)
    remove / clear -> removed by the user, deleted from the local store

Placements live in a dict keyed by id, so concurrent analyses patch their own
entry and never "the last pending one". A result that arrives after its
placement was removed is discarded. Every transition schedules a debounced
snapshot write to the LocalStore; the in-memory dict stays the source of
truth when a write fails.
"""

import asyncio
import itertools
import random
import time
from typing import Callable, Dict, List, Optional, Set

from alignment_chart.core.logging import get_logger
from alignment_chart.models.placement import Placement, Position, StoredPlacement, utc_now
from alignment_chart.pipelines.orchestrator import PipelineOrchestrator
from alignment_chart.services.avatar import AvatarResolver
from alignment_chart.services.cache import normalize_handle
from alignment_chart.session.debounce import DebouncedWriter
from alignment_chart.session.local_store import LocalStore

logger = get_logger(__name__)

ANALYZING_PLACEHOLDER_SRC = "/grid.svg?height=100&width=100&text=Analyzing..."


def random_position() -> Position:
    return Position(x=random.uniform(5, 95), y=random.uniform(5, 95))


class OptimisticStateReconciler:
    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        avatars: AvatarResolver,
        store: LocalStore,
        writer: Optional[DebouncedWriter] = None,
        position_factory: Callable[[], Position] = random_position,
    ):
        self.orchestrator = orchestrator
        self.avatars = avatars
        self.store = store
        self.writer = writer or DebouncedWriter(store.replace_all)
        self.position_factory = position_factory
        self._placements: Dict[str, Placement] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._seq = itertools.count()
        self.loaded = False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get(self, placement_id: str) -> Optional[Placement]:
        return self._placements.get(placement_id)

    def placements(self) -> List[Placement]:
        return list(self._placements.values())

    def analyses(self) -> List[Placement]:
        """Resolved, successful AI placements, newest first."""
        done = [
            p for p in self._placements.values()
            if p.is_ai_placed and not p.loading and p.analysis is not None and not p.analysis.is_error
        ]
        return sorted(done, key=lambda p: p.timestamp, reverse=True)

    def snapshot(self) -> List[StoredPlacement]:
        return [p.to_stored() for p in self._placements.values()]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def load(self) -> List[Placement]:
        """Restore the session from the local store. Does not trigger a write."""
        records = await self.store.load_all()
        restored = {}
        for record in records:
            # An AI placement saved mid-analysis has no result to show and cannot resume
            if record.is_ai_placed and record.analysis is None:
                logger.info("placement_unresolved_dropped", id=record.id, username=record.username)
                continue
            restored[record.id] = record.to_placement()
        self._placements = restored
        self.loaded = True
        logger.info("session_restored", count=len(restored), dropped=len(records) - len(restored))
        return self.placements()

    def _new_id(self) -> str:
        # Time-ordered; the sequence keeps ids unique within the same millisecond
        return f"image-{time.time_ns() // 1_000_000}-{next(self._seq):04d}"

    def _changed(self) -> None:
        self.writer.schedule(self.snapshot())

    def create_pending(self, username: str, src: str, is_ai_placed: bool) -> Placement:
        placement = Placement(
            id=self._new_id(),
            src=src,
            position=self.position_factory(),
            username=username,
            is_ai_placed=is_ai_placed,
            loading=True,
        )
        self._placements[placement.id] = placement
        self._changed()
        logger.info("placement_created", id=placement.id, username=username, ai=is_ai_placed)
        return placement

    def _patch(self, placement_id: str, **changes) -> Optional[Placement]:
        current = self._placements.get(placement_id)
        if current is None:
            return None
        updated = Placement.model_validate({**current.model_dump(), **changes})
        self._placements[placement_id] = updated
        self._changed()
        return updated

    def _drop(self, placement_id: str) -> bool:
        if self._placements.pop(placement_id, None) is None:
            return False
        self._changed()
        return True

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- AI analysis ----------------------------------------------------

    def start_analysis(self, handle: str) -> Placement:
        """Insert a pending AI placement and resolve it in the background."""
        clean = normalize_handle(handle)
        if not clean:
            raise ValueError("handle must not be empty")
        placement = self.create_pending(clean, ANALYZING_PLACEHOLDER_SRC, is_ai_placed=True)
        self._spawn(self._resolve_analysis(placement.id, clean))
        return placement

    async def submit_analysis(self, handle: str) -> Optional[Placement]:
        """Create, analyze and resolve. Returns the final placement, or None if it was removed."""
        clean = normalize_handle(handle)
        if not clean:
            raise ValueError("handle must not be empty")
        placement = self.create_pending(clean, ANALYZING_PLACEHOLDER_SRC, is_ai_placed=True)
        return await self._resolve_analysis(placement.id, clean)

    async def _resolve_analysis(self, placement_id: str, clean: str) -> Optional[Placement]:
        try:
            outcome = await self.orchestrator.analyze(clean)
        except Exception:
            logger.error("placement_analysis_failed", id=placement_id, username=clean, exc_info=True)
            self._drop(placement_id)
            return None

        src = outcome.result.author_image or await self._avatar_for(clean)
        if placement_id not in self._placements:
            logger.info("placement_result_discarded", id=placement_id, username=clean)
            return None

        placement = self._patch(
            placement_id,
            src=src,
            position=Position.from_alignment(outcome.result),
            analysis=outcome,
            is_ai_placed=True,
            loading=False,
            timestamp=utc_now(),
        )
        logger.info(
            "placement_resolved",
            id=placement_id,
            cached=outcome.cached,
            is_error=outcome.is_error,
        )
        return placement

    # -- Random placement + avatar side-channel -------------------------

    def start_random(self, handle: str) -> Placement:
        """Insert a pending non-AI placement; only its avatar is refined in the background."""
        clean = normalize_handle(handle)
        if not clean:
            raise ValueError("handle must not be empty")
        placement = self.create_pending(clean, self.avatars.best_guess_url(clean), is_ai_placed=False)
        self._spawn(self._resolve_avatar(placement.id, clean))
        return placement

    async def submit_random(self, handle: str) -> Optional[Placement]:
        placement = self.start_random(handle)
        await self.wait_idle()
        return self.get(placement.id)

    async def _avatar_for(self, clean: str) -> str:
        """Refined avatar URL; the best guess when the resolver fails."""
        try:
            return await self.avatars.resolve(clean)
        except Exception:
            logger.warning("placement_avatar_failed", username=clean, exc_info=True)
            return self.avatars.best_guess_url(clean)

    async def _resolve_avatar(self, placement_id: str, clean: str) -> Optional[Placement]:
        src = await self._avatar_for(clean)
        if placement_id not in self._placements:
            return None
        return self._patch(placement_id, src=src, loading=False)

    # -- User edits -----------------------------------------------------

    def move(self, placement_id: str, x: float, y: float) -> Optional[Placement]:
        """Drag a resolved, manually placed entry. AI and pending placements stay put."""
        current = self._placements.get(placement_id)
        if current is None or current.loading or current.is_ai_placed:
            return None
        return self._patch(placement_id, position=Position(x=x, y=y))

    async def remove(self, placement_id: str) -> bool:
        """Remove one placement from memory and from the local store."""
        if not self._drop(placement_id):
            return False
        logger.info("placement_removed", id=placement_id)
        async with self.writer.exclusive():
            await self.store.delete(placement_id)
        return True

    async def clear(self) -> None:
        """Remove every placement and clear the local store."""
        self._placements.clear()
        self.writer.cancel()
        logger.info("placements_cleared")
        async with self.writer.exclusive():
            await self.store.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for every in-flight analysis / avatar task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Drop the pending debounced write. In-flight analyses are left to finish."""
        self.writer.cancel()
