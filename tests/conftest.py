# tests/conftest.py

"""
Pytest Fixtures - Shared fakes for the pipeline and session tests

The pipeline collaborators (Redis, enrichment provider, LLM scorer, avatar
proxy) are replaced with in-memory fakes that count their calls, so tests can
assert how often the expensive upstreams were hit.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from alignment_chart.models.alignment import AlignmentResult
from alignment_chart.models.enumerations import EnrichmentSource
from alignment_chart.models.profile import NormalizedProfile, PostAuthor, ProfilePost
from alignment_chart.pipelines.orchestrator import PipelineOrchestrator
from alignment_chart.services.redis_cache import RedisCache
from alignment_chart.session.debounce import DebouncedWriter
from alignment_chart.session.local_store import LocalStore
from alignment_chart.session.reconciler import OptimisticStateReconciler


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeRedis:
    """Async stand-in for redis.asyncio.Redis (get/setex/delete/ping)."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = False
        self.setex_calls = 0

    def _check(self):
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.setex_calls += 1
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self._check()
        self.store.pop(key, None)

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass


def make_profile(handle: str = "alice", posts: int = 3) -> NormalizedProfile:
    author = PostAuthor(name="Alice Example", image="https://media.example.com/alice.jpg")
    return NormalizedProfile(
        handle=handle,
        source=EnrichmentSource.LINKEDIN,
        posts=[
            ProfilePost(
                text=f"Post number {i} about shipping things on time",
                reactions=10 + i,
                comments=i,
                posted_at="2024-05-01",
                author=author,
            )
            for i in range(posts)
        ],
    )


class FakeEnrichment:
    """Enrichment client returning a canned profile. Set `error` or `profile=None` to fail."""

    source = EnrichmentSource.LINKEDIN

    def __init__(self, profile: Optional[NormalizedProfile] = None, missing: bool = False):
        self.profile = profile
        self.missing = missing
        self.error: Optional[Exception] = None
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    def subject(self, handle: str) -> str:
        return f"https://www.linkedin.com/in/{handle}"

    async def fetch(self, handle: str) -> Optional[NormalizedProfile]:
        self.calls.append(handle)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.missing:
            return None
        return self.profile or make_profile(handle)

    async def close(self) -> None:
        pass


class FakeScorer:
    """Scorer returning fixed scores. Set `error` to fail, `raw` to return an arbitrary shape."""

    def __init__(self, lawful_chaotic: float = 40, good_evil: float = -10):
        self.lawful_chaotic = lawful_chaotic
        self.good_evil = good_evil
        self.error: Optional[Exception] = None
        self.raw = None
        self.calls = 0
        self.payloads = []

    async def score(self, payload):
        self.calls += 1
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return self.raw
        return AlignmentResult(
            lawful_chaotic=self.lawful_chaotic,
            good_evil=self.good_evil,
            explanation="Methodical planner with a kind streak.",
        )

    async def close(self) -> None:
        pass


class FakeAvatars:
    """Avatar resolver that never touches the network."""

    def __init__(self, resolved: Optional[str] = None):
        self.resolved = resolved
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    def best_guess_url(self, handle: str) -> str:
        return f"https://unavatar.io/x/{handle}"

    async def resolve(self, handle: str) -> str:
        self.calls.append(handle)
        if self.error is not None:
            raise self.error
        return self.resolved or f"https://unavatar.io/x/@{handle}"

    async def close(self) -> None:
        pass


class ManualClock:
    """Injectable sleep whose timers only fire when the test calls advance()."""

    def __init__(self):
        self.sleepers: List[asyncio.Future] = []
        self.delays: List[float] = []

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.sleepers.append(future)
        self.delays.append(delay)
        await future

    async def advance(self) -> None:
        """Fire every pending timer, then let the woken tasks run."""
        sleepers, self.sleepers = self.sleepers, []
        for future in sleepers:
            if not future.done():
                future.set_result(None)
        for _ in range(5):
            await asyncio.sleep(0)


class RecordingWriter:
    """Write target that records every snapshot it receives."""

    def __init__(self):
        self.writes: List = []
        self.error: Optional[Exception] = None

    async def __call__(self, snapshot) -> None:
        if self.error is not None:
            raise self.error
        self.writes.append(snapshot)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def remote_cache(fake_redis):
    return RedisCache(client=fake_redis)


@pytest.fixture
def enrichment():
    return FakeEnrichment()


@pytest.fixture
def scorer():
    return FakeScorer()


@pytest.fixture
def avatars():
    return FakeAvatars()


@pytest.fixture
def orchestrator(remote_cache, enrichment, scorer):
    return PipelineOrchestrator(cache=remote_cache, enrichment=enrichment, scorer=scorer)


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "chart.db")


@pytest.fixture
def local_store(store_path):
    return LocalStore(path=store_path)


@pytest.fixture
def make_reconciler(orchestrator, avatars, local_store):
    """Build a reconciler whose writer flushes immediately (delay 0)."""

    def _make(store: Optional[LocalStore] = None, **kwargs) -> OptimisticStateReconciler:
        target = store or local_store
        writer = kwargs.pop("writer", None) or DebouncedWriter(target.replace_all, delay=0)
        return OptimisticStateReconciler(
            orchestrator=kwargs.pop("orchestrator", orchestrator),
            avatars=kwargs.pop("avatars", avatars),
            store=target,
            writer=writer,
            **kwargs,
        )

    return _make
