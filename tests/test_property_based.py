# tests/test_property_based.py
"""
Property-Based Tests - Alignment Chart

Hypothesis properties for score clamping, chart positions, handle
normalization and local store snapshots.
"""

import asyncio
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from alignment_chart.models.alignment import AlignmentResult
from alignment_chart.models.placement import Position, StoredPlacement
from alignment_chart.services.cache import normalize_handle
from alignment_chart.session.local_store import LocalStore

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

any_score_st = st.floats(allow_nan=False, allow_infinity=False, min_value=-1e6, max_value=1e6)
axis_st = st.floats(min_value=-100.0, max_value=100.0, allow_nan=False, allow_infinity=False)
handle_st = st.from_regex(r"[A-Za-z0-9_-]{1,30}", fullmatch=True)


@st.composite
def stored_placements_st(draw):
    """Draw a list of StoredPlacement records with unique ids."""
    ids = draw(st.lists(handle_st, unique=True, max_size=8))
    return [
        StoredPlacement(
            id=f"image-{record_id}",
            src=f"https://unavatar.io/x/{record_id}",
            username=record_id,
            position=Position(x=draw(st.floats(0, 100)), y=draw(st.floats(0, 100))),
            is_ai_placed=draw(st.booleans()),
        )
        for record_id in ids
    ]


# ---------------------------------------------------------------------------
# Score clamping
# ---------------------------------------------------------------------------

@settings(max_examples=300)
@given(lc=any_score_st, ge=any_score_st)
def test_scores_always_clamped(lc, ge):
    result = AlignmentResult(lawful_chaotic=lc, good_evil=ge)
    assert -100 <= result.lawful_chaotic <= 100
    assert -100 <= result.good_evil <= 100


@settings(max_examples=300)
@given(lc=axis_st, ge=axis_st)
def test_in_range_scores_unchanged(lc, ge):
    result = AlignmentResult(lawful_chaotic=lc, good_evil=ge)
    assert result.lawful_chaotic == lc
    assert result.good_evil == ge


# ---------------------------------------------------------------------------
# Chart positions
# ---------------------------------------------------------------------------

@settings(max_examples=300)
@given(lc=any_score_st, ge=any_score_st)
def test_position_from_alignment_inside_chart(lc, ge):
    position = Position.from_alignment(AlignmentResult(lawful_chaotic=lc, good_evil=ge))
    assert 0 <= position.x <= 100
    assert 0 <= position.y <= 100


@settings(max_examples=300)
@given(lc=axis_st, ge=axis_st)
def test_position_is_monotonic_in_scores(lc, ge):
    low = Position.from_alignment(AlignmentResult(lawful_chaotic=lc, good_evil=ge))
    high = Position.from_alignment(AlignmentResult(lawful_chaotic=min(100, lc + 1), good_evil=min(100, ge + 1)))
    assert high.x >= low.x
    assert high.y >= low.y


# ---------------------------------------------------------------------------
# Handle normalization
# ---------------------------------------------------------------------------

@settings(max_examples=300)
@given(handle=handle_st)
def test_normalize_handle_idempotent_across_forms(handle):
    forms = [
        handle,
        f"@{handle}",
        f"https://www.linkedin.com/in/{handle}/",
        f"https://x.com/{handle}?s=20",
    ]
    assert {normalize_handle(f) for f in forms} == {handle}
    assert normalize_handle(normalize_handle(handle)) == handle


# ---------------------------------------------------------------------------
# Local store snapshots
# ---------------------------------------------------------------------------

@settings(max_examples=50, deadline=None)
@given(records=stored_placements_st())
def test_replace_all_then_load_all_returns_same_set(records):
    with tempfile.TemporaryDirectory() as tmp:
        store = LocalStore(path=str(Path(tmp) / "chart.db"))

        async def scenario():
            await store.replace_all(records)
            return await store.load_all()

        loaded = asyncio.run(scenario())
    assert {r.id: r for r in loaded} == {r.id: r for r in records}
