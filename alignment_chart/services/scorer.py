"""
Alignment Scorer - Alignment Chart
alignment_chart/services/scorer.py

Turns a NormalizedProfile into a bounded prompt payload and asks a chat model
for a two-axis alignment score.

The system prompt deliberately tells the model to exaggerate mild signals
instead of drifting to chaotic-neutral. Keep its wording intact when changing
models or providers; bump CACHE_SCHEMA_VERSION when the prompt changes.
"""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from alignment_chart.config import settings
from alignment_chart.core.exceptions import ScoringError
from alignment_chart.core.logging import get_logger
from alignment_chart.models.alignment import AlignmentResult
from alignment_chart.models.enumerations import EnrichmentSource
from alignment_chart.models.profile import NormalizedProfile, ProfilePost

logger = get_logger(__name__)

PLATFORM_LABELS = {
    EnrichmentSource.LINKEDIN: "LinkedIn",
    EnrichmentSource.TWITTER: "X",
}

SYSTEM_PROMPT_TEMPLATE = textwrap.dedent("""
    Analyze the following posts from the given {platform} user and determine their alignment on a D&D-style alignment chart.

    For lawful-chaotic axis:
    - Lawful (-100): Follows rules, traditions, and social norms. They value tradition, loyalty, and order.
    - Neutral (0): Balanced approach to rules and freedom
    - Chaotic (100): Rebels against convention, valuing personal freedom - follows their own moral compass regardless of rules or traditions

    For good-evil axis:
    - Good (-100): Altruistic, compassionate, puts others first
    - Neutral (0): Balanced self-interest and concern for others
    - Evil (100): Selfish, manipulative, or harmful to others. Some are motivated by greed, hatred, or lust for power.

    Based only on these {platform} posts, provide a numerical assessment of this user's alignment. Be willing to move to any side/extreme!

    Since this is a bit of fun, be willing to overly exaggerate if the user has a specific trait expressed barely - e.g. if they are evil at some point then make sure to express it! - I don't just want everyone to end up as chaotic-neutral in the end... However don't always exaggerate a user's chaotic characteristic, you can also try to exaggerate their lawful or good/evil traits if they are more pronounced. Just be fun with it.

    For the explanation, try to avoid overly waffling - but show your reasoning behind your judgement. You can mention specific things about their user like mentioned traits/remarks or projects/etc - the more personalised the better.
""").strip()

# JSON mode needs the output contract spelled out in the prompt
RESPONSE_FORMAT_INSTRUCTIONS = textwrap.dedent("""
    Respond with a single JSON object with exactly these keys:
    - "explanation": string, your brief-ish explanation/reasoning for the given alignment assessment
    - "lawfulChaotic": number, a score from -100 (lawful) to 100 (chaotic)
    - "goodEvil": number, a score from -100 (good) to 100 (evil)
""").strip()


@dataclass(frozen=True)
class PromptPayload:
    """Bounded scorer input built from a profile."""
    handle: str
    source: EnrichmentSource
    system: str
    user: str
    post_count: int


class ScoredAlignment(BaseModel):
    """Raw model reply. Scores are clamped when converted to AlignmentResult."""
    explanation: str = Field(..., min_length=1)
    lawfulChaotic: float
    goodEvil: float

    def to_result(self) -> AlignmentResult:
        return AlignmentResult(
            lawful_chaotic=self.lawfulChaotic,
            good_evil=self.goodEvil,
            explanation=self.explanation,
        )


@runtime_checkable
class Scorer(Protocol):
    async def score(self, payload: PromptPayload) -> AlignmentResult:
        ...

    async def close(self) -> None:
        ...


def render_post(post: ProfilePost, max_chars: int) -> str:
    text = post.text.strip()
    if len(text) > max_chars:
        text = text[:max_chars].rstrip() + "…"
    engagement = f"{post.reactions} reactions, {post.comments} comments"
    if post.reposts:
        engagement += f", {post.reposts} reposts"
    lines = [text, engagement]
    if post.posted_at:
        lines.append(post.posted_at)
    return "<post>\n" + "\n".join(lines) + "\n</post>"


def build_prompt_payload(
    profile: NormalizedProfile,
    max_posts: Optional[int] = None,
    max_post_chars: Optional[int] = None,
) -> PromptPayload:
    """
    Render the first `max_posts` posts (provider order, newest first) into the
    user message, truncating each to `max_post_chars`.
    """
    max_posts = max_posts or settings.PROMPT_MAX_POSTS
    max_post_chars = max_post_chars or settings.PROMPT_MAX_POST_CHARS
    platform = PLATFORM_LABELS[profile.source]

    posts: List[ProfilePost] = profile.posts[:max_posts]
    post_texts = "\n\n".join(render_post(p, max_post_chars) for p in posts)
    user = f"{platform} Username: {profile.handle}\n\n<user_posts>\n{post_texts}\n</user_posts>"

    return PromptPayload(
        handle=profile.handle,
        source=profile.source,
        system=SYSTEM_PROMPT_TEMPLATE.format(platform=platform),
        user=user,
        post_count=len(posts),
    )


class LLMScorer:
    """Score alignment with an OpenAI-compatible chat completion in JSON mode."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        self._client = client
        self.model = model or settings.DEFAULT_LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = settings.OPENAI_API_KEY.get_secret_value() if settings.OPENAI_API_KEY else None
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
        return self._client

    async def score(self, payload: PromptPayload) -> AlignmentResult:
        logger.info("scoring_started", handle=payload.handle, model=self.model, posts=payload.post_count)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": f"{payload.system}\n\n{RESPONSE_FORMAT_INSTRUCTIONS}"},
                    {"role": "user", "content": payload.user},
                ],
            )
        except OpenAIError as e:
            raise ScoringError(f"LLM request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ScoringError("LLM returned an empty response")
        try:
            scored = ScoredAlignment.model_validate(json.loads(content))
        except (ValueError, ValidationError) as e:
            raise ScoringError(f"LLM response failed validation: {e}") from e

        result = scored.to_result()
        logger.info(
            "scoring_completed",
            handle=payload.handle,
            lawful_chaotic=result.lawful_chaotic,
            good_evil=result.good_evil,
        )
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
