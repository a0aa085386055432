"""
Avatar Resolver - Alignment Chart
alignment_chart/services/avatar.py

Picks an avatar URL for an X handle. The avatar proxy answers both
/x/<handle> and /x/@<handle>, and one of them is sometimes a generic
placeholder. Both are loaded and the more colorful image wins.

    best_guess_url(handle) - immediate URL, no network
    resolve(handle)        - refined URL; falls back to the best guess, never raises
"""

import asyncio
import io
from typing import Optional

import httpx
from PIL import Image

from alignment_chart.config import settings
from alignment_chart.core.logging import get_logger
from alignment_chart.services.cache import normalize_handle

logger = get_logger(__name__)


def colorfulness(image: Image.Image, sample_size: int = 20) -> int:
    """Count unique RGB colors over a sample_size x sample_size grid."""
    width, height = image.size
    if width == 0 or height == 0:
        return 0
    rgb = image.convert("RGB")
    colors = set()
    for sy in range(sample_size):
        for sx in range(sample_size):
            x = int(sx / sample_size * width)
            y = int(sy / sample_size * height)
            colors.add(rgb.getpixel((x, y)))
    return len(colors)


class AvatarResolver:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        sample_size: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.AVATAR_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.AVATAR_TIMEOUT_SECONDS
        self.sample_size = sample_size or settings.AVATAR_SAMPLE_SIZE
        self._http = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._http

    def best_guess_url(self, handle: str) -> str:
        return f"{self.base_url}/x/{normalize_handle(handle)}"

    def candidate_urls(self, handle: str) -> tuple:
        clean = normalize_handle(handle)
        return f"{self.base_url}/x/@{clean}", f"{self.base_url}/x/{clean}"

    async def _load(self, url: str) -> Image.Image:
        resp = await asyncio.wait_for(self.http.get(url), timeout=self.timeout)
        resp.raise_for_status()
        image = Image.open(io.BytesIO(resp.content))
        image.load()
        return image

    async def resolve(self, handle: str) -> str:
        fallback = self.best_guess_url(handle)
        try:
            with_at_url, without_at_url = self.candidate_urls(handle)
            with_at, without_at = await asyncio.gather(
                self._load(with_at_url),
                self._load(without_at_url),
                return_exceptions=True,
            )
            with_at_ok = not isinstance(with_at, BaseException)
            without_at_ok = not isinstance(without_at, BaseException)

            if with_at_ok and without_at_ok:
                if colorfulness(with_at, self.sample_size) > colorfulness(without_at, self.sample_size):
                    return with_at_url
                return without_at_url
            if with_at_ok:
                return with_at_url
            if without_at_ok:
                return without_at_url
            logger.info("avatar_candidates_failed", handle=handle)
        except Exception as e:
            logger.warning("avatar_resolve_failed", handle=handle, error=str(e))
        return fallback

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
