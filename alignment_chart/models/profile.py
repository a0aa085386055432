from pydantic import BaseModel, Field
from typing import List, Optional

from alignment_chart.models.enumerations import EnrichmentSource


class PostAuthor(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None


class ProfilePost(BaseModel):
    """One post/tweet with its engagement metadata."""

    text: str
    reactions: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    reposts: int = Field(default=0, ge=0)
    posted_at: Optional[str] = None
    author: Optional[PostAuthor] = None


class NormalizedProfile(BaseModel):
    """Provider-independent profile returned by an EnrichmentClient."""

    handle: str
    source: EnrichmentSource
    posts: List[ProfilePost] = Field(default_factory=list)

    @property
    def author(self) -> Optional[PostAuthor]:
        """Author metadata taken from the first post, if any."""
        if self.posts and self.posts[0].author:
            return self.posts[0].author
        return None
