from enum import Enum

class EnrichmentSource(str, Enum):
    LINKEDIN = "linkedin"
    TWITTER = "twitter"

class ErrorKind(str, Enum):
    PROFILE_NOT_FOUND = "profile_not_found"  # Provider has no posts for the handle
    UPSTREAM = "upstream"                    # Provider unreachable / bad response
    SCORING = "scoring"                      # LLM call failed or bad shape
    UNEXPECTED = "unexpected"

class PlacementStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
