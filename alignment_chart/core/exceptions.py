"""
Custom Exceptions - Alignment Chart
alignment_chart/core/exceptions.py

Error taxonomy for the analysis pipeline and the local placement store.
"""


class AlignmentChartError(Exception):
    """Base exception for pipeline and persistence failures."""

    pass


class UpstreamFetchError(AlignmentChartError):
    """Enrichment provider unreachable or returned an unusable response."""

    def __init__(self, message: str = "Enrichment provider request failed", source: str = ""):
        self.message = message
        self.source = source
        super().__init__(message)


class ProfileNotFound(UpstreamFetchError):
    """Enrichment provider has no profile (or no posts) for the handle."""

    def __init__(self, handle: str, source: str = ""):
        self.handle = handle
        super().__init__(f"No profile found for {handle}", source=source)


class ScoringError(AlignmentChartError):
    """Generative scoring call failed or returned an unvalidated shape."""

    def __init__(self, message: str = "Scoring failed"):
        self.message = message
        super().__init__(message)


class CacheUnavailable(AlignmentChartError):
    """Remote cache backing store unreachable. Never surfaces past RemoteCache."""

    def __init__(self, message: str = "Remote cache unavailable"):
        self.message = message
        super().__init__(message)


class PersistenceError(AlignmentChartError):
    """Local placement store unavailable or a transaction failed."""

    def __init__(self, operation: str, message: str = "Local store operation failed"):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")
