"""
feedgate Exceptions

Error taxonomy shared by the update engine, the on-demand cache and the API.
"""

from typing import Optional


class FeedgateError(Exception):
    """Base class for all feedgate errors."""


class DownloadError(FeedgateError):
    """An upstream GET did not produce a usable 200 response."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{message}: {url}")


class UpstreamTransportError(DownloadError):
    """Network failure, timeout or proxy error while talking to upstream."""


class UpstreamStatusError(DownloadError):
    """Upstream answered, but not with 200 OK."""

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"upstream returned HTTP {status_code}")


class DescriptorError(FeedgateError):
    """A version descriptor or manifest could not be parsed."""


class StagingError(FeedgateError):
    """A required artifact could not be placed in the staging area."""


class AtomicReplaceError(FeedgateError):
    """Publishing a staged artifact set failed (rollback was attempted)."""

    def __init__(self, message: str, rolled_back: Optional[bool] = None):
        self.rolled_back = rolled_back
        super().__init__(message)


class ForbiddenPathError(FeedgateError):
    """A requested path resolves outside of its root directory."""
