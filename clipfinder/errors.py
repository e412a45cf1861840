from __future__ import annotations


class ClipDetectionError(Exception):
    """Base class for errors surfaced by the detection pipeline."""


class ValidationError(ClipDetectionError, ValueError):
    """Rejected request: unknown mode, blank video id, unparseable URL."""


class NotFoundError(ClipDetectionError, LookupError):
    """The video id does not resolve to a known video."""


class UpstreamError(ClipDetectionError, RuntimeError):
    """A metadata, comment, chapter or caption provider failed."""
