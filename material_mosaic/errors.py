"""Exception hierarchy for a mosaic generation run."""

from __future__ import annotations


class MosaicError(Exception):
    """Base class for every error raised by the engine."""


class ParameterError(MosaicError, ValueError):
    """A parameter lies outside its documented range."""


class PerImageLoadError(MosaicError):
    """A single image could not be fetched or decoded in time.

    Recoverable for material sources (the image is dropped from the
    catalog), fatal for the target image.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to load image {source}: {reason}")
        self.source = source
        self.reason = reason


class NoMaterialsError(MosaicError):
    """Every material source failed to load."""


class RenderError(MosaicError):
    """A destination surface could not be allocated or drawn into."""


class GenerationCancelled(MosaicError):
    """The run was cancelled at a yield point."""
