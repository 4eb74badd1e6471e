from __future__ import annotations


class StampError(RuntimeError):
    """Base class for errors raised while stamping a single image."""


class DecodeError(StampError):
    """Source bytes could not be interpreted as a supported image."""


class CompositionFailure(StampError):
    """The raster backend could not allocate, draw or encode the output."""
