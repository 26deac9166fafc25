"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, fields

from material_mosaic.errors import ParameterError

PREVIEW_MODES = ("fill", "tile")


@dataclass(frozen=True)
class MosaicConfig:
    """All tuneable parameters for a mosaic run.

    Attributes:
        grid_size:           Cells per side of the square grid.
        preview_tile_size:   Tile side in pixels for the ``"tile"`` preview mode.
        color_tolerance:     Matching looseness; larger accepts wider colour gaps.
        brightness:          Multiplier applied to the composited surfaces.
        contrast:            Contrast factor applied around mid-grey.
        material_resolution: Side of the square material thumbnail.
        output_resolution:   Side of the final canvas.
        preview_max_side:    Upper bound for the preview canvas side.
        max_output_resolution: Hard cap for ``output_resolution``.
        load_timeout:        Seconds allowed for each individual image load.
        preview_mode:        ``"fill"`` (thumbnail fills its cell) or
                             ``"tile"`` (thumbnail drawn at preview_tile_size).
    """

    # Grid
    grid_size: int = 80
    preview_tile_size: int = 12

    # Matching
    color_tolerance: float = 30

    # Tone
    brightness: float = 1.0
    contrast: float = 1.1

    # Resolutions
    material_resolution: int = 128
    output_resolution: int = 3200
    preview_max_side: int = 1200
    max_output_resolution: int = 7680

    # Loading
    load_timeout: float = 30.0

    # Preview
    preview_mode: str = "fill"

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".tif", ".webp", ".jfif"}
    )

    # name -> (low, high), inclusive
    RANGES = {
        "grid_size": (20, 200),
        "preview_tile_size": (4, 32),
        "color_tolerance": (5, 80),
        "brightness": (0.4, 2.0),
        "contrast": (0.4, 2.0),
        "material_resolution": (16, 512),
        "output_resolution": (800, 7680),
    }

    def __post_init__(self) -> None:
        for f in fields(self):
            bounds = self.RANGES.get(f.name)
            if bounds is None:
                continue
            value = getattr(self, f.name)
            lo, hi = bounds
            if not lo <= value <= hi:
                msg = f"{f.name}={value} is outside the allowed range [{lo}, {hi}]"
                raise ParameterError(msg)

        if self.output_resolution > self.max_output_resolution:
            msg = (
                f"output_resolution={self.output_resolution} exceeds the cap "
                f"of {self.max_output_resolution}"
            )
            raise ParameterError(msg)
        if self.preview_mode not in PREVIEW_MODES:
            msg = f"Unknown preview mode '{self.preview_mode}'. Available: {', '.join(PREVIEW_MODES)}"
            raise ParameterError(msg)
        if self.load_timeout <= 0:
            msg = f"load_timeout must be positive, got {self.load_timeout}"
            raise ParameterError(msg)

    @property
    def output_size(self) -> int:
        """Side of the output canvas in pixels."""
        return min(self.output_resolution, self.max_output_resolution)

    @property
    def preview_size(self) -> int:
        """Side of the preview canvas in pixels."""
        return min(self.preview_max_side, self.output_resolution)


def resolution_label(size: int) -> str:
    """Human label for a canvas side, e.g. ``"4K"`` or ``"1200p"``."""
    if size >= 7680:
        return "8K"
    if size >= 6400:
        return "6K"
    if size >= 3840:
        return "4K"
    if size >= 2560:
        return "2.5K"
    if size >= 1920:
        return "2K"
    return f"{size}p"
