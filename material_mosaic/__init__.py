"""
Material Mosaic Generator
=========================

Rebuild a target image from a corpus of "material" images. The target
is split into a square grid and every cell is filled with the material
whose colour fits best, while a diversity score keeps the same material
from clustering. Each run renders:

- an **output** mosaic from the full-resolution materials (up to 7680 px)
- a **preview** from the material thumbnails (up to 1200 px)
"""

__version__ = "1.0.0"

from material_mosaic.catalog import MaterialCatalog, MaterialImage, load_catalog
from material_mosaic.color_utils import (
    ColorProfile,
    ColorProfileCache,
    color_distance,
    extract_color_profile,
)
from material_mosaic.compositor import render_output, render_preview
from material_mosaic.config import MosaicConfig, resolution_label
from material_mosaic.errors import (
    GenerationCancelled,
    MosaicError,
    NoMaterialsError,
    ParameterError,
    PerImageLoadError,
    RenderError,
)
from material_mosaic.grid import GridCell, build_grid
from material_mosaic.image_io import load_image
from material_mosaic.matcher import match_cells
from material_mosaic.pipeline import MosaicGenerator, MosaicResult, Stage, generate_mosaic
from material_mosaic.pixels import normalize

__all__ = [
    "ColorProfile",
    "ColorProfileCache",
    "GenerationCancelled",
    "GridCell",
    "MaterialCatalog",
    "MaterialImage",
    "MosaicConfig",
    "MosaicError",
    "MosaicGenerator",
    "MosaicResult",
    "NoMaterialsError",
    "ParameterError",
    "PerImageLoadError",
    "RenderError",
    "Stage",
    "build_grid",
    "color_distance",
    "extract_color_profile",
    "generate_mosaic",
    "load_catalog",
    "load_image",
    "match_cells",
    "normalize",
    "render_output",
    "render_preview",
    "resolution_label",
]
