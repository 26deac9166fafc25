"""Partition the target image into a square grid of colour-sampled cells."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from material_mosaic.color_utils import Color
from material_mosaic.errors import RenderError
from material_mosaic.pixels import cell_stride, resize, sample_mean_color
from material_mosaic.scheduling import Checkpoint

if TYPE_CHECKING:
    from material_mosaic.catalog import MaterialImage

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class GridCell:
    """One cell of the destination canvas.

    Attributes:
        x, y, width, height: Bounding box in canvas pixels.
        position: ``(column, row)`` grid coordinate.
        mean_color: Mean RGB of the target underneath the cell.
        material: Assigned material, set by the matcher.
    """

    x: int
    y: int
    width: int
    height: int
    position: tuple[int, int]
    mean_color: Color
    material: MaterialImage | None = None

    @property
    def box(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


def cell_edges(canvas_size: int, grid_size: int) -> list[int]:
    """``grid_size + 1`` integer edges splitting *canvas_size* as evenly as possible."""
    return [i * canvas_size // grid_size for i in range(grid_size + 1)]


def row_chunk_size(grid_size: int) -> int:
    return max(5, min(20, grid_size // 8))


def build_grid(
    target: Image.Image,
    grid_size: int,
    canvas_size: int,
    checkpoint: Checkpoint | None = None,
) -> list[GridCell]:
    """Render *target* at *canvas_size* and sample ``grid_size ** 2`` cells.

    Cell edges are integers, so when *canvas_size* is not a multiple of
    *grid_size* some cells are one pixel wider or taller than others; the
    cells always tile the canvas exactly. Rows are processed in chunks
    with a yield between chunks.

    Returns:
        Cells in row-major order (row outer, column inner).
    """
    if grid_size < 1 or canvas_size < grid_size:
        msg = f"Cannot split a {canvas_size}px canvas into {grid_size} cells per side"
        raise ValueError(msg)

    checkpoint = checkpoint or Checkpoint()
    t0 = time.perf_counter()

    try:
        rendered = target.convert("RGB")
        if rendered.size != (canvas_size, canvas_size):
            rendered = resize(rendered, canvas_size, canvas_size)
        pixels = np.asarray(rendered)
    except (MemoryError, OSError, ValueError) as exc:
        msg = f"Could not render the target at {canvas_size}x{canvas_size}: {exc}"
        raise RenderError(msg) from exc

    edges = cell_edges(canvas_size, grid_size)
    chunk = row_chunk_size(grid_size)
    cells: list[GridCell] = []

    for start_row in range(0, grid_size, chunk):
        for row in range(start_row, min(start_row + chunk, grid_size)):
            y0, y1 = edges[row], edges[row + 1]
            for col in range(grid_size):
                x0, x1 = edges[col], edges[col + 1]
                w, h = x1 - x0, y1 - y0
                region = pixels[y0:y1, x0:x1]
                cells.append(GridCell(
                    x=x0, y=y0, width=w, height=h,
                    position=(col, row),
                    mean_color=sample_mean_color(region, cell_stride(w, h)),
                ))
        if start_row + chunk < grid_size:
            checkpoint(1)

    logger.info(
        "Grid %dx%d on %dx%d canvas ready  (%.1f s)",
        grid_size, grid_size, canvas_size, canvas_size, time.perf_counter() - t0,
    )
    return cells
