"""Draw matched materials into their cells."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from PIL import Image

from material_mosaic.errors import RenderError
from material_mosaic.grid import GridCell
from material_mosaic.pixels import blit, crop_square, resize
from material_mosaic.scheduling import Checkpoint

logger = logging.getLogger(__name__)


def output_batch_size(canvas_size: int) -> int:
    """Cells drawn between yields on the output canvas; fewer when larger."""
    return max(15, min(80, int(8000 / (canvas_size / 1000))))


def output_pause_ms(canvas_size: int) -> float:
    return max(1, canvas_size // 1000)


def preview_batch_size(canvas_size: int) -> int:
    return max(40, min(120, int(12000 / (canvas_size / 800))))


def new_canvas(size: int, color: tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """Allocate a square RGB surface."""
    try:
        return Image.new("RGB", (size, size), color)
    except (MemoryError, ValueError) as exc:
        msg = f"Could not allocate a {size}x{size} canvas: {exc}"
        raise RenderError(msg) from exc


def _draw_cells(
    canvas: Image.Image,
    cells: Sequence[GridCell],
    batch_size: int,
    pause_ms: float,
    draw_one,
    checkpoint: Checkpoint,
) -> int:
    drawn = 0
    for start in range(0, len(cells), batch_size):
        for cell in cells[start:start + batch_size]:
            if cell.material is None:
                continue
            try:
                draw_one(canvas, cell)
            except (MemoryError, OSError, ValueError) as exc:
                msg = f"Drawing cell {cell.position} from {cell.material.source} failed: {exc}"
                raise RenderError(msg) from exc
            drawn += 1
        if start + batch_size < len(cells):
            checkpoint(pause_ms)
    return drawn


def render_output(
    cells: Sequence[GridCell],
    canvas_size: int,
    checkpoint: Checkpoint | None = None,
) -> Image.Image:
    """Full-quality pass: crop each material's original image into its cell.

    A tile resampled for one cell size is reused for every other cell of
    the same size that shows the same material.
    """
    checkpoint = checkpoint or Checkpoint()
    t0 = time.perf_counter()
    canvas = new_canvas(canvas_size)
    tiles: dict[tuple[int, int, int], Image.Image] = {}

    def draw_one(dst: Image.Image, cell: GridCell) -> None:
        material = cell.material
        key = (id(material), cell.width, cell.height)
        tile = tiles.get(key)
        if tile is None:
            tile = resize(crop_square(material.image), cell.width, cell.height)
            tiles[key] = tile
        blit(dst, tile, cell.box)

    drawn = _draw_cells(
        canvas, cells, output_batch_size(canvas_size), output_pause_ms(canvas_size),
        draw_one, checkpoint,
    )
    logger.info(
        "Output %dx%d: %d cells drawn  (%.1f s)",
        canvas_size, canvas_size, drawn, time.perf_counter() - t0,
    )
    return canvas


def render_preview(
    cells: Sequence[GridCell],
    canvas_size: int,
    tile_size: int | None = None,
    checkpoint: Checkpoint | None = None,
) -> Image.Image:
    """Fast pass from the precomputed thumbnails.

    With *tile_size* ``None`` each thumbnail fills its cell. Otherwise it
    is drawn *tile_size* pixels square, centred on the cell, leaving the
    background visible between tiles.
    """
    checkpoint = checkpoint or Checkpoint()
    t0 = time.perf_counter()
    canvas = new_canvas(canvas_size)

    def draw_one(dst: Image.Image, cell: GridCell) -> None:
        thumb = cell.material.thumbnail
        if tile_size is None:
            blit(dst, thumb, cell.box)
            return
        cx = cell.x + cell.width // 2
        cy = cell.y + cell.height // 2
        half = tile_size // 2
        blit(dst, thumb, (cx - half, cy - half, tile_size, tile_size))

    drawn = _draw_cells(
        canvas, cells, preview_batch_size(canvas_size), 1, draw_one, checkpoint,
    )
    logger.info(
        "Preview %dx%d: %d cells drawn  (%.1f s)",
        canvas_size, canvas_size, drawn, time.perf_counter() - t0,
    )
    return canvas
