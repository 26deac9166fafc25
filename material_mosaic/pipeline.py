"""Run orchestration: load → grid → match → composite, twice.

A :class:`MosaicGenerator` owns everything that must not leak between
runs (the colour-profile cache, the catalog and its usage counters) and
walks through the stages of one generation, reporting every transition.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image

from material_mosaic.catalog import MaterialCatalog, load_catalog
from material_mosaic.color_utils import ColorProfileCache
from material_mosaic.compositor import render_output, render_preview
from material_mosaic.config import MosaicConfig, resolution_label
from material_mosaic.errors import MosaicError, PerImageLoadError, RenderError
from material_mosaic.grid import GridCell, build_grid
from material_mosaic.image_io import ImageSource, encode_png, load_image
from material_mosaic.matcher import MatchStats, match_cells
from material_mosaic.pixels import adjust_tone
from material_mosaic.scheduling import Checkpoint

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    GRID_BUILDING = "grid_building"
    MATCHING = "matching"
    COMPOSITING = "compositing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PassResult:
    """One grid → match → composite pass at a given canvas size."""

    name: str
    canvas_size: int
    image: Image.Image
    cells: list[GridCell]
    stats: MatchStats


@dataclass
class MosaicResult:
    """Everything a finished run hands back to its caller."""

    target: Image.Image
    output: PassResult
    preview: PassResult
    catalog: MaterialCatalog
    resolution_label: str
    seconds: float
    _png: bytes | None = field(default=None, repr=False)

    @property
    def image(self) -> Image.Image:
        return self.output.image

    @property
    def preview_image(self) -> Image.Image:
        return self.preview.image

    def encode(self) -> bytes:
        """The output mosaic as PNG bytes (encoded once, then reused)."""
        if self._png is None:
            self._png = encode_png(self.output.image)
        return self._png


class MosaicGenerator:
    """Single-use driver for one mosaic generation.

    Args:
        config:   Validated run parameters.
        cancel:   Event checked at every yield point; set it to abort.
        on_stage: Called with each new :class:`Stage`.
    """

    def __init__(
        self,
        config: MosaicConfig,
        cancel: threading.Event | None = None,
        on_stage: Callable[[Stage], None] | None = None,
    ) -> None:
        self.config = config
        self.checkpoint = Checkpoint(cancel)
        self.cache = ColorProfileCache()
        self.on_stage = on_stage
        self.stage = Stage.IDLE
        self.error: BaseException | None = None
        self.catalog: MaterialCatalog | None = None

    def cancel(self) -> None:
        self.checkpoint.cancel.set()

    def _enter(self, stage: Stage) -> None:
        logger.debug("Stage %s → %s", self.stage.value, stage.value)
        self.stage = stage
        if self.on_stage is not None:
            self.on_stage(stage)

    def run(
        self,
        target: ImageSource,
        sources: Sequence[ImageSource],
    ) -> MosaicResult:
        """Generate the mosaic of *target* from the material *sources*.

        Raises:
            PerImageLoadError:   the target image could not be loaded.
            NoMaterialsError:    none of the sources could be loaded.
            RenderError:         a canvas could not be allocated or drawn.
            GenerationCancelled: the cancel event was set.
        """
        if self.stage is not Stage.IDLE:
            msg = "A MosaicGenerator runs once; create a new one for another run"
            raise RuntimeError(msg)

        try:
            result = self._run(target, sources)
        except BaseException as exc:
            self.error = exc
            self._enter(Stage.FAILED)
            if isinstance(exc, MosaicError):
                logger.error("Mosaic generation failed: %s", exc)
            raise
        self._enter(Stage.DONE)
        return result

    def _run(self, target: ImageSource, sources: Sequence[ImageSource]) -> MosaicResult:
        cfg = self.config
        t0 = time.perf_counter()

        self._enter(Stage.LOADING)
        try:
            target_image = load_image(target, timeout=cfg.load_timeout)
        except PerImageLoadError:
            logger.error("Target image could not be loaded; no mosaic possible")
            raise
        self.checkpoint.check()
        self.catalog = load_catalog(
            sources, cfg.material_resolution, self.cache,
            timeout=cfg.load_timeout, checkpoint=self.checkpoint,
        )

        output = self._pass("output", target_image, cfg.output_size)
        preview = self._pass("preview", target_image, cfg.preview_size)

        label = resolution_label(cfg.output_size)
        elapsed = time.perf_counter() - t0
        logger.info(
            "Mosaic complete: %s (%dx%d px), grid %dx%d, %d materials  (%.1f s)",
            label, cfg.output_size, cfg.output_size, cfg.grid_size, cfg.grid_size,
            len(self.catalog), elapsed,
        )
        return MosaicResult(
            target=target_image,
            output=output,
            preview=preview,
            catalog=self.catalog,
            resolution_label=label,
            seconds=elapsed,
        )

    def _pass(self, name: str, target: Image.Image, canvas_size: int) -> PassResult:
        cfg = self.config
        logger.info(
            "%s pass: %dx%d grid on %dx%d canvas",
            name.capitalize(), cfg.grid_size, cfg.grid_size, canvas_size, canvas_size,
        )

        self._enter(Stage.GRID_BUILDING)
        cells = build_grid(target, cfg.grid_size, canvas_size, self.checkpoint)

        self._enter(Stage.MATCHING)
        stats = match_cells(cells, self.catalog, cfg.color_tolerance, cfg.grid_size)
        self.checkpoint.check()

        self._enter(Stage.COMPOSITING)
        if name == "output":
            image = render_output(cells, canvas_size, self.checkpoint)
        else:
            tile = cfg.preview_tile_size if cfg.preview_mode == "tile" else None
            image = render_preview(cells, canvas_size, tile, self.checkpoint)
        try:
            image = adjust_tone(image, cfg.brightness, cfg.contrast)
        except (MemoryError, OSError, ValueError) as exc:
            msg = f"Could not apply brightness/contrast to the {name} canvas: {exc}"
            raise RenderError(msg) from exc

        return PassResult(name=name, canvas_size=canvas_size, image=image, cells=cells, stats=stats)


def generate_mosaic(
    target: ImageSource,
    sources: Sequence[ImageSource],
    config: MosaicConfig | None = None,
    cancel: threading.Event | None = None,
    on_stage: Callable[[Stage], None] | None = None,
) -> MosaicResult:
    """Convenience wrapper: one :class:`MosaicGenerator` run."""
    generator = MosaicGenerator(config or MosaicConfig(), cancel=cancel, on_stage=on_stage)
    return generator.run(target, sources)
