"""Material catalog: loading sources into profiled thumbnails."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from PIL import Image

from material_mosaic.color_utils import Color, ColorProfileCache
from material_mosaic.errors import NoMaterialsError, PerImageLoadError
from material_mosaic.image_io import ImageSource, describe_source, load_image
from material_mosaic.pixels import normalize
from material_mosaic.scheduling import Checkpoint

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MaterialImage:
    """One candidate image and its per-run usage statistics."""

    source: str
    image: Image.Image
    thumbnail: Image.Image
    mean_color: Color
    variance: float
    usage_count: int = 0
    last_position: tuple[int, int] | None = field(default=None)

    def reset_usage(self) -> None:
        self.usage_count = 0
        self.last_position = None


class MaterialCatalog:
    """The materials of one generation run, in source order."""

    def __init__(self, materials: Iterable[MaterialImage] = (), resolution: int = 0) -> None:
        self.materials: list[MaterialImage] = list(materials)
        self.resolution = resolution
        self.failures: list[PerImageLoadError] = []

    def __len__(self) -> int:
        return len(self.materials)

    def __iter__(self) -> Iterator[MaterialImage]:
        return iter(self.materials)

    def __getitem__(self, index: int) -> MaterialImage:
        return self.materials[index]

    def reset_usage(self) -> None:
        for material in self.materials:
            material.reset_usage()

    def total_usage(self) -> int:
        return sum(m.usage_count for m in self.materials)

    def usage_stats(self) -> tuple[int, int, float]:
        """``(max, min, mean)`` usage count across the catalog."""
        if not self.materials:
            return 0, 0, 0.0
        counts = [m.usage_count for m in self.materials]
        return max(counts), min(counts), sum(counts) / len(counts)


def loading_batch_size(material_resolution: int) -> int:
    """Concurrent loads per batch; fewer for larger thumbnails."""
    return max(3, min(8, int(30 / (material_resolution / 32))))


def loading_pause_ms(material_resolution: int) -> float:
    """Pause after each loading batch."""
    return max(3.0, material_resolution / 16)


def load_material(
    source: ImageSource,
    resolution: int,
    cache: ColorProfileCache,
    timeout: float = 30.0,
) -> MaterialImage:
    """Decode *source*, thumbnail it and attach its colour profile."""
    name = describe_source(source)
    image = load_image(source, timeout=timeout)
    thumbnail = normalize(image, resolution)
    profile = cache.profile((name, resolution), thumbnail)
    return MaterialImage(
        source=name,
        image=image,
        thumbnail=thumbnail,
        mean_color=profile.mean_color,
        variance=profile.variance,
    )


def load_catalog(
    sources: Sequence[ImageSource],
    resolution: int,
    cache: ColorProfileCache,
    timeout: float = 30.0,
    checkpoint: Checkpoint | None = None,
) -> MaterialCatalog:
    """Load every source in bounded concurrent batches.

    A source that fails to decode, or is not ready within *timeout*
    seconds, is logged and left out. Source order is preserved among the
    materials that load.

    Raises:
        NoMaterialsError: not a single source could be loaded.
    """
    checkpoint = checkpoint or Checkpoint()
    batch_size = loading_batch_size(resolution)
    pause = loading_pause_ms(resolution)
    catalog = MaterialCatalog(resolution=resolution)

    logger.info(
        "Loading %d materials at %dx%d px (batches of %d) …",
        len(sources), resolution, resolution, batch_size,
    )
    t0 = time.perf_counter()

    for start in range(0, len(sources), batch_size):
        batch = sources[start:start + batch_size]
        # One worker per load, and a fresh pool per batch: a load abandoned
        # after its timeout never occupies a worker the next batch needs.
        executor = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="material")
        try:
            futures = [
                executor.submit(load_material, src, resolution, cache, timeout)
                for src in batch
            ]
            done, _ = wait(futures, timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for src, future in zip(batch, futures, strict=False):
            if future not in done:
                future.cancel()
                err = PerImageLoadError(
                    describe_source(src), f"timed out after {timeout:g} s",
                )
                catalog.failures.append(err)
                logger.warning("%s", err)
                continue
            try:
                catalog.materials.append(future.result())
            except PerImageLoadError as err:
                catalog.failures.append(err)
                logger.warning("%s", err)

        logger.debug(
            "Loaded %d/%d sources", min(start + batch_size, len(sources)), len(sources),
        )
        checkpoint(pause)

    if not catalog.materials:
        msg = f"No material images could be loaded ({len(sources)} sources tried)"
        raise NoMaterialsError(msg)

    logger.info(
        "Loaded %d/%d materials at %dx%d px  (%.1f s, %d failed)",
        len(catalog), len(sources), resolution, resolution,
        time.perf_counter() - t0, len(catalog.failures),
    )
    return catalog
