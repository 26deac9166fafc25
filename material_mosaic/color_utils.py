"""Colour profiles, the run-scoped profile cache, and colour distances."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass

import numpy as np
from PIL import Image
from skimage.color import rgb2lab

from material_mosaic.pixels import sample_mean_color, thumbnail_stride

Color = tuple[int, int, int]

# Rec. 601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


@dataclass(frozen=True)
class ColorProfile:
    """Mean colour and colour spread of one thumbnail."""

    mean_color: Color
    variance: float


def extract_color_profile(thumbnail: Image.Image) -> ColorProfile:
    """Mean RGB and ``sqrt(Var(R) + Var(G) + Var(B))`` of a thumbnail.

    Small thumbnails are scanned completely; larger ones are subsampled
    with :func:`~material_mosaic.pixels.thumbnail_stride`.
    """
    pixels = np.asarray(thumbnail.convert("RGB"))
    stride = thumbnail_stride(max(thumbnail.width, thumbnail.height))
    sample = pixels[::stride, ::stride].reshape(-1, 3).astype(np.float64)

    n = len(sample)
    sums = sample.sum(axis=0)
    sq_sums = (sample ** 2).sum(axis=0)
    means = sums / n
    variances = np.maximum(sq_sums / n - means ** 2, 0.0)

    return ColorProfile(
        mean_color=sample_mean_color(pixels, stride),
        variance=float(math.sqrt(variances.sum())),
    )


class ColorProfileCache:
    """Profiles keyed by ``(source identity, resolution)``.

    One instance belongs to one generation run; it is shared by that run's
    preview and output passes and by its loader threads.
    """

    def __init__(
        self,
        extractor: Callable[[Image.Image], ColorProfile] = extract_color_profile,
    ) -> None:
        self._extractor = extractor
        self._profiles: dict[Hashable, ColorProfile] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._profiles

    def profile(self, key: Hashable, thumbnail: Image.Image) -> ColorProfile:
        """Cached profile for *key*, extracted from *thumbnail* on a miss."""
        with self._lock:
            cached = self._profiles.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1

        result = self._extractor(thumbnail)
        with self._lock:
            return self._profiles.setdefault(key, result)


def color_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Luma-weighted Euclidean distance between two RGB colours."""
    wr, wg, wb = LUMA_WEIGHTS
    return math.sqrt(
        wr * (b[0] - a[0]) ** 2
        + wg * (b[1] - a[1]) ** 2
        + wb * (b[2] - a[2]) ** 2
    )


def position_distance(a: tuple[int, int], b: tuple[int, int]) -> float:
    """Euclidean distance between two grid coordinates."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) uint8 RGB → (N, 3) float64 CIELAB."""
    return rgb2lab(rgb.astype(np.float64).reshape(1, -1, 3) / 255.0).reshape(-1, 3)


def mean_lab_error(targets: np.ndarray, matches: np.ndarray) -> float:
    """Mean CIELAB (ΔE76) distance between paired (N, 3) RGB colour rows."""
    if len(targets) == 0:
        return 0.0
    diff = rgb_to_lab(targets) - rgb_to_lab(matches)
    return float(np.mean(np.sqrt(np.sum(diff ** 2, axis=1))))
