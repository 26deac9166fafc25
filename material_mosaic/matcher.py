"""Greedy colour matching with a diversity heuristic.

Cells are visited in grid order. For each cell a small candidate set is
drawn from a coarse RGB bucket index, every candidate is scored on colour
closeness and on how much placing it again would repeat itself, and the
best one is taken. Usage bookkeeping is updated before the next cell, so
the result depends on grid order and is a local heuristic rather than a
global assignment.
"""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from itertools import product

import numpy as np

from material_mosaic.catalog import MaterialCatalog, MaterialImage
from material_mosaic.color_utils import Color, color_distance, mean_lab_error, position_distance
from material_mosaic.grid import GridCell

logger = logging.getLogger(__name__)

BucketKey = tuple[int, int, int]

# Score weights
COLOR_WEIGHT = 0.6
DIVERSITY_WEIGHT = 0.4
TOLERANCE_SCALE = 1.5
USAGE_PENALTY = 10.0
SPREAD_REWARD = 5.0
CROWDING_PENALTY = 15.0
FRESH_BONUS = 20.0
VARIANCE_REWARD = 0.1

_NEIGHBOUR_OFFSETS = [d for d in product((-1, 0, 1), repeat=3) if d != (0, 0, 0)]


@dataclass(frozen=True)
class MatchStats:
    """Summary of one matching pass."""

    cells: int
    materials_used: int
    max_usage: int
    min_usage: int
    mean_usage: float
    mean_lab_error: float
    seconds: float


def bucket_width(material_count: int) -> int:
    """Quantisation step per channel, between 12 and 24."""
    if material_count <= 0:
        return 24
    return max(12, min(24, int(256 / math.sqrt(material_count / 50))))


def bucket_key(color: Color, width: int) -> BucketKey:
    r, g, b = color
    return r // width, g // width, b // width


def build_buckets(
    materials: Sequence[MaterialImage], width: int,
) -> dict[BucketKey, list[MaterialImage]]:
    """Index materials by the colour bucket of their mean colour."""
    buckets: dict[BucketKey, list[MaterialImage]] = defaultdict(list)
    for material in materials:
        buckets[bucket_key(material.mean_color, width)].append(material)
    return dict(buckets)


def find_candidates(
    color: Color,
    buckets: dict[BucketKey, list[MaterialImage]],
    width: int,
    materials: Sequence[MaterialImage],
) -> list[MaterialImage]:
    """Own bucket, else the 26 neighbouring buckets, else every material."""
    key = bucket_key(color, width)
    own = buckets.get(key)
    if own:
        return own

    candidates: list[MaterialImage] = []
    kr, kg, kb = key
    for dr, dg, db in _NEIGHBOUR_OFFSETS:
        candidates.extend(buckets.get((kr + dr, kg + dg, kb + db), ()))
    if candidates:
        return candidates
    return list(materials)


def search_limit(candidate_count: int, material_count: int) -> int:
    return min(candidate_count, math.ceil(max(20, material_count / 10)))


def min_spread(grid_size: int) -> float:
    """Grid distance below which reusing a material is penalised."""
    return max(3.0, grid_size / 20)


def color_score(cell_color: Color, material: MaterialImage, tolerance: float) -> float:
    distance = color_distance(cell_color, material.mean_color)
    return max(0.0, TOLERANCE_SCALE * tolerance - distance)


def diversity_score(
    material: MaterialImage,
    position: tuple[int, int],
    grid_size: int,
) -> float:
    """Reward spread-out, rarely used, colour-rich materials."""
    score = -material.usage_count * USAGE_PENALTY
    if material.last_position is not None:
        distance = position_distance(position, material.last_position)
        spread = min_spread(grid_size)
        if distance >= spread:
            score += distance * SPREAD_REWARD
        else:
            score -= (spread - distance) * CROWDING_PENALTY
    else:
        score += FRESH_BONUS
    score += material.variance * VARIANCE_REWARD
    return score


def total_score(
    cell: GridCell,
    material: MaterialImage,
    tolerance: float,
    grid_size: int,
) -> float:
    return (
        color_score(cell.mean_color, material, tolerance) * COLOR_WEIGHT
        + diversity_score(material, cell.position, grid_size) * DIVERSITY_WEIGHT
    )


def match_cells(
    cells: Sequence[GridCell],
    catalog: MaterialCatalog,
    color_tolerance: float,
    grid_size: int,
) -> MatchStats:
    """Assign one material to every cell, in order.

    Usage counts and last positions are reset first, so each call starts
    from a clean slate; afterwards the usage counts sum to ``len(cells)``.

    Args:
        cells:           Grid cells in row-major order.
        catalog:         Loaded materials; their usage fields are mutated.
        color_tolerance: Matching looseness (larger accepts wider gaps).
        grid_size:       Cells per side, used for the spacing rule.

    Returns:
        Usage and colour-error statistics for the pass.
    """
    if not len(catalog):
        msg = "Cannot match cells against an empty catalog"
        raise ValueError(msg)

    t0 = time.perf_counter()
    catalog.reset_usage()
    materials = catalog.materials
    width = bucket_width(len(materials))
    buckets = build_buckets(materials, width)
    logger.info(
        "Matching %d cells against %d materials (%d buckets, width %d) …",
        len(cells), len(materials), len(buckets), width,
    )

    for cell in cells:
        candidates = find_candidates(cell.mean_color, buckets, width, materials)
        limit = search_limit(len(candidates), len(materials))

        best = candidates[0]
        best_score = -math.inf
        for material in candidates[:limit]:
            score = total_score(cell, material, color_tolerance, grid_size)
            if score > best_score:
                best_score = score
                best = material

        best.usage_count += 1
        best.last_position = cell.position
        cell.material = best

    max_usage, min_usage, mean_usage = catalog.usage_stats()
    error = mean_lab_error(
        np.array([c.mean_color for c in cells], dtype=np.uint8).reshape(-1, 3),
        np.array([c.material.mean_color for c in cells], dtype=np.uint8).reshape(-1, 3),
    )
    stats = MatchStats(
        cells=len(cells),
        materials_used=sum(1 for m in materials if m.usage_count),
        max_usage=max_usage,
        min_usage=min_usage,
        mean_usage=mean_usage,
        mean_lab_error=error,
        seconds=time.perf_counter() - t0,
    )
    logger.info(
        "Diversity: %d/%d materials used, usage max %d / min %d / mean %.1f, "
        "mean ΔE %.1f  (%.1f s)",
        stats.materials_used, len(materials), max_usage, min_usage, mean_usage,
        error, stats.seconds,
    )
    return stats
