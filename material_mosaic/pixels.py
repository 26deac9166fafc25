"""Pixel-buffer operations: square crop, resize, mean colour, blit, tone.

Algorithm modules only talk to images through these helpers, so the
resampling backend (Pillow) stays in one place.
"""

from __future__ import annotations

import math

import numpy as np
from PIL import Image

# Above this side a thumbnail is resized through an intermediate square
TWO_STAGE_MIN_SIZE = 128
MAX_INTERMEDIATE_SIZE = 1024

# Roughly how many pixels a grid cell mean is estimated from
CELL_SAMPLE_TARGET = 3000


def square_crop_box(width: int, height: int) -> tuple[int, int, int, int]:
    """Centred square crop region as a Pillow ``(left, top, right, bottom)`` box.

    The longer axis is trimmed to the length of the shorter one, with the
    offset ``(longer - shorter) // 2`` on the trimmed axis.
    """
    if width > height:
        left = (width - height) // 2
        return left, 0, left + height, height
    if height > width:
        top = (height - width) // 2
        return 0, top, width, top + width
    return 0, 0, width, height


def crop_square(img: Image.Image) -> Image.Image:
    """Return the centred square crop of *img*."""
    return img.crop(square_crop_box(img.width, img.height))


def resize(img: Image.Image, width: int, height: int,
           box: tuple[int, int, int, int] | None = None) -> Image.Image:
    """High-quality (Lanczos) resize, optionally of a cropped source region.

    The region is cropped out first so the filter never reads pixels
    outside of it.
    """
    if box is not None:
        img = img.crop(box)
    return img.resize((width, height), Image.LANCZOS)


def normalize(img: Image.Image, size: int) -> Image.Image:
    """Aspect-preserving square thumbnail of side *size*.

    The image is centre-cropped to a square first. For ``size >= 128`` the
    crop is taken to an intermediate square of ``min(2 * size, 1024)``
    before the final downscale, which aliases less than a single big step.
    """
    square = crop_square(img)
    if size >= TWO_STAGE_MIN_SIZE:
        intermediate = min(size * 2, MAX_INTERMEDIATE_SIZE)
        staged = resize(square, intermediate, intermediate)
        return resize(staged, size, size)
    return resize(square, size, size)


def thumbnail_stride(size: int) -> int:
    """Sampling stride for a thumbnail: full scan up to 64 px, sparser above."""
    return max(1, size // 64)


def cell_stride(width: int, height: int) -> int:
    """Sampling stride that keeps a cell near ``CELL_SAMPLE_TARGET`` samples."""
    return max(1, int(math.sqrt(width * height / CELL_SAMPLE_TARGET)))


def sample_mean_color(
    pixels: np.ndarray,
    stride: int = 1,
) -> tuple[int, int, int]:
    """Rounded mean RGB of an ``(H, W, 3)`` buffer sampled every *stride* px."""
    sample = pixels[::stride, ::stride, :3].reshape(-1, 3)
    mean = sample.mean(axis=0, dtype=np.float64)
    r, g, b = np.clip(np.rint(mean), 0, 255).astype(int)
    return int(r), int(g), int(b)


def blit(
    dst: Image.Image,
    src: Image.Image,
    dst_box: tuple[int, int, int, int],
    src_box: tuple[int, int, int, int] | None = None,
) -> None:
    """Resample *src_box* of *src* into the ``(x, y, w, h)`` *dst_box* of *dst*."""
    x, y, w, h = dst_box
    if src.size == (w, h) and src_box is None:
        dst.paste(src, (x, y))
        return
    dst.paste(resize(src, w, h, box=src_box), (x, y))


def adjust_tone(img: Image.Image, brightness: float, contrast: float) -> Image.Image:
    """Scale by *brightness*, then stretch around mid-grey by *contrast*."""
    if brightness == 1.0 and contrast == 1.0:
        return img
    levels = np.arange(256, dtype=np.float64) * brightness
    levels = (levels - 127.5) * contrast + 127.5
    lut = np.clip(np.rint(levels), 0, 255).astype(np.uint8).tolist()
    return img.point(lut * len(img.getbands()))
