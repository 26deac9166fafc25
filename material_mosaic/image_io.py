"""Image loading, encoding, and comparison-sheet generation."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Union
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from material_mosaic.errors import PerImageLoadError

ImageSource = Union[str, Path, bytes, Image.Image]


def describe_source(source: ImageSource) -> str:
    """Short printable identity for a source, used as cache key and in logs."""
    if isinstance(source, Image.Image):
        return f"<image {source.width}x{source.height} @{id(source):x}>"
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return str(source)


def _open_bytes(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _open_path(path: str | Path) -> Image.Image:
    with Image.open(path) as img:
        img.load()
        return img.copy()


def load_image(source: ImageSource, timeout: float = 30.0) -> Image.Image:
    """Resolve *source* into a decoded RGB image.

    Accepts ``http(s)://`` URLs (fetched with *timeout* seconds),
    ``file://`` URLs, filesystem paths, raw encoded bytes, or an already
    decoded :class:`PIL.Image.Image`.

    Raises:
        PerImageLoadError: the source could not be fetched or decoded.
    """
    name = describe_source(source)
    try:
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, bytes):
            img = _open_bytes(source)
        else:
            text = str(source)
            if text.lower().startswith(("http://", "https://")):
                r = requests.get(text, timeout=timeout)
                r.raise_for_status()
                img = _open_bytes(r.content)
            elif text.lower().startswith("file://"):
                img = _open_path(unquote(urlparse(text).path))
            else:
                img = _open_path(text)
    except requests.Timeout as exc:
        raise PerImageLoadError(name, f"timed out after {timeout:g} s") from exc
    except (requests.RequestException, UnidentifiedImageError, Image.DecompressionBombError,
            OSError, ValueError) as exc:
        raise PerImageLoadError(name, str(exc)) from exc

    if img.width == 0 or img.height == 0:
        raise PerImageLoadError(name, "image has no pixels")
    return img.convert("RGB") if img.mode != "RGB" else img


def encode_png(img: Image.Image) -> bytes:
    """Encode *img* as a lossless PNG."""
    buf = io.BytesIO()
    img.save(buf, format="PNG", compress_level=6)
    return buf.getvalue()


def save_image(img: Image.Image, path: str | Path) -> None:
    """Save *img*, creating parent folders as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path)


def make_comparison_sheet(
    target: Image.Image,
    preview: Image.Image,
    output: Image.Image,
    output_path: str | Path,
    panel_side: int = 600,
) -> None:
    """Create a 3-panel comparison: Target | Preview | Mosaic.

    Every panel is resized to *panel_side* square pixels.
    """
    label_height = 36
    panels = [
        target.convert("RGB").resize((panel_side, panel_side), Image.LANCZOS),
        preview.resize((panel_side, panel_side), Image.LANCZOS),
        output.resize((panel_side, panel_side), Image.LANCZOS),
    ]
    labels = [
        "Target",
        f"Preview {preview.width}x{preview.height}",
        f"Mosaic {output.width}x{output.height}",
    ]

    gap = 8
    total_w = len(panels) * panel_side + (len(panels) - 1) * gap
    total_h = panel_side + label_height

    canvas = Image.new("RGB", (total_w, total_h), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 18,
        )
    except OSError:
        font = ImageFont.load_default()

    for i, (panel, label) in enumerate(zip(panels, labels, strict=False)):
        x = i * (panel_side + gap)
        canvas.paste(panel, (x, label_height))

        bbox = draw.textbbox((0, 0), label, font=font)
        text_w = bbox[2] - bbox[0]
        tx = x + (panel_side - text_w) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220), font=font)

    save_image(canvas, output_path)
