"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from material_mosaic.catalog import load_catalog
from material_mosaic.color_utils import ColorProfileCache
from material_mosaic.config import MosaicConfig, resolution_label
from material_mosaic.errors import MosaicError
from material_mosaic.image_io import make_comparison_sheet, save_image
from material_mosaic.matcher import bucket_key, bucket_width
from material_mosaic.pipeline import Stage, generate_mosaic

app = typer.Typer(
    name="material-mosaic",
    help="Rebuild a target image from a corpus of material images.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _read_source_list(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


def collect_sources(
    folder: Path | None,
    source_list: Path | None,
    extensions: frozenset[str],
) -> list[str]:
    """Material sources from a folder and/or a list file, first occurrence kept."""
    sources: list[str] = []
    if folder is not None:
        sources.extend(str(p) for p in _collect_images(folder, extensions))
    if source_list is not None:
        sources.extend(_read_source_list(source_list))
    return list(dict.fromkeys(sources))


def default_output_name(cfg: MosaicConfig) -> str:
    m = cfg.material_resolution
    return f"mosaic-{resolution_label(cfg.output_size)}-{m}x{m}.png"


# Defaults come from MosaicConfig - single source of truth
_DEFAULTS = MosaicConfig()


# -- generate command --------------------------------------------------

@app.command()
def generate(
    target: str = typer.Argument(..., help="Target image: path or URL"),
    materials: Path | None = typer.Option(
        None, "--materials", "-m", help="Folder of material images",
    ),
    source_list: Path | None = typer.Option(
        None, "--list", "-l", help="Text file with one material path or URL per line",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output PNG (default: output/mosaic-<label>-<res>.png)",
    ),
    preview: Path | None = typer.Option(
        None, "--preview", help="Also save the preview image here",
    ),
    comparison: Path | None = typer.Option(
        None, "--comparison", help="Also save a Target | Preview | Mosaic sheet here",
    ),
    grid_size: int = typer.Option(
        _DEFAULTS.grid_size, "--grid", "-g", help="Cells per side (20-200)",
    ),
    tile_size: int = typer.Option(
        _DEFAULTS.preview_tile_size, "--tile", help="Preview tile size in px (4-32)",
    ),
    preview_mode: str = typer.Option(
        _DEFAULTS.preview_mode, "--preview-mode", help="'fill' or 'tile'",
    ),
    tolerance: float = typer.Option(
        _DEFAULTS.color_tolerance, "--tolerance", "-t", help="Colour tolerance (5-80)",
    ),
    brightness: float = typer.Option(
        _DEFAULTS.brightness, "--brightness", help="Brightness multiplier (0.4-2.0)",
    ),
    contrast: float = typer.Option(
        _DEFAULTS.contrast, "--contrast", help="Contrast multiplier (0.4-2.0)",
    ),
    material_resolution: int = typer.Option(
        _DEFAULTS.material_resolution, "--material-res",
        help="Material thumbnail side in px (16-512)",
    ),
    resolution: int = typer.Option(
        _DEFAULTS.output_resolution, "--resolution", "-r",
        help="Output side in px (800-7680)",
    ),
    timeout: float = typer.Option(
        _DEFAULTS.load_timeout, "--timeout", help="Per-image load timeout in seconds",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate a mosaic of TARGET from the given material images."""
    _setup_logging(verbose)

    try:
        cfg = MosaicConfig(
            grid_size=grid_size,
            preview_tile_size=tile_size,
            preview_mode=preview_mode,
            color_tolerance=tolerance,
            brightness=brightness,
            contrast=contrast,
            material_resolution=material_resolution,
            output_resolution=resolution,
            load_timeout=timeout,
        )
    except MosaicError as exc:
        console.print(f"[red]Invalid parameters:[/red] {exc}")
        raise typer.Exit(2) from exc

    sources = collect_sources(materials, source_list, cfg.SUPPORTED_EXTENSIONS)
    if not sources:
        console.print("\n[yellow]No material images given.[/yellow]")
        console.print("Pass a folder with --materials or a list file with --list.\n")
        raise typer.Exit(1)

    output = output or Path("output") / default_output_name(cfg)

    console.print(Panel.fit(
        f"[bold]MATERIAL MOSAIC[/bold]\n"
        f"Grid: {cfg.grid_size}x{cfg.grid_size}  |  Materials: {len(sources)}\n"
        f"Output: {resolution_label(cfg.output_size)} ({cfg.output_size}px)  |  "
        f"Preview: {cfg.preview_size}px\n"
        f"Thumbnails: {cfg.material_resolution}px  |  Tolerance: {cfg.color_tolerance:g}",
        border_style="cyan",
    ))

    def on_stage(stage: Stage) -> None:
        if stage not in (Stage.DONE, Stage.FAILED):
            console.rule(f"[bold cyan]{stage.value.replace('_', ' ')}[/bold cyan]")

    try:
        result = generate_mosaic(target, sources, cfg, on_stage=on_stage)
    except MosaicError as exc:
        console.print(f"[red]✗ Mosaic generation failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.encode())
    if preview is not None:
        save_image(result.preview_image, preview)
    if comparison is not None:
        make_comparison_sheet(result.target, result.preview_image, result.image, comparison)

    stats = result.output.stats
    console.print(Panel.fit(
        f"[bold green]DONE[/bold green] - {output}\n"
        f"[dim]{result.resolution_label} {cfg.output_size}x{cfg.output_size}px  "
        f"materials used={stats.materials_used}/{len(result.catalog)}  "
        f"max reuse={stats.max_usage}  ΔE={stats.mean_lab_error:.1f}  "
        f"time={result.seconds:.1f}s[/dim]",
        border_style="green",
    ))


# -- catalog command ---------------------------------------------------

@app.command()
def catalog(
    materials: Path | None = typer.Option(
        None, "--materials", "-m", help="Folder of material images",
    ),
    source_list: Path | None = typer.Option(
        None, "--list", "-l", help="Text file with one material path or URL per line",
    ),
    material_resolution: int = typer.Option(
        _DEFAULTS.material_resolution, "--material-res",
    ),
    timeout: float = typer.Option(_DEFAULTS.load_timeout, "--timeout"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Load materials and show their colour profiles and buckets."""
    _setup_logging(verbose)

    try:
        cfg = MosaicConfig(material_resolution=material_resolution, load_timeout=timeout)
        sources = collect_sources(materials, source_list, cfg.SUPPORTED_EXTENSIONS)
        loaded = load_catalog(
            sources, cfg.material_resolution, ColorProfileCache(), timeout=cfg.load_timeout,
        )
    except MosaicError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1) from exc

    width = bucket_width(len(loaded))
    table = Table(title=f"{len(loaded)} materials  (bucket width {width})")
    table.add_column("Source", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Mean colour")
    table.add_column("Variance", justify="right")
    table.add_column("Bucket", justify="right")

    for m in loaded:
        r, g, b = m.mean_color
        hex_color = f"#{r:02x}{g:02x}{b:02x}"
        table.add_row(
            m.source,
            f"{m.image.width}x{m.image.height}",
            f"[on {hex_color}]   [/] {hex_color}",
            f"{m.variance:.1f}",
            str(bucket_key(m.mean_color, width)),
        )
    console.print(table)
    if loaded.failures:
        console.print(f"[yellow]{len(loaded.failures)} sources failed to load[/yellow]")


if __name__ == "__main__":
    app()
