"""Tests for the Typer command-line interface."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from material_mosaic import pipeline as pipeline_module
from material_mosaic.cli import app, collect_sources, default_output_name
from material_mosaic.config import MosaicConfig

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    materials = tmp_path / "materials"
    materials.mkdir()
    for i, color in enumerate([(200, 30, 30), (30, 200, 30), (30, 30, 200), (240, 240, 240)]):
        Image.new("RGB", (60, 40), color).save(materials / f"m{i}.jpg")
    (materials / "notes.txt").write_text("not an image")

    rng = np.random.default_rng(1)
    target = Image.fromarray(rng.integers(0, 256, (50, 80, 3), dtype=np.uint8))
    target.save(tmp_path / "target.png")
    return tmp_path


class TestSources:
    def test_folder_filters_extensions(self, workspace: Path) -> None:
        sources = collect_sources(workspace / "materials", None, MosaicConfig.SUPPORTED_EXTENSIONS)
        assert len(sources) == 4
        assert all(s.endswith(".jpg") for s in sources)

    def test_list_file_deduplicated(self, workspace: Path) -> None:
        listing = workspace / "sources.txt"
        listing.write_text(
            "# posters\n"
            "https://example.com/a.jpg\n"
            "\n"
            "https://example.com/b.jpg\n"
            "https://example.com/a.jpg\n",
        )
        sources = collect_sources(None, listing, MosaicConfig.SUPPORTED_EXTENSIONS)
        assert sources == ["https://example.com/a.jpg", "https://example.com/b.jpg"]

    def test_missing_folder(self, tmp_path: Path) -> None:
        assert collect_sources(tmp_path / "nope", None, MosaicConfig.SUPPORTED_EXTENSIONS) == []

    def test_default_output_name(self) -> None:
        cfg = MosaicConfig(output_resolution=3840, material_resolution=64)
        assert default_output_name(cfg) == "mosaic-4K-64x64.png"


class TestCommands:
    def test_generate(self, workspace: Path) -> None:
        out = workspace / "out" / "mosaic.png"
        preview = workspace / "out" / "preview.png"
        sheet = workspace / "out" / "sheet.png"
        result = runner.invoke(app, [
            "generate", str(workspace / "target.png"),
            "--materials", str(workspace / "materials"),
            "--output", str(out),
            "--preview", str(preview),
            "--comparison", str(sheet),
            "--grid", "20",
            "--resolution", "800",
            "--material-res", "16",
        ])
        assert result.exit_code == 0, result.output
        assert Image.open(out).size == (800, 800)
        assert Image.open(preview).size == (800, 800)
        assert sheet.exists()

    def test_invalid_parameters(self, workspace: Path) -> None:
        result = runner.invoke(app, [
            "generate", str(workspace / "target.png"),
            "--materials", str(workspace / "materials"),
            "--grid", "500",
        ])
        assert result.exit_code == 2

    def test_no_materials(self, workspace: Path) -> None:
        empty = workspace / "empty"
        empty.mkdir()
        result = runner.invoke(app, [
            "generate", str(workspace / "target.png"), "--materials", str(empty),
        ])
        assert result.exit_code == 1

    def test_unloadable_target(self, workspace: Path) -> None:
        result = runner.invoke(app, [
            "generate", str(workspace / "missing.png"),
            "--materials", str(workspace / "materials"),
            "--grid", "20", "--resolution", "800", "--material-res", "16",
            "--output", str(workspace / "never.png"),
        ])
        assert result.exit_code == 1
        assert not (workspace / "never.png").exists()

    def test_render_failure_exits_cleanly(
        self, workspace: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def out_of_memory(*args, **kwargs):
            raise MemoryError

        monkeypatch.setattr(pipeline_module, "adjust_tone", out_of_memory)
        result = runner.invoke(app, [
            "generate", str(workspace / "target.png"),
            "--materials", str(workspace / "materials"),
            "--grid", "20", "--resolution", "800", "--material-res", "16",
            "--output", str(workspace / "never.png"),
        ])
        assert result.exit_code == 1
        assert not isinstance(result.exception, MemoryError)
        assert not (workspace / "never.png").exists()

    def test_catalog(self, workspace: Path) -> None:
        result = runner.invoke(app, [
            "catalog", "--materials", str(workspace / "materials"), "--material-res", "16",
        ])
        assert result.exit_code == 0, result.output
        assert "4 materials" in result.output
