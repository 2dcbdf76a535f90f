"""
Tests for the command-line interface.
"""

import json

import pytest

from skystack.cli import create_parser, main, options_from_args
from skystack.config import AlignmentMode, StackMode
from skystack.io import write_png
from skystack.synthetic import generate_synthetic_frames


class TestParser:
    """Tests for argument parsing."""

    def test_demo_defaults(self):
        args = create_parser().parse_args(["demo"])
        options, config = options_from_args(args)

        assert args.frames == 8
        assert options.mode is StackMode.AVERAGE
        assert options.alignment is AlignmentMode.CENTROID
        assert options.clipping_enabled
        assert options.sigma_clip.kappa == 2.2
        assert config.workers == 1
        assert config.show_progress

    def test_stack_options(self):
        args = create_parser().parse_args([
            "stack", "frames/", "--mode", "median", "--alignment", "phase",
            "--no-clip", "--workers", "4", "--chunk-rows", "16", "-q",
        ])
        options, config = options_from_args(args)

        assert args.inputs == ["frames/"]
        assert options.mode is StackMode.MEDIAN
        assert options.alignment is AlignmentMode.PHASE
        assert not options.clipping_enabled
        assert config.workers == 4
        assert config.chunk_rows == 16
        assert not config.show_progress

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["demo", "--mode", "sum"])


class TestMain:
    """End-to-end CLI runs."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_demo_writes_outputs(self, tmp_path):
        out = tmp_path / "demo"
        code = main([
            "demo", "--frames", "3", "--width", "48", "--height", "32",
            "--seed", "5", "--quiet", "--out", str(out),
        ])

        assert code == 0
        assert (out / "stacked.png").exists()
        assert (out / "report.md").exists()

        report = json.loads((out / "report.json").read_text())
        assert report["metadata"]["frameCount"] == 3
        assert report["integrationMinutes"] == pytest.approx(9.0)

    def test_stack_folder(self, tmp_path):
        frames_dir = tmp_path / "frames"
        for i, frame in enumerate(generate_synthetic_frames(count=3, width=40, height=24, seed=1)):
            write_png(frame, frames_dir / f"frame_{i:02d}.png")

        out = tmp_path / "out"
        code = main(["stack", str(frames_dir), "--mode", "median", "-q", "--out", str(out)])

        assert code == 0
        report = json.loads((out / "report.json").read_text())
        assert report["image"] == {"width": 40, "height": 24}
        assert report["options"]["mode"] == "median"
        assert report["integrationMinutes"] is None

    def test_missing_input_fails(self, tmp_path, capsys):
        code = main(["stack", str(tmp_path / "nope.png"), "-q"])

        assert code == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid_kappa_fails(self):
        assert main(["demo", "--frames", "2", "--width", "16", "--height", "16",
                     "--kappa", "-1", "-q"]) == 1

    def test_mismatched_frames_fail(self, tmp_path, uniform_frame):
        write_png(uniform_frame(8, 8), tmp_path / "a.png")
        write_png(uniform_frame(9, 8), tmp_path / "b.png")

        assert main(["stack", str(tmp_path), "-q"]) == 1
