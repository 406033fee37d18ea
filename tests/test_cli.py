"""Tests for the flowscope command line."""

import pytest

from flowscope.cli import PROFILES, build_parser, main
from flowscope.io.encoder import ffmpeg_available


def test_parser_defaults():
    args = build_parser().parse_args(["song.wav"])
    assert args.profile == "medium"
    assert args.particles == 800
    assert args.field_strength == 1.0
    assert args.noise_scale == 0.003
    assert args.time_scale == 0.5
    assert args.drag == 0.97
    assert args.color_mode == "spectrum"
    assert not args.no_trails
    assert args.quality is None


def test_parser_rejects_unknown_color_mode():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["song.wav", "--color-mode", "plaid"])


def test_profiles():
    assert PROFILES["low"]["width"] == 1280
    assert PROFILES["high"]["height"] == 2160


def test_missing_audio_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main([str(tmp_path / "missing.wav")])
    assert exc.value.code == 1
    assert "Audio file not found" in capsys.readouterr().err


@pytest.mark.skipif(not ffmpeg_available(), reason="ffmpeg not installed")
def test_renders_video(tmp_path, temp_audio_file, capsys):
    output = tmp_path / "flow.mp4"
    main([
        str(temp_audio_file),
        "-o", str(output),
        "-p", "low",
        "--width", "64",
        "--height", "48",
        "--fps", "10",
        "--particles", "50",
        "--color-mode", "ocean",
        "--max-duration", "0.5",
    ])
    assert output.exists()
    assert output.stat().st_size > 0
    assert "Done!" in capsys.readouterr().out
