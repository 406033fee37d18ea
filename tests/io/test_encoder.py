"""Tests for the FFmpeg video encoder."""

import numpy as np
import pytest

from flowscope.io.encoder import QUALITY_PRESETS, build_command, encode_video, ffmpeg_available


def _solid_frames(n: int, width: int, height: int, color=(128, 64, 200)):
    """Generate N solid-color frames."""
    frame = np.full((height, width, 3), color, dtype=np.uint8)
    for _ in range(n):
        yield frame.copy()


class TestBuildCommand:
    def test_raw_pipe_input(self, tmp_path):
        cmd = build_command(tmp_path / "a.wav", tmp_path / "o.mp4", 320, 240, 30)
        assert cmd[0] == "ffmpeg"
        assert "rawvideo" in cmd
        assert cmd[cmd.index("-s") + 1] == "320x240"
        assert cmd[cmd.index("-r") + 1] == "30"
        assert cmd[-1] == str(tmp_path / "o.mp4")
        assert "-t" not in cmd

    @pytest.mark.parametrize("quality", sorted(QUALITY_PRESETS))
    def test_quality_presets(self, tmp_path, quality):
        preset, crf, pix_fmt = QUALITY_PRESETS[quality]
        cmd = build_command(tmp_path / "a.wav", tmp_path / "o.mp4", 64, 64, 30, quality)
        assert cmd[cmd.index("-preset") + 1] == preset
        assert cmd[cmd.index("-crf") + 1] == crf

    def test_unknown_quality_uses_medium(self, tmp_path):
        cmd = build_command(tmp_path / "a.wav", tmp_path / "o.mp4", 64, 64, 30, "ultra")
        assert cmd[cmd.index("-preset") + 1] == QUALITY_PRESETS["medium"][0]

    def test_duration(self, tmp_path):
        cmd = build_command(tmp_path / "a.wav", tmp_path / "o.mp4", 64, 64, 30, duration=2.5)
        assert cmd[cmd.index("-t") + 1] == "2.500"


@pytest.mark.skipif(not ffmpeg_available(), reason="ffmpeg not installed")
class TestEncoder:
    def test_produces_mp4(self, tmp_path, temp_audio_file):
        output = tmp_path / "out" / "test_output.mp4"
        calls = []
        result = encode_video(
            frames=_solid_frames(15, 64, 48),
            audio_path=temp_audio_file,
            output_path=output,
            width=64,
            height=48,
            fps=15,
            quality="fast",
            duration=1.0,
            total_frames=15,
            progress_callback=lambda cur, tot: calls.append((cur, tot)),
        )
        assert result == output
        assert output.exists()
        assert output.stat().st_size > 0
        assert calls[-1] == (15, 15)

    def test_missing_audio_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            encode_video(
                frames=_solid_frames(5, 64, 48),
                audio_path=tmp_path / "missing.wav",
                output_path=tmp_path / "o.mp4",
                width=64,
                height=48,
                fps=15,
            )
