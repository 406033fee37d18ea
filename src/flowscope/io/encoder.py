"""
FFmpeg video encoder.

Rendered RGB frames are piped to ffmpeg's stdin and muxed with the source
audio; nothing touches disk except the final MP4.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable, List

# quality -> (x264 preset, crf, pixel format)
QUALITY_PRESETS = {
    "high": ("slow", "18", "yuv444p"),
    "medium": ("medium", "23", "yuv420p"),
    "fast": ("ultrafast", "28", "yuv420p"),
}


def ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


def build_command(
    audio_path: Path,
    output_path: Path,
    width: int,
    height: int,
    fps: int,
    quality: str = "medium",
    duration: float | None = None,
) -> List[str]:
    """ffmpeg argument list for a raw rgb24 pipe plus an audio file."""
    preset, crf, pix_fmt = QUALITY_PRESETS.get(quality, QUALITY_PRESETS["medium"])
    cmd = [
        "ffmpeg", "-y", "-loglevel", "error",
        "-f", "rawvideo", "-pix_fmt", "rgb24",
        "-s", f"{width}x{height}", "-r", str(fps),
        "-i", "pipe:0",
        "-i", str(audio_path),
        "-c:v", "libx264", "-preset", preset, "-crf", crf, "-pix_fmt", pix_fmt,
        "-c:a", "aac", "-b:a", "192k",
        "-shortest",
    ]
    if duration is not None:
        cmd += ["-t", f"{duration:.3f}"]
    cmd.append(str(output_path))
    return cmd


def encode_video(
    frames: Iterable,
    audio_path: Path,
    output_path: Path,
    width: int,
    height: int,
    fps: int = 60,
    quality: str = "medium",
    duration: float | None = None,
    total_frames: int | None = None,
    progress_callback: Callable[[int, int], None] | None = None,
) -> Path:
    """
    Encode (H, W, 3) uint8 frames to an MP4 with audio.

    Raises:
        RuntimeError: ffmpeg exited with a non-zero status.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = build_command(audio_path, output_path, width, height, fps, quality, duration)

    proc = subprocess.Popen(
        cmd,
        stdin=subprocess.PIPE,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
    )

    written = 0
    try:
        for frame in frames:
            proc.stdin.write(frame.tobytes())
            written += 1
            if progress_callback and total_frames:
                progress_callback(written, total_frames)
    except BrokenPipeError:
        # ffmpeg quit early; its exit status below carries the reason
        pass
    finally:
        proc.stdin.close()

    stderr = proc.stderr.read().decode("utf-8", errors="replace")
    proc.wait()

    if proc.returncode != 0:
        errors = [
            line for line in stderr.splitlines()
            if "error" in line.lower() or "invalid" in line.lower()
        ]
        detail = "\n".join(errors[-5:]) if errors else stderr[-500:]
        raise RuntimeError(f"ffmpeg exited with code {proc.returncode}: {detail}")

    return output_path
