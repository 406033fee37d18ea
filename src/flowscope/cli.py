"""
CLI entry point for the flow-field renderer.

Usage:
    flowscope <audio_file> [options]
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from flowscope.io.encoder import encode_video, ffmpeg_available
from flowscope.io.spectrum import SpectrumAnalyzer, frame_count, load_audio
from flowscope.render.colorgrade import COLOR_MODES
from flowscope.render.renderer import RenderConfig
from flowscope.visualization import PARAMETERS, FlowFieldVisualization, FrameLoop

PROFILES = {
    "low": {"width": 1280, "height": 720, "fps": 30, "quality": "fast"},
    "medium": {"width": 1920, "height": 1080, "fps": 60, "quality": "medium"},
    "high": {"width": 3840, "height": 2160, "fps": 60, "quality": "high"},
}


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    elif current % max(1, total // 20) == 0 or current >= total:
        print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowscope",
        description="Audio-reactive curl-noise flow-field video renderer",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, flac)")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output MP4 path (default: <audio>_flow.mp4)",
    )

    # Resolution & Profile
    parser.add_argument(
        "-p", "--profile", type=str, default="medium", choices=sorted(PROFILES),
        help="Target profile (low: 720p 30fps, medium: 1080p 60fps, high: 4k 60fps)",
    )
    parser.add_argument("--width", type=int, default=None, help="Video width (overrides profile)")
    parser.add_argument("--height", type=int, default=None, help="Video height (overrides profile)")
    parser.add_argument("-f", "--fps", type=int, default=None, help="Frames per second (overrides profile)")

    # Simulation
    parser.add_argument(
        "--particles", type=int, default=PARAMETERS["particleCount"].value,
        help="Particle count [0-2000] (default: %(default)s)",
    )
    parser.add_argument(
        "--field-strength", type=float, default=PARAMETERS["fieldStrength"].value,
        help="Flow field strength [0.2-5.0] (default: %(default)s)",
    )
    parser.add_argument(
        "--noise-scale", type=float, default=PARAMETERS["noiseScale"].value,
        help="Spatial frequency of the field [0.0005-0.01] (default: %(default)s)",
    )
    parser.add_argument(
        "--time-scale", type=float, default=PARAMETERS["timeScale"].value,
        help="Flow evolution speed [0.1-2.0] (default: %(default)s)",
    )
    parser.add_argument(
        "--drag", type=float, default=PARAMETERS["drag"].value,
        help="Velocity retention per frame [0.9-0.99] (default: %(default)s)",
    )
    parser.add_argument(
        "--beat-sensitivity", type=float, default=1.0,
        help="Beat detector sensitivity; higher fires on smaller hits (default: 1.0)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible field")

    # Visual
    parser.add_argument(
        "--color-mode", type=str, default="spectrum", choices=COLOR_MODES,
        help="Particle palette (default: spectrum)",
    )
    parser.add_argument(
        "--color-sensitivity", type=float, default=1.0,
        help="How strongly audio shifts colors [0.2-3.0] (default: 1.0)",
    )
    parser.add_argument("--no-trails", action="store_true", help="Clear every frame instead of fading")
    parser.add_argument("--no-glow", action="store_true", help="Disable glow")

    # Analysis
    parser.add_argument(
        "--fft-size", type=int, default=256,
        help="Analyser FFT size; bins = fft_size / 2 (default: 256)",
    )

    # Limits
    parser.add_argument("--max-duration", type=float, default=None, help="Limit output to N seconds")

    # Quality
    parser.add_argument(
        "-q", "--quality", type=str, default=None, choices=["high", "medium", "fast"],
        help="Encoding quality (defaults to profile quality)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log simulator events")
    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)
    if not ffmpeg_available():
        print("Error: ffmpeg not found on PATH", file=sys.stderr)
        sys.exit(1)

    p_cfg = PROFILES[args.profile]
    width = args.width or p_cfg["width"]
    height = args.height or p_cfg["height"]
    fps = args.fps or p_cfg["fps"]
    quality = args.quality or p_cfg["quality"]

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_flow.mp4")

    # Step 1: Audio
    print(f"Loading audio: {args.audio}")
    t0 = time.time()
    y, sr = load_audio(args.audio)
    if args.max_duration is not None:
        y = y[: int(args.max_duration * sr)]
    duration = len(y) / sr
    total_frames = frame_count(len(y), sr, fps)
    print(f"  Duration: {duration:.1f}s")
    print(f"  Frames: {total_frames}")
    print(f"  Loading took {time.time() - t0:.1f}s")

    # Step 2: Render
    print(f"\nRendering {total_frames} frames at {width}x{height} @ {fps}fps")
    config = RenderConfig(
        width=width,
        height=height,
        fps=fps,
        trails=not args.no_trails,
        color_mode=args.color_mode,
        color_sensitivity=args.color_sensitivity,
        glow_enabled=not args.no_glow,
    )
    vis = FlowFieldVisualization(config, seed=args.seed, beat_sensitivity=args.beat_sensitivity)
    vis.activate()
    vis.set_parameter("particleCount", args.particles)
    vis.set_parameter("fieldStrength", args.field_strength)
    vis.set_parameter("noiseScale", args.noise_scale)
    vis.set_parameter("timeScale", args.time_scale)
    vis.set_parameter("drag", args.drag)

    analyzer = SpectrumAnalyzer(fft_size=args.fft_size)
    loop = FrameLoop(vis, analyzer.frames_from_signal(y, sr, fps), fps=fps)

    # Step 3: Encode
    t1 = time.time()
    try:
        encode_video(
            frames=loop.frames(total_frames, progress_callback=_progress_bar),
            audio_path=args.audio,
            output_path=output,
            width=width,
            height=height,
            fps=fps,
            quality=quality,
            duration=duration,
        )
    finally:
        loop.cancel()

    elapsed = time.time() - t1
    file_size_mb = output.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  Render+encode took {elapsed:.1f}s ({total_frames / max(elapsed, 0.01):.1f} fps)")
    print(f"  Output: {output}")


if __name__ == "__main__":
    main()
