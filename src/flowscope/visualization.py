"""
Host-facing flow-field visualization.

Bundles one feature extractor, one simulator and one renderer behind a
single per-frame entry point. The host owns the clock and the audio; this
module holds no timers of its own.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Iterator, Tuple

import numpy as np

from flowscope.core.features import AudioFeatureExtractor, FeatureParams, SmoothedFeatures
from flowscope.core.simulator import (
    PARAMETER_RANGES,
    ParticleSimulator,
    PopulationSnapshot,
    SimulationParams,
)
from flowscope.render.colorgrade import COLOR_MODES
from flowscope.render.renderer import FlowFieldRenderer, RenderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterSpec:
    """One user-adjustable option as exposed to a settings UI."""

    label: str
    value: Any
    kind: str  # "number", "boolean" or "select"
    min: float | None = None
    max: float | None = None
    step: float | None = None
    options: Tuple[str, ...] = ()


PARAMETERS: Dict[str, ParameterSpec] = {
    "particleCount": ParameterSpec("Particles", 800, "number", *PARAMETER_RANGES["target_count"], 100),
    "fieldStrength": ParameterSpec("Field Strength", 1.0, "number", *PARAMETER_RANGES["field_strength"], 0.1),
    "noiseScale": ParameterSpec("Noise Scale", 0.003, "number", *PARAMETER_RANGES["noise_scale"], 0.0005),
    "timeScale": ParameterSpec("Flow Speed", 0.5, "number", *PARAMETER_RANGES["time_scale"], 0.1),
    "drag": ParameterSpec("Drag", 0.97, "number", *PARAMETER_RANGES["drag"], 0.01),
    "trails": ParameterSpec("Trails", True, "boolean"),
    "colorMode": ParameterSpec("Color", "spectrum", "select", options=COLOR_MODES),
    "colorSensitivity": ParameterSpec("Color Sensitivity", 1.0, "number", 0.2, 3.0, 0.1),
}

# UI key -> SimulationParams field
_SIMULATION_KEYS = {
    "particleCount": "target_count",
    "fieldStrength": "field_strength",
    "noiseScale": "noise_scale",
    "timeScale": "time_scale",
    "drag": "drag",
}

DEFAULT_BIN_COUNT = 128


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off", "")


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        return default
    if isinstance(value, (int, np.integer)):
        return bool(value != 0)
    return default


def coerce_parameter(key: str, value: Any) -> Any:
    """
    Clamp or normalize a raw option value.

    Raises:
        KeyError: ``key`` is not a known parameter.
    """
    spec = PARAMETERS[key]
    if spec.kind == "boolean":
        return _coerce_bool(value, spec.value)
    if spec.kind == "select":
        return value if value in spec.options else spec.value

    try:
        number = float(value)
    except (TypeError, ValueError):
        return spec.value
    if not math.isfinite(number):
        return spec.value
    number = min(max(number, spec.min), spec.max)
    return int(number) if key == "particleCount" else number


class FlowFieldVisualization:
    """
    Audio-reactive curl-noise particle visualization.

    Lifecycle: ``activate`` -> ``on_frame``/``render_frame`` per animation
    frame -> ``deactivate``. ``resize`` is a full reset.
    """

    metadata = {
        "id": "flow-field",
        "name": "Flow Field",
        "description": "Particles flowing through audio-reactive curl noise vector fields",
        "category": "particle",
    }

    def __init__(
        self,
        config: RenderConfig | None = None,
        seed: int | None = None,
        feature_params: FeatureParams | None = None,
        beat_sensitivity: float = 1.0,
    ):
        self.cfg = config or RenderConfig()
        self.seed = seed
        self.feature_params = feature_params or FeatureParams()
        self.beat_sensitivity = beat_sensitivity

        self.values: Dict[str, Any] = {key: spec.value for key, spec in PARAMETERS.items()}
        self.values["trails"] = self.cfg.trails
        self.values["colorMode"] = coerce_parameter("colorMode", self.cfg.color_mode)
        self.values["colorSensitivity"] = coerce_parameter("colorSensitivity", self.cfg.color_sensitivity)

        self.extractor: AudioFeatureExtractor | None = None
        self.simulator: ParticleSimulator | None = None
        self.renderer: FlowFieldRenderer | None = None
        self.features = SmoothedFeatures()
        self._bin_count = DEFAULT_BIN_COUNT

    @property
    def active(self) -> bool:
        return self.simulator is not None

    def _simulation_params(self) -> SimulationParams:
        return SimulationParams(
            **{field: self.values[key] for key, field in _SIMULATION_KEYS.items()}
        )

    def _render_config(self) -> RenderConfig:
        return replace(
            self.cfg,
            trails=self.values["trails"],
            color_mode=self.values["colorMode"],
            color_sensitivity=self.values["colorSensitivity"],
        )

    def activate(self, width: int | None = None, height: int | None = None):
        """Build fresh simulation state for a ``width`` x ``height`` surface."""
        if width is not None or height is not None:
            self.cfg = replace(
                self.cfg,
                width=width if width is not None else self.cfg.width,
                height=height if height is not None else self.cfg.height,
            )
        self.cfg = self._render_config()

        self.extractor = AudioFeatureExtractor(self.feature_params, self.beat_sensitivity)
        self.simulator = ParticleSimulator(
            self.cfg.width, self.cfg.height, seed=self.seed, params=self._simulation_params(),
        )
        self.renderer = FlowFieldRenderer(self.cfg, seed=self.seed)
        self.features = SmoothedFeatures()
        logger.info("Activated %s at %dx%d", self.metadata["id"], self.cfg.width, self.cfg.height)

    def deactivate(self):
        """Release all particle storage and buffers immediately."""
        if self.simulator is not None:
            self.simulator.release()
        self.extractor = None
        self.simulator = None
        self.renderer = None
        self.features = SmoothedFeatures()
        logger.info("Deactivated %s", self.metadata["id"])

    def resize(self, width: int, height: int):
        self.deactivate()
        self.activate(width, height)

    def set_parameter(self, key: str, value: Any) -> Any:
        """
        Apply one option, clamped into range. Takes effect on the next frame.

        Returns:
            The value actually applied.
        """
        value = coerce_parameter(key, value)
        self.values[key] = value

        if key in _SIMULATION_KEYS:
            if self.simulator is not None:
                self.simulator.configure(**{_SIMULATION_KEYS[key]: value})
        else:
            self.cfg = self._render_config()
            if self.renderer is not None:
                self.renderer.cfg = self.cfg
        return value

    def on_frame(self, dt_ms: float, audio_frame=None) -> PopulationSnapshot:
        """
        Advance one animation frame.

        Features are extracted from this frame's spectrum before the
        particles move, so both describe the same frame. A missing frame
        (muted or disconnected input) is treated as silence.
        """
        if self.simulator is None:
            raise RuntimeError("visualization is not active; call activate() first")

        if audio_frame is None:
            audio_frame = np.zeros(self._bin_count, dtype=np.uint8)
        else:
            audio_frame = np.asarray(audio_frame)
            if audio_frame.size:
                self._bin_count = audio_frame.size

        self.features = self.extractor.update(audio_frame)
        return self.simulator.tick(dt_ms, self.features)

    def render_frame(self, dt_ms: float, audio_frame=None) -> np.ndarray:
        """``on_frame`` plus drawing; returns an (H, W, 3) uint8 frame."""
        snapshot = self.on_frame(dt_ms, audio_frame)
        return self.renderer.draw(snapshot, self.features)


class FrameLoop:
    """
    Fixed-rate driver over a sequence of spectrum frames.

    Stands in for an animation-frame scheduler: ``cancel`` revokes it
    synchronously, and no further frame is produced afterwards.
    """

    def __init__(self, visualization: FlowFieldVisualization, spectra: Iterable, fps: int | None = None):
        self.visualization = visualization
        self.spectra = spectra
        self.fps = fps or visualization.cfg.fps
        if self.fps <= 0:
            raise ValueError("fps must be positive")
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True
        self.visualization.deactivate()

    def frames(
        self,
        total: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Iterator[np.ndarray]:
        """Yield rendered frames until the spectra run out or ``cancel``."""
        vis = self.visualization
        if not vis.active:
            vis.activate()
        dt_ms = 1000.0 / self.fps

        for i, spectrum in enumerate(self.spectra):
            if self._cancelled:
                return
            yield vis.render_frame(dt_ms, spectrum)
            if progress_callback:
                progress_callback(i + 1, total or i + 1)
