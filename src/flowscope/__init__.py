"""Audio-reactive curl-noise flow-field particle engine."""

from flowscope.core.features import AudioFeatureExtractor, SmoothedFeatures
from flowscope.core.noise import NoiseField
from flowscope.core.simulator import ParticleSimulator, PopulationSnapshot
from flowscope.render.renderer import FlowFieldRenderer, RenderConfig
from flowscope.visualization import FlowFieldVisualization, FrameLoop

__version__ = "0.1.0"
__all__ = [
    "AudioFeatureExtractor",
    "SmoothedFeatures",
    "NoiseField",
    "ParticleSimulator",
    "PopulationSnapshot",
    "FlowFieldRenderer",
    "RenderConfig",
    "FlowFieldVisualization",
    "FrameLoop",
]
