"""
YOLO post-processing and tracking helpers.

Turns raw per-frame model output into a temporally stable set of boxes:
decode -> non-maximum suppression -> greedy IoU tracker with hysteresis.
The network itself is not part of this package; anything that produces a
NumPy output tensor can feed it.
"""

from .types import CandidateBox, Rect
from .errors import InvalidConfigurationError, ShapeMismatchError
from .geometry import iou, lerp, lerp_rect
from .decode import DecoderConfig, decode, flatten_output
from .nms import NMSConfig, nms, suppress
from .tracker import Track, Tracker, TrackerConfig, TrackState
from .config import PipelineConfig, load_pipeline_config, pipeline_config_from_dict
from .pipeline import DetectionPipeline

__all__ = [
    "CandidateBox",
    "Rect",
    "InvalidConfigurationError",
    "ShapeMismatchError",
    "iou",
    "lerp",
    "lerp_rect",
    "DecoderConfig",
    "decode",
    "flatten_output",
    "NMSConfig",
    "nms",
    "suppress",
    "Track",
    "Tracker",
    "TrackerConfig",
    "TrackState",
    "PipelineConfig",
    "load_pipeline_config",
    "pipeline_config_from_dict",
    "DetectionPipeline",
]
