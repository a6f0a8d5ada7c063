from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .decode import DecoderConfig
from .errors import InvalidConfigurationError
from .nms import NMSConfig
from .tracker import TrackerConfig


@dataclass(frozen=True)
class PipelineConfig:
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    nms: NMSConfig = field(default_factory=NMSConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    # If False, decoded boxes go straight to the tracker.
    apply_nms: bool = True

    @property
    def conf_threshold(self) -> float:
        return self.tracker.conf_threshold

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["schema_version"] = 1
        return payload


_DECODER_INT_KEYS = {"input_width", "input_height", "num_classes"}
_NMS_KEYS = {"iou_threshold", "max_detections"}
_TRACKER_FLOAT_KEYS = {
    "conf_threshold",
    "position_ema",
    "score_ema",
    "match_iou",
    "unmatched_decay",
    "min_score_floor_ratio",
}
_TRACKER_INT_KEYS = {"enter_frames", "exit_frames"}


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{key} must be an integer")
    return int(value)


def _section(payload: Dict[str, Any], name: str, allowed: set) -> Dict[str, Any]:
    section = payload.get(name, {})
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'{name}' must be a JSON object")
    unknown = sorted(set(section.keys()) - allowed)
    if unknown:
        raise InvalidConfigurationError(f"Unknown {name} keys: {unknown}")
    return section


def pipeline_config_from_dict(payload: Dict[str, Any]) -> PipelineConfig:
    allowed = {"schema_version", "apply_nms", "decoder", "nms", "tracker", "notes"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise InvalidConfigurationError(f"Unknown pipeline config keys: {unknown}")

    if "schema_version" in payload and _require_int(payload, "schema_version") != 1:
        raise InvalidConfigurationError("pipeline config schema_version must be 1")

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise InvalidConfigurationError("notes must be a string if provided")

    apply_nms = payload.get("apply_nms", True)
    if not isinstance(apply_nms, bool):
        raise InvalidConfigurationError("apply_nms must be a boolean")

    decoder_raw = _section(payload, "decoder", _DECODER_INT_KEYS)
    decoder = DecoderConfig(**{k: _require_int(decoder_raw, k) for k in decoder_raw})

    nms_raw = _section(payload, "nms", _NMS_KEYS)
    nms_kwargs: Dict[str, Any] = {}
    if "iou_threshold" in nms_raw:
        nms_kwargs["iou_threshold"] = _require_number(nms_raw, "iou_threshold")
    if nms_raw.get("max_detections") is not None:
        nms_kwargs["max_detections"] = _require_int(nms_raw, "max_detections")
    nms_cfg = NMSConfig(**nms_kwargs)

    tracker_raw = _section(payload, "tracker", _TRACKER_FLOAT_KEYS | _TRACKER_INT_KEYS)
    tracker_kwargs: Dict[str, Any] = {}
    for key in tracker_raw:
        if key in _TRACKER_INT_KEYS:
            tracker_kwargs[key] = _require_int(tracker_raw, key)
        else:
            tracker_kwargs[key] = _require_number(tracker_raw, key)
    tracker = TrackerConfig(**tracker_kwargs)

    return PipelineConfig(decoder=decoder, nms=nms_cfg, tracker=tracker, apply_nms=apply_nms)


def load_pipeline_config(path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None) -> PipelineConfig:
    """
    Load a pipeline config from JSON, e.g.

        {
          "schema_version": 1,
          "nms": {"iou_threshold": 0.45},
          "tracker": {"conf_threshold": 0.3, "enter_frames": 2}
        }

    Every section is optional. `overrides` is merged section by section on
    top of the file contents before validation.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidConfigurationError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise InvalidConfigurationError("Pipeline config must be a JSON object")

    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(payload.get(key), dict):
            payload[key] = {**payload[key], **value}
        else:
            payload[key] = value

    return pipeline_config_from_dict(payload)
