from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import PipelineConfig
from .decode import BufferLike, decode, flatten_output
from .nms import suppress
from .tracker import Track, Tracker
from .types import CandidateBox

logger = logging.getLogger(__name__)


class DetectionPipeline:
    """
    Per-frame post-processing: decode -> NMS -> tracker.

    The network itself stays outside: pass `infer_fn` (tensor_in -> tensor_out)
    to call the pipeline on model inputs, or feed raw outputs to
    `process_output` / `process` directly.
    """

    def __init__(
        self,
        cfg: Optional[PipelineConfig] = None,
        *,
        infer_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ) -> None:
        self.cfg = cfg or PipelineConfig()
        self.tracker = Tracker(self.cfg.tracker)
        self._infer_fn = infer_fn

    def detect(self, buffer: BufferLike, box_count: int) -> List[CandidateBox]:
        """Stateless half of the pipeline: decoded and de-duplicated boxes."""
        conf = self.tracker.cfg.conf_threshold
        boxes = list(decode(buffer, box_count, conf, self.cfg.decoder))
        if not self.cfg.apply_nms:
            return boxes
        return suppress(boxes, self.cfg.nms.iou_threshold, self.cfg.nms.max_detections)

    def process_tracks(self, buffer: BufferLike, box_count: int) -> List[Track]:
        # Decoding is fully materialized first so a malformed frame never
        # reaches the tracker.
        boxes = self.detect(buffer, box_count)
        out = self.tracker.step_tracks(boxes)
        logger.debug("frame: %d candidates -> %d stable boxes (%d live tracks)", len(boxes), len(out), len(self.tracker))
        return out

    def process(self, buffer: BufferLike, box_count: int) -> List[CandidateBox]:
        return [t.as_candidate() for t in self.process_tracks(buffer, box_count)]

    def process_output(self, preds: np.ndarray) -> List[CandidateBox]:
        buffer, box_count = self.flatten(preds)
        return self.process(buffer, box_count)

    def flatten(self, preds: np.ndarray) -> Tuple[np.ndarray, int]:
        return flatten_output(preds, num_classes=self.cfg.decoder.num_classes)

    def __call__(self, tensor_in: np.ndarray) -> List[CandidateBox]:
        if self._infer_fn is None:
            raise RuntimeError("DetectionPipeline was created without infer_fn; use process_output() instead.")
        return self.process_output(self._infer_fn(tensor_in))

    def reset(self) -> None:
        self.tracker.reset()
