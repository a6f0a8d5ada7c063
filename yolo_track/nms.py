import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .errors import InvalidConfigurationError
from .types import CandidateBox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    # None keeps every surviving box.
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise InvalidConfigurationError("iou_threshold must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise InvalidConfigurationError("max_detections must be >= 1 or None")


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Simple NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first; equal scores keep
    their input order.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0 and (cfg.max_detections is None or len(keep) < cfg.max_detections):
        i = order[0]
        keep.append(i)

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = np.where(inter > 0.0, inter / np.maximum(union, 1e-6), 0.0)

        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int32)


def suppress(
    boxes: Sequence[CandidateBox],
    iou_threshold: float = 0.45,
    max_detections: Optional[int] = None,
) -> List[CandidateBox]:
    """
    Greedy non-maximum suppression over candidate boxes.

    A box is dropped when its IoU with an already kept box exceeds
    `iou_threshold`. The result is ordered by score, highest first.
    """

    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections)
    boxes = list(boxes)
    if not boxes:
        return []

    xyxy = np.array([b.as_xyxy() for b in boxes], dtype=np.float64)
    scores = np.array([b.score for b in boxes], dtype=np.float64)
    keep_idx = nms(xyxy, scores, cfg)

    logger.debug("NMS kept %d of %d boxes (iou > %.2f suppressed)", len(keep_idx), len(boxes), iou_threshold)
    return [boxes[i] for i in keep_idx]
