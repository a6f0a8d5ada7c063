from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import InvalidConfigurationError, ShapeMismatchError
from .types import CandidateBox, Rect


BufferLike = Union[Sequence[float], np.ndarray]

# cx, cy, w, h precede the confidence channels in every row.
BOX_FIELDS = 4


@dataclass(frozen=True)
class DecoderConfig:
    """
    Reference canvas and row layout of the raw model output.
    """

    input_width: int = 640
    input_height: int = 640
    num_classes: int = 1

    def __post_init__(self) -> None:
        if self.input_width <= 0 or self.input_height <= 0:
            raise InvalidConfigurationError("input_width and input_height must be > 0")
        if self.num_classes < 1:
            raise InvalidConfigurationError("num_classes must be >= 1")

    @property
    def stride(self) -> int:
        return BOX_FIELDS + self.num_classes


def decode(
    buffer: BufferLike,
    box_count: int,
    score_threshold: float,
    cfg: Optional[DecoderConfig] = None,
) -> Iterator[CandidateBox]:
    """
    Decode a flat row-major buffer of `box_count` rows into candidate boxes.

    Each row is [cx, cy, w, h, score_0, ..., score_{C-1}] in pixels of the
    reference canvas. The buffer length is validated here, before anything is
    yielded; the returned iterator is single-pass and keeps input order.

    Arg:
        buffer: flat floats, length box_count * (4 + num_classes)
        box_count: number of rows in the buffer
        score_threshold: boxes scoring below this are dropped
        cfg: canvas size and class-channel count
    """

    cfg = cfg or DecoderConfig()
    if not (0.0 <= score_threshold <= 1.0):
        raise InvalidConfigurationError(f"score_threshold must be within [0, 1], got {score_threshold}")

    flat = np.asarray(buffer, dtype=np.float64)
    if flat.ndim != 1:
        raise ShapeMismatchError(f"Expected a flat buffer, got shape {flat.shape}")
    if box_count < 0:
        raise ShapeMismatchError(f"box_count must be >= 0, got {box_count}")
    expected = box_count * cfg.stride
    if flat.size != expected:
        raise ShapeMismatchError(
            f"Buffer holds {flat.size} floats, expected {expected} ({box_count} boxes x {cfg.stride})"
        )

    rows = flat.reshape(box_count, cfg.stride)
    return _iter_boxes(rows, float(score_threshold), cfg)


def _iter_boxes(rows: np.ndarray, score_threshold: float, cfg: DecoderConfig) -> Iterator[CandidateBox]:
    if rows.shape[0] == 0:
        return

    # Non-finite confidences count as 0 so they can never win a channel or pass
    # the threshold. argmax returns the first maximum, so ties go to the lowest
    # class index.
    class_scores = np.nan_to_num(rows[:, BOX_FIELDS:], nan=0.0, posinf=1.0, neginf=0.0)
    class_ids = np.argmax(class_scores, axis=1)
    scores = np.clip(class_scores[np.arange(rows.shape[0]), class_ids], 0.0, 1.0)
    finite_boxes = np.isfinite(rows[:, :BOX_FIELDS]).all(axis=1)

    for row, score, cls_id, finite in zip(rows, scores, class_ids, finite_boxes):
        if not finite or score < score_threshold:
            continue
        yield CandidateBox(rect=_decode_rect(row, cfg), score=float(score), class_id=int(cls_id))


def _decode_rect(row: np.ndarray, cfg: DecoderConfig) -> Rect:
    cx, cy, w, h = (float(v) for v in row[:BOX_FIELDS])

    # Convert cxcywh -> xyxy, clipped to the model canvas
    x1 = max(0.0, cx - w / 2)
    y1 = max(0.0, cy - h / 2)
    x2 = min(float(cfg.input_width), cx + w / 2)
    y2 = min(float(cfg.input_height), cy + h / 2)

    return Rect(x=x1, y=y1, width=max(0.0, x2 - x1), height=max(0.0, y2 - y1))


def flatten_output(preds: np.ndarray, num_classes: int = 1) -> Tuple[np.ndarray, int]:
    """
    Normalize a single-image model output into (flat_buffer, box_count).

    Layouts handled:
    - (A, 4 + C): one row per box, e.g. 8400 x 5
    - (4 + C, A): channels first, as exported by YOLOv8 (5 x 8400)
    - either of the above with leading batch/singleton axes, e.g. (1, 5, 8400)
      or (1, 1, 8400, 5)
    - an already flat buffer
    """

    stride = BOX_FIELDS + num_classes
    p = np.asarray(preds)

    while p.ndim > 2:
        if p.shape[0] != 1:
            raise ShapeMismatchError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]

    if p.ndim == 1:
        if p.size % stride != 0:
            raise ShapeMismatchError(f"Flat buffer of {p.size} floats is not a multiple of {stride}")
        return p, p.size // stride

    if p.ndim == 2:
        if p.shape[1] == stride:
            return p.reshape(-1), p.shape[0]
        if p.shape[0] == stride:
            return np.ascontiguousarray(p.T).reshape(-1), p.shape[1]

    raise ShapeMismatchError(f"Unsupported YOLO output shape {p.shape} for {num_classes} class(es)")
