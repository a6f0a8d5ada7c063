"""
Greedy IoU tracker that turns per-frame detections into stable overlay boxes.

Each frame, tracks are aged, matched greedily against the new detections,
smoothed with an exponential moving average, faded while unmatched and
evicted after too many misses. A track is only reported once it has been
matched `enter_frames` times, which suppresses single-frame flicker.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import InvalidConfigurationError
from .geometry import iou, lerp, lerp_rect
from .types import CandidateBox, Rect

logger = logging.getLogger(__name__)


class TrackState(str, Enum):
    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    LOST = "LOST"
    REMOVED = "REMOVED"


def _check_unit(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{name} must be a number")
    if not (0.0 <= value <= 1.0):
        raise InvalidConfigurationError(f"{name} must be within [0, 1], got {value}")


def _check_int(name: str, value: int, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer")
    if value < minimum:
        raise InvalidConfigurationError(f"{name} must be >= {minimum}, got {value}")


@dataclass(frozen=True)
class TrackerConfig:
    conf_threshold: float = 0.3
    position_ema: float = 0.5
    score_ema: float = 0.5
    # A detection must overlap a track by strictly more than this to match it.
    match_iou: float = 0.5
    enter_frames: int = 2
    exit_frames: int = 3
    unmatched_decay: float = 0.85
    min_score_floor_ratio: float = 0.3

    def __post_init__(self) -> None:
        for name in (
            "conf_threshold",
            "position_ema",
            "score_ema",
            "match_iou",
            "unmatched_decay",
            "min_score_floor_ratio",
        ):
            _check_unit(name, getattr(self, name))
        _check_int("enter_frames", self.enter_frames, 1)
        _check_int("exit_frames", self.exit_frames, 0)

    @property
    def min_score_floor(self) -> float:
        return self.conf_threshold * self.min_score_floor_ratio


@dataclass
class Track:
    track_id: int
    rect: Rect
    score: float
    class_id: int = 0
    seen_count: int = 1
    missed_count: int = 0
    removed: bool = False

    def absorb(self, det: CandidateBox, position_ema: float, score_ema: float) -> None:
        """Blend a matched detection into this track."""
        self.rect = lerp_rect(self.rect, det.rect, position_ema)
        self.score = min(1.0, max(0.0, lerp(self.score, det.score, score_ema)))
        self.class_id = det.class_id
        self.seen_count += 1
        self.missed_count = 0

    def state(self, enter_frames: int) -> TrackState:
        if self.removed:
            return TrackState.REMOVED
        if self.missed_count > 0:
            return TrackState.LOST
        if self.seen_count >= enter_frames:
            return TrackState.CONFIRMED
        return TrackState.TENTATIVE

    def as_candidate(self) -> CandidateBox:
        return CandidateBox(rect=self.rect, score=self.score, class_id=self.class_id)


def _validate_detections(detections: Sequence[CandidateBox]) -> None:
    for i, det in enumerate(detections):
        if not isinstance(det, CandidateBox):
            raise TypeError(f"detection {i} must be a CandidateBox, got {type(det).__name__}")
        if not (0.0 <= det.score <= 1.0):
            raise ValueError(f"detection {i} score must be within [0, 1], got {det.score}")
        if det.rect.width < 0 or det.rect.height < 0:
            raise ValueError(f"detection {i} has negative size {det.rect}")


class Tracker:
    """
    Frame-stepped multi-object tracker.

    Not thread-safe: `step` mutates the track list in place and must be called
    once per frame from a single thread.
    """

    def __init__(self, cfg: Optional[TrackerConfig] = None) -> None:
        self.cfg = cfg or TrackerConfig()
        self._tracks: List[Track] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks)

    @property
    def tracks(self) -> Tuple[Track, ...]:
        return tuple(self._tracks)

    def configure(self, **changes: object) -> TrackerConfig:
        """
        Replace configuration fields. The new values are validated before
        they take effect; on error the current configuration is kept.
        """
        self.cfg = replace(self.cfg, **changes)
        return self.cfg

    def reset(self) -> None:
        for track in self._tracks:
            track.removed = True
        self._tracks = []

    def step(self, detections: Sequence[CandidateBox]) -> List[CandidateBox]:
        return [t.as_candidate() for t in self.step_tracks(detections)]

    def step_tracks(self, detections: Sequence[CandidateBox]) -> List[Track]:
        """
        Advance one frame and return copies of the tracks that should be shown.
        """

        detections = list(detections)
        _validate_detections(detections)
        cfg = self.cfg

        for track in self._tracks:
            track.missed_count += 1

        for det in detections:
            best = self._best_match(det)
            if best is not None:
                # Tracks stay matchable after a hit, so a later detection in
                # the same frame can overwrite this update.
                best.absorb(det, cfg.position_ema, cfg.score_ema)
            else:
                self._spawn(det)

        survivors: List[Track] = []
        floor = cfg.min_score_floor
        for track in self._tracks:
            if track.missed_count > cfg.exit_frames or track.score < floor:
                track.removed = True
                logger.debug(
                    "track %d removed (missed=%d, score=%.3f)", track.track_id, track.missed_count, track.score
                )
                continue
            if track.missed_count > 0:
                track.score *= cfg.unmatched_decay
            survivors.append(track)
        self._tracks = survivors

        return [replace(t) for t in self._tracks if self._is_visible(t)]

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _best_match(self, det: CandidateBox) -> Optional[Track]:
        best: Optional[Track] = None
        best_iou = self.cfg.match_iou
        for track in self._tracks:
            overlap = iou(track.rect, det.rect)
            if overlap > best_iou:
                best, best_iou = track, overlap
        return best

    def _spawn(self, det: CandidateBox) -> Track:
        track = Track(
            track_id=next(self._ids),
            rect=det.rect,
            score=det.score,
            class_id=det.class_id,
        )
        self._tracks.append(track)
        logger.debug("track %d started at %s (score=%.3f)", track.track_id, det.rect, det.score)
        return track

    def _is_visible(self, track: Track) -> bool:
        return (
            track.seen_count >= self.cfg.enter_frames
            and track.missed_count <= self.cfg.exit_frames
            and track.score >= self.cfg.conf_threshold
        )
