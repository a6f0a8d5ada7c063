import unittest

import numpy as np

from yolo_track.decode import decode
from yolo_track.errors import InvalidConfigurationError
from yolo_track.nms import NMSConfig, nms, suppress
from yolo_track.types import CandidateBox, Rect


def _box(x: float, y: float, w: float, h: float, score: float) -> CandidateBox:
    return CandidateBox(rect=Rect(x, y, w, h), score=score)


class TestSuppress(unittest.TestCase):
    def test_overlapping_pair_keeps_higher_score(self) -> None:
        buf = [100, 100, 20, 20, 0.9, 102, 101, 20, 20, 0.8]
        kept = suppress(decode(buf, 2, 0.5), iou_threshold=0.45)
        self.assertEqual(len(kept), 1)
        self.assertAlmostEqual(kept[0].score, 0.9)
        self.assertEqual(kept[0].rect, Rect(90, 90, 20, 20))

    def test_disjoint_boxes_sorted_by_score(self) -> None:
        boxes = [_box(0, 0, 10, 10, 0.4), _box(100, 100, 10, 10, 0.8), _box(200, 0, 10, 10, 0.6)]
        kept = suppress(boxes)
        self.assertEqual([b.score for b in kept], [0.8, 0.6, 0.4])

    def test_equal_scores_keep_input_order(self) -> None:
        boxes = [_box(0, 0, 10, 10, 0.7), _box(100, 0, 10, 10, 0.7), _box(200, 0, 10, 10, 0.7)]
        self.assertEqual(suppress(boxes), boxes)

    def test_threshold_is_strict(self) -> None:
        # IoU of these two is exactly 0.5.
        boxes = [_box(0, 0, 10, 10, 0.9), _box(0, 0, 10, 5, 0.8)]
        self.assertEqual(len(suppress(boxes, iou_threshold=0.5)), 2)
        self.assertEqual(len(suppress(boxes, iou_threshold=0.49)), 1)

    def test_idempotent(self) -> None:
        rng = np.random.default_rng(7)
        boxes = [
            _box(float(x), float(y), float(w), float(h), float(s))
            for x, y, w, h, s in zip(
                rng.uniform(0, 200, 60),
                rng.uniform(0, 200, 60),
                rng.uniform(10, 60, 60),
                rng.uniform(10, 60, 60),
                rng.uniform(0, 1, 60),
            )
        ]
        for t in (0.0, 0.3, 0.45, 0.7, 1.0):
            once = suppress(boxes, t)
            self.assertEqual(suppress(once, t), once)

    def test_empty(self) -> None:
        self.assertEqual(suppress([]), [])

    def test_invalid_threshold(self) -> None:
        with self.assertRaises(InvalidConfigurationError):
            suppress([_box(0, 0, 1, 1, 0.5)], iou_threshold=1.2)


class TestNmsArray(unittest.TestCase):
    def test_max_detections(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [20, 0, 30, 10], [40, 0, 50, 10]], dtype=np.float32)
        scores = np.array([0.5, 0.9, 0.7], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5, max_detections=2))
        self.assertTrue(np.array_equal(keep, np.array([1, 2], dtype=np.int32)))

    def test_empty(self) -> None:
        keep = nms(np.zeros((0, 4), dtype=np.float32), np.zeros((0,), dtype=np.float32), NMSConfig())
        self.assertEqual(keep.shape, (0,))


if __name__ == "__main__":
    unittest.main()
