from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from yolo_track import DetectionPipeline, InvalidConfigurationError, ShapeMismatchError, Track
from yolo_track.config import load_pipeline_config, pipeline_config_from_dict

logger = logging.getLogger("replay_tensors")


def _iter_frames(path: Path) -> Iterable[np.ndarray]:
    """
    Yield one raw model output per frame.

    `path` is either a directory of per-frame .npy files (sorted by name) or a
    single .npy file whose first axis is the frame index.
    """

    if path.is_dir():
        files = sorted(path.glob("*.npy"))
        if not files:
            raise FileNotFoundError(f"No .npy files found in: {path}")
        for f in files:
            yield np.load(f)
        return

    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    frames = np.load(path)
    if frames.ndim < 2:
        raise ShapeMismatchError(f"Expected (frames, ...) array, got shape {frames.shape}")
    for frame in frames:
        yield frame


def _overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    tracker: Dict[str, Any] = {}
    for dest, key in (
        ("conf", "conf_threshold"),
        ("match_iou", "match_iou"),
        ("enter_frames", "enter_frames"),
        ("exit_frames", "exit_frames"),
    ):
        value = getattr(args, dest)
        if value is not None:
            tracker[key] = value

    overrides: Dict[str, Any] = {}
    if tracker:
        overrides["tracker"] = tracker
    if args.iou is not None:
        overrides["nms"] = {"iou_threshold": args.iou}
    if args.imgsz is not None:
        overrides["decoder"] = {"input_width": args.imgsz, "input_height": args.imgsz}
    if args.no_nms:
        overrides["apply_nms"] = False
    return overrides


def _track_to_dict(t: Track) -> Dict[str, Any]:
    return {
        "track_id": t.track_id,
        "x": round(t.rect.x, 3),
        "y": round(t.rect.y, 3),
        "width": round(t.rect.width, 3),
        "height": round(t.rect.height, 3),
        "score": round(t.score, 4),
        "class_id": t.class_id,
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Replay saved raw YOLO outputs (.npy) through decode -> NMS -> tracker and dump stable boxes."
    )
    parser.add_argument("--input", required=True, help="A (frames, ...) .npy file or a directory of per-frame .npy files.")
    parser.add_argument("--config", default=None, help="Optional pipeline config JSON.")
    parser.add_argument("--out", default=None, help="Output JSON lines path (default: stdout).")
    parser.add_argument("--imgsz", type=int, default=None, help="Model input canvas size (e.g., 640).")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--no-nms", action="store_true", help="Feed decoded boxes to the tracker without NMS.")
    parser.add_argument("--match-iou", type=float, default=None, help="Minimum IoU for a detection to match a track.")
    parser.add_argument("--enter-frames", type=int, default=None, help="Matched frames before a track is shown.")
    parser.add_argument("--exit-frames", type=int, default=None, help="Missed frames tolerated before eviction.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level,format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides = _overrides_from_args(args)
    try:
        if args.config:
            cfg = load_pipeline_config(Path(args.config), overrides=overrides)
        else:
            cfg = pipeline_config_from_dict(overrides)
    except (FileNotFoundError, InvalidConfigurationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    pipeline = DetectionPipeline(cfg)
    logger.info("config: %s", json.dumps(cfg.to_dict(), sort_keys=True))

    out_f = open(args.out, "w", encoding="utf-8") if args.out else sys.stdout
    frames = 0
    shown = 0
    elapsed: List[float] = []
    try:
        for idx, preds in enumerate(_iter_frames(Path(args.input))):
            t0 = time.perf_counter()
            buffer, box_count = pipeline.flatten(preds)
            tracks = pipeline.process_tracks(buffer, box_count)
            elapsed.append(time.perf_counter() - t0)

            frames += 1
            shown += len(tracks)
            out_f.write(json.dumps({"frame": idx, "boxes": [_track_to_dict(t) for t in tracks]}) + "\n")
    except (FileNotFoundError, ShapeMismatchError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if out_f is not sys.stdout:
            out_f.close()

    mean_ms = (sum(elapsed) / len(elapsed) * 1000.0) if elapsed else 0.0
    print(f"Frames: {frames}  boxes shown: {shown}  mean post-process: {mean_ms:.3f}ms", file=sys.stderr)
    if args.out:
        print(f"Wrote stable boxes: {args.out}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
