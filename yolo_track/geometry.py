from __future__ import annotations

from .types import Rect


def iou(a: Rect, b: Rect) -> float:
    """
    Intersection-over-union of two axis-aligned rectangles.

    Returns 0.0 for disjoint rectangles or when the union has no area.
    """

    ix1 = max(a.x, b.x)
    iy1 = max(a.y, b.y)
    ix2 = min(a.x_max, b.x_max)
    iy2 = min(a.y_max, b.y_max)

    inter = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
    if inter <= 0.0:
        return 0.0
    union = a.area + b.area - inter
    if union <= 0.0:
        return 0.0
    return min(1.0, inter / union)


def _check_alpha(alpha: float) -> None:
    if not (0.0 <= alpha <= 1.0):
        raise ValueError(f"alpha must be within [0, 1], got {alpha}")


def lerp(a: float, b: float, alpha: float) -> float:
    _check_alpha(alpha)
    if alpha == 1.0:
        return float(b)
    return float(a + (b - a) * alpha)


def lerp_rect(a: Rect, b: Rect, alpha: float) -> Rect:
    """Per-field linear interpolation from `a` (alpha=0) to `b` (alpha=1)."""
    return Rect(
        x=lerp(a.x, b.x, alpha),
        y=lerp(a.y, b.y, alpha),
        width=lerp(a.width, b.width, alpha),
        height=lerp(a.height, b.height, alpha),
    )
