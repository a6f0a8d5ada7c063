from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle in pixel space, stored as top-left corner + size.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def x_max(self) -> float:
        return self.x + self.width

    @property
    def y_max(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x_max, self.y_max


@dataclass(frozen=True)
class CandidateBox:
    """
    One decoded detection for a single frame.
    """

    rect: Rect
    score: float
    class_id: int = 0

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.rect.as_xyxy()
