from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

import numpy as np


POSE_LANDMARK_COUNT = 33
HAND_LANDMARK_COUNT = 21


def _point_xy(point: Any) -> tuple[float, float]:
    if isinstance(point, dict):
        return float(point["x"]), float(point["y"])
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    return float(point[0]), float(point[1])


def _points_to_array(points: Iterable[Any]) -> np.ndarray:
    rows = [_point_xy(p) for p in points]
    if not rows:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array(rows, dtype=np.float64)


@dataclass
class LandmarkSet:
    landmarks: np.ndarray  # shape: (N, >=2) -> normalized x, y (extra columns ignored)

    @classmethod
    def from_points(cls, points: Iterable[Any]):
        """Build from (x, y) pairs, {"x", "y"} dicts or objects exposing .x/.y."""
        return cls(landmarks=_points_to_array(points))

    def __len__(self) -> int:
        return int(self.landmarks.shape[0])

    def get_landmark(self, idx: int) -> Optional[np.ndarray]:
        if 0 <= idx < self.landmarks.shape[0]:
            return self.landmarks[idx]
        return None


@dataclass
class PoseResult(LandmarkSet):
    """Body landmarks, MediaPipe pose topology (33 points)."""


@dataclass
class HandResult(LandmarkSet):
    """Hand landmarks, MediaPipe hand topology (21 points)."""


class _Phase(str, Enum):
    @classmethod
    def coerce(cls, value: Any):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls("idle")

    def __str__(self) -> str:
        return self.value


class HeadPhase(_Phase):
    IDLE = "idle"
    RIGHT = "right"
    LEFT = "left"


class PinchPhase(_Phase):
    IDLE = "idle"
    PINCHED = "pinched"
    RELEASED = "released"


class HandPhase(_Phase):
    IDLE = "idle"
    OPEN = "open"
    FIST = "fist"


class KneePhase(_Phase):
    IDLE = "idle"
    UP = "up"
    DOWN = "down"


_SHOULDER_PATTERN = re.compile(r"L([01])R([01])")


@dataclass(frozen=True)
class ShoulderPhase:
    left_hold: bool = False
    right_hold: bool = False

    @classmethod
    def coerce(cls, value: Any) -> "ShoulderPhase":
        # Anything not shaped like "L{0|1}R{0|1}" means no side is held.
        if isinstance(value, ShoulderPhase):
            return value
        match = _SHOULDER_PATTERN.fullmatch(str(value))
        if match is None:
            return cls()
        return cls(left_hold=match.group(1) == "1", right_hold=match.group(2) == "1")

    def encode(self) -> str:
        return f"L{int(self.left_hold)}R{int(self.right_hold)}"

    def __str__(self) -> str:
        return self.encode()


Phase = Union[HeadPhase, PinchPhase, HandPhase, KneePhase, ShoulderPhase]


def phase_label(phase: Union[Phase, str, None]) -> Optional[str]:
    if phase is None:
        return None
    return str(phase)


@dataclass
class RepState:
    rep_count: int = 0
    phase: Union[Phase, str] = "idle"


@dataclass
class FrameResult:
    rep_count: int
    status: str
    quality: float
    phase: Optional[Phase] = None
