import numpy as np
import pytest

from rehabcoach.logic.geometry import HAND_LANDMARKS, POSE_LANDMARKS
from rehabcoach.utils.structures import HandResult, PoseResult

# Subject facing the camera, arms down, standing still.
NEUTRAL_POSE = {
    "nose": (0.5, 0.3),
    "left_ear": (0.55, 0.27),
    "right_ear": (0.45, 0.27),
    "left_shoulder": (0.6, 0.45),
    "right_shoulder": (0.4, 0.45),
    "left_hip": (0.58, 0.7),
    "right_hip": (0.42, 0.7),
    "left_knee": (0.58, 0.85),
    "right_knee": (0.42, 0.85),
    "left_ankle": (0.58, 0.98),
    "right_ankle": (0.42, 0.98),
}

# Open palm, fingers pointing up.
NEUTRAL_HAND = {
    "wrist": (0.5, 1.0),
    "thumb_tip": (0.5, 0.5),
    "index_tip": (0.9, 0.5),
    "index_mcp": (0.4, 0.6),
    "middle_mcp": (0.45, 0.6),
    "ring_mcp": (0.5, 0.6),
    "pinky_mcp": (0.55, 0.6),
    "middle_tip": (0.45, 0.3),
    "ring_tip": (0.5, 0.3),
    "pinky_tip": (0.55, 0.3),
}


def _build(index: dict, defaults: dict, overrides: dict) -> np.ndarray:
    arr = np.full((len(index), 2), 0.5, dtype=np.float64)
    for name, point in {**defaults, **overrides}.items():
        arr[index[name]] = point
    return arr


@pytest.fixture
def make_pose():
    def _make(**overrides) -> PoseResult:
        return PoseResult(landmarks=_build(POSE_LANDMARKS, NEUTRAL_POSE, overrides))

    return _make


@pytest.fixture
def make_hand():
    def _make(**overrides) -> HandResult:
        return HandResult(landmarks=_build(HAND_LANDMARKS, NEUTRAL_HAND, overrides))

    return _make


@pytest.fixture
def pinch_hand(make_hand):
    """Hand whose thumb-index gap, normalized by thumb-wrist distance (0.5), equals ``gap``."""

    def _make(gap: float) -> HandResult:
        return make_hand(index_tip=(0.5 + gap * 0.5, 0.5))

    return _make


@pytest.fixture
def fist_hand(make_hand):
    """Hand with the first ``extended`` of index/middle/ring/pinky pointing up."""

    def _make(extended: int) -> HandResult:
        overrides = {}
        for i, finger in enumerate(("index", "middle", "ring", "pinky")):
            x = 0.4 + i * 0.05
            overrides[f"{finger}_tip"] = (x, 0.3 if i < extended else 0.8)
        return make_hand(**overrides)

    return _make


@pytest.fixture
def pose_payload():
    def _payload(pose: PoseResult) -> list:
        return [{"x": float(x), "y": float(y)} for x, y in pose.landmarks[:, :2]]

    return _payload
