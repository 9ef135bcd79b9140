from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import numpy as np

from rehabcoach.logic.geometry import (
    FINGERS,
    angle_3pts,
    distance,
    get_hand_landmarks_map,
    get_landmarks_map,
    horizontal_span,
)
from rehabcoach.utils.structures import (
    HAND_LANDMARK_COUNT,
    POSE_LANDMARK_COUNT,
    FrameResult,
    HandPhase,
    HeadPhase,
    KneePhase,
    LandmarkSet,
    PinchPhase,
    RepState,
    ShoulderPhase,
)


class ExerciseAnalyzer(ABC):
    """Repetition state machine for one exercise.

    ``evaluate`` never raises on missing or degenerate landmarks; those cases
    come back as a neutral ``FrameResult`` with quality 0 and no phase.
    """

    exercise_id: str = ""
    source: str = "pose"  # pose | hand
    missing_status: str = ""
    phase_type: Any = None

    @property
    def required_points(self) -> int:
        return HAND_LANDMARK_COUNT if self.source == "hand" else POSE_LANDMARK_COUNT

    def evaluate(self, landmarks: Optional[LandmarkSet], state: RepState) -> FrameResult:
        if landmarks is None or len(landmarks) < self.required_points:
            return FrameResult(rep_count=state.rep_count, status=self.missing_status, quality=0.0)
        phase = self.phase_type.coerce(state.phase)
        return self._update(landmarks.landmarks, state.rep_count, phase)

    @abstractmethod
    def _update(self, landmarks: np.ndarray, rep_count: int, phase: Any) -> FrameResult:
        ...


class HeadTurnAnalyzer(ExerciseAnalyzer):
    exercise_id = "head"
    source = "pose"
    missing_status = "Show your shoulders and head"
    phase_type = HeadPhase
    yaw_threshold = 25.0

    def _update(self, landmarks: np.ndarray, rep_count: int, phase: HeadPhase) -> FrameResult:
        lm = get_landmarks_map(landmarks)
        left_shoulder = lm["left_shoulder"]
        right_shoulder = lm["right_shoulder"]
        span = horizontal_span(left_shoulder, right_shoulder)
        if span == 0:
            return FrameResult(rep_count=rep_count, status="Hold steady", quality=0.0)

        yaw = self._yaw_degrees(lm["nose"], left_shoulder, right_shoulder, span)
        threshold = self.yaw_threshold
        # A sweep from one side to the other counts once, in either direction.
        if yaw > threshold and phase != HeadPhase.RIGHT:
            if phase == HeadPhase.LEFT:
                rep_count += 1
            phase = HeadPhase.RIGHT
        elif yaw < -threshold and phase != HeadPhase.LEFT:
            if phase == HeadPhase.RIGHT:
                rep_count += 1
            phase = HeadPhase.LEFT

        quality = min(100.0, max(0.0, abs(yaw) / threshold * 70))
        return FrameResult(rep_count=rep_count, status=f"Yaw {yaw:.1f} deg", quality=quality, phase=phase)

    @staticmethod
    def _yaw_degrees(nose: np.ndarray, left: np.ndarray, right: np.ndarray, span: float) -> float:
        center = (left[0] + right[0]) / 2
        offset = float(np.clip((nose[0] - center) / span, -1.0, 1.0))
        return math.degrees(math.asin(offset))


class FingerPinchAnalyzer(ExerciseAnalyzer):
    exercise_id = "finger"
    source = "hand"
    missing_status = "Show your hand to the camera"
    phase_type = PinchPhase
    pinch_threshold = 0.25
    release_threshold = 0.45
    fallback_scale = 0.1

    def _update(self, landmarks: np.ndarray, rep_count: int, phase: PinchPhase) -> FrameResult:
        lm = get_hand_landmarks_map(landmarks)
        gap = self._normalized_gap(lm)
        # Gaps between the two thresholds keep the previous phase.
        if gap < self.pinch_threshold:
            phase = PinchPhase.PINCHED
        if gap > self.release_threshold and phase == PinchPhase.PINCHED:
            rep_count += 1
            phase = PinchPhase.RELEASED

        quality = max(0.0, min(100.0, (self.release_threshold - gap) * 200))
        return FrameResult(rep_count=rep_count, status=f"Pinch gap {gap * 100:.0f}%", quality=quality, phase=phase)

    def _normalized_gap(self, lm: Dict[str, np.ndarray]) -> float:
        scale = distance(lm["thumb_tip"], lm["wrist"])
        pinch = distance(lm["thumb_tip"], lm["index_tip"])
        return pinch / (scale or self.fallback_scale)


class OpenFistAnalyzer(ExerciseAnalyzer):
    exercise_id = "hand"
    source = "hand"
    missing_status = "Show your hand to the camera"
    phase_type = HandPhase

    def _update(self, landmarks: np.ndarray, rep_count: int, phase: HandPhase) -> FrameResult:
        extended = self._extended_fingers(get_hand_landmarks_map(landmarks))
        if extended >= 3:
            phase = HandPhase.OPEN
        if extended <= 1 and phase == HandPhase.OPEN:
            rep_count += 1
            phase = HandPhase.FIST

        quality = float(min(100, extended * 25))
        status = "Open" if extended >= 3 else "Fist"
        return FrameResult(rep_count=rep_count, status=status, quality=quality, phase=phase)

    @staticmethod
    def _extended_fingers(lm: Dict[str, np.ndarray]) -> int:
        return sum(1 for finger in FINGERS if lm[f"{finger}_tip"][1] < lm[f"{finger}_mcp"][1])


class KneeRaiseAnalyzer(ExerciseAnalyzer):
    exercise_id = "leg"
    source = "pose"
    missing_status = "Show full body to camera"
    phase_type = KneePhase
    raise_margin = 0.05

    def _update(self, landmarks: np.ndarray, rep_count: int, phase: KneePhase) -> FrameResult:
        lm = get_landmarks_map(landmarks)
        hip, knee, ankle = lm["left_hip"], lm["left_knee"], lm["left_ankle"]
        raised = bool(knee[1] < hip[1] - self.raise_margin)
        if raised:
            phase = KneePhase.UP
        if not raised and phase == KneePhase.UP:
            rep_count += 1
            phase = KneePhase.DOWN

        knee_angle = angle_3pts(hip, knee, ankle)
        quality = min(100.0, max(0.0, (180 - knee_angle) * 1.2))
        status = "Knee up" if raised else "Neutral"
        return FrameResult(rep_count=rep_count, status=status, quality=quality, phase=phase)


class ShoulderRaiseAnalyzer(ExerciseAnalyzer):
    exercise_id = "shoulder"
    source = "pose"
    missing_status = "Show upper body"
    phase_type = ShoulderPhase
    lift_angle = 60.0
    relax_angle = 40.0
    span_epsilon = 0.0001

    def _update(self, landmarks: np.ndarray, rep_count: int, phase: ShoulderPhase) -> FrameResult:
        lm = get_landmarks_map(landmarks)
        span = horizontal_span(lm["right_shoulder"], lm["left_shoulder"]) + self.span_epsilon
        left_angle = self._elevation_angle(lm["left_ear"], lm["left_shoulder"], span)
        right_angle = self._elevation_angle(lm["right_ear"], lm["right_shoulder"], span)

        left_hold, left_reps = self._step_side(phase.left_hold, left_angle)
        right_hold, right_reps = self._step_side(phase.right_hold, right_angle)
        rep_count += left_reps + right_reps

        quality = min(100.0, max(left_angle, right_angle) / 1.2)
        return FrameResult(
            rep_count=rep_count,
            status=f"L:{left_angle:.0f} deg R:{right_angle:.0f} deg",
            quality=quality,
            phase=ShoulderPhase(left_hold=left_hold, right_hold=right_hold),
        )

    @staticmethod
    def _elevation_angle(ear: np.ndarray, shoulder: np.ndarray, span: float) -> float:
        ratio = abs(ear[1] - shoulder[1]) / span
        return float((1 - ratio) * 180)

    def _step_side(self, held: bool, angle: float) -> tuple[bool, int]:
        if not held and angle >= self.lift_angle:
            return True, 1
        if held and angle < self.relax_angle:
            return False, 0
        return held, 0
