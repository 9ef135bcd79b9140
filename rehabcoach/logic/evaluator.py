from __future__ import annotations

from typing import Dict, Optional

from rehabcoach.logic.rules import (
    ExerciseAnalyzer,
    FingerPinchAnalyzer,
    HeadTurnAnalyzer,
    KneeRaiseAnalyzer,
    OpenFistAnalyzer,
    ShoulderRaiseAnalyzer,
)
from rehabcoach.utils.structures import FrameResult, HandResult, PoseResult, RepState


ANALYZERS: Dict[str, ExerciseAnalyzer] = {
    analyzer.exercise_id: analyzer
    for analyzer in (
        HeadTurnAnalyzer(),
        FingerPinchAnalyzer(),
        OpenFistAnalyzer(),
        KneeRaiseAnalyzer(),
        ShoulderRaiseAnalyzer(),
    )
}

IDLE_STATUS = "Idle"


def get_analyzer(exercise_id: str) -> Optional[ExerciseAnalyzer]:
    return ANALYZERS.get(exercise_id)


def evaluate_frame(
    exercise_id: str,
    pose: Optional[PoseResult],
    hand: Optional[HandResult],
    state: RepState,
) -> FrameResult:
    """Evaluate one frame for ``exercise_id`` against the caller-owned ``state``.

    Pose-driven exercises ignore ``hand`` and vice versa. Unknown identifiers
    return the idle result with the prior rep count and no phase change. The
    returned quality is always within [0, 100].
    """
    analyzer = ANALYZERS.get(exercise_id)
    if analyzer is None:
        return FrameResult(rep_count=state.rep_count, status=IDLE_STATUS, quality=0.0)
    landmarks = hand if analyzer.source == "hand" else pose
    result = analyzer.evaluate(landmarks, state)
    result.quality = clamp_quality(result.quality)
    return result


def clamp_quality(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return float(max(0.0, min(100.0, value)))
