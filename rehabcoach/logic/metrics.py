"""Live and end-of-session metrics derived from per-frame evaluator output."""

from __future__ import annotations

from dataclasses import dataclass

FORM_REFERENCE_QUALITY = 80.0


@dataclass
class LiveMetrics:
    rep_count: int
    quality: float
    progress: float
    status: str
    accuracy: float
    speed: float
    stability: float
    form_score: float
    exercise_id: str
    patient_id: str
    updated_at: int  # epoch milliseconds


@dataclass
class SessionSummary:
    exercise_id: str
    patient_id: str
    duration: float  # seconds
    repetition_count: int
    accuracy_score: float
    final_score: float
    speed: float
    stability: float
    form_score: float
    quality_avg: float
    timestamp: int  # epoch milliseconds


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def progress_percent(rep_count: int, target_reps: int) -> float:
    if target_reps <= 0:
        return 0.0
    return min(100.0, rep_count / target_reps * 100)


def reps_per_minute(rep_count: int, elapsed_seconds: float) -> float:
    if rep_count <= 0 or elapsed_seconds <= 0:
        return 0.0
    return rep_count / elapsed_seconds * 60


def stability_score(quality: float) -> float:
    return _clamp(100 - abs(quality - FORM_REFERENCE_QUALITY))


def build_live_metrics(
    *,
    rep_count: int,
    quality: float,
    status: str,
    target_reps: int,
    elapsed_seconds: float,
    exercise_id: str,
    patient_id: str,
    updated_at: int,
) -> LiveMetrics:
    stability = stability_score(quality)
    form_score = quality * 0.6 + stability * 0.4
    return LiveMetrics(
        rep_count=rep_count,
        quality=quality,
        progress=progress_percent(rep_count, target_reps),
        status=status,
        accuracy=quality,
        speed=round(reps_per_minute(rep_count, elapsed_seconds), 1),
        stability=round(stability, 1),
        form_score=round(form_score, 1),
        exercise_id=exercise_id,
        patient_id=patient_id,
        updated_at=updated_at,
    )


def summarize_session(
    *,
    rep_count: int,
    quality_sum: float,
    frame_count: int,
    target_reps: int,
    elapsed_seconds: float,
    exercise_id: str,
    patient_id: str,
    timestamp: int,
) -> SessionSummary:
    """Aggregate a finished session.

    The form score blends average quality with the fixed reference quality
    rather than with the averaged stability, and the final score weights
    target completion and average quality equally.
    """
    quality_avg = quality_sum / frame_count if frame_count > 0 else 0.0
    accuracy = min(100.0, quality_avg)
    completion = rep_count / target_reps * 50 if target_reps > 0 else 0.0
    return SessionSummary(
        exercise_id=exercise_id,
        patient_id=patient_id,
        duration=elapsed_seconds,
        repetition_count=rep_count,
        accuracy_score=accuracy,
        final_score=min(100.0, completion + accuracy * 0.5),
        speed=reps_per_minute(rep_count, elapsed_seconds),
        stability=stability_score(quality_avg),
        form_score=min(100.0, quality_avg * 0.6 + FORM_REFERENCE_QUALITY * 0.4),
        quality_avg=quality_avg,
        timestamp=timestamp,
    )
