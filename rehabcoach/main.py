from __future__ import annotations

import argparse
import os
import time
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Union

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")
warnings.filterwarnings("ignore", message=r"SymbolDatabase\.GetPrototype\(\) is deprecated", category=UserWarning)

import cv2
from loguru import logger

from rehabcoach.logic.exercises import available_exercises, get_exercise
from rehabcoach.server.logging_utils import configure_logging_from
from rehabcoach.server.session import ExerciseSession
from rehabcoach.utils.camera import enumerate_cameras, open_capture
from rehabcoach.utils.config import DEFAULT_RUNTIME_CONFIG, RuntimeConfig, load_runtime_config
from rehabcoach.utils.profiler import FrameClock

WINDOW_NAME = "Rehab Coach"
QUIT_KEY = ord("q")
PAUSE_KEY = ord("p")


@dataclass
class TrackingStats:
    frames: int = 0
    skipped: int = 0
    paused: int = 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Camera-tracked rehabilitation exercise counter")
    parser.add_argument("--exercise", type=str, default="head", choices=available_exercises(), help="Exercise to track")
    parser.add_argument("--patient", type=str, default="local-patient", help="Patient identifier for the session summary")
    parser.add_argument("--runtime-config", type=Path, default=DEFAULT_RUNTIME_CONFIG, help="Runtime configuration")
    parser.add_argument("--camera", type=str, default="-1", help="Camera index or stream URL (-1 for auto)")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after this many frames (0 = until 'q' or stream end)")
    parser.add_argument("--headless", action="store_true", help="Disable the preview window")
    return parser.parse_args()


def resolve_camera(camera_arg: str) -> Union[int, str]:
    raw = camera_arg.strip()
    if raw.lstrip("-").isdigit():
        index = int(raw)
        if index >= 0:
            return index
        available = enumerate_cameras()
        return available[0] if available else 0
    return raw


def build_estimator(mp_cfg: Dict[str, Any]):
    from rehabcoach.pose.mediapipe_landmarks import MediaPipeLandmarkEstimator

    return MediaPipeLandmarkEstimator(
        pose_model_path=str(mp_cfg.get("pose_model", "models/pose_landmarker_heavy.task")),
        hand_model_path=str(mp_cfg.get("hand_model", "models/hand_landmarker.task")),
        min_pose_detection_confidence=float(mp_cfg.get("min_pose_detection_confidence", 0.5)),
        min_hand_detection_confidence=float(mp_cfg.get("min_hand_detection_confidence", 0.5)),
        min_tracking_confidence=float(mp_cfg.get("min_tracking_confidence", 0.5)),
    )


def track(
    session: ExerciseSession,
    cap,
    estimator,
    frame_cfg: Dict[str, Any],
    session_cfg: Dict[str, Any],
    max_frames: int = 0,
    headless: bool = False,
) -> TrackingStats:
    """Feed camera frames through the estimator into ``session`` until the stream ends or the user quits.

    The detector always sees the raw camera frame so anatomical left/right
    labels stay correct; ``mirror_preview`` only affects the preview window.
    'p' toggles pause: paused frames are neither detected nor evaluated while
    the session clock keeps running.
    """
    descriptor = session.exercise
    frame_clock = FrameClock()
    max_lag_ms = float(frame_cfg.get("max_lag_ms", 250))
    mirror_preview = bool(frame_cfg.get("mirror_preview", True))
    status_interval = float(session_cfg.get("status_log_seconds", 2.0))
    last_status_log = 0.0
    paused = False
    stats = TrackingStats()
    start = time.perf_counter()

    while True:
        captured_at = time.perf_counter()
        ret, frame = cap.read()
        if not ret:
            break
        if paused:
            stats.paused += 1
        else:
            timestamp_ms = int((captured_at - start) * 1000)
            pose, hand = estimator.estimate(
                frame,
                timestamp_ms,
                want_pose=descriptor.source == "pose",
                want_hand=descriptor.source == "hand",
            )
            frame_clock.tick()
            if frame_clock.is_stale(captured_at, max_lag_ms):
                stats.skipped += 1
            else:
                result = session.process(pose, hand)
                now = time.perf_counter()
                if now - last_status_log >= status_interval:
                    logger.info(
                        "reps={}/{} quality={:.0f} status='{}' fps={:.1f}",
                        result.rep_count,
                        descriptor.target_reps,
                        result.quality,
                        result.status,
                        frame_clock.get_fps(),
                    )
                    logger.debug("live snapshot {}", asdict(session.live_metrics()))
                    last_status_log = now

        stats.frames += 1
        if max_frames and stats.frames >= max_frames:
            break
        if not headless:
            cv2.imshow(WINDOW_NAME, cv2.flip(frame, 1) if mirror_preview else frame)
            key = cv2.waitKey(1) & 0xFF
            if key == QUIT_KEY:
                break
            if key == PAUSE_KEY:
                paused = not paused
                logger.info("Tracking {}", "paused" if paused else "resumed")
    return stats


def run(args: argparse.Namespace, runtime_cfg: RuntimeConfig) -> None:
    descriptor = get_exercise(args.exercise)
    session = ExerciseSession(descriptor, patient_id=args.patient)
    cap = open_capture(resolve_camera(args.camera), runtime_cfg.frame)
    estimator = None
    logger.info("Tracking {} ({} target reps)", descriptor.name, descriptor.target_reps)
    for line in descriptor.instructions:
        logger.info("  - {}", line)

    try:
        estimator = build_estimator(runtime_cfg.mediapipe)
        stats = track(
            session,
            cap,
            estimator,
            runtime_cfg.frame,
            runtime_cfg.session,
            max_frames=args.max_frames,
            headless=args.headless,
        )
    finally:
        cap.release()
        if estimator is not None:
            estimator.close()
        if not args.headless:
            cv2.destroyAllWindows()

    summary = session.summary()
    logger.info("Skipped {} stale and {} paused frames out of {}", stats.skipped, stats.paused, stats.frames)
    logger.info(
        "Session complete | reps={} avg_quality={:.1f} final_score={:.1f} speed={:.1f}/min",
        summary.repetition_count,
        summary.quality_avg,
        summary.final_score,
        summary.speed,
    )


def main() -> None:
    args = parse_args()
    runtime_cfg = load_runtime_config(args.runtime_config)
    configure_logging_from(runtime_cfg.logging)
    run(args, runtime_cfg)


if __name__ == "__main__":
    main()
