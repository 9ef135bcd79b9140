from __future__ import annotations

from typing import Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks.python import BaseOptions
from mediapipe.tasks.python.vision import (
    HandLandmarker,
    HandLandmarkerOptions,
    PoseLandmarker,
    PoseLandmarkerOptions,
    RunningMode,
)

from rehabcoach.utils.structures import HandResult, PoseResult


class MediaPipeLandmarkEstimator:
    """Pose + hand landmarker pair producing normalized landmark sets per video frame."""

    def __init__(
        self,
        pose_model_path: str,
        hand_model_path: str,
        min_pose_detection_confidence: float = 0.5,
        min_hand_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        self.pose = PoseLandmarker.create_from_options(
            PoseLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=pose_model_path),
                running_mode=RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=min_pose_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        )
        self.hand = HandLandmarker.create_from_options(
            HandLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=hand_model_path),
                running_mode=RunningMode.VIDEO,
                num_hands=1,
                min_hand_detection_confidence=min_hand_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        )

    def estimate(
        self, frame: np.ndarray, timestamp_ms: int, want_pose: bool = True, want_hand: bool = True
    ) -> Tuple[Optional[PoseResult], Optional[HandResult]]:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        pose: Optional[PoseResult] = None
        hand: Optional[HandResult] = None
        if want_pose:
            result = self.pose.detect_for_video(image, timestamp_ms)
            if result.pose_landmarks:
                pose = PoseResult.from_points(result.pose_landmarks[0])
        if want_hand:
            result = self.hand.detect_for_video(image, timestamp_ms)
            if result.hand_landmarks:
                hand = HandResult.from_points(result.hand_landmarks[0])
        return pose, hand

    def close(self) -> None:
        self.pose.close()
        self.hand.close()
