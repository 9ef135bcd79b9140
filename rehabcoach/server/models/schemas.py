from __future__ import annotations

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rehabcoach.utils.structures import HAND_LANDMARK_COUNT, POSE_LANDMARK_COUNT


class Keypoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)


class ExerciseResponse(BaseModel):
    id: str
    name: str
    focus_area: str
    difficulty: str
    target_reps: int
    instructions: List[str]
    source: str


class StartSessionRequest(BaseModel):
    exercise: str = Field(min_length=1, max_length=32)
    patient_id: str = Field(default="local-patient", min_length=1, max_length=128)


class SessionStartResponse(BaseModel):
    session_id: str
    patient_id: str
    exercise: ExerciseResponse


PoseKeypoints = Annotated[
    List[Keypoint], Field(min_length=POSE_LANDMARK_COUNT, max_length=POSE_LANDMARK_COUNT)
]
HandKeypoints = Annotated[
    List[Keypoint], Field(min_length=HAND_LANDMARK_COUNT, max_length=HAND_LANDMARK_COUNT)
]


class FrameRequest(BaseModel):
    pose: Optional[PoseKeypoints] = None
    hand: Optional[HandKeypoints] = None


class FrameResultResponse(BaseModel):
    rep_count: int
    status: str
    quality: float = Field(ge=0, le=100)
    phase: Optional[str] = None


class LiveMetricsResponse(BaseModel):
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
    updated_at: int


class FrameResponse(BaseModel):
    result: FrameResultResponse
    live: LiveMetricsResponse


class SessionSummaryResponse(BaseModel):
    exercise_id: str
    patient_id: str
    duration: float
    repetition_count: int
    accuracy_score: float
    final_score: float
    speed: float
    stability: float
    form_score: float
    quality_avg: float
    timestamp: int


class MessageResponse(BaseModel):
    message: str
