from __future__ import annotations

from dataclasses import asdict
from typing import List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from rehabcoach.logic.exercises import EXERCISES, ExerciseDescriptor
from rehabcoach.logic.metrics import SessionSummary
from rehabcoach.server.logging_utils import configure_logging_from
from rehabcoach.server.models.schemas import (
    ExerciseResponse,
    FrameRequest,
    FrameResponse,
    FrameResultResponse,
    Keypoint,
    LiveMetricsResponse,
    MessageResponse,
    SessionStartResponse,
    SessionSummaryResponse,
    StartSessionRequest,
)
from rehabcoach.server.session import (
    SessionManager,
    SessionNotFoundError,
    UnknownExerciseError,
    serialize_result,
)
from rehabcoach.utils.config import RuntimeConfig, load_runtime_config, resolve_runtime_config_path
from rehabcoach.utils.structures import HandResult, PoseResult


def _persist_summary(summary: SessionSummary) -> None:
    # Storage lives outside this service; the summary is handed off through the log.
    logger.info("Session summary ready: {}", asdict(summary))


app = FastAPI(title="Rehab Coach", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

session_manager = SessionManager(on_summary=_persist_summary)


@app.on_event("startup")
async def on_startup() -> None:
    config_path = resolve_runtime_config_path()
    if config_path.is_file():
        runtime_cfg = load_runtime_config(config_path)
    else:
        runtime_cfg = RuntimeConfig()
    configure_logging_from(runtime_cfg.logging)
    session_manager.queue_size = max(1, int(runtime_cfg.session.get("broadcast_queue_size", session_manager.queue_size)))
    session_manager.idle_timeout = float(runtime_cfg.session.get("idle_timeout_seconds", session_manager.idle_timeout))
    if not config_path.is_file():
        logger.warning("Runtime config {} not found; using defaults", config_path)
    logger.info("Session service ready ({} active sessions)", len(session_manager.active_sessions()))


def _exercise_response(descriptor: ExerciseDescriptor) -> ExerciseResponse:
    return ExerciseResponse(
        id=descriptor.id,
        name=descriptor.name,
        focus_area=descriptor.focus_area,
        difficulty=descriptor.difficulty,
        target_reps=descriptor.target_reps,
        instructions=list(descriptor.instructions),
        source=descriptor.source,
    )


def _to_pose(points: Optional[List[Keypoint]]) -> Optional[PoseResult]:
    if points is None:
        return None
    return PoseResult.from_points((p.x, p.y) for p in points)


def _to_hand(points: Optional[List[Keypoint]]) -> Optional[HandResult]:
    if points is None:
        return None
    return HandResult.from_points((p.x, p.y) for p in points)


@app.get("/health")
async def health() -> dict:
    session_manager.expire_idle()
    active = len(session_manager.active_sessions())
    logger.debug("Health check: {} active sessions", active)
    return {"status": "ok", "sessions": active}


@app.get("/api/exercises", response_model=List[ExerciseResponse])
async def list_exercises() -> List[ExerciseResponse]:
    return [_exercise_response(descriptor) for descriptor in EXERCISES.values()]


@app.post("/api/sessions", response_model=SessionStartResponse)
async def start_session(request: StartSessionRequest) -> SessionStartResponse:
    try:
        session_id, session = session_manager.start(request.exercise, request.patient_id)
    except UnknownExerciseError as exc:
        raise HTTPException(status_code=422, detail=f"Unknown exercise: {request.exercise}") from exc
    return SessionStartResponse(
        session_id=session_id,
        patient_id=session.patient_id,
        exercise=_exercise_response(session.exercise),
    )


@app.post("/api/sessions/{session_id}/frames", response_model=FrameResponse)
async def submit_frame(session_id: str, payload: FrameRequest) -> FrameResponse:
    try:
        result, live = session_manager.process(session_id, _to_pose(payload.pose), _to_hand(payload.hand))
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return FrameResponse(
        result=FrameResultResponse(**serialize_result(result)),
        live=LiveMetricsResponse(**asdict(live)),
    )


@app.get("/api/sessions/{session_id}/live", response_model=LiveMetricsResponse)
async def live_metrics(session_id: str) -> LiveMetricsResponse:
    try:
        session = session_manager.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return LiveMetricsResponse(**asdict(session.live_metrics()))


@app.post("/api/sessions/{session_id}/reset", response_model=MessageResponse)
async def reset_session(session_id: str) -> MessageResponse:
    try:
        session_manager.reset(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return MessageResponse(message="Session reset")


@app.delete("/api/sessions/{session_id}", response_model=SessionSummaryResponse)
async def stop_session(session_id: str) -> SessionSummaryResponse:
    try:
        summary = session_manager.stop(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SessionSummaryResponse(**asdict(summary))


@app.websocket("/ws/sessions/{session_id}")
async def stream(websocket: WebSocket, session_id: str) -> None:
    await websocket.accept()
    try:
        async for payload in session_manager.snapshot_stream(session_id):
            await websocket.send_json(payload)
    except SessionNotFoundError:
        await websocket.send_json({"running": False, "error": "session not found"})
    except WebSocketDisconnect:  # pragma: no cover - client initiated
        return
    await websocket.close()
