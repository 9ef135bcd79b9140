from __future__ import annotations

import asyncio
import threading
import time
import uuid
from dataclasses import asdict
from typing import AsyncGenerator, Callable, Dict, List, Optional, Tuple

from loguru import logger

from rehabcoach.logic.evaluator import evaluate_frame
from rehabcoach.logic.exercises import ExerciseDescriptor, get_exercise
from rehabcoach.logic.metrics import LiveMetrics, SessionSummary, build_live_metrics, summarize_session
from rehabcoach.utils.structures import FrameResult, HandResult, PoseResult, RepState, phase_label

DEFAULT_PATIENT_ID = "local-patient"
DEFAULT_IDLE_TIMEOUT_SECONDS = 600.0


class SessionNotFoundError(RuntimeError):
    pass


class UnknownExerciseError(KeyError):
    pass


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ExerciseSession:
    """Caller-side owner of one patient's rep/phase state and running quality totals."""

    def __init__(
        self,
        exercise: ExerciseDescriptor,
        patient_id: str = DEFAULT_PATIENT_ID,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.exercise = exercise
        self.patient_id = patient_id
        self.clock = clock
        self.state = RepState()
        self.quality_sum = 0.0
        self.frame_count = 0
        self.last_result: Optional[FrameResult] = None
        self.started_at = clock()
        self.last_active_at = self.started_at

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    def elapsed_seconds(self) -> float:
        return max(0.0, self.clock() - self.started_at)

    def idle_seconds(self) -> float:
        return max(0.0, self.clock() - self.last_active_at)

    def process(self, pose: Optional[PoseResult], hand: Optional[HandResult]) -> FrameResult:
        result = evaluate_frame(self.exercise.id, pose, hand, self.state)
        self.state.rep_count = result.rep_count
        if result.phase is not None:
            self.state.phase = result.phase
        self.quality_sum += result.quality
        self.frame_count += 1
        self.last_result = result
        self.last_active_at = self.clock()
        return result

    def reset(self) -> None:
        self.state = RepState()
        self.quality_sum = 0.0
        self.frame_count = 0
        self.last_result = None
        self.started_at = self.clock()
        self.last_active_at = self.started_at

    def live_metrics(self) -> LiveMetrics:
        last = self.last_result
        return build_live_metrics(
            rep_count=self.state.rep_count,
            quality=last.quality if last else 0.0,
            status=last.status if last else "Waiting for first frame",
            target_reps=self.exercise.target_reps,
            elapsed_seconds=self.elapsed_seconds(),
            exercise_id=self.exercise.id,
            patient_id=self.patient_id,
            updated_at=_epoch_ms(),
        )

    def summary(self) -> SessionSummary:
        return summarize_session(
            rep_count=self.state.rep_count,
            quality_sum=self.quality_sum,
            frame_count=self.frame_count,
            target_reps=self.exercise.target_reps,
            elapsed_seconds=self.elapsed_seconds(),
            exercise_id=self.exercise.id,
            patient_id=self.patient_id,
            timestamp=_epoch_ms(),
        )


def serialize_result(result: FrameResult) -> Dict[str, object]:
    return {
        "rep_count": result.rep_count,
        "status": result.status,
        "quality": result.quality,
        "phase": phase_label(result.phase),
    }


class SessionManager:
    """Keeps independent sessions keyed by id and fans live snapshots out to subscribers."""

    def __init__(
        self,
        on_summary: Optional[Callable[[SessionSummary], None]] = None,
        queue_size: int = 2,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.on_summary = on_summary
        self.queue_size = max(1, queue_size)
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._lock = threading.RLock()
        self._sessions: Dict[str, ExerciseSession] = {}
        self._subscribers: Dict[str, List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}

    def start(self, exercise: str, patient_id: str = DEFAULT_PATIENT_ID) -> Tuple[str, ExerciseSession]:
        self.expire_idle()
        try:
            descriptor = get_exercise(exercise)
        except KeyError as exc:
            logger.debug("Rejected session for unknown exercise {!r}", exercise)
            raise UnknownExerciseError(exercise) from exc
        session_id = uuid.uuid4().hex
        session = ExerciseSession(descriptor, patient_id=patient_id, clock=self.clock)
        with self._lock:
            self._sessions[session_id] = session
            self._subscribers[session_id] = []
        logger.info("Session {} started for patient {} exercise={}", session_id, patient_id, descriptor.id)
        return session_id, session

    def get(self, session_id: str) -> ExerciseSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"No active session {session_id}")
        return session

    def active_sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def process(
        self, session_id: str, pose: Optional[PoseResult], hand: Optional[HandResult]
    ) -> Tuple[FrameResult, LiveMetrics]:
        session = self.get(session_id)
        with self._lock:
            previous = session.rep_count
            result = session.process(pose, hand)
            live = session.live_metrics()
        if result.rep_count > previous:
            logger.debug("Session {} rep {} ({})", session_id, result.rep_count, result.status)
        self._publish(session_id, {"running": True, "result": serialize_result(result), "live": asdict(live)})
        return result, live

    def reset(self, session_id: str) -> ExerciseSession:
        session = self.get(session_id)
        with self._lock:
            session.reset()
        logger.info("Session {} reset", session_id)
        return session

    def stop(self, session_id: str) -> SessionSummary:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"No active session {session_id}")
        summary = session.summary()
        logger.info(
            "Session {} finished for patient {} | reps={} avg_quality={:.1f} duration={:.1f}s",
            session_id,
            summary.patient_id,
            summary.repetition_count,
            summary.quality_avg,
            summary.duration,
        )
        if self.on_summary is not None:
            try:
                self.on_summary(summary)
            except Exception as exc:  # pragma: no cover - persistence hook is external
                logger.exception("Failed to persist session summary: {}", exc)
        self._publish(session_id, {"running": False, "summary": asdict(summary)})
        with self._lock:
            self._subscribers.pop(session_id, None)
        return summary

    def expire_idle(self) -> List[SessionSummary]:
        """End sessions that saw no frame or reset within ``idle_timeout`` seconds (0 disables)."""
        if self.idle_timeout <= 0:
            return []
        with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.idle_seconds() >= self.idle_timeout]
        summaries = []
        for session_id in expired:
            logger.info("Session {} idle for over {:.0f}s; closing", session_id, self.idle_timeout)
            try:
                summaries.append(self.stop(session_id))
            except SessionNotFoundError:
                # Stopped concurrently by its client.
                continue
        return summaries

    async def snapshot_stream(self, session_id: str) -> AsyncGenerator[Dict[str, object], None]:
        session = self.get(session_id)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Dict[str, object]] = asyncio.Queue(maxsize=self.queue_size)
        entry = (loop, queue)
        with self._lock:
            self._subscribers.setdefault(session_id, []).append(entry)
        try:
            yield {"running": True, "live": asdict(session.live_metrics())}
            while True:
                payload = await queue.get()
                yield payload
                if not payload.get("running", True):
                    break
        finally:
            with self._lock:
                subscribers = self._subscribers.get(session_id)
                if subscribers and entry in subscribers:
                    subscribers.remove(entry)

    def _publish(self, session_id: str, payload: Dict[str, object]) -> None:
        with self._lock:
            subscribers = list(self._subscribers.get(session_id, []))
        for loop, queue in subscribers:
            try:
                asyncio.run_coroutine_threadsafe(self._enqueue_snapshot(queue, payload), loop)
            except RuntimeError:
                logger.warning("Unable to push live snapshot; consumer likely disconnected")

    @staticmethod
    async def _enqueue_snapshot(queue: asyncio.Queue[Dict[str, object]], payload: Dict[str, object]) -> None:
        try:
            if queue.full():
                queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        await queue.put(payload)
