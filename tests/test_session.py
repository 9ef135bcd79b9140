#!/usr/bin/env python3
"""Caller-side session tracking and the multi-session manager."""

import pytest

from rehabcoach.logic.exercises import get_exercise
from rehabcoach.server.session import (
    ExerciseSession,
    SessionManager,
    SessionNotFoundError,
    UnknownExerciseError,
)
from rehabcoach.utils.structures import HeadPhase, ShoulderPhase


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _head_sweep(session, make_pose):
    session.process(make_pose(nose=(0.6, 0.3)), None)
    return session.process(make_pose(nose=(0.4, 0.3)), None)


# ---------------------------------------------------------------------------
# 1. ExerciseSession
# ---------------------------------------------------------------------------

class TestExerciseSession:
    def test_starts_neutral(self):
        session = ExerciseSession(get_exercise("head"), clock=FakeClock())
        assert session.rep_count == 0
        assert session.state.phase == "idle"
        assert session.frame_count == 0

    def test_threads_state_between_frames(self, make_pose):
        session = ExerciseSession(get_exercise("head"), clock=FakeClock())
        result = _head_sweep(session, make_pose)
        assert result.rep_count == 1
        assert session.rep_count == 1
        assert session.state.phase == HeadPhase.LEFT
        assert session.frame_count == 2
        assert session.quality_sum == pytest.approx(168.0)

    def test_missing_subject_keeps_phase(self, make_pose):
        session = ExerciseSession(get_exercise("head"), clock=FakeClock())
        session.process(make_pose(nose=(0.6, 0.3)), None)
        session.process(None, None)
        assert session.state.phase == HeadPhase.RIGHT
        assert session.last_result.status == "Show your shoulders and head"
        result = session.process(make_pose(nose=(0.4, 0.3)), None)
        assert result.rep_count == 1

    def test_shoulder_phase_round_trips(self, make_pose):
        session = ExerciseSession(get_exercise("shoulder"), clock=FakeClock())
        shrug = make_pose(left_ear=(0.55, 0.43), right_ear=(0.45, 0.43))
        session.process(shrug, None)
        session.process(shrug, None)
        assert session.rep_count == 2
        assert session.state.phase == ShoulderPhase(True, True)

    def test_live_metrics(self, make_pose):
        clock = FakeClock()
        session = ExerciseSession(get_exercise("head"), patient_id="p-1", clock=clock)
        _head_sweep(session, make_pose)
        clock.advance(30)
        live = session.live_metrics()
        assert live.rep_count == 1
        assert live.progress == pytest.approx(10.0)
        assert live.quality == pytest.approx(84.0)
        assert live.accuracy == live.quality
        assert live.speed == 2.0
        assert live.stability == 96.0
        assert live.form_score == pytest.approx(88.8)
        assert live.status == "Yaw -30.0 deg"
        assert live.exercise_id == "head"
        assert live.patient_id == "p-1"

    def test_live_metrics_before_first_frame(self):
        session = ExerciseSession(get_exercise("leg"), clock=FakeClock())
        live = session.live_metrics()
        assert live.rep_count == 0
        assert live.quality == 0
        assert live.speed == 0
        assert live.stability == 20.0

    def test_summary(self, make_pose):
        clock = FakeClock()
        session = ExerciseSession(get_exercise("head"), clock=clock)
        _head_sweep(session, make_pose)
        clock.advance(30)
        summary = session.summary()
        assert summary.repetition_count == 1
        assert summary.duration == pytest.approx(30.0)
        assert summary.quality_avg == pytest.approx(84.0)
        assert summary.accuracy_score == pytest.approx(84.0)
        assert summary.speed == pytest.approx(2.0)
        assert summary.stability == pytest.approx(96.0)
        assert summary.form_score == pytest.approx(82.4)
        assert summary.final_score == pytest.approx(47.0)

    def test_reset(self, make_pose):
        clock = FakeClock()
        session = ExerciseSession(get_exercise("head"), clock=clock)
        _head_sweep(session, make_pose)
        clock.advance(12)
        session.reset()
        assert session.rep_count == 0
        assert session.state.phase == "idle"
        assert session.frame_count == 0
        assert session.quality_sum == 0
        assert session.last_result is None
        assert session.elapsed_seconds() == 0


# ---------------------------------------------------------------------------
# 2. SessionManager
# ---------------------------------------------------------------------------

class TestSessionManager:
    def test_unknown_exercise(self):
        manager = SessionManager()
        with pytest.raises(UnknownExerciseError):
            manager.start("squat")
        assert manager.active_sessions() == []

    def test_exercise_name_is_normalized(self):
        manager = SessionManager()
        _, session = manager.start(" Shoulder ")
        assert session.exercise.id == "shoulder"

    def test_sessions_are_independent(self, make_pose):
        manager = SessionManager(clock=FakeClock())
        first, _ = manager.start("head", "alice")
        second, _ = manager.start("head", "bob")
        manager.process(first, make_pose(nose=(0.6, 0.3)), None)
        result, live = manager.process(first, make_pose(nose=(0.4, 0.3)), None)
        assert result.rep_count == 1
        assert live.patient_id == "alice"
        assert manager.get(second).rep_count == 0
        assert manager.get(second).state.phase == "idle"

    def test_stop_hands_summary_to_hook(self, make_pose):
        summaries = []
        manager = SessionManager(on_summary=summaries.append, clock=FakeClock())
        session_id, _ = manager.start("head", "carol")
        manager.process(session_id, make_pose(nose=(0.6, 0.3)), None)
        summary = manager.stop(session_id)
        assert summaries == [summary]
        assert summary.patient_id == "carol"
        with pytest.raises(SessionNotFoundError):
            manager.get(session_id)

    def test_missing_session(self):
        manager = SessionManager()
        with pytest.raises(SessionNotFoundError):
            manager.process("missing", None, None)
        with pytest.raises(SessionNotFoundError):
            manager.stop("missing")
        with pytest.raises(SessionNotFoundError):
            manager.reset("missing")

    def test_reset(self, make_pose):
        manager = SessionManager(clock=FakeClock())
        session_id, _ = manager.start("head")
        manager.process(session_id, make_pose(nose=(0.6, 0.3)), None)
        manager.process(session_id, make_pose(nose=(0.4, 0.3)), None)
        assert manager.reset(session_id).rep_count == 0

    def test_idle_sessions_expire(self, make_pose):
        clock = FakeClock()
        summaries = []
        manager = SessionManager(on_summary=summaries.append, idle_timeout=60, clock=clock)
        stale_id, _ = manager.start("head", "dave")
        active_id, _ = manager.start("head", "erin")
        clock.advance(45)
        manager.process(active_id, make_pose(nose=(0.6, 0.3)), None)
        clock.advance(20)

        expired = manager.expire_idle()
        assert [s.patient_id for s in expired] == ["dave"]
        assert summaries == expired
        assert manager.active_sessions() == [active_id]
        with pytest.raises(SessionNotFoundError):
            manager.get(stale_id)

    def test_reset_counts_as_activity(self):
        clock = FakeClock()
        manager = SessionManager(idle_timeout=60, clock=clock)
        session_id, _ = manager.start("leg")
        clock.advance(50)
        manager.reset(session_id)
        clock.advance(50)
        assert manager.expire_idle() == []
        clock.advance(10)
        assert len(manager.expire_idle()) == 1

    def test_start_sweeps_idle_sessions(self):
        clock = FakeClock()
        manager = SessionManager(idle_timeout=60, clock=clock)
        old_id, _ = manager.start("hand")
        clock.advance(61)
        new_id, _ = manager.start("hand")
        assert manager.active_sessions() == [new_id]
        assert old_id != new_id

    def test_zero_timeout_disables_expiry(self):
        clock = FakeClock()
        manager = SessionManager(idle_timeout=0, clock=clock)
        session_id, _ = manager.start("finger")
        clock.advance(10_000)
        assert manager.expire_idle() == []
        assert manager.active_sessions() == [session_id]
