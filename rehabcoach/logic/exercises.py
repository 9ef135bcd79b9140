"""Static catalog of the rehabilitation exercises tracked by the evaluator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ExerciseDescriptor:
    id: str
    name: str
    focus_area: str
    difficulty: str  # Beginner | Intermediate
    target_reps: int
    instructions: tuple[str, ...]
    source: str  # pose | hand


EXERCISES: dict[str, ExerciseDescriptor] = {
    "head": ExerciseDescriptor(
        id="head",
        name="Head Turns",
        focus_area="Neck mobility and posture control",
        difficulty="Beginner",
        target_reps=10,
        instructions=(
            "Face the camera with shoulders visible.",
            "Turn head slowly right past about 70 deg while shoulders stay still.",
            "Then turn left past about 70 deg.",
            "One full right-to-left (or left-to-right) sweep counts as 1 rep.",
        ),
        source="pose",
    ),
    "finger": ExerciseDescriptor(
        id="finger",
        name="Finger Pinch",
        focus_area="Fine motor control and grip precision",
        difficulty="Beginner",
        target_reps=15,
        instructions=(
            "Show one hand to the camera.",
            "Pinch thumb and index together firmly, then release fully.",
            "Keep hand centered and well lit.",
        ),
        source="hand",
    ),
    "hand": ExerciseDescriptor(
        id="hand",
        name="Open / Fist",
        focus_area="Hand opening range and coordination",
        difficulty="Beginner",
        target_reps=12,
        instructions=(
            "Show one hand to the camera.",
            "Fully open your hand, then make a fist.",
            "Hold each shape for about 1 second to count.",
        ),
        source="hand",
    ),
    "leg": ExerciseDescriptor(
        id="leg",
        name="Knee Raise",
        focus_area="Hip flexion and lower-limb control",
        difficulty="Intermediate",
        target_reps=12,
        instructions=(
            "Stand so your full body is visible.",
            "Raise left knee above hip line, return to neutral.",
            "Alternate legs if comfortable; move slowly and with control.",
        ),
        source="pose",
    ),
    "shoulder": ExerciseDescriptor(
        id="shoulder",
        name="Shoulder Raises",
        focus_area="Shoulder stability and upper-body activation",
        difficulty="Intermediate",
        target_reps=12,
        instructions=(
            "Stand or sit upright facing the camera.",
            "Raise left shoulder (shrug) toward ear, return to neutral.",
            "Raise right shoulder toward ear, return to neutral.",
            "One left + right cycle counts as 1 rep.",
        ),
        source="pose",
    ),
}


def canonical_exercise_key(name: str) -> str:
    n = name.strip().lower().replace("-", "_").replace(" ", "_")
    if n in EXERCISES:
        return n
    raise KeyError(f"Unknown exercise: {name}")


def get_exercise(name: str) -> ExerciseDescriptor:
    return EXERCISES[canonical_exercise_key(name)]


def available_exercises() -> list[str]:
    return list(EXERCISES.keys())
