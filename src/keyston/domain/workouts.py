"""Domain models for workouts and workout presets."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from keyston.domain.records import (
    optional_float,
    optional_int,
    optional_str,
    parse_datetime,
)

WorkoutType = Literal["strength", "cardio", "flexibility", "sports", "other"]

ExerciseCategory = Literal[
    "chest", "back", "legs", "shoulders", "arms", "core", "cardio", "other"
]

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class WorkoutEntry:
    """A logged workout session."""

    id: str
    workout_date: str
    workout_type: WorkoutType
    created_at: datetime
    preset_id: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration_minutes: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class WorkoutExercise:
    """An exercise performed within a workout."""

    id: str
    workout_entry_id: str
    exercise_name: str
    category: ExerciseCategory
    order_index: int
    sets: int | None = None
    reps: int | None = None
    weight_kg: float | None = None
    duration_seconds: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class WorkoutPreset:
    """A saved workout template."""

    id: str
    preset_name: str
    workout_type: WorkoutType
    created_at: datetime
    updated_at: datetime
    description: str | None = None


@dataclass(frozen=True)
class PresetExercise:
    """An exercise within a workout preset."""

    id: str
    preset_id: str
    exercise_name: str
    category: ExerciseCategory
    order_index: int
    default_sets: int | None = None
    default_reps: int | None = None
    default_weight_kg: float | None = None


def parse_workout(row: dict[str, object]) -> WorkoutEntry:
    """Parse a stored workout document."""
    return WorkoutEntry(
        id=str(row["id"]),
        workout_date=str(row["workoutDate"]),
        workout_type=row.get("workoutType", "other"),  # type: ignore[arg-type]
        created_at=parse_datetime(row.get("createdAt")) or _EPOCH,
        preset_id=optional_str(row.get("presetId")),
        start_time=optional_str(row.get("startTime")),
        end_time=optional_str(row.get("endTime")),
        duration_minutes=optional_int(row.get("durationMinutes")),
        notes=optional_str(row.get("notes")),
    )


def parse_exercise(row: dict[str, object]) -> WorkoutExercise:
    """Parse a stored workout exercise document."""
    return WorkoutExercise(
        id=str(row["id"]),
        workout_entry_id=str(row["workoutEntryId"]),
        exercise_name=str(row.get("exerciseName", "")),
        category=row.get("category", "other"),  # type: ignore[arg-type]
        order_index=int(row.get("orderIndex", 0)),  # type: ignore[call-overload]
        sets=optional_int(row.get("sets")),
        reps=optional_int(row.get("reps")),
        weight_kg=optional_float(row.get("weightKg")),
        duration_seconds=optional_int(row.get("durationSeconds")),
        notes=optional_str(row.get("notes")),
    )


def parse_preset(row: dict[str, object]) -> WorkoutPreset:
    """Parse a stored workout preset document."""
    return WorkoutPreset(
        id=str(row["id"]),
        preset_name=str(row.get("presetName", "")),
        workout_type=row.get("workoutType", "other"),  # type: ignore[arg-type]
        created_at=parse_datetime(row.get("createdAt")) or _EPOCH,
        updated_at=parse_datetime(row.get("updatedAt")) or _EPOCH,
        description=optional_str(row.get("description")),
    )


def parse_preset_exercise(row: dict[str, object]) -> PresetExercise:
    """Parse a stored preset exercise document."""
    return PresetExercise(
        id=str(row["id"]),
        preset_id=str(row["presetId"]),
        exercise_name=str(row.get("exerciseName", "")),
        category=row.get("category", "other"),  # type: ignore[arg-type]
        order_index=int(row.get("orderIndex", 0)),  # type: ignore[call-overload]
        default_sets=optional_int(row.get("defaultSets")),
        default_reps=optional_int(row.get("defaultReps")),
        default_weight_kg=optional_float(row.get("defaultWeightKg")),
    )
