"""Workout logging and reusable workout presets."""

import dataclasses
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from keyston.domain.errors import NotFoundError, ValidationError
from keyston.domain.records import now_utc, to_record
from keyston.domain.validation import (
    ExerciseInput,
    PresetExerciseInput,
    PresetInput,
    WorkoutInput,
    check_date,
    validate_input,
)
from keyston.domain.workouts import (
    PresetExercise,
    WorkoutEntry,
    WorkoutExercise,
    WorkoutPreset,
    parse_exercise,
    parse_preset,
    parse_preset_exercise,
    parse_workout,
)
from keyston.services.storage import (
    PRESET_EXERCISES,
    WORKOUT_ENTRIES,
    WORKOUT_EXERCISES,
    WORKOUT_PRESETS,
    IndexQuery,
    PersistentStore,
    storage_errors,
)

_logger = logging.getLogger(__name__)


@dataclass
class WorkoutService:
    """Workouts and presets, each stored as a header plus ordered exercises.

    Headers and their exercises are written and deleted in one transaction.
    """

    store: PersistentStore
    clock: Callable[[], datetime] = field(default=now_utc)

    def add_workout(self, payload: dict[str, object]) -> WorkoutEntry:
        """Log a workout without exercises."""
        workout, _ = self.add_workout_with_exercises(payload, [])
        return workout

    def add_workout_with_exercises(
        self,
        payload: dict[str, object],
        exercises: Sequence[dict[str, object]],
    ) -> tuple[WorkoutEntry, list[WorkoutExercise]]:
        """Log a workout and its exercises atomically.

        Exercises without an ``order_index`` take their position in the list.
        """
        data = validate_input(WorkoutInput, payload)
        inputs = [validate_input(ExerciseInput, item) for item in exercises]
        order = _assign_order([item.order_index for item in inputs])
        workout = WorkoutEntry(
            id=str(uuid4()), created_at=self.clock(), **data.model_dump()
        )
        created = [
            WorkoutExercise(
                id=str(uuid4()),
                workout_entry_id=workout.id,
                **{**item.model_dump(), "order_index": index},
            )
            for item, index in zip(inputs, order, strict=True)
        ]
        with storage_errors("Failed to save workout"):
            with self.store.transaction([WORKOUT_ENTRIES, WORKOUT_EXERCISES]):
                self.store.put(WORKOUT_ENTRIES, to_record(workout))
                for exercise in created:
                    self.store.put(WORKOUT_EXERCISES, to_record(exercise))
        _logger.info("Logged workout %s with %s exercises", workout.id, len(created))
        return workout, created

    def get_workout(self, workout_id: str) -> WorkoutEntry | None:
        """Return a workout by id, if present."""
        with storage_errors("Failed to load workout"):
            row = self.store.get(WORKOUT_ENTRIES, workout_id)
        return parse_workout(row) if row is not None else None

    def get_workouts_for_date(self, workout_date: str) -> list[WorkoutEntry]:
        """Return a day's workouts in the order they were logged."""
        check_date("workout_date", workout_date)
        with storage_errors("Failed to load workouts"):
            rows = self.store.query(
                WORKOUT_ENTRIES,
                IndexQuery("workoutDate", equals=workout_date, order_by="createdAt"),
            )
        return [parse_workout(row) for row in rows]

    def get_workouts_in_range(
        self, start_date: str, end_date: str
    ) -> list[WorkoutEntry]:
        """Return workouts dated from ``start_date`` to ``end_date`` inclusive."""
        check_date("start_date", start_date)
        check_date("end_date", end_date)
        if start_date > end_date:
            raise ValidationError(
                "Invalid date range", {"end_date": "must not be before start_date"}
            )
        with storage_errors("Failed to load workouts"):
            rows = self.store.query(
                WORKOUT_ENTRIES,
                IndexQuery("workoutDate", lower=start_date, upper=end_date),
            )
        workouts = [parse_workout(row) for row in rows]
        return sorted(workouts, key=lambda item: (item.workout_date, item.created_at))

    def update_workout(
        self, workout_id: str, changes: dict[str, object]
    ) -> WorkoutEntry:
        """Apply a partial update to a workout header."""
        _reject_immutable(changes, {"id", "created_at"})
        with storage_errors("Failed to update workout"):
            with self.store.transaction([WORKOUT_ENTRIES]):
                existing = self.get_workout(workout_id)
                if existing is None:
                    raise NotFoundError(f"Workout {workout_id} not found", workout_id)
                data = validate_input(
                    WorkoutInput, _merge(existing, changes, {"id", "created_at"})
                )
                workout = dataclasses.replace(existing, **data.model_dump())
                self.store.put(WORKOUT_ENTRIES, to_record(workout))
        return workout

    def delete_workout(self, workout_id: str) -> None:
        """Delete a workout together with its exercises."""
        with storage_errors("Failed to delete workout"):
            with self.store.transaction([WORKOUT_ENTRIES, WORKOUT_EXERCISES]):
                self.store.delete_where(
                    WORKOUT_EXERCISES, IndexQuery("workoutEntryId", equals=workout_id)
                )
                self.store.delete(WORKOUT_ENTRIES, workout_id)

    def get_exercises_for_workout(self, workout_id: str) -> list[WorkoutExercise]:
        """Return a workout's exercises by ascending ``order_index``."""
        with storage_errors("Failed to load exercises"):
            rows = self.store.query(
                WORKOUT_EXERCISES,
                IndexQuery("workoutEntryId", equals=workout_id, order_by="orderIndex"),
            )
        return [parse_exercise(row) for row in rows]

    def add_exercise(
        self, workout_id: str, payload: dict[str, object]
    ) -> WorkoutExercise:
        """Append an exercise to an existing workout."""
        data = validate_input(ExerciseInput, payload)
        with storage_errors("Failed to save exercise"):
            with self.store.transaction([WORKOUT_ENTRIES, WORKOUT_EXERCISES]):
                if self.get_workout(workout_id) is None:
                    raise NotFoundError(f"Workout {workout_id} not found", workout_id)
                taken = [
                    item.order_index
                    for item in self.get_exercises_for_workout(workout_id)
                ]
                order_index = _next_order_index(data.order_index, taken)
                exercise = WorkoutExercise(
                    id=str(uuid4()),
                    workout_entry_id=workout_id,
                    **{**data.model_dump(), "order_index": order_index},
                )
                self.store.put(WORKOUT_EXERCISES, to_record(exercise))
        return exercise

    def update_exercise(
        self, exercise_id: str, changes: dict[str, object]
    ) -> WorkoutExercise:
        """Apply a partial update to an exercise."""
        immutable = {"id", "workout_entry_id"}
        _reject_immutable(changes, immutable)
        with storage_errors("Failed to update exercise"):
            with self.store.transaction([WORKOUT_EXERCISES]):
                row = self.store.get(WORKOUT_EXERCISES, exercise_id)
                if row is None:
                    raise NotFoundError(
                        f"Exercise {exercise_id} not found", exercise_id
                    )
                existing = parse_exercise(row)
                merged = _merge(existing, changes, immutable)
                data = validate_input(ExerciseInput, merged)
                workout_id = existing.workout_entry_id
                siblings = [
                    item.order_index
                    for item in self.get_exercises_for_workout(workout_id)
                    if item.id != exercise_id
                ]
                order_index = data.order_index
                if order_index is None:
                    order_index = existing.order_index
                if order_index in siblings:
                    raise ValidationError(
                        "Duplicate exercise order",
                        {"order_index": "must be unique within a workout"},
                    )
                exercise = dataclasses.replace(
                    existing, **{**data.model_dump(), "order_index": order_index}
                )
                self.store.put(WORKOUT_EXERCISES, to_record(exercise))
        return exercise

    def delete_exercise(self, exercise_id: str) -> None:
        """Delete one exercise."""
        with storage_errors("Failed to delete exercise"):
            self.store.delete(WORKOUT_EXERCISES, exercise_id)

    def get_total_count(self) -> int:
        """Return the number of logged workouts."""
        with storage_errors("Failed to count workouts"):
            return self.store.count(WORKOUT_ENTRIES)

    def add_preset_with_exercises(
        self,
        payload: dict[str, object],
        exercises: Sequence[dict[str, object]],
    ) -> tuple[WorkoutPreset, list[PresetExercise]]:
        """Save a preset and its exercises atomically."""
        data = validate_input(PresetInput, payload)
        inputs = [validate_input(PresetExerciseInput, item) for item in exercises]
        order = _assign_order([item.order_index for item in inputs])
        now = self.clock()
        preset = WorkoutPreset(
            id=str(uuid4()), created_at=now, updated_at=now, **data.model_dump()
        )
        created = [
            PresetExercise(
                id=str(uuid4()),
                preset_id=preset.id,
                **{**item.model_dump(), "order_index": index},
            )
            for item, index in zip(inputs, order, strict=True)
        ]
        with storage_errors("Failed to save workout preset"):
            with self.store.transaction([WORKOUT_PRESETS, PRESET_EXERCISES]):
                self.store.put(WORKOUT_PRESETS, to_record(preset))
                for exercise in created:
                    self.store.put(PRESET_EXERCISES, to_record(exercise))
        return preset, created

    def get_preset(self, preset_id: str) -> WorkoutPreset | None:
        """Return a preset by id, if present."""
        with storage_errors("Failed to load workout preset"):
            row = self.store.get(WORKOUT_PRESETS, preset_id)
        return parse_preset(row) if row is not None else None

    def list_presets(self) -> list[WorkoutPreset]:
        """Return every preset by name."""
        with storage_errors("Failed to load workout presets"):
            rows = self.store.query(WORKOUT_PRESETS, IndexQuery("presetName"))
        return [parse_preset(row) for row in rows]

    def get_preset_exercises(self, preset_id: str) -> list[PresetExercise]:
        """Return a preset's exercises by ascending ``order_index``."""
        with storage_errors("Failed to load preset exercises"):
            rows = self.store.query(
                PRESET_EXERCISES,
                IndexQuery("presetId", equals=preset_id, order_by="orderIndex"),
            )
        return [parse_preset_exercise(row) for row in rows]

    def delete_preset(self, preset_id: str) -> None:
        """Delete a preset together with its exercises.

        Workouts started from the preset keep their copy of the exercises.
        """
        with storage_errors("Failed to delete workout preset"):
            with self.store.transaction([WORKOUT_PRESETS, PRESET_EXERCISES]):
                self.store.delete_where(
                    PRESET_EXERCISES, IndexQuery("presetId", equals=preset_id)
                )
                self.store.delete(WORKOUT_PRESETS, preset_id)

    def start_workout_from_preset(
        self, preset_id: str, workout_date: str
    ) -> tuple[WorkoutEntry, list[WorkoutExercise]]:
        """Log a workout pre-filled with a preset's exercises and defaults."""
        preset = self.get_preset(preset_id)
        if preset is None:
            raise NotFoundError(f"Workout preset {preset_id} not found", preset_id)
        exercises = [
            {
                "exercise_name": item.exercise_name,
                "category": item.category,
                "order_index": item.order_index,
                "sets": item.default_sets,
                "reps": item.default_reps,
                "weight_kg": item.default_weight_kg,
            }
            for item in self.get_preset_exercises(preset_id)
        ]
        return self.add_workout_with_exercises(
            {
                "workout_date": workout_date,
                "workout_type": preset.workout_type,
                "preset_id": preset.id,
            },
            exercises,
        )


def _assign_order(requested: list[int | None]) -> list[int]:
    order = [
        index if index is not None else position
        for position, index in enumerate(requested)
    ]
    if len(set(order)) != len(order):
        raise ValidationError(
            "Duplicate exercise order",
            {"order_index": "must be unique within a workout"},
        )
    return order


def _next_order_index(requested: int | None, taken: list[int]) -> int:
    if requested is None:
        return max(taken, default=-1) + 1
    if requested in taken:
        raise ValidationError(
            "Duplicate exercise order",
            {"order_index": "must be unique within a workout"},
        )
    return requested


def _reject_immutable(changes: dict[str, object], immutable: set[str]) -> None:
    rejected = immutable & changes.keys()
    if rejected:
        raise ValidationError(
            "Cannot change immutable fields",
            {name: "is immutable" for name in sorted(rejected)},
        )


def _merge(
    existing: object, changes: dict[str, object], excluded: set[str]
) -> dict[str, object]:
    merged = {
        key: value
        for key, value in dataclasses.asdict(existing).items()  # type: ignore[call-overload]
        if key not in excluded
    }
    merged.update(changes)
    return merged
