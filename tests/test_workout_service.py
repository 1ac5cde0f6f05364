"""Tests for workouts and workout presets."""

from dataclasses import dataclass

import pytest

from keyston.adapters.sqlite_store import SqliteStore
from keyston.domain.errors import NotFoundError, StorageError, ValidationError
from keyston.services.storage import WORKOUT_ENTRIES, WORKOUT_EXERCISES
from keyston.services.workouts import WorkoutService


@dataclass
class FailingExerciseStore(SqliteStore):
    """Store that fails when writing the second exercise of a workout."""

    def put(self, collection: str, record: dict[str, object]) -> None:
        if collection == WORKOUT_EXERCISES and record.get("orderIndex") == 1:
            raise StorageError("disk full")
        super().put(collection, record)


def _workout(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "workout_date": "2024-01-15",
        "workout_type": "strength",
    }
    payload.update(overrides)
    return payload


def _exercises() -> list[dict[str, object]]:
    return [
        {"exercise_name": "Squat", "category": "legs", "sets": 5, "reps": 5},
        {"exercise_name": "Bench Press", "category": "chest", "weight_kg": 80},
        {"exercise_name": "Plank", "category": "core", "duration_seconds": 60},
    ]


def test_add_workout_with_exercises(store: SqliteStore) -> None:
    service = WorkoutService(store)

    workout, exercises = service.add_workout_with_exercises(
        _workout(start_time="07:30", duration_minutes=45), _exercises()
    )

    assert service.get_workout(workout.id) == workout
    loaded = service.get_exercises_for_workout(workout.id)
    assert [item.exercise_name for item in loaded] == ["Squat", "Bench Press", "Plank"]
    assert [item.order_index for item in loaded] == [0, 1, 2]
    assert loaded == exercises
    assert service.get_total_count() == 1


def test_add_workout_rejects_duplicate_order(store: SqliteStore) -> None:
    service = WorkoutService(store)
    exercises = [
        {"exercise_name": "Squat", "order_index": 1},
        {"exercise_name": "Lunge", "order_index": 1},
    ]

    with pytest.raises(ValidationError):
        service.add_workout_with_exercises(_workout(), exercises)

    assert service.get_total_count() == 0


def test_add_workout_validates_fields(store: SqliteStore) -> None:
    service = WorkoutService(store)

    with pytest.raises(ValidationError):
        service.add_workout(_workout(workout_type="yoga"))
    with pytest.raises(ValidationError):
        service.add_workout(_workout(start_time="25:00"))
    with pytest.raises(ValidationError):
        service.add_workout(_workout(workout_date="2024-13-01"))


def test_failed_exercise_write_leaves_no_partial_workout() -> None:
    store = FailingExerciseStore.open(":memory:")
    service = WorkoutService(store)

    with pytest.raises(StorageError) as info:
        service.add_workout_with_exercises(_workout(), _exercises())

    assert str(info.value) == "Failed to save workout"
    assert isinstance(info.value.__cause__, StorageError)
    assert store.count(WORKOUT_ENTRIES) == 0
    assert store.count(WORKOUT_EXERCISES) == 0
    store.close()


def test_workouts_by_date_and_range(store: SqliteStore) -> None:
    service = WorkoutService(store)
    for day in ("2024-01-14", "2024-01-15", "2024-01-16"):
        service.add_workout(_workout(workout_date=day))

    assert len(service.get_workouts_for_date("2024-01-15")) == 1
    in_range = service.get_workouts_in_range("2024-01-15", "2024-01-16")
    assert [item.workout_date for item in in_range] == ["2024-01-15", "2024-01-16"]


def test_update_and_delete_workout_cascades(store: SqliteStore) -> None:
    service = WorkoutService(store)
    workout, _ = service.add_workout_with_exercises(_workout(), _exercises())

    updated = service.update_workout(workout.id, {"notes": "felt strong"})
    assert updated.notes == "felt strong"
    assert updated.workout_type == "strength"
    with pytest.raises(NotFoundError):
        service.update_workout("missing", {"notes": "x"})

    service.delete_workout(workout.id)

    assert service.get_workout(workout.id) is None
    assert store.count(WORKOUT_EXERCISES) == 0


def test_exercise_operations(store: SqliteStore) -> None:
    service = WorkoutService(store)
    workout, exercises = service.add_workout_with_exercises(_workout(), _exercises())

    added = service.add_exercise(
        workout.id, {"exercise_name": "Row", "category": "back"}
    )
    assert added.order_index == 3
    with pytest.raises(ValidationError):
        service.add_exercise(workout.id, {"exercise_name": "Dip", "order_index": 0})
    with pytest.raises(NotFoundError):
        service.add_exercise("missing", {"exercise_name": "Dip"})

    updated = service.update_exercise(exercises[0].id, {"reps": 8})
    assert updated.reps == 8
    assert updated.sets == 5
    with pytest.raises(ValidationError):
        service.update_exercise(exercises[0].id, {"order_index": 1})

    service.delete_exercise(added.id)
    assert len(service.get_exercises_for_workout(workout.id)) == 3


def test_presets_round_trip_and_start_workout(store: SqliteStore) -> None:
    service = WorkoutService(store)
    preset, preset_exercises = service.add_preset_with_exercises(
        {"preset_name": "Leg Day", "workout_type": "strength"},
        [
            {"exercise_name": "Squat", "category": "legs", "default_sets": 5},
            {"exercise_name": "Calf Raise", "category": "legs", "default_reps": 15},
        ],
    )
    service.add_preset_with_exercises(
        {"preset_name": "Cardio", "workout_type": "cardio"}, []
    )

    assert service.get_preset(preset.id) == preset
    assert [item.preset_name for item in service.list_presets()] == [
        "Cardio",
        "Leg Day",
    ]
    assert service.get_preset_exercises(preset.id) == preset_exercises

    workout, exercises = service.start_workout_from_preset(preset.id, "2024-01-20")

    assert workout.preset_id == preset.id
    assert workout.workout_type == "strength"
    assert [(item.exercise_name, item.sets, item.reps) for item in exercises] == [
        ("Squat", 5, None),
        ("Calf Raise", None, 15),
    ]

    service.delete_preset(preset.id)
    assert service.get_preset(preset.id) is None
    assert service.get_preset_exercises(preset.id) == []
    assert len(service.get_exercises_for_workout(workout.id)) == 2
    with pytest.raises(NotFoundError):
        service.start_workout_from_preset(preset.id, "2024-01-21")
