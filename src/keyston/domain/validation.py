"""Pydantic models validating records before they are stored."""

import re
from datetime import date
from typing import Annotated, Literal, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from keyston.domain.diary import MealType
from keyston.domain.errors import ValidationError
from keyston.domain.nutrition import DataSource
from keyston.domain.workouts import ExerciseCategory, WorkoutType

ModelT = TypeVar("ModelT", bound=BaseModel)

_HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

Amount = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class _InputModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class DiaryEntryInput(_InputModel):
    """Fields accepted when logging a diary entry."""

    food_id: str = Field(min_length=1)
    entry_date: str
    meal_type: MealType
    serving_size: float = Field(gt=0, allow_inf_nan=False)
    serving_unit: str = Field(min_length=1)
    calories: float = Field(ge=0, allow_inf_nan=False)
    protein_g: float = Field(ge=0, allow_inf_nan=False)
    carbs_g: float = Field(ge=0, allow_inf_nan=False)
    fat_g: float = Field(ge=0, allow_inf_nan=False)
    fiber_g: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    sugar_g: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    sodium_mg: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    micronutrients: dict[str, Amount] | None = None

    @field_validator("entry_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return validate_date_string(value)


class FoodInput(_InputModel):
    """Fields accepted when creating a food."""

    name: str = Field(min_length=1)
    data_source: DataSource = "manual"
    serving_size_default: float = Field(default=100, gt=0, allow_inf_nan=False)
    serving_unit_default: str = Field(default="g", min_length=1)
    calories_per_serving: float = Field(default=0, ge=0, allow_inf_nan=False)
    protein_g: float = Field(default=0, ge=0, allow_inf_nan=False)
    carbs_g: float = Field(default=0, ge=0, allow_inf_nan=False)
    fat_g: float = Field(default=0, ge=0, allow_inf_nan=False)
    brand: str | None = Field(default=None, min_length=1)
    barcode: str | None = Field(default=None, min_length=1)
    external_id: str | None = Field(default=None, min_length=1)
    fiber_g: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    sugar_g: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    sodium_mg: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    micronutrients: dict[str, Amount] | None = None


class WorkoutInput(_InputModel):
    """Fields accepted when logging a workout header."""

    workout_date: str
    workout_type: WorkoutType
    preset_id: str | None = None
    start_time: str | None = Field(default=None, pattern=_HH_MM)
    end_time: str | None = Field(default=None, pattern=_HH_MM)
    duration_minutes: int | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("workout_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return validate_date_string(value)


class ExerciseInput(_InputModel):
    """Fields accepted for an exercise within a workout."""

    exercise_name: str = Field(min_length=1)
    category: ExerciseCategory = "other"
    order_index: int | None = Field(default=None, ge=0)
    sets: int | None = Field(default=None, ge=0)
    reps: int | None = Field(default=None, ge=0)
    weight_kg: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    duration_seconds: int | None = Field(default=None, ge=0)
    notes: str | None = None


class PresetInput(_InputModel):
    """Fields accepted when saving a workout preset."""

    preset_name: str = Field(min_length=1)
    workout_type: WorkoutType
    description: str | None = None


class PresetExerciseInput(_InputModel):
    """Fields accepted for an exercise within a preset."""

    exercise_name: str = Field(min_length=1)
    category: ExerciseCategory = "other"
    order_index: int | None = Field(default=None, ge=0)
    default_sets: int | None = Field(default=None, ge=0)
    default_reps: int | None = Field(default=None, ge=0)
    default_weight_kg: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class ProfileInput(_InputModel):
    """Profile fields of the user settings; every field is optional."""

    display_name: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    height_cm: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    current_weight_kg: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    daily_calorie_goal: float | None = Field(default=None, gt=0, allow_inf_nan=False)

    @field_validator("date_of_birth")
    @classmethod
    def _check_date(cls, value: str | None) -> str | None:
        return validate_date_string(value) if value is not None else None


class MacroTargetsInput(_InputModel):
    """Daily macro targets in grams."""

    protein: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    carbs: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    fat: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    fiber: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class PreferencesInput(_InputModel):
    """App preferences."""

    theme: Literal["light", "dark", "system"] | None = None
    measurement_system: Literal["metric", "imperial"] | None = None
    default_meal_type: MealType | None = None
    auto_backup: bool | None = None
    reminder_enabled: bool | None = None
    reminder_time: str | None = Field(default=None, pattern=_HH_MM)


class SyncSettingsInput(_InputModel):
    """Backup sync configuration."""

    sync_interval: Literal["manual", "daily", "weekly"] | None = None
    encryption_enabled: bool | None = None
    include_workouts: bool | None = None
    include_food_diary: bool | None = None
    include_favorites: bool | None = None


def validate_date_string(value: str) -> str:
    """Accept only real calendar dates written as ``YYYY-MM-DD``."""
    if not _ISO_DATE.fullmatch(value):
        raise ValueError("date must use YYYY-MM-DD format")
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError("date must be a valid YYYY-MM-DD date") from exc
    return value


def validate_input(model: type[ModelT], payload: dict[str, object]) -> ModelT:
    """Validate ``payload`` against ``model``, raising the domain ValidationError."""
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        fields = {
            ".".join(str(part) for part in error["loc"]) or "__root__": error["msg"]
            for error in exc.errors()
        }
        raise ValidationError(f"Invalid {_label(model)}", fields) from exc


def _label(model: type[BaseModel]) -> str:
    labels = {
        "DiaryEntryInput": "diary entry",
        "FoodInput": "food",
        "WorkoutInput": "workout",
        "ExerciseInput": "exercise",
        "PresetInput": "workout preset",
        "PresetExerciseInput": "preset exercise",
        "ProfileInput": "settings",
        "MacroTargetsInput": "macro targets",
        "PreferencesInput": "preferences",
        "SyncSettingsInput": "sync settings",
    }
    return labels.get(model.__name__, model.__name__)


def check_date(name: str, value: str) -> None:
    """Raise the domain ValidationError unless ``value`` is a YYYY-MM-DD date."""
    try:
        validate_date_string(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}", {name: str(exc)}) from exc
