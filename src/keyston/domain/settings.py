"""Singleton settings records: user preferences and backup sync metadata."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from keyston.domain.records import (
    optional_float,
    optional_int,
    optional_str,
    parse_datetime,
)

USER_SETTINGS_ID = "settings"
SYNC_METADATA_ID = "sync"


@dataclass(frozen=True)
class MacroTargets:
    """Daily macro targets in grams."""

    protein: float = 150
    carbs: float = 200
    fat: float = 65
    fiber: float | None = None


@dataclass(frozen=True)
class UserPreferences:
    """App behaviour preferences."""

    theme: str = "system"
    measurement_system: str = "metric"
    default_meal_type: str = "breakfast"
    auto_backup: bool = False
    reminder_enabled: bool = False
    reminder_time: str | None = None


@dataclass(frozen=True)
class UserSettings:
    """User profile and goals, stored as the single ``settings`` record."""

    updated_at: datetime
    id: str = USER_SETTINGS_ID
    daily_calorie_goal: float = 2000
    macro_targets: MacroTargets = field(default_factory=MacroTargets)
    preferences: UserPreferences = field(default_factory=UserPreferences)
    display_name: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    height_cm: float | None = None
    current_weight_kg: float | None = None


@dataclass(frozen=True)
class SyncSettings:
    """Backup sync configuration."""

    sync_interval: str = "manual"
    encryption_enabled: bool = True
    include_workouts: bool = True
    include_food_diary: bool = True
    include_favorites: bool = True
    last_backup_size: int | None = None


@dataclass(frozen=True)
class SyncMetadata:
    """Remote backup bookkeeping, stored as the single ``sync`` record."""

    id: str = SYNC_METADATA_ID
    auto_sync_enabled: bool = False
    sync_settings: SyncSettings = field(default_factory=SyncSettings)
    last_sync_at: datetime | None = None
    last_sync_file_id: str | None = None


def default_user_settings() -> UserSettings:
    """Return fresh default settings."""
    return UserSettings(updated_at=datetime.now(tz=UTC))


def parse_user_settings(row: dict[str, object]) -> UserSettings:
    """Parse the stored settings document."""
    macros = _as_dict(row.get("macroTargets"))
    prefs = _as_dict(row.get("preferences"))
    return UserSettings(
        id=USER_SETTINGS_ID,
        updated_at=parse_datetime(row.get("updatedAt")) or datetime.now(tz=UTC),
        daily_calorie_goal=float(row.get("dailyCalorieGoal", 2000)),  # type: ignore[arg-type]
        macro_targets=MacroTargets(
            protein=float(macros.get("protein", 150)),
            carbs=float(macros.get("carbs", 200)),
            fat=float(macros.get("fat", 65)),
            fiber=optional_float(macros.get("fiber")),
        ),
        preferences=UserPreferences(
            theme=str(prefs.get("theme", "system")),
            measurement_system=str(prefs.get("measurementSystem", "metric")),
            default_meal_type=str(prefs.get("defaultMealType", "breakfast")),
            auto_backup=bool(prefs.get("autoBackup", False)),
            reminder_enabled=bool(prefs.get("reminderEnabled", False)),
            reminder_time=optional_str(prefs.get("reminderTime")),
        ),
        display_name=optional_str(row.get("displayName")),
        date_of_birth=optional_str(row.get("dateOfBirth")),
        gender=optional_str(row.get("gender")),
        height_cm=optional_float(row.get("heightCm")),
        current_weight_kg=optional_float(row.get("currentWeightKg")),
    )


def parse_sync_metadata(row: dict[str, object]) -> SyncMetadata:
    """Parse the stored sync metadata document."""
    raw_settings = _as_dict(row.get("syncSettings"))
    return SyncMetadata(
        id=SYNC_METADATA_ID,
        auto_sync_enabled=bool(row.get("autoSyncEnabled", False)),
        sync_settings=SyncSettings(
            sync_interval=str(raw_settings.get("syncInterval", "manual")),
            encryption_enabled=bool(raw_settings.get("encryptionEnabled", True)),
            include_workouts=bool(raw_settings.get("includeWorkouts", True)),
            include_food_diary=bool(raw_settings.get("includeFoodDiary", True)),
            include_favorites=bool(raw_settings.get("includeFavorites", True)),
            last_backup_size=optional_int(raw_settings.get("lastBackupSize")),
        ),
        last_sync_at=parse_datetime(row.get("lastSyncAt")),
        last_sync_file_id=optional_str(row.get("lastSyncFileId")),
    )


def _as_dict(raw: object) -> dict[str, object]:
    return raw if isinstance(raw, dict) else {}
