"""User settings service."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from pydantic import BaseModel

from keyston.domain.errors import ValidationError
from keyston.domain.records import now_utc, to_record
from keyston.domain.settings import (
    USER_SETTINGS_ID,
    UserSettings,
    parse_user_settings,
)
from keyston.domain.validation import (
    MacroTargetsInput,
    PreferencesInput,
    ProfileInput,
    validate_input,
)
from keyston.services.storage import USER_SETTINGS, PersistentStore, storage_errors

_PROFILE_NULLABLE = frozenset(
    {"display_name", "date_of_birth", "gender", "height_cm", "current_weight_kg"}
)

_logger = logging.getLogger(__name__)


@dataclass
class UserSettingsService:
    """Service for the single user settings record."""

    store: PersistentStore
    clock: Callable[[], datetime] = field(default=now_utc)

    def get_settings(self) -> UserSettings:
        """Return stored settings, or defaults when none are stored."""
        with storage_errors("Failed to load settings"):
            row = self.store.get(USER_SETTINGS, USER_SETTINGS_ID)
        if row is None:
            return UserSettings(updated_at=self.clock())
        return parse_user_settings(row)

    def update_settings(self, changes: dict[str, object]) -> UserSettings:
        """Update profile fields and the calorie goal."""
        data = validate_input(ProfileInput, changes)
        updates = _provided(data, nullable=_PROFILE_NULLABLE)
        return self._save(lambda settings: replace(settings, **updates))

    def update_calorie_goal(self, goal: float) -> UserSettings:
        """Set the daily calorie goal; it must be positive."""
        if goal <= 0:
            raise ValidationError(
                "Invalid calorie goal", {"daily_calorie_goal": "must be greater than 0"}
            )
        return self._save(lambda settings: replace(settings, daily_calorie_goal=goal))

    def update_macro_targets(self, changes: dict[str, object]) -> UserSettings:
        """Update some or all macro targets."""
        data = validate_input(MacroTargetsInput, changes)
        updates = _provided(data, nullable=frozenset({"fiber"}))
        return self._save(
            lambda settings: replace(
                settings, macro_targets=replace(settings.macro_targets, **updates)
            )
        )

    def update_preferences(self, changes: dict[str, object]) -> UserSettings:
        """Update some or all app preferences."""
        data = validate_input(PreferencesInput, changes)
        updates = _provided(data, nullable=frozenset({"reminder_time"}))
        return self._save(
            lambda settings: replace(
                settings, preferences=replace(settings.preferences, **updates)
            )
        )

    def reset_to_defaults(self) -> UserSettings:
        """Replace stored settings with defaults."""
        settings = UserSettings(updated_at=self.clock())
        with storage_errors("Failed to reset settings"):
            self.store.put(USER_SETTINGS, to_record(settings))
        _logger.info("User settings reset to defaults")
        return settings

    def _save(self, change: Callable[[UserSettings], UserSettings]) -> UserSettings:
        with storage_errors("Failed to save settings"):
            with self.store.transaction([USER_SETTINGS]):
                settings = replace(change(self.get_settings()), updated_at=self.clock())
                self.store.put(USER_SETTINGS, to_record(settings))
        return settings


def _provided(data: BaseModel, nullable: frozenset[str]) -> dict[str, object]:
    """Return the fields the caller set; only ``nullable`` ones may be cleared."""
    return {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in nullable
    }
