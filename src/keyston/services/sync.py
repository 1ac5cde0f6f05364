"""Backup export and restore, plus the bookkeeping for remote sync."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from keyston.domain.errors import ValidationError
from keyston.domain.records import now_utc, to_record
from keyston.domain.settings import (
    SYNC_METADATA_ID,
    SyncMetadata,
    SyncSettings,
    parse_sync_metadata,
)
from keyston.domain.validation import SyncSettingsInput, validate_input
from keyston.services.storage import (
    FAVORITE_FOODS,
    FOOD_DIARY_ENTRIES,
    SYNC_METADATA,
    WORKOUT_ENTRIES,
    WORKOUT_EXERCISES,
    PersistentStore,
    storage_errors,
)

_logger = logging.getLogger(__name__)


@dataclass
class SyncService:
    """Serializes the local store for backup and applies restored backups.

    Moving backup bytes to and from remote storage is left to the caller,
    which reports completed uploads through ``record_sync``.
    """

    store: PersistentStore
    clock: Callable[[], datetime] = field(default=now_utc)

    def get_metadata(self) -> SyncMetadata:
        """Return stored sync metadata, or defaults when none are stored."""
        with storage_errors("Failed to load sync metadata"):
            row = self.store.get(SYNC_METADATA, SYNC_METADATA_ID)
        return parse_sync_metadata(row) if row is not None else SyncMetadata()

    def update_sync_settings(
        self, changes: dict[str, object], auto_sync_enabled: bool | None = None
    ) -> SyncMetadata:
        """Update sync settings and optionally toggle automatic sync."""
        data = validate_input(SyncSettingsInput, changes)
        updates = data.model_dump(exclude_none=True)

        def change(metadata: SyncMetadata) -> SyncMetadata:
            updated = replace(
                metadata, sync_settings=replace(metadata.sync_settings, **updates)
            )
            if auto_sync_enabled is not None:
                updated = replace(updated, auto_sync_enabled=auto_sync_enabled)
            return updated

        return self._save(change)

    def create_backup(self) -> bytes:
        """Export the store as UTF-8 JSON, honouring the include flags."""
        settings = self.get_metadata().sync_settings
        with storage_errors("Failed to create backup"):
            snapshot = self.store.export_all()
        for collection in _excluded_collections(settings):
            snapshot.pop(collection, None)
        payload = json.dumps(snapshot, sort_keys=True).encode("utf-8")
        self._save(
            lambda metadata: replace(
                metadata,
                sync_settings=replace(
                    metadata.sync_settings, last_backup_size=len(payload)
                ),
            )
        )
        _logger.info("Created backup of %s bytes", len(payload))
        return payload

    def restore_backup(self, payload: bytes) -> None:
        """Replace local data with a backup produced by ``create_backup``."""
        try:
            snapshot = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(
                "Backup is not valid JSON", {"backup": "unreadable"}
            ) from exc
        if not isinstance(snapshot, dict):
            raise ValidationError("Malformed backup", {"backup": "expected an object"})
        with storage_errors("Failed to restore backup"):
            self.store.apply_snapshot(snapshot)
        _logger.info("Restored backup exported at %s", snapshot.get("exportedAt"))

    def record_sync(self, file_id: str) -> SyncMetadata:
        """Remember the remote file of the latest successful sync."""
        return self._save(
            lambda metadata: replace(
                metadata, last_sync_at=self.clock(), last_sync_file_id=file_id
            )
        )

    def _save(self, change: Callable[[SyncMetadata], SyncMetadata]) -> SyncMetadata:
        with storage_errors("Failed to save sync metadata"):
            with self.store.transaction([SYNC_METADATA]):
                metadata = change(self.get_metadata())
                self.store.put(SYNC_METADATA, to_record(metadata))
        return metadata


def _excluded_collections(settings: SyncSettings) -> list[str]:
    excluded: list[str] = []
    if not settings.include_food_diary:
        excluded.append(FOOD_DIARY_ENTRIES)
    if not settings.include_favorites:
        excluded.append(FAVORITE_FOODS)
    if not settings.include_workouts:
        excluded.extend((WORKOUT_ENTRIES, WORKOUT_EXERCISES))
    return excluded
