"""Use case: read and partially update the stored torrent preferences."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

import structlog

from downloadarr.domain.entities.errors import ValidationError, ValidationErrorKind
from downloadarr.domain.entities.preferences import (
    TorrentCategory,
    TorrentFormat,
    TorrentPreferences,
    TorrentQuality,
)
from downloadarr.domain.ports.preferences_store import PreferencesStore

log = structlog.get_logger(__name__)

_LIST_FIELDS = {
    "preferred_qualities",
    "preferred_formats",
    "trusted_indexers",
    "blacklisted_words",
}
_BOOL_FIELDS = {"auto_select_best", "prefer_remux", "prefer_small_size"}
_KNOWN_FIELDS = _LIST_FIELDS | _BOOL_FIELDS | {
    "default_category",
    "min_seeders",
    "max_size_gb",
}


def _invalid(field: str, message: str) -> ValidationError:
    return ValidationError(ValidationErrorKind.INVALID_VALUE, message, field=field)


def _parse_list(field: str, value: Any, parse) -> list:
    if not isinstance(value, list):
        raise ValidationError(
            ValidationErrorKind.NOT_A_LIST,
            f"{field} must be a list",
            field=field,
        )
    out = []
    for item in value:
        try:
            parsed = parse(item)
        except ValueError as e:
            raise _invalid(field, str(e)) from e
        if parsed not in out:
            out.append(parsed)
    return out


def _parse_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{value!r} is not a string")
    return value.strip()


def validate_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a partial update and coerce it to entity types.

    Raises:
        ValidationError: with a distinct ``kind`` per rule violated.
    """
    changes: dict[str, Any] = {}
    for field, value in patch.items():
        if field not in _KNOWN_FIELDS:
            raise ValidationError(
                ValidationErrorKind.UNKNOWN_FIELD,
                f"Unknown preferences field: {field}",
                field=field,
            )

        if field == "preferred_qualities":
            changes[field] = _parse_list(field, value, TorrentQuality.parse)
        elif field == "preferred_formats":
            changes[field] = _parse_list(field, value, TorrentFormat.parse)
        elif field in ("trusted_indexers", "blacklisted_words"):
            changes[field] = [v for v in _parse_list(field, value, _parse_str) if v]
        elif field in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise _invalid(field, f"{field} must be a boolean")
            changes[field] = value
        elif field == "default_category":
            try:
                changes[field] = TorrentCategory.parse(value)
            except ValueError as e:
                raise _invalid(field, str(e)) from e
        elif field == "min_seeders":
            if isinstance(value, bool) or not isinstance(value, int):
                raise _invalid(field, "min_seeders must be an integer")
            if value < 0:
                raise ValidationError(
                    ValidationErrorKind.NEGATIVE_MIN_SEEDERS,
                    "min_seeders must not be negative",
                    field=field,
                )
            changes[field] = value
        elif field == "max_size_gb":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise _invalid(field, "max_size_gb must be a number")
            if value < 1:
                raise ValidationError(
                    ValidationErrorKind.MAX_SIZE_TOO_SMALL,
                    "max_size_gb must be at least 1",
                    field=field,
                )
            changes[field] = float(value)
    return changes


class PreferencesService:
    """Get/update of the installation-wide preferences record.

    A missing record reads as the built-in defaults.
    """

    def __init__(self, store: PreferencesStore) -> None:
        self._store = store

    async def get(self) -> TorrentPreferences:
        stored = await self._store.get()
        return stored if stored is not None else TorrentPreferences()

    async def update(self, patch: Mapping[str, Any]) -> TorrentPreferences:
        """Merge *patch* over the current record; unspecified fields are kept."""
        changes = validate_patch(patch)
        current = await self.get()
        updated = replace(current, **changes)
        await self._store.save(updated)
        log.info("preferences_updated", fields=sorted(changes))
        return updated
