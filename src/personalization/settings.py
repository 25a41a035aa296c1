"""Loading and saving personalization settings.

Stored settings hold only the values a user or admin changed; they are merged
over the defaults of ``PersonalizationSettings`` on every load.
"""

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from src.personalization.models import PersonalizationSettings
from src.personalization.storage import KeyValueStore, StorageKeys

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = PersonalizationSettings()


def _normalize_keys(overrides: Mapping[str, Any]) -> dict:
    """Rename camelCase setting keys to their attribute names."""
    names = {
        field.alias or name: name
        for name, field in PersonalizationSettings.model_fields.items()
    }
    return {names.get(key, key): value for key, value in overrides.items()}


def load_settings(store: KeyValueStore) -> PersonalizationSettings:
    """Load settings, merging stored overrides over the defaults.

    Each stored override is checked on its own: an out-of-range value falls
    back to its default while the other overrides still apply. Corrupted
    stored data yields the defaults.
    """
    stored = store.read_json(StorageKeys.PERSONALIZATION_SETTINGS, default=None)
    if not isinstance(stored, dict):
        return PersonalizationSettings()

    merged = DEFAULT_SETTINGS.model_dump(by_alias=False)
    dropped = []
    for key, value in _normalize_keys(stored).items():
        try:
            PersonalizationSettings.model_validate({**merged, key: value})
        except ValidationError:
            dropped.append(key)
            continue
        merged[key] = value

    if dropped:
        logger.warning(
            "Ignoring invalid stored settings",
            extra={"dropped_settings": sorted(dropped)},
        )
    return PersonalizationSettings.model_validate(merged)


def save_settings(
    store: KeyValueStore,
    overrides: Mapping[str, Any],
) -> PersonalizationSettings:
    """Merge ``overrides`` over the current settings and persist them.

    Args:
        store: Store holding the settings.
        overrides: Setting values keyed by their stored (camelCase) or
            attribute (snake_case) names.

    Returns:
        The settings now in effect.

    Raises:
        ValidationError: If the merged settings are out of range.
    """
    with store.lock(StorageKeys.PERSONALIZATION_SETTINGS):
        current = load_settings(store).model_dump(by_alias=False)
        updated = PersonalizationSettings.model_validate(
            {**current, **_normalize_keys(overrides)}
        )
        store.write_json(StorageKeys.PERSONALIZATION_SETTINGS, updated.to_storage())

    logger.info("Personalization settings updated", extra={"settings": updated.to_storage()})
    return updated


def reset_settings(store: KeyValueStore) -> PersonalizationSettings:
    """Drop stored overrides so the defaults apply again."""
    with store.lock(StorageKeys.PERSONALIZATION_SETTINGS):
        store.remove(StorageKeys.PERSONALIZATION_SETTINGS)
    logger.info("Personalization settings reset to defaults")
    return PersonalizationSettings()
