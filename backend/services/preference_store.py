"""
Preference Store - App preferences, theme and the customer form draft.

Values are kept as JSON strings in a key-value store (the same shape the
browser kept in localStorage). Draft expiry reads time from an injected
clock so it can be tested without waiting.

Draft Lifecycle:
save → (load within 24h) → restored
     → (load after 24h)  → deleted, nothing restored
     → (submit/dismiss)  → cleared
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from models import AppPreferences, CustomerType, FormDraft, Theme

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "b2b-portal-preferences"
FORM_DRAFT_KEY = "b2b-portal-form-draft"
THEME_KEY = "theme"
DRAFT_MAX_AGE = timedelta(hours=24)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryKeyValueStore:
    """String key-value store (for production, swap in a shared backend)."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


class PreferencesService:
    def __init__(self, store: InMemoryKeyValueStore):
        self.store = store

    def get_preferences(self) -> AppPreferences:
        raw = self.store.get(PREFERENCES_KEY)
        if not raw:
            return AppPreferences()
        try:
            stored = json.loads(raw)
            return AppPreferences(**{**AppPreferences().model_dump(), **stored})
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to load preferences: {e}")
            return AppPreferences()

    def update_preferences(self, updates: Dict[str, Any]) -> AppPreferences:
        merged = {**self.get_preferences().model_dump(mode="json"), **updates}
        preferences = AppPreferences(**merged)
        self.store.set(PREFERENCES_KEY, preferences.model_dump_json())
        return preferences

    def get_theme(self) -> Optional[Theme]:
        raw = self.store.get(THEME_KEY)
        try:
            return Theme(raw) if raw else None
        except ValueError:
            logger.warning(f"Ignoring unknown stored theme: {raw}")
            return None

    def set_theme(self, theme: Theme) -> Theme:
        theme = Theme(theme)
        self.store.set(THEME_KEY, theme.value)
        return theme


class FormDraftService:
    def __init__(self, store: InMemoryKeyValueStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    def save_draft(self, name: str, customer_type: CustomerType = CustomerType.ORG) -> FormDraft:
        draft = FormDraft(name=name, customer_type=customer_type, timestamp=self._now_ms())
        self.store.set(FORM_DRAFT_KEY, draft.model_dump_json())
        return draft

    def load_draft(self) -> Optional[FormDraft]:
        """Stored draft if younger than 24 hours; stale drafts are removed."""
        raw = self.store.get(FORM_DRAFT_KEY)
        if not raw:
            return None
        try:
            draft = FormDraft(**json.loads(raw))
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load form draft: {e}")
            return None

        age_ms = self._now_ms() - draft.timestamp
        if age_ms < DRAFT_MAX_AGE.total_seconds() * 1000:
            return draft

        logger.info("Discarding expired form draft")
        self.store.delete(FORM_DRAFT_KEY)
        return None

    def clear_draft(self) -> None:
        self.store.delete(FORM_DRAFT_KEY)


# Shared store for the API process
preference_store = InMemoryKeyValueStore()
preferences_service = PreferencesService(preference_store)
form_draft_service = FormDraftService(preference_store)
