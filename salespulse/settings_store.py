"""
Dashboard settings persistence.

Settings are a small JSON object stored under one key in a pluggable
backend. Reads are cached in-process; every backend failure degrades to
the cached copy or to the defaults, so the dashboard never fails to load
because of settings.

Provenance markers returned alongside settings:
    defaults        nothing stored (or no backend configured)
    persisted       loaded from / saved to the backend
    memory          saved in-process only (backend missing or failing)
    error-fallback  backend failed and nothing was cached
"""
from __future__ import annotations

import json
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from pydantic import ValidationError

from models.dashboard_models import DashboardSettings
from salespulse import supabase_client
from salespulse.errors import SettingsBackendError
from salespulse.logger import setup_logger

logger = setup_logger("settings_store")

SETTINGS_KEY = "dashboard_settings"

SOURCE_DEFAULTS = "defaults"
SOURCE_PERSISTED = "persisted"
SOURCE_MEMORY = "memory"
SOURCE_ERROR = "error-fallback"


class SettingsBackend(Protocol):
    name: str

    def load(self, key: str) -> Optional[dict]: ...

    def save(self, key: str, value: dict) -> None: ...


class MemorySettingsBackend:
    """Process-local backend, for tests and single-instance deployments."""

    name = "memory"

    def __init__(self, initial: Optional[Dict[str, dict]] = None):
        self._values: Dict[str, dict] = dict(initial or {})

    def load(self, key: str) -> Optional[dict]:
        value = self._values.get(key)
        return dict(value) if value is not None else None

    def save(self, key: str, value: dict) -> None:
        self._values[key] = dict(value)


class SupabaseSettingsBackend:
    """Row per key in the dashboard_settings table (key text, value jsonb)."""

    name = "supabase"

    def load(self, key: str) -> Optional[dict]:
        value = supabase_client.read_value(key)
        if isinstance(value, str):
            value = json.loads(value)
        if value is not None and not isinstance(value, dict):
            raise SettingsBackendError("Stored settings are not an object", backend=self.name)
        return value

    def save(self, key: str, value: dict) -> None:
        supabase_client.write_value(key, value)


def build_backend() -> Optional[SettingsBackend]:
    """Supabase when configured, otherwise no durable backend."""
    if supabase_client.is_configured():
        return SupabaseSettingsBackend()
    logger.info("No settings backend configured; settings live in memory")
    return None


def merge_settings(stored: Optional[dict]) -> DashboardSettings:
    """Shallow-merge *stored* over the defaults, dropping internal and unknown keys."""
    merged = DashboardSettings().to_public()
    for key, value in (stored or {}).items():
        if key.startswith("_") or key not in merged:
            continue
        merged[key] = value
    return DashboardSettings.model_validate(merged)


class SettingsStore:
    """Cached get/set over an optional SettingsBackend."""

    def __init__(self, backend: Optional[SettingsBackend] = None,
                 ttl_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[Tuple[DashboardSettings, str, float]] = None

    def _remember(self, settings: DashboardSettings, source: str) -> Tuple[DashboardSettings, str]:
        self._cached = (settings, source, self._clock())
        return settings, source

    def get(self) -> Tuple[DashboardSettings, str]:
        """Current settings and where they came from. Never raises."""
        if self._cached is not None:
            settings, source, stored_at = self._cached
            fresh = self._clock() - stored_at < self.ttl_seconds
            # unsaved writes stick until a save succeeds
            if self.backend is None or fresh or source == SOURCE_MEMORY:
                return settings, source

        if self.backend is None:
            return DashboardSettings(), SOURCE_DEFAULTS

        try:
            stored = self.backend.load(SETTINGS_KEY)
            if stored is None:
                return self._remember(DashboardSettings(), SOURCE_DEFAULTS)
            return self._remember(merge_settings(stored), SOURCE_PERSISTED)
        except (ValidationError, SettingsBackendError, ValueError) as e:
            logger.warning("Stored settings unusable, using defaults: %s", e)
            return DashboardSettings(), SOURCE_ERROR
        except Exception as e:
            logger.warning("Settings backend '%s' unavailable: %s", self.backend.name, e)
            if self._cached is not None:
                settings, source, _ = self._cached
                return settings, source
            return DashboardSettings(), SOURCE_ERROR

    def set(self, partial: dict) -> Tuple[DashboardSettings, bool]:
        """
        Replace stored settings with *partial* merged over the defaults.

        Returns:
            (settings, persisted). persisted is False when the value only
            reached the in-memory cache.

        Raises:
            ValidationError: *partial* holds out-of-range values.
        """
        settings = merge_settings(partial)
        persisted = False
        if self.backend is not None:
            try:
                self.backend.save(SETTINGS_KEY, settings.to_public())
                persisted = True
            except Exception as e:
                logger.warning(
                    "Settings backend '%s' save failed, keeping in memory: %s",
                    self.backend.name, e,
                )
        self._remember(settings, SOURCE_PERSISTED if persisted else SOURCE_MEMORY)
        return settings, persisted
