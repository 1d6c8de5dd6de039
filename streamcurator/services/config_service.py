"""Configuration service — loads, saves, and provides access to AppConfig."""
from __future__ import annotations

import json
import logging
import os

from pydantic import ValidationError

from streamcurator.models.config import IGNORABLE_FIELDS, AppConfig

logger = logging.getLogger(__name__)

MIN_SYNC_CHECK_INTERVAL = 300


class ConfigService:
    """Manages application configuration with file persistence.

    The config is kept in-memory after first load and re-read on explicit
    ``load()`` calls.  Routes and services depend on this service rather
    than reading the JSON directly.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: dict = self._default_config()

    @staticmethod
    def _default_config() -> dict:
        return AppConfig().model_dump()

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load configuration from disk, filling in defaults for missing keys."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    raw = json.load(f)
                self._config = AppConfig.model_validate(raw).model_dump()
                return self._config
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Error loading config: {e}")

        self._config = self._default_config()
        return self._config

    def save(self, config: dict | None = None) -> None:
        """Persist the config to disk."""
        if config is not None:
            self._config = AppConfig.model_validate(config).model_dump()
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._config, f, indent=2)

    def update_options(self, data: dict) -> dict:
        """Merge *data* into ``options`` and persist. Raises ``ValidationError``."""
        merged = dict(self._config)
        options = dict(merged.get("options", {}))
        for key, value in data.items():
            if key == "sync" and isinstance(value, dict):
                options["sync"] = {**options.get("sync", {}), **value}
            else:
                options[key] = value
        merged["options"] = options
        self.save(merged)
        return self._config["options"]

    @property
    def config(self) -> dict:
        return self._config

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def get_playlist_cache_ttl(self) -> int:
        return self._config.get("options", {}).get("playlist_cache_ttl", 86400)

    playlist_cache_ttl = property(get_playlist_cache_ttl)

    def get_default_page_size(self) -> int:
        return self._config.get("options", {}).get("default_page_size", 50)

    def _sync_options(self) -> dict:
        return self._config.get("options", {}).get("sync", {})

    def get_sync_enabled(self) -> bool:
        return self._sync_options().get("enabled", True)

    sync_enabled = property(get_sync_enabled)

    def get_sync_check_interval(self) -> int:
        interval = self._sync_options().get("check_interval", 3600)
        return max(interval, MIN_SYNC_CHECK_INTERVAL)

    sync_check_interval = property(get_sync_check_interval)

    def get_ignore_fields(self) -> list[str]:
        return [f for f in self._sync_options().get("ignore_fields", []) if f in IGNORABLE_FIELDS]

    ignore_fields = property(get_ignore_fields)

    def get_sync_retries(self) -> int:
        return self._sync_options().get("retries", 2)
