"""
Configuration for the account sync engine.

Values come from (in increasing precedence) the dataclass defaults, the
``account_sync`` section of a settings YAML file, and ``ACCOUNT_SYNC_*``
environment variables.

```yaml
account_sync:
  identity_key: hideout_user
  debounce_seconds: 1.0
  logout_cooldown_seconds: 2.0
  backend: sqlite
  sqlite_path: ~/.account_sync/remote.db
```
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ACCOUNT_SYNC_"

BACKEND_MEMORY = "memory"
BACKEND_SQLITE = "sqlite"
BACKEND_COSMOS = "cosmos"
BACKENDS = (BACKEND_MEMORY, BACKEND_SQLITE, BACKEND_COSMOS)

# Cosmos auth methods
AUTH_KEY = "key"
AUTH_DEFAULT_CREDENTIAL = "default_credential"

DEFAULT_FAVORITES_KEY = "hideout_game_favorites"

_DURATION_FIELDS = (
    "debounce_seconds",
    "cookie_poll_seconds",
    "logout_cooldown_seconds",
    "retry_delay",
)
_COUNT_FIELDS = ("cookie_max_age_days", "max_retries")
_OPTIONAL_TEXT_FIELDS = ("cosmos_endpoint", "cosmos_key")


@dataclass
class SyncConfig:
    """Configuration for the sync engine and its remote store.

    Attributes:
        identity_key: Reserved local key holding the identity record
        debounce_seconds: Quiet period before a scheduled push fires
        cookie_poll_seconds: Interval of the cookie change poll
        logout_cooldown_seconds: How long pushes stay suppressed after logout
        cookie_max_age_days: Lifetime of cookies restored from the account
        favorites_key: Local key of the favorites list
        favorites_data_type: Remote preference row holding favorites
        merge_keys: Array preferences union-merged on load (defaults to [favorites_key])
        backend: Remote store backend (memory, sqlite, cosmos)
    """

    identity_key: str = "hideout_user"
    debounce_seconds: float = 1.0
    cookie_poll_seconds: float = 1.0
    logout_cooldown_seconds: float = 2.0
    cookie_max_age_days: int = 365

    favorites_key: str = DEFAULT_FAVORITES_KEY
    favorites_data_type: str = "game_favorites"
    merge_keys: list[str] | None = None

    # Remote store
    backend: str = BACKEND_MEMORY
    sqlite_path: str = ":memory:"
    cosmos_endpoint: str | None = None
    cosmos_database: str = "account-sync"
    cosmos_container: str = "user_data"
    cosmos_auth_method: str = AUTH_DEFAULT_CREDENTIAL
    cosmos_key: str | None = None
    max_retries: int = 3
    retry_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.merge_keys is None:
            self.merge_keys = [self.favorites_key]
        self.validate()

    def validate(self) -> None:
        """Check value types and ranges.

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range
        """
        self._check_types()

        for name in _DURATION_FIELDS:
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError(name, "must not be negative", str(value))

        if self.cookie_poll_seconds == 0:
            raise ConfigurationError("cookie_poll_seconds", "must be positive", "0")

        if self.cookie_max_age_days <= 0:
            raise ConfigurationError(
                "cookie_max_age_days", "must be positive", str(self.cookie_max_age_days)
            )

        if self.max_retries < 1:
            raise ConfigurationError("max_retries", "must be at least 1", str(self.max_retries))

        if not self.identity_key:
            raise ConfigurationError("identity_key", "must not be empty")

        if self.backend not in BACKENDS:
            raise ConfigurationError("backend", f"must be one of {', '.join(BACKENDS)}", self.backend)

    def _check_types(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)

            if f.name in _DURATION_FIELDS:
                valid = isinstance(value, int | float) and not isinstance(value, bool)
                expected = "a number"
            elif f.name in _COUNT_FIELDS:
                valid = isinstance(value, int) and not isinstance(value, bool)
                expected = "an integer"
            elif f.name == "merge_keys":
                valid = isinstance(value, list) and all(isinstance(k, str) for k in value)
                expected = "a list of keys"
            elif f.name in _OPTIONAL_TEXT_FIELDS:
                valid = value is None or isinstance(value, str)
                expected = "text"
            else:
                valid = isinstance(value, str)
                expected = "text"

            if not valid:
                raise ConfigurationError(f.name, f"must be {expected}", repr(value))

    def merged(self, **overrides: Any) -> SyncConfig:
        """Return a copy with the given fields replaced.

        Renaming favorites_key renames it in merge_keys too, unless
        merge_keys is overridden as well.
        """
        if "favorites_key" in overrides and "merge_keys" not in overrides:
            overrides["merge_keys"] = [
                overrides["favorites_key"] if key == self.favorites_key else key
                for key in self.merge_keys or []
            ]
        return dataclasses.replace(self, **overrides)

    @classmethod
    def from_env(cls, base: SyncConfig | None = None) -> SyncConfig:
        """Create config from ACCOUNT_SYNC_* environment variables.

        Args:
            base: Config to start from (defaults if None)

        Returns:
            SyncConfig with environment overrides applied
        """
        base = base or cls()
        overrides: dict[str, Any] = {}

        for f in dataclasses.fields(cls):
            raw = os.environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            overrides[f.name] = _coerce(f.name, raw)

        return base.merged(**overrides) if overrides else base

    @classmethod
    def from_yaml(cls, path: Path | str) -> SyncConfig:
        """Load config from the account_sync section of a YAML file.

        A missing or unreadable file yields the defaults.
        """
        config_path = Path(path).expanduser()
        if not config_path.exists():
            return cls()

        try:
            content = yaml.safe_load(config_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read settings file {config_path}: {e}")
            return cls()

        section = content.get("account_sync") or {} if isinstance(content, dict) else None
        if not isinstance(section, dict):
            logger.warning(f"Ignoring malformed account_sync section in {config_path}")
            return cls()

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

        return cls(**{k: v for k, v in section.items() if k in known})

    @classmethod
    def load(cls, settings_path: Path | str | None = None) -> SyncConfig:
        """Load settings file (if given) and then apply environment overrides."""
        base = cls.from_yaml(settings_path) if settings_path else cls()
        return cls.from_env(base)


def _coerce(name: str, raw: str) -> Any:
    """Convert an environment string to the type of the named field."""
    try:
        if name in _DURATION_FIELDS:
            return float(raw)
        if name in _COUNT_FIELDS:
            return int(raw)
    except ValueError as e:
        raise ConfigurationError(name, f"invalid value: {e}", raw) from e
    if name == "merge_keys":
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw
