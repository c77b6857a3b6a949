"""Configuration system for sessiongate using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.sessiongate] section (project-level)
3. ./sessiongate.toml (project-level, explicit)
4. File named by SESSIONGATE_CONFIG_FILE
5. Environment variables (highest priority)

Environment variables use SESSIONGATE_ prefix with nested delimiter __.
Example: SESSIONGATE_AUTH__FALLBACK_DELAY, SESSIONGATE_FIREBASE__API_KEY
"""

from __future__ import annotations

import logging
import os
import tomllib

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    local_toml = Path("sessiongate.toml")
    if local_toml.exists():
        files.append(local_toml)

    env_config = os.environ.get("SESSIONGATE_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Skipping unreadable config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("sessiongate", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {"api_key"}

_REDACTED = "********"


class AuthSettings(BaseSettings):
    """Session controller behavior.

    Environment prefix: SESSIONGATE_AUTH__
    Example: SESSIONGATE_AUTH__FALLBACK_DELAY=2.5
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGATE_AUTH__",
        extra="ignore",
    )

    fallback_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to wait before falling back to redirect sign-in",
    )
    protected_path: str = Field(
        default="/servers",
        description="Destination the route guard navigates to once authenticated",
    )
    login_path: str = Field(default="/login", description="Path of the sign-in page")

    @field_validator("protected_path", "login_path")
    @classmethod
    def _ensure_leading_slash(cls, v: str) -> str:
        """Normalize paths so they always start with a slash."""
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"


class FirebaseSettings(BaseSettings):
    """Identity toolkit provider settings.

    Environment prefix: SESSIONGATE_FIREBASE__
    Example: SESSIONGATE_FIREBASE__API_KEY=AIza...
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGATE_FIREBASE__",
        extra="ignore",
    )

    api_key: str = Field(default="", description="Web API key of the identity project")
    base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity toolkit REST endpoint",
    )
    federated_provider_id: str = Field(
        default="google.com",
        description="Provider id used for federated sign-in",
    )
    request_uri: str = Field(
        default="http://localhost",
        description="Continue URI reported to signInWithIdp",
    )
    timeout: float = Field(default=30.0, ge=1.0, description="HTTP timeout in seconds")


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: SESSIONGATE_LOG__
    Example: SESSIONGATE_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGATE_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class SessionGateSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: SESSIONGATE__
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGATE__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    auth: AuthSettings = Field(default_factory=AuthSettings)
    firebase: FirebaseSettings = Field(default_factory=FirebaseSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        # Explicit keyword data takes precedence over TOML files
        merged = _deep_merge(_load_toml_config(), data)
        super().__init__(**merged)

    def show(self) -> str:
        """Format settings as a readable table with secrets redacted."""
        lines = ["sessiongate Configuration", "=" * 60]

        sections = [("Auth", "auth"), ("Identity Provider", "firebase"), ("Logging", "log")]
        all_data = self.model_dump(exclude={attr: _SENSITIVE_FIELDS for _, attr in sections})

        for display_name, attr_name in sections:
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in all_data.get(attr_name, {}).items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:22} = {value_str}")
            section_cls = type(getattr(self, attr_name))
            lines.extend(
                f"  {name:22} = {_REDACTED}"
                for name in sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())
            )

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> SessionGateSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return SessionGateSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> SessionGateSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
