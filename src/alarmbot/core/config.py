"""
Dynaconf-powered configuration loader with Pydantic validation.

Settings are layered from optional YAML files in the config directory, a
`.env` file and `ALARMBOT_`-prefixed environment variables. The resulting
snapshot is validated once and then turned into `ModuleConfig` instances so
modules never read raw dictionaries.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import BaseModule, ModuleConfig


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if not isinstance(value, dict):
        return {}
    # Nested env overrides arrive upper-cased and must win over file keys.
    items = sorted(value.items(), key=lambda item: str(item[0]).islower())
    return {str(k).lower(): v for k, v in reversed(items)}


CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")
DEFAULT_CONFIG_DIR = Path("config")
ENVVAR_PREFIX = "ALARMBOT"
# Plain variable names understood by earlier deployments of the bot.
LEGACY_ENV = {
    ("telegram", "token"): "BOT_TOKEN",
    ("device", "base_url"): "SERVER_BASE_URL",
}
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class TelegramSettings(BaseModel):
    """Bot credentials and long-poll behaviour."""

    model_config = ConfigDict(extra="ignore")

    token: str = Field(min_length=1)
    poll_timeout: int = Field(default=60, ge=0)
    retry_delay_seconds: float = Field(default=5.0, gt=0.0)
    read_timeout: float = Field(default=30.0, gt=0.0)
    write_timeout: float = Field(default=60.0, gt=0.0)

    @field_validator("token", mode="before")
    @classmethod
    def _token_as_text(cls, value: Any) -> Any:
        # Dynaconf parses purely numeric env values as integers.
        return str(value) if isinstance(value, int) else value


class DeviceSettings(BaseModel):
    """Where the alarm device answers."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(min_length=1)
    timeout: float = Field(default=10.0, gt=0.0)

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("device.base_url must start with http:// or https://")
        return value.rstrip("/")


class ListenerSettings(BaseModel):
    """Local HTTP surface the device pushes events to."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=0, le=65535)
    serve_api: bool = Field(default=True)
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    video_caption: str = Field(default="📹 Alarm clip")


class LoggingSettings(BaseModel):
    """Process log destination."""

    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO")
    file: Path | None = Field(default=Path("logs") / "alarmbot.log")
    max_mb: int = Field(default=10, gt=0)
    backup_count: int = Field(default=3, ge=0)


class ConfigSnapshot(BaseModel):
    """
    Validated, strongly typed view of the merged configuration.

    Provides helpers to derive per-module configuration dictionaries.
    """

    model_config = ConfigDict(extra="ignore")

    telegram: TelegramSettings
    device: DeviceSettings
    listener: ListenerSettings = Field(default_factory=ListenerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def module_config(self, module_name: str) -> ModuleConfig:
        builders = {
            "modules.device.client": self._device_client_config,
            "modules.messaging.telegram_gateway": self._telegram_gateway_config,
            "modules.bot.orchestrator": lambda: ModuleConfig(),
            "modules.bot.poller": self._poller_config,
            "modules.listener.local_api": self._local_api_config,
        }
        try:
            builder = builders[module_name]
        except KeyError as exc:
            raise KeyError(f"No configuration builder for module '{module_name}'") from exc
        return builder()

    def _device_client_config(self) -> ModuleConfig:
        return ModuleConfig(
            options={"base_url": self.device.base_url, "timeout": self.device.timeout}
        )

    def _telegram_gateway_config(self) -> ModuleConfig:
        return ModuleConfig(
            options={
                "token": self.telegram.token,
                "read_timeout": self.telegram.read_timeout,
                "write_timeout": self.telegram.write_timeout,
                "poll_timeout": self.telegram.poll_timeout,
            }
        )

    def _poller_config(self) -> ModuleConfig:
        return ModuleConfig(
            options={
                "poll_timeout": self.telegram.poll_timeout,
                "retry_delay_seconds": self.telegram.retry_delay_seconds,
            }
        )

    def _local_api_config(self) -> ModuleConfig:
        return ModuleConfig(
            options={
                "host": self.listener.host,
                "port": self.listener.port,
                "serve_api": self.listener.serve_api,
                "max_upload_bytes": self.listener.max_upload_bytes,
                "video_caption": self.listener.video_caption,
            }
        )


class ConfigService:
    """
    Runtime facade for loading, validating, and distributing configuration.
    """

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        self._environ = environ if environ is not None else os.environ
        self._settings = settings or Dynaconf(
            envvar_prefix=ENVVAR_PREFIX,
            settings_files=existing_files,
            load_dotenv=True,
            environments=False,
            merge_enabled=True,
        )
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Validated configuration snapshot."""
        return self._snapshot

    def _resolve_module_name(self, module: str | type[BaseModule] | BaseModule) -> str:
        if isinstance(module, BaseModule):
            return module.name
        if isinstance(module, str):
            return module
        return getattr(module, "name", module.__name__)

    def module_config_for(self, module: str | type[BaseModule] | BaseModule) -> ModuleConfig:
        """
        Convenient wrapper around ConfigSnapshot.module_config that accepts
        module names, classes, or instances.
        """
        return self._snapshot.module_config(self._resolve_module_name(module))

    def _build_snapshot(self) -> ConfigSnapshot:
        try:
            raw = self._settings.as_dict()
        except Exception as exc:
            # Dynaconf loads lazily, so unreadable YAML surfaces here.
            raise ConfigError(f"Unable to load settings from {self._config_dir}: {exc}") from exc
        data = self._extract_snapshot_data(raw)
        missing = [
            f"{section}.{key}"
            for (section, key), legacy in LEGACY_ENV.items()
            if not data[section].get(key)
        ]
        if missing:
            hints = ", ".join(
                f"{ENVVAR_PREFIX}_{name.replace('.', '__').upper()}" for name in missing
            )
            raise ConfigError(f"Missing required settings {missing}; set {hints}.")
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Configuration validation failed: {exc}") from exc

    def _extract_snapshot_data(self, raw: dict[str, Any]) -> dict[str, Any]:
        data = {
            "telegram": _section(raw, "telegram"),
            "device": _section(raw, "device"),
            "listener": _section(raw, "listener"),
            "logging": _section(raw, "logging"),
        }
        for (section, key), env_name in LEGACY_ENV.items():
            if not data[section].get(key) and self._environ.get(env_name):
                data[section][key] = self._environ[env_name]
        return data


__all__ = [
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "DeviceSettings",
    "ListenerSettings",
    "LoggingSettings",
    "TelegramSettings",
]
