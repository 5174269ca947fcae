"""Client settings: defaults, validation and YAML loading."""

from __future__ import annotations

import os
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from maji_config.errors import ConfigError, ConfigNotFoundError

__all__ = ["ClientSettings", "DEFAULT_HOST", "DEFAULT_INTERVAL"]

DEFAULT_HOST = "https://api.config.maji.cloud"
DEFAULT_INTERVAL = 5.0


class ClientSettings(BaseModel):
    """Construction parameters for a :class:`~maji_config.client.Client`.

    Attributes:
        api_key: Bearer token sent with every request. Masked in reprs.
        host: Base URL of the config service, without trailing slash.
        interval: Seconds between refresh ticks.
        request_timeout: HTTP deadline in seconds. ``None`` falls back to
            ``interval``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: SecretStr
    host: str = DEFAULT_HOST
    interval: float = Field(default=DEFAULT_INTERVAL, gt=0)
    request_timeout: float | None = Field(default=None, gt=0)

    @field_validator("api_key")
    @classmethod
    def _api_key_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("api_key must not be empty")
        return value

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"host must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @property
    def effective_timeout(self) -> float:
        """The deadline applied to each request."""
        if self.request_timeout is not None:
            return self.request_timeout
        return self.interval

    @property
    def config_url(self) -> str:
        return f"{self.host}/getConfig"

    @classmethod
    def create(cls, **values: Any) -> ClientSettings:
        """Validate ``values`` and build settings.

        Raises:
            ConfigError: If any value is missing or invalid. The pydantic
                error list is kept in ``details["errors"]``.
        """
        try:
            return cls.model_validate(values)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
            raise ConfigError(
                f"Invalid client settings: {summary}",
                details={"errors": errors},
                cause=e,
            ) from e

    @classmethod
    def load(cls, yaml_path: str) -> ClientSettings:
        """Load settings from a YAML file.

        The file holds a mapping with the same keys as the constructor::

            api_key: XXX
            host: http://localhost:4000
            interval: 2.5

        Raises:
            ConfigNotFoundError: If the file does not exist.
            ConfigError: If the YAML is invalid or the values do not validate.
        """
        if not os.path.isfile(yaml_path):
            raise ConfigNotFoundError(config_path=yaml_path)

        with open(yaml_path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {yaml_path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(
                f"Settings file must hold a mapping, got {type(data).__name__}"
            )

        return cls.create(**data)
