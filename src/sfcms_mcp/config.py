"""Server configuration loaded from SF_* environment variables."""

import logging
import sys
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import APIConfiguration, ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REQUIRED_SETTINGS = (
    "instance_url",
    "client_id",
    "username",
    "jwt_private_key_path",
    "workspace_name",
)


class ServerConfig(BaseSettings):
    """Process configuration. Every field maps to SF_<FIELD> in the environment."""

    model_config = SettingsConfigDict(
        env_prefix="SF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    instance_url: str | None = None
    client_id: str | None = None
    username: str | None = None
    jwt_private_key_path: str | None = None
    workspace_name: str | None = None
    api_version: str = "v61.0"
    login_url: str | None = None
    timeout: float = 30.0
    log_level: str = "INFO"

    def missing_settings(self) -> list[str]:
        """Environment variable names of required settings that are unset or blank."""
        missing = []
        for name in REQUIRED_SETTINGS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(f"SF_{name.upper()}")
        return missing

    def get_api_config(self) -> APIConfiguration:
        """Validate required settings and build the client configuration.

        Raises:
            ConfigError: if any required setting is missing.
        """
        missing = self.missing_settings()
        if missing:
            raise ConfigError(
                "Missing required configuration: " + ", ".join(missing)
                + ". Set them in the environment or in a .env file."
            )

        logger.debug(f"Configuration loaded for workspace '{self.workspace_name}' ({self.api_version})")
        return APIConfiguration(
            instance_url=self.instance_url.rstrip("/"),  # type: ignore[union-attr]
            client_id=self.client_id,  # type: ignore[arg-type]
            username=self.username,  # type: ignore[arg-type]
            private_key_path=Path(self.jwt_private_key_path).expanduser(),  # type: ignore[arg-type]
            workspace_name=self.workspace_name,  # type: ignore[arg-type]
            api_version=self.api_version,
            login_url=self.login_url,
            timeout=self.timeout,
        )


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout belongs to the MCP stdio stream."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    # httpx logs every request URL at INFO, which includes SOQL query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)
