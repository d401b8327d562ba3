"""Configuration management for the FileMaker client.

Loads settings from environment variables or a .env file.
Credentials come from env vars or explicit constructor arguments, never
from source.
"""

from dataclasses import dataclass

from pydantic_settings import BaseSettings

from filemaker_client.constants import DATA_API_VERSION


@dataclass
class ConnectionConfig:
    """Connection details for one FileMaker database."""

    name: str
    host: str
    database: str
    username: str = ""
    password: str = ""
    verify_ssl: bool = True
    timeout: int = 60

    def to_settings(self, **overrides: object) -> "Settings":
        """Build a ``Settings`` for this connection, keeping other defaults."""
        values: dict[str, object] = {
            "fm_host": self.host,
            "fm_database": self.database,
            "fm_username": self.username,
            "fm_password": self.password,
            "fm_verify_ssl": self.verify_ssl,
            "fm_timeout": self.timeout,
        }
        values.update(overrides)
        return Settings(**values)


class Settings(BaseSettings):
    """FileMaker client settings.

    Values are loaded from environment variables (``FM_HOST``,
    ``FM_DATABASE``, ...). For local development, use a .env file.
    """

    # FileMaker Server connection
    fm_host: str = "http://localhost"
    fm_database: str = ""
    fm_username: str = ""
    fm_password: str = ""
    fm_verify_ssl: bool = True
    fm_timeout: int = 60
    fm_charset: str = "utf-8"

    # Grammar selection: CWP XML by default, Data API JSON when enabled
    fm_use_data_api: bool = False

    # Client behaviour
    fm_prevalidate: bool = False
    fm_error_handling: str = "exception"  # "exception" or "return"
    fm_date_format: str | None = None  # strftime pattern, e.g. "%d/%m/%Y"
    fm_use_date_format_in_requests: bool = False
    fm_empty_as_null: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def host_url(self) -> str:
        """Host with a scheme; bare host names default to https."""
        host = self.fm_host.rstrip("/")
        if "://" not in host:
            host = f"https://{host}"
        return host

    @property
    def xml_base_url(self) -> str:
        """Base URL for the CWP XML gateway."""
        return f"{self.host_url}/fmi/xml"

    @property
    def data_api_base_url(self) -> str:
        """Base URL for the FileMaker Data API."""
        return f"{self.host_url}/fmi/data/{DATA_API_VERSION}"

    @property
    def basic_auth(self) -> tuple[str, str]:
        """Basic auth tuple for CWP requests and Data API logins."""
        return (self.fm_username, self.fm_password)


# Singleton settings instance
settings = Settings()
