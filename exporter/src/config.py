"""
Exporter configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All variables share the ``EEPE_`` prefix. The four identity variables are
required; everything else has a default.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-004)
- 2026-10-05: Reject blank identity values, normalize EEPE_HOST (STORY-004)
- 2026-10-19: Keep EEPE_USERNAME/EEPE_PASSWORD verbatim; only trim serial and host (STORY-004)

TODO:
- None
"""

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from exporter.src.errors import ConfigError
from exporter.src.models import Identity

DEFAULT_LOGIN_URL = "https://enlighten.enphaseenergy.com/login/login.json"
DEFAULT_TOKEN_URL = "https://entrez.enphaseenergy.com/tokens"


class ExporterSettings(BaseSettings):
    """Envoy exporter configuration.

    Attributes:
        username: Enlighten account username (``EEPE_USERNAME``).
        password: Enlighten account password (``EEPE_PASSWORD``).
        serialnumber: Envoy serial number (``EEPE_SERIALNUMBER``).
        host: Envoy address on the LAN (``EEPE_HOST``). Any scheme prefix
            and trailing slash are stripped.
        listen_host: Bind address of the metrics listener.
        listen_port: Port of the metrics listener.
        request_timeout_s: Timeout applied to every outbound request.
        refresh_interval_days: Days between scheduled credential refreshes.
        login_url: Enlighten login endpoint.
        token_url: Entrez token endpoint.
        log_level: Root logger level name.
    """

    username: str
    password: str
    serialnumber: str
    host: str
    listen_host: str = "0.0.0.0"
    listen_port: int = 9000
    request_timeout_s: float = 10.0
    refresh_interval_days: int = 90
    login_url: str = DEFAULT_LOGIN_URL
    token_url: str = DEFAULT_TOKEN_URL
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="EEPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("username", "password", "serialnumber", "host")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        """An empty variable counts as not set. Account values are kept verbatim."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("serialnumber", "host")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        """Accept ``https://envoy.local/`` as well as ``envoy.local``."""
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("must contain a host name or address")
        return v

    @field_validator("login_url", "token_url")
    @classmethod
    def cloud_url_must_be_https(cls, v: str) -> str:
        """Account credentials are only ever sent over HTTPS."""
        if not v.startswith("https://"):
            raise ValueError(f"must use HTTPS (got: '{v[:30]}')")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("refresh_interval_days")
    @classmethod
    def refresh_interval_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("listen_port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{v}'")
        return level

    @property
    def refresh_interval_s(self) -> float:
        """Refresh interval in seconds."""
        return self.refresh_interval_days * 24 * 60 * 60

    def identity(self) -> Identity:
        """Build the immutable :class:`Identity` from the loaded values."""
        return Identity(
            username=self.username,
            password=self.password,
            serial_number=self.serialnumber,
            host=self.host,
        )


def load_settings() -> ExporterSettings:
    """Load settings from the environment.

    Returns:
        ExporterSettings: Validated configuration.

    Raises:
        ConfigError: Listing every missing or invalid variable.
    """
    try:
        return ExporterSettings()
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            name = "EEPE_" + "_".join(str(part) for part in error["loc"]).upper()
            if error["type"] == "missing":
                problems.append(f"{name} not set")
            else:
                problems.append(f"{name} {error['msg']}")
        raise ConfigError("; ".join(problems)) from exc
