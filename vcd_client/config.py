"""Configuration loader for the VMware Cloud Director client.

This module provides configuration management using Pydantic models
for validation and environment variable loading.

Example:
    >>> from vcd_client.config import load_config
    >>> config = load_config()
    >>> print(config.vcd.url)
    https://vcd.example.com/api

Environment Variables:
    VCD_URL: VCD endpoint, with or without the trailing ``/api``.
    VCD_ORG: Organization to log into (default: System).
    VCD_USER: User name.
    VCD_PASSWORD: Password.
    VCD_TOKEN: Bearer token, used instead of user and password.
    VCD_API_TOKEN: API token (refresh token), exchanged for a bearer token.
    VCD_INSECURE: Skip TLS certificate verification (default: false).
    GOVCD_API_VERSION: API version requested by the client (default: 37.0).
    VCD_USER_AGENT: User-Agent header value.
    VCD_MAX_RETRY_TIMEOUT: Seconds to wait for tasks and retried calls (default: 60).
    VCD_HTTP_TIMEOUT: Seconds for a single HTTP round trip (default: 600).
    LOG_LEVEL: Logging level (default: INFO).
    LOG_JSON: Use JSON format for logs (default: false).
    GOVCD_LOG_FILE: Optional log file path.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError, EnvironmentVariableError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_API_VERSION = "37.0"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "") != ""


class VcdConfig(BaseModel):
    """VCD connection configuration.

    Attributes:
        url: API endpoint, always ending in ``/api``.
        org: Organization used for login.
        user: User name (optional when a token is given).
        password: Password.
        token: Bearer token.
        api_token: API token.
        insecure: Skip TLS certificate verification.
        api_version: Requested API version.
        user_agent: User-Agent header value.
        max_retry_timeout: Seconds to wait for tasks.
        http_timeout: Seconds for a single HTTP round trip.
    """

    url: str = Field(description="VCD API endpoint")
    org: str = Field(default="System", description="Login organization")
    user: str | None = Field(default=None, description="User name")
    password: str | None = Field(default=None, description="Password")
    token: str | None = Field(default=None, description="Bearer token")
    api_token: str | None = Field(default=None, description="API token")
    insecure: bool = Field(default=False, description="Skip TLS verification")
    api_version: str = Field(
        default=DEFAULT_API_VERSION,
        description="API version requested by the client",
    )
    user_agent: str = Field(default="vcd-client", description="User-Agent header")
    max_retry_timeout: int = Field(
        default=60,
        ge=1,
        description="Seconds to wait for tasks and retried calls",
    )
    http_timeout: int = Field(
        default=600,
        ge=1,
        description="Seconds for a single HTTP request and response",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and normalize the ``/api`` suffix.

        Args:
            v: URL value to validate.

        Returns:
            The URL ending in ``/api``.

        Raises:
            ValueError: If the scheme is not http or https.
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"VCD URL must start with http:// or https://: {v}")
        v = v.rstrip("/")
        if not v.endswith("/api"):
            v += "/api"
        return v

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        try:
            Version(v)
        except InvalidVersion as e:
            raise ValueError(f"API version '{v}' is not valid: {e}") from e
        return v

    model_config = {"extra": "ignore"}


class LoggingConfig(BaseModel):
    """Logging and HTTP tracing configuration."""

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )
    log_json: bool = Field(default=False, description="Use JSON format for logs")
    log_file: str | None = Field(default=None, description="Optional log file path")
    log_passwords: bool = Field(default=False, description="Log credentials in clear text")
    skip_http_req: bool = Field(default=False, description="Do not trace requests")
    skip_http_resp: bool = Field(default=False, description="Do not trace responses")
    show_req: bool = Field(default=False, description="Print requests to stdout")
    show_resp: bool = Field(default=False, description="Print responses to stdout")

    model_config = {"extra": "ignore"}


class Config(BaseModel):
    """Main configuration container.

    Attributes:
        vcd: Connection settings.
        logging: Logging settings.
    """

    vcd: VcdConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "ignore"}


def get_required_env(name: str) -> str:
    """Read an environment variable that must be set.

    Raises:
        EnvironmentVariableError: If the variable is unset or empty.
    """
    value = os.getenv(name)
    if not value:
        raise EnvironmentVariableError(name)
    return value


def load_config(env_file: str | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file.

    Returns:
        Validated Config object.

    Raises:
        EnvironmentVariableError: If VCD_URL is not set.
        ConfigurationError: If a value fails validation.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    logger.debug("Loading configuration from environment")

    url = get_required_env("VCD_URL")

    try:
        vcd_config = VcdConfig(
            url=url,
            org=os.getenv("VCD_ORG", "System"),
            user=os.getenv("VCD_USER"),
            password=os.getenv("VCD_PASSWORD"),
            token=os.getenv("VCD_TOKEN"),
            api_token=os.getenv("VCD_API_TOKEN"),
            insecure=_env_bool("VCD_INSECURE"),
            api_version=os.getenv("GOVCD_API_VERSION") or DEFAULT_API_VERSION,
            user_agent=os.getenv("VCD_USER_AGENT", "vcd-client"),
            max_retry_timeout=int(os.getenv("VCD_MAX_RETRY_TIMEOUT", "60")),
            http_timeout=int(os.getenv("VCD_HTTP_TIMEOUT", "600")),
        )

        logging_config = LoggingConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON"),
            log_file=os.getenv("GOVCD_LOG_FILE"),
            log_passwords=_env_flag("GOVCD_LOG_PASSWORDS"),
            skip_http_req=_env_flag("GOVCD_LOG_SKIP_HTTP_REQ"),
            skip_http_resp=_env_flag("GOVCD_LOG_SKIP_HTTP_RESP"),
            show_req=_env_flag("GOVCD_SHOW_REQ"),
            show_resp=_env_flag("GOVCD_SHOW_RESP"),
        )

        config = Config(vcd=vcd_config, logging=logging_config)

        logger.info(
            "Configuration loaded successfully",
            extra={
                "url": config.vcd.url,
                "org": config.vcd.org,
                "api_version": config.vcd.api_version,
            },
        )

        return config

    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
