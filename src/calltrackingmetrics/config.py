"""Configuration and logging setup for the CallTrackingMetrics client.

The library itself never configures logging. Host applications either call
:func:`configure_logging` themselves or build the client with
:func:`client_from_config`, which applies ``log_level`` and ``log_format``
from the loaded configuration.
"""

import logging
import os
import pathlib
from typing import Literal

import pydantic
import structlog

from . import ctmapi

CONFIG_ENV_VAR = "CTM_CLIENT_CONFIG_PATH"
logger = structlog.get_logger(__name__)

LogFormat = Literal["logfmt", "json"]


class ClientConfig(pydantic.BaseModel):
    """Connection and logging settings for the CallTrackingMetrics client.

    Credentials are passed to :func:`create_client`, never read from here.
    """

    base_url: str = pydantic.Field(
        ctmapi.DEFAULT_BASE_URL,
        description="Base URL for the CallTrackingMetrics API",
        min_length=1,
    )
    connect_timeout: float = pydantic.Field(
        ctmapi.DEFAULT_CONNECT_TIMEOUT,
        description="Connect timeout in seconds",
        gt=0,
    )
    timeout: float = pydantic.Field(
        ctmapi.DEFAULT_TIMEOUT,
        description="Overall request timeout in seconds",
        gt=0,
    )
    verify_ssl: bool = pydantic.Field(True, description="Verify TLS certificates")
    log_level: str = pydantic.Field("INFO", description="Logging level")
    log_format: LogFormat = pydantic.Field("logfmt", description="Log line format")


def configure_logging(log_level_name: str, log_format: LogFormat = "logfmt") -> None:
    """Install a structlog pipeline writing one line per event to stdout.

    Unknown level names fall back to INFO. Client events carry ``method``,
    ``uri``, ``status_code`` and ``duration_seconds`` keys; credentials and
    tokens are never part of them.

    Args:
        log_level_name: Minimum level name (e.g. "DEBUG", "INFO").
        log_format: "logfmt" for key=value lines, "json" for JSON objects.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.processors.LogfmtRenderer(key_order=("timestamp", "level", "msg"))
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | pathlib.Path) -> ClientConfig:
    """Load and validate configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the content is not valid configuration.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)
    return ClientConfig.model_validate_json(path.read_text())


def resolve_config(config_path: str | None = None) -> ClientConfig:
    """Load config from a path or the environment, else use defaults."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        return ClientConfig()
    return load_config(resolved_path)


def create_client(
    login: str,
    password: str,
    config: ClientConfig | None = None,
) -> ctmapi.CallTrackingMetricsClient:
    """Construct a client from validated config without touching logging."""
    config = config or ClientConfig()
    client = ctmapi.CallTrackingMetricsClient(
        login,
        password,
        base_url=config.base_url,
        connect_timeout=config.connect_timeout,
        timeout=config.timeout,
        verify_ssl=config.verify_ssl,
    )
    logger.info("Created CallTrackingMetrics client", base_url=config.base_url)
    return client


def client_from_config(
    login: str,
    password: str,
    config_path: str | None = None,
) -> ctmapi.CallTrackingMetricsClient:
    """Resolve config, configure logging from it and build the client."""
    config = resolve_config(config_path)
    configure_logging(config.log_level, config.log_format)
    return create_client(login, password, config)
