"""Logging configuration for the VMware Cloud Director client.

Provides structured logging on top of the standard library ``logging``
module, plus HTTP request/response tracing with credential redaction.

Example:
    >>> from vcd_client.logging_config import setup_logging, get_logger
    >>> setup_logging(log_level="DEBUG", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("Connected", extra={"host": "vcd.example.com"})

Environment Variables (overridden by ``setup_logging(config=...)``):
    GOVCD_LOG_PASSWORDS: Log passwords and tokens in clear text.
    GOVCD_LOG_SKIP_HTTP_REQ: Do not trace HTTP requests.
    GOVCD_LOG_SKIP_HTTP_RESP: Do not trace HTTP responses.
    GOVCD_SHOW_REQ: Print every request to standard output.
    GOVCD_SHOW_RESP: Print every response to standard output.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from collections.abc import Mapping, MutableMapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import LoggingConfig

ROOT_LOGGER_NAME = "vcd_client"

SENSITIVE_HEADERS = frozenset(
    {
        "config-secret",
        "authorization",
        "x-vcloud-authorization",
        "x-vmware-vcloud-access-token",
    }
)

TRACE_ENV_VARS = {
    "log_passwords": "GOVCD_LOG_PASSWORDS",
    "skip_http_req": "GOVCD_LOG_SKIP_HTTP_REQ",
    "skip_http_resp": "GOVCD_LOG_SKIP_HTTP_RESP",
    "show_req": "GOVCD_SHOW_REQ",
    "show_resp": "GOVCD_SHOW_RESP",
}

# Flags set through configure_http_tracing; missing ones are read from the environment.
_trace_flags: dict[str, bool] = {}

DASH_LINE = "-" * 60
HASH_LINE = "#" * 60

_PASSWORD_RE = re.compile(r'("[^"]*[Pp]assword"\s*:\s*)"[^"]+"')
_BINARY_HEADER_RES = (
    re.compile(r"(?i)content-range"),
    re.compile(r"(?i)multipart/form"),
)
_BINARY_VALUE_RE = re.compile(r"(?i)media\+xml;")

# Attributes every LogRecord carries; anything else came through ``extra``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON objects, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges a fixed context into every record's ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
    config: LoggingConfig | None = None,
) -> logging.Logger:
    """Configure the package root logger.

    Args:
        log_level: Logging level name.
        json_format: Emit JSON lines instead of plain text.
        log_file: Also write log records to this file.
        config: Loaded logging settings. When given, they replace the
            other arguments and set the HTTP tracing flags.

    Returns:
        The configured package root logger.
    """
    if config is not None:
        log_level, json_format, log_file = config.log_level, config.log_json, config.log_file
        configure_http_tracing(config)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A standard library logger.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "") != ""


def configure_http_tracing(config: LoggingConfig | None) -> None:
    """Take the tracing flags from ``config``. None goes back to the environment."""
    _trace_flags.clear()
    if config is not None:
        _trace_flags.update({name: getattr(config, name) for name in TRACE_ENV_VARS})


def _trace_flag(name: str) -> bool:
    if name in _trace_flags:
        return _trace_flags[name]
    return _env_flag(TRACE_ENV_VARS[name])


def log_passwords_enabled() -> bool:
    return _trace_flag("log_passwords")


def hide_passwords(text: str, on_screen: bool = False) -> str:
    """Mask the values of JSON fields whose name ends in ``password``.

    Args:
        text: Payload to sanitize.
        on_screen: Output goes to the terminal, so always mask.

    Returns:
        The sanitized text.
    """
    if not on_screen and log_passwords_enabled():
        return text
    return _PASSWORD_RE.sub(r'\1"********"', text)


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with credential values replaced by stars."""
    show_secrets = log_passwords_enabled()
    sanitized = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS and not show_secrets:
            value = "********"
        sanitized[key] = value
    return sanitized


def is_binary(headers: Mapping[str, str]) -> bool:
    """Guess whether a request body is binary from its headers."""
    for key, value in headers.items():
        if any(regex.search(key) for regex in _BINARY_HEADER_RES):
            return True
        if _BINARY_VALUE_RE.search(value or ""):
            return True
    return False


_http_logger = get_logger("vcd_client.http")


def log_request(
    caller: str,
    method: str,
    url: str,
    payload: str,
    headers: Mapping[str, str],
) -> None:
    """Trace an outgoing request unless ``skip_http_req`` is on."""
    if not _trace_flag("skip_http_req"):
        size = len(payload)
        body = "[binary data]" if is_binary(headers) else hide_passwords(payload)
        _http_logger.debug(
            f"{method} {url}",
            extra={
                "caller": caller,
                "request_size": size,
                "request_body": body if size else "",
                "request_headers": sanitize_headers(headers),
            },
        )
    if _trace_flag("show_req"):
        _show_request(method, url, payload, headers)


def log_response(
    caller: str,
    status_code: int,
    headers: Mapping[str, str],
    body: str,
) -> None:
    """Trace an incoming response unless ``skip_http_resp`` is on."""
    if not _trace_flag("skip_http_resp"):
        _http_logger.debug(
            f"Response status {status_code}",
            extra={
                "caller": caller,
                "response_size": len(body),
                "response_body": body,
                "response_headers": sanitize_headers(headers),
            },
        )
    if _trace_flag("show_resp"):
        _show_response(status_code, headers, body)


def _show_request(method: str, url: str, payload: str, headers: Mapping[str, str]) -> None:
    lines = [DASH_LINE, f"{method} {url}", "Header:"]
    lines.extend(f"\t{key}: {value}" for key, value in sanitize_headers(headers).items())
    if payload:
        lines.append(f"Body: {hide_passwords(payload, on_screen=True)}")
    lines.append(DASH_LINE)
    print("\n".join(lines), file=sys.stdout)


def _show_response(status_code: int, headers: Mapping[str, str], body: str) -> None:
    lines = [HASH_LINE, f"Status: {status_code}", "Header:"]
    lines.extend(f"\t{key}: {value}" for key, value in sanitize_headers(headers).items())
    lines.append(f"Body: {hide_passwords(body, on_screen=True)}")
    lines.append(HASH_LINE)
    print("\n".join(lines), file=sys.stdout)
