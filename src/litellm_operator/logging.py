"""Structured logging for the LiteLLM Operator.

Every reconcile step is logged as one JSON object per line, keyed by the
managed resource and, once known, the identity of the LiteLLM record it
owns. Master keys, provider credentials and revealed virtual keys are
redacted before anything reaches the log stream.
"""

import json
import logging
import sys
from typing import Any

from .constants import LOG_LEVEL

# Field names whose values are credentials anywhere in a log payload
SECRET_FIELDS = frozenset({
    "api_key",
    "aws_access_key_id",
    "aws_secret_access_key",
    "key",
    "master_key",
    "password",
    "token",
    "vertex_credentials",
})

REDACTED = "***REDACTED***"

# Client libraries that log request headers, bearer tokens included, at DEBUG
_NOISY_LOGGERS = ("urllib3", "kubernetes.client.rest")


def setup_structured_logging(level: str | None = None) -> None:
    """Configure structured JSON logging on stdout.

    Args:
        level: Log level name; defaults to the ``LOG_LEVEL`` environment variable
    """
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    identity: str | None = None,
    **kwargs: Any,
) -> None:
    """Log one reconcile event for a managed resource.

    ``identity`` is the LiteLLM record id (key token, model id, team or user
    id) and is left out until the record has been resolved or created.
    """
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    if identity:
        log_data["identity"] = identity
    log_data.update(sanitize_secrets({k: v for k, v in kwargs.items() if v is not None}))
    logger.log(level, json.dumps(log_data, default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Redact credential fields, including those nested in request payloads."""
    sanitized = {}
    for field, value in log_data.items():
        if field in SECRET_FIELDS:
            sanitized[field] = REDACTED
        elif isinstance(value, dict):
            sanitized[field] = sanitize_secrets(value)
        else:
            sanitized[field] = value
    return sanitized
