"""Error taxonomy, classification and sanitization utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import requests
from kubernetes import client

from ..constants import (
    CONFLICT_RETRY_SECONDS,
    CONNECTION_RETRY_SECONDS,
    REASON_CONFIG_ERROR,
    REASON_CONNECTION_ERROR,
    REASON_DELETE_FAILED,
    REASON_RECONCILE_ERROR,
    REASON_RECONCILE_TIMEOUT,
    REASON_SECRET_MISSING,
    REASON_SERVICE_ERROR,
    REASON_WRITE_CONFLICT,
    RECHECK_INTERVAL_SECONDS,
    SERVICE_RETRY_SECONDS,
)

OUTCOME_RETRY_AFTER = "retry-after"
OUTCOME_RETRY_NOW = "retry-now"
OUTCOME_FATAL = "fatal"


class ReconcileError(Exception):
    """Base class for all classified reconcile failures."""

    reason = REASON_RECONCILE_ERROR
    retry_after: float = SERVICE_RETRY_SECONDS


class LitellmConnectionError(ReconcileError):
    """The LiteLLM service is unreachable or rejected our credentials."""

    reason = REASON_CONNECTION_ERROR
    retry_after = CONNECTION_RETRY_SECONDS


class ConfigError(ReconcileError):
    """The desired state cannot be translated into a valid request."""

    reason = REASON_CONFIG_ERROR
    retry_after = RECHECK_INTERVAL_SECONDS


class ServiceError(ReconcileError):
    """The LiteLLM service answered with an unexpected error."""

    reason = REASON_SERVICE_ERROR
    retry_after = SERVICE_RETRY_SECONDS


class NotFoundError(ServiceError):
    """The external record does not exist."""


class WriteConflictError(ReconcileError):
    """Optimistic-concurrency retries on a cluster object were exhausted."""

    reason = REASON_WRITE_CONFLICT
    retry_after = CONFLICT_RETRY_SECONDS


class DeleteFailedError(ReconcileError):
    """Removing the external record failed for a reason other than not-found."""

    reason = REASON_DELETE_FAILED
    retry_after = SERVICE_RETRY_SECONDS


class SecretMissingError(ReconcileError):
    """A credential Secret owned by the resource is gone and cannot be rebuilt."""

    reason = REASON_SECRET_MISSING
    retry_after = RECHECK_INTERVAL_SECONDS


class ReconcileTimeoutError(ReconcileError):
    """The bounded reconcile deadline elapsed between phases."""

    reason = REASON_RECONCILE_TIMEOUT
    retry_after = CONFLICT_RETRY_SECONDS


@dataclass(frozen=True)
class Classification:
    """How the engine should react to a failure."""

    outcome: str
    reason: str
    delay: float

    @property
    def fatal(self) -> bool:
        return self.outcome == OUTCOME_FATAL


def classify_error(error: Exception) -> Classification:
    """Map any exception onto the retry taxonomy.

    Args:
        error: Exception raised during a reconcile pass

    Returns:
        Classification with outcome, condition reason and requeue delay
    """
    if isinstance(error, ReconcileError):
        return Classification(OUTCOME_RETRY_AFTER, error.reason, error.retry_after)
    if isinstance(error, client.exceptions.ApiException):
        if error.status == 409:
            return Classification(OUTCOME_RETRY_NOW, REASON_WRITE_CONFLICT, CONFLICT_RETRY_SECONDS)
        return Classification(OUTCOME_RETRY_AFTER, REASON_SERVICE_ERROR, SERVICE_RETRY_SECONDS)
    if isinstance(error, requests.RequestException):
        return Classification(OUTCOME_RETRY_AFTER, REASON_CONNECTION_ERROR, CONNECTION_RETRY_SECONDS)
    return Classification(OUTCOME_FATAL, REASON_RECONCILE_ERROR, 0.0)


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(sk-)[A-Za-z0-9_\-]{4,}",
    r"(Bearer )[A-Za-z0-9_\-\.]+",
    r"(://[^:/\s]+:)[^@\s]+(?=@)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "master_key",
    "masterkey",
    "api_key",
    "apikey",
    "aws_secret_access_key",
    "vertex_credentials",
    "password",
    "secret",
    "credentials",
    "token",
    "key",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}[\"']?[:=\s]+[\"']?([^\s,;\)\"']+)",
            f"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        if key.lower() in all_sensitive:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
