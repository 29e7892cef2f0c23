"""Naming helpers for owned child objects."""

from __future__ import annotations

import re

from ..constants import (
    CONFIG_MAP_SUFFIX,
    DEPLOYMENT_SUFFIX,
    SECRET_SUFFIX,
    SERVICE_SUFFIX,
)

_INVALID_CHARS = re.compile(r"[^a-z0-9\-.]+")


def sanitize_name(value: str) -> str:
    """Turn an arbitrary string into a valid DNS-1123 object name."""
    name = _INVALID_CHARS.sub("-", value.lower()).strip("-.")
    return name[:253].rstrip("-.")


def key_secret_name(key_alias: str) -> str:
    """Name of the Secret holding a generated virtual key."""
    return f"{sanitize_name(key_alias)}-secret"


def config_map_name(instance_name: str) -> str:
    return instance_name + CONFIG_MAP_SUFFIX


def secret_name(instance_name: str) -> str:
    return instance_name + SECRET_SUFFIX


def deployment_name(instance_name: str) -> str:
    return instance_name + DEPLOYMENT_SUFFIX


def service_name(instance_name: str) -> str:
    return instance_name + SERVICE_SUFFIX


def app_labels(instance_name: str) -> dict[str, str]:
    """Standard selector labels for an instance's pods."""
    return {"app": f"litellm-{instance_name}"}


def env_var_name(*parts: str) -> str:
    """Build an upper-case environment variable name from the given parts."""
    joined = "_".join(parts)
    return re.sub(r"[^A-Z0-9_]", "_", joined.upper())
