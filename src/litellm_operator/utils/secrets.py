"""Utilities for reading and building Kubernetes secrets."""

from __future__ import annotations

import base64
from typing import Any

from kubernetes import client


def _decode(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return base64.b64decode(value).decode("utf-8")


def read_secret_data(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> dict[str, str] | None:
    """Read and decode all data of a secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Decoded secret data, or None if the secret does not exist
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            return None
        raise
    return {k: _decode(v) for k, v in (secret.data or {}).items()}


def secret_exists(api: client.CoreV1Api, namespace: str, secret_name: str) -> bool:
    """Check whether a secret exists without decoding it."""
    try:
        api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            return False
        raise
    return True


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        ValueError: If secret or key not found
    """
    data = read_secret_data(api, namespace, secret_name)
    if data is None:
        raise ValueError(f"Secret '{secret_name}' not found in namespace '{namespace}'")
    if key not in data:
        raise ValueError(f"Key '{key}' not found in secret '{secret_name}'")
    return data[key]


def build_secret_body(
    name: str,
    namespace: str,
    data: dict[str, str],
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build an Opaque secret manifest with base64-encoded data."""
    metadata: dict[str, Any] = {"name": name, "namespace": namespace}
    if labels:
        metadata["labels"] = dict(labels)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": metadata,
        "type": "Opaque",
        "data": {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()},
    }
