"""Resolve where a LiteLLM proxy lives and how to authenticate against it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from kubernetes import client

from ...constants import LITELLM_API_GROUP, LITELLM_API_VERSION, MASTER_KEY_FIELD, PLURAL_INSTANCE, URL_FIELD
from ...utils.errors import LitellmConnectionError
from ...utils.naming import secret_name, service_name
from ...utils.secrets import get_secret_value


@dataclass(frozen=True)
class ConnectionDetails:
    """Base URL and master key of a LiteLLM proxy."""

    url: str
    master_key: str

    def __repr__(self) -> str:
        return f"ConnectionDetails(url={self.url!r}, master_key='***')"


def _from_secret_ref(core_api: client.CoreV1Api, secret_ref: dict[str, Any], namespace: str) -> ConnectionDetails:
    name = secret_ref.get("name") or secret_ref.get("secretName")
    if not name:
        raise LitellmConnectionError("connectionRef.secretRef requires a name")
    secret_ns = secret_ref.get("namespace") or namespace

    keys = secret_ref.get("keys")
    if keys:
        master_key_field, url_field = keys.get("masterKey"), keys.get("url")
        if not master_key_field or not url_field:
            raise LitellmConnectionError("connectionRef.secretRef.keys requires both masterKey and url")
    else:
        master_key_field, url_field = MASTER_KEY_FIELD, URL_FIELD

    try:
        master_key = get_secret_value(core_api, secret_ns, name, master_key_field)
        url = get_secret_value(core_api, secret_ns, name, url_field)
    except ValueError as e:
        raise LitellmConnectionError(str(e)) from e
    return ConnectionDetails(url=url, master_key=master_key)


def _from_instance_ref(
    core_api: client.CoreV1Api,
    custom_api: client.CustomObjectsApi,
    instance_ref: dict[str, Any],
    namespace: str,
) -> ConnectionDetails:
    name = instance_ref.get("name")
    if not name:
        raise LitellmConnectionError("connectionRef.instanceRef requires a name")
    instance_ns = instance_ref.get("namespace") or namespace

    try:
        custom_api.get_namespaced_custom_object(
            group=LITELLM_API_GROUP,
            version=LITELLM_API_VERSION,
            namespace=instance_ns,
            plural=PLURAL_INSTANCE,
            name=name,
        )
        svc = core_api.read_namespaced_service(name=service_name(name), namespace=instance_ns)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise LitellmConnectionError(f"LiteLLM instance {instance_ns}/{name} not found") from e
        raise

    try:
        master_key = get_secret_value(core_api, instance_ns, secret_name(name), MASTER_KEY_FIELD)
    except ValueError as e:
        raise LitellmConnectionError(str(e)) from e

    url = os.getenv("LITELLM_URL_OVERRIDE") or f"http://{svc.metadata.name}.{instance_ns}.svc.cluster.local"
    return ConnectionDetails(url=url, master_key=master_key)


def resolve_connection(
    core_api: client.CoreV1Api,
    custom_api: client.CustomObjectsApi,
    connection_ref: dict[str, Any],
    namespace: str,
) -> ConnectionDetails:
    """Resolve a connectionRef into a base URL and master key.

    Args:
        core_api: CoreV1Api used for secrets and services
        custom_api: CustomObjectsApi used to look up instances
        connection_ref: The resource's connectionRef block
        namespace: Namespace of the referencing resource

    Returns:
        Connection details for the LiteLLM proxy

    Raises:
        LitellmConnectionError: If the reference is incomplete or points nowhere
    """
    connection_ref = connection_ref or {}
    if connection_ref.get("secretRef"):
        return _from_secret_ref(core_api, connection_ref["secretRef"], namespace)
    if connection_ref.get("instanceRef"):
        return _from_instance_ref(core_api, custom_api, connection_ref["instanceRef"], namespace)
    raise LitellmConnectionError("connectionRef must set either secretRef or instanceRef")
