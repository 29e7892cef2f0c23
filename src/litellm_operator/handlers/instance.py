"""Handler for LiteLLMInstance CRD."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import kopf
from kubernetes import client

from ..builders.instance import (
    build_config_map,
    build_deployment,
    build_master_key_secret,
    build_service,
    compute_hash,
    render_proxy_config,
    validate_models,
)
from ..constants import (
    KIND_INSTANCE,
    LITELLM_API_GROUP,
    LITELLM_API_GROUP_VERSION,
    LITELLM_API_VERSION,
    MASTER_KEY_FIELD,
    PLURAL_INSTANCE,
    RECHECK_INTERVAL_SECONDS,
)
from ..utils.errors import ConfigError
from ..utils.kubernetes import WRITE_UNCHANGED, create_or_update_with_retry, to_dict
from ..utils.naming import deployment_name, secret_name
from ..utils.secrets import get_secret_value, read_secret_data
from .base import ReconcileContext
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class InstanceHandler(ReconcileEngine):
    """Handler for LiteLLMInstance resources.

    An instance has no external record; the engine skips the external phases
    and converges the ConfigMap, Secret, Deployment and Service instead.
    """

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_INSTANCE, LITELLM_API_GROUP, LITELLM_API_VERSION, PLURAL_INSTANCE, **kwargs)

    def connect(self, ctx: ReconcileContext, clients: ClusterClients, resource: dict[str, Any]) -> None:
        return None

    def resolve_master_key(self, core_api: client.CoreV1Api, name: str, namespace: str, spec: dict[str, Any]) -> str:
        """Pick the master key: explicit spec value, referenced secret, stored value, else a new one.

        Raises:
            ConfigError: If masterKeySecretRef points at a missing secret or key
        """
        if spec.get("masterKey"):
            return spec["masterKey"]

        secret_ref = spec.get("masterKeySecretRef") or {}
        if secret_ref.get("name"):
            try:
                return get_secret_value(core_api, namespace, secret_ref["name"], secret_ref.get("key", MASTER_KEY_FIELD))
            except ValueError as e:
                raise ConfigError(str(e)) from e

        existing = read_secret_data(core_api, namespace, secret_name(name)) or {}
        if existing.get(MASTER_KEY_FIELD):
            return existing[MASTER_KEY_FIELD]
        return str(uuid.uuid4())

    def deployment_ready(self, apps_api: client.AppsV1Api, name: str, namespace: str) -> bool:
        deployment = to_dict(apps_api.read_namespaced_deployment(name=deployment_name(name), namespace=namespace))
        desired = (deployment.get("spec") or {}).get("replicas")
        desired = 1 if desired is None else desired
        ready = (deployment.get("status") or {}).get("readyReplicas") or 0
        return ready >= desired

    def ensure_children(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: Any,
        record: dict[str, Any] | None,
        outcome: str | None,
    ) -> tuple[bool, dict[str, Any]]:
        meta = resource["metadata"]
        name, namespace = meta["name"], meta["namespace"]
        spec = resource.get("spec") or {}

        validate_models(spec.get("models") or [])
        config_yaml = render_proxy_config(spec)
        master_key = self.resolve_master_key(clients.core, name, namespace, spec)

        children = [
            ("configMapCreated", clients.core, build_config_map(name, namespace, config_yaml)),
            ("secretCreated", clients.core, build_master_key_secret(name, namespace, master_key)),
            ("deploymentCreated", clients.apps, build_deployment(name, namespace, spec, compute_hash(config_yaml))),
            ("serviceCreated", clients.core, build_service(name, namespace)),
        ]

        child_status: dict[str, Any] = {}
        changed = False
        for flag, api, body in children:
            ctx.check(f"children/{body['kind']}")
            written = create_or_update_with_retry(api, body, resource)
            if written != WRITE_UNCHANGED:
                changed = True
                self.log_info(meta, f"{body['kind']} {body['metadata']['name']} {written}", reason="ChildWritten")
            child_status[flag] = True

        if changed or not (resource.get("status") or {}).get("lastUpdated"):
            child_status["lastUpdated"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        return self.deployment_ready(clients.apps, name, namespace), child_status


_handler = InstanceHandler()


@kopf.on.create(LITELLM_API_GROUP_VERSION, KIND_INSTANCE)
@kopf.on.update(LITELLM_API_GROUP_VERSION, KIND_INSTANCE)
@kopf.on.resume(LITELLM_API_GROUP_VERSION, KIND_INSTANCE)
def handle_instance(body: kopf.Body, **kwargs: Any) -> None:
    """Handle LiteLLMInstance resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    LITELLM_API_GROUP_VERSION,
    KIND_INSTANCE,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_instance(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check LiteLLMInstance children."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(LITELLM_API_GROUP_VERSION, KIND_INSTANCE, optional=True)
def handle_instance_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle LiteLLMInstance deletion; children go with their owner."""
    _handler.handle(get_cluster_clients(), body)
