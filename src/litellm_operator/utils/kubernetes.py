"""Optimistic-concurrency writer for owned child objects."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from kubernetes import client

from .. import metrics
from ..constants import (
    ANNOTATION_CONFIG_HASH,
    FIELD_MANAGER,
    WRITE_BACKOFF_SECONDS,
    WRITE_MAX_ATTEMPTS,
)
from .errors import WriteConflictError

logger = logging.getLogger(__name__)

WRITE_CREATED = "created"
WRITE_UPDATED = "updated"
WRITE_UNCHANGED = "unchanged"


def _first_container(obj: dict[str, Any]) -> dict[str, Any]:
    containers = obj.get("spec", {}).get("template", {}).get("spec", {}).get("containers") or [{}]
    return containers[0]


def _template_annotation(obj: dict[str, Any]) -> str | None:
    annotations = obj.get("spec", {}).get("template", {}).get("metadata", {}).get("annotations") or {}
    return annotations.get(ANNOTATION_CONFIG_HASH)


def _data_equal(existing: dict[str, Any], desired: dict[str, Any]) -> bool:
    return (existing.get("data") or {}) == (desired.get("data") or {})


def _deployment_equal(existing: dict[str, Any], desired: dict[str, Any]) -> bool:
    current, wanted = _first_container(existing), _first_container(desired)
    return (
        existing.get("spec", {}).get("replicas") == desired.get("spec", {}).get("replicas")
        and current.get("image") == wanted.get("image")
        and (current.get("args") or []) == (wanted.get("args") or [])
        and _template_annotation(existing) == _template_annotation(desired)
    )


def _normalize_ports(obj: dict[str, Any]) -> list[tuple[Any, ...]]:
    ports = obj.get("spec", {}).get("ports") or []
    return sorted(
        (p.get("name"), p.get("port"), str(p.get("targetPort", p.get("port"))), p.get("protocol") or "TCP")
        for p in ports
    )


def _service_equal(existing: dict[str, Any], desired: dict[str, Any]) -> bool:
    return (
        _normalize_ports(existing) == _normalize_ports(desired)
        and (existing.get("spec", {}).get("selector") or {}) == (desired.get("spec", {}).get("selector") or {})
    )


def _keep_cluster_ip(existing: dict[str, Any], body: dict[str, Any]) -> None:
    cluster_ip = existing.get("spec", {}).get("clusterIP")
    if cluster_ip:
        body.setdefault("spec", {})["clusterIP"] = cluster_ip


@dataclass(frozen=True)
class ChildKind:
    """API verbs and the equality predicate for one child object kind."""

    read: str
    create: str
    replace: str
    equal: Callable[[dict[str, Any], dict[str, Any]], bool]
    carry_over: Callable[[dict[str, Any], dict[str, Any]], None] | None = None


CHILD_KINDS: dict[str, ChildKind] = {
    "ConfigMap": ChildKind(
        "read_namespaced_config_map", "create_namespaced_config_map", "replace_namespaced_config_map", _data_equal
    ),
    "Secret": ChildKind("read_namespaced_secret", "create_namespaced_secret", "replace_namespaced_secret", _data_equal),
    "Deployment": ChildKind(
        "read_namespaced_deployment", "create_namespaced_deployment", "replace_namespaced_deployment", _deployment_equal
    ),
    "Service": ChildKind(
        "read_namespaced_service",
        "create_namespaced_service",
        "replace_namespaced_service",
        _service_equal,
        _keep_cluster_ip,
    ),
}


def owner_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at the managed resource."""
    meta = owner.get("metadata", {})
    return {
        "apiVersion": owner.get("apiVersion"),
        "kind": owner.get("kind"),
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def to_dict(obj: Any) -> dict[str, Any]:
    """Convert a kubernetes client model into its JSON-shaped dict."""
    if isinstance(obj, dict):
        return obj
    return client.ApiClient().sanitize_for_serialization(obj)


def _is_owned_by(existing: dict[str, Any], owner: dict[str, Any]) -> bool:
    uid = owner.get("metadata", {}).get("uid")
    refs = existing.get("metadata", {}).get("ownerReferences") or []
    return any(ref.get("uid") == uid for ref in refs)


def create_or_update_with_retry(
    api: Any,
    desired: dict[str, Any],
    owner: dict[str, Any],
    max_attempts: int = WRITE_MAX_ATTEMPTS,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Create or replace a child object, retrying on optimistic-concurrency conflicts.

    The current object is re-read on every attempt. When it already matches the
    desired state (per the kind's equality predicate) nothing is written.

    Args:
        api: CoreV1Api or AppsV1Api instance serving the object's kind
        desired: Desired object manifest in JSON form
        owner: Managed resource that owns the child
        max_attempts: Number of attempts before giving up
        sleep: Sleep function used for the linear backoff

    Returns:
        One of WRITE_CREATED, WRITE_UPDATED, WRITE_UNCHANGED

    Raises:
        WriteConflictError: If every attempt hit a conflict
        client.exceptions.ApiException: For any non-conflict API failure
    """
    kind = desired["kind"]
    verbs = CHILD_KINDS[kind]
    name = desired["metadata"]["name"]
    namespace = desired["metadata"]["namespace"]

    desired = copy.deepcopy(desired)
    desired["metadata"]["ownerReferences"] = [owner_reference(owner)]

    for attempt in range(1, max_attempts + 1):
        try:
            try:
                current = getattr(api, verbs.read)(name=name, namespace=namespace)
            except client.exceptions.ApiException as e:
                if e.status != 404:
                    raise
                getattr(api, verbs.create)(namespace=namespace, body=desired, field_manager=FIELD_MANAGER)
                metrics.child_write_total.labels(child_kind=kind, action=WRITE_CREATED).inc()
                return WRITE_CREATED

            existing = to_dict(current)
            if verbs.equal(existing, desired) and _is_owned_by(existing, owner):
                return WRITE_UNCHANGED

            body = copy.deepcopy(desired)
            existing_meta = existing.get("metadata", {})
            body["metadata"]["resourceVersion"] = existing_meta.get("resourceVersion")
            if existing_meta.get("uid"):
                body["metadata"]["uid"] = existing_meta["uid"]
            if verbs.carry_over is not None:
                verbs.carry_over(existing, body)

            getattr(api, verbs.replace)(name=name, namespace=namespace, body=body, field_manager=FIELD_MANAGER)
            metrics.child_write_total.labels(child_kind=kind, action=WRITE_UPDATED).inc()
            return WRITE_UPDATED
        except client.exceptions.ApiException as e:
            if e.status != 409:
                raise
            metrics.write_conflict_retries_total.labels(child_kind=kind).inc()
            logger.info(f"Conflict writing {kind} {namespace}/{name}, attempt {attempt}/{max_attempts}")
            if attempt < max_attempts:
                sleep(WRITE_BACKOFF_SECONDS * attempt)

    raise WriteConflictError(f"Gave up writing {kind} {namespace}/{name} after {max_attempts} conflicting attempts")
