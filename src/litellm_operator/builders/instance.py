"""Builders for the child objects of a LiteLLM instance."""

from __future__ import annotations

import hashlib
from typing import Any

import yaml

from ..constants import (
    ANNOTATION_CONFIG_HASH,
    CONFIG_FILE_NAME,
    CONFIG_MOUNT_PATH,
    CONTAINER_PORT,
    LIVENESS_PATH,
    MASTER_KEY_FIELD,
    READINESS_PATH,
    SERVICE_PORT,
)
from ..services.litellm.model import CREDENTIAL_PARAMS, convert_litellm_params
from ..utils.errors import ConfigError
from ..utils.naming import (
    app_labels,
    config_map_name,
    deployment_name,
    env_var_name,
    secret_name,
    service_name,
)
from ..utils.secrets import build_secret_body

# Instance credentials also carry the vertex project
MODEL_CREDENTIAL_FIELDS = {**CREDENTIAL_PARAMS, "vertexProject": "vertex_project"}

DATABASE_ENV = {
    "DATABASE_HOST": "hostSecret",
    "DATABASE_NAME": "dbnameSecret",
    "DATABASE_USERNAME": "usernameSecret",
    "DATABASE_PASSWORD": "passwordSecret",
}

REDIS_ENV = {
    "REDIS_HOST": ("hostSecret", "redis_host"),
    "REDIS_PORT": ("portSecret", "redis_port"),
    "REDIS_PASSWORD": ("passwordSecret", "redis_password"),
}


def validate_models(models: list[dict[str, Any]]) -> None:
    """Reject instance model lists with missing or repeated identifiers.

    Raises:
        ConfigError: On a missing or duplicate identifier
    """
    seen: set[str] = set()
    for model in models:
        identifier = model.get("identifier")
        if not identifier:
            raise ConfigError(f"model {model.get('modelName')!r} has no identifier")
        if identifier in seen:
            raise ConfigError(f"duplicate model identifier {identifier!r}")
        seen.add(identifier)


def _secret_env(name: str, secret: str, key: str) -> dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def model_credential_env(model: dict[str, Any]) -> list[tuple[str, str, str, str]]:
    """List the credentials a model pulls from its secret.

    Returns:
        Tuples of (env var name, litellm param, secret name, secret key)
    """
    if not model.get("requiresAuth"):
        return []
    credentials = model.get("modelCredentials") or {}
    secret = credentials.get("nameRef")
    if not secret:
        raise ConfigError(f"model {model['identifier']!r} requires auth but has no modelCredentials.nameRef")
    entries = []
    for field, param in MODEL_CREDENTIAL_FIELDS.items():
        key = (credentials.get("keys") or {}).get(field)
        if key:
            entries.append((env_var_name(model["identifier"], param), param, secret, key))
    return entries


def render_proxy_config(spec: dict[str, Any]) -> str:
    """Render proxy_server_config.yaml for an instance spec."""
    model_list = []
    for model in spec.get("models") or []:
        params = convert_litellm_params(model.get("liteLLMParams") or {})
        for env_name, param, _, _ in model_credential_env(model):
            params[param] = f"os.environ/{env_name}"
        model_list.append({"model_name": model.get("modelName"), "litellm_params": params})

    config: dict[str, Any] = {"model_list": model_list}
    if (spec.get("redisSecretRef") or {}).get("nameRef"):
        config["router_settings"] = {setting: f"os.environ/{env}" for env, (_, setting) in REDIS_ENV.items()}
    config["general_settings"] = {
        "allow_requests_on_db_unavailable": True,
        "store_model_in_db": True,
    }
    return yaml.dump(
        config,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        Dumper=yaml.SafeDumper,
    )


def compute_hash(data: str) -> str:
    """Short sha256 digest used to roll pods when the config changes."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


def build_config_map(name: str, namespace: str, config_yaml: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": config_map_name(name), "namespace": namespace, "labels": app_labels(name)},
        "data": {CONFIG_FILE_NAME: config_yaml},
    }


def build_master_key_secret(name: str, namespace: str, master_key: str) -> dict[str, Any]:
    return build_secret_body(secret_name(name), namespace, {MASTER_KEY_FIELD: master_key}, labels=app_labels(name))


def build_env(name: str, spec: dict[str, Any]) -> list[dict[str, Any]]:
    """Environment for the proxy container."""
    env = [_secret_env("LITELLM_MASTER_KEY", secret_name(name), MASTER_KEY_FIELD)]

    database = spec.get("databaseSecretRef") or {}
    if database.get("nameRef"):
        keys = database.get("keys") or {}
        for env_name, field in DATABASE_ENV.items():
            if keys.get(field):
                env.append(_secret_env(env_name, database["nameRef"], keys[field]))

    redis = spec.get("redisSecretRef") or {}
    if redis.get("nameRef"):
        keys = redis.get("keys") or {}
        for env_name, (field, _) in REDIS_ENV.items():
            if keys.get(field):
                env.append(_secret_env(env_name, redis["nameRef"], keys[field]))

    for model in spec.get("models") or []:
        for env_name, _, secret, key in model_credential_env(model):
            env.append(_secret_env(env_name, secret, key))

    env.extend(spec.get("extraEnvVars") or [])
    return env


def build_deployment(name: str, namespace: str, spec: dict[str, Any], config_hash: str) -> dict[str, Any]:
    """Build the proxy Deployment.

    The config hash lands on the pod template so a config change rolls the pods.

    Raises:
        ConfigError: If the spec has no image
    """
    if not spec.get("image"):
        raise ConfigError("image is required")
    labels = app_labels(name)
    config_path = f"{CONFIG_MOUNT_PATH}/{CONFIG_FILE_NAME}"

    def http_check(path: str, delay: int) -> dict[str, Any]:
        return {
            "httpGet": {"path": path, "port": CONTAINER_PORT},
            "initialDelaySeconds": delay,
            "periodSeconds": 10,
        }

    container = {
        "name": "litellm",
        "image": spec["image"],
        "args": ["--config", config_path],
        "ports": [{"name": "http", "containerPort": CONTAINER_PORT, "protocol": "TCP"}],
        "env": build_env(name, spec),
        "volumeMounts": [{"name": "config-volume", "mountPath": CONFIG_MOUNT_PATH, "readOnly": True}],
        "livenessProbe": http_check(LIVENESS_PATH, 30),
        "readinessProbe": http_check(READINESS_PATH, 10),
    }
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": deployment_name(name), "namespace": namespace, "labels": labels},
        "spec": {
            "replicas": int(spec.get("replicas") or 1),
            "selector": {"matchLabels": labels},
            "template": {
                "metadata": {"labels": labels, "annotations": {ANNOTATION_CONFIG_HASH: config_hash}},
                "spec": {
                    "containers": [container],
                    "volumes": [{"name": "config-volume", "configMap": {"name": config_map_name(name)}}],
                },
            },
        },
    }


def build_service(name: str, namespace: str) -> dict[str, Any]:
    labels = app_labels(name)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": service_name(name), "namespace": namespace, "labels": labels},
        "spec": {
            "type": "ClusterIP",
            "selector": labels,
            "ports": [{"name": "http", "port": SERVICE_PORT, "targetPort": CONTAINER_PORT, "protocol": "TCP"}],
        },
    }
