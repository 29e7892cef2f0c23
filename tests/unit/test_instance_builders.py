"""Tests for LiteLLM instance child builders."""

from __future__ import annotations

import base64

import pytest
import yaml

from litellm_operator.constants import ANNOTATION_CONFIG_HASH, CONFIG_FILE_NAME
from litellm_operator.builders.instance import (
    build_config_map,
    build_deployment,
    build_env,
    build_master_key_secret,
    build_service,
    compute_hash,
    model_credential_env,
    render_proxy_config,
    validate_models,
)
from litellm_operator.utils.errors import ConfigError

MODEL = {
    "identifier": "gpt4o",
    "modelName": "gpt-4o",
    "requiresAuth": True,
    "liteLLMParams": {"model": "openai/gpt-4o", "rpm": 60},
    "modelCredentials": {"nameRef": "openai-creds", "keys": {"apiKey": "OPENAI_API_KEY"}},
}


def instance_spec(**overrides) -> dict:
    spec = {"image": "ghcr.io/berriai/litellm:main-stable", "replicas": 2, "models": [MODEL]}
    spec.update(overrides)
    return spec


class TestValidateModels:
    def test_duplicate_identifier(self):
        with pytest.raises(ConfigError, match="duplicate"):
            validate_models([MODEL, dict(MODEL)])

    def test_missing_identifier(self):
        with pytest.raises(ConfigError):
            validate_models([{"modelName": "gpt-4o"}])

    def test_valid(self):
        validate_models([MODEL, {**MODEL, "identifier": "other"}])


class TestProxyConfig:
    """Test proxy_server_config.yaml rendering."""

    def test_model_list(self):
        config = yaml.safe_load(render_proxy_config(instance_spec()))

        assert config["model_list"] == [
            {
                "model_name": "gpt-4o",
                "litellm_params": {
                    "model": "openai/gpt-4o",
                    "rpm": 60,
                    "api_key": "os.environ/GPT4O_API_KEY",
                },
            }
        ]
        assert config["general_settings"]["store_model_in_db"] is True
        assert "router_settings" not in config

    def test_redis_router_settings(self):
        spec = instance_spec(redisSecretRef={"nameRef": "redis", "keys": {"hostSecret": "host"}})

        config = yaml.safe_load(render_proxy_config(spec))

        assert config["router_settings"]["redis_host"] == "os.environ/REDIS_HOST"

    def test_auth_without_secret(self):
        model = {**MODEL, "modelCredentials": {}}

        with pytest.raises(ConfigError, match="nameRef"):
            model_credential_env(model)

    def test_no_auth(self):
        assert model_credential_env({**MODEL, "requiresAuth": False}) == []

    def test_hash_stable(self):
        rendered = render_proxy_config(instance_spec())
        assert compute_hash(rendered) == compute_hash(render_proxy_config(instance_spec()))
        assert len(compute_hash(rendered)) == 16


class TestChildManifests:
    """Test ConfigMap, Secret, Deployment and Service manifests."""

    def test_config_map(self):
        cm = build_config_map("proxy", "litellm", "model_list: []\n")

        assert cm["metadata"]["name"] == "proxy-config"
        assert cm["data"] == {CONFIG_FILE_NAME: "model_list: []\n"}

    def test_master_key_secret(self):
        secret = build_master_key_secret("proxy", "litellm", "sk-master")

        assert secret["metadata"]["name"] == "proxy-secrets"
        assert base64.b64decode(secret["data"]["masterkey"]).decode() == "sk-master"

    def test_env(self):
        spec = instance_spec(
            databaseSecretRef={"nameRef": "db", "keys": {"hostSecret": "host", "passwordSecret": "pw"}},
            extraEnvVars=[{"name": "LITELLM_LOG", "value": "DEBUG"}],
        )

        env = {e["name"]: e for e in build_env("proxy", spec)}

        assert env["LITELLM_MASTER_KEY"]["valueFrom"]["secretKeyRef"] == {"name": "proxy-secrets", "key": "masterkey"}
        assert env["DATABASE_HOST"]["valueFrom"]["secretKeyRef"] == {"name": "db", "key": "host"}
        assert env["DATABASE_PASSWORD"]["valueFrom"]["secretKeyRef"] == {"name": "db", "key": "pw"}
        assert "DATABASE_NAME" not in env
        assert env["GPT4O_API_KEY"]["valueFrom"]["secretKeyRef"] == {"name": "openai-creds", "key": "OPENAI_API_KEY"}
        assert env["LITELLM_LOG"] == {"name": "LITELLM_LOG", "value": "DEBUG"}

    def test_deployment(self):
        deployment = build_deployment("proxy", "litellm", instance_spec(), "abc123")

        assert deployment["metadata"]["name"] == "proxy-deployment"
        assert deployment["spec"]["replicas"] == 2
        template = deployment["spec"]["template"]
        assert template["metadata"]["annotations"][ANNOTATION_CONFIG_HASH] == "abc123"
        container = template["spec"]["containers"][0]
        assert container["image"] == "ghcr.io/berriai/litellm:main-stable"
        assert container["args"] == ["--config", "/etc/litellm/proxy_server_config.yaml"]
        assert template["spec"]["volumes"][0]["configMap"]["name"] == "proxy-config"
        assert deployment["spec"]["selector"]["matchLabels"] == {"app": "litellm-proxy"}

    def test_deployment_requires_image(self):
        with pytest.raises(ConfigError, match="image"):
            build_deployment("proxy", "litellm", instance_spec(image=""), "abc123")

    def test_service(self):
        service = build_service("proxy", "litellm")

        assert service["metadata"]["name"] == "proxy-service"
        assert service["spec"]["ports"][0]["port"] == 80
        assert service["spec"]["ports"][0]["targetPort"] == 4000
        assert service["spec"]["selector"] == {"app": "litellm-proxy"}
