"""Capability adapter for LiteLLM model deployments."""

from __future__ import annotations

import logging
from typing import Any

from ...constants import KIND_MODEL, MODEL_TAG
from ...utils.errors import ConfigError, NotFoundError
from ...utils.secrets import read_secret_data
from .base import LitellmAdapter, equal_ignoring_empty, parse_float

logger = logging.getLogger(__name__)

STRING_PARAMS = {
    "model": "model",
    "apiVersion": "api_version",
    "vertexProject": "vertex_project",
    "vertexLocation": "vertex_location",
    "regionName": "region_name",
    "awsRegionName": "aws_region_name",
    "watsonxRegionName": "watsonx_region_name",
    "customLLMProvider": "custom_llm_provider",
    "organization": "organization",
    "litellmCredentialName": "litellm_credential_name",
    "litellmTraceId": "litellm_trace_id",
    "budgetDuration": "budget_duration",
    "mockResponse": "mock_response",
    "autoRouterConfigPath": "auto_router_config_path",
    "autoRouterConfig": "auto_router_config",
    "autoRouterDefaultModel": "auto_router_default_model",
    "autoRouterEmbeddingModel": "auto_router_embedding_model",
}

INT_PARAMS = {
    "tpm": "tpm",
    "rpm": "rpm",
    "maxRetries": "max_retries",
    "maxFileSizeMb": "max_file_size_mb",
}

TIMEOUT_PARAMS = {
    "timeout": "timeout",
    "streamTimeout": "stream_timeout",
}

BOOL_PARAMS = {
    "useInPassThrough": "use_in_pass_through",
    "useLitellmProxy": "use_litellm_proxy",
    "mergeReasoningContentInChoices": "merge_reasoning_content_in_choices",
}

# Decimal strings in the spec, floats on the wire
DECIMAL_PARAMS = {
    "inputCostPerToken": "input_cost_per_token",
    "outputCostPerToken": "output_cost_per_token",
    "inputCostPerSecond": "input_cost_per_second",
    "outputCostPerSecond": "output_cost_per_second",
    "inputCostPerPixel": "input_cost_per_pixel",
    "outputCostPerPixel": "output_cost_per_pixel",
    "maxBudget": "max_budget",
}

# Credential fields read from the model secret
CREDENTIAL_PARAMS = {
    "apiKey": "api_key",
    "apiBase": "api_base",
    "awsAccessKeyId": "aws_access_key_id",
    "awsSecretAccessKey": "aws_secret_access_key",
    "vertexCredentials": "vertex_credentials",
}

# Masked or write-only on the service side; never compared
SECRET_PARAMS = {"api_key", "aws_access_key_id", "aws_secret_access_key", "vertex_credentials"}

DEFAULT_REQUIRED_FIELDS = ("apiKey", "apiBase")
GOOGLE_REQUIRED_FIELDS = ("vertexCredentials",)
AWS_REQUIRED_FIELDS = ("awsAccessKeyId", "awsSecretAccessKey")

PROVIDER_REQUIRED_FIELDS = {
    "openai": DEFAULT_REQUIRED_FIELDS,
    "anthropic": DEFAULT_REQUIRED_FIELDS,
    "azure": DEFAULT_REQUIRED_FIELDS,
    "google": GOOGLE_REQUIRED_FIELDS,
    "vertex_ai": GOOGLE_REQUIRED_FIELDS,
    "gemini": GOOGLE_REQUIRED_FIELDS,
    "aws": AWS_REQUIRED_FIELDS,
    "bedrock": AWS_REQUIRED_FIELDS,
}

MODEL_INFO_FIELDS = {
    "teamId": "team_id",
    "teamPublicModelName": "team_public_model_name",
    "dbModel": "db_model",
}


def _coerce(value: Any, cast: Any, field: str) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{field}: invalid value {value!r}") from e


def convert_litellm_params(params: dict[str, Any]) -> dict[str, Any]:
    """Convert camelCase litellm params from a spec into the wire format.

    Credential fields are not handled here; callers inject them from secrets.

    Raises:
        ConfigError: If a numeric field holds an invalid value
    """
    converted: dict[str, Any] = {}
    for source, target in STRING_PARAMS.items():
        if params.get(source):
            converted[target] = params[source]
    for source, target in INT_PARAMS.items():
        if params.get(source) is not None:
            converted[target] = _coerce(params[source], int, source)
    for source, target in TIMEOUT_PARAMS.items():
        if params.get(source) is not None:
            converted[target] = _coerce(params[source], float, source)
    for source, target in BOOL_PARAMS.items():
        if params.get(source) is not None:
            converted[target] = bool(params[source])
    for source, target in DECIMAL_PARAMS.items():
        value = parse_float(params.get(source), source)
        if value is not None:
            converted[target] = value
    if params.get("configurableClientsideAuthParams"):
        converted["configurable_clientside_auth_params"] = list(params["configurableClientsideAuthParams"])
    return converted


def determine_provider(params: dict[str, Any]) -> str:
    """Work out the model provider from customLLMProvider or the model prefix.

    Raises:
        ConfigError: If neither carries a provider
    """
    if params.get("customLLMProvider"):
        return params["customLLMProvider"]
    model = params.get("model") or ""
    if "/" in model:
        return model.split("/", 1)[0]
    raise ConfigError(f"unable to determine model provider for model {model!r}")


def validate_provider_credentials(provider: str, credentials: dict[str, str]) -> None:
    """Check that the credential secret holds every field the provider needs.

    Raises:
        ConfigError: If a required field is missing or blank
    """
    for field in PROVIDER_REQUIRED_FIELDS.get(provider, DEFAULT_REQUIRED_FIELDS):
        if field not in credentials:
            raise ConfigError(f"required field '{field}' is missing for {provider} provider")
        if not credentials[field].strip():
            raise ConfigError(f"required field '{field}' cannot be empty for {provider} provider")


def tag_model_name(model_name: str) -> str:
    """Append the CRD source tag unless already present."""
    if model_name.endswith(MODEL_TAG):
        return model_name
    return model_name + MODEL_TAG


class ModelAdapter(LitellmAdapter):
    """Maps a Model resource onto the /model endpoints."""

    kind = KIND_MODEL

    def _read_credentials(self) -> dict[str, str]:
        secret_ref = self.spec.get("modelSecretRef") or {}
        secret_name = secret_ref.get("secretName") or secret_ref.get("name")
        if not secret_name:
            raise ConfigError("modelSecretRef.secretName is required")
        namespace = secret_ref.get("namespace") or self.namespace
        data = read_secret_data(self.core_api, namespace, secret_name)
        if data is None:
            raise ConfigError(f"model secret {namespace}/{secret_name} not found")
        return data

    def convert(self) -> dict[str, Any]:
        spec = self.spec
        params = spec.get("litellmParams") or {}
        if not spec.get("modelName"):
            raise ConfigError("modelName is required")
        if not params.get("model"):
            raise ConfigError("litellmParams.model is required")

        provider = determine_provider(params)
        credentials = self._read_credentials()
        validate_provider_credentials(provider, credentials)

        litellm_params = convert_litellm_params(params)
        litellm_params.setdefault("merge_reasoning_content_in_choices", False)
        for source, target in CREDENTIAL_PARAMS.items():
            if credentials.get(source):
                litellm_params[target] = credentials[source]

        model_info = {
            target: spec["modelInfo"][source]
            for source, target in MODEL_INFO_FIELDS.items()
            if (spec.get("modelInfo") or {}).get(source) is not None
        }
        stored_id = self.status.get("modelId")
        if stored_id:
            model_info["id"] = stored_id

        return {
            "model_name": tag_model_name(spec["modelName"]),
            "litellm_params": litellm_params,
            "model_info": model_info,
        }

    def resolve(self, desired: dict[str, Any]) -> list[str]:
        stored_id = self.status.get("modelId")
        if not stored_id:
            return []
        try:
            self.litellm.get_model_info(stored_id)
        except NotFoundError:
            logger.info(f"Model {stored_id} recorded in status no longer exists")
            return []
        return [stored_id]

    def get_detail(self, identity: str) -> dict[str, Any]:
        return self.litellm.get_model_info(identity)

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        return self.litellm.create_model(desired)

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        payload = dict(desired)
        payload["model_info"] = {**desired.get("model_info", {}), "id": identity}
        record = dict(self.litellm.update_model(identity, payload) or {})
        if not self.identity_of(record):
            record["model_info"] = {**(record.get("model_info") or {}), "id": identity}
        record.setdefault("model_name", desired["model_name"])
        return record

    def delete(self, identity: str) -> None:
        self.litellm.delete_model(identity)

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        if observed.get("model_name") != desired["model_name"]:
            logger.info(f"Model {desired['model_name']}: model_name changed")
            return True

        observed_params = observed.get("litellm_params") or {}
        for field, value in desired["litellm_params"].items():
            if field in SECRET_PARAMS:
                continue
            if not equal_ignoring_empty(observed_params.get(field), value):
                logger.info(f"Model {desired['model_name']}: litellm_params.{field} changed")
                return True

        observed_info = observed.get("model_info") or {}
        for field in ("team_id", "team_public_model_name"):
            if not equal_ignoring_empty(observed_info.get(field), desired["model_info"].get(field)):
                logger.info(f"Model {desired['model_name']}: model_info.{field} changed")
                return True
        return False

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return (record.get("model_info") or {}).get("id") or record.get("model_id")

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        params = record.get("litellm_params") or {}
        status: dict[str, Any] = {
            "modelId": self.identity_of(record),
            "modelName": record.get("model_name"),
        }
        summary = {
            "model": params.get("model"),
            "customLLMProvider": params.get("custom_llm_provider"),
        }
        summary = {k: v for k, v in summary.items() if v}
        if summary:
            status["litellmParams"] = summary
        return {k: v for k, v in status.items() if v is not None}
