"""Capability adapter for LiteLLM virtual keys."""

from __future__ import annotations

import logging
from typing import Any

from ...constants import KIND_VIRTUAL_KEY, MANAGED_BY_KEY, MANAGED_BY_VALUE
from ...utils.errors import ConfigError
from ...utils.naming import key_secret_name
from .base import LitellmAdapter, equal_ignoring_empty, format_amount, parse_float

logger = logging.getLogger(__name__)

# Spec field -> request field, copied as-is
SPEC_FIELDS = {
    "aliases": "aliases",
    "allowedCacheControls": "allowed_cache_controls",
    "allowedRoutes": "allowed_routes",
    "blocked": "blocked",
    "budgetDuration": "budget_duration",
    "budgetID": "budget_id",
    "config": "config",
    "duration": "duration",
    "enforcedParams": "enforced_params",
    "guardrails": "guardrails",
    "key": "key",
    "keyAlias": "key_alias",
    "maxParallelRequests": "max_parallel_requests",
    "modelMaxBudget": "model_max_budget",
    "modelRPMLimit": "model_rpm_limit",
    "modelTPMLimit": "model_tpm_limit",
    "models": "models",
    "permissions": "permissions",
    "rpmLimit": "rpm_limit",
    "sendInviteEmail": "send_invite_email",
    "tags": "tags",
    "teamID": "team_id",
    "tpmLimit": "tpm_limit",
    "userID": "user_id",
}

# Request fields that count as drift when they differ
COMPARED_FIELDS = (
    "aliases",
    "allowed_cache_controls",
    "allowed_routes",
    "blocked",
    "budget_duration",
    "budget_id",
    "config",
    "duration",
    "enforced_params",
    "guardrails",
    "key_alias",
    "max_budget",
    "max_parallel_requests",
    "models",
    "permissions",
    "rpm_limit",
    "tags",
    "team_id",
    "tpm_limit",
    "user_id",
)

# Record field -> status field
STATUS_FIELDS = {
    "aliases": "aliases",
    "allowed_cache_controls": "allowedCacheControls",
    "allowed_routes": "allowedRoutes",
    "blocked": "blocked",
    "budget_duration": "budgetDuration",
    "budget_id": "budgetID",
    "budget_reset_at": "budgetResetAt",
    "config": "config",
    "created_at": "createdAt",
    "created_by": "createdBy",
    "duration": "duration",
    "enforced_params": "enforcedParams",
    "expires": "expires",
    "guardrails": "guardrails",
    "key_alias": "keyAlias",
    "key_name": "keyName",
    "max_parallel_requests": "maxParallelRequests",
    "models": "models",
    "permissions": "permissions",
    "rpm_limit": "rpmLimit",
    "tags": "tags",
    "team_id": "teamID",
    "token": "token",
    "tpm_limit": "tpmLimit",
    "updated_at": "updatedAt",
    "updated_by": "updatedBy",
    "user_id": "userID",
}


class VirtualKeyAdapter(LitellmAdapter):
    """Maps a VirtualKey resource onto the /key endpoints."""

    kind = KIND_VIRTUAL_KEY

    def convert(self) -> dict[str, Any]:
        spec = self.spec
        if not spec.get("keyAlias"):
            raise ConfigError("keyAlias is required")

        desired = {target: spec[source] for source, target in SPEC_FIELDS.items() if spec.get(source) is not None}

        max_budget = parse_float(spec.get("maxBudget"), "maxBudget")
        if max_budget is not None:
            desired["max_budget"] = max_budget
        soft_budget = parse_float(spec.get("softBudget"), "softBudget")
        if soft_budget is not None:
            desired["soft_budget"] = soft_budget

        metadata = {MANAGED_BY_KEY: MANAGED_BY_VALUE}
        metadata.update(spec.get("metadata") or {})
        desired["metadata"] = metadata
        return desired

    def resolve(self, desired: dict[str, Any]) -> list[str]:
        return self.litellm.list_keys_by_alias(desired["key_alias"])

    def get_detail(self, identity: str) -> dict[str, Any]:
        return self.litellm.get_key_info(identity)

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        return self.litellm.generate_key(desired)

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        payload = dict(desired)
        # The key field addresses the record; the hashed token is accepted in place of the raw key
        payload["key"] = identity
        record = dict(self.litellm.update_key(payload) or {})
        record.setdefault("token", identity)
        # Never let an update response masquerade as a freshly revealed key
        record.pop("key", None)
        return record

    def delete(self, identity: str) -> None:
        key_alias = self.status.get("keyAlias") or self.spec.get("keyAlias")
        if key_alias:
            self.litellm.delete_key_by_alias(key_alias)
        else:
            self.litellm.delete_keys([identity])

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        for field in COMPARED_FIELDS:
            # Fields the service never echoes back cannot drift
            if field not in observed:
                continue
            if not equal_ignoring_empty(observed.get(field), desired.get(field)):
                logger.info(f"VirtualKey {desired.get('key_alias')}: {field} changed")
                return True
        return False

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return record.get("token_id") or record.get("token")

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        status = {target: record[source] for source, target in STATUS_FIELDS.items() if record.get(source) is not None}
        status["keyID"] = self.identity_of(record)
        status["maxBudget"] = format_amount(record.get("max_budget"))
        status["spend"] = format_amount(record.get("spend"))
        status["keySecretRef"] = self.secret_name(record)
        return {k: v for k, v in status.items() if v is not None}

    def secret_from(self, record: dict[str, Any]) -> tuple[str, dict[str, str]] | None:
        key = record.get("key")
        name = self.secret_name(record)
        if not key or not name:
            return None
        return name, {"key": key}

    def secret_name(self, record: dict[str, Any]) -> str | None:
        key_alias = record.get("key_alias") or self.spec.get("keyAlias")
        return key_secret_name(key_alias) if key_alias else None
