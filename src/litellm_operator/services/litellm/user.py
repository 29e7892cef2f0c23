"""Capability adapter for LiteLLM internal users."""

from __future__ import annotations

import logging
from typing import Any

from ...constants import KIND_USER, MANAGED_BY_KEY, MANAGED_BY_VALUE
from ...utils.errors import ConfigError, NotFoundError
from ...utils.naming import key_secret_name
from .base import LitellmAdapter, equal_ignoring_empty, format_amount, parse_float

logger = logging.getLogger(__name__)

VALID_ROLES = ("proxy_admin", "proxy_admin_viewer", "internal_user", "internal_user_viewer")

SPEC_FIELDS = {
    "aliases": "aliases",
    "allowedCacheControls": "allowed_cache_controls",
    "blocked": "blocked",
    "budgetDuration": "budget_duration",
    "duration": "duration",
    "guardrails": "guardrails",
    "keyAlias": "key_alias",
    "maxParallelRequests": "max_parallel_requests",
    "modelMaxBudget": "model_max_budget",
    "modelRPMLimit": "model_rpm_limit",
    "modelTPMLimit": "model_tpm_limit",
    "models": "models",
    "permissions": "permissions",
    "rpmLimit": "rpm_limit",
    "sendInviteEmail": "send_invite_email",
    "ssoUserID": "sso_user_id",
    "teams": "teams",
    "tpmLimit": "tpm_limit",
    "userAlias": "user_alias",
    "userEmail": "user_email",
    "userID": "user_id",
    "userRole": "user_role",
}

# Fields whose drift triggers a repair
COMPARED_FIELDS = (
    "guardrails",
    "max_parallel_requests",
    "rpm_limit",
    "sso_user_id",
    "user_alias",
    "user_email",
    "user_role",
)

# Accepted at creation only
CREATE_ONLY_FIELDS = ("auto_create_key", "duration", "key_alias")

STATUS_FIELDS = {
    "aliases": "aliases",
    "allowed_cache_controls": "allowedCacheControls",
    "allowed_routes": "allowedRoutes",
    "blocked": "blocked",
    "budget_duration": "budgetDuration",
    "budget_id": "budgetID",
    "config": "config",
    "created_at": "createdAt",
    "created_by": "createdBy",
    "duration": "duration",
    "enforced_params": "enforcedParams",
    "expires": "expires",
    "guardrails": "guardrails",
    "key_alias": "keyAlias",
    "key_name": "keyName",
    "litellm_budget_table": "litellmBudgetTable",
    "max_parallel_requests": "maxParallelRequests",
    "models": "models",
    "permissions": "permissions",
    "rpm_limit": "rpmLimit",
    "tags": "tags",
    "teams": "teams",
    "tpm_limit": "tpmLimit",
    "updated_at": "updatedAt",
    "updated_by": "updatedBy",
    "user_alias": "userAlias",
    "user_email": "userEmail",
    "user_id": "userID",
    "user_role": "userRole",
}


class UserAdapter(LitellmAdapter):
    """Maps a User resource onto the /user endpoints, resolved by email.

    With ``autoCreateKey`` LiteLLM issues a key alongside the user and reveals
    it once, in the creation response.
    """

    kind = KIND_USER

    def convert(self) -> dict[str, Any]:
        spec = self.spec
        if not spec.get("userEmail"):
            raise ConfigError("userEmail is required")
        role = spec.get("userRole")
        if role and role not in VALID_ROLES:
            raise ConfigError(f"userRole must be one of {', '.join(VALID_ROLES)}, got {role!r}")
        if spec.get("autoCreateKey") and not spec.get("keyAlias"):
            raise ConfigError("keyAlias is required when autoCreateKey is set")

        # models: [] means no model access, so only an absent list is dropped
        desired = {target: spec[source] for source, target in SPEC_FIELDS.items() if spec.get(source) is not None}
        desired["auto_create_key"] = bool(spec.get("autoCreateKey"))

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
        """Return users carrying the desired email.

        Raises:
            ConfigError: If a referenced team does not exist
        """
        for team_id in desired.get("teams") or []:
            try:
                self.litellm.get_team_info(team_id)
            except NotFoundError as e:
                raise ConfigError(f"team {team_id} referenced in teams does not exist") from e
        return self.litellm.list_user_ids_by_email(desired["user_email"])

    def get_detail(self, identity: str) -> dict[str, Any]:
        return self.litellm.get_user_info(identity)

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        return self.litellm.create_user(desired)

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        payload = {k: v for k, v in desired.items() if k not in CREATE_ONLY_FIELDS}
        payload["user_id"] = identity
        record = dict(self.litellm.update_user(payload))
        record.setdefault("user_id", identity)
        record.pop("key", None)
        return record

    def delete(self, identity: str) -> None:
        self.litellm.delete_user(identity)

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        for field in COMPARED_FIELDS:
            if field not in observed:
                continue
            if not equal_ignoring_empty(observed.get(field), desired.get(field)):
                logger.info(f"User {desired.get('user_email')}: {field} changed")
                return True
        return False

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return record.get("user_id")

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        status = {target: record[source] for source, target in STATUS_FIELDS.items() if record.get(source) is not None}
        status["maxBudget"] = format_amount(record.get("max_budget"))
        status["spend"] = format_amount(record.get("spend"))
        secret = self.secret_name(record)
        if secret:
            status["keySecretRef"] = secret
        return status

    def secret_from(self, record: dict[str, Any]) -> tuple[str, dict[str, str]] | None:
        key = record.get("key")
        name = self.secret_name(record)
        if not key or not name:
            return None
        return name, {"key": key}

    def secret_name(self, record: dict[str, Any]) -> str | None:
        if not self.spec.get("autoCreateKey"):
            return None
        key_alias = self.spec.get("keyAlias") or record.get("key_alias")
        return key_secret_name(key_alias) if key_alias else None
