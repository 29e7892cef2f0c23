"""Capability adapter for LiteLLM teams."""

from __future__ import annotations

import logging
from typing import Any

from ...constants import KIND_TEAM, MANAGED_BY_KEY, MANAGED_BY_VALUE
from ...utils.errors import ConfigError
from .base import LitellmAdapter, equal_ignoring_empty, format_amount, parse_float

logger = logging.getLogger(__name__)

SPEC_FIELDS = {
    "blocked": "blocked",
    "budgetDuration": "budget_duration",
    "guardrails": "guardrails",
    "modelAliases": "model_aliases",
    "models": "models",
    "organizationID": "organization_id",
    "rpmLimit": "rpm_limit",
    "tags": "tags",
    "teamAlias": "team_alias",
    "teamID": "team_id",
    "teamMemberPermissions": "team_member_permissions",
    "tpmLimit": "tpm_limit",
}

COMPARED_FIELDS = (
    "blocked",
    "budget_duration",
    "max_budget",
    "models",
    "organization_id",
    "rpm_limit",
    "team_alias",
    "team_member_permissions",
    "tpm_limit",
)

STATUS_FIELDS = {
    "blocked": "blocked",
    "budget_duration": "budgetDuration",
    "budget_reset_at": "budgetResetAt",
    "created_at": "createdAt",
    "litellm_model_table": "liteLLMModelTable",
    "max_parallel_requests": "maxParallelRequests",
    "model_id": "modelID",
    "models": "models",
    "organization_id": "organizationID",
    "rpm_limit": "rpmLimit",
    "tags": "tags",
    "team_alias": "teamAlias",
    "team_id": "teamID",
    "team_member_permissions": "teamMemberPermissions",
    "tpm_limit": "tpmLimit",
    "updated_at": "updatedAt",
}


def members_with_role(record: dict[str, Any]) -> list[dict[str, str]]:
    members = []
    for member in record.get("members_with_roles") or []:
        entry = {
            "userID": member.get("user_id"),
            "userEmail": member.get("user_email"),
            "role": member.get("role"),
        }
        members.append({k: v for k, v in entry.items() if v})
    return members


class TeamAdapter(LitellmAdapter):
    """Maps a Team resource onto the /team endpoints, resolved by alias."""

    kind = KIND_TEAM

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._observed: dict[str, Any] | None = None

    def convert(self) -> dict[str, Any]:
        spec = self.spec
        if not spec.get("teamAlias"):
            raise ConfigError("teamAlias is required")

        desired = {target: spec[source] for source, target in SPEC_FIELDS.items() if spec.get(source) is not None}
        max_budget = parse_float(spec.get("maxBudget"), "maxBudget")
        if max_budget is not None:
            desired["max_budget"] = max_budget

        metadata = {MANAGED_BY_KEY: MANAGED_BY_VALUE}
        metadata.update(spec.get("metadata") or {})
        desired["metadata"] = metadata
        return desired

    def resolve(self, desired: dict[str, Any]) -> list[str]:
        teams = self.litellm.list_teams_by_alias(desired["team_alias"])
        return [team["team_id"] for team in teams if team.get("team_id")]

    def get_detail(self, identity: str) -> dict[str, Any]:
        info = dict(self.litellm.get_team_info(identity))
        info.setdefault("team_id", identity)
        self._observed = info
        return info

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        return self.litellm.create_team(desired)

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        payload = dict(desired)
        payload["team_id"] = identity
        blocked = bool(payload.get("blocked"))
        if self._observed is not None and bool(self._observed.get("blocked")) != blocked:
            self.litellm.set_team_blocked(identity, blocked)
        record = dict(self.litellm.update_team(payload))
        record.setdefault("team_id", identity)
        return record

    def delete(self, identity: str) -> None:
        self.litellm.delete_team(identity)

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        for field in COMPARED_FIELDS:
            if field not in observed:
                continue
            if not equal_ignoring_empty(observed.get(field), desired.get(field)):
                logger.info(f"Team {desired.get('team_alias')}: {field} changed")
                return True
        return False

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return record.get("team_id")

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        status = {target: record[source] for source, target in STATUS_FIELDS.items() if record.get(source) is not None}
        status["maxBudget"] = format_amount(record.get("max_budget"))
        status["spend"] = format_amount(record.get("spend"))
        members = members_with_role(record)
        if members:
            status["membersWithRole"] = members
        return status
