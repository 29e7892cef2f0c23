"""Capability adapter for LiteLLM team memberships."""

from __future__ import annotations

import logging
from typing import Any

from ...constants import KIND_TEAM_MEMBER_ASSOCIATION
from ...utils.errors import ConfigError, NotFoundError
from .base import LitellmAdapter, parse_float

logger = logging.getLogger(__name__)

VALID_ROLES = ("admin", "user")


def find_member(team_info: dict[str, Any], user_email: str) -> dict[str, Any] | None:
    """Find a member entry by email in a /team/info payload."""
    for member in team_info.get("members_with_roles") or []:
        if member.get("user_email") == user_email:
            return member
    return None


class TeamMemberAdapter(LitellmAdapter):
    """Maps a TeamMemberAssociation onto the /team/member_* endpoints.

    The identity is the team id; the member is addressed by the user email
    carried in the desired state.
    """

    kind = KIND_TEAM_MEMBER_ASSOCIATION

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._team: dict[str, Any] | None = None

    def convert(self) -> dict[str, Any]:
        spec = self.spec
        if not spec.get("teamAlias"):
            raise ConfigError("teamAlias is required")
        if not spec.get("userEmail"):
            raise ConfigError("userEmail is required")
        role = spec.get("role") or "user"
        if role not in VALID_ROLES:
            raise ConfigError(f"role must be one of {', '.join(VALID_ROLES)}, got {role!r}")
        return {
            "team_alias": spec["teamAlias"],
            "user_email": spec["userEmail"],
            "role": role,
            "max_budget_in_team": parse_float(spec.get("maxBudgetInTeam"), "maxBudgetInTeam"),
        }

    def _lookup_team(self, team_alias: str) -> dict[str, Any]:
        if self._team is not None and self._team.get("team_alias") == team_alias:
            return self._team
        teams = self.litellm.list_teams_by_alias(team_alias)
        if not teams:
            raise ConfigError(f"team {team_alias} not found")
        if len(teams) > 1:
            raise ConfigError(f"team alias {team_alias} is ambiguous ({len(teams)} teams)")
        self._team = teams[0]
        return self._team

    def resolve(self, desired: dict[str, Any]) -> list[str]:
        team_id = self._lookup_team(desired["team_alias"])["team_id"]
        info = self.litellm.get_team_info(team_id)
        if find_member(info, desired["user_email"]) is None:
            return []
        return [team_id]

    def _record(self, team_id: str, member: dict[str, Any], team_alias: str | None) -> dict[str, Any]:
        return {
            "team_id": team_id,
            "team_alias": team_alias,
            "user_email": member.get("user_email"),
            "user_id": member.get("user_id"),
            "role": member.get("role"),
        }

    def get_detail(self, identity: str) -> dict[str, Any]:
        info = self.litellm.get_team_info(identity)
        user_email = self.spec.get("userEmail")
        member = find_member(info, user_email)
        if member is None:
            raise NotFoundError(f"user {user_email} is not a member of team {identity}")
        return self._record(identity, member, info.get("team_alias"))

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        team_id = self._lookup_team(desired["team_alias"])["team_id"]
        user_id = self.litellm.get_user_id_by_email(desired["user_email"])
        self.litellm.add_team_member(
            team_id,
            desired["user_email"],
            desired["role"],
            user_id=user_id,
            max_budget_in_team=desired.get("max_budget_in_team"),
        )
        member = {"user_email": desired["user_email"], "user_id": user_id, "role": desired["role"]}
        return self._record(team_id, member, desired["team_alias"])

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        user_id = self.status.get("userID") or self.litellm.get_user_id_by_email(desired["user_email"])
        self.litellm.update_team_member(
            identity,
            desired["user_email"],
            desired["role"],
            user_id=user_id,
            max_budget_in_team=desired.get("max_budget_in_team"),
        )
        member = {"user_email": desired["user_email"], "user_id": user_id, "role": desired["role"]}
        return self._record(identity, member, desired["team_alias"])

    def delete(self, identity: str) -> None:
        user_email = self.status.get("userEmail") or self.spec.get("userEmail")
        self.litellm.delete_team_member(identity, user_email, user_id=self.status.get("userID"))

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        return observed.get("role") != desired["role"]

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return record.get("team_id")

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        status = {
            "teamAlias": record.get("team_alias"),
            "teamID": record.get("team_id"),
            "userEmail": record.get("user_email"),
            "userID": record.get("user_id"),
        }
        return {k: v for k, v in status.items() if v is not None}
