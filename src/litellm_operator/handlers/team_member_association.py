"""Handler for TeamMemberAssociation CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    AUTH_API_GROUP,
    AUTH_API_GROUP_VERSION,
    AUTH_API_VERSION,
    KIND_TEAM_MEMBER_ASSOCIATION,
    PLURAL_TEAM_MEMBER_ASSOCIATION,
    RECHECK_INTERVAL_SECONDS,
)
from ..services.litellm.client import LitellmClient
from ..services.litellm.team_member import TeamMemberAdapter
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class TeamMemberAssociationHandler(ReconcileEngine):
    """Handler for TeamMemberAssociation resources."""

    identity_field = "teamID"

    def __init__(self, **kwargs: Any):
        super().__init__(
            KIND_TEAM_MEMBER_ASSOCIATION,
            AUTH_API_GROUP,
            AUTH_API_VERSION,
            PLURAL_TEAM_MEMBER_ASSOCIATION,
            **kwargs,
        )

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> TeamMemberAdapter:
        return TeamMemberAdapter(litellm, resource, clients.core)


_handler = TeamMemberAssociationHandler()


@kopf.on.create(AUTH_API_GROUP_VERSION, KIND_TEAM_MEMBER_ASSOCIATION)
@kopf.on.update(AUTH_API_GROUP_VERSION, KIND_TEAM_MEMBER_ASSOCIATION)
@kopf.on.resume(AUTH_API_GROUP_VERSION, KIND_TEAM_MEMBER_ASSOCIATION)
def handle_team_member_association(body: kopf.Body, **kwargs: Any) -> None:
    """Handle TeamMemberAssociation resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    AUTH_API_GROUP_VERSION,
    KIND_TEAM_MEMBER_ASSOCIATION,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_team_member_association(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check TeamMemberAssociation drift."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(AUTH_API_GROUP_VERSION, KIND_TEAM_MEMBER_ASSOCIATION, optional=True)
def handle_team_member_association_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle TeamMemberAssociation deletion."""
    _handler.handle(get_cluster_clients(), body)
