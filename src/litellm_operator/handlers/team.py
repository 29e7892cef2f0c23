"""Handler for Team CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    AUTH_API_GROUP,
    AUTH_API_GROUP_VERSION,
    AUTH_API_VERSION,
    KIND_TEAM,
    PLURAL_TEAM,
    RECHECK_INTERVAL_SECONDS,
)
from ..services.litellm.client import LitellmClient
from ..services.litellm.team import TeamAdapter
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class TeamHandler(ReconcileEngine):
    """Handler for Team resources."""

    identity_field = "teamID"

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_TEAM, AUTH_API_GROUP, AUTH_API_VERSION, PLURAL_TEAM, **kwargs)

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> TeamAdapter:
        return TeamAdapter(litellm, resource, clients.core)


_handler = TeamHandler()


@kopf.on.create(AUTH_API_GROUP_VERSION, KIND_TEAM)
@kopf.on.update(AUTH_API_GROUP_VERSION, KIND_TEAM)
@kopf.on.resume(AUTH_API_GROUP_VERSION, KIND_TEAM)
def handle_team(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Team resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    AUTH_API_GROUP_VERSION,
    KIND_TEAM,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_team(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check Team drift."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(AUTH_API_GROUP_VERSION, KIND_TEAM, optional=True)
def handle_team_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Team deletion."""
    _handler.handle(get_cluster_clients(), body)
