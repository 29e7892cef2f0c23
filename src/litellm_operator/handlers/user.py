"""Handler for User CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    AUTH_API_GROUP,
    AUTH_API_GROUP_VERSION,
    AUTH_API_VERSION,
    KIND_USER,
    PLURAL_USER,
    RECHECK_INTERVAL_SECONDS,
)
from ..services.litellm.client import LitellmClient
from ..services.litellm.user import UserAdapter
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class UserHandler(ReconcileEngine):
    """Handler for User resources."""

    identity_field = "userID"

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_USER, AUTH_API_GROUP, AUTH_API_VERSION, PLURAL_USER, **kwargs)

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> UserAdapter:
        return UserAdapter(litellm, resource, clients.core)


_handler = UserHandler()


@kopf.on.create(AUTH_API_GROUP_VERSION, KIND_USER)
@kopf.on.update(AUTH_API_GROUP_VERSION, KIND_USER)
@kopf.on.resume(AUTH_API_GROUP_VERSION, KIND_USER)
def handle_user(body: kopf.Body, **kwargs: Any) -> None:
    """Handle User resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    AUTH_API_GROUP_VERSION,
    KIND_USER,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_user(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check User drift."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(AUTH_API_GROUP_VERSION, KIND_USER, optional=True)
def handle_user_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle User deletion."""
    _handler.handle(get_cluster_clients(), body)
