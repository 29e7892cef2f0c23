"""Handler for VirtualKey CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    AUTH_API_GROUP,
    AUTH_API_GROUP_VERSION,
    AUTH_API_VERSION,
    KIND_VIRTUAL_KEY,
    PLURAL_VIRTUAL_KEY,
    RECHECK_INTERVAL_SECONDS,
)
from ..services.litellm.client import LitellmClient
from ..services.litellm.virtual_key import VirtualKeyAdapter
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class VirtualKeyHandler(ReconcileEngine):
    """Handler for VirtualKey resources."""

    identity_field = "keyID"

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_VIRTUAL_KEY, AUTH_API_GROUP, AUTH_API_VERSION, PLURAL_VIRTUAL_KEY, **kwargs)

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> VirtualKeyAdapter:
        return VirtualKeyAdapter(litellm, resource, clients.core)


_handler = VirtualKeyHandler()


@kopf.on.create(AUTH_API_GROUP_VERSION, KIND_VIRTUAL_KEY)
@kopf.on.update(AUTH_API_GROUP_VERSION, KIND_VIRTUAL_KEY)
@kopf.on.resume(AUTH_API_GROUP_VERSION, KIND_VIRTUAL_KEY)
def handle_virtual_key(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualKey resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    AUTH_API_GROUP_VERSION,
    KIND_VIRTUAL_KEY,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_virtual_key(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check VirtualKey drift."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(AUTH_API_GROUP_VERSION, KIND_VIRTUAL_KEY, optional=True)
def handle_virtual_key_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle VirtualKey deletion."""
    _handler.handle(get_cluster_clients(), body)
