"""Handler for Model CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    KIND_MODEL,
    LITELLM_API_GROUP,
    LITELLM_API_GROUP_VERSION,
    LITELLM_API_VERSION,
    PLURAL_MODEL,
    RECHECK_INTERVAL_SECONDS,
)
from ..services.litellm.client import LitellmClient
from ..services.litellm.model import ModelAdapter
from .engine import ReconcileEngine
from .shared import ClusterClients, get_cluster_clients


class ModelHandler(ReconcileEngine):
    """Handler for Model resources."""

    identity_field = "modelId"

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_MODEL, LITELLM_API_GROUP, LITELLM_API_VERSION, PLURAL_MODEL, **kwargs)

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> ModelAdapter:
        return ModelAdapter(litellm, resource, clients.core)


_handler = ModelHandler()


@kopf.on.create(LITELLM_API_GROUP_VERSION, KIND_MODEL)
@kopf.on.update(LITELLM_API_GROUP_VERSION, KIND_MODEL)
@kopf.on.resume(LITELLM_API_GROUP_VERSION, KIND_MODEL)
def handle_model(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Model resource reconciliation."""
    _handler.handle(get_cluster_clients(), body)


@kopf.timer(
    LITELLM_API_GROUP_VERSION,
    KIND_MODEL,
    interval=RECHECK_INTERVAL_SECONDS,
    initial_delay=RECHECK_INTERVAL_SECONDS,
)
def recheck_model(body: kopf.Body, **kwargs: Any) -> None:
    """Periodically re-check Model drift."""
    _handler.handle(get_cluster_clients(), body)


@kopf.on.delete(LITELLM_API_GROUP_VERSION, KIND_MODEL, optional=True)
def handle_model_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Model deletion."""
    _handler.handle(get_cluster_clients(), body)
