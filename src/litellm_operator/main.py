"""Main entry point for the LiteLLM Operator."""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .tracing import initialize_tracing

# Handlers register themselves with kopf on import
from . import handlers  # noqa: F401


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    # Handlers pass explicit delays; these bound anything kopf retries on its own
    settings.execution.min_retry_delay = 1.0
    settings.execution.max_retry_delay = 60.0

    # Metrics and health endpoints on port 8080
    health.start_metrics_server(int(os.getenv("METRICS_PORT", "8080")))
