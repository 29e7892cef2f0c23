"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_EXTERNAL_CREATED,
    EVENT_REASON_EXTERNAL_DELETED,
    EVENT_REASON_EXTERNAL_UPDATED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SECRET_WRITTEN,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource object the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_external_created(body: dict[str, Any], identity: str) -> None:
    """Emit external record created event."""
    emit_event(body, EVENT_REASON_EXTERNAL_CREATED, f"External record {identity} created")


def emit_external_updated(body: dict[str, Any], identity: str) -> None:
    """Emit external record updated event."""
    emit_event(body, EVENT_REASON_EXTERNAL_UPDATED, f"External record {identity} updated")


def emit_external_deleted(body: dict[str, Any], identity: str) -> None:
    """Emit external record deleted event."""
    emit_event(body, EVENT_REASON_EXTERNAL_DELETED, f"External record {identity} deleted")


def emit_drift_detected(body: dict[str, Any], identity: str) -> None:
    """Emit drift detected event."""
    emit_event(body, EVENT_REASON_DRIFT_DETECTED, f"External record {identity} drifted from spec", type_="Warning")


def emit_secret_written(body: dict[str, Any], secret_name: str) -> None:
    """Emit secret written event."""
    emit_event(body, EVENT_REASON_SECRET_WRITTEN, f"Secret {secret_name} written")
