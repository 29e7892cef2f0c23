"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_DEGRADED,
    COND_PROGRESSING,
    COND_READY,
    REASON_DELETING,
    REASON_READY,
    REASON_RECONCILING,
)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    lastTransitionTime is carried over from the existing condition unless the
    status flips, so re-applying an identical condition is a no-op.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    """Check whether the condition of the given type has status True."""
    cond = find_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def set_success_conditions(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Mark the resource Ready and clear Progressing and Degraded."""
    conditions = update_condition(conditions, COND_READY, "True", REASON_READY, message, observed_generation)
    conditions = update_condition(conditions, COND_PROGRESSING, "False", REASON_READY, message, observed_generation)
    return update_condition(conditions, COND_DEGRADED, "False", REASON_READY, message, observed_generation)


def set_error_conditions(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Mark the resource Degraded with the given reason."""
    conditions = update_condition(conditions, COND_READY, "False", reason, message, observed_generation)
    conditions = update_condition(conditions, COND_PROGRESSING, "False", reason, message, observed_generation)
    return update_condition(conditions, COND_DEGRADED, "True", reason, message, observed_generation)


def set_progressing_conditions(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Mark the resource as actively reconciling."""
    conditions = update_condition(conditions, COND_READY, "False", REASON_RECONCILING, message, observed_generation)
    conditions = update_condition(conditions, COND_PROGRESSING, "True", REASON_RECONCILING, message, observed_generation)
    return update_condition(conditions, COND_DEGRADED, "False", REASON_RECONCILING, message, observed_generation)


def set_deleting_condition(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set Ready=False with the Deleting reason."""
    return update_condition(conditions, COND_READY, "False", REASON_DELETING, message, observed_generation)
