"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import kopf
from kubernetes import client

from .. import metrics
from ..constants import (
    CONTROLLER_NAME,
    FINALIZER,
    RECHECK_INTERVAL_SECONDS,
    RECONCILE_TIMEOUT_SECONDS,
)
from ..logging import log_resource_event
from ..utils.conditions import set_error_conditions
from ..utils.errors import ReconcileTimeoutError, classify_error, sanitize_exception
from ..utils.events import emit_reconcile_failed


class ReconcileContext:
    """Deadline for a single reconcile pass."""

    def __init__(
        self,
        timeout: float = RECONCILE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clock = clock
        self.deadline = clock() + timeout

    def remaining(self) -> float:
        """Seconds left before the deadline (may be negative)."""
        return self.deadline - self.clock()

    def check(self, phase: str) -> None:
        """Abort between phases once the deadline elapsed.

        Raises:
            ReconcileTimeoutError: If no time is left
        """
        if self.remaining() <= 0:
            raise ReconcileTimeoutError(f"Reconcile deadline elapsed before phase {phase}")


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconcile pass: done, requeue after a delay, or failed."""

    requeue_after: float | None = None
    error: Exception | None = None
    fatal: bool = False
    reason: str | None = None

    @classmethod
    def done(cls) -> ReconcileResult:
        return cls()

    @classmethod
    def requeue(cls, delay: float) -> ReconcileResult:
        return cls(requeue_after=delay)

    @property
    def failed(self) -> bool:
        return self.error is not None


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str, group: str, version: str, plural: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "VirtualKey", "Model")
            group: API group of the resource
            version: API version of the resource
            plural: Plural resource name used by the API
        """
        self.kind = kind
        self.group = group
        self.version = version
        self.plural = plural
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata."""
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(self, level: int, meta: dict[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message."""
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def fetch_resource(
        self,
        api: client.CustomObjectsApi,
        namespace: str,
        name: str,
    ) -> dict[str, Any] | None:
        """Fetch a fresh copy of the managed resource.

        Returns:
            The resource, or None if it no longer exists
        """
        try:
            return api.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
                name=name,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def _patch_metadata(self, api: client.CustomObjectsApi, resource: dict[str, Any], finalizers: list[str]) -> None:
        meta = resource["metadata"]
        updated = api.patch_namespaced_custom_object(
            group=self.group,
            version=self.version,
            namespace=meta["namespace"],
            plural=self.plural,
            name=meta["name"],
            body={"metadata": {"finalizers": finalizers, "resourceVersion": meta.get("resourceVersion")}},
        )
        meta["finalizers"] = finalizers
        self._track_resource_version(resource, updated)

    @staticmethod
    def _track_resource_version(resource: dict[str, Any], updated: Any) -> None:
        if isinstance(updated, dict) and updated.get("metadata", {}).get("resourceVersion"):
            resource["metadata"]["resourceVersion"] = updated["metadata"]["resourceVersion"]

    def add_finalizer(self, api: client.CustomObjectsApi, resource: dict[str, Any]) -> bool:
        """Persist our finalizer on the resource.

        Returns:
            True if the finalizer was added, False if it was already present
        """
        finalizers = list(resource["metadata"].get("finalizers") or [])
        if FINALIZER in finalizers:
            return False
        self._patch_metadata(api, resource, finalizers + [FINALIZER])
        return True

    def remove_finalizer(self, api: client.CustomObjectsApi, resource: dict[str, Any]) -> bool:
        """Drop our finalizer from the resource, leaving others untouched.

        Returns:
            True if the finalizer was removed, False if it was not present
        """
        finalizers = list(resource["metadata"].get("finalizers") or [])
        if FINALIZER not in finalizers:
            return False
        self._patch_metadata(api, resource, [f for f in finalizers if f != FINALIZER])
        return True

    def commit_status(
        self,
        api: client.CustomObjectsApi,
        resource: dict[str, Any],
        status: dict[str, Any],
    ) -> bool:
        """Write the status subresource if it differs from the last known status.

        The resourceVersion returned by the write is kept on ``resource`` so a
        later finalizer patch does not carry a stale precondition.

        Returns:
            True if a write happened
        """
        if status == (resource.get("status") or {}):
            return False
        meta = resource["metadata"]
        updated = api.patch_namespaced_custom_object_status(
            group=self.group,
            version=self.version,
            namespace=meta["namespace"],
            plural=self.plural,
            name=meta["name"],
            body={"status": status},
        )
        resource["status"] = copy.deepcopy(status)
        self._track_resource_version(resource, updated)
        return True

    def handle_error(
        self,
        api: client.CustomObjectsApi,
        resource: dict[str, Any],
        error: Exception,
    ) -> ReconcileResult:
        """Classify a failure, record it as Degraded and compute the retry.

        Args:
            api: CustomObjectsApi used to write status
            resource: The managed resource
            error: Exception that ended the pass

        Returns:
            Failed result carrying the requeue delay
        """
        meta = resource.get("metadata", {})
        classification = classify_error(error)

        message = sanitize_exception(error)
        status = copy.deepcopy(resource.get("status") or {})
        status["conditions"] = set_error_conditions(
            status.get("conditions", []),
            classification.reason,
            message,
            meta.get("generation"),
        )
        try:
            self.commit_status(api, resource, status)
        except Exception as status_error:
            self.log_warning(
                meta,
                f"Failed to record error status: {sanitize_exception(status_error)}",
                reason="StatusUpdateFailed",
            )

        self.log_error(meta, "Reconciliation failed", error=error, reason=classification.reason,
                       outcome=classification.outcome, retry_after=classification.delay)
        emit_reconcile_failed(resource, f"{classification.reason}: {message}")
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()
        metrics.resource_status_total.labels(kind=self.kind, status="degraded").inc()

        return ReconcileResult(
            requeue_after=None if classification.fatal else classification.delay,
            error=error,
            fatal=classification.fatal,
            reason=classification.reason,
        )

    def reconcile_with_metrics(
        self,
        meta: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Execute reconciliation with metrics and error handling.

        Args:
            meta: Kubernetes resource metadata
            reconcile_fn: Function to execute for reconciliation

        Returns:
            The result produced by reconcile_fn
        """
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

        if result.failed:
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
        elif result.requeue_after is not None and result.requeue_after < RECHECK_INTERVAL_SECONDS:
            metrics.reconcile_total.labels(kind=self.kind, result="requeue").inc()
        else:
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        return result

    def raise_for_result(self, result: ReconcileResult) -> None:
        """Translate a result into kopf's retry signalling.

        Requeues at or beyond the re-check interval are left to the timer.

        Raises:
            kopf.PermanentError: For fatal failures
            kopf.TemporaryError: For retryable failures and short requeues
        """
        if result.failed:
            message = f"{self.kind} reconcile failed ({result.reason}): {sanitize_exception(result.error)}"
            if result.fatal:
                raise kopf.PermanentError(message)
            raise kopf.TemporaryError(message, delay=result.requeue_after)
        if result.requeue_after is not None and result.requeue_after < RECHECK_INTERVAL_SECONDS:
            raise kopf.TemporaryError(f"{self.kind} not ready yet", delay=result.requeue_after)
