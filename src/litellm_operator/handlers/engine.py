"""Generic reconcile engine shared by every managed resource kind.

One pass runs the phases in a fixed order::

    fetch -> finalizer -> connect -> convert -> resolve -> create | compare [-> repair]
          -> children -> ready

Deletion replaces everything after fetch with connect -> delete -> finalizer removal.
Phase boundaries are where the bounded deadline is checked and where status
is persisted, so an interrupted pass never loses an external identity.
"""

from __future__ import annotations

import copy
from typing import Any

from .. import metrics
from ..constants import (
    DEPENDENCY_RETRY_SECONDS,
    FINALIZER,
    RECHECK_INTERVAL_SECONDS,
    RECONCILE_TIMEOUT_SECONDS,
)
from ..services.litellm.base import ExternalAdapter
from ..services.litellm.client import LitellmClient
from ..services.litellm.connection import resolve_connection
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import (
    set_deleting_condition,
    set_progressing_conditions,
    set_success_conditions,
)
from ..utils.errors import (
    ConfigError,
    DeleteFailedError,
    NotFoundError,
    ReconcileError,
    SecretMissingError,
)
from ..utils.events import (
    emit_drift_detected,
    emit_external_created,
    emit_external_deleted,
    emit_external_updated,
    emit_reconcile_started,
    emit_secret_written,
)
from ..utils.kubernetes import WRITE_UNCHANGED, create_or_update_with_retry
from ..utils.secrets import build_secret_body, secret_exists
from .base import BaseHandler, ReconcileContext, ReconcileResult
from .shared import ClusterClients

OUTCOME_CREATED = "created"
OUTCOME_UPDATED = "updated"
OUTCOME_UNCHANGED = "unchanged"


class ReconcileEngine(BaseHandler):
    """Drives a managed resource through the reconcile phases.

    Subclasses bind a kind to its capability adapter via ``build_adapter`` and
    name the status field holding the external identity. Kinds without an
    external record return None from ``connect`` and override
    ``ensure_children``.
    """

    identity_field: str | None = None

    def __init__(self, *args: Any, timeout: float = RECONCILE_TIMEOUT_SECONDS, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.timeout = timeout

    def build_adapter(
        self,
        litellm: LitellmClient,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> ExternalAdapter:
        raise NotImplementedError

    def connect(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> ExternalAdapter | None:
        """Resolve the connection and bind an adapter for this pass."""
        meta = resource["metadata"]
        with trace_span("connect", kind=self.kind):
            details = resolve_connection(
                clients.core,
                clients.custom,
                (resource.get("spec") or {}).get("connectionRef") or {},
                meta.get("namespace", "default"),
            )
            litellm = LitellmClient(details.url, details.master_key, remaining=ctx.remaining)
        return self.build_adapter(litellm, clients, resource)

    def stored_identity(self, resource: dict[str, Any]) -> str | None:
        if self.identity_field is None:
            return None
        return (resource.get("status") or {}).get(self.identity_field) or None

    def handle(self, clients: ClusterClients, body: dict[str, Any]) -> None:
        """Kopf entry point: reconcile and raise kopf retry signals."""
        meta = body.get("metadata", {})
        result = self.reconcile_with_metrics(
            meta,
            lambda: self.reconcile(clients, meta.get("namespace", "default"), meta["name"]),
        )
        self.raise_for_result(result)

    def reconcile(self, clients: ClusterClients, namespace: str, name: str) -> ReconcileResult:
        """Run one reconcile pass for the named resource.

        Args:
            clients: Kubernetes API clients
            namespace: Namespace of the managed resource
            name: Name of the managed resource

        Returns:
            The outcome of the pass
        """
        ctx = ReconcileContext(self.timeout)
        resource = self.fetch_resource(clients.custom, namespace, name)
        if resource is None:
            self.logger.debug(f"{self.kind} {namespace}/{name} is gone, nothing to do")
            return ReconcileResult.done()

        meta = resource["metadata"]
        with trace_span(f"reconcile_{self.kind.lower()}", kind=self.kind,
                        attributes={"resource.name": name, "resource.namespace": namespace}):
            try:
                if meta.get("deletionTimestamp"):
                    return self.reconcile_delete(ctx, clients, resource)
                return self.reconcile_upsert(ctx, clients, resource)
            except Exception as e:
                return self.handle_error(clients.custom, resource, e)

    def reconcile_delete(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> ReconcileResult:
        meta = resource["metadata"]
        if FINALIZER not in (meta.get("finalizers") or []):
            return ReconcileResult.done()

        status = copy.deepcopy(resource.get("status") or {})
        status["conditions"] = set_deleting_condition(
            status.get("conditions", []), f"Deleting {self.kind}", meta.get("generation")
        )
        try:
            self.commit_status(clients.custom, resource, status)
        except Exception as e:
            self.log_warning(meta, f"Failed to record Deleting status: {e}", reason="StatusUpdateFailed")

        identity = self.stored_identity(resource)
        if identity:
            adapter = self.connect(ctx, clients, resource)
            ctx.check("deleting")
            with trace_span("delete", kind=self.kind):
                try:
                    adapter.delete(identity)
                except NotFoundError:
                    self.log_info(meta, "External record already gone", reason="AlreadyDeleted", identity=identity)
                except ReconcileError as e:
                    if isinstance(e, DeleteFailedError):
                        raise
                    raise DeleteFailedError(f"Failed to delete external record {identity}: {e}") from e
                else:
                    emit_external_deleted(resource, identity)
                    self.log_info(meta, "Deleted external record", event="delete", reason="Deleted", identity=identity)

        ctx.check("finalizing")
        self.remove_finalizer(clients.custom, resource)
        return ReconcileResult.done()

    def reconcile_upsert(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
    ) -> ReconcileResult:
        meta = resource["metadata"]
        generation = meta.get("generation")

        if self.add_finalizer(clients.custom, resource):
            self.log_info(meta, "Added finalizer", reason="FinalizerAdded")
            emit_reconcile_started(resource)

        ctx.check("connecting")
        adapter = self.connect(ctx, clients, resource)

        record, outcome = None, None
        if adapter is not None:
            record, outcome = self.ensure_external(ctx, clients, resource, adapter)

        ctx.check("children")
        with trace_span("children", kind=self.kind):
            ready, child_status = self.ensure_children(ctx, clients, resource, adapter, record, outcome)

        status = copy.deepcopy(resource.get("status") or {})
        if adapter is not None and record is not None:
            status.update(adapter.status_from(record))
        status.update(child_status)

        if not ready:
            status["conditions"] = set_progressing_conditions(
                status.get("conditions", []), f"Waiting for {self.kind} dependencies", generation
            )
            self.commit_status(clients.custom, resource, status)
            metrics.resource_status_total.labels(kind=self.kind, status="progressing").inc()
            return ReconcileResult.requeue(DEPENDENCY_RETRY_SECONDS)

        status["conditions"] = set_success_conditions(
            status.get("conditions", []), f"{self.kind} is ready", generation
        )
        status["observedGeneration"] = generation
        if self.commit_status(clients.custom, resource, status):
            self.log_info(meta, f"{self.kind} is ready", event="ready", reason="Ready")
        metrics.resource_status_total.labels(kind=self.kind, status="ready").inc()
        return ReconcileResult.requeue(RECHECK_INTERVAL_SECONDS)

    def _mark_progressing(self, clients: ClusterClients, resource: dict[str, Any], message: str) -> None:
        status = copy.deepcopy(resource.get("status") or {})
        status["conditions"] = set_progressing_conditions(
            status.get("conditions", []), message, resource["metadata"].get("generation")
        )
        self.commit_status(clients.custom, resource, status)

    def _persist_record(
        self,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: ExternalAdapter,
        record: dict[str, Any],
    ) -> None:
        status = copy.deepcopy(resource.get("status") or {})
        status.update(adapter.status_from(record))
        self.commit_status(clients.custom, resource, status)

    def ensure_external(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: ExternalAdapter,
    ) -> tuple[dict[str, Any], str]:
        """Make the external record match the desired state.

        Returns:
            The current external record and whether it was created, updated or left alone

        Raises:
            ConfigError: If resolution matched more than one external record
        """
        meta = resource["metadata"]

        ctx.check("converting")
        desired = adapter.convert()

        ctx.check("resolving")
        with trace_span("resolve", kind=self.kind):
            identities = adapter.resolve(desired)
        if len(identities) > 1:
            raise ConfigError(f"{len(identities)} external records match this {self.kind}; refusing to guess")

        if not identities:
            self._mark_progressing(clients, resource, f"Creating external {self.kind}")
            ctx.check("creating")
            with trace_span("create", kind=self.kind):
                record = adapter.create(desired)
            identity = adapter.identity_of(record)
            add_span_attribute("external.identity", identity or "")
            self._persist_record(clients, resource, adapter, record)
            emit_external_created(resource, identity or meta["name"])
            self.log_info(meta, "Created external record", event="create", reason="Created", identity=identity)
            return record, OUTCOME_CREATED

        identity = identities[0]
        ctx.check("comparing")
        with trace_span("compare", kind=self.kind):
            observed = adapter.get_detail(identity)
            drifted = adapter.needs_update(observed, desired)
        if not drifted:
            return observed, OUTCOME_UNCHANGED

        metrics.drift_detected_total.labels(kind=self.kind).inc()
        emit_drift_detected(resource, identity)
        self.log_info(meta, "External record drifted, repairing", event="drift", reason="DriftDetected",
                      identity=identity)
        self._mark_progressing(clients, resource, f"Repairing external {self.kind}")

        ctx.check("repairing")
        with trace_span("repair", kind=self.kind):
            record = adapter.update(identity, desired)
        self._persist_record(clients, resource, adapter, record)
        emit_external_updated(resource, identity)
        return record, OUTCOME_UPDATED

    def ensure_revealed_secret(
        self,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: ExternalAdapter,
        record: dict[str, Any],
    ) -> None:
        """Store a secret value the service reveals only at creation time.

        Nothing is written when the record carries no value, so a stored
        secret is never replaced by an empty one.
        """
        revealed = adapter.secret_from(record)
        if not revealed:
            return
        name, data = revealed
        if not data or not all(data.values()):
            return
        body = build_secret_body(name, resource["metadata"]["namespace"], data)
        if create_or_update_with_retry(clients.core, body, resource) != WRITE_UNCHANGED:
            emit_secret_written(resource, name)

    def ensure_children(
        self,
        ctx: ReconcileContext,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: ExternalAdapter | None,
        record: dict[str, Any] | None,
        outcome: str | None,
    ) -> tuple[bool, dict[str, Any]]:
        """Converge owned child objects.

        The default writes the secret revealed by a freshly created external
        record. Records that were only observed or repaired write nothing, but
        the secret they should own must still exist.

        Returns:
            Whether the children are ready and status fields to record
        """
        if adapter is None or record is None:
            return True, {}
        if outcome == OUTCOME_CREATED:
            self.ensure_revealed_secret(clients, resource, adapter, record)
        else:
            self.check_revealed_secret(clients, resource, adapter, record)
        return True, {}

    def check_revealed_secret(
        self,
        clients: ClusterClients,
        resource: dict[str, Any],
        adapter: ExternalAdapter,
        record: dict[str, Any],
    ) -> None:
        """Verify the secret written at creation time is still present.

        The service never reveals the value again, so a lost secret cannot be
        rebuilt from the record.

        Raises:
            SecretMissingError: If the adapter names a secret that does not exist
        """
        name = adapter.secret_name(record)
        if not name:
            return
        if not secret_exists(clients.core, resource["metadata"]["namespace"], name):
            raise SecretMissingError(
                f"Stored {self.kind} credential is gone and LiteLLM will not reveal it again; "
                f"delete the external record so a new one is issued (missing: {name})"
            )
