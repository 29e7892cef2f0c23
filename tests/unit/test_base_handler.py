"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import kopf
import pytest
from kubernetes.client.exceptions import ApiException

from litellm_operator.constants import (
    COND_DEGRADED,
    CONFLICT_RETRY_SECONDS,
    DEPENDENCY_RETRY_SECONDS,
    FINALIZER,
    REASON_CONNECTION_ERROR,
    REASON_WRITE_CONFLICT,
    RECHECK_INTERVAL_SECONDS,
)
from litellm_operator.handlers.base import BaseHandler, ReconcileContext, ReconcileResult
from litellm_operator.utils.conditions import find_condition
from litellm_operator.utils.errors import LitellmConnectionError, ReconcileTimeoutError


def make_handler() -> BaseHandler:
    return BaseHandler(kind="TestKind", group="test.litellm.ai", version="v1", plural="testkinds")


def make_resource(**meta) -> dict:
    metadata = {"name": "res", "namespace": "default", "uid": "uid-1", "generation": 2, "resourceVersion": "5"}
    metadata.update(meta)
    return {"metadata": metadata, "spec": {}}


class TestReconcileContext:
    """Test the per-pass deadline."""

    def test_remaining_and_check(self):
        now = [100.0]
        ctx = ReconcileContext(timeout=20, clock=lambda: now[0])

        assert ctx.remaining() == 20
        ctx.check("resolving")

        now[0] = 121.0
        assert ctx.remaining() == -1
        with pytest.raises(ReconcileTimeoutError, match="resolving"):
            ctx.check("resolving")


class TestReconcileResult:
    def test_constructors(self):
        assert ReconcileResult.done().requeue_after is None
        assert ReconcileResult.requeue(10).requeue_after == 10
        assert not ReconcileResult.done().failed
        assert ReconcileResult(error=ValueError("x")).failed


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = make_handler()
        assert handler.kind == "TestKind"
        assert handler.plural == "testkinds"
        assert handler.logger is not None

    def test_fetch_resource_missing(self):
        api = MagicMock()
        api.get_namespaced_custom_object.side_effect = ApiException(status=404)

        assert make_handler().fetch_resource(api, "default", "res") is None

    def test_fetch_resource_error_propagates(self):
        api = MagicMock()
        api.get_namespaced_custom_object.side_effect = ApiException(status=500)

        with pytest.raises(ApiException):
            make_handler().fetch_resource(api, "default", "res")

    def test_add_finalizer(self):
        api = MagicMock()
        api.patch_namespaced_custom_object.return_value = {"metadata": {"resourceVersion": "6"}}
        resource = make_resource(finalizers=["other"])

        assert make_handler().add_finalizer(api, resource)

        body = api.patch_namespaced_custom_object.call_args.kwargs["body"]
        assert body["metadata"]["finalizers"] == ["other", FINALIZER]
        assert body["metadata"]["resourceVersion"] == "5"
        assert resource["metadata"]["finalizers"] == ["other", FINALIZER]
        assert resource["metadata"]["resourceVersion"] == "6"

    def test_add_finalizer_no_duplicate(self):
        """Test that finalizer is not duplicated if already present."""
        api = MagicMock()

        assert not make_handler().add_finalizer(api, make_resource(finalizers=[FINALIZER]))
        api.patch_namespaced_custom_object.assert_not_called()

    def test_remove_finalizer_keeps_others(self):
        api = MagicMock()
        resource = make_resource(finalizers=[FINALIZER, "other"])

        assert make_handler().remove_finalizer(api, resource)

        body = api.patch_namespaced_custom_object.call_args.kwargs["body"]
        assert body["metadata"]["finalizers"] == ["other"]

    def test_remove_finalizer_absent(self):
        api = MagicMock()

        assert not make_handler().remove_finalizer(api, make_resource())
        api.patch_namespaced_custom_object.assert_not_called()

    def test_commit_status_skips_identical(self):
        api = MagicMock()
        resource = make_resource()
        resource["status"] = {"teamID": "t1"}

        assert not make_handler().commit_status(api, resource, {"teamID": "t1"})
        api.patch_namespaced_custom_object_status.assert_not_called()

    def test_commit_status_writes_changes(self):
        api = MagicMock()
        resource = make_resource()

        assert make_handler().commit_status(api, resource, {"teamID": "t1"})

        assert api.patch_namespaced_custom_object_status.call_args.kwargs["body"] == {"status": {"teamID": "t1"}}
        assert resource["status"] == {"teamID": "t1"}

    def test_commit_status_tracks_resource_version(self):
        api = MagicMock()
        api.patch_namespaced_custom_object_status.return_value = {"metadata": {"resourceVersion": "9"}}
        resource = make_resource()

        make_handler().commit_status(api, resource, {"teamID": "t1"})

        assert resource["metadata"]["resourceVersion"] == "9"

    def test_remove_finalizer_after_status_write_sends_fresh_version(self):
        api = MagicMock()
        api.patch_namespaced_custom_object_status.return_value = {"metadata": {"resourceVersion": "9"}}
        handler = make_handler()
        resource = make_resource(finalizers=[FINALIZER])

        handler.commit_status(api, resource, {"conditions": []})
        handler.remove_finalizer(api, resource)

        body = api.patch_namespaced_custom_object.call_args.kwargs["body"]
        assert body["metadata"]["resourceVersion"] == "9"


class TestHandleError:
    """Test error classification and recording."""

    @patch("litellm_operator.handlers.base.emit_reconcile_failed")
    def test_records_degraded(self, mock_emit):
        api = MagicMock()
        resource = make_resource()

        result = make_handler().handle_error(api, resource, LitellmConnectionError("proxy down"))

        assert result.failed
        assert result.reason == REASON_CONNECTION_ERROR
        degraded = find_condition(resource["status"]["conditions"], COND_DEGRADED)
        assert degraded["status"] == "True"
        assert degraded["reason"] == REASON_CONNECTION_ERROR
        assert degraded["observedGeneration"] == 2
        mock_emit.assert_called_once()

    @patch("litellm_operator.handlers.base.emit_reconcile_failed")
    def test_status_failure_does_not_mask_error(self, mock_emit):
        api = MagicMock()
        api.patch_namespaced_custom_object_status.side_effect = ApiException(status=500)

        result = make_handler().handle_error(api, make_resource(), ApiException(status=409))

        assert result.reason == REASON_WRITE_CONFLICT
        assert result.requeue_after == CONFLICT_RETRY_SECONDS


class TestRaiseForResult:
    """Test kopf retry signalling."""

    def test_done(self):
        make_handler().raise_for_result(ReconcileResult.done())

    def test_recheck_requeue_left_to_timer(self):
        make_handler().raise_for_result(ReconcileResult.requeue(RECHECK_INTERVAL_SECONDS))

    def test_short_requeue(self):
        with pytest.raises(kopf.TemporaryError) as exc_info:
            make_handler().raise_for_result(ReconcileResult.requeue(DEPENDENCY_RETRY_SECONDS))
        assert exc_info.value.delay == DEPENDENCY_RETRY_SECONDS

    def test_fatal(self):
        with pytest.raises(kopf.PermanentError):
            make_handler().raise_for_result(ReconcileResult(error=RuntimeError("bug"), fatal=True))

    def test_retryable(self):
        result = ReconcileResult(requeue_after=30, error=LitellmConnectionError("down"), reason="ConnectionError")
        with pytest.raises(kopf.TemporaryError) as exc_info:
            make_handler().raise_for_result(result)
        assert exc_info.value.delay == 30


class TestReconcileWithMetrics:
    """Test the metrics wrapper."""

    def test_returns_result(self):
        result = make_handler().reconcile_with_metrics(make_resource()["metadata"], ReconcileResult.done)
        assert result == ReconcileResult.done()

    def test_reraises_unhandled(self):
        def boom():
            raise ValueError("unhandled")

        with pytest.raises(ValueError):
            make_handler().reconcile_with_metrics(make_resource()["metadata"], boom)
