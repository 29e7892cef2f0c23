"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest
from kubernetes.client.exceptions import ApiException


class FakeCustomApi:
    """In-memory stand-in for CustomObjectsApi holding one object.

    Every write bumps metadata.resourceVersion, and a metadata patch carrying
    a stale resourceVersion is rejected with 409 like the API server does.
    """

    def __init__(self, resource: dict[str, Any] | None):
        self.resource = resource
        self.status_writes = 0
        self.conflicts = 0

    def _bump(self) -> None:
        meta = self.resource["metadata"]
        meta["resourceVersion"] = str(int(meta.get("resourceVersion") or 0) + 1)

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        if self.resource is None:
            raise ApiException(status=404)
        return copy.deepcopy(self.resource)

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        expected = body["metadata"].get("resourceVersion")
        if expected is not None and expected != self.resource["metadata"].get("resourceVersion"):
            self.conflicts += 1
            raise ApiException(status=409, reason="Conflict")
        self.resource["metadata"]["finalizers"] = list(body["metadata"]["finalizers"])
        self._bump()
        return copy.deepcopy(self.resource)

    def patch_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        self.status_writes += 1
        self.resource["status"] = copy.deepcopy(body["status"])
        self._bump()
        return copy.deepcopy(self.resource)


@pytest.fixture
def custom_api_factory():
    """Build an in-memory CustomObjectsApi around a resource."""
    return FakeCustomApi
