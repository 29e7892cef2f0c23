"""Capability protocol shared by every external record kind."""

from __future__ import annotations

from typing import Any, Protocol

from kubernetes import client

from ...utils.errors import ConfigError
from .client import LitellmClient


class ExternalAdapter(Protocol):
    """Operations the reconcile engine needs from one external record kind."""

    kind: str

    def convert(self) -> dict[str, Any]:
        """Translate the managed resource spec into the desired external request."""
        ...

    def resolve(self, desired: dict[str, Any]) -> list[str]:
        """Return identities of external records matching the desired state."""
        ...

    def get_detail(self, identity: str) -> dict[str, Any]:
        """Fetch the full external record."""
        ...

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        """Create the external record and return it."""
        ...

    def update(self, identity: str, desired: dict[str, Any]) -> dict[str, Any]:
        """Repair the external record and return it."""
        ...

    def delete(self, identity: str) -> None:
        """Remove the external record."""
        ...

    def needs_update(self, observed: dict[str, Any], desired: dict[str, Any]) -> bool:
        """Check whether the observed record drifted from the desired state."""
        ...

    def identity_of(self, record: dict[str, Any]) -> str | None:
        """Extract the identity from an external record."""
        ...

    def status_from(self, record: dict[str, Any]) -> dict[str, Any]:
        """Status fields to persist for the given external record."""
        ...

    def secret_from(self, record: dict[str, Any]) -> tuple[str, dict[str, str]] | None:
        """Secret name and data revealed by the record, if it carries any."""
        ...

    def secret_name(self, record: dict[str, Any]) -> str | None:
        """Name of the Secret that must hold the value revealed at creation, if any."""
        ...


def is_empty(value: Any) -> bool:
    """Check whether a value counts as unset for drift comparison."""
    return value is None or value is False or value in ("", [], {})


def equal_ignoring_empty(observed: Any, desired: Any) -> bool:
    """Compare two values treating None, empty strings and empty collections alike."""
    if is_empty(observed) and is_empty(desired):
        return True
    if isinstance(observed, (int, float)) and isinstance(desired, (int, float)):
        return float(observed) == float(desired)
    if isinstance(observed, list) and isinstance(desired, list):
        return sorted(map(str, observed)) == sorted(map(str, desired))
    return observed == desired


def parse_float(value: Any, field: str) -> float | None:
    """Parse an optional decimal string from a spec field.

    Raises:
        ConfigError: If the value is not a number
    """
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{field}: invalid number {value!r}") from e


def format_amount(value: Any) -> str:
    """Render a monetary amount the way status fields carry it."""
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


class LitellmAdapter:
    """Common state for adapters bound to one managed resource."""

    kind = ""

    def __init__(
        self,
        litellm: LitellmClient,
        resource: dict[str, Any],
        core_api: client.CoreV1Api | None = None,
    ) -> None:
        self.litellm = litellm
        self.resource = resource
        self.core_api = core_api

    @property
    def spec(self) -> dict[str, Any]:
        return self.resource.get("spec") or {}

    @property
    def status(self) -> dict[str, Any]:
        return self.resource.get("status") or {}

    @property
    def namespace(self) -> str:
        return self.resource.get("metadata", {}).get("namespace", "default")

    def secret_from(self, record: dict[str, Any]) -> tuple[str, dict[str, str]] | None:
        return None

    def secret_name(self, record: dict[str, Any]) -> str | None:
        return None
