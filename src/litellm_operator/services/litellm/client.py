"""HTTP client for the LiteLLM proxy management API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests

from ... import metrics
from ...constants import LITELLM_REQUEST_TIMEOUT_SECONDS
from ...utils.errors import (
    ConfigError,
    LitellmConnectionError,
    NotFoundError,
    ReconcileTimeoutError,
    ServiceError,
    sanitize_error_message,
)

logger = logging.getLogger(__name__)


class LitellmClient:
    """Thin wrapper over the LiteLLM proxy REST endpoints.

    Every call is bounded by ``timeout`` and, when a ``remaining`` callable is
    given, by the time left before the reconcile deadline.
    """

    def __init__(
        self,
        base_url: str,
        master_key: str,
        timeout: float = LITELLM_REQUEST_TIMEOUT_SECONDS,
        remaining: Callable[[], float] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: LiteLLM proxy base URL
            master_key: Master key used as bearer token
            timeout: Upper bound for a single HTTP call in seconds
            remaining: Callable returning seconds left before the reconcile deadline
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.remaining = remaining
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {master_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _call_timeout(self) -> float:
        if self.remaining is None:
            return self.timeout
        left = self.remaining()
        if left <= 0:
            raise ReconcileTimeoutError("Reconcile deadline elapsed before LiteLLM call")
        return min(self.timeout, left)

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and map the outcome onto the error taxonomy.

        Raises:
            LitellmConnectionError: Transport failure, timeout or rejected credentials
            NotFoundError: The service answered 404
            ConfigError: The service rejected the request body (400/422)
            ServiceError: Any other non-2xx answer or an unreadable body
        """
        url = f"{self.base_url}{path}"
        start_time = time.time()
        result = "error"
        try:
            try:
                resp = self.session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=payload,
                    timeout=self._call_timeout(),
                )
            except requests.exceptions.RequestException as e:
                raise LitellmConnectionError(
                    f"Failed to reach LiteLLM at {self.base_url}: {sanitize_error_message(str(e))}"
                ) from e

            logger.debug(f"LiteLLM {method} {path} -> {resp.status_code}")
            detail = sanitize_error_message(resp.text[:500]) if resp.status_code >= 400 else ""
            if resp.status_code == 404:
                result = "not_found"
                raise NotFoundError(f"{operation}: not found ({detail})")
            if resp.status_code in (401, 403):
                raise LitellmConnectionError(f"{operation}: LiteLLM rejected credentials ({resp.status_code})")
            if resp.status_code in (400, 422):
                raise ConfigError(f"{operation}: LiteLLM rejected request ({resp.status_code}): {detail}")
            if resp.status_code >= 300:
                raise ServiceError(f"{operation}: LiteLLM returned {resp.status_code}: {detail}")

            if not resp.content:
                result = "success"
                return {}
            try:
                body = resp.json()
            except ValueError as e:
                raise ServiceError(f"{operation}: LiteLLM returned a non-JSON body") from e
            result = "success"
            return body
        finally:
            metrics.external_call_total.labels(operation=operation, result=result).inc()
            metrics.external_call_duration_seconds.labels(operation=operation).observe(time.time() - start_time)

    # Virtual keys

    def list_keys_by_alias(self, key_alias: str) -> list[str]:
        """Return the tokens of every key carrying the given alias."""
        body = self._request("list_keys", "GET", "/key/list", params={"key_alias": key_alias})
        tokens = []
        for item in body.get("keys") or []:
            if isinstance(item, dict):
                item = item.get("token")
            if item:
                tokens.append(item)
        return tokens

    def get_key_info(self, key: str) -> dict[str, Any]:
        body = self._request("get_key", "GET", "/key/info", params={"key": key})
        info = body.get("info")
        if not info:
            raise NotFoundError(f"get_key: no info returned for key {key}")
        info = dict(info)
        info.setdefault("token", body.get("key") or key)
        return info

    def generate_key(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("generate_key", "POST", "/key/generate", payload=payload)

    def update_key(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("update_key", "POST", "/key/update", payload=payload)

    def delete_key_by_alias(self, key_alias: str) -> None:
        self._request("delete_key", "POST", "/key/delete", payload={"key_aliases": [key_alias]})

    def delete_keys(self, keys: list[str]) -> None:
        self._request("delete_key", "POST", "/key/delete", payload={"keys": keys})

    # Models

    def get_model_info(self, model_id: str) -> dict[str, Any]:
        """Fetch a model deployment by its LiteLLM id.

        Raises:
            NotFoundError: If no deployment carries the id
        """
        body = self._request("get_model", "GET", "/model/info", params={"litellm_model_id": model_id})
        data = body.get("data") or []
        if not data:
            raise NotFoundError(f"get_model: model {model_id} not found")
        return data[0]

    def create_model(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("create_model", "POST", "/model/new", payload=payload)

    def update_model(self, model_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("update_model", "PATCH", f"/model/{model_id}/update", payload=payload)

    def delete_model(self, model_id: str) -> None:
        self._request("delete_model", "POST", "/model/delete", payload={"id": model_id})

    # Teams and users

    def list_teams_by_alias(self, team_alias: str) -> list[dict[str, Any]]:
        """Return teams whose alias matches exactly."""
        body = self._request("list_teams", "GET", "/v2/team/list", params={"team_alias": team_alias})
        teams = body if isinstance(body, list) else body.get("teams") or []
        return [team for team in teams if team.get("team_alias") == team_alias]

    def get_team_info(self, team_id: str) -> dict[str, Any]:
        body = self._request("get_team", "GET", "/team/info", params={"team_id": team_id})
        info = body.get("team_info")
        if not info:
            raise NotFoundError(f"get_team: team {team_id} not found")
        return info

    def create_team(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("create_team", "POST", "/team/new", payload=payload)

    def update_team(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request("update_team", "POST", "/team/update", payload=payload)
        return body.get("data") or {}

    def set_team_blocked(self, team_id: str, blocked: bool) -> None:
        """Block or unblock a team; /team/update alone does not flip the flag."""
        if blocked:
            self._request("block_team", "POST", "/team/block", payload={"team_id": team_id})
        else:
            self._request("unblock_team", "POST", "/team/unblock", payload={"team_id": team_id})

    def delete_team(self, team_id: str) -> None:
        self._request("delete_team", "POST", "/team/delete", payload={"team_ids": [team_id]})

    def list_user_ids_by_email(self, user_email: str) -> list[str]:
        """Return ids of users whose email matches exactly."""
        body = self._request("list_users", "GET", "/user/list", params={"user_email": user_email})
        return [
            user["user_id"]
            for user in body.get("users") or []
            if user.get("user_email") == user_email and user.get("user_id")
        ]

    def get_user_id_by_email(self, user_email: str) -> str | None:
        user_ids = self.list_user_ids_by_email(user_email)
        return user_ids[0] if user_ids else None

    def get_user_info(self, user_id: str) -> dict[str, Any]:
        body = self._request("get_user", "GET", "/user/info", params={"user_id": user_id})
        info = body.get("user_info")
        if not info:
            raise NotFoundError(f"get_user: user {user_id} not found")
        info = dict(info)
        info.setdefault("user_id", body.get("user_id") or user_id)
        return info

    def create_user(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("create_user", "POST", "/user/new", payload=payload)

    def update_user(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request("update_user", "POST", "/user/update", payload=payload)
        return body.get("data") or {}

    def delete_user(self, user_id: str) -> None:
        self._request("delete_user", "POST", "/user/delete", payload={"user_ids": [user_id]})

    def add_team_member(
        self,
        team_id: str,
        user_email: str,
        role: str,
        user_id: str | None = None,
        max_budget_in_team: float | None = None,
    ) -> dict[str, Any]:
        member: dict[str, Any] = {"user_email": user_email, "role": role}
        if user_id:
            member["user_id"] = user_id
        payload: dict[str, Any] = {"team_id": team_id, "member": [member]}
        if max_budget_in_team is not None:
            payload["max_budget_in_team"] = max_budget_in_team
        return self._request("add_team_member", "POST", "/team/member_add", payload=payload)

    def update_team_member(
        self,
        team_id: str,
        user_email: str,
        role: str,
        user_id: str | None = None,
        max_budget_in_team: float | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"team_id": team_id, "user_email": user_email, "role": role}
        if user_id:
            payload["user_id"] = user_id
        if max_budget_in_team is not None:
            payload["max_budget_in_team"] = max_budget_in_team
        return self._request("update_team_member", "POST", "/team/member_update", payload=payload)

    def delete_team_member(self, team_id: str, user_email: str, user_id: str | None = None) -> None:
        payload: dict[str, Any] = {"team_id": team_id, "user_email": user_email}
        if user_id:
            payload["user_id"] = user_id
        self._request("delete_team_member", "POST", "/team/member_delete", payload=payload)
