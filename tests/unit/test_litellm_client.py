"""Tests for the LiteLLM HTTP client."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from litellm_operator.services.litellm.client import LitellmClient
from litellm_operator.utils.errors import (
    ConfigError,
    LitellmConnectionError,
    NotFoundError,
    ReconcileTimeoutError,
    ServiceError,
)


def response(status_code: int = 200, body: Any = None, text: str | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp.text = text
    resp.content = text.encode()
    if body is not None:
        resp.json.return_value = body
    else:
        resp.json.side_effect = ValueError("no json")
    return resp


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def litellm(session):
    return LitellmClient("http://proxy:4000/", "sk-master", session=session)


class TestRequest:
    """Test status mapping and request shaping."""

    def test_sets_auth_header(self, litellm, session):
        assert session.headers["Authorization"] == "Bearer sk-master"
        assert litellm.base_url == "http://proxy:4000"

    def test_not_found(self, litellm, session):
        session.request.return_value = response(404, {"detail": "missing"})

        with pytest.raises(NotFoundError):
            litellm.get_team_info("t1")

    @pytest.mark.parametrize("status", [401, 403])
    def test_rejected_credentials(self, litellm, session, status):
        session.request.return_value = response(status, {"detail": "nope"})

        with pytest.raises(LitellmConnectionError):
            litellm.generate_key({"key_alias": "a"})

    @pytest.mark.parametrize("status", [400, 422])
    def test_rejected_request(self, litellm, session, status):
        session.request.return_value = response(status, {"detail": "bad budget"})

        with pytest.raises(ConfigError, match="bad budget"):
            litellm.generate_key({"key_alias": "a"})

    def test_server_error(self, litellm, session):
        session.request.return_value = response(500, text="internal error")

        with pytest.raises(ServiceError):
            litellm.create_model({"model_name": "m"})

    def test_transport_error(self, litellm, session):
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(LitellmConnectionError):
            litellm.list_keys_by_alias("a")

    def test_non_json_body(self, litellm, session):
        session.request.return_value = response(200, text="<html>")

        with pytest.raises(ServiceError, match="non-JSON"):
            litellm.get_team_info("t1")

    def test_empty_body(self, litellm, session):
        session.request.return_value = response(200, text="")

        assert litellm.delete_model("m1") is None

    def test_timeout_bounded_by_deadline(self, session):
        litellm = LitellmClient("http://proxy", "sk", timeout=10, remaining=lambda: 2.5, session=session)
        session.request.return_value = response(200, {"keys": []})

        litellm.list_keys_by_alias("a")

        assert session.request.call_args.kwargs["timeout"] == 2.5

    def test_deadline_elapsed(self, session):
        litellm = LitellmClient("http://proxy", "sk", remaining=lambda: 0, session=session)

        with pytest.raises(ReconcileTimeoutError):
            litellm.list_keys_by_alias("a")

        session.request.assert_not_called()


class TestKeys:
    """Test key endpoints."""

    def test_list_keys_by_alias(self, litellm, session):
        session.request.return_value = response(200, {"keys": ["tok-1", {"token": "tok-2"}]})

        assert litellm.list_keys_by_alias("team-x") == ["tok-1", "tok-2"]
        kwargs = session.request.call_args.kwargs
        assert kwargs["url"] == "http://proxy:4000/key/list"
        assert kwargs["params"] == {"key_alias": "team-x"}

    def test_get_key_info_defaults_token(self, litellm, session):
        session.request.return_value = response(200, {"key": "tok-1", "info": {"key_alias": "team-x"}})

        assert litellm.get_key_info("tok-1") == {"key_alias": "team-x", "token": "tok-1"}

    def test_get_key_info_empty(self, litellm, session):
        session.request.return_value = response(200, {"key": "tok-1", "info": None})

        with pytest.raises(NotFoundError):
            litellm.get_key_info("tok-1")

    def test_delete_by_alias(self, litellm, session):
        session.request.return_value = response(200, {"deleted_keys": ["tok-1"]})

        litellm.delete_key_by_alias("team-x")

        assert session.request.call_args.kwargs["json"] == {"key_aliases": ["team-x"]}


class TestModels:
    """Test model endpoints."""

    def test_get_model_info(self, litellm, session):
        session.request.return_value = response(200, {"data": [{"model_name": "m", "model_info": {"id": "m1"}}]})

        assert litellm.get_model_info("m1")["model_info"]["id"] == "m1"
        assert session.request.call_args.kwargs["params"] == {"litellm_model_id": "m1"}

    def test_get_model_info_empty(self, litellm, session):
        session.request.return_value = response(200, {"data": []})

        with pytest.raises(NotFoundError):
            litellm.get_model_info("m1")

    def test_update_model_path(self, litellm, session):
        session.request.return_value = response(200, {"model_info": {"id": "m1"}})

        litellm.update_model("m1", {"model_name": "m"})

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "PATCH"
        assert kwargs["url"] == "http://proxy:4000/model/m1/update"


class TestTeams:
    """Test team and user endpoints."""

    def test_list_teams_exact_alias(self, litellm, session):
        session.request.return_value = response(
            200,
            [{"team_id": "t1", "team_alias": "eng"}, {"team_id": "t2", "team_alias": "engineering"}],
        )

        assert litellm.list_teams_by_alias("eng") == [{"team_id": "t1", "team_alias": "eng"}]

    def test_list_teams_wrapped(self, litellm, session):
        session.request.return_value = response(200, {"teams": [{"team_id": "t1", "team_alias": "eng"}]})

        assert [t["team_id"] for t in litellm.list_teams_by_alias("eng")] == ["t1"]

    def test_get_user_id_by_email(self, litellm, session):
        session.request.return_value = response(
            200, {"users": [{"user_id": "u1", "user_email": "a@example.com"}]}
        )

        assert litellm.get_user_id_by_email("a@example.com") == "u1"
        session.request.return_value = response(200, {"users": []})
        assert litellm.get_user_id_by_email("b@example.com") is None

    def test_add_team_member_payload(self, litellm, session):
        session.request.return_value = response(200, {})

        litellm.add_team_member("t1", "a@example.com", "admin", user_id="u1", max_budget_in_team=5.0)

        assert session.request.call_args.kwargs["json"] == {
            "team_id": "t1",
            "member": [{"user_email": "a@example.com", "role": "admin", "user_id": "u1"}],
            "max_budget_in_team": 5.0,
        }

    def test_update_team_unwraps_data(self, litellm, session):
        session.request.return_value = response(200, {"data": {"team_id": "t1", "max_budget": 5.0}})

        assert litellm.update_team({"team_id": "t1"}) == {"team_id": "t1", "max_budget": 5.0}
        assert session.request.call_args.kwargs["url"] == "http://proxy:4000/team/update"

    @pytest.mark.parametrize("blocked, path", [(True, "/team/block"), (False, "/team/unblock")])
    def test_set_team_blocked(self, litellm, session, blocked, path):
        session.request.return_value = response(200, {})

        litellm.set_team_blocked("t1", blocked)

        kwargs = session.request.call_args.kwargs
        assert kwargs["url"] == f"http://proxy:4000{path}"
        assert kwargs["json"] == {"team_id": "t1"}

    def test_delete_team_payload(self, litellm, session):
        session.request.return_value = response(200, {})

        litellm.delete_team("t1")

        assert session.request.call_args.kwargs["json"] == {"team_ids": ["t1"]}

    def test_list_user_ids_exact_email(self, litellm, session):
        session.request.return_value = response(200, {"users": [
            {"user_id": "u1", "user_email": "a@example.com"},
            {"user_id": "u2", "user_email": "a@example.com.evil"},
            {"user_id": "u3", "user_email": "a@example.com"},
        ]})

        assert litellm.list_user_ids_by_email("a@example.com") == ["u1", "u3"]

    def test_get_user_info_defaults_id(self, litellm, session):
        session.request.return_value = response(200, {"user_id": "u1", "user_info": {"user_email": "a@example.com"}})

        assert litellm.get_user_info("u1") == {"user_email": "a@example.com", "user_id": "u1"}

    def test_get_user_info_empty(self, litellm, session):
        session.request.return_value = response(200, {"user_id": "u1", "user_info": None})

        with pytest.raises(NotFoundError):
            litellm.get_user_info("u1")

    def test_update_user_unwraps_data(self, litellm, session):
        session.request.return_value = response(200, {"data": {"user_id": "u1"}})

        assert litellm.update_user({"user_id": "u1"}) == {"user_id": "u1"}

    def test_delete_user_payload(self, litellm, session):
        session.request.return_value = response(200, {})

        litellm.delete_user("u1")

        kwargs = session.request.call_args.kwargs
        assert kwargs["url"] == "http://proxy:4000/user/delete"
        assert kwargs["json"] == {"user_ids": ["u1"]}
