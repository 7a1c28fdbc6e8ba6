"""Tests for the NSX manager REST clients."""

import pytest
import requests
from unittest.mock import MagicMock

from nsxt_upgrade.exceptions import (
    ConfigurationError,
    NsxApiError,
    RequestTimeoutError,
    ServiceUnavailableError,
)
from nsxt_upgrade.models import PlanSettings, UnitGroup
from nsxt_upgrade.nsx_client import (
    NsxApiSession,
    PlanClient,
    PlanSettingsClient,
    StatusSummaryClient,
    UpgradeClientSet,
    UpgradeUnitGroupsClient,
)


def make_response(status_code=200, body=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if body is None:
        response.content = b""
        response.json.side_effect = ValueError("No JSON")
    else:
        response.content = b"{...}"
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def api(session):
    return NsxApiSession("nsx.example.com", "admin", "secret", verify_ssl=False, timeout=15, session=session)


class TestNsxApiSession:
    """Test request construction and error mapping."""

    def test_session_setup(self, api, session):
        """Should configure auth, TLS verification and JSON headers."""
        assert api.base_url == "https://nsx.example.com/api/v1"
        assert session.auth == ("admin", "secret")
        assert session.verify is False
        session.headers.update.assert_called_once()

    def test_explicit_scheme_kept(self, session):
        """Should not add a scheme when the host carries one."""
        api = NsxApiSession("http://10.0.0.5/", "admin", "secret", session=session)

        assert api.base_url == "http://10.0.0.5/api/v1"

    def test_missing_host(self, session):
        """Should refuse to build a session without a host."""
        with pytest.raises(ConfigurationError):
            NsxApiSession("", "admin", "secret", session=session)

    def test_request(self, api, session):
        """Should send method, URL, params, body and timeout."""
        session.request.return_value = make_response(body={"ok": True})

        result = api.request("post", "upgrade/plan", params={"action": "pause"}, body={"a": 1})

        assert result == {"ok": True}
        session.request.assert_called_once_with(
            "POST",
            "https://nsx.example.com/api/v1/upgrade/plan",
            params={"action": "pause"},
            json={"a": 1},
            timeout=15,
        )

    def test_empty_body(self, api, session):
        """Should return an empty dict for empty responses."""
        session.request.return_value = make_response(body=None)

        assert api.request("POST", "upgrade/plan") == {}

    @pytest.mark.parametrize("status_code,error_class", [
        (503, ServiceUnavailableError),
        (504, RequestTimeoutError),
        (408, RequestTimeoutError),
        (400, NsxApiError),
        (404, NsxApiError),
    ])
    def test_http_error_mapping(self, api, session, status_code, error_class):
        """Should map HTTP errors onto the exception hierarchy."""
        session.request.return_value = make_response(
            status_code, {"error_message": "Upgrade is in progress", "error_code": 30954}, reason="Error"
        )

        with pytest.raises(error_class) as exc_info:
            api.request("GET", "upgrade/status-summary")

        error = exc_info.value
        assert type(error) is error_class
        assert error.status_code == status_code
        assert error.error_code == 30954
        assert error.message == "Upgrade is in progress"
        assert error.operation == "GET /upgrade/status-summary"

    def test_error_without_json(self, api, session):
        """Should fall back to the HTTP reason."""
        session.request.return_value = make_response(500, None, reason="Internal Server Error")

        with pytest.raises(NsxApiError) as exc_info:
            api.request("GET", "upgrade/status-summary")

        assert exc_info.value.message == "Internal Server Error"

    @pytest.mark.parametrize("raised,error_class", [
        (requests.ConnectionError("refused"), ServiceUnavailableError),
        (requests.Timeout("read timed out"), RequestTimeoutError),
        (requests.TooManyRedirects("loop"), NsxApiError),
    ])
    def test_transport_error_mapping(self, api, session, raised, error_class):
        """Should map transport failures onto the exception hierarchy."""
        session.request.side_effect = raised

        with pytest.raises(error_class) as exc_info:
            api.request("GET", "upgrade/status-summary")

        assert type(exc_info.value) is error_class
        assert exc_info.value.status_code is None


class TestUpgradeUnitGroupsClient:
    """Test upgrade unit group calls."""

    def test_update_sends_full_group(self, api, session):
        """Should PUT the group payload including unmodelled fields."""
        session.request.return_value = make_response(body={"id": "g1", "_revision": 4})
        group = UnitGroup.from_api({"id": "g1", "type": "EDGE", "_revision": 3, "enabled": True})
        group.enabled = False

        UpgradeUnitGroupsClient(api).update("g1", group)

        kwargs = session.request.call_args.kwargs
        assert session.request.call_args.args[1].endswith("/upgrade/upgrade-unit-groups/g1")
        assert kwargs["json"]["_revision"] == 3
        assert kwargs["json"]["enabled"] is False

    def test_reorder_after(self, api, session):
        """Should post a reorder action placing the group after its anchor."""
        session.request.return_value = make_response(body=None)

        UpgradeUnitGroupsClient(api).reorder("g2", after="g1")

        call = session.request.call_args
        assert call.args == ("POST", "https://nsx.example.com/api/v1/upgrade/upgrade-unit-groups/g2")
        assert call.kwargs["params"] == {"action": "reorder"}
        assert call.kwargs["json"] == {"id": "g1", "is_before": False}

    def test_reorder_before(self, api, session):
        """Should set is_before when placing the group before its anchor."""
        session.request.return_value = make_response(body=None)

        UpgradeUnitGroupsClient(api).reorder("g2", before="g1")

        assert session.request.call_args.kwargs["json"] == {"id": "g1", "is_before": True}

    @pytest.mark.parametrize("kwargs", [{}, {"after": "a", "before": "b"}])
    def test_reorder_needs_one_anchor(self, api, kwargs):
        """Should reject reorders with no anchor or two anchors."""
        with pytest.raises(ValueError):
            UpgradeUnitGroupsClient(api).reorder("g2", **kwargs)

    def test_list_follows_cursor(self, api, session):
        """Should follow result cursors until exhausted."""
        session.request.side_effect = [
            make_response(body={"results": [{"id": "g1"}], "cursor": "00011"}),
            make_response(body={"results": [{"id": "g2"}]}),
        ]

        groups = UpgradeUnitGroupsClient(api).list("HOST")

        assert [group.id for group in groups] == ["g1", "g2"]
        first, second = session.request.call_args_list
        assert first.kwargs["params"] == {"component_type": "HOST"}
        assert second.kwargs["params"] == {"component_type": "HOST", "cursor": "00011"}


class TestPlanClients:
    """Test plan actions, settings and status."""

    def test_plan_actions(self, api, session):
        """Should post plan actions with the component type."""
        session.request.return_value = make_response(body=None)
        plan = PlanClient(api)

        plan.pause()
        plan.reset("EDGE")
        plan.upgrade("HOST")

        params = [call.kwargs["params"] for call in session.request.call_args_list]
        assert params == [
            {"action": "pause"},
            {"action": "reset", "component_type": "EDGE"},
            {"action": "upgrade", "component_type": "HOST"},
        ]

    def test_settings_update_omits_unset_pause_on_error(self, api, session):
        """Should not send pause_on_error when it is unset."""
        session.request.return_value = make_response(body={"parallel": False})
        settings = PlanSettings.from_api({"parallel": True, "pause_on_error": True, "_revision": 1})
        settings.parallel = False
        settings.pause_on_error = None

        PlanSettingsClient(api).update("EDGE", settings)

        call = session.request.call_args
        assert call.args[1].endswith("/upgrade/plan/EDGE/settings")
        assert call.kwargs["json"] == {"parallel": False, "_revision": 1}

    def test_status_summary(self, api, session):
        """Should parse the overall and component statuses."""
        session.request.return_value = make_response(body={
            "overall_upgrade_status": "IN_PROGRESS",
            "component_status": [
                {"component_type": "EDGE", "status": "SUCCESS", "target_component_version": "4.1.2"},
                {"component_type": "HOST", "status": "IN_PROGRESS", "details": "2/4 hosts"},
            ],
        })

        summary = StatusSummaryClient(api).get("HOST")

        assert session.request.call_args.kwargs["params"] == {"component_type": "HOST"}
        assert summary.overall_upgrade_status == "IN_PROGRESS"
        assert summary.find("HOST").details == "2/4 hosts"
        assert summary.find("EDGE").target_component_version == "4.1.2"
        assert summary.find("MP") is None


class TestUpgradeClientSet:
    """Test building the client set."""

    def test_from_config(self, test_config):
        """Should build all clients over one session from configuration."""
        clients = UpgradeClientSet.from_config(test_config)

        assert clients.groups.api is clients.status.api
        assert clients.status.api.base_url == "https://nsx-test.example.com/api/v1"
        assert clients.status.api.session.verify is False
        assert clients.status.api.timeout == 30
