"""NSX manager upgrade API clients.

The coordinator consumes six narrow capability clients. They all share one
``NsxApiSession``, which owns the HTTP session and maps failures onto the
exception hierarchy in ``nsxt_upgrade.exceptions``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from nsxt_upgrade import constants
from nsxt_upgrade.config import Config
from nsxt_upgrade.exceptions import (
    ConfigurationError,
    NsxApiError,
    RequestTimeoutError,
    ServiceUnavailableError,
)
from nsxt_upgrade.logging_config import get_logger
from nsxt_upgrade.models import GroupStatus, PlanSettings, StatusSummary, UnitGroup

TIMEOUT_STATUS_CODES = {408, 504}
SERVICE_UNAVAILABLE_STATUS_CODES = {503}


class NsxApiSession:
    """HTTP session against the NSX manager API."""

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        verify_ssl: bool = True,
        timeout: int = constants.DEFAULT_NSX_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize NSX API session.

        Args:
            host: NSX manager host name or address (a scheme may be included)
            username: API username (basic auth)
            password: API password
            verify_ssl: Whether to verify the manager certificate
            timeout: Per-request timeout in seconds
            session: Optional requests session for dependency injection (testing)
        """
        if not host:
            raise ConfigurationError("NSX manager host is not configured (nsx.host)")

        base = host if host.startswith(("http://", "https://")) else f"https://{host}"
        self.base_url = base.rstrip('/') + constants.NSX_API_BASE_PATH
        self.timeout = timeout
        self.logger = get_logger("nsxt_upgrade.nsx")

        self.session = session if session is not None else requests.Session()
        self.session.auth = (username, password)
        self.session.verify = verify_ssl
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def _url(self, path: str) -> str:
        """Construct full API URL from path."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Execute one API request.

        Args:
            method: HTTP method
            path: Path below /api/v1
            params: Query parameters
            body: JSON body

        Returns:
            Decoded JSON response, empty dict for empty bodies

        Raises:
            ServiceUnavailableError: HTTP 503 or manager unreachable
            RequestTimeoutError: HTTP 408/504 or request timeout
            NsxApiError: Any other failure
        """
        operation = f"{method.upper()} /{path.lstrip('/')}"
        self.logger.debug(f"NSX request: {operation} params={params}")

        try:
            response = self.session.request(
                method.upper(),
                self._url(path),
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RequestTimeoutError(str(e), operation=operation) from e
        except requests.ConnectionError as e:
            raise ServiceUnavailableError(str(e), operation=operation) from e
        except requests.RequestException as e:
            raise NsxApiError(str(e), operation=operation) from e

        if response.status_code >= 400:
            raise self._error_from_response(response, operation)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise NsxApiError(
                f"Invalid JSON in response: {e}",
                status_code=response.status_code,
                operation=operation,
            ) from e

    def _error_from_response(self, response: requests.Response, operation: str) -> NsxApiError:
        """Map an error response onto the exception hierarchy."""
        message = response.reason or "request failed"
        error_code = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = data.get("error_message") or data.get("message") or message
            error_code = data.get("error_code")

        if response.status_code in SERVICE_UNAVAILABLE_STATUS_CODES:
            error_class = ServiceUnavailableError
        elif response.status_code in TIMEOUT_STATUS_CODES:
            error_class = RequestTimeoutError
        else:
            error_class = NsxApiError
        return error_class(
            message,
            status_code=response.status_code,
            error_code=error_code,
            operation=operation,
        )


class UpgradeUnitGroupsClient:
    """Upgrade unit groups: get, update, reorder, list."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def get(self, group_id: str) -> UnitGroup:
        data = self.api.request("GET", f"upgrade/upgrade-unit-groups/{group_id}")
        return UnitGroup.from_api(data)

    def update(self, group_id: str, group: UnitGroup) -> UnitGroup:
        data = self.api.request("PUT", f"upgrade/upgrade-unit-groups/{group_id}", body=group.to_api())
        return UnitGroup.from_api(data)

    def reorder(self, group_id: str, after: Optional[str] = None, before: Optional[str] = None) -> None:
        """
        Move a group next to another one in its component's traversal order.

        Exactly one of ``after`` or ``before`` must be given.
        """
        if (after is None) == (before is None):
            raise ValueError("reorder requires exactly one of 'after' or 'before'")
        body = {
            "id": before if before is not None else after,
            "is_before": before is not None,
        }
        self.api.request(
            "POST",
            f"upgrade/upgrade-unit-groups/{group_id}",
            params={"action": "reorder"},
            body=body,
        )

    def list(self, component_type: Optional[str] = None) -> List[UnitGroup]:
        """List upgrade unit groups, following result cursors."""
        params: Dict[str, Any] = {}
        if component_type:
            params["component_type"] = component_type

        groups: List[UnitGroup] = []
        while True:
            data = self.api.request("GET", "upgrade/upgrade-unit-groups", params=dict(params))
            groups.extend(UnitGroup.from_api(item) for item in data.get("results") or [])
            cursor = data.get("cursor")
            if not cursor:
                return groups
            params["cursor"] = cursor


class PlanSettingsClient:
    """Per-component upgrade plan settings."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def get(self, component: str) -> PlanSettings:
        data = self.api.request("GET", f"upgrade/plan/{component}/settings")
        return PlanSettings.from_api(data)

    def update(self, component: str, settings: PlanSettings) -> PlanSettings:
        data = self.api.request("PUT", f"upgrade/plan/{component}/settings", body=settings.to_api())
        return PlanSettings.from_api(data)


class PlanClient:
    """Upgrade plan actions."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def pause(self) -> None:
        self.api.request("POST", "upgrade/plan", params={"action": "pause"})

    def reset(self, component: str) -> None:
        self.api.request("POST", "upgrade/plan", params={"action": "reset", "component_type": component})

    def upgrade(self, component: str) -> None:
        self.api.request("POST", "upgrade/plan", params={"action": "upgrade", "component_type": component})


class StatusSummaryClient:
    """Upgrade status summary."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def get(self, component: Optional[str] = None) -> StatusSummary:
        params = {"component_type": component} if component else None
        data = self.api.request("GET", "upgrade/status-summary", params=params)
        return StatusSummary.from_api(data)


class GroupStatusClient:
    """Upgrade status of the groups of a component."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def get_all(self, component: str) -> List[GroupStatus]:
        data = self.api.request(
            "GET",
            "upgrade/upgrade-unit-groups-status",
            params={"component_type": component},
        )
        return [GroupStatus.from_api(item) for item in data.get("results") or []]


class UpgradeClient:
    """Top-level upgrade actions."""

    def __init__(self, api: NsxApiSession):
        self.api = api

    def execute_post_upgrade_checks(self, component: str) -> None:
        self.api.request(
            "POST",
            f"upgrade/{component}",
            params={"action": "execute_post_upgrade_checks"},
        )


@dataclass
class UpgradeClientSet:
    """The remote capability clients consumed by the upgrade coordinator."""
    groups: Any
    settings: Any
    plan: Any
    status: Any
    group_status: Any
    upgrade: Any

    @classmethod
    def from_session(cls, api: NsxApiSession) -> "UpgradeClientSet":
        """Build the REST implementations over one API session."""
        return cls(
            groups=UpgradeUnitGroupsClient(api),
            settings=PlanSettingsClient(api),
            plan=PlanClient(api),
            status=StatusSummaryClient(api),
            group_status=GroupStatusClient(api),
            upgrade=UpgradeClient(api),
        )

    @classmethod
    def from_config(cls, config: Config) -> "UpgradeClientSet":
        """Build the REST implementations from application configuration."""
        api = NsxApiSession(
            host=config.nsx_host,
            username=config.nsx_username,
            password=config.nsx_password,
            verify_ssl=config.nsx_verify_ssl,
            timeout=config.nsx_timeout,
        )
        return cls.from_session(api)
