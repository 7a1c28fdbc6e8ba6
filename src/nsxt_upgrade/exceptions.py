"""Custom exceptions for the NSX-T upgrade coordinator."""

from typing import Iterable, Optional


class NsxUpgradeError(Exception):
    """Base exception for all NSX-T upgrade errors."""
    pass


class NsxApiError(NsxUpgradeError):
    """Exception raised when an NSX API call fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
        operation: str = ""
    ):
        """
        Initialize NSX API error.

        Args:
            message: Error message returned by the API (or transport error)
            status_code: HTTP status code, None for transport failures
            error_code: NSX error code from the response body
            operation: Request description, e.g. "GET /upgrade/status-summary"
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.operation = operation

        text = message
        if status_code is not None:
            text = f"HTTP {status_code}: {text}"
        if error_code is not None:
            text += f" (error code {error_code})"
        if operation:
            text = f"{operation} failed: {text}"
        super().__init__(text)


class ServiceUnavailableError(NsxApiError):
    """Exception raised when the NSX manager is unavailable or unreachable."""
    pass


class RequestTimeoutError(NsxApiError):
    """Exception raised when an NSX request times out."""
    pass


class UpgradeOperationError(NsxUpgradeError):
    """Exception raised when a remote upgrade operation fails during a run."""

    def __init__(
        self,
        operation: str,
        component: Optional[str],
        identity: str = "",
        cause: Optional[Exception] = None
    ):
        """
        Initialize upgrade operation error.

        Args:
            operation: Remote operation name (e.g. GroupUpdate)
            component: Component the operation was issued for
            identity: Identity of the remote object (group ID), if any
            cause: Underlying exception
        """
        self.operation = operation
        self.component = component
        self.identity = identity
        self.cause = cause

        message = f"{operation} failed"
        if component:
            message += f" for {component} component"
        if identity:
            message += f" (id: {identity})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class StatusNotFoundError(NsxUpgradeError):
    """Exception raised when the status summary has no entry for a component."""

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"couldn't find upgrade status of {component} component")


class WaitError(NsxUpgradeError):
    """Base exception for status wait failures."""

    def __init__(
        self,
        message: str,
        component: Optional[str],
        target: Iterable[str],
        status: str = "",
        detail: str = ""
    ):
        self.component = component
        self.target = list(target)
        self.status = status
        self.detail = detail
        super().__init__(message)


class WaitTimeoutError(WaitError):
    """Exception raised when a status wait exceeds its timeout."""

    def __init__(
        self,
        component: Optional[str],
        target: Iterable[str],
        status: str,
        detail: str,
        timeout: float
    ):
        """
        Initialize wait timeout error.

        Args:
            component: Component being waited on, None for overall status
            target: Target statuses
            status: Last observed status
            detail: Last observed detail string
            timeout: Timeout that elapsed, in seconds
        """
        self.timeout = timeout
        subject = f"{component} upgrade" if component else "Upgrade"
        message = (
            f"failed to wait {subject} to be {list(target)}: "
            f"timeout after {timeout}s. Current status: {status}. Details: {detail}"
        )
        super().__init__(message, component, target, status, detail)


class UnexpectedStatusError(WaitError):
    """Exception raised when a status outside the pending and target sets is observed."""

    def __init__(self, component: Optional[str], target: Iterable[str], status: str, detail: str):
        subject = f"{component} upgrade" if component else "Upgrade"
        message = (
            f"failed to wait {subject} to be {list(target)}: "
            f"unexpected status {status}. Details: {detail}"
        )
        super().__init__(message, component, target, status, detail)


class UpgradeCancelledError(NsxUpgradeError):
    """Exception raised when a run is cancelled while waiting."""

    def __init__(self, component: Optional[str] = None):
        self.component = component
        message = "Upgrade run cancelled"
        if component:
            message += f" while waiting on {component} component"
        super().__init__(message)


class ValidationError(NsxUpgradeError):
    """Exception raised when validation fails."""
    pass


class DeclarationError(ValidationError):
    """Exception raised for invalid upgrade run declarations."""

    def __init__(self, field: str, reason: str):
        """
        Initialize declaration error.

        Args:
            field: Path of the offending field (e.g. host_group[1].upgrade_mode)
            reason: Why the value was rejected
        """
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid upgrade run declaration: {field}: {reason}")


class ConfigurationError(NsxUpgradeError):
    """Exception raised for configuration errors."""
    pass


class RunNotFoundError(NsxUpgradeError):
    """Exception raised when an upgrade run record is not found."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Upgrade run not found: {run_id}")
