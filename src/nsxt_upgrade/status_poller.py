"""Upgrade status polling."""

import threading
import time
from typing import Callable, Iterable, Optional

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import (
    NsxApiError,
    StatusNotFoundError,
    UnexpectedStatusError,
    UpgradeCancelledError,
    UpgradeOperationError,
    WaitTimeoutError,
)
from nsxt_upgrade.logging_config import get_logger, log_with_context
from nsxt_upgrade.models import StatusAndDetail, WaitParameters
from nsxt_upgrade.topology import DEFAULT_TOPOLOGY, UpgradeTopology


class StatusPoller:
    """Waits for the overall or a component upgrade status to reach a target set."""

    def __init__(
        self,
        status_client,
        wait: WaitParameters,
        topology: UpgradeTopology = DEFAULT_TOPOLOGY,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize status poller.

        Args:
            status_client: Status summary client
            wait: Timeout, interval and initial delay in seconds
            topology: Component topology (decides which probe errors are tolerated)
            cancel_event: Event that aborts the current wait when set
            clock: Monotonic clock, injectable for testing
        """
        self.status_client = status_client
        self.wait = wait
        self.topology = topology
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.clock = clock
        self.logger = get_logger("nsxt_upgrade.poller")

    def get_status(self, component: Optional[str] = None) -> StatusAndDetail:
        """
        Get the current upgrade status.

        Args:
            component: Component type, None for the overall upgrade status

        Returns:
            Observed status and detail

        Raises:
            StatusNotFoundError: The summary has no entry for the component
        """
        summary = self.status_client.get(component)
        if component is None:
            return StatusAndDetail(status=summary.overall_upgrade_status)

        entry = summary.find(component)
        if entry is None:
            raise StatusNotFoundError(component)
        return StatusAndDetail(status=entry.status, detail=entry.details)

    def wait_for(
        self,
        component: Optional[str],
        pending: Iterable[str],
        target: Iterable[str]
    ) -> StatusAndDetail:
        """
        Block until the status leaves the pending set for the target set.

        After the initial delay the status is probed every interval until it
        is in the target set, a status outside both sets is observed, or the
        timeout elapses.

        Args:
            component: Component type, None for the overall upgrade status
            pending: Statuses that keep the wait going
            target: Statuses that end the wait successfully

        Returns:
            Last observed status and detail

        Raises:
            WaitTimeoutError: Timeout elapsed; carries the last observed status
            UnexpectedStatusError: Status outside pending and target was observed
            UpgradeCancelledError: The cancel event was set
            UpgradeOperationError: A status probe failed and was not tolerated
        """
        pending = list(pending)
        target = list(target)
        subject = component or "overall"
        deadline = self.clock() + self.wait.timeout

        log_with_context(
            self.logger, "debug",
            f"Waiting for {subject} upgrade status to be {target} (pending: {pending})",
            component=component,
        )

        self._sleep(self.wait.delay, component)
        while True:
            observed = self._probe(component)
            self.logger.debug(f"Current {subject} upgrade status: {observed.status}")

            if observed.status in target:
                return observed
            if observed.status not in pending:
                raise UnexpectedStatusError(component, target, observed.status, observed.detail)
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise WaitTimeoutError(
                    component, target, observed.status, observed.detail, self.wait.timeout
                )
            self._sleep(min(self.wait.interval, remaining), component)

    def _probe(self, component: Optional[str]) -> StatusAndDetail:
        """Probe the status once, mapping tolerated errors to IN_PROGRESS."""
        try:
            return self.get_status(component)
        except NsxApiError as e:
            if self.topology.tolerates(component, e):
                log_with_context(
                    self.logger, "info",
                    f"{component} status probe failed while the manager restarts, keep polling: {e}",
                    component=component,
                    operation=constants.OP_STATUS_GET,
                )
                return StatusAndDetail(status=constants.STATUS_IN_PROGRESS, detail=str(e))
            raise UpgradeOperationError(constants.OP_STATUS_GET, component, cause=e) from e

    def _sleep(self, seconds: float, component: Optional[str]) -> None:
        """Sleep, waking up early if the run is cancelled."""
        if self.cancel_event.wait(max(seconds, 0)):
            raise UpgradeCancelledError(component)
