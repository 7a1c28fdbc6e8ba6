"""Upgrade run orchestration.

Drives the upgrade service through the components in a fixed order (Edge,
Host, Management). For each component the coordinator quiesces the component
if it is in flight, waits for the overall status to settle, resets its
plan, applies the declared groups and settings, launches the upgrade and
waits for a terminal status. Post-upgrade checks are triggered at the end.
"""

import threading
import time
from typing import Callable, List, Optional

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import NsxApiError, NsxUpgradeError, UpgradeCancelledError, UpgradeOperationError
from nsxt_upgrade.group_configurator import GroupConfigurator
from nsxt_upgrade.logging_config import get_logger, log_with_context
from nsxt_upgrade.models import ComponentOutcome, RunResult, StatusAndDetail, UpgradeRun
from nsxt_upgrade.settings_configurator import SettingsConfigurator
from nsxt_upgrade.status_poller import StatusPoller
from nsxt_upgrade.topology import DEFAULT_TOPOLOGY, UpgradeTopology


class UpgradeCoordinator:
    """Runs the upgrade state machine over all components."""

    def __init__(
        self,
        clients,
        topology: UpgradeTopology = DEFAULT_TOPOLOGY,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize upgrade coordinator.

        Args:
            clients: UpgradeClientSet (or any object exposing the same clients)
            topology: Component topology
            cancel_event: Event used to abort a running upgrade
            clock: Monotonic clock for status waits, injectable for testing
        """
        self.clients = clients
        self.topology = topology
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.clock = clock
        self.logger = get_logger("nsxt_upgrade.coordinator")

        self.group_configurator = GroupConfigurator(clients.groups, topology)
        self.settings_configurator = SettingsConfigurator(clients.settings, topology)

    def cancel(self) -> None:
        """Abort the current run at its next wait."""
        self.logger.info("Cancellation requested")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def execute(self, run: UpgradeRun, run_id: str = "") -> RunResult:
        """
        Execute one full pass of the upgrade.

        Safe to call again after a partial, failed or cancelled pass:
        components that already succeeded are skipped, the others are
        reconfigured and relaunched. A cancellation requested before the
        call stops it at the first component.

        Args:
            run: Declared upgrade run
            run_id: Run identity, used for log context

        Returns:
            Per-component outcomes and triggered post-checks

        Raises:
            UpgradeOperationError: A remote operation failed
            WaitError: A status wait timed out or saw an unexpected status
            UpgradeCancelledError: The run was cancelled
        """
        poller = StatusPoller(
            self.clients.status, run.wait, self.topology, self.cancel_event, self.clock
        )
        result = RunResult()

        log_with_context(
            self.logger, "info",
            f"Starting upgrade run for preparation {run.upgrade_prepare_ready_id}",
            run_id=run_id,
        )
        for component in self.topology.component_order:
            try:
                outcome = self._run_component(poller, run, component, result.partial_upgrade, run_id)
            except UpgradeCancelledError as e:
                # The cancellation is consumed; a later execute() resumes the run
                self.cancel_event.clear()
                log_with_context(
                    self.logger, "warning",
                    f"{component} upgrade stopped: {e}",
                    run_id=run_id,
                    component=component,
                )
                raise
            except NsxUpgradeError as e:
                log_with_context(
                    self.logger, "error",
                    f"{component} upgrade failed: {e}",
                    run_id=run_id,
                    component=component,
                )
                raise
            result.component_outcomes[component] = outcome.value
            if outcome == ComponentOutcome.PARTIALLY_COMPLETED:
                result.partial_upgrade = True

        result.post_checks_triggered = self.dispatch_post_checks(run, run_id)
        return result

    def _run_component(
        self,
        poller: StatusPoller,
        run: UpgradeRun,
        component: str,
        partial_upgrade_exists: bool,
        run_id: str
    ) -> ComponentOutcome:
        """Drive one component to a terminal status."""
        if self.cancelled:
            raise UpgradeCancelledError(component)

        if partial_upgrade_exists and component in self.topology.skip_after_partial_components:
            log_with_context(
                self.logger, "info",
                f"Some upgrade unit groups haven't been upgraded. {component} upgrade is skipped",
                run_id=run_id,
                component=component,
            )
            return ComponentOutcome.SKIPPED

        status = self._get_status(poller, component)
        customizable = component in self.topology.customizable_components

        if status.status == constants.STATUS_SUCCESS:
            if customizable and (run.groups_for(component) or run.settings_for(component)):
                log_with_context(
                    self.logger, "warning",
                    f"{component} upgrade has already succeeded. Any changes on it will be ignored",
                    run_id=run_id,
                    component=component,
                )
            else:
                self.logger.info(f"{component} upgrade has already succeeded")
            return ComponentOutcome.ALREADY_SUCCEEDED

        resuming = False
        if status.status in constants.IN_FLIGHT_STATUSES:
            if customizable:
                # An in-flight component rejects group and setting updates
                log_with_context(
                    self.logger, "info",
                    f"{component} upgrade is {status.status}, pausing it before reconfiguration",
                    run_id=run_id,
                    component=component,
                    operation=constants.OP_PAUSE,
                )
                self._remote(constants.OP_PAUSE, component, self.clients.plan.pause)
                poller.wait_for(component, constants.IN_FLIGHT_STATUSES, constants.STABLE_STATUSES)
            else:
                self.logger.info(f"{component} upgrade is already {status.status}, waiting for it")
                resuming = True

        if not resuming:
            # After a component completes there is a period during which the
            # overall status is still IN_PROGRESS, which blocks the next upgrade.
            # An in-flight component keeps it there until paused above.
            poller.wait_for(None, constants.IN_FLIGHT_STATUSES, constants.STABLE_STATUSES)

        if customizable:
            log_with_context(
                self.logger, "info",
                f"Resetting {component} upgrade plan",
                run_id=run_id,
                component=component,
                operation=constants.OP_RESET,
            )
            self._remote(constants.OP_RESET, component, self.clients.plan.reset, component)
            self.group_configurator.configure(component, run.groups_for(component))
            self.settings_configurator.configure(component, run.settings_for(component))

        partial = run.is_partial(component)
        pending = [constants.STATUS_IN_PROGRESS]
        target = [constants.STATUS_SUCCESS]
        if partial:
            # Disabled groups leave the component PAUSED once the enabled ones are done
            pending.append(constants.STATUS_PAUSING)
            target.append(constants.STATUS_PAUSED)

        if not resuming:
            log_with_context(
                self.logger, "info",
                f"Starting {component} upgrade",
                run_id=run_id,
                component=component,
                operation=constants.OP_UPGRADE,
            )
            self._remote(constants.OP_UPGRADE, component, self.clients.plan.upgrade, component)

        final = poller.wait_for(component, pending, target)

        if final.status == constants.STATUS_PAUSED:
            log_with_context(
                self.logger, "info",
                f"{component} upgrade is partially completed",
                run_id=run_id,
                component=component,
            )
            return ComponentOutcome.PARTIALLY_COMPLETED

        log_with_context(
            self.logger, "info",
            f"{component} upgrade is completed",
            run_id=run_id,
            component=component,
        )
        return ComponentOutcome.COMPLETED

    def dispatch_post_checks(self, run: UpgradeRun, run_id: str = "") -> List[str]:
        """
        Trigger post-upgrade checks for components whose settings ask for them.

        Checks are only triggered, never awaited. A trigger failure is logged
        and does not fail the run.

        Returns:
            Components whose post-upgrade check was triggered
        """
        triggered = []
        for component in self.topology.post_check_components:
            settings = run.settings_for(component)
            if settings is None or not settings.post_upgrade_check:
                continue

            log_with_context(
                self.logger, "info",
                f"Starting {component} post-upgrade check. Results are reported by the upgrade service",
                run_id=run_id,
                component=component,
                operation=constants.OP_POST_CHECK,
            )
            try:
                self.clients.upgrade.execute_post_upgrade_checks(component)
            except NsxApiError as e:
                log_with_context(
                    self.logger, "warning",
                    f"Failed to trigger {component} post-upgrade check: {e}",
                    run_id=run_id,
                    component=component,
                    operation=constants.OP_POST_CHECK,
                )
                continue
            triggered.append(component)
        return triggered

    def _get_status(self, poller: StatusPoller, component: str) -> StatusAndDetail:
        try:
            return poller.get_status(component)
        except NsxApiError as e:
            raise UpgradeOperationError(constants.OP_STATUS_GET, component, cause=e) from e

    def _remote(self, operation: str, component: str, func, *args):
        try:
            return func(*args)
        except NsxApiError as e:
            raise UpgradeOperationError(operation, component, cause=e) from e
