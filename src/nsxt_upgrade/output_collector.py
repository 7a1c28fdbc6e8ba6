"""Observable projections of an upgrade run."""

from typing import List

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import NsxApiError, NsxUpgradeError, UpgradeOperationError
from nsxt_upgrade.logging_config import get_logger
from nsxt_upgrade.models import ComponentState, GroupPlanEntry, UpgradeRunOutput


class OutputCollector:
    """Reads the current groups and status into the run's observable fields."""

    def __init__(self, clients):
        self.clients = clients
        self.logger = get_logger("nsxt_upgrade.output")

    def collect(self) -> UpgradeRunOutput:
        """
        Read both projections.

        Raises:
            UpgradeOperationError: A read failed
        """
        return UpgradeRunOutput(
            upgrade_group_plan=self.collect_group_plan(),
            state=self.collect_state(),
        )

    def collect_best_effort(self) -> UpgradeRunOutput:
        """Read what can be read; failed reads leave their projection empty."""
        output = UpgradeRunOutput()
        try:
            output.upgrade_group_plan = self.collect_group_plan()
        except NsxUpgradeError as e:
            self.logger.warning(f"Could not read upgrade group plan: {e}")
        try:
            output.state = self.collect_state()
        except NsxUpgradeError as e:
            self.logger.warning(f"Could not read upgrade state: {e}")
        return output

    def collect_group_plan(self) -> List[GroupPlanEntry]:
        """All upgrade unit groups, of all components."""
        try:
            groups = self.clients.groups.list()
        except NsxApiError as e:
            raise UpgradeOperationError(constants.OP_GROUP_LIST, None, cause=e) from e

        return [
            GroupPlanEntry(
                id=group.id,
                type=group.type,
                enabled=group.enabled,
                parallel=group.parallel,
                pause_after_each_upgrade_unit=group.pause_after_each_upgrade_unit,
                extended_config=dict(group.extended_configuration),
            )
            for group in groups
        ]

    def collect_state(self) -> List[ComponentState]:
        """Per-component status with the status of each of its groups."""
        try:
            summary = self.clients.status.get(None)
        except NsxApiError as e:
            raise UpgradeOperationError(constants.OP_STATUS_GET, None, cause=e) from e

        states = []
        for component_status in summary.component_status:
            component = component_status.component_type
            try:
                group_states = self.clients.group_status.get_all(component)
            except NsxApiError as e:
                raise UpgradeOperationError(constants.OP_GROUP_STATUS_LIST, component, cause=e) from e

            states.append(ComponentState(
                type=component,
                status=component_status.status,
                details=component_status.details,
                target_version=component_status.target_component_version,
                group_state=list(group_states),
            ))
        return states
