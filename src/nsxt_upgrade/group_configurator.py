"""Upgrade unit group configuration and ordering."""

from typing import List, Optional

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import NsxApiError, UpgradeOperationError
from nsxt_upgrade.logging_config import get_logger, log_with_context
from nsxt_upgrade.models import GroupDeclaration, HostExtendedConfig, UnitGroup
from nsxt_upgrade.topology import DEFAULT_TOPOLOGY, UpgradeTopology


class GroupConfigurator:
    """Brings the upgrade unit groups of one component into the declared state and order."""

    def __init__(self, group_client, topology: UpgradeTopology = DEFAULT_TOPOLOGY):
        """
        Initialize group configurator.

        Args:
            group_client: Upgrade unit groups client
            topology: Component topology
        """
        self.group_client = group_client
        self.topology = topology
        self.logger = get_logger("nsxt_upgrade.groups")

    def configure(self, component: str, declarations: List[GroupDeclaration]) -> None:
        """
        Update each declared group and chain them in declared order.

        Every group after the first is moved right after its predecessor, so
        the declared groups end up contiguous and in declared order. Groups
        that exist remotely but are not declared are left alone.

        Args:
            component: Component type
            declarations: Declared groups, in the desired upgrade order

        Raises:
            UpgradeOperationError: A get, update or reorder call failed
        """
        previous_id: Optional[str] = None
        for declaration in declarations:
            group = self._call(constants.OP_GROUP_GET, component, declaration.id,
                               self.group_client.get, declaration.id)

            self.apply(component, group, declaration)

            log_with_context(
                self.logger, "info",
                f"Updating {component} upgrade unit group {declaration.id}",
                component=component,
                group_id=declaration.id,
                operation=constants.OP_GROUP_UPDATE,
            )
            self._call(constants.OP_GROUP_UPDATE, component, declaration.id,
                       self.group_client.update, declaration.id, group)

            if previous_id is not None:
                self.logger.debug(f"Placing group {declaration.id} after {previous_id}")
                self._call(constants.OP_GROUP_REORDER, component, declaration.id,
                           self.group_client.reorder, declaration.id, after=previous_id)
            previous_id = declaration.id

    def apply(self, component: str, group: UnitGroup, declaration: GroupDeclaration) -> UnitGroup:
        """Overwrite the declared fields of a fetched group in place."""
        group.enabled = declaration.enabled
        group.pause_after_each_upgrade_unit = declaration.pause_after_each_upgrade_unit

        if component not in self.topology.fixed_parallel_components:
            group.parallel = declaration.parallel

        if component in self.topology.extended_config_components:
            host_config = declaration.host_config or HostExtendedConfig()
            group.extended_configuration = host_config.to_pairs()

        return group

    def _call(self, operation: str, component: str, group_id: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NsxApiError as e:
            log_with_context(
                self.logger, "error",
                f"{operation} failed for {component} group {group_id}: {e}",
                component=component,
                group_id=group_id,
                operation=operation,
            )
            raise UpgradeOperationError(operation, component, group_id, e) from e
