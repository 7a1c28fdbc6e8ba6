"""Upgrade plan settings configuration."""

from typing import Optional

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import NsxApiError, UpgradeOperationError
from nsxt_upgrade.logging_config import get_logger
from nsxt_upgrade.models import ComponentSettings, PlanSettings
from nsxt_upgrade.topology import DEFAULT_TOPOLOGY, UpgradeTopology


class SettingsConfigurator:
    """Applies per-component upgrade plan settings."""

    def __init__(self, settings_client, topology: UpgradeTopology = DEFAULT_TOPOLOGY):
        self.settings_client = settings_client
        self.topology = topology
        self.logger = get_logger("nsxt_upgrade.settings")

    def configure(self, component: str, settings: Optional[ComponentSettings]) -> Optional[PlanSettings]:
        """
        Update the plan settings of a component.

        Nothing is done when no settings were declared. ``stop_on_error`` is
        sent as ``pause_on_error`` except for components forced to pause on
        error (Edge), whose payload never carries the field.

        Args:
            component: Component type
            settings: Declared settings, or None

        Returns:
            Settings as stored by the upgrade service, None when skipped

        Raises:
            UpgradeOperationError: The get or update call failed
        """
        if settings is None:
            return None

        try:
            current = self.settings_client.get(component)
        except NsxApiError as e:
            raise UpgradeOperationError(constants.OP_SETTINGS_GET, component, cause=e) from e

        current.parallel = settings.parallel
        if component in self.topology.forced_pause_on_error_components:
            current.pause_on_error = None
        else:
            current.pause_on_error = settings.stop_on_error

        self.logger.info(
            f"Updating {component} upgrade plan settings: parallel={current.parallel}, "
            f"pause_on_error={current.pause_on_error}"
        )
        try:
            return self.settings_client.update(component, current)
        except NsxApiError as e:
            raise UpgradeOperationError(constants.OP_SETTINGS_UPDATE, component, cause=e) from e
