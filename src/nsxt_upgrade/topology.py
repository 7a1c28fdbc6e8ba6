"""Component topology of an upgrade run."""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Tuple

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import RequestTimeoutError, ServiceUnavailableError


def is_restart_error(error: Exception) -> bool:
    """
    Whether a status probe failed because the manager is restarting.

    After the management plane upgrade completes, the manager restarts and
    answers with service unavailable or times out, depending on the timing.
    """
    return isinstance(error, (ServiceUnavailableError, RequestTimeoutError))


@dataclass(frozen=True)
class UpgradeTopology:
    """Immutable description of the components and their constraints."""
    # Order matters
    component_order: Tuple[str, ...] = constants.UPGRADE_COMPONENT_ORDER
    # Components whose groups and settings may be customized (MP may not)
    customizable_components: FrozenSet[str] = frozenset(
        {constants.COMPONENT_EDGE, constants.COMPONENT_HOST}
    )
    # Components skipped entirely when an earlier component ended PAUSED
    skip_after_partial_components: FrozenSet[str] = frozenset({constants.COMPONENT_MP})
    # Components whose status probes tolerate manager restart errors
    restart_tolerant_components: FrozenSet[str] = frozenset({constants.COMPONENT_MP})
    # Parallel can't be modified for these upgrade unit groups
    fixed_parallel_components: FrozenSet[str] = frozenset({constants.COMPONENT_EDGE})
    # These components are forced to pause on error; the setting is never sent
    forced_pause_on_error_components: FrozenSet[str] = frozenset({constants.COMPONENT_EDGE})
    # Components whose groups carry the typed host extended configuration
    extended_config_components: FrozenSet[str] = frozenset({constants.COMPONENT_HOST})
    # Components with a post-upgrade check, in dispatch order
    post_check_components: Tuple[str, ...] = (constants.COMPONENT_EDGE, constants.COMPONENT_HOST)
    restart_error_classifier: Callable[[Exception], bool] = is_restart_error

    def tolerates(self, component: Optional[str], error: Exception) -> bool:
        """Whether a probe error for this component counts as still in progress."""
        return (
            component is not None
            and component in self.restart_tolerant_components
            and self.restart_error_classifier(error)
        )


DEFAULT_TOPOLOGY = UpgradeTopology()
