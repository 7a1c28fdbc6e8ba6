"""Data models for upgrade runs, remote upgrade objects and status tracking."""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from nsxt_upgrade import constants


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ComponentOutcome(Enum):
    """How a component ended in one pass of the run driver."""
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    ALREADY_SUCCEEDED = "already_succeeded"
    SKIPPED = "skipped"


class RunState(Enum):
    """Outcome recorded for a persisted upgrade run."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class UnitGroup:
    """Upgrade unit group as held by the upgrade service."""
    id: str
    type: str = ""
    display_name: str = ""
    enabled: bool = True
    parallel: bool = True
    pause_after_each_upgrade_unit: bool = False
    extended_configuration: Dict[str, str] = field(default_factory=dict)
    # Remote fields the coordinator does not interpret (_revision, upgrade_units, ...)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UnitGroup":
        """Build from an upgrade-unit-groups API payload."""
        extended = {}
        for pair in data.get("extended_configuration") or []:
            extended[pair.get("key", "")] = pair.get("value", "")
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            display_name=data.get("display_name", ""),
            enabled=data.get("enabled", True),
            parallel=data.get("parallel", True),
            pause_after_each_upgrade_unit=data.get("pause_after_each_upgrade_unit", False),
            extended_configuration=extended,
            raw=dict(data),
        )

    def to_api(self) -> Dict[str, Any]:
        """Convert back to an API payload, keeping fields not modelled here."""
        payload = dict(self.raw)
        payload.update({
            "id": self.id,
            "enabled": self.enabled,
            "parallel": self.parallel,
            "pause_after_each_upgrade_unit": self.pause_after_each_upgrade_unit,
        })
        if self.type:
            payload["type"] = self.type
        if self.display_name:
            payload["display_name"] = self.display_name
        if self.extended_configuration or "extended_configuration" in self.raw:
            payload["extended_configuration"] = [
                {"key": key, "value": value}
                for key, value in self.extended_configuration.items()
            ]
        return payload


@dataclass
class HostExtendedConfig:
    """Typed view of the extended configuration recognized for Host groups."""
    upgrade_mode: str = ""
    maintenance_mode_config_vsan_mode: str = ""
    maintenance_mode_config_evacuate_powered_off_vms: bool = False
    rebootless_upgrade: bool = True
    extra: Dict[str, str] = field(default_factory=dict)

    def to_pairs(self) -> Dict[str, str]:
        """
        Serialize into the string bag sent to the upgrade service.

        Upgrade mode and vSAN mode are only emitted when set; the two
        boolean knobs are always emitted as "true"/"false".
        """
        pairs: Dict[str, str] = {}
        if self.upgrade_mode:
            pairs[constants.EXT_UPGRADE_MODE] = self.upgrade_mode
        if self.maintenance_mode_config_vsan_mode:
            pairs[constants.EXT_VSAN_MODE] = self.maintenance_mode_config_vsan_mode
        pairs[constants.EXT_EVACUATE_POWERED_OFF_VMS] = _bool_str(
            self.maintenance_mode_config_evacuate_powered_off_vms
        )
        pairs[constants.EXT_REBOOTLESS_UPGRADE] = _bool_str(self.rebootless_upgrade)
        for key, value in self.extra.items():
            pairs.setdefault(key, value)
        return pairs


@dataclass
class GroupDeclaration:
    """Caller-declared state of one upgrade unit group."""
    id: str
    enabled: bool = True
    parallel: bool = True
    pause_after_each_upgrade_unit: bool = False
    host_config: Optional[HostExtendedConfig] = None


@dataclass
class ComponentSettings:
    """Caller-declared upgrade plan settings of one component."""
    parallel: bool = True
    stop_on_error: bool = False
    post_upgrade_check: bool = True


@dataclass
class PlanSettings:
    """Upgrade plan settings as held by the upgrade service."""
    parallel: bool = True
    pause_on_error: Optional[bool] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PlanSettings":
        """Build from a plan settings API payload."""
        return cls(
            parallel=data.get("parallel", True),
            pause_on_error=data.get("pause_on_error"),
            raw=dict(data),
        )

    def to_api(self) -> Dict[str, Any]:
        """Convert to an API payload; pause_on_error is omitted when None."""
        payload = dict(self.raw)
        payload["parallel"] = self.parallel
        payload.pop("pause_on_error", None)
        if self.pause_on_error is not None:
            payload["pause_on_error"] = self.pause_on_error
        return payload


@dataclass(frozen=True)
class WaitParameters:
    """Status wait parameters, in seconds."""
    timeout: int = constants.DEFAULT_STATUS_CHECK_TIMEOUT
    interval: int = constants.DEFAULT_STATUS_CHECK_INTERVAL
    delay: int = constants.DEFAULT_STATUS_CHECK_DELAY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class UpgradeRun:
    """Caller-declared upgrade run."""
    upgrade_prepare_ready_id: str
    groups: Dict[str, List[GroupDeclaration]] = field(default_factory=dict)
    settings: Dict[str, ComponentSettings] = field(default_factory=dict)
    wait: WaitParameters = field(default_factory=WaitParameters)

    def groups_for(self, component: str) -> List[GroupDeclaration]:
        """Declared groups of a component, in declared order."""
        return self.groups.get(component, [])

    def settings_for(self, component: str) -> Optional[ComponentSettings]:
        """Declared settings block of a component, None when absent."""
        return self.settings.get(component)

    def is_partial(self, component: str) -> bool:
        """
        Whether the component is declared for partial upgrade.

        A component is partially upgraded when any of its groups is disabled
        or pauses after each unit; the upgrade service then leaves it PAUSED
        rather than SUCCESS.
        """
        return any(
            not group.enabled or group.pause_after_each_upgrade_unit
            for group in self.groups_for(component)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the declaration form accepted by declaration.parse_declaration."""
        result: Dict[str, Any] = {
            "upgrade_prepare_ready_id": self.upgrade_prepare_ready_id,
            "timeout": self.wait.timeout,
            "interval": self.wait.interval,
            "delay": self.wait.delay,
        }
        for component, key in constants.COMPONENT_GROUP_KEYS.items():
            groups = []
            for group in self.groups_for(component):
                item: Dict[str, Any] = {
                    "id": group.id,
                    "enabled": group.enabled,
                    "pause_after_each_upgrade_unit": group.pause_after_each_upgrade_unit,
                }
                if component != constants.COMPONENT_EDGE:
                    item["parallel"] = group.parallel
                if group.host_config is not None:
                    host = group.host_config
                    if host.upgrade_mode:
                        item[constants.EXT_UPGRADE_MODE] = host.upgrade_mode
                    if host.maintenance_mode_config_vsan_mode:
                        item[constants.EXT_VSAN_MODE] = host.maintenance_mode_config_vsan_mode
                    item[constants.EXT_EVACUATE_POWERED_OFF_VMS] = (
                        host.maintenance_mode_config_evacuate_powered_off_vms
                    )
                    item[constants.EXT_REBOOTLESS_UPGRADE] = host.rebootless_upgrade
                    if host.extra:
                        item["extended_config"] = dict(host.extra)
                groups.append(item)
            if groups:
                result[key] = groups
        for component, key in constants.COMPONENT_SETTING_KEYS.items():
            settings = self.settings_for(component)
            if settings is None:
                continue
            item = {
                "parallel": settings.parallel,
                "post_upgrade_check": settings.post_upgrade_check,
            }
            if component != constants.COMPONENT_EDGE:
                item["stop_on_error"] = settings.stop_on_error
            result[key] = item
        return result


@dataclass
class StatusAndDetail:
    """Observed upgrade status with its detail string."""
    status: str
    detail: str = ""


@dataclass
class ComponentStatus:
    """Status of one component in the status summary."""
    component_type: str
    status: str
    details: str = ""
    target_component_version: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ComponentStatus":
        return cls(
            component_type=data.get("component_type", ""),
            status=data.get("status", ""),
            details=data.get("details") or "",
            target_component_version=data.get("target_component_version") or "",
        )


@dataclass
class StatusSummary:
    """Upgrade status summary."""
    overall_upgrade_status: str
    component_status: List[ComponentStatus] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "StatusSummary":
        return cls(
            overall_upgrade_status=data.get("overall_upgrade_status", ""),
            component_status=[
                ComponentStatus.from_api(item) for item in data.get("component_status") or []
            ],
        )

    def find(self, component: str) -> Optional[ComponentStatus]:
        """Get the status entry of a component, None if absent."""
        for item in self.component_status:
            if item.component_type == component:
                return item
        return None


@dataclass
class GroupStatus:
    """Upgrade status of one upgrade unit group."""
    group_id: str
    group_name: str
    status: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GroupStatus":
        return cls(
            group_id=data.get("group_id", ""),
            group_name=data.get("group_name", ""),
            status=data.get("status", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class GroupPlanEntry:
    """One upgrade unit group in the upgrade_group_plan projection."""
    id: str
    type: str
    enabled: bool
    parallel: bool
    pause_after_each_upgrade_unit: bool
    extended_config: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ComponentState:
    """One component in the state projection."""
    type: str
    status: str
    details: str = ""
    target_version: str = ""
    group_state: List[GroupStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class UpgradeRunOutput:
    """Observable projections of an upgrade run."""
    upgrade_group_plan: List[GroupPlanEntry] = field(default_factory=list)
    state: List[ComponentState] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "upgrade_group_plan": [entry.to_dict() for entry in self.upgrade_group_plan],
            "state": [entry.to_dict() for entry in self.state],
        }


@dataclass
class RunResult:
    """Result of one pass of the run driver."""
    component_outcomes: Dict[str, str] = field(default_factory=dict)
    partial_upgrade: bool = False
    post_checks_triggered: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class RunRecord:
    """Persisted upgrade run."""
    run_id: str
    upgrade_prepare_ready_id: str
    declaration: Dict[str, Any]
    state: str = ""
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""
    output: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunRecord":
        """Rebuild a stored record. Keys this version does not know are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def touch(self) -> None:
        """Refresh the update timestamp."""
        self.updated_at = _utc_now()


def _bool_str(value: bool) -> str:
    return "true" if value else "false"
