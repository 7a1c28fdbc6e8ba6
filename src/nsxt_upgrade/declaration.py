"""Upgrade run declarations: loading and validation.

A declaration is a YAML (or JSON) document describing the desired state of
an upgrade run. It is validated completely before the coordinator touches
the upgrade service.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import DeclarationError
from nsxt_upgrade.models import (
    ComponentSettings,
    GroupDeclaration,
    HostExtendedConfig,
    UpgradeRun,
    WaitParameters,
)

RUN_KEYS = {
    "upgrade_prepare_ready_id",
    "timeout",
    "interval",
    "delay",
    *constants.COMPONENT_GROUP_KEYS.values(),
    *constants.COMPONENT_SETTING_KEYS.values(),
}

GROUP_KEYS = {"id", "enabled", "parallel", "pause_after_each_upgrade_unit"}
# Parallel of Edge upgrade unit groups is immutable
EDGE_GROUP_KEYS = GROUP_KEYS - {"parallel"}
HOST_GROUP_KEYS = GROUP_KEYS | {
    constants.EXT_UPGRADE_MODE,
    constants.EXT_VSAN_MODE,
    constants.EXT_EVACUATE_POWERED_OFF_VMS,
    constants.EXT_REBOOTLESS_UPGRADE,
    "extended_config",
}
RECOGNIZED_EXTENDED_KEYS = {
    constants.EXT_UPGRADE_MODE,
    constants.EXT_VSAN_MODE,
    constants.EXT_EVACUATE_POWERED_OFF_VMS,
    constants.EXT_REBOOTLESS_UPGRADE,
}

SETTING_KEYS = {"parallel", "stop_on_error", "post_upgrade_check"}
# Edge upgrade setting is forced to stop on error
EDGE_SETTING_KEYS = SETTING_KEYS - {"stop_on_error"}


def load_declaration(path: Path, defaults: Optional[WaitParameters] = None) -> UpgradeRun:
    """
    Load and validate a declaration file.

    Args:
        path: YAML or JSON file
        defaults: Wait parameters used when the file omits them

    Returns:
        Validated upgrade run

    Raises:
        DeclarationError: The file can't be parsed or is invalid
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise DeclarationError(str(path), f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise DeclarationError(str(path), f"invalid YAML: {e}") from e

    return parse_declaration(data, defaults)


def parse_declaration(data: Any, defaults: Optional[WaitParameters] = None) -> UpgradeRun:
    """
    Validate a declaration document.

    Args:
        data: Parsed document
        defaults: Wait parameters used when the document omits them

    Returns:
        Validated upgrade run

    Raises:
        DeclarationError: On the first invalid field
    """
    defaults = defaults or WaitParameters()
    if not isinstance(data, dict):
        raise DeclarationError("<root>", "expected a mapping")
    _check_keys("<root>", data, RUN_KEYS)

    prepare_id = data.get("upgrade_prepare_ready_id")
    if not isinstance(prepare_id, str) or not prepare_id.strip():
        raise DeclarationError("upgrade_prepare_ready_id", "required non-empty string")

    wait = WaitParameters(
        timeout=_int(data, "timeout", defaults.timeout, minimum=1),
        interval=_int(data, "interval", defaults.interval, minimum=1),
        delay=_int(data, "delay", defaults.delay, minimum=0),
    )

    groups: Dict[str, List[GroupDeclaration]] = {}
    seen_ids: Dict[str, str] = {}
    for component, key in constants.COMPONENT_GROUP_KEYS.items():
        items = data.get(key)
        if items is None:
            continue
        if not isinstance(items, list):
            raise DeclarationError(key, "expected a list of groups")
        declared = []
        for index, item in enumerate(items):
            field = f"{key}[{index}]"
            group = _parse_group(field, component, item)
            if group.id in seen_ids:
                raise DeclarationError(f"{field}.id", f"group {group.id} already declared in {seen_ids[group.id]}")
            seen_ids[group.id] = field
            declared.append(group)
        groups[component] = declared

    settings: Dict[str, ComponentSettings] = {}
    for component, key in constants.COMPONENT_SETTING_KEYS.items():
        item = data.get(key)
        if item is None:
            continue
        settings[component] = _parse_settings(key, component, item)

    return UpgradeRun(
        upgrade_prepare_ready_id=prepare_id.strip(),
        groups=groups,
        settings=settings,
        wait=wait,
    )


def _parse_group(field: str, component: str, item: Any) -> GroupDeclaration:
    if not isinstance(item, dict):
        raise DeclarationError(field, "expected a mapping")
    is_host = component == constants.COMPONENT_HOST
    _check_keys(field, item, HOST_GROUP_KEYS if is_host else EDGE_GROUP_KEYS)

    group_id = item.get("id")
    if not isinstance(group_id, str) or not group_id.strip():
        raise DeclarationError(f"{field}.id", "required non-empty string")

    group = GroupDeclaration(
        id=group_id.strip(),
        enabled=_bool(item, field, "enabled", True),
        parallel=_bool(item, field, "parallel", True),
        pause_after_each_upgrade_unit=_bool(item, field, "pause_after_each_upgrade_unit", False),
    )
    if is_host:
        group.host_config = HostExtendedConfig(
            upgrade_mode=_choice(item, field, constants.EXT_UPGRADE_MODE,
                                 constants.SUPPORTED_UPGRADE_MODES),
            maintenance_mode_config_vsan_mode=_choice(item, field, constants.EXT_VSAN_MODE,
                                                      constants.SUPPORTED_VSAN_MODES),
            maintenance_mode_config_evacuate_powered_off_vms=_bool(
                item, field, constants.EXT_EVACUATE_POWERED_OFF_VMS, False
            ),
            rebootless_upgrade=_bool(item, field, constants.EXT_REBOOTLESS_UPGRADE, True),
            extra=_extra_config(item, field),
        )
    return group


def _parse_settings(field: str, component: str, item: Any) -> ComponentSettings:
    if isinstance(item, list) and len(item) == 1:
        item = item[0]
    if not isinstance(item, dict):
        raise DeclarationError(field, "expected a mapping")
    allowed = EDGE_SETTING_KEYS if component == constants.COMPONENT_EDGE else SETTING_KEYS
    _check_keys(field, item, allowed)
    return ComponentSettings(
        parallel=_bool(item, field, "parallel", True),
        stop_on_error=_bool(item, field, "stop_on_error", False),
        post_upgrade_check=_bool(item, field, "post_upgrade_check", True),
    )


def _check_keys(field: str, item: Dict[str, Any], allowed) -> None:
    unknown = sorted(str(key) for key in item if key not in allowed)
    if unknown:
        raise DeclarationError(field, f"unsupported key(s): {', '.join(unknown)}")


def _bool(item: Dict[str, Any], field: str, key: str, default: bool) -> bool:
    value = item.get(key, default)
    if not isinstance(value, bool):
        raise DeclarationError(f"{field}.{key}", f"expected true or false, got {value!r}")
    return value


def _int(item: Dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = item.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DeclarationError(key, f"expected an integer, got {value!r}")
    if value < minimum:
        raise DeclarationError(key, f"must be at least {minimum}")
    return value


def _choice(item: Dict[str, Any], field: str, key: str, allowed) -> str:
    value = item.get(key, "")
    if value is None or value == "":
        return ""
    if value not in allowed:
        raise DeclarationError(f"{field}.{key}", f"expected one of {', '.join(allowed)}, got {value!r}")
    return value


def _extra_config(item: Dict[str, Any], field: str) -> Dict[str, str]:
    extra = item.get("extended_config") or {}
    if not isinstance(extra, dict):
        raise DeclarationError(f"{field}.extended_config", "expected a mapping of strings")
    result = {}
    for key, value in extra.items():
        if key in RECOGNIZED_EXTENDED_KEYS:
            raise DeclarationError(f"{field}.extended_config.{key}", "set this key on the group itself")
        if not isinstance(key, str) or not isinstance(value, str):
            raise DeclarationError(f"{field}.extended_config", "keys and values must be strings")
        result[key] = value
    return result
