"""Application-wide constants."""

from pathlib import Path

# Default work directory (used as fallback when no other source specifies it)
# Priority order: CLI flag > ENV var > ~/.nsxt-upgrade.config.json > this default
DEFAULT_WORK_DIR = Path("/opt/nsxt-upgrade")

CONFIG_SUBDIR = "config"
CONFIG_FILE_NAME = "config.json"

# Directory structure (relative to work_dir)
DIR_CONFIG = "config"
DIR_RUNS = "runs"
DIR_LOGS = "logs"
DIR_LOGS_STRUCTURED = "logs/structured"
DIR_LOGS_TEXT = "logs/text"
DIR_COMMANDS_INCOMING = "commands/incoming"
DIR_COMMANDS_PROCESSED = "commands/processed"

# NSX API
NSX_API_BASE_PATH = "/api/v1"
DEFAULT_NSX_REQUEST_TIMEOUT = 60

# Upgrade components, as named by the upgrade API
COMPONENT_EDGE = "EDGE"
COMPONENT_HOST = "HOST"
COMPONENT_MP = "MP"

# Order matters
UPGRADE_COMPONENT_ORDER = (COMPONENT_EDGE, COMPONENT_HOST, COMPONENT_MP)

# Component statuses
STATUS_NOT_STARTED = "NOT_STARTED"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_PAUSING = "PAUSING"
STATUS_PAUSED = "PAUSED"
STATUS_SUCCESS = "SUCCESS"
STATUS_FAILED = "FAILED"

IN_FLIGHT_STATUSES = (STATUS_IN_PROGRESS, STATUS_PAUSING)
STABLE_STATUSES = (STATUS_NOT_STARTED, STATUS_PAUSED, STATUS_FAILED, STATUS_SUCCESS)

# Declaration keys, per component
COMPONENT_GROUP_KEYS = {
    COMPONENT_EDGE: "edge_group",
    COMPONENT_HOST: "host_group",
}
COMPONENT_SETTING_KEYS = {
    COMPONENT_EDGE: "edge_upgrade_setting",
    COMPONENT_HOST: "host_upgrade_setting",
}

# Host extended configuration
EXT_UPGRADE_MODE = "upgrade_mode"
EXT_VSAN_MODE = "maintenance_mode_config_vsan_mode"
EXT_EVACUATE_POWERED_OFF_VMS = "maintenance_mode_config_evacuate_powered_off_vms"
EXT_REBOOTLESS_UPGRADE = "rebootless_upgrade"

SUPPORTED_UPGRADE_MODES = ("maintenance_mode", "in_place", "stage_in_vlcm")
SUPPORTED_VSAN_MODES = ("evacuate_all_data", "ensure_object_accessibility", "no_action")

# Default waiting setup in seconds
DEFAULT_STATUS_CHECK_TIMEOUT = 3600
DEFAULT_STATUS_CHECK_INTERVAL = 30
DEFAULT_STATUS_CHECK_DELAY = 30

# Remote operation names, used to annotate errors and log records
OP_STATUS_GET = "StatusGet"
OP_PAUSE = "Pause"
OP_RESET = "Reset"
OP_UPGRADE = "Upgrade"
OP_GROUP_GET = "GroupGet"
OP_GROUP_UPDATE = "GroupUpdate"
OP_GROUP_REORDER = "GroupReorder"
OP_GROUP_LIST = "GroupList"
OP_GROUP_STATUS_LIST = "GroupStatusList"
OP_SETTINGS_GET = "SettingsGet"
OP_SETTINGS_UPDATE = "SettingsUpdate"
OP_POST_CHECK = "PostUpgradeCheck"

# Command channel
COMMAND_CANCEL_RUN = "cancel_run"

DEFAULT_LOG_LEVEL = "INFO"
