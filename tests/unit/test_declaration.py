"""Tests for upgrade run declaration loading and validation."""

import copy

import pytest

from nsxt_upgrade import constants
from nsxt_upgrade.declaration import load_declaration, parse_declaration
from nsxt_upgrade.exceptions import DeclarationError, ValidationError
from nsxt_upgrade.models import WaitParameters

EDGE = constants.COMPONENT_EDGE
HOST = constants.COMPONENT_HOST


class TestParseDeclaration:
    """Test parsing a valid declaration."""

    def test_full_declaration(self, sample_declaration):
        """Should build groups, host config and settings in declared order."""
        run = parse_declaration(sample_declaration)

        assert run.upgrade_prepare_ready_id == "prep-001"
        assert [group.id for group in run.groups_for(EDGE)] == ["edge-a", "edge-b"]
        host = run.groups_for(HOST)[0]
        assert host.host_config.upgrade_mode == "in_place"
        assert host.host_config.extra == {"custom_key": "custom_value"}
        assert host.host_config.rebootless_upgrade is True
        assert run.settings_for(HOST).stop_on_error is True
        assert run.settings_for(EDGE) is None
        assert run.wait == WaitParameters(timeout=60, interval=10, delay=0)

    def test_defaults(self):
        """Should apply group defaults and the given wait defaults."""
        defaults = WaitParameters(timeout=900, interval=15, delay=5)

        run = parse_declaration({
            "upgrade_prepare_ready_id": "prep-002",
            "edge_group": [{"id": "edge-a"}],
        }, defaults)

        group = run.groups_for(EDGE)[0]
        assert group.enabled is True
        assert group.parallel is True
        assert group.pause_after_each_upgrade_unit is False
        assert group.host_config is None
        assert run.wait == defaults
        assert run.is_partial(EDGE) is False

    def test_settings_as_single_item_list(self):
        """Should accept a settings block given as a one-item list."""
        run = parse_declaration({
            "upgrade_prepare_ready_id": "prep-003",
            "edge_upgrade_setting": [{"parallel": False}],
        })

        assert run.settings_for(EDGE).parallel is False
        assert run.settings_for(EDGE).post_upgrade_check is True

    def test_partial_component(self):
        """A disabled or pausing group marks its component partial."""
        run = parse_declaration({
            "upgrade_prepare_ready_id": "prep-004",
            "edge_group": [{"id": "edge-a"}, {"id": "edge-b", "enabled": False}],
            "host_group": [{"id": "host-a", "pause_after_each_upgrade_unit": True}],
        })

        assert run.is_partial(EDGE) is True
        assert run.is_partial(HOST) is True

    def test_round_trip(self, sample_declaration):
        """The stored declaration parses back to the same run."""
        run = parse_declaration(sample_declaration)

        assert parse_declaration(run.to_dict()) == run


class TestRejectedDeclarations:
    """Test boundary validation."""

    @pytest.mark.parametrize("mutate,field", [
        (lambda d: d.pop("upgrade_prepare_ready_id"), "upgrade_prepare_ready_id"),
        (lambda d: d.update(upgrade_prepare_ready_id="  "), "upgrade_prepare_ready_id"),
        (lambda d: d.update(mp_group=[]), "<root>"),
        (lambda d: d.update(timeout=0), "timeout"),
        (lambda d: d.update(interval="30"), "interval"),
        (lambda d: d.update(delay=True), "delay"),
        (lambda d: d.update(delay=-1), "delay"),
        (lambda d: d.update(edge_group={"id": "x"}), "edge_group"),
        (lambda d: d["edge_group"][0].pop("id"), "edge_group[0].id"),
        (lambda d: d["edge_group"][0].update(enabled="yes"), "edge_group[0].enabled"),
        (lambda d: d["edge_group"][0].update(upgrade_mode="in_place"), "edge_group[0]"),
        (lambda d: d["edge_group"][0].update(parallel=False), "edge_group[0]"),
        (lambda d: d["host_group"][0].update(upgrade_mode="reboot"), "host_group[0].upgrade_mode"),
        (lambda d: d["host_group"][0].update(maintenance_mode_config_vsan_mode="all"),
         "host_group[0].maintenance_mode_config_vsan_mode"),
        (lambda d: d["host_group"][0].update(extended_config={"upgrade_mode": "in_place"}),
         "host_group[0].extended_config.upgrade_mode"),
        (lambda d: d["host_group"][0].update(extended_config={"k": 1}), "host_group[0].extended_config"),
        (lambda d: d["host_group"].append({"id": "edge-a"}), "host_group[1].id"),
        (lambda d: d.update(edge_upgrade_setting={"stop_on_error": True}), "edge_upgrade_setting"),
        (lambda d: d.update(host_upgrade_setting=[{}, {}]), "host_upgrade_setting"),
    ])
    def test_invalid_field(self, sample_declaration, mutate, field):
        """Should name the first invalid field."""
        data = copy.deepcopy(sample_declaration)
        mutate(data)

        with pytest.raises(DeclarationError) as exc_info:
            parse_declaration(data)

        assert exc_info.value.field == field

    def test_not_a_mapping(self):
        """Should reject documents that are not mappings."""
        with pytest.raises(ValidationError):
            parse_declaration(["upgrade_prepare_ready_id"])


class TestLoadDeclaration:
    """Test loading declaration files."""

    def test_load_yaml(self, tmp_path):
        """Should load a YAML declaration file."""
        plan = tmp_path / "plan.yaml"
        plan.write_text(
            "upgrade_prepare_ready_id: prep-010\n"
            "host_group:\n"
            "  - id: host-a\n"
            "    upgrade_mode: stage_in_vlcm\n"
            "    maintenance_mode_config_evacuate_powered_off_vms: true\n"
            "host_upgrade_setting:\n"
            "  post_upgrade_check: false\n"
        )

        run = load_declaration(plan)

        host = run.groups_for(HOST)[0].host_config
        assert host.upgrade_mode == "stage_in_vlcm"
        assert host.maintenance_mode_config_evacuate_powered_off_vms is True
        assert run.settings_for(HOST).post_upgrade_check is False

    def test_invalid_yaml(self, tmp_path):
        """Should report YAML syntax errors as declaration errors."""
        plan = tmp_path / "plan.yaml"
        plan.write_text("edge_group: [\n")

        with pytest.raises(DeclarationError) as exc_info:
            load_declaration(plan)

        assert "invalid YAML" in exc_info.value.reason

    def test_missing_file(self, tmp_path):
        """Should report unreadable files as declaration errors."""
        with pytest.raises(DeclarationError) as exc_info:
            load_declaration(tmp_path / "missing.yaml")

        assert "cannot read file" in exc_info.value.reason
