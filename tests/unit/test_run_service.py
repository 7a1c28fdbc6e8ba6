"""Tests for the upgrade run lifecycle."""

import pytest

from nsxt_upgrade import constants
from nsxt_upgrade.exceptions import (
    RunNotFoundError,
    UpgradeCancelledError,
    UpgradeOperationError,
    ValidationError,
)
from nsxt_upgrade.models import GroupDeclaration, RunState, UpgradeRun, WaitParameters
from nsxt_upgrade.run_service import RunStore, UpgradeRunService
from nsxt_upgrade.upgrade_coordinator import UpgradeCoordinator

EDGE = constants.COMPONENT_EDGE


def make_run(prepare_id="prep-001", **groups) -> UpgradeRun:
    return UpgradeRun(
        upgrade_prepare_ready_id=prepare_id,
        groups=groups,
        wait=WaitParameters(timeout=60, interval=10, delay=0),
    )


@pytest.fixture
def store(tmp_path):
    return RunStore(tmp_path / "runs")


@pytest.fixture
def service(fabric, store, cancel_event, clock):
    coordinator = UpgradeCoordinator(fabric.clients, cancel_event=cancel_event, clock=clock)
    return UpgradeRunService(fabric.clients, store, coordinator=coordinator)


class TestCreate:
    """Test creating runs."""

    def test_create_persists_record(self, fabric, service, store):
        """Should execute the run and store its result and projections."""
        fabric.add_group(EDGE, "edge-1")

        record = service.create(make_run(EDGE=[GroupDeclaration(id="edge-1")]))

        assert record.state == RunState.SUCCEEDED.value
        assert record.result["component_outcomes"][EDGE] == "completed"
        assert record.output["upgrade_group_plan"][0]["id"] == "edge-1"
        assert store.load(record.run_id) == record

    def test_create_with_given_id(self, service, store):
        """Should use the caller's run ID."""
        record = service.create(make_run(), run_id="nightly")

        assert record.run_id == "nightly"
        assert store.exists("nightly")

    def test_failed_run_is_recorded(self, fabric, service, store):
        """Should persist the failure before raising it."""
        fabric.fail(constants.OP_RESET, target=EDGE)

        with pytest.raises(UpgradeOperationError):
            service.create(make_run(), run_id="broken")

        record = store.load("broken")
        assert record.state == RunState.FAILED.value
        assert "Reset failed for EDGE component" in record.error
        assert record.output["state"]

    def test_cancelled_run_is_recorded(self, service, store):
        """Should record cancellation as its own state."""
        service.cancel()

        with pytest.raises(UpgradeCancelledError):
            service.create(make_run(), run_id="stopped")

        assert store.load("stopped").state == RunState.CANCELLED.value

    def test_cancelled_run_can_be_resumed(self, service, store):
        """Should run again once the cancelled pass has ended."""
        service.cancel()
        with pytest.raises(UpgradeCancelledError):
            service.apply(make_run(), run_id="stopped")

        record = service.apply(make_run(), run_id="stopped")

        assert record.state == RunState.SUCCEEDED.value
        assert store.load("stopped").error == ""

    def test_output_read_failure_keeps_success(self, fabric, service, store):
        """A failed projection read after a successful run is not a run failure."""
        fabric.fail(constants.OP_GROUP_LIST, times=None)

        record = service.create(make_run(), run_id="r1")

        assert record.state == RunState.SUCCEEDED.value
        assert record.output["upgrade_group_plan"] == []
        assert record.output["state"]
        assert store.load("r1").state == RunState.SUCCEEDED.value


class TestUpdate:
    """Test re-entering runs."""

    def test_apply_updates_existing(self, fabric, service, store):
        """Should resume a failed run with a new declaration."""
        fabric.add_group(EDGE, "edge-1")
        fabric.fail(constants.OP_GROUP_GET, target="edge-1")
        with pytest.raises(UpgradeOperationError):
            service.apply(make_run(EDGE=[GroupDeclaration(id="edge-1")]), run_id="r1")

        record = service.apply(make_run(EDGE=[GroupDeclaration(id="edge-1", enabled=True)]), run_id="r1")

        assert record.state == RunState.SUCCEEDED.value
        assert record.error == ""
        assert len(store.list()) == 1

    def test_preparation_id_is_immutable(self, service):
        """Should refuse to move a run to another preparation."""
        service.create(make_run(), run_id="r1")

        with pytest.raises(ValidationError):
            service.update("r1", make_run(prepare_id="prep-999"))

    def test_update_unknown_run(self, service):
        with pytest.raises(RunNotFoundError):
            service.update("nope", make_run())


class TestReadAndDelete:
    """Test reading and forgetting runs."""

    def test_read_refreshes_output(self, fabric, service):
        """Should re-read the projections from the service."""
        record = service.create(make_run(), run_id="r1")
        fabric.add_group(EDGE, "edge-late")

        refreshed = service.read("r1")

        assert [g["id"] for g in refreshed.output["upgrade_group_plan"]] == ["edge-late"]
        assert refreshed.created_at == record.created_at

    def test_delete_leaves_service_alone(self, fabric, service, store):
        """Should remove only the local record."""
        service.create(make_run(), run_id="r1")
        fabric.calls.clear()

        service.delete("r1")

        assert not store.exists("r1")
        assert fabric.calls == []
        with pytest.raises(RunNotFoundError):
            service.delete("r1")

    def test_list_sorted_by_creation(self, service):
        service.create(make_run(), run_id="b")
        service.create(make_run(), run_id="a")

        assert [record.run_id for record in service.list_runs()] == ["b", "a"]
