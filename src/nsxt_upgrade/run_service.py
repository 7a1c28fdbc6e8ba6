"""Upgrade run lifecycle: create, update, read and delete persisted runs."""

import uuid
from pathlib import Path
from typing import List, Optional

from nsxt_upgrade.exceptions import (
    NsxUpgradeError,
    RunNotFoundError,
    UpgradeCancelledError,
    ValidationError,
)
from nsxt_upgrade.logging_config import get_logger, log_with_context
from nsxt_upgrade.models import RunRecord, RunState, UpgradeRun
from nsxt_upgrade.output_collector import OutputCollector
from nsxt_upgrade.topology import DEFAULT_TOPOLOGY, UpgradeTopology
from nsxt_upgrade.upgrade_coordinator import UpgradeCoordinator
from nsxt_upgrade.utils.file_ops import atomic_write_json, list_json_files, read_json


class RunStore:
    """Stores run records as JSON files, one per run."""

    def __init__(self, runs_dir: Path):
        self.runs_dir = Path(runs_dir)
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    def exists(self, run_id: str) -> bool:
        return self._path(run_id).exists()

    def save(self, record: RunRecord) -> None:
        atomic_write_json(self._path(record.run_id), record.to_dict())

    def load(self, run_id: str) -> RunRecord:
        """
        Load a run record.

        Raises:
            RunNotFoundError: No record with this ID
        """
        try:
            return RunRecord.from_dict(read_json(self._path(run_id)))
        except FileNotFoundError:
            raise RunNotFoundError(run_id)

    def delete(self, run_id: str) -> None:
        path = self._path(run_id)
        if not path.exists():
            raise RunNotFoundError(run_id)
        path.unlink()

    def list(self) -> List[RunRecord]:
        records = [RunRecord.from_dict(read_json(path)) for path in list_json_files(self.runs_dir)]
        return sorted(records, key=lambda record: record.created_at)


class UpgradeRunService:
    """Runs declared upgrades and keeps their records and projections."""

    def __init__(
        self,
        clients,
        store: RunStore,
        topology: UpgradeTopology = DEFAULT_TOPOLOGY,
        coordinator: Optional[UpgradeCoordinator] = None
    ):
        """
        Initialize run service.

        Args:
            clients: UpgradeClientSet
            store: Run record store
            topology: Component topology
            coordinator: Optional coordinator for dependency injection (testing)
        """
        self.store = store
        self.coordinator = coordinator or UpgradeCoordinator(clients, topology)
        self.collector = OutputCollector(clients)
        self.logger = get_logger("nsxt_upgrade.runs")

    def cancel(self) -> None:
        """Cancel the run currently executing in this service."""
        self.coordinator.cancel()

    def apply(self, run: UpgradeRun, run_id: Optional[str] = None) -> RunRecord:
        """Create the run, or update it when a record with this ID exists."""
        if run_id and self.store.exists(run_id):
            return self.update(run_id, run)
        return self.create(run, run_id)

    def create(self, run: UpgradeRun, run_id: Optional[str] = None) -> RunRecord:
        """
        Create a run: allocate its identity and execute it.

        The record is persisted even when the run fails, so that it can be
        re-entered with update().
        """
        record = RunRecord(
            run_id=run_id or str(uuid.uuid4()),
            upgrade_prepare_ready_id=run.upgrade_prepare_ready_id,
            declaration=run.to_dict(),
        )
        log_with_context(self.logger, "info", "Creating upgrade run", run_id=record.run_id)
        return self._execute(record, run)

    def update(self, run_id: str, run: UpgradeRun) -> RunRecord:
        """
        Re-enter an existing run with a (possibly changed) declaration.

        Raises:
            RunNotFoundError: No record with this ID
            ValidationError: The preparation ID differs from the recorded one
        """
        record = self.store.load(run_id)
        if record.upgrade_prepare_ready_id != run.upgrade_prepare_ready_id:
            raise ValidationError(
                f"Run {run_id} belongs to preparation {record.upgrade_prepare_ready_id}; "
                f"create a new run for {run.upgrade_prepare_ready_id}"
            )
        record.declaration = run.to_dict()
        log_with_context(self.logger, "info", "Updating upgrade run", run_id=run_id)
        return self._execute(record, run)

    def read(self, run_id: str) -> RunRecord:
        """Refresh the projections of a run."""
        record = self.store.load(run_id)
        record.output = self.collector.collect().to_dict()
        record.touch()
        self.store.save(record)
        return record

    def delete(self, run_id: str) -> None:
        """Forget a run. The upgrade service is not touched."""
        self.store.delete(run_id)
        log_with_context(self.logger, "info", "Deleted upgrade run record", run_id=run_id)

    def list_runs(self) -> List[RunRecord]:
        return self.store.list()

    def _execute(self, record: RunRecord, run: UpgradeRun) -> RunRecord:
        try:
            result = self.coordinator.execute(run, record.run_id)
        except NsxUpgradeError as e:
            if isinstance(e, UpgradeCancelledError):
                record.state = RunState.CANCELLED.value
            else:
                record.state = RunState.FAILED.value
            record.error = str(e)
            record.output = self.collector.collect_best_effort().to_dict()
            record.touch()
            self.store.save(record)
            raise

        record.state = RunState.SUCCEEDED.value
        record.result = result.to_dict()
        record.error = ""
        record.output = self.collector.collect_best_effort().to_dict()
        record.touch()
        self.store.save(record)
        return record
