"""Reconcile station locks with the processes that own them.

A station lock should exist only while the server process recorded in the
station's Session-ID artifact is running. For each station this module
finds the artifact, checks the PID, and removes whatever no live process
owns, decrementing the user's session count as it goes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from initstation.models.admin import AdminStore
from initstation.models.ledger import CounterLedger
from initstation.models.locks import LockInventory, remove_file
from initstation.utils.identity import codec_from_settings
from initstation.utils.process import ProcessOracle

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    NO_LOCK = "NoLock"
    CLEANED_HEADLESS = "CleanedHeadless"
    CLEANED_DEAD = "CleanedDead"
    LIVE_BUT_FORCED = "LiveButForced"
    LIVE_PRESERVED = "LivePreserved"
    FAILED = "Failed"


@dataclass
class StationReport:
    """What happened to one station, with enough detail to audit later."""
    station_id: str
    station_name: Optional[str] = None
    user_identity: Optional[str] = None
    pid: Optional[int] = None
    outcome: Optional[Outcome] = None
    ledger_key: Optional[str] = None
    ledger_count: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def label(self):
        if self.station_name:
            return f"{self.station_name} ({self.station_id})"
        return self.station_id


class ReconciliationEngine:
    """Decides, per station, whether a lock is orphaned and cleans it up."""

    def __init__(self, settings, admin=None, inventory=None, ledger=None, processes=None, codec=None):
        self.settings = settings
        self.admin = admin or AdminStore(settings.admin_file, settings.station_record_type)
        self.inventory = inventory or LockInventory(
            settings.station_locks_dir,
            settings.effective_session_dir,
            settings.max_station_id_length,
        )
        self.ledger = ledger or CounterLedger(settings.ledger_dir)
        self.processes = processes or ProcessOracle()
        self.codec = codec or codec_from_settings(settings)

    def reconcile(self, station_id, force_kill=False) -> StationReport:
        """Bring one station's lock in line with its owning process."""
        station_id = str(station_id)
        report = StationReport(station_id=station_id, station_name=self.admin.name_for(station_id))
        if report.station_name is None:
            logger.warning(f"no station {station_id} listed in '{self.admin.admin_file}'")

        if not self.inventory.has_lock(station_id):
            logger.info(f"no lock file found for {report.label}")
            report.outcome = Outcome.NO_LOCK
            return report

        artifact = self.inventory.find_session_artifact(station_id)
        if artifact is None:
            logger.info(f"couldn't find the process id file for {report.label}, removing the lock")
            self._remove(report, self.inventory.lock_path(station_id))
            report.outcome = Outcome.CLEANED_HEADLESS
            return report
        report.user_identity = artifact.user_identity

        report.pid = self.inventory.read_pid(artifact.path)
        if report.pid is None:
            logger.info(f"couldn't find the process id in {artifact.path}, cleaning up {report.label}")
            self._cleanup(report, artifact, update_ledger=self.settings.decrement_on_unknown_pid)
            report.outcome = Outcome.CLEANED_DEAD
            return report

        if not self.processes.is_alive(report.pid):
            logger.info(f"{report.label}'s server process {report.pid} is not running")
            self._cleanup(report, artifact)
            report.outcome = Outcome.CLEANED_DEAD
            return report

        if not force_kill:
            logger.warning(f"{report.label}'s server session (pid {report.pid}, user {artifact.user_identity}) is still running, not touching it")
            report.outcome = Outcome.LIVE_PRESERVED
            return report

        logger.info(f"killing process {report.pid} for {report.label}")
        if not self.processes.terminate(report.pid):
            report.errors.append(f"could not kill process {report.pid}")
        self._cleanup(report, artifact)
        report.outcome = Outcome.LIVE_BUT_FORCED
        return report

    def reconcile_many(self, station_ids, force_kill=False) -> List[StationReport]:
        """Reconcile each station in turn; one station's failure never stops the rest."""
        reports = []
        for station_id in station_ids:
            try:
                reports.append(self.reconcile(station_id, force_kill=force_kill))
            except Exception as e:  # pylint: disable=broad-except
                logger.error(f"error reconciling station {station_id}: {e}", exc_info=True)
                reports.append(StationReport(station_id=str(station_id), outcome=Outcome.FAILED, errors=[str(e)]))
        return reports

    def reconcile_all(self, force_kill=False, extra_ids=()) -> List[StationReport]:
        """Reconcile every locked station, then any extra_ids not already among them."""
        station_ids = self.inventory.list_workstation_locks(filtered=True)
        logger.info(f"there are {len(station_ids)} station locks")
        for station_id in extra_ids:
            if str(station_id) not in station_ids:
                station_ids.append(str(station_id))
        return self.reconcile_many(station_ids, force_kill=force_kill)

    def connected_stations(self):
        """Return [(station_id, station_name)] for every station the ILS thinks is connected."""
        return [(sid, self.admin.name_for(sid)) for sid in self.inventory.list_workstation_locks(filtered=True)]

    def _cleanup(self, report, artifact, update_ledger=True):
        self._remove(report, artifact.path)
        self._remove(report, self.inventory.lock_path(report.station_id))
        if update_ledger:
            self._decrement_ledger(report, artifact.user_identity)
        logger.info(f"clean up complete for {report.label}")

    def _remove(self, report, path):
        if not remove_file(path):
            report.errors.append(f"could not remove {path}")

    def _decrement_ledger(self, report, user_identity):
        report.ledger_key = self.codec.ledger_key(user_identity)
        if report.ledger_key is None:
            logger.warning(f"session count for '{user_identity}' not updated, no ledger key")
            return
        report.ledger_count = self.ledger.decrement(report.ledger_key)


def summarize(reports):
    """Return {outcome: count} over a list of reports."""
    summary = {}
    for report in reports:
        summary[report.outcome] = summary.get(report.outcome, 0) + 1
    return summary
