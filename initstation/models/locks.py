"""Workstation locks and the Session-ID artifacts that own them.

The ILS keeps one file per connected station in ``Locks/Stations`` (named by
station ID) and, in ``Locks``, a file named ``<UserIdentity>.<StationID>``
holding the PID of the server process for that session. The server writes
the latter as a hidden file, e.g. ``.MAINCIRC.36``.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from initstation.errors import ArtifactNameError, LockDirectoryError

logger = logging.getLogger(__name__)

STATION_ID_PATTERN = re.compile(r"^\d+$")

# PIDs are C ints; anything larger cannot name a process.
MAX_PID = 2 ** 31 - 1


@dataclass(frozen=True)
class SessionArtifactName:
    """Parsed ``<UserIdentity>.<StationID>`` filename."""
    user_identity: str
    station_id: str

    @classmethod
    def parse(cls, filename):
        """Parse a filename, raising ArtifactNameError if it has the wrong shape."""
        name = os.path.basename(filename)
        if name.startswith("."):
            name = name[1:]
        if "." not in name:
            raise ArtifactNameError(f"'{filename}' has no '.<StationID>' suffix")
        user_identity, station_id = name.rsplit(".", 1)
        if not user_identity:
            raise ArtifactNameError(f"'{filename}' has no user identity before the station ID")
        if not STATION_ID_PATTERN.match(station_id):
            raise ArtifactNameError(f"'{filename}' ends in '{station_id}', which is not a station ID")
        return cls(user_identity, station_id)

    @classmethod
    def matches(cls, filename, station_id):
        """True if filename is a session artifact for station_id. Never raises."""
        try:
            return cls.parse(filename).station_id == str(station_id)
        except ArtifactNameError:
            return False

    def filename(self, hidden=True):
        name = f"{self.user_identity}.{self.station_id}"
        return f".{name}" if hidden else name


@dataclass(frozen=True)
class SessionArtifact:
    """A Session-ID artifact found on disk."""
    path: str
    user_identity: str
    station_id: str


class LockInventory:
    """Enumerates station locks and correlates them with Session-ID artifacts."""

    def __init__(self, station_locks_dir, session_dir, max_station_id_length=4):
        self.station_locks_dir = station_locks_dir
        self.session_dir = session_dir
        self.max_station_id_length = max_station_id_length

    def check(self):
        """Raise LockDirectoryError if the session directory is missing.

        Without it every lock would look headless and be removed.
        """
        if not os.path.isdir(self.session_dir):
            raise LockDirectoryError(f"session directory '{self.session_dir}' does not exist")

    def is_station_id(self, name):
        """True if name has the shape of a station lock filename."""
        if not STATION_ID_PATTERN.match(name):
            return False
        return not self.max_station_id_length or len(name) <= self.max_station_id_length

    def lock_path(self, station_id):
        return os.path.join(self.station_locks_dir, str(station_id))

    def has_lock(self, station_id):
        return os.path.isfile(self.lock_path(station_id))

    def list_workstation_locks(self, filtered=True) -> List[str]:
        """Return the sorted station IDs that have a lock file.

        With filtered=True, files that don't look like station IDs are skipped
        so that anything else dropped in the directory is left alone.
        """
        if not os.path.isdir(self.station_locks_dir):
            logger.warning(f"station lock directory '{self.station_locks_dir}' does not exist")
            return []
        locks = []
        for fname in os.listdir(self.station_locks_dir):
            if not os.path.isfile(os.path.join(self.station_locks_dir, fname)):
                continue
            if filtered and not self.is_station_id(fname):
                logger.debug(f"ignoring '{fname}' in {self.station_locks_dir}")
                continue
            locks.append(fname)
        return sorted(locks, key=lambda s: (len(s), s))

    def find_session_artifact(self, station_id) -> Optional[SessionArtifact]:
        """Find the Session-ID artifact for a station, or None if the lock is headless."""
        self.check()
        matches = sorted(
            fname for fname in os.listdir(self.session_dir)
            if SessionArtifactName.matches(fname, station_id)
            and os.path.isfile(os.path.join(self.session_dir, fname))
        )
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(f"station {station_id} has {len(matches)} session files, using '{matches[0]}': {', '.join(matches)}")
        parsed = SessionArtifactName.parse(matches[0])
        return SessionArtifact(
            path=os.path.join(self.session_dir, matches[0]),
            user_identity=parsed.user_identity,
            station_id=parsed.station_id,
        )

    def read_pid(self, artifact_path) -> Optional[int]:
        """Return the PID recorded in a Session-ID artifact, or None if it can't be read."""
        try:
            with open(artifact_path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read().strip()
        except OSError as e:
            logger.warning(f"could not read '{artifact_path}': {e}")
            return None
        if not content:
            return None
        try:
            pid = int(content.splitlines()[0].strip())
        except ValueError:
            return None
        return pid if 0 < pid <= MAX_PID else None

    def remove_station_lock(self, station_id):
        return remove_file(self.lock_path(station_id))


def remove_file(path):
    """Remove a file, logging instead of raising. Returns True if the file is gone."""
    try:
        os.remove(path)
        logger.debug(f"removed {path}")
        return True
    except FileNotFoundError:
        logger.info(f"'{path}' was already removed")
        return True
    except OSError as e:
        logger.error(f"could not remove '{path}': {e}")
        return False
