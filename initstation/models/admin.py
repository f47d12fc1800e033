"""Station lookups against the ILS admin file.

Records are pipe-delimited lines such as::

    STAT|36|MAINCIRC|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|

where field 2 is the station ID used to name lock files and field 3 the
station name.
"""

import logging
import os
from typing import Dict, Optional, Set

from initstation.errors import AdminStoreError

logger = logging.getLogger(__name__)


class AdminStore:
    """Read-only view of the station records in the admin file."""

    def __init__(self, admin_file: str, record_type: Optional[str] = "STAT"):
        self.admin_file = admin_file
        self.record_type = record_type or None
        self._stations = None

    def check(self) -> None:
        """Raise AdminStoreError if the admin file is missing or empty."""
        if not self.admin_file:
            raise AdminStoreError("no admin file configured and the ILS config directory could not be found")
        if not os.path.isfile(self.admin_file) or os.path.getsize(self.admin_file) == 0:
            raise AdminStoreError(f"can't find the configuration file in '{self.admin_file}'")

    def stations(self) -> Dict[str, str]:
        """Return {station_id: station_name} for every station record, in file order."""
        if self._stations is None:
            self._stations = self._load()
        return self._stations

    def _load(self) -> Dict[str, str]:
        self.check()
        stations = {}
        try:
            with open(self.admin_file, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    fields = line.rstrip("\r\n").split("|")
                    if len(fields) < 3:
                        continue
                    if self.record_type and fields[0] != self.record_type:
                        continue
                    station_id, name = fields[1].strip(), fields[2].strip()
                    if station_id:
                        stations.setdefault(station_id, name)
        except OSError as e:
            raise AdminStoreError(f"could not read '{self.admin_file}': {e}") from e
        logger.debug(f"loaded {len(stations)} station records from {self.admin_file}")
        return stations

    def resolve(self, name_or_partial: str) -> Set[str]:
        """Return the IDs of every station whose name contains name_or_partial (case-sensitive)."""
        if not name_or_partial:
            return set()
        return {sid for sid, name in self.stations().items() if name_or_partial in name}

    def name_for(self, station_id: str) -> Optional[str]:
        """Return the station name for an ID, or None if the ID isn't registered."""
        return self.stations().get(str(station_id))
