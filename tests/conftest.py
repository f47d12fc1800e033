"""Pytest fixtures: a synthetic ILS lock tree with fake processes and identities."""
import pytest

from initstation.core.reconcile import ReconciliationEngine
from initstation.settings import Settings
from initstation.utils.identity import IdentityCodec
from initstation.utils.logger import close_logger

ADMIN_RECORDS = """\
USER|1|MAINCIRC-USER|x|
STAT|36|MAINCIRC|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|2307|MEACIRC|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|4010|WMC004|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|4011|WMC005|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|11|LHLCIRC|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|22|LHLREF|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
STAT|33|LHLADMIN|wsgui|PC Graphical User Interface|1|1|2|2|1||0|2|0|
"""


class FakeProcesses:
    """Process oracle over a fixed set of running PIDs."""

    def __init__(self, alive=()):
        self.alive = set(alive)
        self.killed = []

    def is_alive(self, pid):
        return pid in self.alive

    def terminate(self, pid):
        self.killed.append(pid)
        self.alive.discard(pid)
        return True


class FakeCodec(IdentityCodec):
    """login name -> user key -> encoded identity from dictionaries."""

    def __init__(self, keys=None, codes=None):
        self.keys = keys or {}
        self.codes = codes or {}

    def decode(self, login_name):
        return self.keys.get(login_name)

    def encode(self, user_key):
        return self.codes.get(user_key)


class IlsTree:
    """Helper for laying out lock, session and ledger files under tmp_path."""

    def __init__(self, root):
        self.root = root
        self.config_dir = root / "Config"
        self.locks_dir = root / "Unicorn" / "Locks"
        self.stations_dir = self.locks_dir / "Stations"
        self.ledger_dir = self.locks_dir / "Users"
        for d in (self.config_dir, self.stations_dir, self.ledger_dir):
            d.mkdir(parents=True)
        self.admin_file = self.config_dir / "admin"
        self.admin_file.write_text(ADMIN_RECORDS)

    def add_lock(self, station_id):
        path = self.stations_dir / str(station_id)
        path.write_text("1\n")
        return path

    def add_session(self, user, station_id, pid="", hidden=True):
        name = f".{user}.{station_id}" if hidden else f"{user}.{station_id}"
        path = self.locks_dir / name
        path.write_text(f"{pid}\n" if pid != "" else "")
        return path

    def set_ledger(self, code, count):
        path = self.ledger_dir / code
        path.write_text(f"{count}\n")
        return path

    def ledger_value(self, code):
        path = self.ledger_dir / code
        return path.read_text().strip() if path.exists() else None

    def settings(self, **overrides):
        values = dict(
            admin_file=str(self.admin_file),
            station_locks_dir=str(self.stations_dir),
            ledger_dir=str(self.ledger_dir),
            log_dir=str(self.root / "logs"),
        )
        values.update(overrides)
        return Settings(**values)


@pytest.fixture
def ils(tmp_path):
    return IlsTree(tmp_path)


@pytest.fixture
def processes():
    return FakeProcesses()


@pytest.fixture
def codec():
    return FakeCodec(
        keys={"MEACIRC": "1202", "LHLCIRC": "311", "LHLADMIN": "333", "MAINCIRC": "36"},
        codes={"1202": "BFG", "311": "LZ", "333": "MU", "36": "BA"},
    )


@pytest.fixture
def engine(ils, processes, codec):
    return ReconciliationEngine(ils.settings(), processes=processes, codec=codec)


@pytest.fixture(autouse=True)
def reset_app_logger():
    yield
    close_logger("initstation")
