import pytest

from initstation.errors import AdminStoreError, ArtifactNameError, LockDirectoryError
from initstation.models.admin import AdminStore
from initstation.models.ledger import CounterLedger
from initstation.models.locks import LockInventory, SessionArtifactName, remove_file


# --- AdminStore ---

def test_resolve_partial_name_returns_all_matches(ils):
    admin = AdminStore(str(ils.admin_file))
    assert admin.resolve("WMC") == {"4010", "4011"}
    assert admin.resolve("CIRC") == {"36", "2307", "11"}


def test_resolve_is_case_sensitive_and_empty_on_no_match(ils):
    admin = AdminStore(str(ils.admin_file))
    assert admin.resolve("wmc") == set()
    assert admin.resolve("NOPE") == set()


def test_resolve_only_uses_station_records(ils):
    admin = AdminStore(str(ils.admin_file))
    assert admin.resolve("MAINCIRC") == {"36"}
    assert AdminStore(str(ils.admin_file), record_type="").resolve("MAINCIRC") == {"1", "36"}


def test_name_for(ils):
    admin = AdminStore(str(ils.admin_file))
    assert admin.name_for("2307") == "MEACIRC"
    assert admin.name_for(36) == "MAINCIRC"
    assert admin.name_for("999") is None


def test_missing_or_empty_admin_file_is_fatal(tmp_path):
    with pytest.raises(AdminStoreError):
        AdminStore(str(tmp_path / "admin")).check()
    empty = tmp_path / "empty"
    empty.write_text("")
    with pytest.raises(AdminStoreError):
        AdminStore(str(empty)).resolve("WMC")
    with pytest.raises(AdminStoreError):
        AdminStore(None).check()


# --- SessionArtifactName ---

@pytest.mark.parametrize("filename, user, station", [
    ("MEACIRC.2307", "MEACIRC", "2307"),
    (".MAINCIRC.36", "MAINCIRC", "36"),
    ("/s/sirsi/Unicorn/Locks/.WMC.004.4010", "WMC.004", "4010"),
])
def test_parse_artifact_name(filename, user, station):
    parsed = SessionArtifactName.parse(filename)
    assert parsed.user_identity == user
    assert parsed.station_id == station


@pytest.mark.parametrize("filename", ["MEACIRC", ".2307", "MEACIRC.abc", "MEACIRC.", ""])
def test_parse_artifact_name_rejects_bad_shapes(filename):
    with pytest.raises(ArtifactNameError):
        SessionArtifactName.parse(filename)


def test_artifact_name_matches_exact_station_only():
    assert SessionArtifactName.matches(".MEACIRC.2307", "2307")
    assert not SessionArtifactName.matches(".MEACIRC.2307", "307")
    assert not SessionArtifactName.matches("Stations", "2307")
    assert SessionArtifactName("MEACIRC", "2307").filename() == ".MEACIRC.2307"
    assert SessionArtifactName("MEACIRC", "2307").filename(hidden=False) == "MEACIRC.2307"


# --- LockInventory ---

def make_inventory(ils, max_len=4):
    return LockInventory(str(ils.stations_dir), str(ils.locks_dir), max_len)


def test_list_workstation_locks_filters_shape(ils):
    for sid in ("22", "11", "123", "12345"):
        ils.add_lock(sid)
    (ils.stations_dir / "notes.txt").write_text("x")
    inventory = make_inventory(ils)

    assert inventory.list_workstation_locks() == ["11", "22", "123"]
    assert inventory.list_workstation_locks(filtered=False) == ["11", "22", "123", "12345", "notes.txt"]


def test_list_workstation_locks_missing_dir(tmp_path):
    inventory = LockInventory(str(tmp_path / "nope"), str(tmp_path))
    assert inventory.list_workstation_locks() == []


def test_find_session_artifact(ils):
    ils.add_session("MEACIRC", "2307", pid=9999)
    ils.add_session("OTHER", "230", pid=1)
    inventory = make_inventory(ils)

    artifact = inventory.find_session_artifact("2307")

    assert artifact.user_identity == "MEACIRC"
    assert artifact.station_id == "2307"
    assert artifact.path == str(ils.locks_dir / ".MEACIRC.2307")
    assert inventory.find_session_artifact("4010") is None


def test_find_session_artifact_uses_first_of_several(ils, caplog):
    ils.add_session("BBB", "11", pid=2)
    ils.add_session("AAA", "11", pid=1)

    artifact = make_inventory(ils).find_session_artifact("11")

    assert artifact.user_identity == "AAA"
    assert "2 session files" in caplog.text


@pytest.mark.parametrize("content, expected", [
    ("9999\n", 9999),
    ("  42  \nextra\n", 42),
    ("", None),
    ("\n", None),
    ("pid=12", None),
    ("-5", None),
    ("0", None),
    ("99999999999999", None),
])
def test_read_pid(ils, content, expected):
    path = ils.locks_dir / ".X.1"
    path.write_text(content)
    assert make_inventory(ils).read_pid(str(path)) == expected


def test_read_pid_unreadable_file(ils):
    assert make_inventory(ils).read_pid(str(ils.locks_dir / "missing")) is None


def test_remove_file_is_best_effort(tmp_path):
    target = tmp_path / "lock"
    target.write_text("1")
    assert remove_file(str(target)) is True
    assert remove_file(str(target)) is True
    assert remove_file(str(tmp_path)) is False


# --- CounterLedger ---

def test_decrement_writes_back_lower_count(ils):
    ils.set_ledger("BFG", 3)
    ledger = CounterLedger(str(ils.ledger_dir))
    assert ledger.decrement("BFG") == 2
    assert ils.ledger_value("BFG") == "2"


def test_decrement_to_zero_deletes_entry(ils):
    ils.set_ledger("BFG", 1)
    ledger = CounterLedger(str(ils.ledger_dir))
    assert ledger.decrement("BFG") == 0
    assert not (ils.ledger_dir / "BFG").exists()


def test_decrement_never_stores_negative(ils):
    ils.set_ledger("BFG", 0)
    ils.set_ledger("NEG", -3)
    ledger = CounterLedger(str(ils.ledger_dir))
    assert ledger.decrement("BFG") == 0
    assert ledger.decrement("NEG") == 0
    assert ledger.active_users() == {}


def test_decrement_missing_or_garbage_entry_is_skipped(ils):
    (ils.ledger_dir / "JUNK").write_text("lots\n")
    ledger = CounterLedger(str(ils.ledger_dir))
    assert ledger.decrement("NOBODY") is None
    assert ledger.decrement("JUNK") is None
    assert (ils.ledger_dir / "JUNK").read_text() == "lots\n"


def test_active_users(ils):
    ils.set_ledger("BFG", 2)
    ils.set_ledger("LZ", 1)
    (ils.ledger_dir / "JUNK").write_text("")
    assert CounterLedger(str(ils.ledger_dir)).active_users() == {"BFG": 2, "LZ": 1}


def test_missing_session_dir_is_an_environment_error(ils, tmp_path):
    inventory = LockInventory(str(ils.stations_dir), str(tmp_path / "nope"))
    with pytest.raises(LockDirectoryError):
        inventory.check()
    with pytest.raises(LockDirectoryError):
        inventory.find_session_artifact("22")
