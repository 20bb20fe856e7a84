import json
from datetime import datetime, timedelta, timezone

import crud
import store
from models import AutoBackupInfo, CustomerIn


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_export_contains_every_collection(db_session):
    doc = crud.export_all_data(db_session, now=_utc(2024, 6, 1))

    assert doc["version"] == "1.0"
    assert doc["exportDate"].startswith("2024-06-01")
    assert [a["id"] for a in doc["assets"]] == ["ASSET-001", "ASSET-002", "ASSET-003"]
    assert len(doc["customers"]) == 2
    assert doc["productTypes"] == ["Construction Equipment", "Cameras"]
    assert doc["appPassword"] == "admin123"
    assert doc["securityQuestion"] == ""


def test_export_then_import_leaves_store_identical(db_session):
    crud.rent_asset(db_session, "ASSET-001", "CUST-001", out_date=_utc(2024, 1, 1))
    rental = crud.get_open_rental(db_session, "ASSET-001")
    crud.add_payment(db_session, "ASSET-001", rental.id, 25, "2024-01-02", "Other")
    exported = crud.export_all_data(db_session)
    before = store.snapshot(db_session)

    result = crud.import_all_data(db_session, json.dumps(exported))

    assert result.success is True
    db_session.expire_all()
    assert store.snapshot(db_session) == before


def test_import_replaces_current_data(db_session):
    exported = crud.export_all_data(db_session)
    crud.create_customer(db_session, CustomerIn(name="Late", email="l@x.test", phone="0"))
    assert len(crud.list_customers(db_session)) == 3

    crud.import_all_data(db_session, json.dumps(exported))

    db_session.expire_all()
    assert len(crud.list_customers(db_session)) == 2


def test_import_missing_collection_is_rejected_without_writes(db_session):
    crud.export_all_data(db_session)
    before = store.snapshot(db_session)
    payload = {"customers": [], "productTypes": [], "appPassword": "new-pass"}

    result = crud.import_all_data(db_session, json.dumps(payload))

    assert result.success is False
    assert result.message == crud.INVALID_BACKUP_MESSAGE
    db_session.expire_all()
    assert store.snapshot(db_session) == before


def test_import_empty_password_is_rejected(db_session):
    doc = crud.export_all_data(db_session)
    doc["appPassword"] = ""

    result = crud.import_all_data(db_session, json.dumps(doc))

    assert result.success is False
    assert crud.verify_password(db_session, "admin123")


def test_import_unparsable_payload(db_session):
    result = crud.import_all_data(db_session, "{this is not json")

    assert result.success is False
    assert result.message == crud.UNPARSABLE_BACKUP_MESSAGE


def test_import_non_object_payload(db_session):
    result = crud.import_all_data(db_session, "[1, 2, 3]")

    assert result.success is False
    assert result.message == crud.INVALID_BACKUP_MESSAGE


def test_import_accepts_null_security_fields(db_session):
    doc = crud.export_all_data(db_session)
    doc["securityQuestion"] = None
    doc["securityAnswer"] = None

    assert crud.import_all_data(db_session, json.dumps(doc)).success is True
    assert crud.get_security_settings(db_session).question == ""


def test_auto_backup_due_after_a_day():
    now = _utc(2024, 1, 2, 12)
    last_ms = int(now.timestamp() * 1000)

    assert crud.auto_backup_due(AutoBackupInfo(), now) is True
    assert crud.auto_backup_due(AutoBackupInfo(timestamp=last_ms), now + timedelta(hours=23)) is False
    assert crud.auto_backup_due(AutoBackupInfo(timestamp=last_ms), now + timedelta(hours=25)) is True


def test_run_auto_backup_writes_once_per_interval(db_session):
    t0 = _utc(2024, 1, 1)

    assert crud.run_auto_backup_if_due(db_session, now=t0) is True
    info = crud.get_auto_backup(db_session)
    assert info.timestamp == int(t0.timestamp() * 1000)
    assert info.data["appPassword"] == "admin123"

    assert crud.run_auto_backup_if_due(db_session, now=t0 + timedelta(hours=1)) is False
    assert crud.run_auto_backup_if_due(db_session, now=t0 + timedelta(days=2)) is True


def test_restore_without_backup_fails(db_session):
    result = crud.restore_auto_backup(db_session)

    assert result.success is False
    assert result.message == "No automatic backup found to restore."


def test_restore_brings_back_backed_up_state(db_session):
    crud.run_auto_backup_if_due(db_session, now=_utc(2024, 1, 1))
    crud.delete_asset(db_session, "ASSET-002")
    assert crud.get_asset(db_session, "ASSET-002") is None

    result = crud.restore_auto_backup(db_session)

    assert result.success is True
    db_session.expire_all()
    assert crud.get_asset(db_session, "ASSET-002") is not None


def test_api_export_is_a_download(admin_client):
    r = admin_client.get("/data/export")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/json")
    assert 'filename="assettrack_backup_' in r.headers["content-disposition"]
    assert r.json()["version"] == "1.0"


def test_api_import_round_trip_and_rejection(admin_client):
    exported = admin_client.get("/data/export").content

    r = admin_client.post("/data/import", files={"file": ("backup.json", exported, "application/json")})
    assert r.status_code == 200
    assert r.json()["message"] == "Data imported successfully!"

    r = admin_client.post("/data/import", files={"file": ("backup.json", b"not json", "application/json")})
    assert r.status_code == 400


def test_api_data_endpoints_require_login(client):
    assert client.get("/data/export").status_code == 401
    assert client.get("/data/auto-backup").status_code == 401
    assert client.post("/data/auto-backup/restore").status_code == 401


def test_startup_takes_first_auto_backup(admin_client):
    info = admin_client.get("/data/auto-backup").json()

    assert info["timestamp"] is not None
    assert [a["id"] for a in info["data"]["assets"]] == ["ASSET-001", "ASSET-002", "ASSET-003"]

    r = admin_client.post("/data/auto-backup/restore")
    assert r.status_code == 200
