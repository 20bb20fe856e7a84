import os
import tempfile
from pathlib import Path

# ---- test DB / settings, before any app module is imported ----
_TMP_DIR = Path(tempfile.mkdtemp(prefix="rental_app_"))
os.environ["APP_DB_PATH"] = str(_TMP_DIR / "test_rental.db")
os.environ["APP_SIMULATED_DELAY_MS"] = "0"
os.environ.setdefault("APP_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="session")
def app_module():
    import main

    return main


@pytest.fixture()
def db_session(app_module):
    db = app_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # every test starts from an empty store, so the seed data is written again on first read
    from sqlalchemy import delete
    from orm import DocumentORM

    db_session.execute(delete(DocumentORM))
    db_session.commit()
    yield


@pytest.fixture()
def client(app_module):
    with TestClient(app_module.app) as c:
        yield c


@pytest.fixture()
def admin_client(client):
    r = client.post("/auth/login", json={"password": "admin123"})
    assert r.status_code == 200, r.text
    return client


@pytest.fixture()
def controller(app_module):
    from controller import AppController

    return AppController(app_module.SessionLocal)
