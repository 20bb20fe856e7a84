from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orm import DocumentORM

logger = logging.getLogger(__name__)

ASSETS_KEY = "assets"
CUSTOMERS_KEY = "customers"
PRODUCT_TYPES_KEY = "productTypes"
PASSWORD_KEY = "appPassword"
SECURITY_QUESTION_KEY = "securityQuestion"
SECURITY_ANSWER_KEY = "securityAnswer"
AUTO_BACKUP_DATA_KEY = "autoBackupData"
AUTO_BACKUP_TIMESTAMP_KEY = "lastAutoBackupTimestamp"

ALL_KEYS = (
    ASSETS_KEY,
    CUSTOMERS_KEY,
    PRODUCT_TYPES_KEY,
    PASSWORD_KEY,
    SECURITY_QUESTION_KEY,
    SECURITY_ANSWER_KEY,
    AUTO_BACKUP_DATA_KEY,
    AUTO_BACKUP_TIMESTAMP_KEY,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()


def _copy(value: Any) -> Any:
    return json.loads(json.dumps(value))


def get(db: Session, key: str, default: Any) -> Any:
    """
    Read the whole document stored under ``key``.

    A miss seeds ``default`` and persists it. Storage or decoding failures are
    logged and answered with ``default`` so callers keep working.
    """
    try:
        row = db.get(DocumentORM, key)
        if row is not None:
            return json.loads(row.value)

        db.add(DocumentORM(key=key, value=json.dumps(default), updated_at=utcnow()))
        db.commit()
    except (SQLAlchemyError, ValueError):
        logger.exception("error reading document key=%s", key)
        db.rollback()
    return _copy(default)


def _write(db: Session, key: str, value: Any) -> None:
    encoded = json.dumps(value)
    row = db.get(DocumentORM, key)
    if row is None:
        db.add(DocumentORM(key=key, value=encoded, updated_at=utcnow()))
    else:
        row.value = encoded
        row.updated_at = utcnow()


def set(db: Session, key: str, value: Any, *, commit: bool = True) -> bool:
    try:
        _write(db, key, value)
        persist(db, commit=commit)
    except (SQLAlchemyError, TypeError, ValueError):
        logger.exception("error writing document key=%s", key)
        db.rollback()
        return False
    return True


def set_many(db: Session, values: dict[str, Any], *, commit: bool = True) -> bool:
    """Write several keys in one transaction; nothing is kept if any write fails."""
    try:
        for key, value in values.items():
            _write(db, key, value)
        persist(db, commit=commit)
    except (SQLAlchemyError, TypeError, ValueError):
        logger.exception("error writing documents keys=%s", ",".join(values))
        db.rollback()
        return False
    return True


def snapshot(db: Session) -> dict[str, str | None]:
    """Raw serialized value of every known key, ``None`` for missing ones."""
    rows = {row.key: row.value for row in db.execute(select(DocumentORM)).scalars().all()}
    return {key: rows.get(key) for key in ALL_KEYS}
