from pathlib import Path
import os
import sys
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

DEFAULT_DB_FILE = Path("data") / "rental.db"


def app_root_dir() -> Path:
    # packaged build: templates and data/ sit next to the executable's folder
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent.parent
    return Path(__file__).resolve().parent


def database_path(root_dir: Path) -> Path:
    """APP_DB_PATH if set (relative paths are taken from the app root), else data/rental.db."""
    configured = os.getenv("APP_DB_PATH")
    path = Path(configured).expanduser() if configured else DEFAULT_DB_FILE
    if not path.is_absolute():
        path = (root_dir / path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


ROOT_DIR = app_root_dir()
DB_PATH = database_path(ROOT_DIR)

engine = create_engine(
    f"sqlite:///{DB_PATH.as_posix()}",
    connect_args={"check_same_thread": False},
)


@event.listens_for(engine, "connect")
def _sqlite_pragmas(dbapi_connection, connection_record):
    cur = dbapi_connection.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    cur.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass
