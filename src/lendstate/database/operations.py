import pathlib
import sqlite3

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import URL, Engine, create_engine, func, select, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from lendstate.database.models import (
    Base,
    FinancialsDailySnapshotTable,
    MarketTable,
    ProtocolTable,
    UsageMetricsDailySnapshotTable,
)
from lendstate.exceptions.database import BackupExists
from lendstate.logging import logger


def _sqlite_engine(db_path: pathlib.Path) -> Engine:
    return create_engine(
        URL.create(
            drivername="sqlite",
            database=str(db_path.absolute()),
        )
    )


def backup_sqlite_database(db_path: pathlib.Path) -> pathlib.Path:
    """
    Copy the state database to a sibling file with a `.bak` suffix and return its path. An existing
    backup is never overwritten.
    """

    assert db_path.exists()

    backup_path = db_path.with_suffix(db_path.suffix + ".bak")
    if backup_path.exists():
        raise BackupExists(path=backup_path)

    # Fold the write-ahead log into the main file so the copy is complete
    with _sqlite_engine(db_path).connect() as connection:
        connection.execute(text("PRAGMA wal_checkpoint(FULL);"))

    with sqlite3.connect(db_path) as src, sqlite3.connect(backup_path) as dest:
        src.backup(target=dest)

    logger.info(f"Backed up {db_path} to {backup_path}")
    return backup_path


def create_new_sqlite_database(db_path: pathlib.Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = _sqlite_engine(db_path)
    with engine.connect() as connection:
        journal_mode = connection.execute(text("PRAGMA journal_mode=WAL;")).scalar()
        assert journal_mode == "wal"
        connection.execute(text("PRAGMA auto_vacuum=FULL;"))

        Base.metadata.create_all(bind=engine)
        connection.execute(text("VACUUM;"))

    command.stamp(get_alembic_config(db_path), "head")
    logger.info(f"Initialized new lending state database at {db_path}")


def compact_sqlite_database(db_path: pathlib.Path) -> None:
    with _sqlite_engine(db_path).connect() as connection:
        connection.execute(text("VACUUM;"))
    logger.info(f"Compacted lending state database at {db_path}")


def upgrade_existing_sqlite_database(db_path: pathlib.Path) -> None:
    command.upgrade(get_alembic_config(db_path), "head")
    logger.info(f"Upgraded lending state database at {db_path}")


def get_scoped_sqlite_session(database_path: pathlib.Path) -> scoped_session[Session]:
    return scoped_session(session_factory=sessionmaker(bind=_sqlite_engine(database_path)))


def get_in_memory_session() -> Session:
    """
    Create a session bound to a new, fully initialized in-memory database. The state is discarded
    when the session's engine is garbage collected.
    """

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)()


def get_alembic_config(db_path: pathlib.Path) -> Config:
    cfg = Config()
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path.absolute()}")
    cfg.set_main_option("script_location", "lendstate:migrations")
    return cfg


def get_database_revisions(db_path: pathlib.Path) -> tuple[str | None, str | None]:
    """
    Get the (current, latest) Alembic revisions for the database at the given path.
    """

    with _sqlite_engine(db_path).connect() as connection:
        current_revision = MigrationContext.configure(connection=connection).get_current_revision()
    latest_revision = ScriptDirectory.from_config(get_alembic_config(db_path)).get_current_head()

    if current_revision is not None and current_revision != latest_revision:
        logger.warning(
            f"Database revision {current_revision} is behind the latest ({latest_revision}). "
            "Run 'lendstate database upgrade' before processing events."
        )

    return current_revision, latest_revision


def get_state_summary(session: Session) -> dict[str, int]:
    """
    Count the protocols, markets, and daily snapshots held in the state database.
    """

    return {
        label: session.scalar(select(func.count()).select_from(table)) or 0
        for label, table in (
            ("protocols", ProtocolTable),
            ("markets", MarketTable),
            ("financial snapshots", FinancialsDailySnapshotTable),
            ("usage snapshots", UsageMetricsDailySnapshotTable),
        )
    }
