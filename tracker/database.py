from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings


Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    if url.startswith("sqlite"):
        # writers wait on a locked SQLite file instead of failing straight away
        kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 30})

    eng = create_engine(url, **kwargs)

    if eng.dialect.name == "sqlite":

        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


def make_session_factory(bind: Engine) -> sessionmaker:
    # autoflush is off so nothing reaches the database before stamp_timestamps
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(get_settings().database_url)
SessionLocal = make_session_factory(engine)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def stamp_timestamps(db: Session, now: datetime | None = None) -> None:
    """
    Set created_at on new rows and updated_at on new and modified rows.

    Applies to every entity pending in the session that maps those columns.
    """
    now = now or utcnow()

    for obj in db.new:
        if hasattr(obj, "created_at") and obj.created_at is None:
            obj.created_at = now
        if hasattr(obj, "updated_at"):
            obj.updated_at = now

    for obj in db.dirty:
        if hasattr(obj, "updated_at") and db.is_modified(obj):
            obj.updated_at = now


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One atomic write against the store.

    Everything done to the session inside the block is committed together
    after timestamps are stamped. Any exception rolls the whole block back
    and is re-raised.
    """
    try:
        yield db
        stamp_timestamps(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
