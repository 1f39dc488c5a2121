import logging
import sqlite3
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from nursing.config import settings

logger = logging.getLogger(__name__)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


engine = make_engine(settings.database_url, echo=settings.database_echo)


def init_db(bind: Engine = engine, reset: bool = False) -> None:
    """
    Create the record tables, dropping them first when `reset` is set.
    """
    # registers the tables on SQLModel.metadata
    import nursing.models  # noqa: F401

    if reset:
        logger.warning("Dropping all record tables")
        SQLModel.metadata.drop_all(bind)
    SQLModel.metadata.create_all(bind)


def get_session() -> Generator[Session, None, None]:
    """
    Create a database session generator.
    """
    with Session(engine) as session:
        yield session
