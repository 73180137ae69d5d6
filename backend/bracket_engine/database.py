import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./brackets.db")
DEFAULT_SEEDING_ROUNDS = int(os.getenv("DEFAULT_SEEDING_ROUNDS", "3"))

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def use_immediate_transactions(target: Engine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE and pysqlite only emits BEGIN before
    the first write, so a transaction could read a row another writer is about
    to change. With BEGIN IMMEDIATE the write lock is held from the first
    statement until commit or rollback, and a second writer waits for it
    (up to the connection's busy timeout).
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)
if _is_sqlite:
    use_immediate_transactions(engine)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from bracket_engine.models.bracket import Bracket  # noqa: F401
    from bracket_engine.models.bracket_entry import BracketEntry  # noqa: F401
    from bracket_engine.models.bracket_game import BracketGame  # noqa: F401
    from bracket_engine.models.event import Event  # noqa: F401
    from bracket_engine.models.queue_item import QueueItem  # noqa: F401
    from bracket_engine.models.seeding_ranking import SeedingRanking  # noqa: F401
    from bracket_engine.models.seeding_score import SeedingScore  # noqa: F401
    from bracket_engine.models.team import Team  # noqa: F401

    SQLModel.metadata.create_all(engine)
