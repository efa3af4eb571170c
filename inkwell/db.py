from sqlmodel import create_engine, SQLModel, Session
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging

from inkwell.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # Local dev: single file, shared across the threadpool FastAPI runs sync routes in
    engine = create_engine(DATABASE_URL, echo=False, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300,  # Recycle connections every 5 min
        pool_timeout=30,
        connect_args={"connect_timeout": 10},
    )


@event.listens_for(Engine, "connect")
def set_connection_defaults(dbapi_connection, connection_record):
    """Per-connection settings: statement timeout on PostgreSQL, FK enforcement on SQLite."""
    cursor = dbapi_connection.cursor()
    try:
        if type(dbapi_connection).__module__.startswith("sqlite3"):
            cursor.execute("PRAGMA foreign_keys=ON")
        else:
            cursor.execute("SET statement_timeout = '30s'")
    except Exception as e:
        logger.warning(f"Could not set connection parameters: {e}")
    finally:
        cursor.close()


def get_session():
    with Session(engine) as session:
        yield session


def create_db_and_tables():
    # Import models so their tables are registered on the metadata
    import inkwell.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
