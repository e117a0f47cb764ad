# shopcore/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from dotenv import load_dotenv

from shopcore.config import settings

load_dotenv()
logger = logging.getLogger(__name__)

Base = declarative_base()


def _normalize_url(url: str) -> str:
    # SQLAlchemy requires the postgresql:// scheme
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def make_engine(url: str, **kwargs):
    """Create an engine; SQLite connections take the write lock at BEGIN."""
    url = _normalize_url(url)
    if "sqlite" in url:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        _serialize_sqlite_transactions(engine)
        return engine
    return create_engine(url, **kwargs)


def _serialize_sqlite_transactions(engine):
    # pysqlite defers BEGIN until the first write, which lets two writers
    # read the same stock value. Emitting BEGIN IMMEDIATE ourselves makes every
    # transaction take the database write lock up front.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import models so every table is registered on Base.metadata
    import shopcore.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def unit_of_work(db: Session):
    """Run a block as one atomic unit: commit on success, roll back on any error.

    Nested use joins the outer unit instead of committing early.
    """
    if db.info.get("in_unit"):
        yield db
        return

    db.info["in_unit"] = True
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        logger.debug("Unit of work rolled back")
        raise
    finally:
        db.info["in_unit"] = False
