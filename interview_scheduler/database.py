"""
Engine and session wiring.

`configure()` binds the module-level `engine` and the shared `SessionLocal`
factory to a database URL. It runs once at import with `config.DATABASE_URL`;
tests call it again with their own URL. `SessionLocal` is the same object
throughout, so modules that imported it keep working after a rebind.
"""
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_S = 30

Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)
engine: Engine | None = None


def driver_url(url: str) -> str:
    """`mysql://...` from a .env file becomes the PyMySQL driver form."""
    url = (url or "").strip()
    if url.startswith("mysql://"):
        return "mysql+pymysql://" + url[len("mysql://"):]
    return url


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_S * 1000}")
    finally:
        cursor.close()


def make_engine(url: str, *, isolation_level: str | None = None) -> Engine:
    url = driver_url(url)
    if url.startswith("sqlite"):
        # Request threads share the pool, so the same-thread check must be off.
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_S},
        )
        event.listen(eng, "connect", _on_sqlite_connect)
        return eng
    return create_engine(
        url,
        pool_pre_ping=True,
        isolation_level=isolation_level or config.DB_ISOLATION_LEVEL,
    )


def configure(url: str | None = None, *, isolation_level: str | None = None) -> Engine:
    """Point `engine` and `SessionLocal` at `url` (default: config.DATABASE_URL)."""
    global engine
    previous = engine
    engine = make_engine(url or config.DATABASE_URL, isolation_level=isolation_level)
    SessionLocal.configure(bind=engine)
    if previous is not None:
        previous.dispose()
    logger.debug("Database bound to %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(*, reset: bool = False) -> None:
    # Models register themselves on Base.metadata when imported.
    from . import models  # noqa: F401

    if reset:
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def ping() -> None:
    """Round-trip `SELECT 1`; raises the driver error when the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


configure()
