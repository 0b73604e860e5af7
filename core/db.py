"""
core/db.py -- Shared SQLAlchemy Core metadata and engine factory.

Every store registers its tables on the one `metadata` object defined here so
foreign keys can cross packages (tasks -> identities, notes -> identities).
Stores call metadata.create_all() on construction; create_all is idempotent
(checkfirst) so construction order does not matter.

SQLite specifics:
  - check_same_thread=False: FastAPI runs sync handlers in a thread pool.
  - In-memory URLs use StaticPool so every connection sees the same database.
  - PRAGMA foreign_keys=ON per connection: SQLite ships with FK enforcement
    off, and cascade/restrict rules on comments and tasks depend on it.
  - PRAGMA journal_mode=WAL per connection for concurrent read safety.

Layer rule: core/ is the kernel. No imports from api/, auth/, tasks/, notes/.
"""

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

metadata = MetaData()

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable FK enforcement and WAL mode.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url with the SQLite tweaks applied where relevant.

    Usage:
        engine = create_db_engine("sqlite://")                        # tests
        engine = create_db_engine("postgresql://user:pw@host/tasks")  # prod
    """
    kwargs: dict = {}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in _MEMORY_URLS:
            kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine
