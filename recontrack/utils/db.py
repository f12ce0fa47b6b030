import os
from pathlib import Path

from sqlalchemy import create_engine, text
from dotenv import load_dotenv

from recontrack.utils.logger import get_logger
from recontrack.utils.config import load_config

load_dotenv()

logger = get_logger(__name__)


def _normalize_postgres_url(url: str) -> str:
    # Heroku-style URLs use the legacy scheme SQLAlchemy no longer accepts
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def get_db_connection(cfg=None):
    """Return a SQLAlchemy engine based on configuration and environment.

    * When ``cfg.database.engine`` is ``"postgres"`` and a URL is available
      (``RECONTRACK_DATABASE_URL`` or ``database.url``), connect to PostgreSQL.
    * When the configured engine is ``"sqlite"`` or the Postgres URL is missing,
      build a SQLite engine using the configured ``sqlite_path``.
    * ``database.strict_db`` turns the missing-URL fallback into an error.
    """

    engine_choice = "sqlite"
    strict_db = False
    sqlite_path = Path("recontrack.db")
    url = None
    echo = False

    if cfg is None:
        try:
            cfg = load_config()
        except Exception as exc:
            logger.debug("Unable to load config; defaulting DB engine handling. Error: %s", exc)

    db_cfg = getattr(cfg, "database", None)
    if db_cfg is not None:
        engine_choice = str(getattr(db_cfg, "engine", engine_choice) or engine_choice).lower()
        strict_db = bool(getattr(db_cfg, "strict_db", strict_db))
        sqlite_path = Path(getattr(db_cfg, "sqlite_path", sqlite_path))
        url = getattr(db_cfg, "url", None)
        echo = bool(getattr(db_cfg, "echo", False))

    env_url = os.getenv("RECONTRACK_DATABASE_URL")
    if env_url:
        url = env_url

    def _connect_sqlite(path: Path):
        resolved = Path(path)
        resolved.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Using SQLite database at: %s", resolved)
        return create_engine(f"sqlite:///{resolved}", echo=echo)

    def _connect_postgres(db_url: str):
        normalized = _normalize_postgres_url(db_url)
        logger.info("Connecting to PostgreSQL database")
        return create_engine(normalized, echo=echo, pool_pre_ping=True)

    if engine_choice == "postgres":
        if url:
            return _connect_postgres(url)
        if strict_db:
            raise RuntimeError("database.strict_db=True but no PostgreSQL URL is configured (RECONTRACK_DATABASE_URL)")
        logger.warning(
            "Postgres engine requested but no database URL is set; falling back to SQLite at %s",
            sqlite_path,
        )
        return _connect_sqlite(sqlite_path)

    if engine_choice == "sqlite":
        return _connect_sqlite(sqlite_path)

    logger.warning(
        "Unknown database engine '%s'; defaulting to SQLite at %s",
        engine_choice,
        sqlite_path,
    )
    return _connect_sqlite(sqlite_path)


def validate_connection(engine) -> bool:
    """Validate DB connection health by executing a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection validation failed: %s", e)
        return False
