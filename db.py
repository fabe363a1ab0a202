import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from config import settings  # Import is needed here

from utils.structured_logging import get_logger, LogCategory

logger = get_logger("database")

# Test-friendly engine: use SQLite when NODE_ENV=test
if os.getenv("NODE_ENV") == "test":
    test_db_url = os.getenv("SQLALCHEMY_TEST_DATABASE_URL", "sqlite://")
    engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
        # A single shared connection keeps an in-memory database alive across sessions
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        settings.POSTGRES_URL,
        poolclass=QueuePool,
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections beyond pool_size
        pool_pre_ping=True,  # Validate connections before use
        pool_recycle=3600,  # Recycle connections every hour
        pool_timeout=30,  # Timeout for getting connection from pool
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "application_name": "vocal_studio_api",
        },
    )


@event.listens_for(engine, "connect")
def set_connection_settings(dbapi_connection, connection_record):
    """Configure connection-level settings"""
    cursor = dbapi_connection.cursor()
    try:
        if engine.dialect.name == "sqlite":
            # SQLite only honours ON DELETE CASCADE with foreign keys switched on
            cursor.execute("PRAGMA foreign_keys=ON")
        else:
            # Set statement timeout to prevent runaway queries
            cursor.execute("SET statement_timeout = '30s'")
            cursor.execute("SET TIME ZONE 'UTC'")
    except Exception as e:
        # Log but don't fail if dialect-specific settings can't be applied
        logger.warning(f"Could not apply connection settings: {e}", category=LogCategory.DATABASE)
    finally:
        cursor.close()


@event.listens_for(engine, "checkout")
def receive_checkout(dbapi_connection, connection_record, connection_proxy):
    """Log connection checkout for monitoring"""
    try:
        logger.debug(
            "Database connection checked out",
            category=LogCategory.DATABASE,
            extra={"pool_status": engine.pool.status()},
        )
    except Exception as e:
        logger.debug(f"Pool monitoring error: {e}", category=LogCategory.DATABASE)


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Create all tables; used for local development and tests (production runs alembic)"""
    from models import Base  # Local import to avoid circular import during startup

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
