"""
Shared fixtures: an in-memory SQLite database per test plus small factories.
"""
import os
import tempfile

# Must be set before anything imports orbit.constants
os.environ.setdefault("ORBIT_DATABASE_URL", "sqlite://")
os.environ.setdefault("ORBIT_SCHEDULER_ENABLED", "false")
os.environ.setdefault("ORBIT_LOG_DIR", tempfile.mkdtemp(prefix="orbit-logs-"))

import pytest
from datetime import date, timedelta
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orbit.database import Base
from orbit.models import Settings


def _make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINTs to behave
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def engine():
    engine = _make_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def default_settings(db_session):
    settings = Settings()
    db_session.add(settings)
    db_session.commit()
    db_session.refresh(settings)
    return settings


@pytest.fixture
def today():
    return date(2024, 6, 12)  # Wednesday


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)
