"""
Database engine and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from orbit.constants import DATABASE_URL
from orbit.exceptions import StorageUnavailableException

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_storage_available(db: Session) -> None:
    """
    Ping the storage layer before a batch starts.

    Raises:
        StorageUnavailableException: If the database cannot be reached at all
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageUnavailableException(str(e)) from e


def insert_or_ignore(db: Session, model, rows: list[dict], index_elements: list[str]) -> int:
    """
    Insert rows, silently skipping any that collide on a unique key.

    The unique constraint, not a prior read, is what keeps concurrent
    writers from creating duplicates.

    Args:
        db: Database session
        model: Mapped class to insert into
        rows: Column-value dicts
        index_elements: Columns of the unique constraint to conflict on

    Returns:
        Number of rows actually inserted
    """
    if not rows:
        return 0

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"insert_or_ignore is not supported on {dialect}")

    stmt = insert(model).values(rows).on_conflict_do_nothing(index_elements=index_elements)
    result = db.execute(stmt)
    return max(result.rowcount or 0, 0)
