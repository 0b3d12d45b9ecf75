from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from hms_ledger.core.config import get_settings

settings = get_settings()

# Main SQLAlchemy engine
engine = create_engine(
    str(settings.database_url),
    future=True,
    pool_pre_ping=True,
)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.

    The session is not committed here; mutating endpoints wrap their
    work in unit_of_work() so one request maps to one transaction.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Generator[Session, None, None]:
    """
    Run a block of service calls as a single transaction.

    Usage:
        with unit_of_work(db):
            reserve_stock(db, prescription, actor_id=actor_id)
            post_charge(db, ...)

    Services only flush; commit happens here when the block exits
    cleanly, and any exception rolls back every step of the block.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
