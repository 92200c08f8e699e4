# checkout/data/database.py
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from checkout.domain.errors import TransientConflict
from checkout.utils.settings import DATABASE_URL
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()

#deadlock, serialization failure, lock_not_available
_TRANSIENT_SQLSTATES = {"40P01", "40001", "55P03"}
#mysql: lock wait timeout, deadlock
_TRANSIENT_MYSQL_CODES = {1205, 1213}
#sqlite primary codes SQLITE_BUSY, SQLITE_LOCKED; extended codes carry them in the low byte
_TRANSIENT_SQLITE_CODES = {5, 6}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_transient_conflict(exc: DBAPIError) -> bool:
    """Classify a driver error by its SQLSTATE / vendor code."""
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True

    sqlite_code = getattr(orig, "sqlite_errorcode", None)
    if sqlite_code is not None and (sqlite_code & 0xFF) in _TRANSIENT_SQLITE_CODES:
        return True

    args = getattr(orig, "args", ())
    return bool(args) and args[0] in _TRANSIENT_MYSQL_CODES


@contextmanager
def unit_of_work(db: Session):
    """
    One transaction: commit on clean exit, rollback on any exception.
    Row locks taken with with_for_update() live until this block ends.
    """
    try:
        yield db
        db.commit()
    except DBAPIError as e:
        db.rollback()
        if is_transient_conflict(e):
            logger.warning(f"Transient database conflict: {e.orig}")
            raise TransientConflict(str(e.orig)) from e
        raise
    except Exception:
        db.rollback()
        raise
