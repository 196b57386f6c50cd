"""Database sessions for request handlers and background jobs."""

from collections.abc import Generator

from sqlalchemy.orm import Session, sessionmaker

from examprep.db.engine import engine

# Services hand ORM rows back after committing; their attributes must stay loaded
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """
    Yield one session per request.

    Services commit their own units of work. Anything still pending when a
    handler raises is rolled back before the session is closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
