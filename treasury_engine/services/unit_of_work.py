"""Transaction boundary shared by the services"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit when the block completes, roll back on any exception and re-raise"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
