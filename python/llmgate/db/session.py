"""Sessions for the SQL stores.

Each store call opens one short session from the factory; only the usage
insert writes, inside transaction().
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from llmgate.db.engine import get_engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Session factory bound to engine (the process-wide engine by default).

    Rows are read into frozen dataclasses right away, so objects are not
    expired on commit.
    """
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def transaction(db: Session) -> Iterator[None]:
    """Commit when the block exits cleanly, roll back and re-raise otherwise."""
    try:
        yield
    except Exception:
        db.rollback()
        raise
    db.commit()
