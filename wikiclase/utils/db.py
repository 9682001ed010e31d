from contextlib import contextmanager

from wikiclase.extensions import db


@contextmanager
def transaction():
    """Unit of work over the request session.

    Commits when the block exits normally and rolls back on any exception,
    which is re-raised to the caller.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
