import contextlib
import logging

from database.database import SessionLocal
from database.repository import HousingRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def housing_uow(session_factory=None):
    """Per-unit-of-work transaction scope.

    Yields a HousingRepository bound to a fresh Session. Commits on success,
    rolls back on exception, always closes.

    Usage:
        with housing_uow() as repo:
            match = repo.matches.get_by_id(match_id)
            # perform operations...
        # commit happens automatically on successful exit
    """
    session = (session_factory or SessionLocal)()
    try:
        repo = HousingRepository(session)
        yield repo
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
