"""
Atomic unit of work shared by the ledger, escrow engine, dispute workflow and sweeper.
Nested blocks defer the commit to the outermost one.
"""

import logging
from contextlib import contextmanager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from escrow_service.errors import Conflict, Internal

logger = logging.getLogger(__name__)

_DEPTH_KEY = "atomic_depth"


@contextmanager
def atomic(session):
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning("Transaction rolled back on integrity error: %s", e.orig)
        raise Conflict("Concurrent modification detected") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Transaction rolled back on storage error")
        raise Internal() from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = depth
