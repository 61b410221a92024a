"""
services/unit_of_work.py — All-or-nothing scope around one mutating operation.

Services only flush. Routes wrap the service call in unit_of_work() so the
flushed rows, the remainder update and every booking write are committed
together, or rolled back together on any exception (including a failed
invariant check at the end of the operation). The exception is re-raised
unchanged for the global error handlers.

    with unit_of_work(db.session) as session:
        allocation_service.allocate(line_id, consultant_id, days, session=session)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    try:
        yield session
    except BaseException:
        session.rollback()
        logger.debug("Unit of work rolled back")
        raise
    session.commit()
