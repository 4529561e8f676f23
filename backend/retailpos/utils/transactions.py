from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from retailpos.utils.logging import get_logger

log = get_logger("transactions")


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Begin a transaction on ``session``, or a SAVEPOINT when one is already open.

    Everything done inside the block is committed on exit and rolled back if the
    block raises, so a return and its stock movements land together or not at all.
    Open it before the first query on a fresh session; otherwise autobegin has
    already started the outer transaction and only the savepoint is released here.

        with smart_transaction(db):
            ... DB work ...
    """
    if session.in_transaction():
        log.debug("transaction already open; using a savepoint")
        cm = session.begin_nested()
    else:
        cm = session.begin()
    with cm:
        yield session
