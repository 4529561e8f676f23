from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from retailpos.db import SessionLocal  # short-lived sessions for atomic begin
from retailpos.models.idempotency import IdempotencyRecord, IdempotencyStatus
from retailpos.utils.logging import get_logger

log = get_logger("idempotency")


class IdempotencyRepository:
    def __init__(self, session_factory: sessionmaker = None):
        # every read and write uses its own short-lived session, so the caller's
        # transaction is never opened or committed from here
        self.session_factory = session_factory or SessionLocal

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        """Fresh read of the record for ``key``; the returned object is detached."""
        with self.session_factory() as s:
            return (
                s.query(IdempotencyRecord)
                .filter(IdempotencyRecord.key == key)
                .first()
            )

    def begin(
        self, key: str, operation: str, request_hash: Optional[str] = None
    ) -> Tuple[Optional[IdempotencyRecord], bool]:
        """
        Atomically ensure an idempotency row exists.
        Returns (record, created):
          - created == True  -> this call inserted the IN_PROGRESS row and owns the operation
          - created == False -> row already existed (duplicate / concurrent submission)

        The INSERT is committed on its own short-lived session so a second
        request sees it immediately.
        """
        created = False
        try:
            with self.session_factory() as s:
                s.add(
                    IdempotencyRecord(
                        key=key,
                        operation=operation,
                        request_hash=request_hash,
                        status=IdempotencyStatus.IN_PROGRESS,
                    )
                )
                s.commit()
                created = True
        except IntegrityError:
            log.debug("begin(): key %r already present", key)
        return self.get(key), created

    def _finish(
        self, key: str, status: IdempotencyStatus, response_body=None, error=None, return_id=None
    ):
        with self.session_factory() as s:
            rec = s.query(IdempotencyRecord).filter(IdempotencyRecord.key == key).first()
            if rec is None:
                raise RuntimeError(f"Idempotency record missing for key: {key}")
            rec.status = status
            if response_body is not None:
                rec.response_body = response_body
            if error is not None:
                rec.last_error = error[:1024]
            if return_id is not None:
                rec.return_id = return_id
            s.commit()
        log.debug("key=%r -> %s", key, status.value)

    def mark_completed(self, key: str, response_body: dict, return_id: Optional[int] = None):
        self._finish(
            key, IdempotencyStatus.COMPLETED, response_body=response_body, return_id=return_id
        )

    def mark_failed(self, key: str, error_message: str):
        self._finish(key, IdempotencyStatus.FAILED, error=error_message)

    def release(self, key: str):
        """Drop a FAILED record so the same key can be retried."""
        with self.session_factory() as s:
            s.query(IdempotencyRecord).filter(
                IdempotencyRecord.key == key,
                IdempotencyRecord.status == IdempotencyStatus.FAILED,
            ).delete()
            s.commit()
