import hashlib
import json
from typing import List, Optional

from sqlalchemy.orm import Session

from retailpos.models.idempotency import IdempotencyStatus
from retailpos.models.return_transaction import (
    ALLOWED_TRANSITIONS,
    ReturnStatus,
    ReturnTransaction,
)
from retailpos.repositories.bill_repo import BillRepository
from retailpos.repositories.idempotency_repo import IdempotencyRepository
from retailpos.repositories.product_repo import ProductRepository
from retailpos.repositories.return_repo import ReturnRepository
from retailpos.schemas.return_schema import (
    LineItem,
    ReturnFilters,
    ReturnProcessData,
    StockShortfall,
)
from retailpos.services.money import line_total
from retailpos.services.return_history import filter_returns
from retailpos.services.return_summary import calculate_summary
from retailpos.services.return_validation import validate_return_data
from retailpos.utils.logging import get_logger
from retailpos.utils.transactions import smart_transaction

log = get_logger(__name__)


class ReturnServiceException(Exception):
    pass


class ReturnNotFound(ReturnServiceException):
    pass


class ReturnValidationError(ReturnServiceException):
    def __init__(self, errors: List[str]):
        super().__init__(errors[0] if errors else "Invalid return data")
        self.errors = errors


class InsufficientStockError(ReturnServiceException):
    def __init__(self, shortfalls: List[StockShortfall]):
        names = ", ".join(
            f"{s.product_name} (Requested: {s.requested}, Available: {s.available})"
            for s in shortfalls
        )
        super().__init__(f"Insufficient stock: {names}")
        self.shortfalls = shortfalls


class ReturnStatusError(ReturnServiceException):
    pass


class IdempotencyConflict(ReturnServiceException):
    pass


def _recompute(line: LineItem) -> LineItem:
    return line.model_copy(update={"total_price": line_total(line.quantity, line.unit_price)})


def _fingerprint(data: ReturnProcessData) -> str:
    body = json.dumps(data.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


class ReturnService:
    def __init__(self, db: Session):
        self.db = db
        self.returns = ReturnRepository(db)
        self.bills = BillRepository(db)
        self.products = ProductRepository(db)
        self.idem_repo = IdempotencyRepository()

    def create_return(
        self, data: ReturnProcessData, idempotency_key: Optional[str] = None
    ) -> dict:
        """
        Persist a return transaction with its return and exchange lines.

        Returned products go back into stock and exchange products are taken
        out, all in one transaction. If any exchange line cannot be covered the
        whole return is rolled back and ``InsufficientStockError`` raised.
        With an ``idempotency_key`` a repeated submission returns the first
        response instead of creating a second record.
        """
        idem_key = None
        if idempotency_key:
            idem_key = f"return.create:{idempotency_key}"
            request_hash = _fingerprint(data)
            rec, created = self.idem_repo.begin(
                idem_key, operation="return_create", request_hash=request_hash
            )
            if not created and rec and rec.status == IdempotencyStatus.FAILED:
                # previous attempt failed; this one may retry, corrected or not
                self.idem_repo.release(idem_key)
                rec, created = self.idem_repo.begin(
                    idem_key, operation="return_create", request_hash=request_hash
                )
            if not created:
                if rec and rec.request_hash and rec.request_hash != request_hash:
                    raise IdempotencyConflict(
                        "Idempotency-Key was already used for a different return"
                    )
                if rec and rec.status == IdempotencyStatus.COMPLETED and rec.response_body:
                    log.info("duplicate submission %r, replaying response", idempotency_key)
                    return rec.response_body
                raise ReturnServiceException(
                    "A return with this idempotency key is already being processed"
                )

        try:
            resp = self._create(data)
        except Exception as e:
            if idem_key:
                self.idem_repo.mark_failed(idem_key, str(e))
            raise

        if idem_key:
            self.idem_repo.mark_completed(idem_key, resp, return_id=resp["return_id"])
        return resp

    def _create(self, data: ReturnProcessData) -> dict:
        validation = validate_return_data(
            data.original_bill_id, data.return_items, data.exchange_items
        )
        if not validation.is_valid:
            log.warning("rejected return for bill %s: %s", data.original_bill_id, validation.errors)
            raise ReturnValidationError(validation.errors)

        return_lines = [_recompute(l) for l in data.return_items]
        exchange_lines = [_recompute(l) for l in data.exchange_items]
        summary = calculate_summary(return_lines, exchange_lines)

        with smart_transaction(self.db):
            bill = self.bills.get(data.original_bill_id)
            if not bill:
                raise ReturnNotFound("Original bill not found")
            if bill.is_return:
                raise ReturnServiceException("A return bill cannot be returned")

            rt = self.returns.add(
                original_bill_id=bill.id,
                return_lines=return_lines,
                exchange_lines=exchange_lines,
                totals=summary.model_dump(),
                customer_name=data.customer_name or bill.customer_name,
                customer_phone=data.customer_phone or bill.customer_phone,
                return_reason=data.return_reason or None,
                notes=data.notes or None,
            )

            for line in return_lines:
                if line.product_id and not self.products.restock(line.product_id, line.quantity):
                    log.warning(
                        "returned product %s (id=%s) no longer in catalog; not restocked",
                        line.product_name,
                        line.product_id,
                    )

            shortfalls = []
            for line in exchange_lines:
                if not line.product_id:
                    continue
                if self.products.decrement_if_available(line.product_id, line.quantity):
                    continue
                product = self.products.get(line.product_id)
                if product is None:
                    log.warning(
                        "exchange product %s (id=%s) missing from catalog; stock not adjusted",
                        line.product_name,
                        line.product_id,
                    )
                    continue
                shortfalls.append(
                    StockShortfall(
                        product_name=line.product_name,
                        requested=line.quantity,
                        available=product.stock_quantity,
                    )
                )
            if shortfalls:
                # raising inside the block rolls back the return and every stock movement
                raise InsufficientStockError(shortfalls)
            return_id = rt.id

        log.info(
            "return %s created for bill %s: return=%.2f exchange=%.2f balance=%.2f",
            return_id,
            data.original_bill_id,
            summary.total_return_value,
            summary.total_exchange_value,
            summary.balance_amount,
        )
        return {
            "return_id": return_id,
            "total_return_value": summary.total_return_value,
            "total_exchange_value": summary.total_exchange_value,
            "balance_amount": summary.balance_amount,
        }

    def get_return(self, return_id: int) -> ReturnTransaction:
        rt = self.returns.get(return_id)
        if not rt:
            raise ReturnNotFound("Return not found")
        return rt

    def list_returns(
        self, filters: Optional[ReturnFilters] = None, limit: Optional[int] = 100
    ) -> List[ReturnTransaction]:
        if not (filters and (filters.search_query or filters.customer_name)):
            return self.returns.list(filters, limit=limit)
        # text filters run in Python, so the limit applies to the filtered rows
        rows = filter_returns(self.returns.list(filters, limit=None), filters)
        return rows if limit is None else rows[:limit]

    def update_status(self, return_id: int, new_status: str) -> ReturnTransaction:
        """Move a PENDING return to COMPLETED or CANCELLED; any other move is rejected."""
        try:
            target = ReturnStatus(new_status)
        except ValueError:
            raise ReturnStatusError(f"Invalid status: {new_status}")

        with smart_transaction(self.db):
            rt = self.returns.get_for_update(return_id)
            if not rt:
                raise ReturnNotFound("Return not found")
            current = ReturnStatus(rt.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise ReturnStatusError(
                    f"Cannot change return status from {current.value} to {target.value}"
                )
            rt.status = target.value

        log.info("return %s: %s -> %s", return_id, current.value, target.value)
        return self.get_return(return_id)
