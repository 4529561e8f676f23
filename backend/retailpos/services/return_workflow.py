"""
Four-step return/exchange workflow.

    SEARCH_BILL -> SELECT_RETURN_ITEMS -> SELECT_EXCHANGE_ITEMS -> CONFIRM

The workflow holds everything the cashier has entered in memory until
``confirm()``; nothing is written before that, so ``cancel()`` only has to
forget state. ``back()`` never discards data entered on later steps.

All collaborator calls go through ``Result`` values. Operations that can fail
return ``Ok``/``Err`` as well, so a caller (the HTTP layer) only has to branch
on ``.ok``.
"""
import enum
from dataclasses import dataclass, field
from typing import AsyncIterable, List, Optional

from retailpos.config import settings
from retailpos.schemas.bill_schema import BillCreate, BillItemIn, BillOut
from retailpos.schemas.product_schema import ProductOut
from retailpos.schemas.return_schema import LineItem, ReturnProcessData, ReturnSummary
from retailpos.services.collaborators import Collaborators
from retailpos.services.money import line_total
from retailpos.services.return_summary import calculate_summary
from retailpos.services.return_validation import validate_return_data
from retailpos.services.stock_check import StockChecker, describe_shortfalls
from retailpos.utils.logging import get_logger
from retailpos.utils.result import ErrorCode, Ok, Result, err

log = get_logger(__name__)


class WorkflowStep(enum.IntEnum):
    SEARCH_BILL = 1
    SELECT_RETURN_ITEMS = 2
    SELECT_EXCHANGE_ITEMS = 3
    CONFIRM = 4


class WorkflowState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUBMITTED = "SUBMITTED"
    CANCELLED = "CANCELLED"


@dataclass
class DraftLine:
    """An editable line; ``total_price`` is always derived, never stored."""

    product_name: str
    unit_price: float
    quantity: int
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    # original quantity on the source bill (return lines only)
    max_quantity: Optional[int] = None

    @property
    def total_price(self) -> float:
        return line_total(self.quantity, self.unit_price)

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            product_name=self.product_name,
            product_code=self.product_code,
            barcode=self.barcode,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
        )


@dataclass
class SubmissionOutcome:
    return_id: int
    summary: ReturnSummary
    payload: ReturnProcessData
    exchange_bill_number: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def build_exchange_bill(payload: ReturnProcessData, summary: ReturnSummary) -> BillCreate:
    """Sale-shaped record of the exchange so it shows up in ordinary bill history."""
    return BillCreate(
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        subtotal=summary.total_exchange_value,
        total_amount=summary.total_exchange_value,
        payment_mode="EXCHANGE",
        notes=f"Return: {payload.return_reason or 'No reason provided'}",
        is_return=True,
        original_bill_id=payload.original_bill_id,
        items=[BillItemIn(**item.model_dump()) for item in payload.exchange_items],
    )


_GATE_MESSAGES = {
    WorkflowStep.SEARCH_BILL: "Please select a bill to return",
    WorkflowStep.SELECT_RETURN_ITEMS: "Select at least one item to return",
    WorkflowStep.SELECT_EXCHANGE_ITEMS: "Add at least one item for exchange",
    WorkflowStep.CONFIRM: "Already on the last step; confirm to submit",
}


class ReturnWorkflow:
    def __init__(self, collaborators: Collaborators, min_query_chars: int = None):
        self.collab = collaborators
        self.stock_checker = StockChecker(collaborators.products)
        self.min_query_chars = (
            settings.BILL_SEARCH_MIN_CHARS if min_query_chars is None else min_query_chars
        )
        self._reset()

    def _reset(self):
        self.step = WorkflowStep.SEARCH_BILL
        self.state = WorkflowState.ACTIVE
        self.search_query = ""
        self.search_results: List[BillOut] = []
        self.product_results: List[ProductOut] = []
        self.bill: Optional[BillOut] = None
        self.return_lines: List[DraftLine] = []
        self.exchange_lines: List[DraftLine] = []
        self.customer_name: Optional[str] = None
        self.customer_phone: Optional[str] = None
        self.return_reason: Optional[str] = None
        self.notes: Optional[str] = None
        self.submitting = False
        self.last_errors: List[str] = []
        self.outcome: Optional[SubmissionOutcome] = None

    # -- guards ---------------------------------------------------------------

    def _check(self, *steps: WorkflowStep) -> Optional[Result]:
        if self.state != WorkflowState.ACTIVE:
            return err(ErrorCode.INACTIVE, f"Return workflow is {self.state.value.lower()}")
        if self.submitting:
            return err(ErrorCode.BUSY, "A submission is already in progress")
        if steps and self.step not in steps:
            return err(
                ErrorCode.INVALID_TRANSITION,
                f"Not available on step {int(self.step)} ({self.step.name})",
            )
        return None

    def _fail(self, res: Result) -> Result:
        self.last_errors = list(res.all_errors)
        return res

    # -- step 1: source bill ------------------------------------------------------

    async def search_bills(self, query: str) -> Result[List[BillOut]]:
        blocked = self._check(WorkflowStep.SEARCH_BILL)
        if blocked:
            return blocked
        self.search_query = query
        if len(query.strip()) < self.min_query_chars:
            self.search_results = []
            return Ok([])
        res = await self.collab.bills.search(query)
        if not res.ok:
            return self._fail(res)
        # a return cannot itself be returned
        self.search_results = [b for b in res.value if not b.is_return]
        return Ok(self.search_results)

    async def select_bill(self, bill_id: int) -> Result[BillOut]:
        blocked = self._check(WorkflowStep.SEARCH_BILL)
        if blocked:
            return blocked
        res = await self.collab.bills.get_by_id(bill_id)
        if not res.ok:
            return self._fail(res)
        bill = res.value
        if bill.is_return:
            return self._fail(
                err(ErrorCode.INELIGIBLE_BILL, f"Bill {bill.bill_number} is a return record and cannot be returned")
            )

        if self.bill is None or self.bill.id != bill.id:
            self.return_lines = [
                DraftLine(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    product_code=item.product_code,
                    barcode=item.barcode,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    max_quantity=item.quantity,
                )
                for item in bill.items
            ]
            self.customer_name = bill.customer_name
            self.customer_phone = bill.customer_phone
        self.bill = bill
        self.step = WorkflowStep.SELECT_RETURN_ITEMS
        self.last_errors = []
        log.debug("bill %s selected with %d lines", bill.bill_number, len(self.return_lines))
        return Ok(bill)

    # -- step 2: return lines -----------------------------------------------------

    def _line(self, lines: List[DraftLine], index: int, label: str) -> Result[DraftLine]:
        if index < 0 or index >= len(lines):
            return err(ErrorCode.NOT_FOUND, f"No {label} item at position {index + 1}")
        return Ok(lines[index])

    def set_return_quantity(self, index: int, quantity: int) -> Result[DraftLine]:
        blocked = self._check(WorkflowStep.SELECT_RETURN_ITEMS)
        if blocked:
            return blocked
        res = self._line(self.return_lines, index, "return")
        if not res.ok:
            return res
        line = res.value
        if quantity < 0:
            return err(ErrorCode.INVALID_QUANTITY, "Quantity cannot be negative")
        if line.max_quantity is not None and quantity > line.max_quantity:
            return err(
                ErrorCode.INVALID_QUANTITY,
                f"Cannot return more than purchased for {line.product_name} (max {line.max_quantity})",
            )
        line.quantity = quantity
        return Ok(line)

    def remove_return_item(self, index: int) -> Result[DraftLine]:
        blocked = self._check(WorkflowStep.SELECT_RETURN_ITEMS)
        if blocked:
            return blocked
        res = self._line(self.return_lines, index, "return")
        if res.ok:
            self.return_lines.pop(index)
        return res

    # -- step 3: exchange lines ---------------------------------------------------

    async def search_products(self, query: str) -> Result[List[ProductOut]]:
        blocked = self._check(WorkflowStep.SELECT_EXCHANGE_ITEMS)
        if blocked:
            return blocked
        if len(query.strip()) < self.min_query_chars:
            self.product_results = []
            return Ok([])
        res = await self.collab.products.search(query)
        if not res.ok:
            return self._fail(res)
        self.product_results = res.value
        return res

    def _add_product(self, product: ProductOut) -> DraftLine:
        for line in self.exchange_lines:
            if line.product_id is not None and line.product_id == product.id:
                line.quantity += 1
                return line
        line = DraftLine(
            product_id=product.id,
            product_name=product.name,
            product_code=product.product_code,
            barcode=product.barcode,
            quantity=1,
            unit_price=product.selling_price,
        )
        self.exchange_lines.append(line)
        return line

    async def add_exchange_product(self, product_id: int) -> Result[DraftLine]:
        blocked = self._check(WorkflowStep.SELECT_EXCHANGE_ITEMS)
        if blocked:
            return blocked
        res = await self.collab.products.get_by_id(product_id)
        if not res.ok:
            return self._fail(res)
        return Ok(self._add_product(res.value))

    async def handle_scan(self, barcode: str) -> Result[DraftLine]:
        """A scanned code behaves exactly like picking the product by hand."""
        blocked = self._check(WorkflowStep.SELECT_EXCHANGE_ITEMS)
        if blocked:
            return blocked
        res = await self.collab.products.find_by_barcode(barcode)
        if not res.ok:
            log.info("scan %r not resolved: %s", barcode, res.message)
            return self._fail(res)
        return Ok(self._add_product(res.value))

    async def consume_scans(self, scans: AsyncIterable[str]) -> List[Result]:
        """Feed a stream of scanned codes; codes arriving outside step 3 are ignored."""
        results = []
        async for code in scans:
            if self.state != WorkflowState.ACTIVE:
                break
            if self.step != WorkflowStep.SELECT_EXCHANGE_ITEMS:
                log.debug("scan %r ignored on step %s", code, self.step.name)
                continue
            results.append(await self.handle_scan(code))
        return results

    def set_exchange_quantity(self, index: int, quantity: int) -> Result[Optional[DraftLine]]:
        """Set the quantity of an exchange line; zero or less removes it."""
        blocked = self._check(WorkflowStep.SELECT_EXCHANGE_ITEMS)
        if blocked:
            return blocked
        res = self._line(self.exchange_lines, index, "exchange")
        if not res.ok:
            return res
        if quantity <= 0:
            self.exchange_lines.pop(index)
            return Ok(None)
        res.value.quantity = quantity
        return res

    def remove_exchange_item(self, index: int) -> Result[DraftLine]:
        blocked = self._check(WorkflowStep.SELECT_EXCHANGE_ITEMS)
        if blocked:
            return blocked
        res = self._line(self.exchange_lines, index, "exchange")
        if res.ok:
            self.exchange_lines.pop(index)
        return res

    # -- details & summary --------------------------------------------------------

    def update_details(
        self,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        return_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Result[None]:
        blocked = self._check()
        if blocked:
            return blocked
        if customer_name is not None:
            self.customer_name = customer_name
        if customer_phone is not None:
            self.customer_phone = customer_phone
        if return_reason is not None:
            self.return_reason = return_reason
        if notes is not None:
            self.notes = notes
        return Ok(None)

    def summary(self) -> ReturnSummary:
        return calculate_summary(self.return_lines, self.exchange_lines)

    # -- navigation ---------------------------------------------------------------

    def can_advance(self) -> bool:
        if self.state != WorkflowState.ACTIVE:
            return False
        if self.step == WorkflowStep.SEARCH_BILL:
            return self.bill is not None
        if self.step == WorkflowStep.SELECT_RETURN_ITEMS:
            return any(line.quantity > 0 for line in self.return_lines)
        if self.step == WorkflowStep.SELECT_EXCHANGE_ITEMS:
            return len(self.exchange_lines) > 0
        return False

    def advance(self) -> Result[WorkflowStep]:
        blocked = self._check()
        if blocked:
            return blocked
        if not self.can_advance():
            return self._fail(err(ErrorCode.INVALID_TRANSITION, _GATE_MESSAGES[self.step]))
        self.step = WorkflowStep(self.step + 1)
        self.last_errors = []
        return Ok(self.step)

    def back(self) -> Result[WorkflowStep]:
        blocked = self._check()
        if blocked:
            return blocked
        if self.step == WorkflowStep.SEARCH_BILL:
            return err(ErrorCode.INVALID_TRANSITION, "Already on the first step")
        self.step = WorkflowStep(self.step - 1)
        return Ok(self.step)

    def cancel(self) -> Result[None]:
        """Drop everything entered so far. Nothing has been persisted, so nothing is undone."""
        if self.submitting:
            return err(ErrorCode.BUSY, "A submission is already in progress")
        self._reset()
        self.state = WorkflowState.CANCELLED
        return Ok(None)

    # -- submission ---------------------------------------------------------------

    def _payload(self, return_items: List[LineItem], exchange_items: List[LineItem]) -> ReturnProcessData:
        return ReturnProcessData(
            original_bill_id=self.bill.id,
            customer_name=self.customer_name or self.bill.customer_name,
            customer_phone=self.customer_phone or self.bill.customer_phone,
            return_reason=self.return_reason,
            notes=self.notes,
            return_items=return_items,
            exchange_items=exchange_items,
        )

    async def confirm(self) -> Result[SubmissionOutcome]:
        """
        Validate, re-check stock and submit.

        Any failure leaves the workflow on the confirm step with all data in
        place so the cashier can fix it and retry. Once the return is saved the
        exchange bill is written as a second, best-effort step: if that fails
        the return stands and the failure comes back as a warning.
        """
        blocked = self._check(WorkflowStep.CONFIRM)
        if blocked:
            return blocked
        if self.bill is None:
            return self._fail(err(ErrorCode.VALIDATION, _GATE_MESSAGES[WorkflowStep.SEARCH_BILL]))

        bill_id = self.bill.id
        self.submitting = True
        try:
            return_items = [l.to_line_item() for l in self.return_lines if l.quantity > 0]
            exchange_items = [l.to_line_item() for l in self.exchange_lines if l.quantity > 0]

            validation = validate_return_data(bill_id, return_items, exchange_items)
            if not validation.is_valid:
                log.warning("return for bill %s failed validation: %s", bill_id, validation.errors)
                return self._fail(
                    err(ErrorCode.VALIDATION, validation.errors[0], validation.errors)
                )

            stock = await self.stock_checker.check_stock(exchange_items)
            if not stock.is_valid:
                message = describe_shortfalls(stock)
                return self._fail(
                    err(
                        ErrorCode.INSUFFICIENT_STOCK,
                        message,
                        [message],
                        detail=stock.insufficient_stock,
                    )
                )

            payload = self._payload(return_items, exchange_items)
            created = await self.collab.returns.create(payload)
            if not created.ok:
                log.error("return for bill %s not saved: %s", bill_id, created.all_errors)
                return self._fail(created)

            summary = calculate_summary(payload.return_items, payload.exchange_items)
            outcome = SubmissionOutcome(
                return_id=created.value.return_id, summary=summary, payload=payload
            )
            # the return is committed; nothing after this point may allow a resubmit
            self.state = WorkflowState.SUBMITTED
            self.outcome = outcome
            self.last_errors = []
        except Exception as e:
            log.exception("unexpected error submitting return for bill %s", bill_id)
            return self._fail(err(ErrorCode.PERSISTENCE, f"Error processing return: {e}"))
        finally:
            if self.state is not WorkflowState.SUBMITTED:
                self.submitting = False

        try:
            bill_res = await self.collab.bill_store.create(build_exchange_bill(payload, summary))
        except Exception as e:
            log.exception("exchange bill for return %s failed", outcome.return_id)
            bill_res = err(ErrorCode.PERSISTENCE, str(e))
        finally:
            self.submitting = False

        if bill_res.ok:
            outcome.exchange_bill_number = bill_res.value.bill_number
        else:
            warning = (
                f"Return {outcome.return_id} saved, but the exchange bill could not be recorded: "
                f"{bill_res.message}"
            )
            log.error(warning)
            outcome.warnings.append(warning)
        return Ok(outcome)

    # -- presentation ---------------------------------------------------------------

    def snapshot(self) -> dict:
        def _line(l: DraftLine) -> dict:
            d = l.to_line_item().model_dump()
            d["max_quantity"] = l.max_quantity
            return d

        return {
            "step": int(self.step),
            "step_name": self.step.name,
            "state": self.state.value,
            "can_advance": self.can_advance(),
            "submitting": self.submitting,
            "search_query": self.search_query,
            "bill": self.bill.model_dump(mode="json") if self.bill else None,
            "return_items": [_line(l) for l in self.return_lines],
            "exchange_items": [_line(l) for l in self.exchange_lines],
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "return_reason": self.return_reason,
            "notes": self.notes,
            "summary": self.summary().model_dump(),
            "errors": list(self.last_errors),
        }
