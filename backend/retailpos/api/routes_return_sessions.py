"""
HTTP front for the in-memory return/exchange workflow.

A cashier opens a session, drives it step by step and finally confirms. Every
endpoint answers with the workflow snapshot so the client can re-render from a
single source of truth.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from retailpos.adapters.sql_collaborators import sql_collaborators
from retailpos.services.return_workflow import ReturnWorkflow
from retailpos.services.session_registry import ReturnSessionRegistry
from retailpos.utils.result import Err, ErrorCode

router = APIRouter(prefix="/api/return-sessions", tags=["return-sessions"])

registry = ReturnSessionRegistry(lambda: ReturnWorkflow(sql_collaborators()))

_STATUS_FOR = {
    ErrorCode.VALIDATION: 400,
    ErrorCode.INVALID_QUANTITY: 400,
    ErrorCode.INELIGIBLE_BILL: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INSUFFICIENT_STOCK: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.BUSY: 409,
    ErrorCode.INACTIVE: 409,
}


class SelectBillIn(BaseModel):
    bill_id: int


class QuantityIn(BaseModel):
    quantity: int


class AddProductIn(BaseModel):
    product_id: int


class ScanIn(BaseModel):
    barcode: str


class DetailsIn(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    return_reason: Optional[str] = None
    notes: Optional[str] = None


def _workflow(session_id: str) -> ReturnWorkflow:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Return session not found")


def _check(res):
    if isinstance(res, Err):
        detail = res.detail
        if isinstance(detail, list):
            detail = [d.model_dump() if isinstance(d, BaseModel) else d for d in detail]
        raise HTTPException(
            status_code=_STATUS_FOR.get(res.code, 500),
            detail={
                "code": res.code,
                "message": res.message,
                "errors": res.all_errors,
                "detail": detail,
            },
        )
    return res.value


@router.post("", summary="Start a return/exchange session")
def open_session():
    session_id, wf = registry.create()
    return {"session_id": session_id, **wf.snapshot()}


@router.get("/{session_id}")
def get_session(session_id: str):
    return _workflow(session_id).snapshot()


@router.get("/{session_id}/bills")
async def search_bills(session_id: str, q: str = Query("")):
    wf = _workflow(session_id)
    bills = _check(await wf.search_bills(q))
    return {"results": [b.model_dump(mode="json") for b in bills]}


@router.post("/{session_id}/bill")
async def select_bill(session_id: str, payload: SelectBillIn):
    wf = _workflow(session_id)
    _check(await wf.select_bill(payload.bill_id))
    return wf.snapshot()


@router.put("/{session_id}/return-items/{index}")
def set_return_quantity(session_id: str, index: int, payload: QuantityIn):
    wf = _workflow(session_id)
    _check(wf.set_return_quantity(index, payload.quantity))
    return wf.snapshot()


@router.delete("/{session_id}/return-items/{index}")
def remove_return_item(session_id: str, index: int):
    wf = _workflow(session_id)
    _check(wf.remove_return_item(index))
    return wf.snapshot()


@router.get("/{session_id}/products")
async def search_products(session_id: str, q: str = Query("")):
    wf = _workflow(session_id)
    products = _check(await wf.search_products(q))
    return {"results": [p.model_dump() for p in products]}


@router.post("/{session_id}/exchange-items")
async def add_exchange_product(session_id: str, payload: AddProductIn):
    wf = _workflow(session_id)
    _check(await wf.add_exchange_product(payload.product_id))
    return wf.snapshot()


@router.post("/{session_id}/scan")
async def scan(session_id: str, payload: ScanIn):
    wf = _workflow(session_id)
    _check(await wf.handle_scan(payload.barcode))
    return wf.snapshot()


@router.put("/{session_id}/exchange-items/{index}")
def set_exchange_quantity(session_id: str, index: int, payload: QuantityIn):
    wf = _workflow(session_id)
    _check(wf.set_exchange_quantity(index, payload.quantity))
    return wf.snapshot()


@router.delete("/{session_id}/exchange-items/{index}")
def remove_exchange_item(session_id: str, index: int):
    wf = _workflow(session_id)
    _check(wf.remove_exchange_item(index))
    return wf.snapshot()


@router.put("/{session_id}/details")
def update_details(session_id: str, payload: DetailsIn):
    wf = _workflow(session_id)
    _check(wf.update_details(**payload.model_dump(exclude_unset=True)))
    return wf.snapshot()


@router.get("/{session_id}/summary")
def get_summary(session_id: str):
    summary = _workflow(session_id).summary()
    return {**summary.model_dump(), "balance_type": summary.balance_type}


@router.post("/{session_id}/advance")
def advance(session_id: str):
    wf = _workflow(session_id)
    _check(wf.advance())
    return wf.snapshot()


@router.post("/{session_id}/back")
def back(session_id: str):
    wf = _workflow(session_id)
    _check(wf.back())
    return wf.snapshot()


@router.post("/{session_id}/confirm")
async def confirm(session_id: str):
    wf = _workflow(session_id)
    outcome = _check(await wf.confirm())
    return {
        "return_id": outcome.return_id,
        "summary": {**outcome.summary.model_dump(), "balance_type": outcome.summary.balance_type},
        "exchange_bill_number": outcome.exchange_bill_number,
        "warnings": outcome.warnings,
        "state": wf.state.value,
    }


@router.post("/{session_id}/cancel")
def cancel(session_id: str):
    _check(_workflow(session_id).cancel())
    registry.discard(session_id)
    return {"ok": True}
