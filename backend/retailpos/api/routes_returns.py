from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from retailpos.adapters.sql_collaborators import SqlSettingsProvider
from retailpos.db import get_db
from retailpos.models.return_transaction import ReturnStatus
from retailpos.schemas.return_schema import (
    ReturnCreated,
    ReturnFilters,
    ReturnOut,
    ReturnProcessData,
    ReturnStats,
    StatusUpdateIn,
)
from retailpos.services.collaborators import SettingsProvider
from retailpos.services.receipt_service import build_return_receipt
from retailpos.services.return_history import compute_return_stats, summarize_filtered
from retailpos.services.return_service import (
    IdempotencyConflict,
    InsufficientStockError,
    ReturnNotFound,
    ReturnService,
    ReturnServiceException,
    ReturnStatusError,
    ReturnValidationError,
)
from retailpos.utils.logging import get_logger

log = get_logger("returns")

router = APIRouter(prefix="/api/returns", tags=["returns"])


def get_settings_provider() -> SettingsProvider:
    return SqlSettingsProvider()


def _http_error(e: ReturnServiceException) -> HTTPException:
    if isinstance(e, ReturnValidationError):
        return HTTPException(status_code=400, detail={"message": str(e), "errors": e.errors})
    if isinstance(e, InsufficientStockError):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(e),
                "insufficient_stock": [s.model_dump() for s in e.shortfalls],
            },
        )
    if isinstance(e, ReturnNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ReturnStatusError, IdempotencyConflict)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("", summary="Process a return/exchange", response_model=ReturnCreated)
def create_return(
    payload: ReturnProcessData,
    db: Session = Depends(get_db),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    svc = ReturnService(db)
    try:
        return svc.create_return(payload, idempotency_key=idempotency_key)
    except ReturnServiceException as e:
        log.warning("return for bill %s rejected: %s", payload.original_bill_id, e)
        raise _http_error(e)


@router.get("", summary="Return history")
def list_returns(
    search_query: Optional[str] = Query(None, alias="q"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[ReturnStatus] = None,
    customer_name: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    filters = ReturnFilters(
        search_query=search_query,
        date_from=date_from,
        date_to=date_to,
        status=status,
        customer_name=customer_name,
    )
    rows = ReturnService(db).list_returns(filters, limit=limit)
    return {
        "items": [ReturnOut.model_validate(rt) for rt in rows],
        "summary": summarize_filtered(rows),
    }


@router.get("/stats", summary="Dashboard figures", response_model=ReturnStats)
def return_stats(db: Session = Depends(get_db)):
    return compute_return_stats(ReturnService(db).list_returns(limit=None))


@router.get("/{return_id}", response_model=ReturnOut)
def get_return(return_id: int, db: Session = Depends(get_db)):
    try:
        return ReturnService(db).get_return(return_id)
    except ReturnServiceException as e:
        raise _http_error(e)


@router.put("/{return_id}/status", response_model=ReturnOut)
def update_status(return_id: int, payload: StatusUpdateIn, db: Session = Depends(get_db)):
    try:
        return ReturnService(db).update_status(return_id, payload.status)
    except ReturnServiceException as e:
        raise _http_error(e)


@router.get("/{return_id}/receipt", summary="Printable receipt data")
def get_receipt(
    return_id: int,
    db: Session = Depends(get_db),
    shop: SettingsProvider = Depends(get_settings_provider),
):
    try:
        rt = ReturnService(db).get_return(return_id)
    except ReturnServiceException as e:
        raise _http_error(e)
    return build_return_receipt(rt, rt.original_bill, shop.get_shop_info())
