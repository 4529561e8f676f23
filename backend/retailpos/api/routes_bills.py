from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from retailpos.config import settings
from retailpos.db import get_db
from retailpos.schemas.bill_schema import BillCreate, BillCreated, BillOut
from retailpos.services.bill_service import BillService, BillServiceException

router = APIRouter(tags=["bills"])


@router.get("/search", summary="Search bills", response_model=List[BillOut])
def search_bills(q: str = Query("", description="bill number, customer, phone or amount"), db: Session = Depends(get_db)):
    if len(q.strip()) < settings.BILL_SEARCH_MIN_CHARS:
        return []
    return BillService(db).search_bills(q.strip())


@router.get("/{bill_id}", summary="Get bill with its items", response_model=BillOut)
def get_bill(bill_id: int, db: Session = Depends(get_db)):
    try:
        return BillService(db).get_bill(bill_id)
    except BillServiceException as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", summary="Create bill", response_model=BillCreated)
def create_bill(payload: BillCreate, db: Session = Depends(get_db)):
    try:
        return BillService(db).create_bill(payload)
    except BillServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))
