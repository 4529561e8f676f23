from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from retailpos.db import get_db
from retailpos.repositories.product_repo import ProductRepository
from retailpos.schemas.product_schema import ProductOut

router = APIRouter(tags=["catalogue"])


@router.get("", summary="List products")
def list_products(
    q: Optional[str] = Query(None, description="search term"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    repo = ProductRepository(db)
    items, total = repo.list(q=q, page=page, size=size)
    return {
        "items": [ProductOut.model_validate(p) for p in items],
        "total": total,
    }


@router.get("/barcode/{code}", summary="Look up an active product by barcode", response_model=ProductOut)
def get_by_barcode(code: str, db: Session = Depends(get_db)):
    p = ProductRepository(db).get_by_barcode(code)
    if not p:
        raise HTTPException(status_code=404, detail=f"No product with barcode {code}")
    return p


@router.get("/{product_id}", summary="Get product", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    p = ProductRepository(db).get(product_id)
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return p
