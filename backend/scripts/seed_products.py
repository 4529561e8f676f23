#!/usr/bin/env python3
"""
Seed the catalogue (and optionally a couple of sample bills) from a JSON file.

The file may be a list of product entries or an object with an ``items`` list.
A small set of demo products is always ensured so the returns screens have
something to work with.

Usage:
    python scripts/seed_products.py --file catalogue.json --with-bills
"""
import argparse
import json
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from retailpos.db import SessionLocal, init_db
from retailpos.repositories.product_repo import ProductRepository
from retailpos.schemas.bill_schema import BillCreate, BillItemIn
from retailpos.services.bill_service import BillService
from retailpos.services.money import line_total
from retailpos.utils.logging import get_logger

log = get_logger("seed")

DEMO_PRODUCTS = [
    {"name": "Cotton Shirt", "product_code": "SHIRT-01", "barcode": "8900000000011", "selling_price": 100.0, "stock_quantity": 10},
    {"name": "Denim Jeans", "product_code": "JEANS-01", "barcode": "8900000000028", "selling_price": 150.0, "stock_quantity": 5},
    {"name": "Leather Belt", "product_code": "BELT-01", "barcode": "8900000000035", "selling_price": 80.0, "stock_quantity": 3},
    {"name": "Sneakers", "product_code": "SHOE-01", "barcode": "8900000000042", "selling_price": 200.0, "stock_quantity": 2},
]


def _normalize_entry(entry: dict) -> dict:
    """Accept a few common spellings of the product fields."""
    price = entry.get("selling_price", entry.get("price", 0))
    stock = entry.get("stock_quantity", entry.get("stock", entry.get("quantity", 0)))
    try:
        price = float(price or 0)
    except (TypeError, ValueError):
        price = 0.0
    try:
        stock = int(stock or 0)
    except (TypeError, ValueError):
        stock = 0
    return {
        "name": entry.get("name") or entry.get("title") or "",
        "product_code": entry.get("product_code") or entry.get("sku"),
        "barcode": entry.get("barcode"),
        "selling_price": price,
        "stock_quantity": stock,
    }


def load_entries(path: str = None) -> list:
    entries = []
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("items", list(data.values()))
        entries = [_normalize_entry(e) for e in data if isinstance(e, dict)]

    existing = {e["barcode"] for e in entries if e.get("barcode")}
    entries.extend(p for p in DEMO_PRODUCTS if p["barcode"] not in existing)
    return entries


def seed(entries: list, with_bills: bool = False):
    db = SessionLocal()
    repo = ProductRepository(db)
    products = []
    try:
        for entry in entries:
            if not entry.get("name"):
                continue
            products.append(repo.create_or_update(**entry))
        db.commit()
        log.info("seeded %d products", len(products))

        if with_bills and len(products) >= 2:
            svc = BillService(db)
            for p in products[:2]:
                created = svc.create_bill(
                    BillCreate(
                        customer_name="Demo Customer",
                        customer_phone="9999999999",
                        total_amount=line_total(1, p.selling_price),
                        items=[
                            BillItemIn(
                                product_id=p.id,
                                product_name=p.name,
                                product_code=p.product_code,
                                barcode=p.barcode,
                                quantity=1,
                                unit_price=p.selling_price,
                                total_price=line_total(1, p.selling_price),
                            )
                        ],
                    )
                )
                log.info("seeded bill %s", created.bill_number)
            db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=None, help="Path to a product json file")
    parser.add_argument("--with-bills", action="store_true", help="also create sample bills")
    args = parser.parse_args()
    if args.file and not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    init_db()
    seed(load_entries(args.file), with_bills=args.with_bills)
