import os

# must be set before anything from retailpos is imported
os.environ["DATABASE_URL"] = "sqlite:///./test_retailpos.db"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from retailpos.db import SessionLocal, init_db
from retailpos.main import app
from retailpos.models.return_transaction import ALLOWED_TRANSITIONS, ReturnStatus
from retailpos.repositories.product_repo import ProductRepository
from retailpos.schemas.bill_schema import BillCreate, BillCreated, BillItemIn, BillItemOut, BillOut
from retailpos.schemas.product_schema import ProductOut
from retailpos.schemas.return_schema import ReturnCreated
from retailpos.services.bill_service import BillService
from retailpos.services.collaborators import Collaborators
from retailpos.services.return_history import filter_returns
from retailpos.services.return_summary import calculate_summary
from retailpos.utils.result import ErrorCode, Ok, err

PRODUCTS = [
    {"name": "Cotton Shirt", "product_code": "SHIRT-01", "barcode": "111", "selling_price": 100.0, "stock_quantity": 10},
    {"name": "Denim Jeans", "product_code": "JEANS-01", "barcode": "222", "selling_price": 150.0, "stock_quantity": 5},
    {"name": "Leather Belt", "product_code": "BELT-01", "barcode": "333", "selling_price": 80.0, "stock_quantity": 3},
    {"name": "Sneakers", "product_code": "SHOE-01", "barcode": "444", "selling_price": 200.0, "stock_quantity": 2},
]


@pytest.fixture(autouse=True)
def fresh_db():
    init_db(reset=True)
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _item(p: dict, qty: int) -> BillItemIn:
    return BillItemIn(
        product_id=p["id"],
        product_name=p["name"],
        product_code=p["product_code"],
        barcode=p["barcode"],
        quantity=qty,
        unit_price=p["selling_price"],
        total_price=qty * p["selling_price"],
    )


@pytest.fixture
def seeded():
    """Four products, one sale (shirt + sneakers) and one exchange record pointing at it."""
    s = SessionLocal()
    try:
        repo = ProductRepository(s)
        products = {}
        for entry in PRODUCTS:
            p = repo.create_or_update(**entry)
            products[entry["product_code"]] = {**entry, "id": p.id}
        s.commit()
    finally:
        s.close()

    shirt, shoes = products["SHIRT-01"], products["SHOE-01"]
    with SessionLocal() as s:
        sale = BillService(s).create_bill(
            BillCreate(
                customer_name="Asha Rao",
                customer_phone="9876543210",
                total_amount=300.0,
                items=[_item(shirt, 1), _item(shoes, 1)],
            )
        )
    with SessionLocal() as s:
        settlement = BillService(s).create_bill(
            BillCreate(
                customer_name="Asha Rao",
                total_amount=150.0,
                payment_mode="EXCHANGE",
                is_return=True,
                original_bill_id=sale.bill_id,
                items=[_item(products["JEANS-01"], 1)],
            )
        )
    return {
        "products": products,
        "bill_id": sale.bill_id,
        "bill_number": sale.bill_number,
        "return_bill_id": settlement.bill_id,
    }


# -- in-memory collaborators ------------------------------------------------------


class FakeBillDirectory:
    def __init__(self, bills):
        self.bills = {b.id: b for b in bills}

    async def search(self, query):
        q = query.lower()
        return Ok(
            [
                b
                for b in self.bills.values()
                if q in b.bill_number.lower() or q in (b.customer_name or "").lower()
            ]
        )

    async def get_by_id(self, bill_id):
        bill = self.bills.get(bill_id)
        if bill is None:
            return err(ErrorCode.NOT_FOUND, "Bill not found")
        return Ok(bill)


class FakeProductCatalog:
    def __init__(self, products):
        self.products = {p.id: p for p in products}
        self.broken = set()

    async def search(self, query):
        q = query.lower()
        return Ok([p for p in self.products.values() if q in p.name.lower()])

    async def find_by_barcode(self, code):
        for p in self.products.values():
            if p.barcode == code:
                return Ok(p)
        return err(ErrorCode.NOT_FOUND, f"No product with barcode {code}")

    async def get_by_id(self, product_id):
        if product_id in self.broken:
            return err(ErrorCode.LOOKUP_FAILED, "catalog unavailable")
        p = self.products.get(product_id)
        if p is None:
            return err(ErrorCode.NOT_FOUND, f"Product {product_id} not found")
        return Ok(p)


class FakeReturnStore:
    def __init__(self):
        self.created = []
        self.records = []
        self.fail = False

    async def create(self, data):
        if self.fail:
            return err(ErrorCode.PERSISTENCE, "database is locked")
        self.created.append(data)
        summary = calculate_summary(data.return_items, data.exchange_items)
        return Ok(
            ReturnCreated(
                return_id=len(self.created),
                total_return_value=summary.total_return_value,
                total_exchange_value=summary.total_exchange_value,
                balance_amount=summary.balance_amount,
            )
        )

    async def get_all(self, filters=None):
        if filters is None:
            return Ok(list(self.records))
        return Ok(filter_returns(self.records, filters))

    async def get_by_id(self, return_id):
        for rt in self.records:
            if rt.id == return_id:
                return Ok(rt)
        return err(ErrorCode.NOT_FOUND, "Return not found")

    async def update_status(self, return_id, status):
        for i, rt in enumerate(self.records):
            if rt.id == return_id:
                target = ReturnStatus(status)
                if target not in ALLOWED_TRANSITIONS[rt.status]:
                    return err(
                        ErrorCode.INVALID_TRANSITION,
                        f"Cannot change return status from {rt.status.value} to {target.value}",
                    )
                self.records[i] = rt.model_copy(update={"status": target})
                return Ok(self.records[i])
        return err(ErrorCode.NOT_FOUND, "Return not found")


class FakeBillStore:
    def __init__(self):
        self.created = []
        self.fail = False

    async def create(self, data):
        if self.fail:
            return err(ErrorCode.PERSISTENCE, "bill counter unavailable")
        self.created.append(data)
        return Ok(BillCreated(bill_id=100 + len(self.created), bill_number=f"INV-{len(self.created):04d}"))


def _product(pid, entry):
    return ProductOut(id=pid, active=True, **entry)


@pytest.fixture
def catalog():
    return FakeProductCatalog([_product(i, entry) for i, entry in enumerate(PRODUCTS, start=1)])


@pytest.fixture
def collab(catalog):
    def line(i, pid, qty):
        p = catalog.products[pid]
        return BillItemOut(
            id=i,
            product_id=pid,
            product_name=p.name,
            product_code=p.product_code,
            barcode=p.barcode,
            quantity=qty,
            unit_price=p.selling_price,
            total_price=qty * p.selling_price,
        )

    now = datetime.now(timezone.utc)
    sale = BillOut(
        id=1,
        bill_number="INV-0001",
        customer_name="Asha Rao",
        customer_phone="9876543210",
        bill_date=now,
        subtotal=500.0,
        total_amount=500.0,
        items=[line(1, 1, 1), line(2, 4, 2)],
    )
    settlement = BillOut(
        id=2,
        bill_number="INV-0002",
        customer_name="Asha Rao",
        bill_date=now,
        total_amount=150.0,
        payment_mode="EXCHANGE",
        is_return=True,
        original_bill_id=1,
        items=[line(3, 2, 1)],
    )
    return Collaborators(
        bills=FakeBillDirectory([sale, settlement]),
        products=catalog,
        returns=FakeReturnStore(),
        bill_store=FakeBillStore(),
    )
