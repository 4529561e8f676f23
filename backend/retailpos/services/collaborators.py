"""
Interfaces the return/exchange core consumes.

Every method is a coroutine and returns a ``Result``; implementations convert
their own exceptions into ``Err`` values. The SQLAlchemy-backed versions live in
``retailpos.adapters.sql_collaborators``; tests substitute in-memory fakes.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol

from retailpos.schemas.bill_schema import BillCreate, BillCreated, BillOut
from retailpos.schemas.product_schema import ProductOut
from retailpos.schemas.return_schema import (
    ReturnCreated,
    ReturnFilters,
    ReturnOut,
    ReturnProcessData,
)
from retailpos.schemas.settings_schema import ShopInfo
from retailpos.utils.result import Result


class BillDirectory(Protocol):
    """Bill Search + Bill Read."""

    async def search(self, query: str) -> Result[List[BillOut]]: ...

    async def get_by_id(self, bill_id: int) -> Result[BillOut]: ...


class ProductCatalog(Protocol):
    async def search(self, query: str) -> Result[List[ProductOut]]: ...

    async def find_by_barcode(self, code: str) -> Result[ProductOut]: ...

    async def get_by_id(self, product_id: int) -> Result[ProductOut]: ...


class ReturnStore(Protocol):
    async def create(self, data: ReturnProcessData) -> Result[ReturnCreated]: ...

    async def get_all(self, filters: Optional[ReturnFilters] = None) -> Result[List[ReturnOut]]: ...

    async def get_by_id(self, return_id: int) -> Result[ReturnOut]: ...

    async def update_status(self, return_id: int, status: str) -> Result[ReturnOut]: ...


class BillStore(Protocol):
    async def create(self, data: BillCreate) -> Result[BillCreated]: ...


class SettingsProvider(Protocol):
    def get_shop_info(self) -> ShopInfo: ...


@dataclass
class Collaborators:
    bills: BillDirectory
    products: ProductCatalog
    returns: ReturnStore
    bill_store: BillStore
