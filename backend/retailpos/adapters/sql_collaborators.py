"""
SQLAlchemy implementations of the collaborator protocols.

Each call runs in the threadpool with its own short-lived session, so a
workflow that lives across many HTTP requests never holds a connection between
steps and never blocks the event loop. Exceptions never leave these methods;
they come back as ``Err`` values.
"""
from typing import List, Optional

from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from retailpos.db import SessionLocal
from retailpos.repositories.product_repo import ProductRepository
from retailpos.repositories.settings_repo import SettingsRepository
from retailpos.schemas.bill_schema import BillCreate, BillCreated, BillOut
from retailpos.schemas.product_schema import ProductOut
from retailpos.schemas.return_schema import (
    ReturnCreated,
    ReturnFilters,
    ReturnOut,
    ReturnProcessData,
)
from retailpos.schemas.settings_schema import ShopInfo
from retailpos.services.bill_service import BillService, BillServiceException
from retailpos.services.collaborators import Collaborators
from retailpos.services.return_service import (
    InsufficientStockError,
    ReturnNotFound,
    ReturnService,
    ReturnServiceException,
    ReturnStatusError,
    ReturnValidationError,
)
from retailpos.utils.logging import get_logger
from retailpos.utils.result import ErrorCode, Ok, Result, err

log = get_logger("collaborators")


class _SqlAdapter:
    def __init__(self, session_factory: sessionmaker = None):
        self.session_factory = session_factory or SessionLocal


class SqlBillDirectory(_SqlAdapter):
    async def search(self, query: str) -> Result[List[BillOut]]:
        return await run_in_threadpool(self._search, query)

    def _search(self, query: str) -> Result[List[BillOut]]:
        try:
            with self.session_factory() as db:
                rows = BillService(db).search_bills(query)
                return Ok([BillOut.model_validate(b) for b in rows])
        except Exception as e:
            log.exception("bill search failed for %r", query)
            return err(ErrorCode.LOOKUP_FAILED, f"Error searching bills: {e}")

    async def get_by_id(self, bill_id: int) -> Result[BillOut]:
        return await run_in_threadpool(self._get_by_id, bill_id)

    def _get_by_id(self, bill_id: int) -> Result[BillOut]:
        try:
            with self.session_factory() as db:
                bill = BillService(db).get_bill(bill_id)
                return Ok(BillOut.model_validate(bill))
        except BillServiceException as e:
            return err(ErrorCode.NOT_FOUND, str(e))
        except Exception as e:
            log.exception("loading bill %s failed", bill_id)
            return err(ErrorCode.LOOKUP_FAILED, f"Error loading bill: {e}")


class SqlProductCatalog(_SqlAdapter):
    async def search(self, query: str) -> Result[List[ProductOut]]:
        return await run_in_threadpool(self._search, query)

    def _search(self, query: str) -> Result[List[ProductOut]]:
        try:
            with self.session_factory() as db:
                rows = ProductRepository(db).search(query)
                return Ok([ProductOut.model_validate(p) for p in rows])
        except Exception as e:
            log.exception("product search failed for %r", query)
            return err(ErrorCode.LOOKUP_FAILED, f"Error searching products: {e}")

    async def find_by_barcode(self, code: str) -> Result[ProductOut]:
        return await run_in_threadpool(self._find_by_barcode, code)

    def _find_by_barcode(self, code: str) -> Result[ProductOut]:
        try:
            with self.session_factory() as db:
                p = ProductRepository(db).get_by_barcode(code)
                if not p:
                    return err(ErrorCode.NOT_FOUND, f"No product with barcode {code}")
                return Ok(ProductOut.model_validate(p))
        except Exception as e:
            log.exception("barcode lookup failed for %r", code)
            return err(ErrorCode.LOOKUP_FAILED, f"Error looking up barcode: {e}")

    async def get_by_id(self, product_id: int) -> Result[ProductOut]:
        return await run_in_threadpool(self._get_by_id, product_id)

    def _get_by_id(self, product_id: int) -> Result[ProductOut]:
        try:
            with self.session_factory() as db:
                p = ProductRepository(db).get(product_id)
                if not p:
                    return err(ErrorCode.NOT_FOUND, f"Product {product_id} not found")
                return Ok(ProductOut.model_validate(p))
        except Exception as e:
            log.exception("product lookup failed for %s", product_id)
            return err(ErrorCode.LOOKUP_FAILED, f"Error loading product: {e}")


class SqlReturnStore(_SqlAdapter):
    async def create(self, data: ReturnProcessData) -> Result[ReturnCreated]:
        return await run_in_threadpool(self._create, data)

    def _create(self, data: ReturnProcessData) -> Result[ReturnCreated]:
        try:
            with self.session_factory() as db:
                resp = ReturnService(db).create_return(data)
                return Ok(ReturnCreated(**resp))
        except ReturnValidationError as e:
            return err(ErrorCode.VALIDATION, str(e), e.errors)
        except InsufficientStockError as e:
            return err(ErrorCode.INSUFFICIENT_STOCK, str(e), [str(e)], detail=e.shortfalls)
        except ReturnNotFound as e:
            return err(ErrorCode.NOT_FOUND, str(e))
        except ReturnServiceException as e:
            return err(ErrorCode.PERSISTENCE, str(e))
        except Exception as e:
            log.exception("creating return for bill %s failed", data.original_bill_id)
            return err(ErrorCode.PERSISTENCE, f"Error processing return: {e}")

    async def get_all(self, filters: Optional[ReturnFilters] = None) -> Result[List[ReturnOut]]:
        return await run_in_threadpool(self._get_all, filters)

    def _get_all(self, filters: Optional[ReturnFilters] = None) -> Result[List[ReturnOut]]:
        try:
            with self.session_factory() as db:
                rows = ReturnService(db).list_returns(filters, limit=None)
                return Ok([ReturnOut.model_validate(rt) for rt in rows])
        except Exception as e:
            log.exception("loading returns failed")
            return err(ErrorCode.LOOKUP_FAILED, f"Error loading returns: {e}")

    async def get_by_id(self, return_id: int) -> Result[ReturnOut]:
        return await run_in_threadpool(self._get_by_id, return_id)

    def _get_by_id(self, return_id: int) -> Result[ReturnOut]:
        try:
            with self.session_factory() as db:
                rt = ReturnService(db).get_return(return_id)
                return Ok(ReturnOut.model_validate(rt))
        except ReturnNotFound as e:
            return err(ErrorCode.NOT_FOUND, str(e))
        except Exception as e:
            log.exception("loading return %s failed", return_id)
            return err(ErrorCode.LOOKUP_FAILED, f"Error loading return: {e}")

    async def update_status(self, return_id: int, status: str) -> Result[ReturnOut]:
        return await run_in_threadpool(self._update_status, return_id, status)

    def _update_status(self, return_id: int, status: str) -> Result[ReturnOut]:
        try:
            with self.session_factory() as db:
                rt = ReturnService(db).update_status(return_id, status)
                return Ok(ReturnOut.model_validate(rt))
        except ReturnNotFound as e:
            return err(ErrorCode.NOT_FOUND, str(e))
        except ReturnStatusError as e:
            return err(ErrorCode.INVALID_TRANSITION, str(e))
        except Exception as e:
            log.exception("updating status of return %s failed", return_id)
            return err(ErrorCode.PERSISTENCE, f"Error updating status: {e}")


class SqlBillStore(_SqlAdapter):
    async def create(self, data: BillCreate) -> Result[BillCreated]:
        return await run_in_threadpool(self._create, data)

    def _create(self, data: BillCreate) -> Result[BillCreated]:
        try:
            with self.session_factory() as db:
                return Ok(BillService(db).create_bill(data))
        except BillServiceException as e:
            return err(ErrorCode.PERSISTENCE, str(e))
        except Exception as e:
            log.exception("creating bill failed")
            return err(ErrorCode.PERSISTENCE, f"Error creating bill: {e}")


class SqlSettingsProvider(_SqlAdapter):
    def get_shop_info(self) -> ShopInfo:
        with self.session_factory() as db:
            return SettingsRepository(db).shop_info()


def sql_collaborators(session_factory: sessionmaker = None) -> Collaborators:
    return Collaborators(
        bills=SqlBillDirectory(session_factory),
        products=SqlProductCatalog(session_factory),
        returns=SqlReturnStore(session_factory),
        bill_store=SqlBillStore(session_factory),
    )
