from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailpos.db import get_db
from retailpos.repositories.settings_repo import SettingsRepository
from retailpos.schemas.settings_schema import ShopInfo, ShopInfoUpdate
from retailpos.utils.logging import get_logger
from retailpos.utils.transactions import smart_transaction

log = get_logger("settings")

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/shop", response_model=ShopInfo)
def get_shop_info(db: Session = Depends(get_db)):
    return SettingsRepository(db).shop_info()


@router.put("/shop", response_model=ShopInfo)
def update_shop_info(payload: ShopInfoUpdate, db: Session = Depends(get_db)):
    values = payload.model_dump(exclude_unset=True)
    repo = SettingsRepository(db)
    with smart_transaction(db):
        repo.update(values)
    log.info("shop settings updated: %s", ", ".join(sorted(values)) or "nothing")
    return repo.shop_info()
