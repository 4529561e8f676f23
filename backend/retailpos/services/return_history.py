"""
Reporting over persisted return transactions.

The functions here work on any objects shaped like ``ReturnOut`` (ORM rows or
pydantic models); they never touch the database themselves.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from retailpos.config import settings
from retailpos.models.return_transaction import ReturnStatus
from retailpos.schemas.return_schema import (
    FilteredReturnSummary,
    ReturnFilters,
    ReturnOut,
    ReturnStats,
)
from retailpos.services.collaborators import ReturnStore
from retailpos.utils.logging import get_logger
from retailpos.utils.result import ErrorCode, Ok, Result, err

log = get_logger(__name__)


def _local(dt: datetime) -> datetime:
    # naive timestamps come from the store and are UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone()


def _status(rt) -> str:
    status = rt.status
    return status.value if isinstance(status, ReturnStatus) else str(status)


def compute_return_stats(
    returns: Sequence, now: Optional[datetime] = None, recent_limit: Optional[int] = None
) -> ReturnStats:
    """Dashboard figures for a list of returns, derived in one pass."""
    if recent_limit is None:
        recent_limit = settings.RECENT_RETURNS_LIMIT
    today = _local(now or datetime.now(timezone.utc)).date()

    today_count = 0
    pending = 0
    total_value = 0.0
    for rt in returns:
        if _local(rt.return_date).date() == today:
            today_count += 1
        if _status(rt) == ReturnStatus.PENDING.value:
            pending += 1
        total_value += rt.total_return_value or 0.0

    count = len(returns)
    recent = sorted(returns, key=lambda rt: _local(rt.return_date), reverse=True)[:recent_limit]
    return ReturnStats(
        today_returns=today_count,
        pending_returns=pending,
        total_value=total_value,
        avg_return_value=total_value / count if count else 0.0,
        recent_returns=[ReturnOut.model_validate(rt) for rt in recent],
    )


def _matches_text(rt, query: str) -> bool:
    fields = [
        str(rt.id or ""),
        (rt.customer_name or "").lower(),
        rt.customer_phone or "",
        (rt.return_reason or "").lower(),
        _local(rt.return_date).strftime("%d %b %Y").lower(),
    ]
    return any(query in f for f in fields)


def filter_returns(returns: Iterable, filters: ReturnFilters) -> List:
    """History-screen filtering; newest first."""
    rows = list(returns)
    if filters.search_query:
        q = filters.search_query.strip().lower()
        rows = [rt for rt in rows if _matches_text(rt, q)]
    if filters.date_from:
        rows = [rt for rt in rows if _local(rt.return_date).date() >= filters.date_from]
    if filters.date_to:
        rows = [rt for rt in rows if _local(rt.return_date).date() <= filters.date_to]
    if filters.status:
        rows = [rt for rt in rows if _status(rt) == filters.status.value]
    if filters.customer_name:
        name = filters.customer_name.lower()
        rows = [rt for rt in rows if name in (rt.customer_name or "").lower()]
    return sorted(rows, key=lambda rt: _local(rt.return_date), reverse=True)


def summarize_filtered(returns: Sequence) -> FilteredReturnSummary:
    return FilteredReturnSummary(
        total=len(returns),
        pending=sum(1 for rt in returns if _status(rt) == ReturnStatus.PENDING.value),
        completed=sum(1 for rt in returns if _status(rt) == ReturnStatus.COMPLETED.value),
        total_value=sum(rt.total_return_value or 0.0 for rt in returns),
        exchange_value=sum(rt.total_exchange_value or 0.0 for rt in returns),
    )


class ReturnHistoryManager:
    """Loads returns through the store and offers the two legal status moves."""

    STATUS_ACTIONS = (ReturnStatus.COMPLETED, ReturnStatus.CANCELLED)

    def __init__(self, store: ReturnStore):
        self.store = store

    async def stats(self, now: Optional[datetime] = None) -> Result[ReturnStats]:
        res = await self.store.get_all()
        if not res.ok:
            log.error("could not load returns: %s", res.message)
            return res
        return Ok(compute_return_stats(res.value, now=now))

    async def history(self, filters: Optional[ReturnFilters] = None) -> Result[List[ReturnOut]]:
        # the store applies the filters
        return await self.store.get_all(filters)

    def available_actions(self, rt) -> List[ReturnStatus]:
        if _status(rt) != ReturnStatus.PENDING.value:
            return []
        return list(self.STATUS_ACTIONS)

    async def update_status(self, return_id: int, new_status: str) -> Result[ReturnOut]:
        """
        Ask the store to move a return to ``new_status``.

        The store owns the transition rules; this only rejects values that are
        not a status at all before making the call.
        """
        if new_status not in {s.value for s in ReturnStatus}:
            return err(ErrorCode.INVALID_TRANSITION, f"Invalid status: {new_status}")
        res = await self.store.update_status(return_id, new_status)
        if not res.ok:
            log.warning("status update for return %s rejected: %s", return_id, res.message)
        return res
