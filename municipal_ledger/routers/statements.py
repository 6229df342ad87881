from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from municipal_ledger.config import settings
from municipal_ledger.limiter import limiter
from municipal_ledger.schemas import AnnualSummaryOut, StatementOut
from municipal_ledger.security import require_account_access
from municipal_ledger.services.periods import Period
from municipal_ledger.services.reports import annual_summary
from municipal_ledger.services.statement import StatementAssembler
from municipal_ledger.services.store import LedgerStore, get_ledger_store

router = APIRouter(prefix="/statements", tags=["Statements"])

@router.get("/{account_id}", response_model=StatementOut)
@limiter.limit(settings.STATEMENT_RATE_LIMIT)
async def get_statement(
    request: Request,
    period: str = Query(..., description="Statement period as YYYY-MM"),
    service: str = Query(default="all", description="Service name, or 'all' for a consolidated statement"),
    as_of: Optional[datetime] = Query(default=None, description="Aging reference time, defaults to now"),
    account_id: str = Depends(require_account_access),
    store: LedgerStore = Depends(get_ledger_store),
):
    """
    Statement for one service or, with service=all, consolidated across
    every service: balances, period transactions and aging buckets.
    """
    if service != "all" and service not in settings.SERVICES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid service. Must be one of: all, {', '.join(settings.SERVICES)}"
        )

    statement_period = Period.from_token(period)
    assembler = StatementAssembler(store)
    statement = await assembler.assemble(
        account_id,
        statement_period,
        as_of or datetime.now(timezone.utc),
        service=None if service == "all" else service,
    )

    return StatementOut.from_statement(statement, settings.CURRENCY)


@router.get("/{account_id}/annual", response_model=AnnualSummaryOut)
@limiter.limit(settings.STATEMENT_RATE_LIMIT)
def get_annual_summary(
    request: Request,
    year: Optional[int] = Query(default=None, ge=1900, le=9998, description="Calendar year, defaults to the current year"),
    account_id: str = Depends(require_account_access),
    store: LedgerStore = Depends(get_ledger_store),
):
    """
    Billed, paid and balance per service for a calendar year, with a
    breakdown of payments by method.
    """
    year = year or datetime.now(timezone.utc).year
    summary = annual_summary(store, account_id, year, settings.SERVICES)

    return AnnualSummaryOut.from_summary(summary, settings.CURRENCY)
