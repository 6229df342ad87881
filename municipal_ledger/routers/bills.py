from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from municipal_ledger.config import settings
from municipal_ledger.limiter import limiter
from municipal_ledger.schemas import OutstandingSummaryOut
from municipal_ledger.security import require_account_access
from municipal_ledger.services.reports import outstanding_summary
from municipal_ledger.services.store import LedgerStore, get_ledger_store
from municipal_ledger.utils import ensure_utc

router = APIRouter(prefix="/bills", tags=["Bills"])

@router.get("/{account_id}/outstanding", response_model=OutstandingSummaryOut)
@limiter.limit(settings.STATEMENT_RATE_LIMIT)
def get_outstanding_summary(
    request: Request,
    as_of: Optional[datetime] = Query(default=None),
    account_id: str = Depends(require_account_access),
    store: LedgerStore = Depends(get_ledger_store),
):
    """
    Unpaid bills per service, with the overdue amount and next due date.
    """
    as_of = ensure_utc(as_of or datetime.now(timezone.utc))

    summary = outstanding_summary(store, account_id, settings.SERVICES, as_of)
    return OutstandingSummaryOut.from_summary(summary, settings.CURRENCY)
