import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from municipal_ledger.database import create_db_and_tables
from municipal_ledger import models
from municipal_ledger.config import settings
from municipal_ledger.errors import LedgerError
from municipal_ledger.limiter import limiter
from municipal_ledger.routers import bills, statements

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.LEDGER_STORE == "sql":
        logger.info("Startup: Creating database tables...")
        create_db_and_tables()
    yield
    logger.info("Shutdown: cleaning up...")

app = FastAPI(lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.include_router(statements.router)
app.include_router(bills.router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )

@app.get("/")
def read_root():
    return {"status": "ok", "service": "Statement ledger", "store": settings.LEDGER_STORE}
