from fastapi import FastAPI, Request
import asyncio
import logging
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from station_ledger.core.config import settings
from station_ledger.core.errors import LedgerError
from station_ledger.core.logging import setup_logging
from station_ledger.api.routes.accounts import router as accounts_router
from station_ledger.api.routes.journal import router as journal_router
from station_ledger.api.routes.transfers import router as transfers_router
from station_ledger.api.routes.reconciliation import router as reconciliation_router
from station_ledger.api.routes.petty_cash import router as petty_cash_router
from station_ledger.api.routes.loans import router as loans_router
from station_ledger.api.routes.stock import router as stock_router
from station_ledger.api.routes.audit import router as audit_router
from station_ledger.services.loan_sweep import overdue_sweep_loop

setup_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="station-ledger")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def _ledger_error(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.code})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"success": False, "error": "validation_error"})


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception):
    log.exception("unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"success": False, "error": "internal_error"})


@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(accounts_router)
app.include_router(journal_router)
app.include_router(transfers_router)
app.include_router(reconciliation_router)
app.include_router(petty_cash_router)
app.include_router(loans_router)
app.include_router(stock_router)
app.include_router(audit_router)

@app.on_event("startup")
async def _start_overdue_sweep():
    if settings.overdue_sweep_enabled:
        asyncio.create_task(overdue_sweep_loop())
