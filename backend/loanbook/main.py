import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loanbook.core.config import settings
from loanbook.core.errors import LedgerError
from loanbook.api.routes.auth import router as auth_router
from loanbook.api.routes.parties import router as parties_router
from loanbook.api.routes.loans import router as loans_router
from loanbook.api.routes.entries import router as entries_router
from loanbook.api.routes.recycle_bin import router as recycle_bin_router
from loanbook.api.routes.day_closes import router as day_closes_router
from loanbook.api.routes.audit import router as audit_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("loanbook")

app = FastAPI(title="loanbook")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code, "message": exc.message})


@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router)
app.include_router(parties_router)
app.include_router(loans_router)
app.include_router(entries_router)
app.include_router(recycle_bin_router)
app.include_router(day_closes_router)
app.include_router(audit_router)
