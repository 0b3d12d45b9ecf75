import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hms_ledger.api.v1.router import api_router
from hms_ledger.core.config import get_settings
from hms_ledger.core.errors import LedgerError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="HMS Billing Ledger",
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """
    Render every domain error as {"detail", "code", "context"}.
    """
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
