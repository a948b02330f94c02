from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api.batches import kind_routers, router as batches_router
from api.templates import router as templates_router
from services.errors import BatchIngestionError
from utils.logging import configure_logging, get_logger

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.json_logs)
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Bulk upload, staging and approval of loans, contributions and transactions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for kind_router in kind_routers:
    app.include_router(kind_router)
app.include_router(batches_router)
app.include_router(templates_router)


@app.exception_handler(BatchIngestionError)
async def batch_ingestion_error_handler(request: Request, exc: BatchIngestionError):
    log.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, **exc.extra()},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "InternalError"},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
