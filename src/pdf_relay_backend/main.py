from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional, Union

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from .configuration import RelayConfig, load_config
from .errors import ConfigurationError, RelayError
from .models import BatchUploadResponse, ErrorResponse, HealthSnapshot, StatsSnapshot, UploadResponse
from .relay_client import RelayClient
from .relay_service import RelayService
from .staging import StagingStore
from .sweeper import HousekeepingSweeper
from .utils import format_megabytes

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    415: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_config(request: Request) -> RelayConfig:
    return request.app.state.config


def get_store(request: Request) -> StagingStore:
    return request.app.state.store


def get_service(request: Request) -> RelayService:
    return request.app.state.service


@router.get("/health", response_model=HealthSnapshot)
def healthcheck(request: Request, config: RelayConfig = Depends(get_config)) -> HealthSnapshot:
    return HealthSnapshot(
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        downstream_configured=bool(config.webhook_url),
    )


@router.get("/stats", response_model=StatsSnapshot, responses={500: {"model": ErrorResponse}})
def stats(
    config: RelayConfig = Depends(get_config),
    store: StagingStore = Depends(get_store),
) -> StatsSnapshot:
    files_waiting = store.count_files()
    total_size = sum(item.size_bytes for item in store.list_files())
    return StatsSnapshot(
        files_waiting=files_waiting,
        temp_dir=config.temp_dir,
        max_file_size=f"{config.max_file_size_mb}MB",
        downstream_webhook=config.redacted_webhook_url,
        environment=config.environment,
        total_size_mb=format_megabytes(total_size) if files_waiting else "0",
    )


@router.post("/api/upload", response_model=UploadResponse, responses=ERROR_RESPONSES)
async def upload(
    file: Optional[UploadFile] = File(None),
    process_type: Optional[str] = Form(None),
    client_id: Optional[str] = Form(None),
    service: RelayService = Depends(get_service),
) -> UploadResponse:
    return await service.relay_single(file, process_type=process_type, client_id=client_id)


@router.post("/api/upload-batch", response_model=BatchUploadResponse, responses=ERROR_RESPONSES)
async def upload_batch(
    files: Optional[List[Union[UploadFile, str]]] = File(None),
    batch_id: Optional[str] = Form(None),
    process_type: Optional[str] = Form(None),
    client_id: Optional[str] = Form(None),
    service: RelayService = Depends(get_service),
) -> BatchUploadResponse:
    # Browsers send an empty string part when no file is selected
    uploads = [item for item in files or [] if isinstance(item, StarletteUploadFile) and item.filename]
    return await service.relay_batch(uploads, batch_id=batch_id, process_type=process_type, client_id=client_id)


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    body = ErrorResponse(error=exc.message, **exc.extra)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content=ErrorResponse(error=str(exc)).model_dump())


def create_app(config: RelayConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Build the FastAPI application and wire its components.

    Args:
        config: Validated service configuration
        transport: Optional httpx transport for the relay client, used to
            stand in for the downstream webhook

    Returns:
        The configured FastAPI app; the staging sweeper runs for the app's
        lifespan
    """
    store = StagingStore(config.staging_dir, config.max_file_size_mb)
    client = RelayClient(
        config.webhook_url,
        single_timeout=config.single_timeout_seconds,
        batch_timeout=config.batch_timeout_seconds,
        transport=transport,
    )
    sweeper = HousekeepingSweeper(store, config.sweep_interval_seconds, config.staged_file_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        yield
        await sweeper.stop()

    app = FastAPI(title="PDF Relay API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.store = store
    app.state.service = RelayService(config, store, client)
    app.state.sweeper = sweeper
    app.state.started_at = time.monotonic()

    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


def build_app() -> FastAPI:
    """App factory for ``uvicorn pdf_relay_backend.main:build_app --factory``."""
    load_dotenv()
    return create_app(load_config())


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def run() -> None:
    """Console entry point: load configuration and serve the API."""
    load_dotenv()
    try:
        config = load_config()
    except ConfigurationError as exc:
        configure_logging("ERROR")
        logger.error(f"Startup aborted: {exc}")
        sys.exit(1)

    configure_logging(config.log_level)
    logger.info(f"Port           : {config.port}")
    logger.info(f"Staging dir    : {config.staging_dir.resolve()}")
    logger.info(f"Max file size  : {config.max_file_size_mb}MB")
    logger.info(f"Downstream     : {config.redacted_webhook_url}")
    logger.info(f"Environment    : {config.environment}")

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
