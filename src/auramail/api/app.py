"""FastAPI application.

Thin HTTP pass-throughs to the ingestor and the placement repository.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from auramail import __version__
from auramail.api.models import (
    PlacementItem,
    PlacementListResponse,
    ReviewQueueResponse,
    ReviewRequest,
    SyncRequest,
    SyncResponse,
)
from auramail.config import Settings, get_settings
from auramail.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GmailAPIError,
    SyncInProgressError,
    ValidationError,
)
from auramail.services import Services, build_services
from auramail.storage.repository import MAX_PAGE_SIZE
from auramail.utils import configure_logging


def _services(request: Request) -> Services:
    return request.app.state.services


router = APIRouter(prefix="/api/emails", tags=["emails"])


@router.post("/sync", response_model=SyncResponse)
async def sync_emails(body: SyncRequest, request: Request) -> SyncResponse:
    services = _services(request)
    access_token = body.access_token or await asyncio.to_thread(
        services.token_provider.get_valid_access_token, body.user_id
    )
    result = await services.ingestor.sync(body.user_id, access_token, body.query)
    return SyncResponse(**result.model_dump())


@router.get("", response_model=PlacementListResponse)
def list_emails(
    request: Request,
    user_id: str = Query(min_length=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
) -> PlacementListResponse:
    result = _services(request).repository.list_placements(user_id, page=page, limit=limit)
    return PlacementListResponse(
        count=len(result.records),
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
        emails=[PlacementItem.from_record(r) for r in result.records],
    )


@router.get("/review", response_model=ReviewQueueResponse)
def review_queue(request: Request, user_id: str = Query(min_length=1)) -> ReviewQueueResponse:
    records = _services(request).repository.list_review_queue(user_id)
    return ReviewQueueResponse(
        count=len(records),
        emails=[PlacementItem.from_record(r) for r in records],
    )


@router.post("/{record_id}/review", response_model=PlacementItem)
def mark_reviewed(record_id: int, body: ReviewRequest, request: Request) -> PlacementItem:
    record = _services(request).repository.mark_reviewed(body.user_id, record_id, body.reviewed_by)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return PlacementItem.from_record(record)


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Application settings. If None, uses default settings.
        services: Pre-built components. Built from ``settings`` when None.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title="AuraMail", version=__version__)
    app.state.services = services or build_services(settings)
    app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request", details=jsonable_encoder(exc.errors()))

    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(AuthenticationError)
    async def _authentication_error(_: Request, exc: AuthenticationError) -> JSONResponse:
        return _error(401, str(exc), requires_reauth=True)

    @app.exception_handler(SyncInProgressError)
    async def _sync_in_progress(_: Request, exc: SyncInProgressError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(GmailAPIError)
    async def _gmail_error(_: Request, exc: GmailAPIError) -> JSONResponse:
        return _error(502, str(exc))

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(_: Request, exc: ConfigurationError) -> JSONResponse:
        return _error(500, str(exc))

    return app
