"""FastAPI route definitions for the fuselink REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/shorten
        ├─ LinkCreate (request body)
        └─ LinkResponse (201) or 400/409/422

    GET  /qr/:link_id
        └─ PNG QR code of the short URL (200) or 404

    GET  /visual/:link_id
        └─ PNG visual hash of the identifier (200)

    GET  /:link_id
        └─ 307 Redirect, 404 Not Found or 410 Gone

Key Behaviours
===============
- Endpoints touching the store or cache use async/await; the visual hash is
  CPU-only and runs in the threadpool.
- Store session, cache and logger are injected through RequestContext.
- Errors from the lifecycle engine are mapped by ``fuselink_error_handler``;
  404/410/5xx bodies carry no destination, policy or internal detail.
- 307 redirects preserve the HTTP method.
- Image endpoints never consume a link or reveal its destination.

Endpoints:
    /health:  Health check for monitoring.
    /api/shorten:  Create new links.
    /qr/:link_id:  QR code pointing at the short URL.
    /visual/:link_id:  Deterministic image derived from the identifier.
    /:link_id:  Consume a link and redirect to its destination.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from fuselink.dependencies import RequestContext, get_link_service, get_request_context
from fuselink.enums import HealthStatus
from fuselink.exceptions import (
    FuseLinkError,
    InternalServiceError,
    LinkGoneError,
    LinkNotFoundError,
)
from fuselink.imaging import render_qr_png, render_visual_hash_png
from fuselink.link_service import LinkService
from fuselink.schemas import ErrorResponse, HealthResponse, LinkCreate, LinkResponse
from fuselink.store import LinkStore

__all__ = ["router", "fuselink_error_handler"]

router = APIRouter()


async def fuselink_error_handler(request: Request, exc: FuseLinkError) -> JSONResponse:
    if isinstance(exc, LinkNotFoundError):
        detail = "Not Found"
    elif isinstance(exc, LinkGoneError):
        detail = "Link expired"
    elif isinstance(exc, InternalServiceError) or exc.status_code >= 500:
        detail = "Internal server error"
    else:
        detail = str(exc)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(detail=detail).model_dump())


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    ctx.logger.info("Health check requested")

    try:
        await LinkStore(ctx.database).ping()
        db_status = HealthStatus.HEALTHY
    except FuseLinkError as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    cache_status = HealthStatus.from_bool(await ctx.cache.ping())

    status = HealthStatus.from_bool(
        db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
    )
    ctx.logger.info(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post(
    "/api/shorten",
    response_model=LinkResponse,
    status_code=201,
    tags=["links"],
    responses={409: {"model": ErrorResponse}},
)
async def shorten_url(
    payload: LinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Link creation requested ({payload.destruction.kind})",
        extra={"operation": "create_link", "custom_alias": payload.custom_alias},
    )

    link = await service.create_link(payload.url, payload.custom_alias, payload.destruction)

    ctx.logger.info(
        f"Link created: {link.id}",
        extra={"operation": "create_link", "link_id": link.id, "duration_ms": ctx.get_duration()},
    )
    return LinkResponse(
        id=link.id,
        short_url=f"{ctx.settings.BASE_URL}/{link.id}",
        original_url=link.destination,
        created_at=link.created_at,
        destruction=payload.destruction,
    )


@router.get(
    "/qr/{link_id}",
    tags=["images"],
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}, 404: {"model": ErrorResponse}},
)
async def qr_code(link_id: str, ctx: RequestContext = Depends(get_request_context)) -> Response:
    if not await LinkStore(ctx.database).exists(link_id):
        raise LinkNotFoundError("Not Found")

    png = render_qr_png(f"{ctx.settings.BASE_URL}/{link_id}")
    return Response(content=png, media_type="image/png")


@router.get(
    "/visual/{link_id}",
    tags=["images"],
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
def visual_hash(link_id: str) -> Response:
    return Response(content=render_visual_hash_png(link_id), media_type="image/png")


@router.get(
    "/{link_id}",
    tags=["redirect"],
    status_code=307,
    responses={404: {"model": ErrorResponse}, 410: {"model": ErrorResponse}},
)
async def redirect_to_destination(
    link_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")

    destination = await service.consume(link_id)

    ctx.logger.info(
        f"Redirect served for {link_id}",
        extra={"operation": "redirect", "link_id": link_id, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=destination, status_code=307)
