"""
Admin endpoints
===============

GET  /api/v1/admin/allotment         -- same-rider allotment flag
POST /api/v1/admin/allotment/enable  -- turn it on (needs the allotment secret)
POST /api/v1/admin/allotment/disable -- turn it off
GET  /api/v1/admin/health            -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_authorizer, get_db, get_notifier
from src.api.middleware import limiter
from src.api.schemas import (
    AllotmentConfigResponse,
    EnableAllotmentRequest,
    ErrorResponse,
    HealthResponse,
)
from src.config import settings
from src.infrastructure.events import NotificationSink
from src.services.allotment import AllotmentPolicy
from src.services.authorization import AllotmentCaller, GlobalAllotmentAuthorizer

router = APIRouter(prefix="/admin", tags=["admin"])


def _policy(db, notifier, authorizer) -> AllotmentPolicy:
    return AllotmentPolicy(db, notifier, authorizer)


@router.get(
    "/allotment",
    response_model=AllotmentConfigResponse,
    summary="Read the same-rider allotment flag",
)
@limiter.limit(settings.rate_limit)
async def get_allotment(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
    authorizer: GlobalAllotmentAuthorizer = Depends(get_authorizer),
):
    config = await _policy(db, notifier, authorizer).read()
    return AllotmentConfigResponse.model_validate(config)


@router.post(
    "/allotment/enable",
    response_model=AllotmentConfigResponse,
    summary="Use the same rider for pickup and delivery",
    responses={403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def enable_allotment(
    request: Request,
    body: EnableAllotmentRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
    authorizer: GlobalAllotmentAuthorizer = Depends(get_authorizer),
):
    caller = AllotmentCaller(identity=settings.admin_identity, secret=body.secret)
    config = await _policy(db, notifier, authorizer).enable(caller)
    return AllotmentConfigResponse.model_validate(config)


@router.post(
    "/allotment/disable",
    response_model=AllotmentConfigResponse,
    summary="Allow different riders for pickup and delivery",
)
@limiter.limit(settings.rate_limit)
async def disable_allotment(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
    authorizer: GlobalAllotmentAuthorizer = Depends(get_authorizer),
):
    caller = AllotmentCaller(identity=settings.admin_identity)
    config = await _policy(db, notifier, authorizer).disable(caller)
    return AllotmentConfigResponse.model_validate(config)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
