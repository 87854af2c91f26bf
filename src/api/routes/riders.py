"""
Rider roster
============

GET /api/v1/riders?q=... -- riders available for assignment, optionally
filtered by a case-insensitive substring of name, phone or email
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_notifier
from src.api.middleware import limiter
from src.api.schemas import RiderResponse
from src.config import settings
from src.infrastructure.events import NotificationSink
from src.services.rider_assignment import RiderAssignmentService

router = APIRouter(prefix="/riders", tags=["riders"])


@router.get("", response_model=list[RiderResponse], summary="List and search riders")
@limiter.limit(settings.rate_limit)
async def list_riders(
    request: Request,
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    riders = await RiderAssignmentService(db, notifier).list_riders(q)
    return [RiderResponse.model_validate(r) for r in riders]
