from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.core.exceptions import ServiceError
from liveclass.db.session import get_db

from . import links, service
from .schemas import ClassBoardResponse, ClassResponse, QualityOption, WatchLinkResponse

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.get("", response_model=ClassBoardResponse)
async def get_class_board(
    db: AsyncSession = Depends(get_db),
) -> ClassBoardResponse:
    """Live, upcoming and completed classes. Due auto-start/auto-end transitions are applied first."""
    try:
        return await service.get_board(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/qualities", response_model=List[QualityOption])
async def list_quality_options() -> List[QualityOption]:
    return [QualityOption(**option) for option in links.QUALITY_OPTIONS]


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        obj = await service.get_class(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return obj


@router.get("/{class_id}/watch", response_model=WatchLinkResponse)
async def get_watch_link(
    class_id: UUID,
    quality: Optional[int] = Query(None, ge=1, le=5, description="1=240p ... 5=720p HD; defaults to the class quality"),
    db: AsyncSession = Depends(get_db),
) -> WatchLinkResponse:
    """External player URL: recording path for completed classes, live path otherwise."""
    try:
        obj = await service.get_watch_link(db, class_id, quality)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return obj
