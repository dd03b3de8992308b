from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.auth.dependencies import get_current_admin
from liveclass.core.enums import ImportTargetStatus, LifecycleEvent
from liveclass.core.exceptions import ServiceError
from liveclass.db.session import get_db

from . import importer, service
from .schemas import (
    AdminClassBoardResponse,
    ClassCreate,
    ClassImportResponse,
    ClassResponse,
    ClassStatsResponse,
    ClassUpdate,
    RefreshResponse,
)

router = APIRouter(
    prefix="/api/v1/admin/classes",
    tags=["admin-classes"],
    dependencies=[Depends(get_current_admin)],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    db: AsyncSession = Depends(get_db),
) -> List[ClassResponse]:
    """Every class including soft-deleted ones, newest first."""
    try:
        return await service.list_classes(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/board", response_model=AdminClassBoardResponse)
async def get_admin_board(
    db: AsyncSession = Depends(get_db),
) -> AdminClassBoardResponse:
    try:
        return await service.get_admin_board(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/stats", response_model=ClassStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
) -> ClassStatsResponse:
    try:
        return await service.get_stats(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_now(
    db: AsyncSession = Depends(get_db),
) -> RefreshResponse:
    try:
        return await service.run_refresh(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/import/template")
async def download_import_template() -> Response:
    """Excel template: thumbnail URL, title, batch name, stream link. Row 1 is skipped on import."""
    return Response(
        content=importer.build_import_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=class_import_template.xlsx"},
    )


@router.post(
    "/import",
    response_model=ClassImportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_classes(
    file: UploadFile = File(..., description="Excel with columns: thumbnail URL, title, batch name, stream link"),
    target_status: ImportTargetStatus = Query(ImportTargetStatus.scheduled),
    replace: bool = Query(False, description="Soft-delete all existing classes before importing"),
    db: AsyncSession = Depends(get_db),
) -> ClassImportResponse:
    try:
        rows = await importer.parse_classes_excel(file)
        if not rows:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Excel file has no data rows")
        return await service.import_classes(db, rows, target_status=target_status, replace=replace)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        return await service.create_class(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        obj = await service.get_class(db, class_id, include_deleted=True)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return obj


@router.put("/{class_id}", response_model=ClassResponse)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        obj = await service.update_class(db, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return obj


async def _transition(db: AsyncSession, class_id: UUID, event: LifecycleEvent) -> ClassResponse:
    try:
        obj = await service.apply_event(db, class_id, event)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return obj


@router.post("/{class_id}/start", response_model=ClassResponse)
async def start_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> ClassResponse:
    return await _transition(db, class_id, LifecycleEvent.START)


@router.post("/{class_id}/end", response_model=ClassResponse)
async def end_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> ClassResponse:
    return await _transition(db, class_id, LifecycleEvent.END)


@router.post("/{class_id}/delete", response_model=ClassResponse)
async def soft_delete_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> ClassResponse:
    """Hide the class from students; it can be recovered or purged later."""
    return await _transition(db, class_id, LifecycleEvent.DELETE)


@router.post("/{class_id}/recover", response_model=ClassResponse)
async def recover_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> ClassResponse:
    return await _transition(db, class_id, LifecycleEvent.RECOVER)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Permanently delete a class. Only soft-deleted classes can be purged."""
    try:
        deleted = await service.purge_class(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
