from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from liveclass.core.enums import ClassStatus


class ClassCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    batchname: str = Field(..., max_length=255)
    streamlink: str = Field(..., min_length=1)
    thumbnail: str = ""
    scheduledstarttime: Optional[datetime] = None
    autostart: bool = False
    autoend: bool = True
    autoendduration: Optional[int] = Field(None, ge=30, le=480, description="Minutes; defaults to AUTO_END_MINUTES")


class ClassUpdate(BaseModel):
    """Partial update. Status changes go through the start/end/delete/recover actions."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    batchname: Optional[str] = Field(None, max_length=255)
    streamlink: Optional[str] = Field(None, min_length=1)
    thumbnail: Optional[str] = None
    scheduledstarttime: Optional[datetime] = None
    clear_schedule: bool = Field(False, description="Set scheduledstarttime back to null")
    autostart: Optional[bool] = None
    autoend: Optional[bool] = None
    autoendduration: Optional[int] = Field(None, ge=30, le=480)


class ClassResponse(BaseModel):
    id: UUID
    title: str
    batchname: str
    thumbnail: str
    streamlink: str
    m3u8link: str
    defaultquality: int
    quality_label: str
    status: ClassStatus
    starttime: Optional[datetime] = None
    endtime: Optional[datetime] = None
    scheduledstarttime: Optional[datetime] = None
    autostart: bool
    autoend: bool
    autoendduration: int
    autoendtime: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassBoardResponse(BaseModel):
    """Student dashboard tabs. Deleted classes are never included."""

    live: List[ClassResponse] = Field(default_factory=list)
    upcoming: List[ClassResponse] = Field(default_factory=list)
    completed: List[ClassResponse] = Field(default_factory=list)
    generated_at: datetime


class AdminClassBoardResponse(ClassBoardResponse):
    deleted: List[ClassResponse] = Field(default_factory=list)


class ClassStatsResponse(BaseModel):
    total: int
    scheduled: int
    live: int
    completed: int
    deleted: int


class RefreshResponse(BaseModel):
    started: int = Field(0, description="Classes auto-started in this pass")
    ended: int = Field(0, description="Classes auto-ended in this pass")
    persisted: bool = True
    ran_at: datetime


class QualityOption(BaseModel):
    value: int
    label: str
    description: str


class WatchLinkResponse(BaseModel):
    class_id: UUID
    status: ClassStatus
    quality: int
    quality_label: str
    url: str


class ClassImportResponse(BaseModel):
    created: int
    replaced: int = Field(0, description="Existing classes soft-deleted by replace=true")
    classes: List[ClassResponse]


class ClassImportRow(BaseModel):
    """One spreadsheet row: thumbnail URL, title, batch name, stream link (positional)."""

    thumbnail: str = ""
    title: str = ""
    batchname: str = ""
    streamlink: str = ""
