from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from marketapi.utils.validators import (
    validate_description,
    validate_price,
    validate_title,
)


class WorksheetSort(str, Enum):
    POPULAR = "popular"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    RATING = "rating"
    NEWEST = "newest"


class Worksheet(BaseModel):
    id: int
    seller_id: int
    seller_nickname: Optional[str] = None
    title: str
    description: str
    price: int
    grade: str
    subject: str
    category: str
    tags: List[str] = Field(default_factory=list)
    file_url: str
    preview_image: str
    page_count: int
    download_count: int = 0
    sales_count: int = 0
    average_rating: float = 0
    review_count: int = 0
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("tags", mode="before")
    @classmethod
    def none_tags(cls, v):
        return v or []


class WorksheetCreateRequest(BaseModel):
    title: str = Field(..., description="제목 (2~100자)")
    description: str = Field(..., description="설명 (10자 이상)")
    price: int = Field(..., description="가격 (100~500P)")
    grade: str = Field(..., min_length=1, description="학년")
    subject: str = Field(..., min_length=1, description="과목")
    category: str = Field(..., min_length=1, description="자료 유형")
    tags: List[str] = Field(default_factory=list, description="태그")
    file_url: str = Field(..., min_length=1, description="업로드된 파일 경로")
    preview_image: str = Field(..., min_length=1, description="미리보기 이미지 URL")
    page_count: int = Field(1, ge=1, description="페이지 수")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str) -> str:
        return validate_description(v)

    @field_validator("price")
    @classmethod
    def check_price(cls, v: int) -> int:
        return validate_price(v)


class WorksheetUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    grade: Optional[str] = None
    subject: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    file_url: Optional[str] = None
    preview_image: Optional[str] = None
    page_count: Optional[int] = Field(None, ge=1)
    edit_comment: Optional[str] = Field(None, max_length=500, description="수정 사유")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: Optional[str]) -> Optional[str]:
        return validate_title(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def check_description(cls, v: Optional[str]) -> Optional[str]:
        return validate_description(v) if v is not None else v

    @field_validator("price")
    @classmethod
    def check_price(cls, v: Optional[int]) -> Optional[int]:
        return validate_price(v) if v is not None else v


class WorksheetSearchParams(BaseModel):
    search: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    sort: WorksheetSort = WorksheetSort.NEWEST
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=50)


class WorksheetListResponse(BaseModel):
    items: List[Worksheet]
    total: int
    page: int
    limit: int
    total_pages: int


class EditHistoryEntry(BaseModel):
    id: int
    worksheet_id: int
    editor_id: int
    changes: str
    comment: Optional[str] = None
    is_notified: bool = False
    notified_at: Optional[datetime] = None
    notified_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorksheetUpdateResponse(BaseModel):
    worksheet: Worksheet
    edit_history: EditHistoryEntry


class EditNotificationResponse(BaseModel):
    success: bool = True
    notified_count: int = Field(..., description="알림을 받은 구매자 수")


class DownloadResponse(BaseModel):
    download_url: str


class PurchaseCheckResponse(BaseModel):
    purchased: bool
    has_feedback: bool


class WorksheetSalesStat(BaseModel):
    worksheet_id: int
    title: str
    sales_count: int
    earnings: int


class SalesStatsResponse(BaseModel):
    total_sales: int
    total_earnings: int
    worksheets: List[WorksheetSalesStat]
