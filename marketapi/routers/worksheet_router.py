"""
판매 자료(워크시트) API 라우터

- GET    /worksheets: 검색/필터/정렬/페이지
- POST   /worksheets: 자료 등록
- GET    /worksheets/mine, /worksheets/mine/sales: 내 자료 / 판매 통계
- GET    /worksheets/{id}: 상세
- PATCH  /worksheets/{id}: 수정 (수정 이력 기록, 구매자 알림은 별도)
- DELETE /worksheets/{id}: 항상 403 (구매자 보호)
- GET    /worksheets/{id}/history: 수정 이력
- POST   /worksheets/history/{history_id}/notify: 구매자 알림 발송 (1회)
- GET    /worksheets/{id}/download: 다운로드 URL (판매자/구매자만)
- GET    /worksheets/{id}/purchase-status: 구매 여부
"""

from typing import List

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, status

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_worksheet_service
from marketapi.schemas.user import User as UserSchema
from marketapi.schemas.worksheet import (
    DownloadResponse,
    EditHistoryEntry,
    EditNotificationResponse,
    PurchaseCheckResponse,
    SalesStatsResponse,
    Worksheet,
    WorksheetCreateRequest,
    WorksheetListResponse,
    WorksheetSearchParams,
    WorksheetUpdateRequest,
    WorksheetUpdateResponse,
)
from marketapi.services.worksheet_service import WorksheetService

router = APIRouter(prefix="/worksheets", tags=["worksheets"])


@router.get("", response_model=WorksheetListResponse)
@inject
def search_worksheets(
    params: WorksheetSearchParams = Depends(),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> WorksheetListResponse:
    return worksheet_service.search(params)


@router.post("", response_model=Worksheet, status_code=status.HTTP_201_CREATED)
@inject
def create_worksheet(
    request: WorksheetCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> Worksheet:
    return worksheet_service.create(current_user.id, request)


@router.get("/mine", response_model=List[Worksheet])
@inject
def my_worksheets(
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> List[Worksheet]:
    return worksheet_service.my_worksheets(current_user.id)


@router.get("/mine/sales", response_model=SalesStatsResponse)
@inject
def my_sales(
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> SalesStatsResponse:
    return worksheet_service.sales_stats(current_user.id)


@router.post("/history/{history_id}/notify", response_model=EditNotificationResponse)
@inject
def send_edit_notification(
    history_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> EditNotificationResponse:
    return worksheet_service.send_edit_notification(current_user.id, history_id)


@router.get("/{worksheet_id}", response_model=Worksheet)
@inject
def get_worksheet(
    worksheet_id: int,
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> Worksheet:
    return worksheet_service.get(worksheet_id)


@router.patch("/{worksheet_id}", response_model=WorksheetUpdateResponse)
@inject
def update_worksheet(
    worksheet_id: int,
    request: WorksheetUpdateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> WorksheetUpdateResponse:
    return worksheet_service.update(current_user.id, worksheet_id, request)


@router.delete("/{worksheet_id}")
@inject
def delete_worksheet(
    worksheet_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> None:
    worksheet_service.delete(worksheet_id)


@router.get("/{worksheet_id}/history", response_model=List[EditHistoryEntry])
@inject
def get_edit_history(
    worksheet_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> List[EditHistoryEntry]:
    return worksheet_service.get_edit_history(current_user.id, worksheet_id)


@router.get("/{worksheet_id}/download", response_model=DownloadResponse)
@inject
def download_worksheet(
    worksheet_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> DownloadResponse:
    return worksheet_service.download(current_user.id, worksheet_id)


@router.get("/{worksheet_id}/purchase-status", response_model=PurchaseCheckResponse)
@inject
def check_purchase(
    worksheet_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    worksheet_service: WorksheetService = Depends(get_worksheet_service),
) -> PurchaseCheckResponse:
    return worksheet_service.check_purchase(current_user.id, worksheet_id)
