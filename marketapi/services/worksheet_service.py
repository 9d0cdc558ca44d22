import logging
import math
from typing import List, Optional

from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.core.exceptions import (
    AlreadyNotifiedError,
    AuthorizationError,
    BaseAPIException,
    DeleteDisabledError,
    InternalServerError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.message import NotificationType
from marketapi.models.worksheet import WorksheetStatus
from marketapi.repositories.notification_repository import NotificationRepository
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
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
from marketapi.services.storage_service import StorageService

logger = logging.getLogger(__name__)

EDIT_NOTIFICATION_TITLE = "구매한 자료가 수정되었습니다"


def summarize_changes(existing: Worksheet, request: WorksheetUpdateRequest) -> List[str]:
    """수정 내용 요약 - 실제로 값이 바뀐 항목만 기록"""
    changes: List[str] = []
    if request.title is not None and request.title != existing.title:
        changes.append(f'제목: "{existing.title}" → "{request.title}"')
    if request.description is not None and request.description != existing.description:
        changes.append("설명 변경")
    if request.price is not None and request.price != existing.price:
        changes.append(f"가격: {existing.price}P → {request.price}P")
    if request.file_url is not None and request.file_url != existing.file_url:
        changes.append("워크시트 파일 변경")
    if request.preview_image is not None and request.preview_image != existing.preview_image:
        changes.append("미리보기 이미지 변경")
    if request.grade is not None and request.grade != existing.grade:
        changes.append("학년 변경")
    if request.subject is not None and request.subject != existing.subject:
        changes.append("과목 변경")
    if request.category is not None and request.category != existing.category:
        changes.append("유형 변경")
    if request.tags is not None and list(request.tags) != list(existing.tags):
        changes.append("태그 변경")
    if request.page_count is not None and request.page_count != existing.page_count:
        changes.append(f"페이지 수: {existing.page_count} → {request.page_count}")
    return changes


class WorksheetService:
    """판매 자료 등록/검색/수정/다운로드 서비스"""

    def __init__(self, db: Session, storage_service: Optional[StorageService] = None):
        self.db = db
        self.worksheet_repo = WorksheetRepository(db)
        self.purchase_repo = PurchaseRepository(db)
        self.notification_repo = NotificationRepository(db)
        self.storage_service = storage_service or StorageService(settings)

    def _get_owned(self, user_id: int, worksheet_id: int) -> Worksheet:
        worksheet = self.worksheet_repo.get_by_id(worksheet_id)
        if not worksheet:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        if worksheet.seller_id != user_id:
            raise AuthorizationError("수정 권한이 없습니다.")
        return worksheet

    def _check_file_owner(self, seller_id: int, file_url: str) -> None:
        """저장소 경로는 판매자 본인 폴더({seller_id}/)의 파일만 허용"""
        if file_url.startswith("http://") or file_url.startswith("https://"):
            return
        if ".." in file_url or not file_url.startswith(f"{seller_id}/"):
            logger.warning(f"Seller {seller_id} referenced a foreign file path: {file_url}")
            raise AuthorizationError("본인이 업로드한 파일만 등록할 수 있습니다.")

    def create(self, seller_id: int, request: WorksheetCreateRequest) -> Worksheet:
        """자료 등록 (필드 검증은 스키마에서 완료)"""
        self._check_file_owner(seller_id, request.file_url)
        worksheet = self.worksheet_repo.create(
            seller_id=seller_id,
            title=request.title,
            description=request.description,
            price=request.price,
            grade=request.grade,
            subject=request.subject,
            category=request.category,
            tags=request.tags,
            file_url=request.file_url,
            preview_image=request.preview_image,
            page_count=request.page_count,
            status=WorksheetStatus.APPROVED.value,
        )
        logger.info(f"Worksheet {worksheet.id} created by seller {seller_id}")
        return worksheet

    def get(self, worksheet_id: int) -> Worksheet:
        worksheet = self.worksheet_repo.get_detail(worksheet_id)
        if not worksheet:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        return worksheet

    def search(self, params: WorksheetSearchParams) -> WorksheetListResponse:
        if (
            params.min_price is not None
            and params.max_price is not None
            and params.min_price > params.max_price
        ):
            raise ValidationError("최소 가격이 최대 가격보다 클 수 없습니다.")

        items, total = self.worksheet_repo.search(params)
        return WorksheetListResponse(
            items=items,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=math.ceil(total / params.limit) if total else 0,
        )

    def update(
        self, user_id: int, worksheet_id: int, request: WorksheetUpdateRequest
    ) -> WorksheetUpdateResponse:
        """
        자료 수정 + 수정 이력 기록 (한 트랜잭션)

        구매자 알림은 자동 발송하지 않으며, 판매자가 send_edit_notification으로 직접 발송합니다.
        """
        existing = self._get_owned(user_id, worksheet_id)
        if request.file_url is not None:
            self._check_file_owner(user_id, request.file_url)

        changes = summarize_changes(existing, request)
        if not changes:
            raise ValidationError("변경된 내용이 없습니다.")

        fields = request.model_dump(exclude_unset=True, exclude={"edit_comment"})
        fields = {key: value for key, value in fields.items() if value is not None}

        try:
            worksheet = self.worksheet_repo.update(worksheet_id, commit=False, **fields)
            history = self.worksheet_repo.create_edit_history(
                worksheet_id=worksheet_id,
                editor_id=user_id,
                changes=", ".join(changes),
                comment=request.edit_comment,
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update worksheet {worksheet_id}: {str(e)}")
            raise InternalServerError("자료 수정에 실패했습니다.")

        logger.info(f"Worksheet {worksheet_id} updated: {history.changes}")
        return WorksheetUpdateResponse(worksheet=worksheet, edit_history=history)

    def delete(self, worksheet_id: int) -> None:
        """자료 삭제는 구매자의 재다운로드 보장을 위해 항상 거부"""
        logger.warning(f"Rejected delete request for worksheet {worksheet_id}")
        raise DeleteDisabledError(
            "워크시트 삭제는 구매자 보호를 위해 비활성화되어 있습니다."
        )

    def get_edit_history(self, user_id: int, worksheet_id: int) -> List[EditHistoryEntry]:
        self._get_owned(user_id, worksheet_id)
        return self.worksheet_repo.list_edit_history(worksheet_id)

    def send_edit_notification(
        self, user_id: int, edit_history_id: int
    ) -> EditNotificationResponse:
        """수정 이력 1건에 대해 구매자 전원에게 알림 발송 (1회 한정)"""
        history = self.worksheet_repo.get_edit_history(edit_history_id)
        if not history:
            raise NotFoundError("수정 이력을 찾을 수 없습니다.")

        worksheet = self.worksheet_repo.get_by_id(history.worksheet_id)
        if not worksheet:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        if worksheet.seller_id != user_id:
            raise AuthorizationError("권한이 없습니다.")
        if history.is_notified:
            raise AlreadyNotifiedError("이미 알림을 보냈습니다.")

        buyer_ids = self.worksheet_repo.get_buyer_ids(worksheet.id)
        try:
            if not self.worksheet_repo.mark_history_notified(edit_history_id, len(buyer_ids)):
                raise AlreadyNotifiedError("이미 알림을 보냈습니다.")
            self.notification_repo.bulk_create(
                [
                    {
                        "user_id": buyer_id,
                        "type": NotificationType.WORKSHEET_UPDATED.value,
                        "title": EDIT_NOTIFICATION_TITLE,
                        "message": f"「{worksheet.title}」 자료가 수정되었습니다. 변경 내용: {history.changes}",
                        "worksheet_id": worksheet.id,
                        "edit_history_id": edit_history_id,
                    }
                    for buyer_id in buyer_ids
                ]
            )
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to send edit notification {edit_history_id}: {str(e)}")
            raise InternalServerError("알림 발송에 실패했습니다.")

        logger.info(
            f"Edit notification {edit_history_id} sent to {len(buyer_ids)} buyers"
        )
        return EditNotificationResponse(notified_count=len(buyer_ids))

    def download(self, user_id: int, worksheet_id: int) -> DownloadResponse:
        """판매자 본인 또는 구매자만 다운로드 가능"""
        worksheet = self.worksheet_repo.get_by_id(worksheet_id)
        if not worksheet:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        if worksheet.seller_id != user_id and not self.purchase_repo.find_purchase(
            user_id, worksheet_id
        ):
            raise AuthorizationError("구매한 사용자만 다운로드할 수 있습니다.")

        return DownloadResponse(
            download_url=self.storage_service.resolve_download_url(worksheet.file_url)
        )

    def check_purchase(self, user_id: int, worksheet_id: int) -> PurchaseCheckResponse:
        purchase = self.purchase_repo.find_purchase(user_id, worksheet_id)
        return PurchaseCheckResponse(
            purchased=purchase is not None,
            has_feedback=bool(purchase and purchase.has_feedback),
        )

    def my_worksheets(self, user_id: int) -> List[Worksheet]:
        return self.worksheet_repo.list_by_seller(user_id)

    def sales_stats(self, user_id: int) -> SalesStatsResponse:
        stats = self.worksheet_repo.sales_stats(user_id)
        return SalesStatsResponse(
            total_sales=sum(stat.sales_count for stat in stats),
            total_earnings=sum(stat.earnings for stat in stats),
            worksheets=stats,
        )
