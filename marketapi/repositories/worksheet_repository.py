from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, or_, update
from sqlalchemy.orm import Session

from marketapi.models.user import User as UserModel
from marketapi.models.worksheet import (
    Feedback as FeedbackModel,
    Purchase as PurchaseModel,
    Worksheet as WorksheetModel,
    WorksheetEditHistory as EditHistoryModel,
    WorksheetStatus,
)
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.worksheet import (
    EditHistoryEntry,
    Worksheet as WorksheetSchema,
    WorksheetSalesStat,
    WorksheetSearchParams,
    WorksheetSort,
)
from marketapi.utils.validators import escape_like_pattern


class WorksheetRepository(BaseRepository[WorksheetModel, WorksheetSchema]):
    """워크시트(판매 자료) 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(WorksheetModel, WorksheetSchema, db)

    def _with_nickname(self, instance: WorksheetModel, nickname: Optional[str]) -> WorksheetSchema:
        schema = self._to_schema(instance)
        schema.seller_nickname = nickname
        return schema

    def get_detail(self, worksheet_id: int) -> Optional[WorksheetSchema]:
        """판매자 닉네임을 포함한 상세 조회"""
        self._ensure_clean_session()
        row = (
            self.db.query(WorksheetModel, UserModel.nickname)
            .outerjoin(UserModel, UserModel.id == WorksheetModel.seller_id)
            .filter(WorksheetModel.id == worksheet_id)
            .first()
        )
        if row is None:
            return None
        return self._with_nickname(row[0], row[1])

    def get_many(self, worksheet_ids: List[int]) -> dict:
        """ID 목록 → 자료 매핑 (없는 ID는 결과에서 빠짐)"""
        if not worksheet_ids:
            return {}
        instances = (
            self.db.query(self.model_class)
            .filter(self.model_class.id.in_(set(worksheet_ids)))
            .all()
        )
        return {instance.id: self._to_schema(instance) for instance in instances}

    def search(self, params: WorksheetSearchParams) -> Tuple[List[WorksheetSchema], int]:
        """
        승인된 자료 검색

        Returns:
            (현재 페이지 항목, 전체 건수)
        """
        self._ensure_clean_session()
        query = (
            self.db.query(WorksheetModel, UserModel.nickname)
            .outerjoin(UserModel, UserModel.id == WorksheetModel.seller_id)
            .filter(WorksheetModel.status == WorksheetStatus.APPROVED.value)
        )

        if params.search:
            pattern = f"%{escape_like_pattern(params.search.strip())}%"
            query = query.filter(
                or_(
                    WorksheetModel.title.ilike(pattern, escape="\\"),
                    WorksheetModel.description.ilike(pattern, escape="\\"),
                )
            )
        if params.grade:
            query = query.filter(WorksheetModel.grade == params.grade)
        if params.subject:
            query = query.filter(WorksheetModel.subject == params.subject)
        if params.category:
            query = query.filter(WorksheetModel.category == params.category)
        if params.min_price is not None:
            query = query.filter(WorksheetModel.price >= params.min_price)
        if params.max_price is not None:
            query = query.filter(WorksheetModel.price <= params.max_price)

        total = query.count()

        if params.sort == WorksheetSort.POPULAR:
            query = query.order_by(desc(WorksheetModel.sales_count), desc(WorksheetModel.id))
        elif params.sort == WorksheetSort.PRICE_LOW:
            query = query.order_by(WorksheetModel.price, desc(WorksheetModel.id))
        elif params.sort == WorksheetSort.PRICE_HIGH:
            query = query.order_by(desc(WorksheetModel.price), desc(WorksheetModel.id))
        elif params.sort == WorksheetSort.RATING:
            query = query.order_by(
                desc(WorksheetModel.average_rating),
                desc(WorksheetModel.review_count),
                desc(WorksheetModel.id),
            )
        else:
            query = query.order_by(desc(WorksheetModel.created_at), desc(WorksheetModel.id))

        rows = query.offset((params.page - 1) * params.limit).limit(params.limit).all()
        return [self._with_nickname(row[0], row[1]) for row in rows], total

    def list_by_seller(self, seller_id: int) -> List[WorksheetSchema]:
        return self.find_all(
            filters={"seller_id": seller_id}, order_by="id", descending=True
        )

    def increment_sales(self, worksheet_id: int) -> None:
        """판매/다운로드 수 증가 (커밋하지 않음)"""
        self.db.execute(
            update(WorksheetModel)
            .where(WorksheetModel.id == worksheet_id)
            .values(
                sales_count=WorksheetModel.sales_count + 1,
                download_count=WorksheetModel.download_count + 1,
            )
            .execution_options(synchronize_session="fetch")
        )

    def refresh_rating(self, worksheet_id: int) -> None:
        """후기 기준 평균 평점(소수점 1자리)과 후기 수 재계산 (커밋하지 않음)"""
        avg, count = (
            self.db.query(func.avg(FeedbackModel.rating), func.count(FeedbackModel.id))
            .filter(FeedbackModel.worksheet_id == worksheet_id)
            .one()
        )
        average = Decimal(str(avg or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        self.db.execute(
            update(WorksheetModel)
            .where(WorksheetModel.id == worksheet_id)
            .values(average_rating=average, review_count=count)
            .execution_options(synchronize_session="fetch")
        )

    def get_buyer_ids(self, worksheet_id: int) -> List[int]:
        rows = (
            self.db.query(PurchaseModel.buyer_id)
            .filter(PurchaseModel.worksheet_id == worksheet_id)
            .distinct()
            .all()
        )
        return [row.buyer_id for row in rows]

    def sales_stats(self, seller_id: int) -> List[WorksheetSalesStat]:
        """판매자 자료별 판매 수/수익"""
        rows = (
            self.db.query(
                WorksheetModel.id,
                WorksheetModel.title,
                func.count(PurchaseModel.id),
                func.coalesce(func.sum(PurchaseModel.price), 0),
            )
            .outerjoin(PurchaseModel, PurchaseModel.worksheet_id == WorksheetModel.id)
            .filter(WorksheetModel.seller_id == seller_id)
            .group_by(WorksheetModel.id, WorksheetModel.title)
            .order_by(desc(WorksheetModel.id))
            .all()
        )
        return [
            WorksheetSalesStat(
                worksheet_id=row[0],
                title=row[1],
                sales_count=int(row[2]),
                earnings=int(row[3]),
            )
            for row in rows
        ]

    # 수정 이력

    def create_edit_history(
        self,
        worksheet_id: int,
        editor_id: int,
        changes: str,
        comment: Optional[str],
        commit: bool = False,
    ) -> EditHistoryEntry:
        history = EditHistoryModel(
            worksheet_id=worksheet_id,
            editor_id=editor_id,
            changes=changes,
            comment=comment,
            is_notified=False,
            notified_count=0,
        )
        self.db.add(history)
        self.db.flush()
        self.db.refresh(history)
        if commit:
            self.db.commit()
        return EditHistoryEntry.model_validate(history)

    def get_edit_history(self, history_id: int) -> Optional[EditHistoryEntry]:
        history = (
            self.db.query(EditHistoryModel)
            .filter(EditHistoryModel.id == history_id)
            .first()
        )
        return EditHistoryEntry.model_validate(history) if history else None

    def list_edit_history(self, worksheet_id: int) -> List[EditHistoryEntry]:
        rows = (
            self.db.query(EditHistoryModel)
            .filter(EditHistoryModel.worksheet_id == worksheet_id)
            .order_by(desc(EditHistoryModel.id))
            .all()
        )
        return [EditHistoryEntry.model_validate(row) for row in rows]

    def mark_history_notified(self, history_id: int, notified_count: int) -> bool:
        """미발송 이력만 발송 처리 - 이미 발송된 경우 False (커밋하지 않음)"""
        result = self.db.execute(
            update(EditHistoryModel)
            .where(EditHistoryModel.id == history_id)
            .where(EditHistoryModel.is_notified.is_(False))
            .values(
                is_notified=True,
                notified_at=datetime.now(timezone.utc),
                notified_count=notified_count,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1
