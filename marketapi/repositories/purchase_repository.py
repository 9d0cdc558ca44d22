from typing import List, Optional, Set

from sqlalchemy import desc, func, update
from sqlalchemy.orm import Session

from marketapi.models.user import User as UserModel
from marketapi.models.worksheet import (
    Feedback as FeedbackModel,
    Purchase as PurchaseModel,
    Worksheet as WorksheetModel,
)
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.purchase import Feedback as FeedbackSchema, Purchase as PurchaseSchema
from marketapi.schemas.worksheet import Worksheet as WorksheetSchema


class PurchaseRepository(BaseRepository[PurchaseModel, PurchaseSchema]):
    """구매 기록 및 후기 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(PurchaseModel, PurchaseSchema, db)

    def create_purchase(
        self, buyer_id: int, worksheet_id: int, price: int, commit: bool = False
    ) -> PurchaseSchema:
        return self.create(
            commit=commit,
            buyer_id=buyer_id,
            worksheet_id=worksheet_id,
            price=price,
            has_feedback=False,
        )

    def find_purchase(self, buyer_id: int, worksheet_id: int) -> Optional[PurchaseSchema]:
        self._ensure_clean_session()
        instance = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.buyer_id == buyer_id,
                self.model_class.worksheet_id == worksheet_id,
            )
            .first()
        )
        return self._to_schema(instance)

    def owned_worksheet_ids(self, buyer_id: int, worksheet_ids: List[int]) -> Set[int]:
        if not worksheet_ids:
            return set()
        rows = (
            self.db.query(self.model_class.worksheet_id)
            .filter(
                self.model_class.buyer_id == buyer_id,
                self.model_class.worksheet_id.in_(set(worksheet_ids)),
            )
            .all()
        )
        return {row.worksheet_id for row in rows}

    def list_for_buyer(self, buyer_id: int) -> List[PurchaseSchema]:
        """구매 목록 (자료 정보 포함, 최신순)"""
        self._ensure_clean_session()
        rows = (
            self.db.query(PurchaseModel, WorksheetModel)
            .outerjoin(WorksheetModel, WorksheetModel.id == PurchaseModel.worksheet_id)
            .filter(PurchaseModel.buyer_id == buyer_id)
            .order_by(desc(PurchaseModel.id))
            .all()
        )
        results = []
        for purchase, worksheet in rows:
            schema = self._to_schema(purchase)
            if worksheet is not None:
                schema.worksheet = WorksheetSchema.model_validate(worksheet)
            results.append(schema)
        return results

    def count_for_buyer(self, buyer_id: int) -> int:
        return self.count({"buyer_id": buyer_id})

    def mark_feedback_written(self, purchase_id: int) -> bool:
        """has_feedback을 한 번만 true로 변경 - 이미 작성된 경우 False (커밋하지 않음)"""
        result = self.db.execute(
            update(PurchaseModel)
            .where(PurchaseModel.id == purchase_id)
            .where(PurchaseModel.has_feedback.is_(False))
            .values(has_feedback=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    # 후기

    def create_feedback(
        self,
        purchase_id: int,
        worksheet_id: int,
        buyer_id: int,
        rating: int,
        comment: str,
    ) -> FeedbackSchema:
        feedback = FeedbackModel(
            purchase_id=purchase_id,
            worksheet_id=worksheet_id,
            buyer_id=buyer_id,
            rating=rating,
            comment=comment,
        )
        self.db.add(feedback)
        self.db.flush()
        self.db.refresh(feedback)
        return FeedbackSchema.model_validate(feedback)

    def _feedback_query(self):
        return self.db.query(FeedbackModel, UserModel.nickname).outerjoin(
            UserModel, UserModel.id == FeedbackModel.buyer_id
        )

    def _to_feedbacks(self, rows) -> List[FeedbackSchema]:
        results = []
        for feedback, nickname in rows:
            schema = FeedbackSchema.model_validate(feedback)
            schema.buyer_nickname = nickname
            results.append(schema)
        return results

    def list_feedbacks_for_worksheet(self, worksheet_id: int) -> List[FeedbackSchema]:
        rows = (
            self._feedback_query()
            .filter(FeedbackModel.worksheet_id == worksheet_id)
            .order_by(desc(FeedbackModel.id))
            .all()
        )
        return self._to_feedbacks(rows)

    def list_feedbacks_for_buyer(self, buyer_id: int) -> List[FeedbackSchema]:
        rows = (
            self._feedback_query()
            .filter(FeedbackModel.buyer_id == buyer_id)
            .order_by(desc(FeedbackModel.id))
            .all()
        )
        return self._to_feedbacks(rows)

    def seller_totals(self, seller_id: int) -> tuple:
        """(총 판매 수, 총 판매 수익)"""
        sales, earnings = (
            self.db.query(
                func.count(PurchaseModel.id),
                func.coalesce(func.sum(PurchaseModel.price), 0),
            )
            .join(WorksheetModel, WorksheetModel.id == PurchaseModel.worksheet_id)
            .filter(WorksheetModel.seller_id == seller_id)
            .one()
        )
        return int(sales), int(earnings)
