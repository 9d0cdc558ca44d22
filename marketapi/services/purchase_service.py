import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.core.exceptions import (
    AlreadyOwnedError,
    AlreadyReviewedError,
    BaseAPIException,
    InternalServerError,
    NotFoundError,
    SelfPurchaseError,
    ValidationError,
)
from marketapi.models.points import PointTransactionType
from marketapi.models.worksheet import WorksheetStatus
from marketapi.repositories.cart_repository import CartRepository
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
from marketapi.schemas.purchase import (
    CheckoutResponse,
    Feedback,
    FeedbackCreateRequest,
    FeedbackResponse,
    Purchase,
    PurchasedItem,
)
from marketapi.services.point_service import PointService

logger = logging.getLogger(__name__)


class PurchaseService:
    """구매(체크아웃)와 후기 보상 서비스

    두 작업 모두 하나의 DB 트랜잭션으로 처리되어 부분 반영이 없습니다.
    """

    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.purchase_repo = PurchaseRepository(db)
        self.worksheet_repo = WorksheetRepository(db)
        self.point_service = PointService(db)

    def checkout(self, user_id: int) -> CheckoutResponse:
        """
        장바구니 전체 구매 (전부 성공 또는 전부 실패)

        1. 모든 항목 검증 (자료 존재/승인, 본인 자료, 이미 구매)
        2. 구매자 잔액에서 합계 1회 차감 (잔액 부족 시 InsufficientBalanceError)
        3. 항목별 구매 기록 생성, 판매자 수익 지급, 판매 수 증가
        4. 장바구니 비우기
        """
        lines = self.cart_repo.list_for_user(user_id)
        if not lines:
            raise ValidationError("장바구니가 비어있습니다.")

        worksheet_ids = [line.worksheet_id for line in lines]
        worksheets = self.worksheet_repo.get_many(worksheet_ids)
        owned = self.purchase_repo.owned_worksheet_ids(user_id, worksheet_ids)

        for worksheet_id in worksheet_ids:
            worksheet = worksheets.get(worksheet_id)
            if worksheet is None or worksheet.status != WorksheetStatus.APPROVED.value:
                raise NotFoundError(
                    "구매할 수 없는 자료가 장바구니에 있습니다.",
                    details={"worksheet_id": worksheet_id},
                )
            if worksheet.seller_id == user_id:
                raise SelfPurchaseError(details={"worksheet_id": worksheet_id})
            if worksheet_id in owned:
                raise AlreadyOwnedError(details={"worksheet_id": worksheet_id})

        total_price = sum(worksheets[wid].price for wid in worksheet_ids)

        try:
            debit = self.point_service.apply(
                user_id=user_id,
                amount=-total_price,
                type=PointTransactionType.PURCHASE,
                description="워크시트 구매",
            )

            purchased: List[PurchasedItem] = []
            for worksheet_id in worksheet_ids:
                worksheet = worksheets[worksheet_id]
                purchase = self.purchase_repo.create_purchase(
                    buyer_id=user_id, worksheet_id=worksheet_id, price=worksheet.price
                )
                self.worksheet_repo.increment_sales(worksheet_id)
                self.point_service.apply(
                    user_id=worksheet.seller_id,
                    amount=worksheet.price,
                    type=PointTransactionType.SALE,
                    description=f"{worksheet.title} 판매",
                    related_id=purchase.id,
                )
                purchased.append(
                    PurchasedItem(
                        purchase_id=purchase.id,
                        worksheet_id=worksheet_id,
                        title=worksheet.title,
                        price=worksheet.price,
                    )
                )

            self.cart_repo.clear(user_id, commit=False)
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadyOwnedError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Checkout failed for user {user_id}: {str(e)}")
            raise InternalServerError("구매 처리에 실패했습니다.")

        logger.info(
            f"User {user_id} purchased {len(purchased)} worksheets for {total_price}P"
        )
        return CheckoutResponse(
            total_spent=total_price,
            new_balance=debit.balance_after,
            purchases=purchased,
        )

    def list_purchases(self, user_id: int) -> List[Purchase]:
        return self.purchase_repo.list_for_buyer(user_id)

    def submit_feedback(self, user_id: int, request: FeedbackCreateRequest) -> FeedbackResponse:
        """
        후기 작성 + 30P 보상 (구매 1건당 1회)

        has_feedback 조건부 UPDATE와 feedbacks.purchase_id 유니크 제약으로
        동시 요청에서도 보상이 두 번 지급되지 않습니다.
        """
        purchase = self.purchase_repo.get_by_id(request.purchase_id)
        if not purchase or purchase.buyer_id != user_id:
            raise NotFoundError("구매 내역을 찾을 수 없습니다.")
        if purchase.has_feedback:
            raise AlreadyReviewedError()

        refund = settings.FEEDBACK_REFUND_POINTS
        try:
            if not self.purchase_repo.mark_feedback_written(purchase.id):
                raise AlreadyReviewedError()
            feedback = self.purchase_repo.create_feedback(
                purchase_id=purchase.id,
                worksheet_id=purchase.worksheet_id,
                buyer_id=user_id,
                rating=request.rating,
                comment=request.comment,
            )
            self.worksheet_repo.refresh_rating(purchase.worksheet_id)
            entry = self.point_service.apply(
                user_id=user_id,
                amount=refund,
                type=PointTransactionType.FEEDBACK_REFUND,
                description="후기 작성 보상",
                related_id=feedback.id,
                ref_id=f"feedback_refund_{purchase.id}",
            )
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadyReviewedError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Feedback failed for purchase {purchase.id}: {str(e)}")
            raise InternalServerError("후기 등록에 실패했습니다.")

        logger.info(f"User {user_id} reviewed purchase {purchase.id}, refunded {refund}P")
        return FeedbackResponse(
            feedback_id=feedback.id,
            points_refunded=refund,
            new_balance=entry.balance_after,
        )

    def list_feedbacks(self, worksheet_id: int) -> List[Feedback]:
        return self.purchase_repo.list_feedbacks_for_worksheet(worksheet_id)

    def my_feedbacks(self, user_id: int) -> List[Feedback]:
        return self.purchase_repo.list_feedbacks_for_buyer(user_id)
