import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import httpx

from marketapi.client.balance_store import BalanceStore
from marketapi.client.cart import CartAggregate, CartItem, CartTotals, ListingRef
from marketapi.client.config import ClientSettings
from marketapi.client.errors import (
    Forbidden,
    InsufficientBalance,
    LedgerError,
    OperationPending,
    Unauthenticated,
    UpstreamFailure,
    ValidationFailed,
    from_response,
)
from marketapi.schemas.daily import AttendanceResponse, RouletteResponse
from marketapi.schemas.event import (
    ApprovalResponse,
    ParticipationResponse,
    QuizSubmitResponse,
)
from marketapi.schemas.purchase import CartResponse, CheckoutResponse, FeedbackResponse

logger = logging.getLogger(__name__)

RATING_MIN, RATING_MAX = 1, 5
COMMENT_MIN_LENGTH, COMMENT_MAX_LENGTH = 5, 1000
SCORE_MIN, SCORE_MAX = 0, 100


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationFailed("평점은 정수여야 합니다.")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ValidationFailed(f"평점은 {RATING_MIN}~{RATING_MAX} 사이여야 합니다.")
    return rating


def validate_comment(comment: Optional[str]) -> str:
    text = (comment or "").strip()
    if not COMMENT_MIN_LENGTH <= len(text) <= COMMENT_MAX_LENGTH:
        raise ValidationFailed(
            f"후기는 {COMMENT_MIN_LENGTH}자 이상 {COMMENT_MAX_LENGTH}자 이하로 작성해주세요."
        )
    return text


def validate_score(score: Optional[int]) -> Optional[int]:
    if score is None:
        return None
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationFailed("점수는 정수여야 합니다.")
    if not SCORE_MIN <= score <= SCORE_MAX:
        raise ValidationFailed(f"점수는 {SCORE_MIN}~{SCORE_MAX} 사이여야 합니다.")
    return score


class LedgerClient:
    """
    포인트 변동 API 호출 전용 클라이언트

    - 입력은 먼저 로컬에서 검증하지만 서버 검증이 최종 결과입니다.
    - 같은 작업 키로 처리 중인 호출이 있으면 OperationPending을 발생시킵니다.
    - 변동 요청은 자동 재시도하지 않습니다. 네트워크 오류 시 잔액을 다시 조회한 뒤
      UpstreamFailure를 발생시킵니다.
    - 성공 응답의 new_balance만 BalanceStore에 반영합니다. 호출 시작 시점의 계정과
      다른 계정으로 바뀌었으면 반영하지 않습니다.
    """

    def __init__(
        self,
        balance_store: BalanceStore,
        cart: Optional[CartAggregate] = None,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings or ClientSettings()
        self.balance_store = balance_store
        self.cart = cart
        self._http = httpx.Client(
            base_url=self.settings.BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._pending: set = set()
        self._pending_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    def is_pending(self, key: str) -> bool:
        with self._pending_lock:
            return key in self._pending

    @contextmanager
    def _guard(self, key: str) -> Iterator[None]:
        with self._pending_lock:
            if key in self._pending:
                raise OperationPending("이전 요청을 처리하고 있습니다.")
            self._pending.add(key)
        try:
            yield
        finally:
            with self._pending_lock:
                self._pending.discard(key)

    def _headers(self) -> Dict[str, str]:
        token = self.balance_store.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = self._http.request(method, path, json=json, headers=self._headers())
        if response.is_error:
            raise from_response(response)
        return response.json()

    def _require_account(self) -> int:
        account_id = self.balance_store.account_id
        if account_id is None:
            raise Unauthenticated("로그인이 필요합니다.")
        return account_id

    def _mutate(
        self, key: str, method: str, path: str, json: Optional[Dict[str, Any]] = None
    ) -> Any:
        account_id = self._require_account()
        with self._guard(key):
            try:
                return self._request(method, path, json=json)
            except httpx.TransportError as e:
                logger.warning(f"{key} request failed in transit: {str(e)}")
                self._requery_balance(account_id)
                raise UpstreamFailure(
                    "요청 결과를 확인하지 못했습니다. 잔액을 확인한 뒤 다시 시도해주세요."
                ) from e

    def _apply_balance(self, new_balance: int, account_id: int) -> None:
        self.balance_store.update_balance(new_balance, account_id=account_id)

    def _requery_balance(self, account_id: int) -> None:
        try:
            data = self._request("GET", "/points/balance")
        except (LedgerError, httpx.HTTPError) as e:
            logger.warning(f"Balance re-query failed: {str(e)}")
            return
        self._apply_balance(data["balance"], account_id)

    # 조회

    def refresh_balance(self) -> int:
        account_id = self._require_account()
        data = self._request("GET", "/points/balance")
        self._apply_balance(data["balance"], account_id)
        return data["balance"]

    def _adopt_cart(self, data: Dict[str, Any]) -> CartTotals:
        response = CartResponse.model_validate(data)
        items: List[CartItem] = []
        for line in response.items:
            listing = None
            if line.worksheet is not None:
                listing = ListingRef(
                    id=line.worksheet.id,
                    seller_id=line.worksheet.seller_id,
                    title=line.worksheet.title,
                    price=line.worksheet.price,
                )
            items.append(CartItem(worksheet_id=line.worksheet_id, listing=listing))
        if self.cart is not None:
            self.cart.replace(items)
        return CartTotals(
            item_count=response.total_items,
            total_price=response.total_price,
            unresolved_worksheet_ids=response.unresolved_worksheet_ids,
        )

    def fetch_cart(self) -> CartTotals:
        self._require_account()
        return self._adopt_cart(self._request("GET", "/cart"))

    def add_to_cart(self, listing: ListingRef) -> CartTotals:
        """로컬 검사 후 서버 장바구니에 추가 - 서버가 거절하면 로컬 항목도 되돌림"""
        self._require_account()
        if self.cart is not None:
            self.cart.add_line(listing)
        try:
            data = self._request("POST", "/cart/items", json={"worksheet_id": listing.id})
        except (LedgerError, httpx.HTTPError):
            if self.cart is not None:
                self.cart.remove_line(listing.id)
            raise
        return self._adopt_cart(data)

    def remove_from_cart(self, worksheet_id: int) -> bool:
        self._require_account()
        data = self._request("DELETE", f"/cart/items/{worksheet_id}")
        if self.cart is not None:
            self.cart.remove_line(worksheet_id)
        return data["removed"]

    # 포인트 변동

    def checkout(self) -> CheckoutResponse:
        """
        장바구니 결제

        실패하면 장바구니를 그대로 두어 사용자가 항목을 조정한 뒤 다시 시도할 수 있습니다.
        """
        account_id = self._require_account()
        if self.cart is not None:
            if len(self.cart) == 0:
                raise ValidationFailed("장바구니가 비어 있습니다.")
            balance = self.balance_store.balance
            if balance is not None and not self.cart.can_afford(balance):
                raise InsufficientBalance("포인트가 부족합니다.")

        data = self._mutate("checkout", "POST", "/purchases/checkout")
        result = CheckoutResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        if self.cart is not None:
            self.cart.clear()
            self.cart.mark_owned(item.worksheet_id for item in result.purchases)
        return result

    def submit_feedback(self, purchase_id: int, rating: int, comment: str) -> FeedbackResponse:
        payload = {
            "purchase_id": purchase_id,
            "rating": validate_rating(rating),
            "comment": validate_comment(comment),
        }
        account_id = self._require_account()
        data = self._mutate(f"feedback:{purchase_id}", "POST", "/feedbacks", json=payload)
        result = FeedbackResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        return result

    def check_attendance(self) -> AttendanceResponse:
        """출석 체크 - 날짜는 서버 기준"""
        account_id = self._require_account()
        data = self._mutate("attendance", "POST", "/daily/attendance")
        result = AttendanceResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        return result

    def spin_roulette(self) -> RouletteResponse:
        """
        룰렛 - 당첨 결과는 서버가 결정합니다

        화면의 회전 연출은 반환된 prize_index를 목표로 재생해야 합니다.
        """
        account_id = self._require_account()
        data = self._mutate("roulette", "POST", "/daily/roulette")
        result = RouletteResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        return result

    def submit_quiz_participation(
        self, event_id: int, answers: Dict[int, str]
    ) -> QuizSubmitResponse:
        if not answers:
            raise ValidationFailed("답안을 입력해주세요.")
        account_id = self._require_account()
        data = self._mutate(
            f"event:{event_id}",
            "POST",
            f"/events/{event_id}/quiz",
            json={"answers": {str(key): value for key, value in answers.items()}},
        )
        result = QuizSubmitResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        return result

    def participate_first_come(
        self, event_id: int, comment: Optional[str] = None
    ) -> ParticipationResponse:
        account_id = self._require_account()
        data = self._mutate(
            f"event:{event_id}",
            "POST",
            f"/events/{event_id}/participate",
            json={"comment": comment},
        )
        result = ParticipationResponse.model_validate(data)
        self._apply_balance(result.new_balance, account_id)
        return result

    def approve_event_participation(
        self, participation_id: int, approved: bool, adjusted_score: Optional[int] = None
    ) -> ApprovalResponse:
        """댓글 이벤트 심사 (관리자) - 지급 대상은 참여자이므로 내 잔액은 바뀌지 않음"""
        account = self.balance_store.account
        if account is None:
            raise Unauthenticated("로그인이 필요합니다.")
        if not account.is_admin:
            raise Forbidden("관리자 권한이 필요합니다.")

        payload = {"approved": bool(approved), "adjusted_score": validate_score(adjusted_score)}
        data = self._mutate(
            f"approval:{participation_id}",
            "POST",
            f"/admin/participations/{participation_id}/decision",
            json=payload,
        )
        return ApprovalResponse.model_validate(data)
