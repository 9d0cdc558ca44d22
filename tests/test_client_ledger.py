import httpx
import pytest

from marketapi.client.balance_store import Account, BalanceStore
from marketapi.client.cart import CartAggregate, ListingRef
from marketapi.client.config import ClientSettings
from marketapi.client.errors import (
    GENERIC_MESSAGE,
    AlreadyCheckedIn,
    AlreadyOwned,
    Conflict,
    DuplicateLine,
    Forbidden,
    InsufficientBalance,
    OperationPending,
    SelfPurchase,
    UnknownError,
    UpstreamFailure,
    ValidationFailed,
    from_response,
)
from marketapi.client.ledger_client import LedgerClient
from marketapi.client.search import ListingSearch

SETTINGS = ClientSettings(BASE_URL="http://market.test/api/v1")


def error_body(code, message="서버 메시지", details=None):
    return {"success": False, "error": {"code": code, "message": message, "details": details or {}}}


def worksheet_json(worksheet_id, seller_id=2, price=100):
    return {
        "id": worksheet_id,
        "seller_id": seller_id,
        "title": f"자료 {worksheet_id}",
        "description": "설명",
        "price": price,
        "grade": "elementary_3",
        "subject": "math",
        "category": "worksheet",
        "file_url": f"{seller_id}/a.pdf",
        "preview_image": "https://previews.example.com/a.png",
        "page_count": 1,
        "status": "approved",
    }


@pytest.fixture
def store():
    balance_store = BalanceStore()
    balance_store.set_account(
        Account(id=1, email="buyer@example.com", nickname="buyer", points=300), "token-1"
    )
    return balance_store


def make_client(store, handler, cart=None):
    return LedgerClient(store, cart=cart, settings=SETTINGS, transport=httpx.MockTransport(handler))


class TestErrorMapping:
    def test_known_code(self):
        response = httpx.Response(409, json=error_body("ALREADY_CHECKED_IN", "이미 출석했습니다."))

        error = from_response(response)

        assert isinstance(error, AlreadyCheckedIn)
        assert error.message == "이미 출석했습니다."
        assert error.status_code == 409

    def test_unknown_code_hides_message(self):
        response = httpx.Response(500, json=error_body("SOMETHING_NEW", "db host 10.0.0.1 down"))

        error = from_response(response)

        assert isinstance(error, UnknownError)
        assert "10.0.0.1" not in error.message

    def test_unknown_code_on_conflict_status_hides_message(self):
        """모르는 코드는 상태 코드로 분류하되 서버 메시지는 노출하지 않음"""
        response = httpx.Response(409, json=error_body("NEW_CONFLICT", "lock held by worker-7"))

        error = from_response(response)

        assert isinstance(error, Conflict)
        assert error.message == GENERIC_MESSAGE
        assert error.status_code == 409

    def test_status_fallback_without_body(self):
        assert isinstance(from_response(httpx.Response(403, text="nope")), Forbidden)


class TestBalanceStore:
    def test_discards_other_account(self, store):
        assert store.update_balance(50, account_id=2) is False
        assert store.balance == 300

    def test_rejects_negative_balance(self, store):
        with pytest.raises(ValueError):
            store.update_balance(-1)

    def test_cache_roundtrip_and_clear(self, tmp_path):
        path = tmp_path / "session.json"
        first = BalanceStore(cache_path=str(path))
        first.set_account(Account(id=5, email="a@example.com", nickname="a", points=10), "tok")
        first.update_balance(40)

        second = BalanceStore(cache_path=str(path))
        assert second.load() is True
        assert second.balance == 40
        assert second.token == "tok"

        second.clear()
        assert not path.exists()
        assert second.account is None


class TestCartAggregate:
    def test_add_rules(self):
        cart = CartAggregate(account_id=1, owned_worksheet_ids=[30])
        cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=100))

        with pytest.raises(DuplicateLine):
            cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=100))
        with pytest.raises(SelfPurchase):
            cart.add_line(ListingRef(id=20, seller_id=1, title="b", price=100))
        with pytest.raises(AlreadyOwned):
            cart.add_line(ListingRef(id=30, seller_id=2, title="c", price=100))

    def test_totals_skip_unresolved(self):
        cart = CartAggregate(account_id=1)
        cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=200))
        cart.remove_line(99)

        totals = cart.compute_totals()

        assert totals.total_price == 200
        assert cart.can_afford(200) is True
        assert cart.can_afford(199) is False


class TestLedgerClient:
    def test_checkout_success_clears_cart(self, store):
        """결제 성공 → 새 잔액 반영 + 장바구니 비움"""
        cart = CartAggregate(account_id=1)
        cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=250))

        def handler(request):
            assert request.headers["Authorization"] == "Bearer token-1"
            return httpx.Response(
                200,
                json={
                    "total_spent": 250,
                    "new_balance": 50,
                    "purchases": [{"purchase_id": 7, "worksheet_id": 10, "title": "a", "price": 250}],
                },
            )

        result = make_client(store, handler, cart).checkout()

        assert result.new_balance == 50
        assert store.balance == 50
        assert len(cart) == 0
        with pytest.raises(AlreadyOwned):
            cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=250))

    def test_checkout_failure_keeps_cart(self, store):
        cart = CartAggregate(account_id=1)
        cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=250))

        def handler(request):
            return httpx.Response(400, json=error_body("BALANCE_001", "포인트가 부족합니다."))

        with pytest.raises(InsufficientBalance):
            make_client(store, handler, cart).checkout()

        assert len(cart) == 1
        assert store.balance == 300

    def test_checkout_blocked_locally_when_unaffordable(self, store):
        cart = CartAggregate(account_id=1)
        cart.add_line(ListingRef(id=10, seller_id=2, title="a", price=400))
        calls = []

        with pytest.raises(InsufficientBalance):
            make_client(store, lambda request: calls.append(request), cart).checkout()

        assert calls == []

    def test_transport_error_requeries_balance(self, store):
        """전송 중 실패 → 잔액 재조회 후 UpstreamFailure"""

        def handler(request):
            if request.url.path.endswith("/daily/attendance"):
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"balance": 310})

        with pytest.raises(UpstreamFailure):
            make_client(store, handler).check_attendance()

        assert store.balance == 310

    def test_pending_operation(self, store):
        client = make_client(store, lambda request: httpx.Response(200, json={}))

        with client._guard("roulette"):
            assert client.is_pending("roulette")
            with pytest.raises(OperationPending):
                client.spin_roulette()

        assert not client.is_pending("roulette")

    def test_response_for_previous_account_is_ignored(self, store):
        """응답 도착 전에 다른 계정으로 바뀌면 잔액을 반영하지 않음"""

        def handler(request):
            store.set_account(Account(id=9, email="other@example.com", nickname="other", points=5), "t9")
            return httpx.Response(
                200,
                json={"points_won": 10, "prize_index": 1, "prizes": [5, 10, 15, 20, 30, 50], "new_balance": 310},
            )

        make_client(store, handler).spin_roulette()

        assert store.account_id == 9
        assert store.balance == 5

    @pytest.mark.parametrize("rating, comment", [(0, "좋은 자료입니다"), (6, "좋은 자료입니다"), (5, "짧음")])
    def test_feedback_validated_locally(self, store, rating, comment):
        calls = []

        with pytest.raises(ValidationFailed):
            make_client(store, lambda request: calls.append(request)).submit_feedback(3, rating, comment)

        assert calls == []

    def test_non_admin_cannot_approve(self, store):
        with pytest.raises(Forbidden):
            make_client(store, lambda request: None).approve_event_participation(1, True)

    def test_add_to_cart_rolls_back_local_line(self, store):
        cart = CartAggregate(account_id=1)

        def handler(request):
            return httpx.Response(409, json=error_body("ALREADY_OWNED"))

        with pytest.raises(AlreadyOwned):
            make_client(store, handler, cart).add_to_cart(ListingRef(id=10, seller_id=2, title="a", price=100))

        assert len(cart) == 0

    def test_fetch_cart_adopts_server_lines(self, store):
        cart = CartAggregate(account_id=1)

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "items": [
                        {"id": 1, "worksheet_id": 10, "worksheet": worksheet_json(10, price=150)},
                        {"id": 2, "worksheet_id": 11, "worksheet": None},
                    ],
                    "total_items": 2,
                    "total_price": 150,
                    "unresolved_worksheet_ids": [11],
                },
            )

        totals = make_client(store, handler, cart).fetch_cart()

        assert totals.unresolved_worksheet_ids == [11]
        assert cart.compute_totals().total_price == 150


class TestListingSearch:
    def test_stale_result_is_discarded(self):
        search = None

        def handler(request):
            # 응답 도착 전에 새 검색 시작
            search.guard.begin()
            return httpx.Response(200, json={"items": [], "total": 0, "page": 1, "limit": 20, "total_pages": 0})

        search = ListingSearch(settings=SETTINGS, transport=httpx.MockTransport(handler))

        assert search.search(subject="math") is None

    def test_current_result(self):
        def handler(request):
            assert request.url.params["subject"] == "math"
            return httpx.Response(
                200,
                json={"items": [worksheet_json(1)], "total": 1, "page": 1, "limit": 20, "total_pages": 1},
            )

        search = ListingSearch(settings=SETTINGS, transport=httpx.MockTransport(handler))

        result = search.search(subject="math", grade=None)

        assert result.total == 1
        assert result.items[0].id == 1
