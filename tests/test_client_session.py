import socket
import threading
import time

import httpx
import pytest

from marketapi.client.auth_session import AuthEvent, AuthSession, AuthState
from marketapi.client.balance_store import Account, BalanceStore
from marketapi.client.config import ClientSettings

SETTINGS = ClientSettings(BASE_URL="http://market.test/api/v1", AUTH_EVENT_DEBOUNCE_SECONDS=60)

ME = {"id": 1, "email": "teacher@example.com", "nickname": "teacher", "role": "teacher", "points": 120}


def make_session(handler, store=None, states=None):
    return AuthSession(
        store or BalanceStore(),
        settings=SETTINGS,
        transport=httpx.MockTransport(handler),
        on_change=states.append if states is not None else None,
    )


def seeded_store(tmp_path, token="cached-token"):
    path = tmp_path / "session.json"
    BalanceStore(cache_path=str(path)).set_account(Account(**ME), token)
    return BalanceStore(cache_path=str(path))


class TestInitialize:
    def test_without_token_is_anonymous(self):
        states = []
        session = make_session(lambda request: httpx.Response(500), states=states)

        assert session.initialize() == AuthState.ANONYMOUS
        assert states == [AuthState.LOADING, AuthState.ANONYMOUS]

    def test_restores_cached_session_once(self, tmp_path):
        """캐시된 토큰으로 복원 - 두 번째 호출은 서버를 다시 부르지 않음"""
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json={**ME, "points": 150})

        session = make_session(handler, store=seeded_store(tmp_path))

        assert session.initialize() == AuthState.AUTHENTICATED
        assert session.initialize() == AuthState.AUTHENTICATED
        assert calls == ["/api/v1/auth/me"]
        assert session.account.points == 150

    def test_rejected_token_clears_cache(self, tmp_path):
        store = seeded_store(tmp_path)
        session = make_session(lambda request: httpx.Response(401), store=store)

        assert session.initialize() == AuthState.ANONYMOUS
        assert store.token is None
        assert not (tmp_path / "session.json").exists()

    def test_timeout_resolves_to_anonymous(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        session = make_session(handler, store=seeded_store(tmp_path))

        assert session.initialize() == AuthState.ANONYMOUS


class TestLoginLogout:
    def test_login(self):
        states = []

        def handler(request):
            return httpx.Response(200, json={"access_token": "tok", "token_type": "bearer", "user": ME})

        session = make_session(handler, states=states)

        account = session.login("teacher@example.com", "password123")

        assert account.id == 1
        assert session.state == AuthState.AUTHENTICATED
        assert session.balance_store.token == "tok"
        assert states == [AuthState.AUTHENTICATED]

    def test_logout_clears_local_state_first(self):
        store = BalanceStore()
        store.set_account(Account(**ME), "tok")
        seen = {}

        def handler(request):
            seen["token_during_call"] = store.token
            seen["auth_header"] = request.headers.get("Authorization")
            raise httpx.ConnectError("offline", request=request)

        session = make_session(handler, store=store)

        session.logout()

        assert session.state == AuthState.ANONYMOUS
        assert seen == {"token_during_call": None, "auth_header": "Bearer tok"}


class TestAuthEvents:
    def test_only_last_event_is_handled(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=ME)

        session = make_session(handler)
        session.handle_auth_event(AuthEvent.SIGNED_IN, token="tok")
        session.handle_auth_event(AuthEvent.TOKEN_REFRESHED, token="tok")
        session.handle_auth_event(AuthEvent.SIGNED_OUT)

        session.flush_pending()

        assert calls == []
        assert session.state == AuthState.ANONYMOUS
        session.close()

    def test_sign_in_event_loads_profile(self):
        states = []
        session = make_session(lambda request: httpx.Response(200, json=ME), states=states)
        session.handle_auth_event(AuthEvent.SIGNED_OUT)
        session.handle_auth_event(AuthEvent.SIGNED_IN, token="tok")

        session.flush_pending()
        session.flush_pending()

        assert session.state == AuthState.AUTHENTICATED
        assert session.balance_store.token == "tok"
        assert states == [AuthState.AUTHENTICATED]
        session.close()


class TestLogoutDuringRefresh:
    def test_refresh_finishing_after_logout_is_discarded(self, tmp_path):
        """프로필 조회 중 로그아웃 → 늦게 도착한 조회 결과로 다시 로그인되지 않음"""
        # Given
        path = tmp_path / "session.json"
        store = BalanceStore(cache_path=str(path))
        entered = threading.Event()
        release = threading.Event()

        def handler(request):
            if request.url.path.endswith("/auth/me"):
                entered.set()
                release.wait(5)
                return httpx.Response(200, json=ME)
            return httpx.Response(200, json={"success": True})

        session = make_session(handler, store=store)
        session.handle_auth_event(AuthEvent.SIGNED_IN, token="tok")
        refresh = threading.Thread(target=session.flush_pending)
        refresh.start()
        assert entered.wait(5)

        # When
        session.logout()
        release.set()
        refresh.join(5)

        # Then
        assert session.state == AuthState.ANONYMOUS
        assert store.account is None
        assert store.token is None
        assert not path.exists()
        session.close()


@pytest.fixture
def trickle_server():
    """헤더 전송 후 0.2초마다 1바이트씩 본문을 보내는 로컬 서버"""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    stop = threading.Event()

    def serve():
        conn, _ = listener.accept()
        with conn:
            conn.recv(65536)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\nContent-Length: 200\r\n\r\n"
            )
            while not stop.wait(0.2):
                try:
                    conn.sendall(b" ")
                except OSError:
                    return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}/api/v1"
    finally:
        stop.set()
        listener.close()


class TestInitializeDeadline:
    def test_slow_response_is_cut_off(self, tmp_path, trickle_server):
        """바이트가 조금씩 도착해도 전체 제한 시간이 지나면 anonymous로 결정"""
        # Given
        settings = ClientSettings(BASE_URL=trickle_server, INIT_TIMEOUT_SECONDS=0.5)
        store = seeded_store(tmp_path)
        session = AuthSession(store, settings=settings, transport=httpx.HTTPTransport())

        # When
        started = time.monotonic()
        state = session.initialize()
        elapsed = time.monotonic() - started

        # Then
        assert state == AuthState.ANONYMOUS
        assert elapsed < 2.0
        assert store.token is None
        session.close()
