import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

import httpx

from marketapi.client.balance_store import Account, BalanceStore
from marketapi.client.config import ClientSettings
from marketapi.client.errors import LedgerError, from_response

logger = logging.getLogger(__name__)


class AuthState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"


class AuthSession:
    """
    로그인 상태 보관 (uninitialized → loading → authenticated | anonymous)

    - initialize()는 한 번만 실행되며, 제한 시간 안에 세션을 확인하지 못하면 anonymous로 결정합니다.
    - 외부 인증 이벤트는 handle_auth_event() 하나로 받아 디바운스 후 마지막 이벤트만 처리합니다.
    - logout()은 서버 로그아웃 호출 전에 로컬 상태부터 비웁니다.
    - 로그아웃 이후에 끝난 프로필 조회 결과는 버립니다 (세션 세대 번호로 판단).
    - 상태 변경은 on_change(state) 콜백 하나로 알립니다.
    """

    def __init__(
        self,
        balance_store: BalanceStore,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
        on_change: Optional[Callable[[AuthState], None]] = None,
    ):
        self.settings = settings or ClientSettings()
        self.balance_store = balance_store
        self.on_change = on_change
        self._http = httpx.Client(
            base_url=self.settings.BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._state = AuthState.UNINITIALIZED
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._pending_event: Optional[tuple] = None
        # 로그아웃/이벤트 취소마다 증가
        self._generation = 0

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def account(self) -> Optional[Account]:
        return self.balance_store.account

    def _set_state(self, state: AuthState) -> None:
        with self._lock:
            if state == self._state:
                return
            self._state = state
        logger.info(f"Auth state -> {state.value}")
        if self.on_change:
            self.on_change(state)

    def _fetch_me(self, token: str, timeout: Optional[float] = None) -> Account:
        response = self._http.get(
            "/auth/me",
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout if timeout is not None else self.settings.REQUEST_TIMEOUT_SECONDS,
        )
        if response.is_error:
            raise from_response(response)
        return Account.model_validate(response.json())

    def _fetch_me_within(self, token: str, deadline: float) -> Account:
        """
        전체 제한 시간 안에 프로필 조회

        httpx timeout은 연결/읽기 단계별 제한이라 느리게 전송되는 응답을 끊지 못하므로
        작업 스레드의 결과를 deadline까지만 기다립니다.
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="auth-restore")
        try:
            future = executor.submit(self._fetch_me, token, deadline)
            return future.result(timeout=deadline)
        finally:
            executor.shutdown(wait=False)

    def _adopt(self, generation: int, account: Account, token: str) -> bool:
        """조회 시작 이후 로그아웃/취소가 없었을 때만 계정 반영"""
        with self._lock:
            if generation != self._generation:
                logger.info(f"Discarded profile for account {account.id} from an ended session")
                return False
            self.balance_store.set_account(account, token)
            self._set_state(AuthState.AUTHENTICATED)
            return True

    def initialize(self) -> AuthState:
        """저장된 토큰으로 세션 복원 - 두 번째 호출부터는 현재 상태만 반환"""
        with self._lock:
            if self._state != AuthState.UNINITIALIZED:
                return self._state
            self._set_state(AuthState.LOADING)
            generation = self._generation

        self.balance_store.load()
        token = self.balance_store.token
        if not token:
            self._set_state(AuthState.ANONYMOUS)
            return self._state

        try:
            account = self._fetch_me_within(token, self.settings.INIT_TIMEOUT_SECONDS)
        except FutureTimeoutError:
            logger.warning(
                f"Session restore exceeded {self.settings.INIT_TIMEOUT_SECONDS}s, continuing as anonymous"
            )
            self._drop_session()
            return self._state
        except (LedgerError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Session restore failed, continuing as anonymous: {str(e)}")
            self._drop_session()
            return self._state

        self._adopt(generation, account, token)
        return self._state

    def _drop_session(self) -> None:
        with self._lock:
            self._generation += 1
            self.balance_store.clear()
            self._set_state(AuthState.ANONYMOUS)

    def login(self, email: str, password: str) -> Account:
        response = self._http.post("/auth/login", json={"email": email, "password": password})
        if response.is_error:
            raise from_response(response)
        data = response.json()
        account = Account.model_validate(data["user"])
        with self._lock:
            self.balance_store.set_account(account, data["access_token"])
            self._set_state(AuthState.AUTHENTICATED)
        return account

    def logout(self) -> None:
        """로컬 상태를 먼저 비운 뒤 서버 로그아웃 호출 (실패해도 로컬은 로그아웃 상태)"""
        token = self.balance_store.token
        with self._lock:
            self.cancel_pending()
            self._drop_session()

        if not token:
            return
        try:
            response = self._http.post(
                "/auth/logout", headers={"Authorization": f"Bearer {token}"}
            )
            if response.is_error:
                logger.warning(f"Backend sign-out returned {response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"Backend sign-out failed: {str(e)}")

    # 외부 인증 이벤트

    def handle_auth_event(self, event: AuthEvent, token: Optional[str] = None) -> None:
        """인증 이벤트 수신 - 디바운스 시간 안에 들어온 이벤트 중 마지막 것만 처리"""
        with self._lock:
            self._pending_event = (AuthEvent(event), token)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(
                self.settings.AUTH_EVENT_DEBOUNCE_SECONDS, self.flush_pending
            )
            self._timer.daemon = True
            self._timer.start()

    def cancel_pending(self) -> None:
        """대기 중인 이벤트와 진행 중인 프로필 조회 결과를 모두 무효화"""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_event = None

    def flush_pending(self) -> None:
        """대기 중인 마지막 이벤트를 즉시 처리"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            pending, self._pending_event = self._pending_event, None
            generation = self._generation

        if pending is None:
            return
        event, token = pending
        if event == AuthEvent.SIGNED_OUT:
            self._drop_session()
            return

        token = token or self.balance_store.token
        if not token:
            self._set_state(AuthState.ANONYMOUS)
            return
        try:
            account = self._fetch_me(token)
        except (LedgerError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Profile refresh after {event.value} failed: {str(e)}")
            with self._lock:
                if generation == self._generation:
                    self._drop_session()
            return

        self._adopt(generation, account, token)

    def close(self) -> None:
        self.cancel_pending()
        self._http.close()
