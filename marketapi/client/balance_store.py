import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class Account(BaseModel):
    id: int
    email: str
    nickname: str
    role: str = "teacher"
    points: int = 0

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class BalanceStore:
    """
    로그인 계정과 마지막으로 확인된 포인트 잔액 보관

    서버 응답으로만 갱신되는 읽기용 캐시이며, 잔액을 계산해 서버로 보내는 데
    사용하지 않습니다. cache_path가 있으면 세션 유지를 위해 JSON 파일로 저장합니다.
    """

    def __init__(self, cache_path: Optional[str] = None):
        self._cache_path = Path(cache_path) if cache_path else None
        self._lock = threading.RLock()
        self._account: Optional[Account] = None
        self._token: Optional[str] = None

    @property
    def account(self) -> Optional[Account]:
        with self._lock:
            return self._account.model_copy() if self._account else None

    @property
    def account_id(self) -> Optional[int]:
        with self._lock:
            return self._account.id if self._account else None

    @property
    def balance(self) -> Optional[int]:
        with self._lock:
            return self._account.points if self._account else None

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set_account(self, account: Account, token: Optional[str]) -> None:
        """계정/잔액/토큰을 통째로 교체 (로그인, 세션 복원)"""
        with self._lock:
            self._account = account.model_copy()
            self._token = token
            self._persist()

    def update_balance(self, new_balance: int, account_id: Optional[int] = None) -> bool:
        """
        잔액만 교체

        account_id가 현재 계정과 다르면 (로그아웃/재로그인 중 도착한 응답) 무시하고 False.
        """
        if isinstance(new_balance, bool) or not isinstance(new_balance, int) or new_balance < 0:
            raise ValueError(f"invalid balance: {new_balance!r}")

        with self._lock:
            if self._account is None:
                return False
            if account_id is not None and account_id != self._account.id:
                logger.info(
                    f"Discarded balance update for account {account_id} (current {self._account.id})"
                )
                return False
            self._account = self._account.model_copy(update={"points": new_balance})
            self._persist()
            return True

    def clear(self) -> None:
        """메모리와 캐시 파일을 함께 비움"""
        with self._lock:
            self._account = None
            self._token = None
            if self._cache_path and self._cache_path.exists():
                self._cache_path.unlink()

    def load(self) -> bool:
        """캐시 파일에서 복원 - 파일이 없거나 손상되면 False"""
        if not self._cache_path or not self._cache_path.exists():
            return False
        try:
            data = json.loads(self._cache_path.read_text(encoding="utf-8"))
            account = Account.model_validate(data["account"])
        except (OSError, ValueError, KeyError, TypeError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable balance cache: {e}")
            return False

        with self._lock:
            self._account = account
            self._token = data.get("token")
        return True

    def _persist(self) -> None:
        if not self._cache_path or self._account is None:
            return
        payload = {"account": self._account.model_dump(), "token": self._token}
        tmp_path = self._cache_path.with_suffix(self._cache_path.suffix + ".tmp")
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self._cache_path)
