from unittest.mock import Mock

import pytest
from pydantic import ValidationError as PydanticValidationError

from marketapi.core.exceptions import (
    AlreadyNotifiedError,
    AuthorizationError,
    DeleteDisabledError,
    ValidationError,
)
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.schemas.worksheet import (
    WorksheetCreateRequest,
    WorksheetSearchParams,
    WorksheetUpdateRequest,
)
from marketapi.services.notification_service import NotificationService
from marketapi.services.storage_service import StorageService
from marketapi.services.worksheet_service import WorksheetService


def create_request(**overrides) -> WorksheetCreateRequest:
    fields = {
        "title": "분수 덧셈 학습지",
        "description": "분모가 같은 분수의 덧셈을 연습합니다.",
        "price": 200,
        "grade": "elementary_3",
        "subject": "math",
        "category": "worksheet",
        "file_url": "1/elementary_3_math_worksheet_2p_1_20260301_090000.pdf",
        "preview_image": "https://previews.example.com/1.png",
    }
    fields.update(overrides)
    return WorksheetCreateRequest(**fields)


@pytest.fixture
def storage():
    service = Mock(spec=StorageService)
    service.resolve_download_url.return_value = "https://signed.example.com/file.pdf"
    return service


class TestPriceBounds:
    """가격은 100~500P - 등록/수정 모두 검증"""

    @pytest.mark.parametrize("price", [99, 501, 0])
    def test_create_rejects_out_of_range(self, price):
        with pytest.raises(PydanticValidationError):
            create_request(price=price)

    @pytest.mark.parametrize("price", [99, 501])
    def test_update_rejects_out_of_range(self, price):
        with pytest.raises(PydanticValidationError):
            WorksheetUpdateRequest(price=price)

    @pytest.mark.parametrize("price", [100, 500])
    def test_boundaries_are_accepted(self, price):
        assert create_request(price=price).price == price


class TestEditHistory:
    def test_price_change_recorded_without_notifying(self, db, make_user, make_worksheet, storage):
        """가격 수정 → 이력에 이전/새 가격 기록, 발송 전까지 구매자 알림 없음"""
        # Given
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id, price=200)
        PurchaseRepository(db).create_purchase(buyer.id, worksheet.id, 200, commit=True)
        service = WorksheetService(db, storage_service=storage)

        # When
        result = service.update(
            seller.id, worksheet.id, WorksheetUpdateRequest(price=300, edit_comment="문제 추가")
        )

        # Then
        assert result.worksheet.price == 300
        assert "200P" in result.edit_history.changes
        assert "300P" in result.edit_history.changes
        assert result.edit_history.is_notified is False
        assert NotificationService(db).unread_count(buyer.id).count == 0

    def test_send_notification_once(self, db, make_user, make_worksheet, storage):
        seller = make_user()
        buyers = [make_user(), make_user()]
        worksheet = make_worksheet(seller.id, price=200)
        for buyer in buyers:
            PurchaseRepository(db).create_purchase(buyer.id, worksheet.id, 200, commit=True)
        service = WorksheetService(db, storage_service=storage)
        history = service.update(
            seller.id, worksheet.id, WorksheetUpdateRequest(title="분수 덧셈 학습지 (개정)")
        ).edit_history

        result = service.send_edit_notification(seller.id, history.id)
        with pytest.raises(AlreadyNotifiedError):
            service.send_edit_notification(seller.id, history.id)

        assert result.notified_count == 2
        for buyer in buyers:
            notifications = NotificationService(db).list(buyer.id)
            assert len(notifications) == 1
            assert notifications[0].edit_history_id == history.id

    def test_non_owner_cannot_send_notification(self, db, make_user, make_worksheet, storage):
        """발송 여부와 관계없이 판매자가 아니면 권한 오류"""
        seller = make_user()
        other = make_user()
        worksheet = make_worksheet(seller.id)
        service = WorksheetService(db, storage_service=storage)
        history = service.update(
            seller.id, worksheet.id, WorksheetUpdateRequest(title="분수 뺄셈 학습지")
        ).edit_history

        with pytest.raises(AuthorizationError):
            service.send_edit_notification(other.id, history.id)

        service.send_edit_notification(seller.id, history.id)
        with pytest.raises(AuthorizationError):
            service.send_edit_notification(other.id, history.id)

    def test_only_seller_can_edit(self, db, make_user, make_worksheet, storage):
        seller = make_user()
        other = make_user()
        worksheet = make_worksheet(seller.id)

        with pytest.raises(AuthorizationError):
            WorksheetService(db, storage_service=storage).update(
                other.id, worksheet.id, WorksheetUpdateRequest(price=300)
            )

    def test_no_effective_change(self, db, make_user, make_worksheet, storage):
        seller = make_user()
        worksheet = make_worksheet(seller.id, price=200)

        with pytest.raises(ValidationError):
            WorksheetService(db, storage_service=storage).update(
                seller.id, worksheet.id, WorksheetUpdateRequest(price=200)
            )


class TestWorksheetAccess:
    def test_delete_is_disabled(self, db, make_user, make_worksheet, storage):
        seller = make_user()
        worksheet = make_worksheet(seller.id)

        with pytest.raises(DeleteDisabledError):
            WorksheetService(db, storage_service=storage).delete(worksheet.id)

    def test_download_requires_purchase(self, db, make_user, make_worksheet, storage):
        seller = make_user()
        buyer = make_user()
        stranger = make_user()
        worksheet = make_worksheet(seller.id)
        PurchaseRepository(db).create_purchase(buyer.id, worksheet.id, 100, commit=True)
        service = WorksheetService(db, storage_service=storage)

        assert service.download(buyer.id, worksheet.id).download_url.startswith("https://signed")
        assert service.download(seller.id, worksheet.id).download_url
        with pytest.raises(AuthorizationError):
            service.download(stranger.id, worksheet.id)
        storage.resolve_download_url.assert_called_with(worksheet.file_url)

    def test_cannot_list_another_sellers_file(self, db, make_user, make_worksheet, storage):
        """다른 판매자의 저장 경로로 자료를 등록해 유료 파일을 받을 수 없음"""
        # Given
        victim = make_user()
        attacker = make_user()
        original = make_worksheet(victim.id, price=500)
        service = WorksheetService(db, storage_service=storage)

        # When / Then
        with pytest.raises(AuthorizationError):
            service.create(attacker.id, create_request(price=100, file_url=original.file_url))
        with pytest.raises(AuthorizationError):
            service.create(
                attacker.id,
                create_request(file_url=f"{attacker.id}/../{victim.id}/secret.pdf"),
            )

        own = make_worksheet(attacker.id)
        with pytest.raises(AuthorizationError):
            service.update(attacker.id, own.id, WorksheetUpdateRequest(file_url=original.file_url))
        storage.resolve_download_url.assert_not_called()

    def test_external_and_own_files_are_accepted(self, db, make_user, storage):
        seller = make_user()
        service = WorksheetService(db, storage_service=storage)

        external = service.create(
            seller.id, create_request(file_url="https://cdn.example.com/fractions.pdf")
        )
        own = service.create(
            seller.id, create_request(file_url=f"{seller.id}/elementary_3_math_worksheet_1p.pdf")
        )

        assert external.file_url.startswith("https://")
        assert own.file_url.startswith(f"{seller.id}/")

    def test_create_and_search(self, db, make_user, storage):
        seller = make_user()
        service = WorksheetService(db, storage_service=storage)
        file_url = f"{seller.id}/elementary_3_math_worksheet_2p_{seller.id}_20260301_090000.pdf"
        service.create(seller.id, create_request(price=150, file_url=file_url))
        service.create(
            seller.id,
            create_request(title="국어 받아쓰기", subject="korean", price=400, file_url=file_url),
        )

        result = service.search(WorksheetSearchParams(subject="math"))

        assert result.total == 1
        assert result.items[0].price == 150
        assert result.items[0].seller_nickname == seller.nickname

    def test_search_rejects_inverted_price_range(self, db, storage):
        with pytest.raises(ValidationError):
            WorksheetService(db, storage_service=storage).search(
                WorksheetSearchParams(min_price=400, max_price=100)
            )
