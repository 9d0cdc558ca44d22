import pytest

from marketapi.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from marketapi.repositories.notification_repository import NotificationRepository
from marketapi.schemas.message import (
    InquiryCreateRequest,
    NoticeCreateRequest,
    ReplyRequest,
    WorksheetInquiryCreateRequest,
)
from marketapi.schemas.user import InterestsRequest
from marketapi.services.message_service import MessageService
from marketapi.services.notification_service import NotificationService
from marketapi.services.user_service import UserService


class TestNotices:
    """공지 발송과 수신함"""

    def test_inbox_filters_grade_group_notices(self, db, make_user):
        admin = make_user(role="admin")
        elementary = make_user()
        middle = make_user()
        UserService(db).update_interests(elementary.id, InterestsRequest(grades=["elementary_3"]))
        UserService(db).update_interests(middle.id, InterestsRequest(grades=["middle_1"]))
        service = MessageService(db)

        service.send_notice(admin.id, NoticeCreateRequest(title="전체 공지", content="점검 안내"))
        service.send_notice(
            admin.id,
            NoticeCreateRequest(
                title="초등 3학년 공지",
                content="새 자료 안내",
                recipient_type="grade_group",
                recipient_grades=["elementary_3"],
            ),
        )

        assert [m.title for m in service.inbox(elementary.id)] == ["초등 3학년 공지", "전체 공지"]
        assert [m.title for m in service.inbox(middle.id)] == ["전체 공지"]

    def test_individual_notice_to_missing_user(self, db, make_user):
        admin = make_user(role="admin")

        with pytest.raises(NotFoundError):
            MessageService(db).send_notice(
                admin.id,
                NoticeCreateRequest(
                    title="개별 안내", content="내용", recipient_type="individual", recipient_id=999
                ),
            )


class TestInquiries:
    def test_admin_reply_reaches_sender(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        service = MessageService(db)
        inquiry = service.send_inquiry(
            user.id, InquiryCreateRequest(title="포인트 문의", content="출석 포인트가 안 들어왔어요")
        )

        reply = service.reply(admin.id, inquiry.id, ReplyRequest(content="확인 후 지급했습니다."))

        assert reply.recipient_id == user.id
        assert reply.title == "Re: 포인트 문의"
        assert reply.parent_id == inquiry.id
        assert service.mark_read(user.id, reply.id).updated == 1
        assert [m.id for m in service.admin_inquiries()] == [inquiry.id]

    def test_seller_inquiry_flow(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id)
        service = MessageService(db)

        inquiry = service.ask_seller(
            buyer.id,
            WorksheetInquiryCreateRequest(worksheet_id=worksheet.id, content="  정답지도 있나요? "),
        )
        with pytest.raises(AuthorizationError):
            service.reply_inquiry(buyer.id, inquiry.id, ReplyRequest(content="제가 답할게요"))
        answered = service.reply_inquiry(seller.id, inquiry.id, ReplyRequest(content="네, 포함되어 있습니다."))

        assert inquiry.content == "정답지도 있나요?"
        assert answered.reply == "네, 포함되어 있습니다."
        assert [i.id for i in service.my_inquiries(seller.id).received] == [inquiry.id]
        assert [i.id for i in service.my_inquiries(buyer.id).asked] == [inquiry.id]

    def test_cannot_ask_about_own_worksheet(self, db, make_user, make_worksheet):
        seller = make_user()
        worksheet = make_worksheet(seller.id)

        with pytest.raises(ValidationError):
            MessageService(db).ask_seller(
                seller.id, WorksheetInquiryCreateRequest(worksheet_id=worksheet.id, content="문의")
            )


class TestNotifications:
    @pytest.fixture
    def notified_user(self, db, make_user):
        user = make_user()
        NotificationRepository(db).bulk_create(
            [
                {
                    "user_id": user.id,
                    "type": "system",
                    "title": f"알림 {n}",
                    "message": "내용",
                }
                for n in range(3)
            ]
        )
        db.commit()
        return user

    def test_mark_read_and_count(self, db, notified_user):
        service = NotificationService(db)
        first = service.list(notified_user.id)[0]

        service.mark_read(notified_user.id, first.id)

        assert service.unread_count(notified_user.id).count == 2
        assert service.mark_all_read(notified_user.id).updated == 2
        assert service.unread_count(notified_user.id).count == 0

    def test_other_users_notification_is_not_found(self, db, notified_user, make_user):
        stranger = make_user()
        notification = NotificationService(db).list(notified_user.id)[0]

        with pytest.raises(NotFoundError):
            NotificationService(db).mark_read(stranger.id, notification.id)
        with pytest.raises(NotFoundError):
            NotificationService(db).delete(stranger.id, notification.id)

    def test_delete(self, db, notified_user):
        service = NotificationService(db)
        notification = service.list(notified_user.id)[0]

        service.delete(notified_user.id, notification.id)

        assert len(service.list(notified_user.id)) == 2
