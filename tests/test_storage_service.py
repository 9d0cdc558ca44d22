import io
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from marketapi.config import Settings
from marketapi.core.exceptions import UpstreamError, ValidationError
from marketapi.services.storage_service import StorageService, sanitize_text

PDF = "application/pdf"


@pytest.fixture
def storage():
    return StorageService(Settings(S3_WORKSHEET_BUCKET="test-worksheets", S3_PREVIEW_BUCKET="test-previews"))


class TestKeys:
    def test_worksheet_key_is_ascii_and_deterministic(self, storage):
        """경로는 학년/과목/유형/페이지/아이디/시각으로만 구성"""
        now = datetime(2026, 3, 1, 0, 0, 0, tzinfo=timezone.utc)

        key = storage.worksheet_key(12, "elementary_3", "math", "worksheet", 4, ".pdf", now=now)

        assert key == "12/elementary_3_math_worksheet_4p_12_20260301_090000.pdf"

    def test_sanitize_removes_non_ascii(self):
        assert sanitize_text("수학 math 자료") == "math"
        assert sanitize_text("한글만") == "file"


class TestUploads:
    @patch("marketapi.services.storage_service.boto3")
    def test_upload_worksheet(self, mock_boto3, storage):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed.example.com/a.pdf"
        mock_boto3.client.return_value = client

        result = storage.upload_worksheet(
            7, io.BytesIO(b"%PDF"), "분수.pdf", PDF, 4, "elementary_3", "math", "worksheet", 2
        )

        assert result.path.startswith("7/elementary_3_math_worksheet_2p_7_")
        assert result.url == "https://signed.example.com/a.pdf"
        args, kwargs = client.upload_fileobj.call_args
        assert args[1] == "test-worksheets"
        assert kwargs["ExtraArgs"]["ContentType"] == PDF

    @pytest.mark.parametrize(
        "filename, content_type, size",
        [
            ("a.exe", "application/octet-stream", 10),
            ("a.txt", PDF, 10),
            ("a.pdf", PDF, 50 * 1024 * 1024 + 1),
        ],
    )
    def test_rejects_invalid_worksheet_files(self, storage, filename, content_type, size):
        with pytest.raises(ValidationError):
            storage.upload_worksheet(
                1, io.BytesIO(b""), filename, content_type, size, "g", "s", "c", 1
            )

    def test_preview_limit_is_5mb(self, storage):
        with pytest.raises(ValidationError):
            storage.upload_preview(1, io.BytesIO(b""), "p.png", "image/png", 5 * 1024 * 1024 + 1)

    @patch("marketapi.services.storage_service.boto3")
    def test_s3_failure_is_upstream_error(self, mock_boto3, storage):
        client = MagicMock()
        client.upload_fileobj.side_effect = ClientError(
            {"Error": {"Code": "500", "Message": "boom"}}, "PutObject"
        )
        mock_boto3.client.return_value = client

        with pytest.raises(UpstreamError):
            storage.upload_preview(1, io.BytesIO(b"png"), "p.png", "image/png", 3)


class TestSignedUrls:
    @pytest.mark.parametrize("path", ["", "/etc/passwd", "1/../2/a.pdf"])
    def test_rejects_unsafe_paths(self, storage, path):
        with pytest.raises(ValidationError):
            storage.get_worksheet_url(path)

    def test_external_url_passes_through(self, storage):
        assert storage.resolve_download_url("https://cdn.example.com/a.pdf") == "https://cdn.example.com/a.pdf"

    @patch("marketapi.services.storage_service.boto3")
    def test_signed_url_expiry(self, mock_boto3, storage):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed"
        mock_boto3.client.return_value = client

        storage.resolve_download_url("3/file.pdf")

        kwargs = client.generate_presigned_url.call_args.kwargs
        assert kwargs["ExpiresIn"] == 3600
        assert kwargs["Params"]["Key"] == "3/file.pdf"
