import logging
import re
from datetime import datetime, timezone
from typing import BinaryIO, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from marketapi.config import Settings
from marketapi.core.exceptions import UpstreamError, ValidationError
from marketapi.schemas.storage import UploadResponse
from marketapi.utils.timezone_utils import format_storage_timestamp

logger = logging.getLogger(__name__)

# PDF, Word, PowerPoint 문서 허용
WORKSHEET_CONTENT_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
]
WORKSHEET_EXTENSIONS = [".pdf", ".doc", ".docx", ".ppt", ".pptx"]
PREVIEW_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp"]
PREVIEW_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp"]


def file_extension(filename: str) -> str:
    last_dot = filename.rfind(".")
    return filename[last_dot:].lower() if last_dot > 0 else ""


def sanitize_text(text: str) -> str:
    """스토리지 경로용 ASCII 변환 - 한글 등 비ASCII 문자 제거"""
    value = re.sub(r"[^a-zA-Z0-9\s_-]", "", text or "")
    value = re.sub(r"\s+", "_", value.strip())[:30]
    return value or "file"


def validate_upload(
    filename: str,
    content_type: str,
    size: int,
    allowed_types: list,
    allowed_extensions: list,
    max_size: int,
) -> str:
    """업로드 파일 검증 후 확장자 반환"""
    if content_type not in allowed_types:
        raise ValidationError(
            "허용되지 않는 파일 형식입니다.",
            details={"code": "INVALID_FILE_TYPE", "content_type": content_type},
        )
    ext = file_extension(filename)
    if ext not in allowed_extensions:
        raise ValidationError(
            f"허용되지 않는 파일 확장자입니다. ({', '.join(allowed_extensions)}만 가능)",
            details={"code": "INVALID_EXTENSION", "extension": ext},
        )
    if size > max_size:
        max_mb = round(max_size / (1024 * 1024))
        raise ValidationError(
            f"파일 크기는 {max_mb}MB를 초과할 수 없습니다.",
            details={"code": "FILE_TOO_LARGE", "size": size},
        )
    return ext


class StorageService:
    """S3 기반 자료 파일/미리보기 이미지 저장소"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.region_name = settings.AWS_REGION
        self.aws_access_key_id = settings.AWS_S3_ACCESS_KEY_ID
        self.aws_secret_access_key = settings.AWS_S3_SECRET_ACCESS_KEY

    def _client(self):
        if self.aws_access_key_id and self.aws_secret_access_key:
            return boto3.client(
                "s3",
                region_name=self.region_name,
                aws_access_key_id=self.aws_access_key_id,
                aws_secret_access_key=self.aws_secret_access_key,
            )

        return boto3.client("s3", region_name=self.region_name)

    def worksheet_key(
        self,
        user_id: int,
        grade: str,
        subject: str,
        category: str,
        page_count: int,
        ext: str,
        now: Optional[datetime] = None,
    ) -> str:
        """{userId}/{학년}_{과목}_{유형}_{페이지수}p_{아이디8자}_{YYYYMMDD_HHmmss}{ext}"""
        stamp = format_storage_timestamp(now or datetime.now(timezone.utc))
        short_id = str(user_id)[:8]
        name = (
            f"{sanitize_text(grade)}_{sanitize_text(subject)}_{sanitize_text(category)}_"
            f"{page_count}p_{short_id}_{stamp}{ext}"
        )
        return f"{user_id}/{name}"

    def preview_key(self, user_id: int, ext: str, now: Optional[datetime] = None) -> str:
        stamp = format_storage_timestamp(now or datetime.now(timezone.utc))
        return f"{user_id}/preview_{str(user_id)[:8]}_{stamp}{ext}"

    def _put(self, bucket: str, key: str, fileobj: BinaryIO, content_type: str, cache_control: str) -> None:
        try:
            self._client().upload_fileobj(
                fileobj,
                bucket,
                key,
                ExtraArgs={"ContentType": content_type, "CacheControl": cache_control},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {bucket}/{key}: {str(e)}")
            raise UpstreamError("파일 업로드에 실패했습니다.", details={"code": "UPLOAD_FAILED"})

    def upload_worksheet(
        self,
        user_id: int,
        fileobj: BinaryIO,
        filename: str,
        content_type: str,
        size: int,
        grade: str,
        subject: str,
        category: str,
        page_count: int,
    ) -> UploadResponse:
        """자료 파일 업로드 - 저장 경로와 서명 URL 반환"""
        ext = validate_upload(
            filename,
            content_type,
            size,
            WORKSHEET_CONTENT_TYPES,
            WORKSHEET_EXTENSIONS,
            self.settings.MAX_WORKSHEET_FILE_BYTES,
        )
        key = self.worksheet_key(user_id, grade, subject, category, page_count, ext)
        self._put(self.settings.S3_WORKSHEET_BUCKET, key, fileobj, content_type, "max-age=3600")
        logger.info(f"Uploaded worksheet file for user {user_id}: {key}")
        return UploadResponse(
            path=key,
            url=self.get_worksheet_url(key),
            size=size,
            content_type=content_type,
        )

    def upload_preview(
        self,
        user_id: int,
        fileobj: BinaryIO,
        filename: str,
        content_type: str,
        size: int,
    ) -> UploadResponse:
        """미리보기 이미지 업로드 - 공개 URL 반환"""
        ext = validate_upload(
            filename,
            content_type,
            size,
            PREVIEW_CONTENT_TYPES,
            PREVIEW_EXTENSIONS,
            self.settings.MAX_PREVIEW_FILE_BYTES,
        )
        key = self.preview_key(user_id, ext)
        bucket = self.settings.S3_PREVIEW_BUCKET
        self._put(bucket, key, fileobj, content_type, "max-age=86400")
        return UploadResponse(
            path=key,
            url=f"https://{bucket}.s3.{self.region_name}.amazonaws.com/{key}",
            size=size,
            content_type=content_type,
        )

    def get_worksheet_url(self, path: str) -> str:
        """자료 파일 서명 URL 발급 (기본 1시간)"""
        if not path or ".." in path or path.startswith("/"):
            raise ValidationError("잘못된 파일 경로입니다.", details={"code": "INVALID_PATH"})

        filename = path.split("/")[-1] or "worksheet"
        try:
            return self._client().generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.settings.S3_WORKSHEET_BUCKET,
                    "Key": path,
                    "ResponseContentDisposition": f'attachment; filename="{filename}"',
                },
                ExpiresIn=self.settings.SIGNED_URL_EXPIRE_SECONDS,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to sign URL for {path}: {str(e)}")
            raise UpstreamError("다운로드 URL 생성에 실패했습니다.")

    def resolve_download_url(self, file_url: str) -> str:
        """저장 경로는 서명 URL로, 외부 http(s) URL은 그대로 반환"""
        if file_url.startswith("http://") or file_url.startswith("https://"):
            return file_url
        return self.get_worksheet_url(file_url)
