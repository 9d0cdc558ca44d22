from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    path: str = Field(..., description="스토리지 내 객체 경로")
    url: str = Field(..., description="접근 URL (워크시트는 서명 URL)")
    size: int = Field(..., description="파일 크기 (bytes)")
    content_type: str


class SignedUrlResponse(BaseModel):
    url: str = Field(..., description="서명 URL (1시간 유효)")
