import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.core.exceptions import AuthorizationError
from marketapi.deps import get_storage_service
from marketapi.schemas.storage import SignedUrlResponse, UploadResponse
from marketapi.schemas.user import User as UserSchema
from marketapi.services.storage_service import StorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storage", tags=["storage"])


def _file_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size


@router.post("/worksheets", response_model=UploadResponse)
@inject
def upload_worksheet_file(
    file: UploadFile = File(...),
    grade: str = Form(...),
    subject: str = Form(...),
    category: str = Form(...),
    page_count: int = Form(1, ge=1),
    current_user: UserSchema = Depends(get_current_active_user),
    storage_service: StorageService = Depends(get_storage_service),
) -> UploadResponse:
    """자료 파일 업로드 (PDF/Word/PowerPoint, 50MB 이하)"""
    return storage_service.upload_worksheet(
        user_id=current_user.id,
        fileobj=file.file,
        filename=file.filename or "",
        content_type=file.content_type or "",
        size=_file_size(file),
        grade=grade,
        subject=subject,
        category=category,
        page_count=page_count,
    )


@router.post("/previews", response_model=UploadResponse)
@inject
def upload_preview_image(
    file: UploadFile = File(...),
    current_user: UserSchema = Depends(get_current_active_user),
    storage_service: StorageService = Depends(get_storage_service),
) -> UploadResponse:
    """미리보기 이미지 업로드 (JPEG/PNG/WebP, 5MB 이하)"""
    return storage_service.upload_preview(
        user_id=current_user.id,
        fileobj=file.file,
        filename=file.filename or "",
        content_type=file.content_type or "",
        size=_file_size(file),
    )


@router.get("/signed-url", response_model=SignedUrlResponse)
@inject
def get_signed_url(
    path: str = Query(..., min_length=1),
    current_user: UserSchema = Depends(get_current_active_user),
    storage_service: StorageService = Depends(get_storage_service),
) -> SignedUrlResponse:
    """본인이 올린 파일의 서명 URL (구매 자료는 /worksheets/{id}/download 사용)"""
    if not path.startswith(f"{current_user.id}/"):
        raise AuthorizationError("본인이 업로드한 파일만 조회할 수 있습니다.")
    return SignedUrlResponse(url=storage_service.get_worksheet_url(path))
