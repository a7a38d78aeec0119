from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from api.deps import get_attachment_service, require_any
from core.enums import AttachableEntityType
from core.permissions import Permission
from schemas.attachment import AttachmentListResponse, AttachmentResponse
from schemas.common import PaginationMeta
from services.attachment_service import AttachmentService
from services.authz_service import Principal

router = APIRouter()


@router.post("", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    principal: Annotated[Principal, Depends(require_any(Permission.FILE_UPLOAD))],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
    file: UploadFile = File(..., description="File to upload"),
    entity_type: AttachableEntityType = Form(..., description="Type of the record the file belongs to"),
    entity_id: str = Form(..., description="ID of the record the file belongs to"),
):
    """
    Upload a file and attach it to a record.

    Security:
    - Requires 'file.upload' permission
    - The record must belong to the caller's organization
    - Validates file size against max_upload_size config
    """
    return await service.upload(
        principal,
        entity_type=entity_type,
        entity_id=entity_id,
        file_data=file.file,
        filename=file.filename or "file",
        content_type=file.content_type,
    )


@router.get("", response_model=AttachmentListResponse)
async def list_attachments(
    principal: Annotated[Principal, Depends(require_any(Permission.FILE_VIEW))],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
    entity_type: AttachableEntityType | None = None,
    entity_id: str | None = None,
    uploaded_by: str | None = None,
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    result = await service.list_attachments(
        principal,
        entity_type=entity_type,
        entity_id=entity_id,
        uploaded_by=uploaded_by,
        search=search,
        page=page,
        page_size=page_size,
    )
    return AttachmentListResponse(
        items=[AttachmentResponse.model_validate(item) for item in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.get("/{attachment_id}", response_model=AttachmentResponse)
async def get_attachment(
    attachment_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.FILE_VIEW))],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    return await service.get_attachment(principal, attachment_id)


@router.get("/{attachment_id}/download")
async def download_attachment(
    attachment_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.FILE_DOWNLOAD))],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    """
    Stream the stored file with its original filename and MIME type.

    Returns:
    - StreamingResponse with Content-Disposition header for browser download
    """
    attachment, stream = await service.open_download(principal, attachment_id)
    return StreamingResponse(
        stream,
        media_type=attachment.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(attachment.filename)}",
            "Content-Length": str(attachment.size_bytes),
        },
    )


@router.delete("/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.FILE_DELETE))],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    """The stored file is removed once the deletion has been committed"""
    await service.delete_attachment(principal, attachment_id)
