"""
Attachment service - coordinates file storage and metadata records.

Responsibilities:
- Verify the target entity exists in the caller's organization
- Compute checksums and build storage references
- Store the file, then record metadata and the audit entry in the unit of work
- Undo the file write when the unit of work rolls back
"""
import hashlib
import re
from collections.abc import AsyncIterator
from typing import BinaryIO

from core.config import get_settings
from core.database import UnitOfWork
from core.enums import AttachableEntityType, AuditAction, AuditEntityType
from core.exceptions import NotFoundError, PayloadTooLargeError, ValidationError
from core.logging import get_logger
from core.storage_protocols import IStorageService
from models.attachment import Attachment
from repositories.attachment_repo import AttachmentRepository
from repositories.base import Page
from repositories.lead_repo import LeadRepository
from repositories.project_repo import ProjectRepository
from repositories.task_repo import TaskRepository
from services.audit_service import AuditService
from services.authz_service import Principal
from utils.generators import generate_cuid

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """Filesystem-safe version of a client supplied filename"""
    name = _UNSAFE_FILENAME_CHARS.sub("_", filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]).strip("._")
    return name[:200] or "file"


def attachment_snapshot(attachment: Attachment) -> dict[str, object]:
    return {
        "entity_type": attachment.entity_type,
        "entity_id": attachment.entity_id,
        "filename": attachment.filename,
        "mime_type": attachment.mime_type,
        "size_bytes": attachment.size_bytes,
    }


class AttachmentService:
    def __init__(self, storage: IStorageService, uow: UnitOfWork) -> None:
        self.storage = storage
        self.uow = uow
        self.repo = AttachmentRepository(uow.session)
        self.entity_repos = {
            AttachableEntityType.LEAD: ("Lead", LeadRepository(uow.session)),
            AttachableEntityType.PROJECT: ("Project", ProjectRepository(uow.session)),
            AttachableEntityType.TASK: ("Task", TaskRepository(uow.session)),
        }
        self.audit = AuditService(uow.session)
        self.max_upload_size = get_settings().max_upload_size

    async def _verify_entity(self, organization_id: str, entity_type: AttachableEntityType, entity_id: str) -> None:
        if entity_type not in self.entity_repos:
            raise ValidationError(f"Unsupported entity type: {entity_type}", field="entity_type")
        resource_type, repo = self.entity_repos[entity_type]
        if await repo.get_by_id_in_org(entity_id, organization_id) is None:
            raise NotFoundError(resource_type, entity_id)

    async def _get_or_404(self, organization_id: str, attachment_id: str) -> Attachment:
        attachment = await self.repo.get_by_id_in_org(attachment_id, organization_id)
        if attachment is None:
            raise NotFoundError("Attachment", attachment_id)
        return attachment

    @staticmethod
    def _build_storage_ref(
        organization_id: str, entity_type: str, entity_id: str, attachment_id: str, filename: str
    ) -> str:
        return f"organizations/{organization_id}/{entity_type}/{entity_id}/{attachment_id}/{filename}"

    async def upload(
        self,
        principal: Principal,
        entity_type: AttachableEntityType,
        entity_id: str,
        file_data: BinaryIO,
        filename: str,
        content_type: str | None,
    ) -> Attachment:
        """
        Store a file and record its metadata.

        The file is written before the database rows; a compensation on the
        unit of work deletes it again if the transaction does not commit.

        Raises:
            NotFoundError: target entity missing or in another organization
            PayloadTooLargeError: file exceeds max_upload_size
            ValidationError: empty file
        """
        await self._verify_entity(principal.organization_id, entity_type, entity_id)

        content = file_data.read()
        if not content:
            raise ValidationError("File is empty", field="file")
        if len(content) > self.max_upload_size:
            raise PayloadTooLargeError(
                f"File exceeds the maximum upload size of {self.max_upload_size} bytes",
                details={"max_size_bytes": self.max_upload_size, "received_size_bytes": len(content)},
            )

        attachment_id = generate_cuid()
        clean_name = safe_filename(filename)
        storage_ref = self._build_storage_ref(
            principal.organization_id, entity_type.value, entity_id, attachment_id, clean_name
        )
        checksum = hashlib.sha256(content).hexdigest()
        mime_type = content_type or "application/octet-stream"

        stored = await self.storage.put(storage_ref, content, checksum)

        async def remove_stored_file() -> None:
            logger.warning("Removing %s after the upload transaction was rolled back", storage_ref)
            await self.storage.remove(storage_ref)

        self.uow.add_compensation(remove_stored_file)

        attachment = await self.repo.create(
            Attachment(
                id=attachment_id,
                organization_id=principal.organization_id,
                entity_type=entity_type.value,
                entity_id=entity_id,
                filename=filename[:255],
                mime_type=mime_type,
                size_bytes=stored.size_bytes,
                storage_ref=storage_ref,
                checksum=checksum,
                uploaded_by=principal.user_id,
            )
        )
        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.ATTACHMENT,
            entity_id=attachment.id,
            after=attachment_snapshot(attachment),
        )
        return attachment

    async def list_attachments(
        self,
        principal: Principal,
        *,
        entity_type: AttachableEntityType | None = None,
        entity_id: str | None = None,
        uploaded_by: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Attachment]:
        return await self.repo.list_attachments(
            principal.organization_id,
            entity_type=entity_type.value if entity_type else None,
            entity_id=entity_id,
            uploaded_by=uploaded_by,
            search=search,
            page=page,
            page_size=page_size,
        )

    async def get_attachment(self, principal: Principal, attachment_id: str) -> Attachment:
        return await self._get_or_404(principal.organization_id, attachment_id)

    async def open_download(self, principal: Principal, attachment_id: str) -> tuple[Attachment, AsyncIterator[bytes]]:
        """
        Raises:
            NotFoundError: unknown attachment or file missing from storage
        """
        attachment = await self._get_or_404(principal.organization_id, attachment_id)
        if not await self.storage.exists(attachment.storage_ref):
            logger.error("Attachment %s has no file at %s", attachment.id, attachment.storage_ref)
            raise NotFoundError("File", attachment_id)
        return attachment, self.storage.open_stream(attachment.storage_ref)

    async def delete_attachment(self, principal: Principal, attachment_id: str) -> None:
        """Delete the record now and the file once the deletion has committed"""
        attachment = await self._get_or_404(principal.organization_id, attachment_id)
        storage_ref = attachment.storage_ref
        before = attachment_snapshot(attachment)

        await self.repo.delete(attachment)
        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.ATTACHMENT,
            entity_id=attachment_id,
            before=before,
        )

        async def remove_file() -> None:
            await self.storage.remove(storage_ref)

        self.uow.add_after_commit(remove_file)
