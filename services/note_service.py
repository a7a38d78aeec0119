"""
Notes on leads, projects and tasks.

Every note operation first checks that the caller can read the entity the
note is attached to, with that entity's own view permissions and ownership
rules. Editing and deleting with only the ``.own`` variant is limited to
notes the caller wrote.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AuditAction, AuditEntityType, NoteEntityType
from core.exceptions import ForbiddenError, NotFoundError, PermissionDeniedError
from core.permissions import Permission
from models.mixins import utcnow
from models.note import Note
from repositories.base import Page
from repositories.note_repo import NoteRepository
from services.audit_service import AuditService
from services.authz_service import Principal
from services.lead_service import LeadService
from services.project_service import ProjectService
from services.task_service import TaskService

ENTITY_VIEW_PERMISSIONS: dict[NoteEntityType, tuple[Permission, Permission]] = {
    NoteEntityType.LEAD: (Permission.LEAD_VIEW_ALL, Permission.LEAD_VIEW_OWN),
    NoteEntityType.PROJECT: (Permission.PROJECT_VIEW_ALL, Permission.PROJECT_VIEW_OWN),
    NoteEntityType.TASK: (Permission.TASK_VIEW_ALL, Permission.TASK_VIEW_OWN),
}


def note_snapshot(note: Note) -> dict[str, str]:
    return {
        "entity_type": note.entity_type,
        "entity_id": note.entity_id,
        "author_user_id": note.author_user_id,
        "body": note.body,
    }


class NoteService:
    def __init__(self, db: AsyncSession) -> None:
        self.repo = NoteRepository(db)
        self.leads = LeadService(db)
        self.projects = ProjectService(db)
        self.tasks = TaskService(db)
        self.audit = AuditService(db)

    async def _verify_entity(self, principal: Principal, entity_type: NoteEntityType, entity_id: str) -> None:
        """
        Raises:
            PermissionDeniedError: no view permission for the entity type
            NotFoundError / ForbiddenError: entity missing or not visible to the caller
        """
        required = ENTITY_VIEW_PERMISSIONS[entity_type]
        if not any(principal.has(permission) for permission in required):
            raise PermissionDeniedError([p.value for p in required], mode="any")

        if entity_type is NoteEntityType.LEAD:
            await self.leads.get_lead(principal, entity_id)
        elif entity_type is NoteEntityType.PROJECT:
            await self.projects.get_project(principal, entity_id)
        else:
            await self.tasks.get_task(principal, entity_id)

    async def _get_visible(self, principal: Principal, note_id: str) -> Note:
        note = await self.repo.get_by_id_in_org(note_id, principal.organization_id)
        if note is None:
            raise NotFoundError("Note", note_id)
        await self._verify_entity(principal, NoteEntityType(note.entity_type), note.entity_id)
        return note

    def _check_author(
        self, principal: Principal, note: Note, all_permission: Permission, own_permission: Permission
    ) -> None:
        if principal.owns_only(all_permission, own_permission) and note.author_user_id != principal.user_id:
            raise ForbiddenError("You can only change notes you wrote")

    async def create_note(
        self, principal: Principal, entity_type: NoteEntityType, entity_id: str, body: str
    ) -> Note:
        await self._verify_entity(principal, entity_type, entity_id)

        note = await self.repo.create(
            Note(
                organization_id=principal.organization_id,
                entity_type=entity_type.value,
                entity_id=entity_id,
                author_user_id=principal.user_id,
                body=body,
            )
        )
        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.CREATE,
            entity_type=AuditEntityType.NOTE,
            entity_id=note.id,
            after=note_snapshot(note),
        )
        return note

    async def list_notes(
        self,
        principal: Principal,
        entity_type: NoteEntityType,
        entity_id: str,
        *,
        author_user_id: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Note]:
        """Notes of one entity, newest first"""
        await self._verify_entity(principal, entity_type, entity_id)
        return await self.repo.list_notes(
            principal.organization_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            author_user_id=author_user_id,
            search=search,
            page=page,
            page_size=page_size,
        )

    async def count_notes(self, principal: Principal, entity_type: NoteEntityType, entity_id: str) -> int:
        await self._verify_entity(principal, entity_type, entity_id)
        return await self.repo.count_for_entity(principal.organization_id, entity_type.value, entity_id)

    async def get_note(self, principal: Principal, note_id: str) -> Note:
        return await self._get_visible(principal, note_id)

    async def update_note(self, principal: Principal, note_id: str, body: str) -> Note:
        note = await self._get_visible(principal, note_id)
        self._check_author(principal, note, Permission.NOTE_EDIT_ALL, Permission.NOTE_EDIT_OWN)

        before = note_snapshot(note)
        note.body = body
        note = await self.repo.update(note)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.UPDATE,
            entity_type=AuditEntityType.NOTE,
            entity_id=note.id,
            before=before,
            after=note_snapshot(note),
        )
        return note

    async def delete_note(self, principal: Principal, note_id: str) -> None:
        """Soft delete"""
        note = await self._get_visible(principal, note_id)
        self._check_author(principal, note, Permission.NOTE_DELETE_ALL, Permission.NOTE_DELETE_OWN)

        before = note_snapshot(note)
        note.deleted_at = utcnow()
        await self.repo.update(note)

        await self.audit.record(
            organization_id=principal.organization_id,
            user_id=principal.user_id,
            action=AuditAction.DELETE,
            entity_type=AuditEntityType.NOTE,
            entity_id=note.id,
            before=before,
        )
