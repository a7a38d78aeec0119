from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_note_service, get_note_service_transactional, require_any
from core.enums import NoteEntityType
from core.permissions import Permission
from schemas.common import PaginationMeta
from schemas.note import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate
from services.authz_service import Principal
from services.note_service import NoteService

router = APIRouter()

CanViewNotes = Annotated[Principal, Depends(require_any(Permission.NOTE_VIEW))]


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    principal: Annotated[Principal, Depends(require_any(Permission.NOTE_CREATE))],
    service: Annotated[NoteService, Depends(get_note_service_transactional)],
):
    """Attach a note to a lead, project or task the caller can see"""
    return await service.create_note(principal, data.entity_type, data.entity_id, data.body)


@router.get("", response_model=NoteListResponse)
async def list_notes(
    principal: CanViewNotes,
    service: Annotated[NoteService, Depends(get_note_service)],
    entity_type: NoteEntityType,
    entity_id: str = Query(..., min_length=1),
    author_user_id: str | None = None,
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    result = await service.list_notes(
        principal,
        entity_type,
        entity_id,
        author_user_id=author_user_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return NoteListResponse(
        items=[NoteResponse.model_validate(note) for note in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.get("/count")
async def count_notes(
    principal: CanViewNotes,
    service: Annotated[NoteService, Depends(get_note_service)],
    entity_type: NoteEntityType,
    entity_id: str = Query(..., min_length=1),
) -> dict[str, int]:
    return {"count": await service.count_notes(principal, entity_type, entity_id)}


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: str,
    principal: CanViewNotes,
    service: Annotated[NoteService, Depends(get_note_service)],
):
    return await service.get_note(principal, note_id)


@router.patch("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: str,
    data: NoteUpdate,
    principal: Annotated[
        Principal, Depends(require_any(Permission.NOTE_EDIT_ALL, Permission.NOTE_EDIT_OWN))
    ],
    service: Annotated[NoteService, Depends(get_note_service_transactional)],
):
    """Callers holding only 'note.edit.own' may edit notes they wrote"""
    return await service.update_note(principal, note_id, data.body)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    principal: Annotated[
        Principal, Depends(require_any(Permission.NOTE_DELETE_ALL, Permission.NOTE_DELETE_OWN))
    ],
    service: Annotated[NoteService, Depends(get_note_service_transactional)],
):
    await service.delete_note(principal, note_id)
