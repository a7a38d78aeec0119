"""Tests for notes and the visibility of the entity they hang off"""
import pytest
from sqlalchemy import select

from core.enums import AuditAction, AuditEntityType, NoteEntityType
from core.exceptions import ForbiddenError, NotFoundError, PermissionDeniedError
from models.audit_log import AuditLog
from models.lead import Lead
from models.note import Note
from services.note_service import NoteService
from services.project_service import ProjectService
from tests.helpers import create_user, create_user_with_permissions, principal_for


@pytest.fixture
async def manager_user(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Manager"]], "manager@acme.com", "Manager")


@pytest.fixture
async def second_agent(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Agent"]], "agent2@acme.com", "Agent Two")


@pytest.fixture
async def lead(test_db, test_organization, agent_user):
    lead = Lead(organization_id=test_organization.id, owner_user_id=agent_user.id, title="Deal")
    test_db.add(lead)
    await test_db.commit()
    return lead


@pytest.fixture
async def shared_project(test_db, manager_user, agent_user, second_agent):
    detail = await ProjectService(test_db).create_project(
        await principal_for(test_db, manager_user),
        {"name": "Rollout", "members": [{"user_id": agent_user.id}, {"user_id": second_agent.id}]},
    )
    await test_db.commit()
    return detail.project


class TestCreateNote:
    async def test_owner_notes_their_lead(self, test_db, agent_user, lead):
        principal = await principal_for(test_db, agent_user)

        note = await NoteService(test_db).create_note(principal, NoteEntityType.LEAD, lead.id, "Called, no answer")
        await test_db.commit()

        assert note.author_user_id == agent_user.id
        assert note.entity_type == "lead"
        entry = (await test_db.execute(select(AuditLog).where(AuditLog.entity_id == note.id))).scalar_one()
        assert entry.action == AuditAction.CREATE.value
        assert entry.entity_type == AuditEntityType.NOTE.value
        assert entry.after["body"] == "Called, no answer"

    async def test_lead_owned_by_someone_else_is_forbidden(self, test_db, second_agent, lead):
        """
        GIVEN a lead owned by the first agent
        WHEN the second agent, limited to their own leads, adds a note to it
        THEN the note is refused and nothing is stored
        """
        principal = await principal_for(test_db, second_agent)

        with pytest.raises(ForbiddenError):
            await NoteService(test_db).create_note(principal, NoteEntityType.LEAD, lead.id, "Peeking")

        assert (await test_db.execute(select(Note))).scalars().all() == []

    async def test_entity_view_permission_is_required(self, test_db, test_organization, lead):
        """
        GIVEN a user who may create notes but cannot view leads at all
        WHEN they add a note to a lead
        THEN the missing lead view permission is reported
        """
        writer_user = await create_user_with_permissions(
            test_db, test_organization, ["note.create", "note.view"], "writer@acme.com"
        )

        with pytest.raises(PermissionDeniedError):
            await NoteService(test_db).create_note(
                await principal_for(test_db, writer_user), NoteEntityType.LEAD, lead.id, "Hello"
            )

    async def test_missing_entity_is_not_found(self, test_db, manager_user):
        with pytest.raises(NotFoundError):
            await NoteService(test_db).create_note(
                await principal_for(test_db, manager_user), NoteEntityType.TASK, "missing", "Hello"
            )

    async def test_entity_of_another_organization_is_not_found(self, test_db, manager_user, other_organization):
        foreign_owner = await create_user(test_db, other_organization, [], "owner@globex.com")
        foreign = Lead(organization_id=other_organization.id, owner_user_id=foreign_owner.id, title="Foreign deal")
        test_db.add(foreign)
        await test_db.commit()

        with pytest.raises(NotFoundError):
            await NoteService(test_db).create_note(
                await principal_for(test_db, manager_user), NoteEntityType.LEAD, foreign.id, "Hello"
            )


class TestAuthorship:
    async def test_only_author_edits_with_own_permission(
        self, test_db, manager_user, agent_user, second_agent, shared_project
    ):
        """
        GIVEN a note by the first agent on a project both agents belong to
        WHEN the second agent edits it, then the manager edits it
        THEN the agent is Forbidden and the manager, holding note.edit.all, succeeds
        """
        service = NoteService(test_db)
        note = await service.create_note(
            await principal_for(test_db, agent_user), NoteEntityType.PROJECT, shared_project.id, "Draft plan"
        )
        await test_db.commit()

        with pytest.raises(ForbiddenError):
            await service.update_note(await principal_for(test_db, second_agent), note.id, "Rewritten")

        updated = await service.update_note(await principal_for(test_db, manager_user), note.id, "Final plan")
        assert updated.body == "Final plan"
        entry = (
            await test_db.execute(
                select(AuditLog).where(AuditLog.entity_id == note.id, AuditLog.action == AuditAction.UPDATE.value)
            )
        ).scalar_one()
        assert entry.before["body"] == "Draft plan"
        assert entry.after["body"] == "Final plan"

    async def test_other_members_can_read_but_not_delete(self, test_db, agent_user, second_agent, shared_project):
        service = NoteService(test_db)
        note = await service.create_note(
            await principal_for(test_db, agent_user), NoteEntityType.PROJECT, shared_project.id, "Draft plan"
        )
        await test_db.commit()
        reader = await principal_for(test_db, second_agent)

        assert (await service.get_note(reader, note.id)).body == "Draft plan"
        with pytest.raises(ForbiddenError):
            await service.delete_note(reader, note.id)


class TestListingAndDelete:
    async def test_delete_is_soft_and_hides_note(self, test_db, agent_user, lead):
        service = NoteService(test_db)
        principal = await principal_for(test_db, agent_user)
        kept = await service.create_note(principal, NoteEntityType.LEAD, lead.id, "Keep me")
        dropped = await service.create_note(principal, NoteEntityType.LEAD, lead.id, "Drop me")
        await test_db.commit()

        await service.delete_note(principal, dropped.id)
        await test_db.commit()

        listed = await service.list_notes(principal, NoteEntityType.LEAD, lead.id)
        assert [note.id for note in listed.items] == [kept.id]
        assert await service.count_notes(principal, NoteEntityType.LEAD, lead.id) == 1
        with pytest.raises(NotFoundError):
            await service.get_note(principal, dropped.id)
        deleted_at = (await test_db.execute(select(Note.deleted_at).where(Note.id == dropped.id))).scalar_one()
        assert deleted_at is not None

    async def test_list_filters_by_author_and_search(self, test_db, agent_user, second_agent, shared_project):
        service = NoteService(test_db)
        first = await principal_for(test_db, agent_user)
        second = await principal_for(test_db, second_agent)
        await service.create_note(first, NoteEntityType.PROJECT, shared_project.id, "Budget approved")
        theirs = await service.create_note(second, NoteEntityType.PROJECT, shared_project.id, "Budget at 100%")
        await service.create_note(second, NoteEntityType.PROJECT, shared_project.id, "Kickoff booked")
        await test_db.commit()

        result = await service.list_notes(
            first, NoteEntityType.PROJECT, shared_project.id, author_user_id=second_agent.id, search="budget"
        )

        assert [note.id for note in result.items] == [theirs.id]

    async def test_notes_of_other_entities_are_not_listed(self, test_db, agent_user, lead, shared_project):
        service = NoteService(test_db)
        principal = await principal_for(test_db, agent_user)
        await service.create_note(principal, NoteEntityType.PROJECT, shared_project.id, "Project note")

        listed = await service.list_notes(principal, NoteEntityType.LEAD, lead.id)

        assert listed.total == 0
