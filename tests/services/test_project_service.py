"""Tests for projects, membership and involvement scoping"""
from datetime import date

import pytest
from sqlalchemy import select

from core.enums import AuditAction, ProjectStatus
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, PermissionDeniedError, ValidationError
from models.audit_log import AuditLog
from models.project import Project
from models.task import Task
from services.project_service import ProjectService
from services.task_service import TaskService
from tests.helpers import create_user, create_user_with_permissions, principal_for


@pytest.fixture
async def manager_user(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Manager"]], "manager@acme.com", "Manager")


@pytest.fixture
async def second_agent(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Agent"]], "agent2@acme.com", "Agent Two")


class TestCreateProject:
    async def test_manager_defaults_to_caller_and_members_are_added(self, test_db, manager_user, agent_user):
        """
        GIVEN a manager creating a project with one member
        WHEN no manager is named
        THEN the caller manages it, the member is listed and the creation is audited
        """
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)

        detail = await service.create_project(
            principal,
            {
                "name": "Rollout",
                "client": "Initech",
                "members": [{"user_id": agent_user.id, "role": "Engineer"}],
            },
        )
        await test_db.commit()

        assert detail.project.manager_user_id == manager_user.id
        assert detail.project.status == ProjectStatus.ACTIVE.value
        assert [(member.user_id, member.role) for member in detail.members] == [(agent_user.id, "Engineer")]
        entry = (
            await test_db.execute(select(AuditLog).where(AuditLog.entity_id == detail.project.id))
        ).scalar_one()
        assert entry.action == AuditAction.CREATE.value
        assert entry.after["members"] == [agent_user.id]

    async def test_member_must_belong_to_organization(self, test_db, manager_user, other_organization):
        outsider = await create_user(test_db, other_organization, [], "outsider@globex.com")
        principal = await principal_for(test_db, manager_user)

        with pytest.raises(ValidationError) as exc_info:
            await ProjectService(test_db).create_project(
                principal, {"name": "Rollout", "members": [{"user_id": outsider.id}]}
            )

        assert exc_info.value.details["field"] == "members"

    async def test_duplicate_members_are_rejected(self, test_db, manager_user, agent_user):
        principal = await principal_for(test_db, manager_user)

        with pytest.raises(ValidationError):
            await ProjectService(test_db).create_project(
                principal,
                {"name": "Rollout", "members": [{"user_id": agent_user.id}, {"user_id": agent_user.id}]},
            )

    async def test_end_date_must_follow_start_date(self, test_db, manager_user):
        principal = await principal_for(test_db, manager_user)

        with pytest.raises(ValidationError) as exc_info:
            await ProjectService(test_db).create_project(
                principal, {"name": "Rollout", "start_date": date(2026, 5, 1), "end_date": date(2026, 5, 1)}
            )

        assert exc_info.value.details["field"] == "end_date"

    async def test_unknown_lead_is_rejected(self, test_db, manager_user):
        principal = await principal_for(test_db, manager_user)

        with pytest.raises(ValidationError):
            await ProjectService(test_db).create_project(principal, {"name": "Rollout", "lead_id": "missing"})


class TestInvolvementScope:
    async def test_agent_sees_only_projects_they_belong_to(self, test_db, manager_user, agent_user, second_agent):
        """
        GIVEN two projects, the agent being a member of only the first
        WHEN the agent lists and reads projects
        THEN only the first is visible and reading the second is Forbidden
        """
        service = ProjectService(test_db)
        manager = await principal_for(test_db, manager_user)
        joined = await service.create_project(manager, {"name": "Joined", "members": [{"user_id": agent_user.id}]})
        other = await service.create_project(manager, {"name": "Other", "members": [{"user_id": second_agent.id}]})
        await test_db.commit()

        agent = await principal_for(test_db, agent_user)
        listed = await service.list_projects(agent)

        assert [project.id for project in listed.items] == [joined.project.id]
        assert (await service.get_project(agent, joined.project.id)).project.name == "Joined"
        with pytest.raises(ForbiddenError):
            await service.get_project(agent, other.project.id)
        assert (await service.list_projects(manager)).total == 2

    async def test_edit_own_is_limited_to_managed_projects(self, test_db, test_organization, manager_user):
        """
        GIVEN a user allowed to edit only their own projects
        WHEN they edit a project they manage and one they merely belong to
        THEN the first succeeds and the second is Forbidden
        """
        editor_user = await create_user_with_permissions(
            test_db, test_organization, ["project.view.own", "project.edit.own"], "editor@acme.com"
        )
        service = ProjectService(test_db)
        manager = await principal_for(test_db, manager_user)
        managed = await service.create_project(manager, {"name": "Managed", "manager_user_id": editor_user.id})
        joined = await service.create_project(manager, {"name": "Joined", "members": [{"user_id": editor_user.id}]})
        await test_db.commit()

        editor = await principal_for(test_db, editor_user)
        updated = await service.update_project(editor, managed.project.id, {"status": ProjectStatus.ON_HOLD})
        assert updated.status == "on_hold"

        with pytest.raises(ForbiddenError):
            await service.update_project(editor, joined.project.id, {"status": ProjectStatus.ON_HOLD})

    async def test_project_of_another_organization_is_not_found(self, test_db, manager_user, other_organization):
        foreign = Project(organization_id=other_organization.id, name="Foreign")
        test_db.add(foreign)
        await test_db.commit()

        with pytest.raises(NotFoundError):
            await ProjectService(test_db).get_project(await principal_for(test_db, manager_user), foreign.id)

    async def test_require_visible_needs_a_project_view_permission(self, test_db, test_organization, manager_user):
        service = ProjectService(test_db)
        project = await service.create_project(await principal_for(test_db, manager_user), {"name": "Rollout"})
        await test_db.commit()
        blind_user = await create_user_with_permissions(test_db, test_organization, ["task.create"], "blind@acme.com")

        with pytest.raises(PermissionDeniedError):
            await service.require_visible(await principal_for(test_db, blind_user), project.project.id)


class TestUpdateAndDelete:
    async def test_update_checks_dates_against_stored_values(self, test_db, manager_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout", "start_date": date(2026, 5, 1)})

        with pytest.raises(ValidationError):
            await service.update_project(principal, detail.project.id, {"end_date": date(2026, 4, 1)})

    async def test_update_records_changed_fields(self, test_db, manager_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout"})

        await service.update_project(principal, detail.project.id, {"budget": 1500.0, "client": "Initech"})

        entry = (
            await test_db.execute(
                select(AuditLog).where(
                    AuditLog.entity_id == detail.project.id, AuditLog.action == AuditAction.UPDATE.value
                )
            )
        ).scalar_one()
        assert entry.extra == {"changed": ["client", "budget"]}
        assert entry.after["budget"] == 1500.0

    async def test_empty_update_is_rejected(self, test_db, manager_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout"})

        with pytest.raises(ValidationError):
            await service.update_project(principal, detail.project.id, {})

    async def test_delete_hides_project_and_its_tasks(self, test_db, manager_user):
        """
        GIVEN a project with a task
        WHEN the project is deleted
        THEN both are tombstoned and no longer readable
        """
        principal = await principal_for(test_db, manager_user)
        service = ProjectService(test_db)
        detail = await service.create_project(principal, {"name": "Rollout"})
        task = await TaskService(test_db).create_task(principal, {"project_id": detail.project.id, "title": "Kickoff"})

        await service.delete_project(principal, detail.project.id)
        await test_db.commit()

        with pytest.raises(NotFoundError):
            await service.get_project(principal, detail.project.id)
        with pytest.raises(NotFoundError):
            await TaskService(test_db).get_task(principal, task.id)
        deleted_at = (await test_db.execute(select(Task.deleted_at).where(Task.id == task.id))).scalar_one()
        assert deleted_at is not None


class TestMembers:
    async def test_add_and_remove_member(self, test_db, manager_user, agent_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout"})

        member = await service.add_member(principal, detail.project.id, agent_user.id, "Reviewer")
        assert member.role == "Reviewer"
        assert [m.user_id for m in (await service.get_project(principal, detail.project.id)).members] == [
            agent_user.id
        ]

        await service.remove_member(principal, detail.project.id, agent_user.id)
        assert (await service.get_project(principal, detail.project.id)).members == []

        actions = (
            await test_db.execute(
                select(AuditLog.extra).where(
                    AuditLog.entity_id == detail.project.id, AuditLog.action == AuditAction.ASSIGN.value
                )
            )
        ).scalars().all()
        assert {"member_added": agent_user.id} in actions
        assert {"member_removed": agent_user.id} in actions

    async def test_adding_existing_member_conflicts(self, test_db, manager_user, agent_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout", "members": [{"user_id": agent_user.id}]})

        with pytest.raises(ConflictError):
            await service.add_member(principal, detail.project.id, agent_user.id)

    async def test_removing_non_member_is_not_found(self, test_db, manager_user, agent_user):
        service = ProjectService(test_db)
        principal = await principal_for(test_db, manager_user)
        detail = await service.create_project(principal, {"name": "Rollout"})

        with pytest.raises(NotFoundError):
            await service.remove_member(principal, detail.project.id, agent_user.id)
