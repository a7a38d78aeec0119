"""Tests for the project, task and note endpoints"""
import pytest

from models.project import Project
from tests.helpers import auth_headers_for, create_user


@pytest.fixture
async def manager_user(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Manager"]], "manager@acme.com", "Manager")


@pytest.fixture
async def second_agent(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Agent"]], "agent2@acme.com", "Agent Two")


@pytest.fixture
def manager_headers(manager_user):
    return auth_headers_for(manager_user)


async def create_project(client, headers, /, **fields) -> dict:
    response = await client.post("/api/projects", json={"name": "Rollout", **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def create_task(client, headers, project_id: str, **fields) -> dict:
    response = await client.post(
        "/api/tasks", json={"project_id": project_id, "title": "Kickoff", **fields}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestProjectsApi:
    async def test_create_read_update_delete(self, client, manager_user, manager_headers, agent_user):
        project = await create_project(
            client,
            manager_headers,
            client="Initech",
            budget=2500.5,
            start_date="2026-05-01",
            end_date="2026-08-01",
            members=[{"user_id": agent_user.id, "role": "Engineer"}],
        )
        assert project["manager_user_id"] == manager_user.id
        assert project["status"] == "active"
        assert [(m["user_id"], m["role"]) for m in project["members"]] == [(agent_user.id, "Engineer")]

        fetched = await client.get(f"/api/projects/{project['id']}", headers=manager_headers)
        assert fetched.json()["budget"] == 2500.5

        patched = await client.patch(
            f"/api/projects/{project['id']}", json={"status": "completed"}, headers=manager_headers
        )
        assert patched.status_code == 200
        assert patched.json()["status"] == "completed"

        assert (await client.delete(f"/api/projects/{project['id']}", headers=manager_headers)).status_code == 204
        assert (await client.get(f"/api/projects/{project['id']}", headers=manager_headers)).status_code == 404

    async def test_agent_sees_joined_projects_only(self, client, manager_headers, agent_user, second_agent):
        """
        GIVEN two projects, the agent being a member of only the first
        WHEN the agent lists and reads projects
        THEN the second one is hidden from the list and reading it is 403
        """
        joined = await create_project(client, manager_headers, name="Joined", members=[{"user_id": agent_user.id}])
        other = await create_project(client, manager_headers, name="Other", members=[{"user_id": second_agent.id}])
        headers = auth_headers_for(agent_user)

        listing = await client.get("/api/projects", headers=headers)

        assert [item["id"] for item in listing.json()["items"]] == [joined["id"]]
        assert (await client.get(f"/api/projects/{other['id']}", headers=headers)).status_code == 403

    async def test_agent_cannot_create_projects(self, client, agent_user):
        response = await client.post("/api/projects", json={"name": "Mine"}, headers=auth_headers_for(agent_user))

        assert response.status_code == 403
        assert response.json()["details"] == {"required": ["project.create"], "mode": "any"}

    async def test_project_of_another_organization_is_404(self, client, test_db, manager_headers, other_organization):
        foreign = Project(organization_id=other_organization.id, name="Foreign")
        test_db.add(foreign)
        await test_db.commit()

        assert (await client.get(f"/api/projects/{foreign.id}", headers=manager_headers)).status_code == 404
        patched = await client.patch(f"/api/projects/{foreign.id}", json={"name": "Mine"}, headers=manager_headers)
        assert patched.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "R"},
            {"name": "Rollout", "start_date": "2026-05-01", "end_date": "2026-04-01"},
            {"name": "Rollout", "budget": -1},
        ],
    )
    async def test_invalid_project_is_a_validation_error(self, client, manager_headers, payload):
        response = await client.post("/api/projects", json=payload, headers=manager_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_explicit_null_name_is_a_validation_error(self, client, manager_headers):
        project = await create_project(client, manager_headers)

        response = await client.patch(f"/api/projects/{project['id']}", json={"name": None}, headers=manager_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_members_are_added_and_removed(self, client, manager_headers, agent_user):
        project = await create_project(client, manager_headers)

        added = await client.post(
            f"/api/projects/{project['id']}/members", json={"user_id": agent_user.id}, headers=manager_headers
        )
        assert added.status_code == 201
        assert added.json()["role"] == "Member"

        again = await client.post(
            f"/api/projects/{project['id']}/members", json={"user_id": agent_user.id}, headers=manager_headers
        )
        assert again.status_code == 409

        removed = await client.delete(
            f"/api/projects/{project['id']}/members/{agent_user.id}", headers=manager_headers
        )
        assert removed.status_code == 204
        fetched = await client.get(f"/api/projects/{project['id']}", headers=manager_headers)
        assert fetched.json()["members"] == []

    async def test_project_tasks_endpoint(self, client, manager_headers, agent_user):
        project = await create_project(client, manager_headers, members=[{"user_id": agent_user.id}])
        other = await create_project(client, manager_headers, name="Other")
        task = await create_task(client, manager_headers, project["id"], priority="high")
        await create_task(client, manager_headers, other["id"])

        response = await client.get(f"/api/projects/{project['id']}/tasks", headers=manager_headers)

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == [task["id"]]
        hidden = await client.get(f"/api/projects/{other['id']}/tasks", headers=auth_headers_for(agent_user))
        assert hidden.status_code == 403

    async def test_attachment_on_project(self, client, manager_headers):
        project = await create_project(client, manager_headers)

        uploaded = await client.post(
            "/api/attachments",
            files={"file": ("brief.txt", b"scope", "text/plain")},
            data={"entity_type": "project", "entity_id": project["id"]},
            headers=manager_headers,
        )

        assert uploaded.status_code == 201, uploaded.text
        assert uploaded.json()["entity_type"] == "project"


class TestTasksApi:
    async def test_my_tasks_and_scope(self, client, manager_headers, agent_user, second_agent):
        """
        GIVEN tasks assigned to each agent in a shared project
        WHEN the first agent lists their tasks and reads the other one
        THEN /tasks/my holds only their task and the other is 403
        """
        project = await create_project(
            client, manager_headers, members=[{"user_id": agent_user.id}, {"user_id": second_agent.id}]
        )
        mine = await create_task(
            client, manager_headers, project["id"], title="Mine", assignee_user_id=agent_user.id, due_date="2026-06-01"
        )
        theirs = await create_task(
            client, manager_headers, project["id"], title="Theirs", assignee_user_id=second_agent.id
        )
        headers = auth_headers_for(agent_user)

        my_tasks = await client.get("/api/tasks/my", headers=headers)

        assert my_tasks.status_code == 200
        assert [item["id"] for item in my_tasks.json()["items"]] == [mine["id"]]
        assert (await client.get(f"/api/tasks/{theirs['id']}", headers=headers)).status_code == 403

    async def test_agent_updates_own_task_but_cannot_delete(self, client, manager_headers, agent_user):
        project = await create_project(client, manager_headers, members=[{"user_id": agent_user.id}])
        headers = auth_headers_for(agent_user)
        task = await create_task(client, headers, project["id"])

        patched = await client.patch(f"/api/tasks/{task['id']}", json={"status": "in_progress"}, headers=headers)
        assert patched.status_code == 200
        assert patched.json()["status"] == "in_progress"

        deleted = await client.delete(f"/api/tasks/{task['id']}", headers=headers)
        assert deleted.status_code == 403
        assert deleted.json()["details"]["required"] == ["task.delete.all", "task.delete.own"]

        assert (await client.delete(f"/api/tasks/{task['id']}", headers=manager_headers)).status_code == 204
        assert (await client.get(f"/api/tasks/{task['id']}", headers=manager_headers)).status_code == 404

    @pytest.mark.parametrize("field", ["title", "status", "priority"])
    async def test_explicit_null_is_a_validation_error(self, client, manager_headers, field):
        project = await create_project(client, manager_headers)
        task = await create_task(client, manager_headers, project["id"])

        response = await client.patch(f"/api/tasks/{task['id']}", json={field: None}, headers=manager_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_task_in_unknown_project_is_404(self, client, manager_headers):
        response = await client.post(
            "/api/tasks", json={"project_id": "missing", "title": "Kickoff"}, headers=manager_headers
        )

        assert response.status_code == 404


class TestNotesApi:
    async def test_note_lifecycle(self, client, manager_headers, agent_user):
        project = await create_project(client, manager_headers, members=[{"user_id": agent_user.id}])
        headers = auth_headers_for(agent_user)

        created = await client.post(
            "/api/notes",
            json={"entity_type": "project", "entity_id": project["id"], "body": "Kickoff on Monday"},
            headers=headers,
        )
        assert created.status_code == 201, created.text
        note = created.json()
        assert note["author_user_id"] == agent_user.id

        params = {"entity_type": "project", "entity_id": project["id"]}
        listing = await client.get("/api/notes", params=params, headers=headers)
        assert [item["id"] for item in listing.json()["items"]] == [note["id"]]
        assert (await client.get("/api/notes/count", params=params, headers=headers)).json() == {"count": 1}

        patched = await client.patch(f"/api/notes/{note['id']}", json={"body": "Kickoff on Tuesday"}, headers=headers)
        assert patched.json()["body"] == "Kickoff on Tuesday"

        assert (await client.delete(f"/api/notes/{note['id']}", headers=headers)).status_code == 204
        assert (await client.get("/api/notes/count", params=params, headers=headers)).json() == {"count": 0}

    async def test_note_on_hidden_lead_is_403(self, client, agent_user, second_agent):
        lead = await client.post("/api/leads", json={"title": "Deal"}, headers=auth_headers_for(agent_user))

        response = await client.post(
            "/api/notes",
            json={"entity_type": "lead", "entity_id": lead.json()["id"], "body": "Peeking"},
            headers=auth_headers_for(second_agent),
        )

        assert response.status_code == 403

    async def test_blank_body_is_a_validation_error(self, client, agent_user):
        lead = await client.post("/api/leads", json={"title": "Deal"}, headers=auth_headers_for(agent_user))

        response = await client.post(
            "/api/notes",
            json={"entity_type": "lead", "entity_id": lead.json()["id"], "body": "   "},
            headers=auth_headers_for(agent_user),
        )

        assert response.status_code == 400

    async def test_listing_requires_entity(self, client, agent_user):
        response = await client.get("/api/notes", headers=auth_headers_for(agent_user))

        assert response.status_code == 400
