"""Tests for the lead and attachment endpoints"""
import pytest
from sqlalchemy import select

from models.attachment import Attachment
from models.lead import Lead
from tests.helpers import auth_headers_for, create_user


@pytest.fixture
async def second_agent(test_db, test_organization, system_roles):
    return await create_user(test_db, test_organization, [system_roles["Agent"]], "agent2@acme.com", "Agent Two")


async def create_lead(client, headers, **fields) -> dict:
    response = await client.post("/api/leads", json={"title": "Deal", **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestLeadsApi:
    async def test_agent_scope(self, client, agent_user, second_agent):
        """
        GIVEN two agents with one lead each
        WHEN the first agent lists and reads leads
        THEN only their own lead is visible and the other one is 403
        """
        first_headers = auth_headers_for(agent_user)
        mine = await create_lead(client, first_headers, title="Mine")
        theirs = await create_lead(client, auth_headers_for(second_agent), title="Theirs")

        listing = await client.get("/api/leads", headers=first_headers)
        assert [lead["id"] for lead in listing.json()["items"]] == [mine["id"]]
        assert listing.json()["pagination"] == {"page": 1, "page_size": 20, "total": 1, "total_pages": 1}

        assert (await client.get(f"/api/leads/{theirs['id']}", headers=first_headers)).status_code == 403
        patched = await client.patch(f"/api/leads/{theirs['id']}", json={"status": "won"}, headers=first_headers)
        assert patched.status_code == 403

    async def test_agent_cannot_assign(self, client, agent_user, second_agent):
        lead = await create_lead(client, auth_headers_for(agent_user))

        response = await client.post(
            f"/api/leads/{lead['id']}/assign",
            json={"owner_user_id": second_agent.id},
            headers=auth_headers_for(agent_user),
        )

        assert response.status_code == 403

    async def test_admin_assigns_and_filters(self, client, agent_user, second_agent, auth_headers):
        lead = await create_lead(client, auth_headers_for(agent_user), status="qualified", source="referral")

        assigned = await client.post(
            f"/api/leads/{lead['id']}/assign", json={"owner_user_id": second_agent.id}, headers=auth_headers
        )
        assert assigned.status_code == 200
        assert assigned.json()["owner_user_id"] == second_agent.id

        filtered = await client.get(
            "/api/leads", params={"status": "qualified", "owner_user_id": second_agent.id}, headers=auth_headers
        )
        assert [item["id"] for item in filtered.json()["items"]] == [lead["id"]]

        audit = await client.get(
            "/api/audit-logs", params={"entity_id": lead["id"], "action": "assign"}, headers=auth_headers
        )
        assert audit.json()["items"][0]["metadata"] == {"new_owner": second_agent.id}

    async def test_invalid_status_is_a_validation_error(self, client, auth_headers):
        response = await client.post("/api/leads", json={"title": "Deal", "status": "maybe"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_delete_hides_lead(self, client, agent_user):
        headers = auth_headers_for(agent_user)
        lead = await create_lead(client, headers)

        assert (await client.delete(f"/api/leads/{lead['id']}", headers=headers)).status_code == 204
        assert (await client.get(f"/api/leads/{lead['id']}", headers=headers)).status_code == 404

    async def test_lead_of_another_organization_is_404(self, client, test_db, other_organization, auth_headers):
        outsider = await create_user(test_db, other_organization, [], "outsider@globex.com")
        foreign = Lead(organization_id=other_organization.id, owner_user_id=outsider.id, title="Foreign")
        test_db.add(foreign)
        await test_db.commit()

        response = await client.get(f"/api/leads/{foreign.id}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["details"] == {"resource_type": "Lead", "resource_id": foreign.id}


class TestLeadValidation:
    @pytest.mark.parametrize(
        ("title", "expected_status"),
        [("ab", 400), ("  ab  ", 400), ("abc", 201), ("x" * 120, 201), ("x" * 121, 400)],
    )
    async def test_title_length_bounds(self, client, auth_headers, title, expected_status):
        response = await client.post("/api/leads", json={"title": title}, headers=auth_headers)

        assert response.status_code == expected_status, response.text

    async def test_explicit_null_title_is_a_validation_error(self, client, agent_user):
        """
        GIVEN an existing lead
        WHEN it is patched with {"title": null}
        THEN the request is rejected as a validation error and the lead is unchanged
        """
        headers = auth_headers_for(agent_user)
        lead = await create_lead(client, headers, title="Keep me")

        response = await client.patch(f"/api/leads/{lead['id']}", json={"title": None}, headers=headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        fetched = await client.get(f"/api/leads/{lead['id']}", headers=headers)
        assert fetched.json()["title"] == "Keep me"

    @pytest.mark.parametrize("field", ["status", "source"])
    async def test_explicit_null_enum_is_a_validation_error(self, client, agent_user, field):
        headers = auth_headers_for(agent_user)
        lead = await create_lead(client, headers)

        response = await client.patch(f"/api/leads/{lead['id']}", json={field: None}, headers=headers)

        assert response.status_code == 400

    async def test_nullable_field_can_be_cleared(self, client, agent_user):
        headers = auth_headers_for(agent_user)
        lead = await create_lead(client, headers, company="Initech")

        response = await client.patch(f"/api/leads/{lead['id']}", json={"company": None}, headers=headers)

        assert response.status_code == 200
        assert response.json()["company"] is None


class TestAttachmentsApi:
    async def test_upload_download_delete(self, client, test_db, agent_user, auth_headers, storage_service):
        headers = auth_headers_for(agent_user)
        lead = await create_lead(client, headers)

        uploaded = await client.post(
            "/api/attachments",
            files={"file": ("Q3 plan.txt", b"hello world", "text/plain")},
            data={"entity_type": "lead", "entity_id": lead["id"]},
            headers=headers,
        )
        assert uploaded.status_code == 201, uploaded.text
        attachment = uploaded.json()
        assert attachment["filename"] == "Q3 plan.txt"
        assert attachment["size_bytes"] == 11
        storage_ref = (
            await test_db.execute(select(Attachment.storage_ref).where(Attachment.id == attachment["id"]))
        ).scalar_one()
        assert await storage_service.exists(storage_ref)

        download = await client.get(f"/api/attachments/{attachment['id']}/download", headers=headers)
        assert download.status_code == 200
        assert download.content == b"hello world"
        assert download.headers["content-disposition"] == "attachment; filename*=UTF-8''Q3%20plan.txt"

        listing = await client.get("/api/attachments", params={"entity_id": lead["id"]}, headers=headers)
        assert listing.json()["pagination"]["total"] == 1

        # Agents hold no file.delete permission
        assert (await client.delete(f"/api/attachments/{attachment['id']}", headers=headers)).status_code == 403
        deleted = await client.delete(f"/api/attachments/{attachment['id']}", headers=auth_headers)
        assert deleted.status_code == 204
        assert not await storage_service.exists(storage_ref)

    async def test_upload_to_unknown_lead_is_404(self, client, auth_headers):
        response = await client.post(
            "/api/attachments",
            files={"file": ("a.txt", b"data", "text/plain")},
            data={"entity_type": "lead", "entity_id": "missing"},
            headers=auth_headers,
        )

        assert response.status_code == 404
