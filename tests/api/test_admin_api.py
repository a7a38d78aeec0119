"""Tests for role, user, organization and audit endpoints"""
import pytest

from tests.helpers import auth_headers_for, create_user


class TestPermissionGates:
    async def test_missing_permission_is_403_with_required_list(self, client, agent_user):
        response = await client.post(
            "/api/roles",
            json={"name": "Sneaky", "permissions": ["role.manage"]},
            headers=auth_headers_for(agent_user),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "FORBIDDEN"
        assert body["details"] == {"required": ["role.manage"], "mode": "any"}

    async def test_role_edits_apply_to_existing_tokens(self, client, test_db, system_roles, agent_user, auth_headers):
        """
        GIVEN an agent holding a token and a new role granting audit.view
        WHEN the agent's roles are replaced with it
        THEN the same token can now read the audit log
        """
        agent_headers = auth_headers_for(agent_user)
        assert (await client.get("/api/audit-logs", headers=agent_headers)).status_code == 403

        created = await client.post(
            "/api/roles",
            json={"name": "Reviewer", "permissions": ["audit.view"]},
            headers=auth_headers,
        )
        assert created.status_code == 201
        updated = await client.patch(
            f"/api/users/{agent_user.id}", json={"role_names": ["Agent", "Reviewer"]}, headers=auth_headers
        )
        assert updated.status_code == 200

        assert (await client.get("/api/audit-logs", headers=agent_headers)).status_code == 200


class TestRolesApi:
    async def test_permission_catalog(self, client, auth_headers):
        response = await client.get("/api/roles/permissions", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["permissions"]) == 41
        assert data["categories"]["note"] == [
            "note.create",
            "note.view",
            "note.edit.all",
            "note.edit.own",
            "note.delete.all",
            "note.delete.own",
        ]
        assert data["categories"]["lead"][0] == "lead.create"

    async def test_role_crud(self, client, auth_headers):
        created = await client.post(
            "/api/roles",
            json={"name": "Support", "description": "Helpdesk", "permissions": ["lead.view.all"]},
            headers=auth_headers,
        )
        assert created.status_code == 201
        role_id = created.json()["id"]

        patched = await client.patch(
            f"/api/roles/{role_id}", json={"permissions": ["lead.view.all", "user.view"]}, headers=auth_headers
        )
        assert patched.json()["permissions"] == ["lead.view.all", "user.view"]
        assert patched.json()["description"] == "Helpdesk"

        listing = await client.get("/api/roles", params={"include_system": "false"}, headers=auth_headers)
        assert [role["name"] for role in listing.json()["items"]] == ["Support"]
        assert listing.json()["items"][0]["user_count"] == 0

        assert (await client.delete(f"/api/roles/{role_id}", headers=auth_headers)).status_code == 204
        assert (await client.get(f"/api/roles/{role_id}", headers=auth_headers)).status_code == 404

    async def test_unknown_permission_is_rejected(self, client, auth_headers):
        response = await client.post(
            "/api/roles", json={"name": "Broken", "permissions": ["lead.fly"]}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["details"]["invalid"] == ["lead.fly"]

    async def test_system_role_cannot_be_deleted(self, client, system_roles, auth_headers):
        response = await client.delete(f"/api/roles/{system_roles['Agent'].id}", headers=auth_headers)

        assert response.status_code == 403


class TestUsersApi:
    async def test_invite_verify_and_login(self, client, auth_headers):
        invited = await client.post(
            "/api/users",
            json={"name": "Jane", "email": "jane@acme.com", "role_names": ["Agent"]},
            headers=auth_headers,
        )
        assert invited.status_code == 201
        data = invited.json()
        assert data["user"]["status"] == "pending"
        assert [role["name"] for role in data["user"]["roles"]] == ["Agent"]

        verified = await client.post(
            "/api/auth/verify-email", json={"token": data["verification_token"], "password": "janes-password"}
        )
        assert verified.status_code == 200
        assert verified.json()["user"]["status"] == "active"

        login = await client.post(
            "/api/auth/login", json={"domain": "acme.com", "email": "jane@acme.com", "password": "janes-password"}
        )
        assert login.status_code == 200

    async def test_invite_duplicate_email_conflicts(self, client, auth_headers):
        response = await client.post(
            "/api/users",
            json={"name": "Again", "email": "admin@acme.com", "role_names": ["Agent"]},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_list_filters_by_status(self, client, agent_user, auth_headers):
        response = await client.get("/api/users", params={"status": "active", "sort_by": "email"}, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["page_size"] == 25
        assert [user["email"] for user in data["items"]] == ["agent@acme.com", "admin@acme.com"]

    async def test_user_of_another_organization_is_404(self, client, other_organization, test_db, auth_headers):
        outsider = await create_user(test_db, other_organization, [], "outsider@globex.com")

        response = await client.get(f"/api/users/{outsider.id}", headers=auth_headers)

        assert response.status_code == 404

    async def test_cannot_delete_self(self, client, admin_user, auth_headers):
        response = await client.delete(f"/api/users/{admin_user.id}", headers=auth_headers)

        assert response.status_code == 400

    @pytest.mark.parametrize(("name", "expected_status"), [("J", 400), ("  J ", 400), ("Jo", 201)])
    async def test_invite_name_length_bounds(self, client, auth_headers, name, expected_status):
        response = await client.post(
            "/api/users",
            json={"name": name, "email": "jo@acme.com", "role_names": ["Agent"]},
            headers=auth_headers,
        )

        assert response.status_code == expected_status, response.text

    async def test_update_rejects_one_character_name(self, client, agent_user, auth_headers):
        response = await client.patch(f"/api/users/{agent_user.id}", json={"name": "B"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestOrganizationApi:
    async def test_update_settings_requires_org_manage(self, client, test_db, test_organization, system_roles):
        admin = await create_user(test_db, test_organization, [system_roles["Admin"]], "second@acme.com")

        response = await client.patch(
            "/api/organization", json={"settings": {"timezone": "Europe/Paris"}}, headers=auth_headers_for(admin)
        )

        assert response.status_code == 403

    async def test_super_admin_updates_settings(self, client, auth_headers):
        response = await client.patch(
            "/api/organization", json={"settings": {"timezone": "Europe/Paris"}}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["settings"]["timezone"] == "Europe/Paris"
        assert response.json()["settings"]["currency"] == "USD"

    @pytest.mark.parametrize(("name", "expected_status"), [("A", 400), (" A ", 400), ("AB", 200), ("x" * 101, 400)])
    async def test_name_length_bounds(self, client, auth_headers, name, expected_status):
        response = await client.patch("/api/organization", json={"name": name}, headers=auth_headers)

        assert response.status_code == expected_status, response.text

    async def test_stats(self, client, agent_user, auth_headers):
        response = await client.get("/api/organization/stats", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["users"]["total"] == 2


class TestAuditLogApi:
    async def test_mutations_appear_in_audit_log(self, client, auth_headers):
        await client.post(
            "/api/roles", json={"name": "Support", "permissions": ["lead.view.all"]}, headers=auth_headers
        )

        response = await client.get("/api/audit-logs", params={"entity_type": "role"}, headers=auth_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["action"] == "create"
        assert items[0]["after"]["name"] == "Support"
