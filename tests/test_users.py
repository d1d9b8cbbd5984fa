"""
User Management Tests
Admin CRUD, soft delete and the supervisor hierarchy
"""

import pytest


def _new_user(**overrides):
    body = {
        "name": "New Hire",
        "email": "new.hire@company.com",
        "employee_id": "EMP-NEW",
        "password": "welcome123",
        "role": "EMPLOYEE"
    }
    body.update(overrides)
    return body


class TestUserAdministration:

    def test_admin_creates_user(self, client, org, auth):
        response = client.post(
            "/api/users",
            json=_new_user(supervisor_id=org.supervisor, department_id=org.department),
            headers=auth(org.admin)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["supervisor_id"] == org.supervisor
        assert "hashed_password" not in data

        login = client.post("/api/auth/login", data={"username": "EMP-NEW", "password": "welcome123"})
        assert login.status_code == 200

    def test_non_admin_cannot_create(self, client, org, auth):
        response = client.post("/api/users", json=_new_user(), headers=auth(org.manager))
        assert response.status_code == 403

    def test_duplicate_email(self, client, org, auth):
        response = client.post(
            "/api/users",
            json=_new_user(email="employee@company.com"),
            headers=auth(org.admin)
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_unknown_supervisor(self, client, org, auth):
        response = client.post("/api/users", json=_new_user(supervisor_id=999), headers=auth(org.admin))
        assert response.status_code == 404

    def test_list_requires_manager(self, client, org, auth):
        assert client.get("/api/users", headers=auth(org.employee)).status_code == 403
        data = client.get("/api/users?role=EMPLOYEE", headers=auth(org.manager)).json()
        assert data["total"] == 2
        assert {u["email"] for u in data["items"]} == {"employee@company.com", "outsider@company.com"}

    def test_profile_visibility(self, client, org, auth):
        assert client.get(f"/api/users/{org.employee}", headers=auth(org.employee)).status_code == 200
        assert client.get(f"/api/users/{org.supervisor}", headers=auth(org.employee)).status_code == 403
        assert client.get(f"/api/users/{org.employee}", headers=auth(org.director)).status_code == 200

    def test_update_me(self, client, org, auth):
        response = client.put("/api/users/me", json={"phone_number": "+62 811 1234 567"}, headers=auth(org.employee))
        assert response.status_code == 200
        assert response.json()["phone_number"] == "+62 811 1234 567"


class TestSoftDelete:

    def test_cannot_delete_with_reports(self, client, org, auth):
        response = client.delete(f"/api/users/{org.supervisor}", headers=auth(org.admin))
        assert response.status_code == 400
        assert "direct report" in response.json()["message"]

    def test_delete_and_restore(self, client, org, auth):
        deleted = client.delete(f"/api/users/{org.employee}", headers=auth(org.admin))
        assert deleted.status_code == 200
        assert deleted.json()["deleted_at"] is not None

        # Deleted users cannot authenticate
        assert client.get("/api/auth/me", headers=auth(org.employee)).status_code == 403
        assert client.delete(f"/api/users/{org.employee}", headers=auth(org.admin)).status_code == 400

        restored = client.post(f"/api/users/{org.employee}/restore", headers=auth(org.admin))
        assert restored.status_code == 200
        assert restored.json()["deleted_at"] is None
        assert client.get("/api/auth/me", headers=auth(org.employee)).status_code == 200


class TestHierarchy:

    def test_self_supervision_rejected(self, client, org, auth):
        response = client.put(
            f"/api/users/{org.supervisor}",
            json={"supervisor_id": org.supervisor},
            headers=auth(org.admin)
        )
        assert response.status_code == 400

    def test_cycle_rejected(self, client, org, auth):
        response = client.put(
            f"/api/users/{org.supervisor}",
            json={"supervisor_id": org.employee},
            headers=auth(org.admin)
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Circular supervisor reference detected"

    def test_reassign_supervisor(self, client, org, auth):
        response = client.put(
            f"/api/users/{org.outsider}",
            json={"supervisor_id": org.chief},
            headers=auth(org.admin)
        )
        assert response.status_code == 200
        reports = client.get(f"/api/users/{org.chief}/direct-reports", headers=auth(org.chief)).json()
        assert sorted(u["id"] for u in reports) == sorted([org.sales, org.outsider])

    def test_tree(self, client, org, auth):
        tree = client.get("/api/users/hierarchy", headers=auth(org.employee)).json()
        roots = {node["email"]: node for node in tree}
        assert set(roots) == {"admin@company.com", "director@company.com"}

        director = roots["director@company.com"]
        assert {n["email"] for n in director["subordinates"]} == {"manager@company.com", "finance@company.com"}

        subtree = client.get(f"/api/users/hierarchy?root_id={org.supervisor}", headers=auth(org.employee)).json()
        assert len(subtree) == 1
        assert {n["id"] for n in subtree[0]["subordinates"]} == {org.employee, org.outsider}

    def test_lookup_by_phone(self, client, org, auth):
        response = client.get("/api/users/by-phone/628110000007", headers=auth(org.manager))
        assert response.status_code == 200
        assert response.json()["id"] == org.employee


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
