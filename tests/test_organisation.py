"""
Department and Project Tests
"""

import pytest


class TestDepartments:

    @pytest.fixture
    def child(self, client, org, auth):
        response = client.post(
            "/api/departments",
            json={"code": "SALES-EAST", "name": "Sales East", "parent_id": org.department},
            headers=auth(org.admin)
        )
        assert response.status_code == 201
        return response.json()

    def test_create_and_lookup(self, client, org, auth, child):
        assert child["parent_id"] == org.department
        found = client.get("/api/departments/code/SALES-EAST", headers=auth(org.employee))
        assert found.status_code == 200
        assert found.json()["id"] == child["id"]

    def test_duplicate_code(self, client, org, auth):
        response = client.post("/api/departments", json={"code": "SALES", "name": "Again"}, headers=auth(org.admin))
        assert response.status_code == 409

    def test_admin_only(self, client, org, auth):
        response = client.post("/api/departments", json={"code": "OPS", "name": "Operations"}, headers=auth(org.director))
        assert response.status_code == 403

    def test_cycle_rejected(self, client, org, auth, child):
        response = client.put(
            f"/api/departments/{org.department}",
            json={"parent_id": child["id"]},
            headers=auth(org.admin)
        )
        assert response.status_code == 400

    def test_hierarchy(self, client, org, auth, child):
        tree = client.get("/api/departments/hierarchy", headers=auth(org.employee)).json()
        assert [d["code"] for d in tree] == ["SALES"]
        assert tree[0]["user_count"] == 9
        assert [d["code"] for d in tree[0]["children"]] == ["SALES-EAST"]

    def test_delete_rules(self, client, org, auth, child):
        # Active sub-department blocks deletion
        assert client.delete(f"/api/departments/{org.department}", headers=auth(org.admin)).status_code == 400

        deleted = client.delete(f"/api/departments/{child['id']}", headers=auth(org.admin))
        assert deleted.status_code == 200
        assert deleted.json()["deleted_at"] is not None

        # Active users block deletion
        response = client.delete(f"/api/departments/{org.department}", headers=auth(org.admin))
        assert response.status_code == 400
        assert "active user" in response.json()["message"]

        restored = client.post(f"/api/departments/{child['id']}/restore", headers=auth(org.admin))
        assert restored.json()["deleted_at"] is None


class TestProjects:

    def test_create_requires_manager(self, client, org, auth):
        body = {"code": "PRJ-NEW", "name": "New Project"}
        assert client.post("/api/projects", json=body, headers=auth(org.employee)).status_code == 403
        response = client.post("/api/projects", json=body, headers=auth(org.manager))
        assert response.status_code == 201
        assert response.json()["is_active"] is True

    def test_duplicate_code(self, client, org, auth, project):
        response = client.post("/api/projects", json={"code": "PRJ-TEST", "name": "Copy"}, headers=auth(org.manager))
        assert response.status_code == 409

    def test_search(self, client, org, auth, project):
        page = client.get("/api/projects?search=acme", headers=auth(org.employee)).json()
        assert [p["id"] for p in page["items"]] == [project]

    def test_delete_blocked_by_trips(self, client, org, auth, project, trip_payload):
        trip_payload["project_id"] = project
        client.post("/api/travel-requests", json=trip_payload, headers=auth(org.employee))
        assert client.delete(f"/api/projects/{project}", headers=auth(org.manager)).status_code == 400

    def test_delete(self, client, org, auth, project):
        response = client.delete(f"/api/projects/{project}", headers=auth(org.manager))
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get("/api/projects", headers=auth(org.employee)).json()["items"] == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
