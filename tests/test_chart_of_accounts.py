"""
Chart of Account Tests
Code rules, tree integrity, delete and activation cascade
"""

import pytest


@pytest.fixture
def create_account(client, org, auth):
    def create(code, parent_id=None, account_type="EXPENSE", **extra):
        body = {
            "code": code,
            "name": f"Account {code}",
            "account_type": account_type,
            "category": "Travel",
            "parent_id": parent_id
        }
        body.update(extra)
        return client.post("/api/chart-of-accounts", json=body, headers=auth(org.admin))
    return create


@pytest.fixture
def tree(create_account):
    """6000 -> 6100 -> 6110"""
    root = create_account("6000").json()
    child = create_account("6100", parent_id=root["id"]).json()
    leaf = create_account("6110", parent_id=child["id"]).json()
    return root, child, leaf


class TestAccountCreation:

    def test_create(self, create_account, org):
        response = create_account("6000-TRV")
        assert response.status_code == 201
        assert response.json()["is_active"] is True
        assert response.json()["created_by_id"] == org.admin

    def test_lowercase_code_rejected(self, create_account):
        assert create_account("6000-trv").status_code == 400

    def test_duplicate_code(self, create_account):
        create_account("6000")
        response = create_account("6000")
        assert response.status_code == 409

    def test_parent_type_must_match(self, create_account):
        asset = create_account("1300", account_type="ASSET").json()
        response = create_account("6100", parent_id=asset["id"])
        assert response.status_code == 400

    def test_admin_only(self, client, org, auth):
        response = client.post(
            "/api/chart-of-accounts",
            json={"code": "6000", "name": "Travel", "account_type": "EXPENSE", "category": "Travel"},
            headers=auth(org.finance)
        )
        assert response.status_code == 403


class TestAccountTree:

    def test_hierarchy(self, client, org, auth, tree):
        root, child, leaf = tree
        nodes = client.get("/api/chart-of-accounts/hierarchy", headers=auth(org.employee)).json()
        assert [n["code"] for n in nodes] == ["6000"]
        assert nodes[0]["children"][0]["children"][0]["id"] == leaf["id"]

    def test_self_parent_rejected(self, client, org, auth, tree):
        root, child, leaf = tree
        response = client.put(
            f"/api/chart-of-accounts/{child['id']}",
            json={"parent_id": child["id"]},
            headers=auth(org.admin)
        )
        assert response.status_code == 400

    def test_cycle_rejected(self, client, org, auth, tree):
        root, child, leaf = tree
        response = client.put(
            f"/api/chart-of-accounts/{root['id']}",
            json={"parent_id": leaf["id"]},
            headers=auth(org.admin)
        )
        assert response.status_code == 400

    def test_type_change_blocked_with_children(self, client, org, auth, tree):
        root = tree[0]
        response = client.put(
            f"/api/chart-of-accounts/{root['id']}",
            json={"account_type": "ASSET"},
            headers=auth(org.admin)
        )
        assert response.status_code == 400


class TestAccountDelete:

    def test_delete_with_children_rejected(self, client, org, auth, tree):
        response = client.delete(f"/api/chart-of-accounts/{tree[0]['id']}", headers=auth(org.admin))
        assert response.status_code == 400

    def test_hard_delete(self, client, org, auth, tree):
        leaf = tree[2]
        response = client.delete(f"/api/chart-of-accounts/{leaf['id']}", headers=auth(org.admin))
        assert response.status_code == 200
        assert response.json() == {"deleted": True, "deactivated": False}
        assert client.get(f"/api/chart-of-accounts/{leaf['id']}", headers=auth(org.admin)).status_code == 404

    def test_referenced_account_needs_force(self, client, org, auth, tree, approved_trip):
        leaf = tree[2]
        claim = client.post(
            "/api/claims/non-entertainment",
            json={
                "travel_request_id": approved_trip,
                "amount": 120000,
                "description": "Train ticket to the client site",
                "expense_category": "TRANSPORT",
                "expense_date": "2026-11-03T07:00:00",
                "coa_id": leaf["id"]
            },
            headers=auth(org.employee)
        )
        assert claim.status_code == 201

        blocked = client.delete(f"/api/chart-of-accounts/{leaf['id']}", headers=auth(org.admin))
        assert blocked.status_code == 400

        forced = client.delete(f"/api/chart-of-accounts/{leaf['id']}?force=true", headers=auth(org.admin))
        assert forced.status_code == 200
        assert forced.json() == {"deleted": False, "deactivated": True}

        account = client.get(f"/api/chart-of-accounts/{leaf['id']}", headers=auth(org.admin)).json()
        assert account["is_active"] is False


class TestAccountActivation:

    def test_deactivate_cascades(self, client, org, auth, tree):
        root, child, leaf = tree
        response = client.post(f"/api/chart-of-accounts/{child['id']}/toggle-active", headers=auth(org.admin))
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        active = client.get("/api/chart-of-accounts/active", headers=auth(org.employee)).json()
        assert [a["code"] for a in active] == ["6000"]

    def test_cannot_activate_under_inactive_parent(self, client, org, auth, tree):
        root, child, leaf = tree
        client.post(f"/api/chart-of-accounts/{child['id']}/toggle-active", headers=auth(org.admin))

        response = client.post(f"/api/chart-of-accounts/{leaf['id']}/toggle-active", headers=auth(org.admin))
        assert response.status_code == 400

        client.post(f"/api/chart-of-accounts/{child['id']}/toggle-active", headers=auth(org.admin))
        response = client.post(f"/api/chart-of-accounts/{leaf['id']}/toggle-active", headers=auth(org.admin))
        assert response.status_code == 200
        assert response.json()["is_active"] is True

    def test_by_type(self, client, org, auth, tree, create_account):
        create_account("1300", account_type="ASSET")
        expense = client.get("/api/chart-of-accounts/type/EXPENSE", headers=auth(org.employee)).json()
        assert [a["code"] for a in expense] == ["6000", "6100", "6110"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
