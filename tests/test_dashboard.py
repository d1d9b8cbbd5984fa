"""
Dashboard Tests
"""

import pytest


class TestMyDashboard:

    def test_requester_view(self, client, org, auth, submitted_trip):
        data = client.get("/api/dashboard/me", headers=auth(org.employee)).json()
        assert data["travel_requests"]["total"] == 1
        assert data["travel_requests"]["by_status"] == {"SUBMITTED": 1}
        assert data["travel_requests"]["recent"][0]["id"] == submitted_trip["id"]
        assert data["claims"]["total"] == 0
        assert data["pending_approvals"] == 0
        assert "team_pending_requests" not in data

    def test_supervisor_view(self, client, org, auth, submitted_trip):
        data = client.get("/api/dashboard/me", headers=auth(org.supervisor)).json()
        assert data["pending_approvals"] == 1
        assert data["unread_notifications"] == 1
        assert data["team_pending_requests"] == 1


class TestLeadershipDashboards:

    def test_manager_dashboard(self, client, org, auth, submitted_trip):
        assert client.get("/api/dashboard/manager", headers=auth(org.employee)).status_code == 403

        data = client.get("/api/dashboard/manager", headers=auth(org.manager)).json()
        assert data["travel_requests"]["total"] == 1
        assert len(data["monthly_trend"]) == 6
        assert data["top_spenders"] == []

    def test_finance_dashboard(self, client, org, auth, approved_trip):
        assert client.get("/api/dashboard/finance", headers=auth(org.manager)).status_code == 403

        data = client.get("/api/dashboard/finance", headers=auth(org.finance)).json()
        assert data["overview"] == {"total_approved": 0, "total_paid": 0, "pending_payment": 0}
        assert data["pending_payments"]["count"] == 0

    def test_travel_trends(self, client, org, auth, submitted_trip):
        data = client.get("/api/dashboard/travel-trends?months=3", headers=auth(org.manager)).json()
        assert [row["month"] for row in data["monthly_trend"]] == sorted(row["month"] for row in data["monthly_trend"])
        assert len(data["monthly_trend"]) == 3
        assert data["by_type"] == {"MEETING": 1}
        assert data["monthly_trend"][-1]["MEETING"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
