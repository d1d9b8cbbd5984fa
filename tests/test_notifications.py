"""
Notification Tests
Delivery outcome, read tracking and admin operations
"""

import pytest

from src.models.notification import Notification
from src.services.notification_service import (
    notification_service, LogNotificationSender, NotificationSender, PENDING_KEY
)


class FailingSender(NotificationSender):
    def send(self, notification):
        raise ConnectionError("SMTP relay unreachable")


@pytest.fixture
def failing_sender():
    notification_service.set_sender(FailingSender())
    yield
    notification_service.set_sender(LogNotificationSender())


def _create(client, auth, org, **overrides):
    body = {"user_id": org.employee, "title": "Policy update", "message": "New per diem rates apply from December"}
    body.update(overrides)
    return client.post("/api/notifications", json=body, headers=auth(org.admin))


class TestDelivery:

    def test_sent_on_success(self, client, org, auth):
        response = _create(client, auth, org)
        assert response.status_code == 201
        assert response.json()["status"] == "SENT"
        assert response.json()["sent_at"] is not None

    def test_failure_is_recorded(self, client, org, auth, failing_sender):
        response = _create(client, auth, org, channel="EMAIL")
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "FAILED"
        assert data["error_message"] == "SMTP relay unreachable"

    def test_resend(self, client, org, auth, failing_sender):
        notification = _create(client, auth, org).json()
        notification_service.set_sender(LogNotificationSender())

        response = client.post(f"/api/notifications/{notification['id']}/resend", headers=auth(org.admin))
        assert response.status_code == 200
        assert response.json()["status"] == "SENT"
        assert response.json()["error_message"] is None

        again = client.post(f"/api/notifications/{notification['id']}/resend", headers=auth(org.admin))
        assert again.status_code == 400

    def test_workflow_failure_does_not_block(self, client, org, auth, trip_payload, failing_sender):
        trip = client.post("/api/travel-requests", json=trip_payload, headers=auth(org.employee)).json()
        response = client.post(f"/api/travel-requests/{trip['id']}/submit", headers=auth(org.employee))
        assert response.status_code == 200

        failed = client.get("/api/notifications?status=FAILED", headers=auth(org.supervisor)).json()["items"]
        assert len(failed) == 1
        assert failed[0]["entity_type"] == "TravelRequest"

    def test_dispatched_after_commit(self, client, org, auth, db_session, submitted_trip):
        seen = []

        class CommittedCheckSender(NotificationSender):
            def send(self, notification):
                # The row must already be visible outside the request's transaction
                db_session.expire_all()
                seen.append(db_session.get(Notification, notification.id) is not None)

        notification_service.set_sender(CommittedCheckSender())
        try:
            response = client.post(
                f"/api/approvals/{submitted_trip['approvals'][0]['id']}/approve",
                json={},
                headers=auth(org.supervisor)
            )
        finally:
            notification_service.set_sender(LogNotificationSender())

        assert response.status_code == 200
        assert seen == [True, True]

    def test_rollback_discards_queue(self, db_session, org):
        notification_service.notify(db_session, user_id=org.employee, title="Draft", message="Never sent")
        assert len(db_session.info[PENDING_KEY]) == 1

        db_session.rollback()
        assert PENDING_KEY not in db_session.info
        assert notification_service.deliver_pending(db_session) == 0


class TestAdministration:

    def test_create_requires_admin(self, client, org, auth):
        response = client.post(
            "/api/notifications",
            json={"user_id": org.employee, "title": "Hi", "message": "Hello"},
            headers=auth(org.manager)
        )
        assert response.status_code == 403

    def test_unknown_recipient(self, client, org, auth):
        assert _create(client, auth, org, user_id=999).status_code == 404

    def test_batch(self, client, org, auth):
        response = client.post(
            "/api/notifications/batch",
            json={"user_ids": [org.employee, org.sales, org.employee], "title": "Reminder", "message": "Submit claims"},
            headers=auth(org.admin)
        )
        assert response.status_code == 201
        assert sorted(n["user_id"] for n in response.json()) == sorted([org.employee, org.sales])

    def test_statistics(self, client, org, auth):
        _create(client, auth, org)
        stats = client.get("/api/notifications/statistics", headers=auth(org.admin)).json()
        assert stats["total"] == 1
        assert stats["by_status"] == {"SENT": 1}
        assert client.get("/api/notifications/statistics", headers=auth(org.employee)).status_code == 403


class TestReadTracking:

    def test_workflow_notifies_approver(self, client, org, auth, submitted_trip):
        items = client.get("/api/notifications", headers=auth(org.supervisor)).json()["items"]
        assert len(items) == 1
        assert items[0]["entity_id"] == submitted_trip["id"]
        assert items[0]["read_at"] is None

    def test_mark_read(self, client, org, auth):
        notification = _create(client, auth, org).json()
        response = client.put(f"/api/notifications/{notification['id']}/read", headers=auth(org.employee))
        assert response.status_code == 200
        assert response.json()["status"] == "READ"
        assert response.json()["read_at"] is not None
        assert client.get("/api/notifications/unread-count", headers=auth(org.employee)).json() == {"count": 0}

    def test_cannot_read_others(self, client, org, auth):
        notification = _create(client, auth, org).json()
        assert client.put(f"/api/notifications/{notification['id']}/read", headers=auth(org.sales)).status_code == 403
        assert client.get(f"/api/notifications/{notification['id']}", headers=auth(org.sales)).status_code == 403

    def test_read_all(self, client, org, auth):
        for _ in range(3):
            _create(client, auth, org)
        response = client.put("/api/notifications/read-all", headers=auth(org.employee))
        assert response.json() == {"count": 3}
        unread = client.get("/api/notifications?unread_only=true", headers=auth(org.employee)).json()
        assert unread["items"] == []

    def test_read_many_requires_ownership(self, client, org, auth):
        own = _create(client, auth, org).json()
        other = _create(client, auth, org, user_id=org.sales).json()
        response = client.put(
            "/api/notifications/read-many",
            json={"ids": [own["id"], other["id"]]},
            headers=auth(org.employee)
        )
        assert response.status_code == 403

        response = client.put("/api/notifications/read-many", json={"ids": [own["id"]]}, headers=auth(org.employee))
        assert response.json() == {"count": 1}

    def test_delete_read(self, client, org, auth):
        notification = _create(client, auth, org).json()
        _create(client, auth, org)
        client.put(f"/api/notifications/{notification['id']}/read", headers=auth(org.employee))

        assert client.delete("/api/notifications/read", headers=auth(org.employee)).json() == {"count": 1}
        assert client.get("/api/notifications/unread-count", headers=auth(org.employee)).json() == {"count": 1}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
