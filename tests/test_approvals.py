"""
Approval Workflow Tests
Level ordering, rejection, revision and admin override
"""

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.approval import Approval, ApprovalStatus
from src.services.audit_service import audit_service
from src.services.notification_service import notification_service, LogNotificationSender, NotificationSender

REASON = "Budget does not cover this trip"


def _approve(client, auth, approval, **body):
    return client.post(
        f"/api/approvals/{approval['id']}/approve",
        json=body,
        headers=auth(approval["approver_id"])
    )


def _trip(client, auth, org, trip_id):
    return client.get(f"/api/travel-requests/{trip_id}", headers=auth(org.employee)).json()


class TestApprovalOrdering:
    """Levels are approved lowest first"""

    def test_higher_level_waits_for_lower(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]

        response = _approve(client, auth, l2)
        assert response.status_code == 400
        assert response.json()["message"] == "Previous level approvals must be completed first"

        # Nothing was written by the failed attempt
        trip = _trip(client, auth, org, submitted_trip["id"])
        assert trip["status"] == "SUBMITTED"
        assert [a["status"] for a in trip["approvals"]] == ["PENDING", "PENDING", "PENDING"]

    def test_status_progression(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]

        assert _approve(client, auth, l1).status_code == 200
        assert _trip(client, auth, org, submitted_trip["id"])["status"] == "APPROVED_L1"

        assert _approve(client, auth, l2).status_code == 200
        assert _trip(client, auth, org, submitted_trip["id"])["status"] == "APPROVED_L2"

        response = _approve(client, auth, l3, comments="Have a good trip")
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert response.json()["comments"] == "Have a good trip"
        assert response.json()["approved_at"] is not None

        trip = _trip(client, auth, org, submitted_trip["id"])
        assert trip["status"] == "APPROVED"
        assert all(a["status"] == "APPROVED" for a in trip["approvals"])

    def test_only_assigned_approver(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.manager))
        assert response.status_code == 403

    def test_already_processed(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        assert _approve(client, auth, l1).status_code == 200
        response = _approve(client, auth, l1)
        assert response.status_code == 400

    def test_unknown_approval(self, client, org, auth, test_db):
        response = client.post("/api/approvals/999/approve", json={}, headers=auth(org.manager))
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_next_approver_is_notified(self, client, org, auth, submitted_trip):
        assert client.get("/api/approvals/pending-count", headers=auth(org.supervisor)).json() == {"count": 1}
        before = client.get("/api/notifications/unread-count", headers=auth(org.manager)).json()["count"]

        _approve(client, auth, submitted_trip["approvals"][0])

        after = client.get("/api/notifications/unread-count", headers=auth(org.manager)).json()["count"]
        assert after == before + 1
        assert client.get("/api/approvals/pending-count", headers=auth(org.supervisor)).json() == {"count": 0}


class TestRejection:

    def test_reject_is_terminal(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]
        response = client.post(
            f"/api/approvals/{l1['id']}/reject",
            json={"rejection_reason": REASON},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "REJECTED"
        assert response.json()["rejection_reason"] == REASON

        trip = _trip(client, auth, org, submitted_trip["id"])
        assert trip["status"] == "REJECTED"
        # Other levels are left as they were
        assert [a["status"] for a in trip["approvals"]] == ["REJECTED", "PENDING", "PENDING"]

        # A rejected trip can no longer be acted on
        assert _approve(client, auth, l2).status_code == 400

    def test_short_reason_rejected(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(
            f"/api/approvals/{l1['id']}/reject",
            json={"rejection_reason": "no"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 400

    def test_requester_is_notified(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        client.post(
            f"/api/approvals/{l1['id']}/reject",
            json={"rejection_reason": REASON},
            headers=auth(org.supervisor)
        )
        notifications = client.get("/api/notifications", headers=auth(org.employee)).json()["items"]
        assert notifications[0]["title"] == "TravelRequest rejected"
        assert notifications[0]["priority"] == "HIGH"


class TestRevision:

    def test_revision_resets_chain(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]
        assert _approve(client, auth, l1).status_code == 200

        response = client.post(
            f"/api/approvals/{l2['id']}/revision",
            json={"comments": "Please add the meeting agenda"},
            headers=auth(org.manager)
        )
        assert response.status_code == 200

        trip = _trip(client, auth, org, submitted_trip["id"])
        assert trip["status"] == "REVISION"
        assert [a["status"] for a in trip["approvals"]] == ["PENDING", "PENDING", "PENDING"]
        assert trip["approvals"][0]["approved_at"] is None

    def test_resubmit_reuses_chain(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]
        client.post(
            f"/api/approvals/{l1['id']}/revision",
            json={"comments": "Dates overlap with the audit"},
            headers=auth(org.supervisor)
        )

        updated = client.put(
            f"/api/travel-requests/{submitted_trip['id']}",
            json={"start_date": "2026-11-09T08:00:00", "end_date": "2026-11-11T18:00:00"},
            headers=auth(org.employee)
        )
        assert updated.status_code == 200

        resubmitted = client.post(f"/api/travel-requests/{submitted_trip['id']}/submit", headers=auth(org.employee))
        assert resubmitted.status_code == 200
        assert resubmitted.json()["status"] == "SUBMITTED"
        assert [a["id"] for a in resubmitted.json()["approvals"]] == [l1["id"], l2["id"], l3["id"]]

        assert _approve(client, auth, l1).status_code == 200

    def test_resubmit_follows_new_supervisor(self, client, org, auth, submitted_trip):
        l1, l2, l3 = submitted_trip["approvals"]
        client.post(
            f"/api/approvals/{l1['id']}/revision",
            json={"comments": "Dates overlap with the audit"},
            headers=auth(org.supervisor)
        )
        moved = client.put(f"/api/users/{org.employee}", json={"supervisor_id": org.chief}, headers=auth(org.admin))
        assert moved.status_code == 200

        resubmitted = client.post(
            f"/api/travel-requests/{submitted_trip['id']}/submit", headers=auth(org.employee)
        ).json()
        approvals = resubmitted["approvals"]
        assert [(a["level"], a["approver_id"]) for a in approvals] == [
            ("L1_SUPERVISOR", org.chief), ("L2_MANAGER", org.manager), ("L3_DIRECTOR", org.director)
        ]
        assert [a["approval_number"] for a in approvals] == [a["approval_number"] for a in (l1, l2, l3)]

        response = client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.supervisor))
        assert response.status_code == 403
        assert _approve(client, auth, approvals[0]).status_code == 200

    def test_short_comments_rejected(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(
            f"/api/approvals/{l1['id']}/revision",
            json={"comments": "fix"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 400


class TestApprovalByNumber:
    """External channel identifies the approver by phone"""

    def test_matching_phone(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(
            f"/api/approvals/number/{l1['approval_number']}/approve",
            json={"caller_phone": "+628110000006"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"

    def test_phone_mismatch(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(
            f"/api/approvals/number/{l1['approval_number']}/approve",
            json={"caller_phone": "+62 811 9999 999"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 403

    def test_lookup_by_number(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.get(
            f"/api/approvals/number/{l1['approval_number']}",
            params={"caller_phone": "62 811 0000 006"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 200
        assert response.json()["id"] == l1["id"]
        assert response.json()["entity_type"] == "TravelRequest"


class TestAdminOverride:

    def test_override_approves_and_is_audited(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        response = client.post(
            f"/api/approvals/{l1['id']}/admin-action",
            json={"action": "approve", "comments": "Approved on behalf"},
            headers=auth(org.admin)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"

        logs = client.get(
            f"/api/audit-logs/entity/TravelRequest/{submitted_trip['id']}",
            headers=auth(org.manager)
        ).json()
        approvals = [log for log in logs if log["action"] == "APPROVE"]
        assert len(approvals) == 1
        assert approvals[0]["user_id"] == org.admin
        assert approvals[0]["metadata"]["admin_override"] is True
        assert approvals[0]["metadata"]["level"] == "L1_SUPERVISOR"

    def test_override_still_respects_order(self, client, org, auth, submitted_trip):
        l2 = submitted_trip["approvals"][1]
        response = client.post(
            f"/api/approvals/{l2['id']}/admin-action",
            json={"action": "approve"},
            headers=auth(org.director)
        )
        assert response.status_code == 400

    def test_override_requires_leadership(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        for user_id in (org.supervisor, org.finance):
            response = client.post(
                f"/api/approvals/{l1['id']}/admin-action",
                json={"action": "approve"},
                headers=auth(user_id)
            )
            assert response.status_code == 403

    def test_override_reject(self, client, org, auth, submitted_trip):
        l3 = submitted_trip["approvals"][2]
        response = client.post(
            f"/api/approvals/{l3['id']}/admin-action",
            json={"action": "reject", "rejection_reason": REASON},
            headers=auth(org.manager)
        )
        assert response.status_code == 200
        assert _trip(client, auth, org, submitted_trip["id"])["status"] == "REJECTED"


class TestApprovalReads:

    def test_my_approvals(self, client, org, auth, submitted_trip):
        page = client.get("/api/approvals", headers=auth(org.manager)).json()
        assert [a["level"] for a in page["items"]] == ["L2_MANAGER"]

        filtered = client.get("/api/approvals?entity_type=Claim", headers=auth(org.manager)).json()
        assert filtered["items"] == []

    def test_get_by_id_access(self, client, org, auth, submitted_trip):
        l1 = submitted_trip["approvals"][0]
        assert client.get(f"/api/approvals/{l1['id']}", headers=auth(org.employee)).status_code == 200
        assert client.get(f"/api/approvals/{l1['id']}", headers=auth(org.sales)).status_code == 403

    def test_admin_listing(self, client, org, auth, submitted_trip):
        page = client.get("/api/approvals/admin/all?status=PENDING", headers=auth(org.director)).json()
        assert len(page["items"]) == 3
        assert client.get("/api/approvals/admin/all", headers=auth(org.employee)).status_code == 403


class RecordingSender(NotificationSender):
    def __init__(self):
        self.sent = []

    def send(self, notification):
        self.sent.append((notification.user_id, notification.title))


@pytest.fixture
def recording_sender():
    sender = RecordingSender()
    notification_service.set_sender(sender)
    yield sender
    notification_service.set_sender(LogNotificationSender())


class TestConcurrentApproval:
    """The version column turns a lost race into 409 CONFLICT"""

    def _edit_between_load_and_commit(self, monkeypatch, db_session, approval_id):
        original = audit_service.record

        def record(db, *args, **kwargs):
            # Another request updates the row after this one has loaded it
            row = db_session.query(Approval).populate_existing().filter(Approval.id == approval_id).one()
            row.comments = "Checked against the Q4 budget"
            db_session.commit()
            return original(db, *args, **kwargs)

        monkeypatch.setattr(audit_service, "record", record)

    def test_stale_version_raises(self, db_session, submitted_trip):
        approval_id = submitted_trip["approvals"][0]["id"]
        mine = db_session.get(Approval, approval_id)

        other = Session(bind=db_session.get_bind())
        theirs = other.get(Approval, approval_id)
        theirs.comments = "Checked against the Q4 budget"
        other.commit()
        other.close()

        mine.status = ApprovalStatus.APPROVED
        with pytest.raises(StaleDataError):
            db_session.commit()
        db_session.rollback()

    def test_lost_race_is_conflict(self, client, org, auth, db_session, submitted_trip, monkeypatch, recording_sender):
        l1 = submitted_trip["approvals"][0]
        self._edit_between_load_and_commit(monkeypatch, db_session, l1["id"])

        response = _approve(client, auth, l1)
        assert response.status_code == 409
        assert response.json()["success"] is False
        assert response.json()["code"] == "CONFLICT"

        monkeypatch.undo()
        trip = _trip(client, auth, org, submitted_trip["id"])
        assert trip["status"] == "SUBMITTED"
        assert trip["approvals"][0]["status"] == "PENDING"
        assert trip["approvals"][0]["comments"] == "Checked against the Q4 budget"

    def test_rolled_back_transition_sends_nothing(
        self, client, auth, db_session, submitted_trip, monkeypatch, recording_sender
    ):
        l1 = submitted_trip["approvals"][0]
        self._edit_between_load_and_commit(monkeypatch, db_session, l1["id"])

        assert _approve(client, auth, l1).status_code == 409
        assert recording_sender.sent == []

        monkeypatch.undo()
        assert _approve(client, auth, l1).status_code == 200
        titles = [title for _, title in recording_sender.sent]
        assert titles == ["TravelRequest approved at L1_SUPERVISOR", "Approval required"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
