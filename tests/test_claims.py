"""
Claim Tests
Claims against approved trips, attachments, approval and payment
"""

import pytest

RECEIPT = {"original_name": "receipt.pdf", "mime_type": "application/pdf", "file_size": 20480}


@pytest.fixture
def claim_payload(approved_trip):
    return {
        "travel_request_id": approved_trip,
        "amount": 250000,
        "description": "Taxi from the airport to the hotel",
        "expense_category": "TRANSPORT",
        "expense_date": "2026-11-02T10:00:00"
    }


@pytest.fixture
def draft_claim(client, org, auth, claim_payload):
    response = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee))
    assert response.status_code == 201
    return response.json()


def _attach(client, auth, user_id, claim_id, **overrides):
    body = dict(RECEIPT, claim_id=claim_id, **overrides)
    return client.post("/api/attachments", json=body, headers=auth(user_id))


class TestClaimCreation:

    def test_create_non_entertainment(self, draft_claim, org):
        assert draft_claim["status"] == "DRAFT"
        assert draft_claim["claim_type"] == "NON_ENTERTAINMENT"
        assert draft_claim["claim_number"].startswith("CLM-")
        assert draft_claim["submitter_id"] == org.employee
        assert draft_claim["is_paid"] is False

    def test_create_entertainment(self, client, org, auth, approved_trip):
        response = client.post(
            "/api/claims/entertainment",
            json={
                "travel_request_id": approved_trip,
                "amount": 750000,
                "description": "Dinner with the client's procurement team",
                "entertainment_type": "MEAL",
                "entertainment_date": "2026-11-03T19:00:00",
                "guest_name": "Budi Santoso",
                "guest_company": "ACME"
            },
            headers=auth(org.employee)
        )
        assert response.status_code == 201
        assert response.json()["claim_type"] == "ENTERTAINMENT"
        assert response.json()["guest_name"] == "Budi Santoso"

    def test_trip_must_be_approved(self, client, org, auth, submitted_trip):
        response = client.post(
            "/api/claims/non-entertainment",
            json={
                "travel_request_id": submitted_trip["id"],
                "amount": 100000,
                "description": "Taxi from the airport",
                "expense_category": "TRANSPORT",
                "expense_date": "2026-11-02T10:00:00"
            },
            headers=auth(org.employee)
        )
        assert response.status_code == 400

    def test_only_requester_or_participant(self, client, org, auth, claim_payload):
        response = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.sales))
        assert response.status_code == 403

    @pytest.mark.parametrize("field,value", [("amount", 0), ("amount", -10), ("description", "Taxi")])
    def test_invalid_fields(self, client, org, auth, claim_payload, field, value):
        claim_payload[field] = value
        response = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee))
        assert response.status_code == 400

    def test_inactive_account_rejected(self, client, org, auth, claim_payload):
        claim_payload["coa_id"] = 999
        response = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee))
        assert response.status_code == 404

    def test_update_rejects_foreign_fields(self, client, org, auth, draft_claim):
        response = client.put(
            f"/api/claims/{draft_claim['id']}",
            json={"guest_name": "Someone"},
            headers=auth(org.employee)
        )
        assert response.status_code == 400

        response = client.put(
            f"/api/claims/{draft_claim['id']}",
            json={"amount": 300000},
            headers=auth(org.employee)
        )
        assert response.status_code == 200
        assert response.json()["amount"] == 300000

    def test_visibility(self, client, org, auth, draft_claim):
        assert client.get(f"/api/claims/{draft_claim['id']}", headers=auth(org.sales)).status_code == 403
        assert client.get(f"/api/claims/{draft_claim['id']}", headers=auth(org.finance)).status_code == 200
        assert client.get("/api/claims", headers=auth(org.sales)).json()["items"] == []


class TestAttachments:

    def test_add_and_list(self, client, org, auth, draft_claim):
        response = _attach(client, auth, org.employee, draft_claim["id"])
        assert response.status_code == 201
        data = response.json()
        assert data["filename"].startswith(f"claim{draft_claim['id']}_")
        assert data["filename"].endswith(".pdf")
        assert data["storage_url"].endswith(data["filename"])

        listed = client.get(f"/api/attachments/claim/{draft_claim['id']}", headers=auth(org.employee)).json()
        assert [a["id"] for a in listed] == [data["id"]]

        url = client.get(f"/api/attachments/{data['id']}/download-url", headers=auth(org.employee)).json()
        assert url["filename"] == "receipt.pdf"

    def test_disallowed_type(self, client, org, auth, draft_claim):
        response = _attach(client, auth, org.employee, draft_claim["id"], mime_type="application/x-msdownload")
        assert response.status_code == 400

    def test_too_large(self, client, org, auth, draft_claim):
        response = _attach(client, auth, org.employee, draft_claim["id"], file_size=20 * 1024 * 1024)
        assert response.status_code == 400

    def test_stranger_cannot_attach(self, client, org, auth, draft_claim):
        response = _attach(client, auth, org.sales, draft_claim["id"])
        assert response.status_code == 403

    def test_ocr_update(self, client, org, auth, draft_claim):
        attachment = _attach(client, auth, org.employee, draft_claim["id"]).json()
        response = client.put(
            f"/api/attachments/{attachment['id']}",
            json={"ocr_extracted_data": {"total": 250000}, "ocr_confidence": 0.93},
            headers=auth(org.employee)
        )
        assert response.status_code == 200
        assert response.json()["ocr_extracted_data"] == {"total": 250000}

    def test_soft_delete(self, client, org, auth, draft_claim):
        attachment = _attach(client, auth, org.employee, draft_claim["id"]).json()
        assert client.delete(f"/api/attachments/{attachment['id']}", headers=auth(org.employee)).status_code == 200
        assert client.get(f"/api/attachments/claim/{draft_claim['id']}", headers=auth(org.employee)).json() == []
        # A deleted receipt no longer counts towards submission
        response = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee))
        assert response.status_code == 400


class TestClaimApproval:

    def test_submit_requires_attachment(self, client, org, auth, draft_claim):
        response = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee))
        assert response.status_code == 400
        assert "attachment" in response.json()["message"]

    def test_small_claim_single_level(self, client, org, auth, draft_claim):
        _attach(client, auth, org.employee, draft_claim["id"])
        response = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "SUBMITTED"
        assert [(a["level"], a["approver_id"]) for a in data["approvals"]] == [("L1_SUPERVISOR", org.supervisor)]

        # Attachments are frozen once submitted
        assert _attach(client, auth, org.employee, draft_claim["id"]).status_code == 400

    def test_large_claim_needs_finance(self, client, org, auth, claim_payload):
        claim_payload["amount"] = 6000000
        claim = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee)).json()
        _attach(client, auth, org.employee, claim["id"])

        submitted = client.post(f"/api/claims/{claim['id']}/submit", headers=auth(org.employee)).json()
        chain = [(a["level"], a["approver_id"]) for a in submitted["approvals"]]
        assert chain == [("L1_SUPERVISOR", org.supervisor), ("L2_MANAGER", org.finance)]

        l1, l2 = submitted["approvals"]
        assert client.post(f"/api/approvals/{l2['id']}/approve", json={}, headers=auth(org.finance)).status_code == 400
        assert client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.supervisor)).status_code == 200
        # Claims stay SUBMITTED until the last level
        assert client.get(f"/api/claims/{claim['id']}", headers=auth(org.employee)).json()["status"] == "SUBMITTED"
        assert client.post(f"/api/approvals/{l2['id']}/approve", json={}, headers=auth(org.finance)).status_code == 200
        assert client.get(f"/api/claims/{claim['id']}", headers=auth(org.employee)).json()["status"] == "APPROVED"

    def test_threshold_is_exclusive(self, client, org, auth, claim_payload):
        claim_payload["amount"] = 5000000
        claim = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee)).json()
        _attach(client, auth, org.employee, claim["id"])
        submitted = client.post(f"/api/claims/{claim['id']}/submit", headers=auth(org.employee)).json()
        assert len(submitted["approvals"]) == 1

    def test_revision_reopens_claim(self, client, org, auth, draft_claim):
        _attach(client, auth, org.employee, draft_claim["id"])
        submitted = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee)).json()
        l1 = submitted["approvals"][0]

        response = client.post(
            f"/api/approvals/{l1['id']}/revision",
            json={"comments": "Receipt is not readable"},
            headers=auth(org.supervisor)
        )
        assert response.status_code == 200
        claim = client.get(f"/api/claims/{draft_claim['id']}", headers=auth(org.employee)).json()
        assert claim["status"] == "REVISION"
        assert _attach(client, auth, org.employee, draft_claim["id"]).status_code == 201

    def _revise(self, client, org, auth, claim_id, amount):
        submitted = client.post(f"/api/claims/{claim_id}/submit", headers=auth(org.employee)).json()
        l1 = submitted["approvals"][0]
        client.post(
            f"/api/approvals/{l1['id']}/revision",
            json={"comments": "Amount does not match the receipt"},
            headers=auth(org.supervisor)
        )
        response = client.put(f"/api/claims/{claim_id}", json={"amount": amount}, headers=auth(org.employee))
        assert response.status_code == 200
        return submitted

    def test_resubmit_above_threshold_adds_finance(self, client, org, auth, draft_claim):
        _attach(client, auth, org.employee, draft_claim["id"])
        first = self._revise(client, org, auth, draft_claim["id"], 9000000)

        resubmitted = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee)).json()
        chain = [(a["level"], a["approver_id"]) for a in resubmitted["approvals"]]
        assert chain == [("L1_SUPERVISOR", org.supervisor), ("L2_MANAGER", org.finance)]
        # The unchanged L1 row is kept
        assert resubmitted["approvals"][0]["id"] == first["approvals"][0]["id"]

        l1, l2 = resubmitted["approvals"]
        assert client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.supervisor)).status_code == 200
        assert client.get(f"/api/claims/{draft_claim['id']}", headers=auth(org.employee)).json()["status"] == "SUBMITTED"
        assert client.post(f"/api/approvals/{l2['id']}/approve", json={}, headers=auth(org.finance)).status_code == 200
        assert client.get(f"/api/claims/{draft_claim['id']}", headers=auth(org.employee)).json()["status"] == "APPROVED"

    def test_resubmit_below_threshold_drops_finance(self, client, org, auth, claim_payload):
        claim_payload["amount"] = 6000000
        claim = client.post("/api/claims/non-entertainment", json=claim_payload, headers=auth(org.employee)).json()
        _attach(client, auth, org.employee, claim["id"])
        first = self._revise(client, org, auth, claim["id"], 400000)
        assert len(first["approvals"]) == 2

        resubmitted = client.post(f"/api/claims/{claim['id']}/submit", headers=auth(org.employee)).json()
        assert [(a["level"], a["approver_id"]) for a in resubmitted["approvals"]] == [
            ("L1_SUPERVISOR", org.supervisor)
        ]

        l1 = resubmitted["approvals"][0]
        assert client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.supervisor)).status_code == 200
        assert client.get(f"/api/claims/{claim['id']}", headers=auth(org.employee)).json()["status"] == "APPROVED"


class TestPayment:

    @pytest.fixture
    def approved_claim(self, client, org, auth, draft_claim):
        _attach(client, auth, org.employee, draft_claim["id"])
        submitted = client.post(f"/api/claims/{draft_claim['id']}/submit", headers=auth(org.employee)).json()
        l1 = submitted["approvals"][0]
        client.post(f"/api/approvals/{l1['id']}/approve", json={}, headers=auth(org.supervisor))
        return draft_claim

    def test_mark_paid(self, client, org, auth, approved_claim):
        response = client.post(
            f"/api/claims/{approved_claim['id']}/mark-paid",
            json={"payment_reference": "TRX-001"},
            headers=auth(org.finance)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "PAID"
        assert data["is_paid"] is True
        assert data["paid_by_id"] == org.finance
        assert data["payment_reference"] == "TRX-001"

        trip = client.get(
            f"/api/travel-requests/{approved_claim['travel_request_id']}", headers=auth(org.employee)
        ).json()
        assert trip["total_reimbursed"] == approved_claim["amount"]

    def test_mark_paid_requires_finance(self, client, org, auth, approved_claim):
        response = client.post(f"/api/claims/{approved_claim['id']}/mark-paid", json={}, headers=auth(org.manager))
        assert response.status_code == 403

    def test_cannot_pay_unapproved(self, client, org, auth, draft_claim):
        response = client.post(f"/api/claims/{draft_claim['id']}/mark-paid", json={}, headers=auth(org.finance))
        assert response.status_code == 400

    def test_close_waits_for_open_claims(self, client, org, auth, approved_claim):
        trip_id = approved_claim["travel_request_id"]
        assert client.post(f"/api/travel-requests/{trip_id}/lock", headers=auth(org.finance)).status_code == 200
        assert client.post(f"/api/travel-requests/{trip_id}/close", headers=auth(org.finance)).status_code == 400

        client.post(f"/api/claims/{approved_claim['id']}/mark-paid", json={}, headers=auth(org.finance))
        assert client.post(f"/api/travel-requests/{trip_id}/close", headers=auth(org.finance)).status_code == 200

    def test_statistics(self, client, org, auth, approved_claim):
        client.post(f"/api/claims/{approved_claim['id']}/mark-paid", json={}, headers=auth(org.finance))
        stats = client.get("/api/claims/statistics", headers=auth(org.employee)).json()
        assert stats["total"] == 1
        assert stats["by_status"]["PAID"]["count"] == 1
        assert stats["paid_amount"] == approved_claim["amount"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
