import inspect
import pytest


SCAN = {
    "sender_domain": "bank.com",
    "reply_to_domain": "evil.com",
    "link_domains": ["bit.ly"],
    "risk_score": 45,
    "risk_level": "MEDIUM",
    "flags": [
        {"description": "Reply-To domain differs from sender domain",
         "evidence": "sender=bank.com replyTo=evil.com", "points": 25},
        {"description": "Link uses a URL shortener", "evidence": "bit.ly", "points": 20},
    ],
}


def test_root_and_health(client):
    assert "is running" in client.get("/").json()["message"]
    assert client.get("/health").json()["status"] == "healthy"


class TestScanStore:
    def test_save_scan(self, client):
        response = client.post("/scan", json=SCAN)

        assert response.status_code == 201
        assert response.json()["message"] == "Scan saved successfully"
        scan_id = response.json()["id"]

        stored = client.get(f"/scans/{scan_id}").json()
        assert stored["sender_domain"] == "bank.com"
        assert stored["link_domains"] == ["bit.ly"]
        assert stored["flags"][1]["points"] == 20

    def test_zero_score_without_reply_to(self, client):
        payload = {"sender_domain": "bank.com", "risk_score": 0, "risk_level": "LOW"}
        response = client.post("/scan", json=payload)

        assert response.status_code == 201
        stored = client.get(f"/scans/{response.json()['id']}").json()
        assert stored["reply_to_domain"] is None
        assert stored["flags"] == []

    @pytest.mark.parametrize("field", ["body", "subject", "recipient"])
    def test_content_fields_are_rejected(self, client, field):
        response = client.post("/scan", json={**SCAN, field: "Dear customer, verify your account"})

        assert response.status_code == 400
        assert response.json() == {"error": "Privacy violation: content not allowed"}
        assert client.get("/scans").json() == []

    @pytest.mark.parametrize("missing", ["sender_domain", "risk_score", "risk_level"])
    def test_missing_required_fields(self, client, missing):
        payload = {k: v for k, v in SCAN.items() if k != missing}
        response = client.post("/scan", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_invalid_level(self, client):
        response = client.post("/scan", json={**SCAN, "risk_level": "SEVERE"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid scan record"}

    def test_list_filter_and_statistics(self, client):
        client.post("/scan", json=SCAN)
        client.post("/scan", json={**SCAN, "risk_score": 75, "risk_level": "HIGH"})
        client.post("/scan", json={"sender_domain": "shop.com", "risk_score": 0, "risk_level": "LOW"})

        assert len(client.get("/scans").json()) == 3
        high = client.get("/scans", params={"risk_level": "high"}).json()
        assert [s["risk_score"] for s in high] == [75]

        stats = client.get("/statistics").json()
        assert stats["total_scans"] == 3
        assert (stats["high"], stats["medium"], stats["low"]) == (1, 1, 1)
        assert stats["avg_risk_score"] == 40.0
        assert len(stats["recent_scans"]) == 3

    def test_unknown_scan(self, client):
        assert client.get("/scans/999").status_code == 404


class TestAnalysis:
    def test_analyze_camel_case_metadata(self, client):
        response = client.post("/analyze", json={
            "senderDomain": "paypal.com",
            "links": ["http://paypal-login-verify.fake.com/x"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["senderDomain"] == "paypal.com"
        assert data["replyToDomain"] == "N/A"
        assert data["riskScore"] == 35
        assert data["riskLevel"] == "MEDIUM"
        assert [f["points"] for f in data["flags"]] == [10, 15, 10]
        assert client.get("/scans").json() == []

    def test_analyze_snake_case_and_persist(self, client):
        response = client.post("/analyze", params={"persist": "true"}, json={
            "sender_domain": "bank.com",
            "reply_to_domain": "evil.com",
        })

        assert response.json()["riskScore"] == 25
        scans = client.get("/scans").json()
        assert len(scans) == 1
        assert scans[0]["reply_to_domain"] == "evil.com"

    def test_analyze_runs_in_the_threadpool(self):
        from mailscan.api import routes

        # Persisting blocks on the database and the sink
        assert not inspect.iscoroutinefunction(routes.analyze_metadata)

    def test_view_then_message(self, client, open_email_html, inbox_html):
        response = client.post("/message", json={"type": "ANALYZE_CURRENT_EMAIL"})
        assert response.status_code == 409
        assert response.json()["error"] == "no email currently open"

        opened = client.post("/view", json={"document": open_email_html}).json()
        assert opened["state"] == "OPEN"
        assert opened["result"]["riskLevel"] == "HIGH"

        again = client.post("/view", json={"document": open_email_html}).json()
        assert again == {"state": "OPEN", "result": None}

        response = client.post("/message", json={"type": "ANALYZE_CURRENT_EMAIL"})
        assert response.status_code == 200
        assert response.json()["result"] == opened["result"]

        closed = client.post("/view", json={"document": inbox_html}).json()
        assert closed["state"] == "CLOSED"
        assert len(client.get("/scans").json()) == 2

    def test_unknown_message(self, client):
        response = client.post("/message", json={"type": "PING"})
        assert response.status_code == 400
