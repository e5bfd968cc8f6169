from __future__ import annotations

import json

from app.config import settings

ANALYSE_PAYLOAD = {
    "websiteUrl": "acme.com",
    "customers": [{"name": "Acme", "domain": "acme.com"}],
    "batchSize": 3,
}

TABLE = """| Name | Domain | Based on | Confidence | ICP Fit |
|---|---|---|---|---|
| Globex | globex.io | acme.com | 80 | 75 |
| Initech | https://www.initech.com | acme.com | 60 | 65 |
"""


def _frames(body: str) -> list[dict]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


def test_analyse_streams_progress_then_result(client, repository):
    response = client.post("/api/analyse", json=ANALYSE_PAYLOAD, headers={"X-Owner-Id": "owner-9"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = _frames(response.text)
    assert all("message" in frame for frame in frames[:-1])
    result = frames[-1]["result"]
    assert result["mockData"] is True
    assert len(result["prospects"]) == 3
    assert result["summary"]["produced"] == 3
    assert result["prospects"][0]["icpScore"] >= 50


def test_invalid_stream_request_answers_with_error_frame(client, repository):
    response = client.post("/api/analyse", json={"websiteUrl": "acme.com", "customers": []})

    assert response.status_code == 200
    frames = _frames(response.text)
    assert len(frames) == 1
    assert "customers" in frames[0]["error"]


def test_misconfigured_mode_answers_with_error_frame(client, repository, monkeypatch):
    monkeypatch.setattr(settings, "discovery_mode", "turbo")

    response = client.post("/api/analyse", json=ANALYSE_PAYLOAD)

    assert response.status_code == 200
    frames = _frames(response.text)
    assert len(frames) == 1
    assert "Unsupported discovery mode" in frames[0]["error"]


def test_generate_more_reports_limit(client, repository):
    existing = [{"id": i, "domain": f"e{i}.com", "name": f"E{i}"} for i in range(10)]
    payload = {
        "batchSize": 5,
        "maxTotalProspects": 10,
        "icp": {"industries": ["SaaS"], "workflows": ["Billing"], "buyerRoles": ["CFO"]},
        "existingProspects": existing,
    }

    frames = _frames(client.post("/api/generate-more", json=payload).text)

    assert frames[-1]["result"]["reachedLimit"] is True


def test_company_competitors_streams_result(client, repository):
    payload = {
        "companyName": "Acme",
        "companyDomain": "acme.com",
        "icp": {"industries": ["SaaS"], "workflows": ["Billing"], "buyerRoles": ["CFO"]},
        "batchSize": 2,
    }

    frames = _frames(client.post("/api/company/competitors", json=payload).text)

    result = frames[-1]["result"]
    assert len(result["prospects"]) == 2
    assert all(p["sourceCustomerDomain"] == "acme.com" for p in result["prospects"])


def test_bulk_import_then_export(client, repository):
    response = client.post("/api/prospects/bulk-import", json={"text": TABLE}, headers={"X-Owner-Id": "team-1"})

    assert response.status_code == 200
    report = response.json()
    assert report["imported"] == 2
    assert report["skipped"] == 0

    again = client.post(
        "/api/prospects/bulk-import",
        json={"prospects": [{"name": "Globex", "domain": "globex.io"}]},
        headers={"X-Owner-Id": "team-1"},
    ).json()
    assert again["imported"] == 0
    assert again["skippedDomains"] == ["globex.io"]

    export = client.get("/api/prospects/export.csv", headers={"X-Owner-Id": "team-1"})
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.strip().splitlines()
    assert len(lines) == 3
    assert lines[1].startswith('"Globex","globex.io","imported","acme.com","75","80","New"')


def test_owner_defaults_when_header_missing(client, repository):
    client.post("/api/prospects/bulk-import", json={"prospects": [{"name": "Hooli", "domain": "hooli.xyz"}]})

    listed = client.get("/api/prospects").json()["prospects"]
    other = client.get("/api/prospects", headers={"X-Owner-Id": "someone-else"}).json()["prospects"]

    assert [p["domain"] for p in listed] == ["hooli.xyz"]
    assert other == []


def test_bulk_import_rejects_unreadable_tables(client, repository):
    response = client.post("/api/prospects/bulk-import", json={"text": "| Company | Site |\n|---|---|\n| A | a.com |"})

    assert response.status_code == 422


def test_bulk_import_requires_rows(client, repository):
    assert client.post("/api/prospects/bulk-import", json={}).status_code == 422


def test_health_endpoints(client):
    health = client.get("/health")
    ready = client.get("/health/ready")

    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert ready.status_code == 200
    assert ready.json()["database"] in {"connected", "not configured"}
