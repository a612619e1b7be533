import pytest
from fastapi.testclient import TestClient
from skatebounty.main import app

client = TestClient(app)

def test_health_ok():
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "request_id" in data

def test_version_ok():
    r = client.get("/version")
    assert r.status_code == 200
    data = r.json()
    assert "version" in data and "git_sha" in data
    assert data["name"] == "skatebounty-api"

def test_policy_reports_current_settings(policy):
    r = client.get("/policy")
    assert r.status_code == 200
    data = r.json()
    assert data["require_acceptance_before_submission"] is True
    assert data["submission_timestamp_mode"] == "best_effort"
    assert data["verified_vote_threshold"] == 3

def test_request_id_echoed():
    r = client.get("/health", headers={"x-request-id": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert r.json()["request_id"] == "abc-123"
