from __future__ import annotations

from fastapi.testclient import TestClient

from pipeline_board.main import create_app


def test_request_id_is_generated_and_returned():
    client = TestClient(create_app())

    r = client.get("/")
    assert r.status_code == 200
    assert r.headers.get("X-Request-Id")
    assert r.json()["fiscalYearStart"] == "January"


def test_request_id_is_propagated_from_client():
    client = TestClient(create_app())

    r = client.get("/api/board", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.headers.get("X-Request-Id") == "abc-123"


def test_validation_errors_are_problem_json():
    client = TestClient(create_app())

    # Missing required body fields => pydantic validation error
    r = client.post("/api/board/reassign", json={}, headers={"X-Request-Id": "req-422"})
    assert r.status_code == 422
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["title"] == "Validation Failed"
    assert body["status"] == 422
    assert body["requestId"] == "req-422"
    paths = {e["path"] for e in body["errors"]}
    assert {"opportunityId", "targetColumnId"} <= paths


def test_404_is_problem_json():
    client = TestClient(create_app())

    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["status"] == 404
    assert body["instance"] == "/this-route-does-not-exist"
    assert body.get("requestId")
