from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient

from pipeline_board.dependencies import get_board_service
from pipeline_board.domain.opportunity import Opportunity
from pipeline_board.errors import StoreUnavailable
from pipeline_board.main import create_app
from pipeline_board.modules.board.board_service import BoardService
from pipeline_board.repositories.opportunities_repo import InMemoryOpportunityStore
from pipeline_board.repositories.preferences_repo import InMemoryPreferenceStore
from pipeline_board.repositories.views_repo import InMemoryViewStore
from pipeline_board.settings import Settings


class _FailingOpportunityStore(InMemoryOpportunityStore):
    def update(self, id, fields):
        raise StoreUnavailable(message="write down", operation="update", store="opportunities", key=id)


def _client(store_cls=InMemoryOpportunityStore, settings=None):
    service = BoardService(
        opportunities=store_cls(
            [
                Opportunity(id="A", name="Acme"),
                Opportunity(id="B", name="Beta", closeDate=date(2025, 2, 10)),
            ]
        ),
        views=InMemoryViewStore(),
        preferences=InMemoryPreferenceStore(),
        settings=settings or Settings(),
        today=lambda: date(2025, 2, 10),
    )
    app = create_app()
    app.dependency_overrides[get_board_service] = lambda: service
    return TestClient(app), service


def _column(board, column_id):
    return [c for c in board["columns"] if c["id"] == column_id][0]


def test_get_board_resolves_default_quarterly_view():
    client, _ = _client()
    r = client.get("/api/board")
    assert r.status_code == 200
    board = r.json()
    assert board["view"]["id"] == "built-in-quarterly"
    assert [o["id"] for o in _column(board, "virtual-Q1-2025")["opportunities"]] == ["B"]
    assert all("A" not in [o["id"] for o in c["opportunities"]] for c in board["columns"])
    assert board["hiddenCount"] == 0


def test_reassign_returns_mutation_and_updated_board():
    client, service = _client()
    r = client.post(
        "/api/board/reassign",
        json={"opportunityId": "B", "sourceColumnId": "virtual-Q1-2025", "targetColumnId": "virtual-Q2-2025"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "applied"
    assert body["mutation"] == {"type": "SetCloseDate", "fields": {"closeDate": "2025-04-01", "quarter": "Q2 2025"}}
    assert [o["id"] for o in _column(body["board"], "virtual-Q2-2025")["opportunities"]] == ["B"]
    assert service.coordinator.find("B").closeDate == date(2025, 4, 1)


def test_reassign_to_unknown_column_is_silent_noop():
    client, _ = _client()
    r = client.post("/api/board/reassign", json={"opportunityId": "B", "targetColumnId": "virtual-Q1-2031"})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "noop"
    assert body["noopReason"] == "invalid_drop_target"
    assert body["mutation"] is None


def test_write_failure_is_retryable_problem_and_board_is_rolled_back():
    client, _ = _client(store_cls=_FailingOpportunityStore)
    r = client.post(
        "/api/board/reassign",
        json={"opportunityId": "B", "sourceColumnId": "virtual-Q1-2025", "targetColumnId": "virtual-Q2-2025"},
    )
    assert r.status_code == 502
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["extensions"]["retryable"] is True
    assert body["extensions"]["opportunityId"] == "B"
    assert body.get("requestId")

    board = client.get("/api/board").json()
    assert [o["id"] for o in _column(board, "virtual-Q1-2025")["opportunities"]] == ["B"]


def test_preferences_toggle_show_all_quarters():
    client, _ = _client()
    r = client.put("/api/board/preferences", json={"showAllQuarters": True})
    assert r.status_code == 200
    assert r.json()["showAllQuarters"] is True


def test_views_lifecycle():
    client, _ = _client()

    r = client.post("/api/views", json={"name": "Mine", "columnTitles": ["Hot", "Cold"]})
    assert r.status_code == 201
    view = r.json()["view"]
    assert view["isActive"] is True
    assert [c["title"] for c in view["columns"]] == ["Hot", "Cold"]

    listed = client.get("/api/views").json()
    assert listed["activeCustomViewId"] == view["id"]
    assert listed["activeViewId"] == view["id"]
    assert len(listed["views"]) == 6

    r = client.post("/api/views/built-in/stage/select")
    assert r.status_code == 200
    assert r.json()["board"]["view"]["id"] == "built-in-stage"
    assert client.get("/api/views").json()["activeCustomViewId"] is None

    r = client.post(f"/api/views/{view['id']}/activate")
    assert r.status_code == 200
    assert r.json()["board"]["view"]["id"] == view["id"]

    r = client.post("/api/views/duplicate", json={"name": "Mine copy"})
    assert r.status_code == 201
    assert [c["title"] for c in r.json()["view"]["columns"]] == ["Hot", "Cold"]


def test_unknown_views_are_404_problems():
    client, _ = _client()
    r = client.post("/api/views/view_missing/activate")
    assert r.status_code == 404
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    assert r.json()["extensions"]["viewId"] == "view_missing"

    r = client.post("/api/views/built-in/kanban/select")
    assert r.status_code == 404


def test_view_limit_and_name_conflicts_are_409(monkeypatch):
    monkeypatch.setenv("MAX_CUSTOM_VIEWS", "1")
    client, _ = _client(settings=Settings())

    assert client.post("/api/views", json={"name": "One"}).status_code == 201
    r = client.post("/api/views", json={"name": "Two"})
    assert r.status_code == 409
    assert r.json()["extensions"]["limit"] == 1

    monkeypatch.setenv("MAX_CUSTOM_VIEWS", "5")
    client, _ = _client(settings=Settings())
    assert client.post("/api/views", json={"name": "Same"}).status_code == 201
    r = client.post("/api/views", json={"name": "Same"})
    assert r.status_code == 409
    assert r.json()["title"] == "Conflict"


def test_get_board_accepts_quarter_and_search_filters():
    client, _ = _client()
    client.post(
        "/api/board/reassign",
        json={"opportunityId": "B", "sourceColumnId": "virtual-Q1-2025", "targetColumnId": "virtual-Q2-2025"},
    )

    body = client.get("/api/board", params={"quarter": "Q2 2025"}).json()
    assert body["filter"] == {"quarter": "Q2 2025", "search": None}
    assert body["quarters"] == ["Q2 2025"]
    assert [o["id"] for o in _column(body, "virtual-Q2-2025")["opportunities"]] == ["B"]

    body = client.get("/api/board", params={"search": "ACME"}).json()
    assert all(c["opportunities"] == [] for c in body["columns"])

    body = client.get("/api/board", params={"quarter": "unassigned"}).json()
    assert all(c["opportunities"] == [] for c in body["columns"])
    assert client.get("/api/board").json()["filter"] == {"quarter": "all", "search": None}


def test_duplicate_view_by_id():
    client, _ = _client()
    r = client.post("/api/views/built-in-stage/duplicate", json={"name": "Stages"})
    assert r.status_code == 201
    assert len(r.json()["view"]["columns"]) == 7

    r = client.post("/api/views/duplicate", json={"name": "Stages again", "sourceViewId": "built-in-stage"})
    assert r.status_code == 201

    r = client.post("/api/views/view_missing/duplicate", json={"name": "Nope"})
    assert r.status_code == 404
