import logging
from dataclasses import replace
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from taskdone.main import create_app
from taskdone.repositories import InMemoryRepository


def create_category(client, name="Work", color="#FF0000", tasks=None):
    payload = {"name": name, "color": color}
    if tasks is not None:
        payload["tasks"] = tasks
    res = client.post("/api/v1/categories/", json=payload)
    assert res.status_code == 201
    return res.json()


def add_task(client, category_id, title):
    res = client.post(f"/api/v1/categories/{category_id}/tasks", json={"title": title})
    assert res.status_code == 201
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "title", "is_completed", "creation_date", "category_id"]:
        assert key in task
    assert isinstance(task["id"], str)
    assert isinstance(task["is_completed"], bool)
    datetime.fromisoformat(task["creation_date"])


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] == "memory"


class TestCategoriesAPI:
    def test_create_and_list(self, client):
        cat = create_category(client, tasks=["Write spec", " ", "Review PR"])
        assert cat["color"] == "#FF0000"
        assert cat["task_count"] == 2
        assert cat["completed_count"] == 0
        for t in cat["tasks"]:
            assert_task_shape(t)

        res = client.get("/api/v1/categories/")
        assert res.status_code == 200
        listed = res.json()
        assert [c["id"] for c in listed] == [cat["id"]]

    def test_create_blank_name_is_422(self, client):
        res = client.post("/api/v1/categories/", json={"name": "   ", "color": "#FF0000"})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)
        assert client.get("/api/v1/categories/").json() == []

    def test_create_bad_color_is_422(self, client):
        res = client.post("/api/v1/categories/", json={"name": "Work", "color": "blue"})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_get_category_not_found(self, client):
        res = client.get("/api/v1/categories/nope")
        assert res.status_code == 404
        assert res.json()["detail"] == "Category not found"

    def test_hide_and_show(self, client):
        cat = create_category(client)
        res = client.put(f"/api/v1/categories/{cat['id']}/hidden", json={"hidden": True})
        assert res.status_code == 204
        assert res.text == ""
        assert client.get("/api/v1/categories/").json() == []
        # Still reachable directly
        assert client.get(f"/api/v1/categories/{cat['id']}").json()["is_hidden"] is True

        res = client.put(f"/api/v1/categories/{cat['id']}/hidden", json={"hidden": False})
        assert res.status_code == 204
        assert len(client.get("/api/v1/categories/").json()) == 1

        res_nf = client.put("/api/v1/categories/nope/hidden", json={"hidden": True})
        assert res_nf.status_code == 404

    def test_duplicate(self, client):
        cat = create_category(client, tasks=["Write spec", "Review PR"])
        res = client.post(f"/api/v1/categories/{cat['id']}/duplicate")
        assert res.status_code == 201
        copy = res.json()
        assert copy["id"] != cat["id"]
        assert copy["name"] == "Work (copy)"
        assert [t["title"] for t in copy["tasks"]] == ["Write spec", "Review PR"]
        assert {t["id"] for t in copy["tasks"]}.isdisjoint({t["id"] for t in cat["tasks"]})

        assert client.post("/api/v1/categories/nope/duplicate").status_code == 404

    def test_save_edits(self, client):
        cat = create_category(client, tasks=["keep", "drop"])
        keep = cat["tasks"][0]
        payload = {
            "name": "Job",
            "color": "#00aaff",
            "tasks": [
                {"id": keep["id"], "title": "kept", "is_completed": True},
                {"title": "new"},
                {"title": ""},
            ],
        }
        res = client.put(f"/api/v1/categories/{cat['id']}", json=payload)
        assert res.status_code == 200
        saved = res.json()
        assert saved["name"] == "Job"
        assert saved["color"] == "#00AAFF"
        assert [t["title"] for t in saved["tasks"]] == ["kept", "new"]
        assert saved["tasks"][0]["id"] == keep["id"]
        assert saved["completed_count"] == 1

        res_nf = client.put("/api/v1/categories/nope", json=payload)
        assert res_nf.status_code == 404


class TestTasksAPI:
    def test_add_task_validation_and_not_found(self, client):
        cat = create_category(client)
        res = client.post(f"/api/v1/categories/{cat['id']}/tasks", json={"title": "  "})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

        res_nf = client.post("/api/v1/categories/nope/tasks", json={"title": "x"})
        assert res_nf.status_code == 404
        assert res_nf.json()["detail"] == "Category not found"

    def test_toggle_twice(self, client):
        cat = create_category(client)
        task = add_task(client, cat["id"], "Write spec")
        assert task["is_completed"] is False
        first = client.post(f"/api/v1/tasks/{task['id']}/toggle").json()
        second = client.post(f"/api/v1/tasks/{task['id']}/toggle").json()
        assert first["is_completed"] is True
        assert second["is_completed"] is False

        res_nf = client.post("/api/v1/tasks/nope/toggle")
        assert res_nf.status_code == 404
        assert res_nf.json()["detail"] == "Task not found"

    def test_rename(self, client):
        cat = create_category(client)
        task = add_task(client, cat["id"], "Write spec")
        res = client.patch(f"/api/v1/tasks/{task['id']}", json={"title": "Write the spec"})
        assert res.status_code == 200
        assert res.json()["title"] == "Write the spec"

        res_blank = client.patch(f"/api/v1/tasks/{task['id']}", json={"title": ""})
        assert res_blank.status_code == 422
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["title"] == "Write the spec"

    def test_remove_task(self, client):
        work = create_category(client, "Work")
        home = create_category(client, "Home", "#00FF00")
        task = add_task(client, work["id"], "Write spec")

        res_wrong = client.delete(f"/api/v1/categories/{home['id']}/tasks/{task['id']}")
        assert res_wrong.status_code == 404
        assert client.get(f"/api/v1/tasks/{task['id']}").status_code == 200

        res = client.delete(f"/api/v1/categories/{work['id']}/tasks/{task['id']}")
        assert res.status_code == 204
        assert client.get(f"/api/v1/tasks/{task['id']}").status_code == 404

    def test_move(self, client):
        work = create_category(client, "Work")
        home = create_category(client, "Home", "#00FF00")
        task = add_task(client, work["id"], "Call plumber")
        res = client.post(f"/api/v1/tasks/{task['id']}/move", json={"category_id": home["id"]})
        assert res.status_code == 200
        assert res.json()["category_id"] == home["id"]
        assert client.get(f"/api/v1/categories/{work['id']}").json()["tasks"] == []

    def test_buckets_scenario(self, client, clock):
        cat = create_category(client)
        write = add_task(client, cat["id"], "Write spec")
        add_task(client, cat["id"], "Review PR")
        client.post(f"/api/v1/tasks/{write['id']}/toggle")

        buckets = client.get("/api/v1/tasks/buckets").json()
        assert [t["title"] for t in buckets["completed"]] == ["Write spec"]
        assert [t["title"] for t in buckets["upcoming"]] == ["Review PR"]
        assert buckets["overdue"] == []

        clock.advance(timedelta(days=2))
        res = client.get("/api/v1/tasks/?bucket=overdue")
        assert res.status_code == 200
        assert [t["title"] for t in res.json()] == ["Review PR"]

    def test_invalid_bucket(self, client):
        res = client.get("/api/v1/tasks/?bucket=someday")
        assert res.status_code == 400
        assert res.json()["detail"] == "bucket must be 'upcoming', 'overdue' or 'completed'"

    def test_cleanup_endpoint(self, client, clock):
        cat = create_category(client, tasks=["done"])
        client.post(f"/api/v1/tasks/{cat['tasks'][0]['id']}/toggle")
        assert client.post("/api/v1/tasks/cleanup").json() == {"removed": 0}
        clock.advance(timedelta(days=31))
        assert client.post("/api/v1/tasks/cleanup").json() == {"removed": 1}
        assert client.post("/api/v1/tasks/cleanup").json() == {"removed": 0}


class TestStartupCleanup:
    def test_sweep_runs_when_app_starts(self, app_settings, clock):
        repo = InMemoryRepository(clock=clock)
        cat = repo.create_category("Work", "#FF0000", ["old", "open"])
        repo.toggle_task_completion(cat["tasks"][0]["id"])
        clock.advance(timedelta(days=31))

        app = create_app(settings=app_settings, repository=repo, clock=clock)
        with TestClient(app) as c:
            tasks = c.get(f"/api/v1/categories/{cat['id']}").json()["tasks"]
        assert [t["title"] for t in tasks] == ["open"]

    def test_huge_retention_does_not_break_startup(self, app_settings, clock):
        settings = replace(app_settings, retention=timedelta(days=1_000_000))
        with TestClient(create_app(settings=settings, clock=clock)) as c:
            assert c.get("/").status_code == 200
            res = c.post("/api/v1/tasks/cleanup")
        assert res.status_code == 200
        assert res.json() == {"removed": 0}


class _ClosingRepository(InMemoryRepository):
    def __init__(self, clock=None):
        super().__init__(clock=clock)
        self.closed = 0

    def close(self):
        self.closed += 1


def _our_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, "_taskdone", False)]


class TestLifespan:
    def test_nothing_is_opened_before_startup(self, app_settings, clock, tmp_path):
        db_path = tmp_path / "nested" / "taskdone.db"
        settings = replace(app_settings, persistence_backend="sqlite", sqlite_db_path=str(db_path))
        handlers_before = _our_handlers()

        app = create_app(settings=settings, clock=clock, configure_logging=True)

        assert not db_path.parent.exists()
        assert _our_handlers() == handlers_before
        assert not hasattr(app.state, "service")

        with TestClient(app) as c:
            assert c.get("/").json()["backend"] == "sqlite"
            assert db_path.exists()
            assert app.state.service is not None
        for h in _our_handlers():
            logging.getLogger().removeHandler(h)
            h.close()

    def test_repository_closed_on_shutdown(self, app_settings, clock):
        repo = _ClosingRepository(clock=clock)
        with TestClient(create_app(settings=app_settings, repository=repo, clock=clock)) as c:
            assert c.get("/").status_code == 200
            assert repo.closed == 0
        assert repo.closed == 1
