"""
HTTP adapter: routes drive the engine and errors come back as structured
{"error", "message", "details"} bodies.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from tests.conftest import TODAY_WEEK

pytestmark = pytest.mark.asyncio


async def _create(client, title, **fields):
    response = await client.post("/tasks/", json={"title": title, "category": "work", **fields})
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def anonymous_client():
    from weekflow.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy"}


async def test_missing_token_is_rejected(anonymous_client):
    response = await anonymous_client.get("/weeks/current")
    assert response.status_code == 401


async def test_create_and_read_task(client):
    task = await _create(client, "Write report")

    assert task["week_number"] == TODAY_WEEK
    assert task["status"] == "todo"
    assert task["sort_order"] == 999

    response = await client.get(f"/tasks/{task['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Write report"


async def test_unknown_task_is_404(client):
    response = await client.get("/tasks/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_dependency_blocks_and_cycle_is_rejected(client):
    a = await _create(client, "A")
    b = await _create(client, "B")

    response = await client.post("/dependencies/", json={"task_id": b["id"], "depends_on_task_id": a["id"]})
    assert response.status_code == 201

    blocked = (await client.get(f"/tasks/{b['id']}")).json()
    assert blocked["status"] == "blocked"
    assert blocked["intended_status"] == "todo"
    assert blocked["is_blocked"] is True

    status = await client.get(f"/tasks/{b['id']}/dependency-status")
    assert status.json()["can_start"] is False

    response = await client.post("/dependencies/", json={"task_id": a["id"], "depends_on_task_id": b["id"]})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "cycle_detected"
    assert body["message"]
    assert body["details"][0]["type"] == "cycle_error"


async def test_unknown_dependency_type(client):
    a = await _create(client, "A")
    b = await _create(client, "B")

    response = await client.post("/dependencies/", json={
        "task_id": b["id"],
        "depends_on_task_id": a["id"],
        "dependency_type": "eventually",
    })

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_dependency_type"


async def test_starting_blocked_task_is_412(client):
    a = await _create(client, "A")
    b = await _create(client, "B")
    await client.post("/dependencies/", json={"task_id": b["id"], "depends_on_task_id": a["id"]})

    response = await client.patch(f"/tasks/{b['id']}", json={"status": "in_progress"})

    assert response.status_code == 412
    assert response.json()["error"] == "precondition_failed"


async def test_null_for_required_field_is_412(client):
    task = await _create(client, "A", description="notes")

    response = await client.patch(f"/tasks/{task['id']}", json={"category": None, "title": None})

    assert response.status_code == 412
    body = response.json()
    assert body["error"] == "precondition_failed"
    assert [d["loc"][-1] for d in body["details"]] == ["category", "title"]
    unchanged = (await client.get(f"/tasks/{task['id']}")).json()
    assert unchanged["category"] == "work"
    assert unchanged["title"] == "A"

    response = await client.patch(f"/tasks/{task['id']}", json={"description": None})
    assert response.status_code == 200
    assert response.json()["description"] is None


async def test_blocked_recurring_task_cannot_start_from_weekly_board(client):
    a = await _create(client, "A")
    routine = await _create(client, "Routine", category="weekly_recurring")
    await client.post("/dependencies/", json={"task_id": routine["id"], "depends_on_task_id": a["id"]})

    assert (await client.get(f"/tasks/{routine['id']}")).json()["status"] == "blocked"

    response = await client.put(f"/tasks/{routine['id']}/weekly-status", json={"status": "in_progress"})

    assert response.status_code == 412
    assert (await client.get(f"/tasks/{routine['id']}")).json()["status"] == "blocked"


async def test_completing_prerequisite_unblocks(client):
    a = await _create(client, "A")
    b = await _create(client, "B")
    await client.post("/dependencies/", json={"task_id": b["id"], "depends_on_task_id": a["id"]})

    await client.patch(f"/tasks/{a['id']}", json={"status": "done"})

    assert (await client.get(f"/tasks/{b['id']}")).json()["status"] == "todo"


async def test_storage_failure_is_502(client, repository):
    task = await _create(client, "A")
    repository.fail_writes = True

    response = await client.patch(f"/tasks/{task['id']}", json={"title": "B"})

    assert response.status_code == 502
    assert response.json()["error"] == "remote_failure"


async def test_weekly_completion_per_week(client):
    task = await _create(client, "Gym", category="weekly_recurring", recurrence_weeks=2)

    response = await client.put(
        f"/tasks/{task['id']}/weeks/{TODAY_WEEK}",
        json={"status": "done", "progress_current": 100},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "done"

    this_week = (await client.get("/weeks/current")).json()
    next_week = (await client.get(f"/weeks/{TODAY_WEEK + 1}")).json()
    assert [t["status"] for t in this_week["tasks"]] == ["done"]
    assert [t["status"] for t in next_week["tasks"]] == ["todo"]


async def test_span_out_of_range_is_412(client):
    response = await client.post("/tasks/", json={
        "title": "Too long", "category": "weekly_recurring", "recurrence_weeks": 16,
    })
    assert response.status_code == 412


async def test_template_materialization(client):
    response = await client.post("/templates/", json={"title": "Plan week", "auto_create_days_before": 1})
    assert response.status_code == 201

    first = await client.post("/weeks/current/recurring")
    second = await client.post("/weeks/current/recurring")

    assert [t["title"] for t in first.json()] == ["Plan week"]
    assert second.json() == []
    templates = (await client.get("/templates/")).json()
    assert templates[0]["last_created_at"] is not None


async def test_rollover(client):
    a = await _create(client, "A")
    await _create(client, "B", status="done")

    response = await client.post("/weeks/rollover")

    assert response.status_code == 200
    body = response.json()
    assert body["week_number"] == TODAY_WEEK + 1
    assert [t["id"] for t in body["tasks"]] == [a["id"]]


async def test_migrate_requires_older_week(client):
    response = await client.post("/weeks/migrate")

    assert response.status_code == 412
    assert "older weeks" in response.json()["message"]


async def test_migrate_from_older_week(client):
    await client.put("/weeks/current", json={"week_number": TODAY_WEEK - 2})
    task = await _create(client, "Half done", status="in_progress")

    response = await client.post("/weeks/migrate")

    assert response.status_code == 200
    body = response.json()
    assert body["from_week"] == TODAY_WEEK - 2
    assert body["to_week"] == TODAY_WEEK
    assert task["id"] in body["forked_task_ids"]


async def test_subtasks_drive_progress(client):
    task = await _create(client, "A", auto_progress=True)
    first = (await client.post(f"/tasks/{task['id']}/subtasks", json={"title": "one"})).json()
    await client.post(f"/tasks/{task['id']}/subtasks", json={"title": "two"})

    await client.post(f"/tasks/subtasks/{first['id']}/toggle")

    body = (await client.get(f"/tasks/{task['id']}")).json()
    assert body["progress_current"] == 50
    assert [s["title"] for s in body["subtasks"]] == ["one", "two"]
