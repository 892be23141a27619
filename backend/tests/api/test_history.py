"""Tests for history API endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from services.exceptions import LogFetchFailedError
from services.note_service import note_service
from services.task_service import task_service


async def _abc_note(client: AsyncClient) -> int:
    """Create a note with content "A", then edit it to "AB" and "ABC"."""
    response = await client.post("/notes/", json={"title": "Letters", "content": "A"})
    assert response.status_code == 201
    note_id = response.json()["id"]
    for content in ("AB", "ABC"):
        response = await client.patch(f"/notes/{note_id}", json={"content": content})
        assert response.status_code == 200
    return note_id


# --- GET /history/{entity_type}/{entity_id} ---


async def test_get_note_history_versions_newest_first(client: AsyncClient) -> None:
    """Test note history lists reconstructed versions from current to created."""
    note_id = await _abc_note(client)

    response = await client.get(f"/history/note/{note_id}")
    assert response.status_code == 200

    data = response.json()
    assert data["entity_type"] == "note"
    assert data["entity_id"] == note_id
    assert data["warnings"] is None
    versions = data["versions"]
    assert [v["fields"]["content"] for v in versions] == ["ABC", "AB", "A"]
    assert [v["index"] for v in versions] == [0, 1, 2]
    assert [v["number"] for v in versions] == [3, 2, 1]
    assert [v["label"] for v in versions] == ["current", "previous", "created"]


async def test_get_note_history_includes_content_diff(client: AsyncClient) -> None:
    """Test each version carries its change set and a rendered content diff."""
    note_id = await _abc_note(client)

    response = await client.get(f"/history/note/{note_id}")
    current, previous, created = response.json()["versions"]

    assert current["changed_fields"] == ["content"]
    change = current["changes"][0]
    assert change["field"] == "content"
    assert (change["before"], change["after"]) == ("AB", "ABC")
    assert change["diff"] == [
        {"kind": "equal", "text": "AB", "omitted": 0},
        {"kind": "insert", "text": "C", "omitted": 0},
    ]
    assert previous["changed_fields"] == ["content"]
    assert created["changed_fields"] is None
    assert created["changes"] == []


async def test_get_task_history_status_toggle(client: AsyncClient) -> None:
    """Test a completed task shows one earlier version with status false."""
    response = await client.post("/tasks/", json={"title": "Water plants"})
    task_id = response.json()["id"]
    await client.patch(f"/tasks/{task_id}", json={"status": True})

    response = await client.get(f"/history/task/{task_id}")
    assert response.status_code == 200

    versions = response.json()["versions"]
    assert len(versions) == 2
    assert versions[0]["fields"]["status"] is True
    assert versions[0]["changed_fields"] == ["status"]
    assert versions[0]["changes"][0]["diff"] is None
    assert versions[1]["fields"]["status"] is False


async def test_get_task_history_description_diff(client: AsyncClient) -> None:
    """Test task descriptions get a rendered diff."""
    response = await client.post(
        "/tasks/", json={"title": "Groceries", "description": "milk"},
    )
    task_id = response.json()["id"]
    await client.patch(f"/tasks/{task_id}", json={"description": "milk, eggs"})

    response = await client.get(f"/history/task/{task_id}")
    change = response.json()["versions"][0]["changes"][0]
    assert change["field"] == "description"
    assert change["diff"] == [
        {"kind": "equal", "text": "milk", "omitted": 0},
        {"kind": "insert", "text": ", eggs", "omitted": 0},
    ]


async def test_get_history_never_edited(client: AsyncClient) -> None:
    """Test an entity with no edits has a single current version."""
    response = await client.post("/notes/", json={"title": "Fresh", "content": "new"})
    note_id = response.json()["id"]

    response = await client.get(f"/history/note/{note_id}")
    versions = response.json()["versions"]
    assert len(versions) == 1
    assert versions[0]["label"] == "current"
    assert versions[0]["changed_fields"] is None


async def test_get_history_not_found(client: AsyncClient) -> None:
    """Test history for a missing entity returns 404."""
    response = await client.get("/history/task/9999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Task not found"


async def test_get_history_invalid_entity_type(client: AsyncClient) -> None:
    """Test an unknown entity type is rejected by validation."""
    response = await client.get("/history/bookmark/1")
    assert response.status_code == 422


async def test_get_history_log_unavailable(
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a failed change log read returns 503 instead of a partial history."""
    note_id = await _abc_note(client)

    async def failing_fetch(_db: object, entity_type: str, entity_id: int) -> None:
        raise LogFetchFailedError(entity_type, entity_id)

    monkeypatch.setattr("services.history_service.fetch_change_log", failing_fetch)

    response = await client.get(f"/history/note/{note_id}")
    assert response.status_code == 503
    assert response.json()["detail"] == "History unavailable"


async def test_get_history_log_unavailable_keeps_flushed_autosave(
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test the autosave flushed before a failed log read is still saved."""
    note_id = await _abc_note(client)
    await client.post(f"/notes/{note_id}/autosave", json={"content": "ABC typed"})

    async def failing_fetch(_db: object, entity_type: str, entity_id: int) -> None:
        raise LogFetchFailedError(entity_type, entity_id)

    monkeypatch.setattr("services.history_service.fetch_change_log", failing_fetch)

    response = await client.get(f"/history/note/{note_id}")
    assert response.status_code == 503

    note = (await client.get(f"/notes/{note_id}")).json()
    assert note["content"] == "ABC typed"


async def test_get_history_flushes_pending_autosave(client: AsyncClient) -> None:
    """Test opening history writes the pending autosave first."""
    note_id = await _abc_note(client)
    response = await client.post(f"/notes/{note_id}/autosave", json={"content": "ABCD"})
    assert response.status_code == 202

    response = await client.get(f"/history/note/{note_id}")
    contents = [v["fields"]["content"] for v in response.json()["versions"]]
    assert contents == ["ABCD", "ABC", "AB", "A"]

    health = await client.get("/health")
    assert health.json()["pending_autosaves"] == 0


# --- POST /history/{entity_type}/{entity_id}/revert/{index} ---


async def test_revert_note_to_previous_version(client: AsyncClient) -> None:
    """Test reverting writes the old version as the new head and keeps history."""
    note_id = await _abc_note(client)
    history = (await client.get(f"/history/note/{note_id}")).json()

    response = await client.post(
        f"/history/note/{note_id}/revert/2",
        json={"expected_updated_at": history["head_updated_at"]},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["message"] == "Reverted successfully"
    assert data["index"] == 2
    assert data["entity"]["content"] == "A"
    assert data["entity"]["title"] == "Letters"

    response = await client.get(f"/history/note/{note_id}")
    contents = [v["fields"]["content"] for v in response.json()["versions"]]
    assert contents == ["A", "ABC", "AB", "A"]


async def test_revert_task_restores_all_fields(client: AsyncClient) -> None:
    """Test a task revert copies every tracked field of the chosen version."""
    response = await client.post(
        "/tasks/",
        json={
            "title": "Dentist",
            "start_date": "2025-05-02T09:00:00Z",
            "end_date": "2025-05-02T10:00:00Z",
            "group_id": "health",
        },
    )
    task_id = response.json()["id"]
    await client.patch(
        f"/tasks/{task_id}",
        json={"title": "Dentist (moved)", "start_date": None, "end_date": None, "status": True},
    )

    response = await client.post(f"/history/task/{task_id}/revert/1")
    assert response.status_code == 200

    entity = response.json()["entity"]
    assert entity["title"] == "Dentist"
    assert entity["status"] is False
    assert entity["group_id"] == "health"
    assert entity["start_date"].startswith("2025-05-02T09:00:00")
    assert entity["end_date"].startswith("2025-05-02T10:00:00")


async def test_revert_to_current_version_rejected(client: AsyncClient) -> None:
    """Test index 0 is the current version and cannot be reverted to."""
    note_id = await _abc_note(client)

    response = await client.post(f"/history/note/{note_id}/revert/0")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot revert to the current version"


@pytest.mark.parametrize("index", [3, 100, -1])
async def test_revert_version_not_found(client: AsyncClient, index: int) -> None:
    """Test indexes outside the history return 404."""
    note_id = await _abc_note(client)

    response = await client.post(f"/history/note/{note_id}/revert/{index}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Version not found"


async def test_revert_entity_not_found(client: AsyncClient) -> None:
    """Test reverting a missing entity returns 404."""
    response = await client.post("/history/note/9999/revert/1")
    assert response.status_code == 404
    assert response.json()["detail"] == "Note not found"


async def test_revert_conflict_when_modified_after_loading(client: AsyncClient) -> None:
    """Test a revert based on a stale history view returns 409 with server state."""
    note_id = await _abc_note(client)
    history = (await client.get(f"/history/note/{note_id}")).json()
    await client.patch(f"/notes/{note_id}", json={"content": "ABC edited elsewhere"})

    response = await client.post(
        f"/history/note/{note_id}/revert/1",
        json={"expected_updated_at": history["head_updated_at"]},
    )
    assert response.status_code == 409

    detail = response.json()["detail"]
    assert detail["error"] == "conflict"
    assert detail["message"] == "This item was modified since you loaded it"
    assert detail["server_state"]["content"] == "ABC edited elsewhere"

    note = (await client.get(f"/notes/{note_id}")).json()
    assert note["content"] == "ABC edited elsewhere"


async def test_revert_write_failure_returns_503(
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a rejected head write surfaces as 503."""
    response = await client.post("/tasks/", json={"title": "Old"})
    task_id = response.json()["id"]
    await client.patch(f"/tasks/{task_id}", json={"title": "New"})

    async def failing_update_fields(*_args: object, **_kwargs: object) -> None:
        raise OperationalError("UPDATE tasks", {}, Exception("disk I/O error"))

    monkeypatch.setattr(task_service, "update_fields", failing_update_fields)

    response = await client.post(f"/history/task/{task_id}/revert/1")
    assert response.status_code == 503
    assert response.json()["detail"] == "Revert could not be saved"


async def test_revert_write_failure_keeps_flushed_autosave(
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a rejected revert write does not discard the autosave flushed before it."""
    note_id = await _abc_note(client)
    await client.post(f"/notes/{note_id}/autosave", json={"content": "ABC typed"})

    update_fields = note_service.update_fields
    writes: list[dict] = []

    async def update_fields_rejecting_revert(
        db: AsyncSession,
        entity_id: int,
        values: dict,
    ) -> object:
        writes.append(values)
        if len(writes) > 1:
            raise OperationalError("UPDATE notes", {}, Exception("disk I/O error"))
        return await update_fields(db, entity_id, values)

    monkeypatch.setattr(note_service, "update_fields", update_fields_rejecting_revert)

    response = await client.post(f"/history/note/{note_id}/revert/2")
    assert response.status_code == 503
    monkeypatch.undo()

    note = (await client.get(f"/notes/{note_id}")).json()
    assert note["content"] == "ABC typed"
    response = await client.get(f"/history/note/{note_id}")
    contents = [v["fields"]["content"] for v in response.json()["versions"]]
    assert contents == ["ABC typed", "ABC", "AB", "A"]


async def test_revert_flushes_pending_autosave(client: AsyncClient) -> None:
    """Test the pending autosave is recorded as its own version before the revert."""
    note_id = await _abc_note(client)
    await client.post(f"/notes/{note_id}/autosave", json={"content": "ABC typing"})

    response = await client.post(f"/history/note/{note_id}/revert/2")
    assert response.status_code == 200
    assert response.json()["entity"]["content"] == "A"

    response = await client.get(f"/history/note/{note_id}")
    contents = [v["fields"]["content"] for v in response.json()["versions"]]
    assert contents == ["A", "ABC typing", "ABC", "AB", "A"]


async def test_revert_twice_round_trip(client: AsyncClient) -> None:
    """Test a revert can itself be reverted."""
    note_id = await _abc_note(client)
    await client.post(f"/history/note/{note_id}/revert/2")

    response = await client.post(f"/history/note/{note_id}/revert/1")
    assert response.status_code == 200
    assert response.json()["entity"]["content"] == "ABC"
