"""Tests for note endpoints."""
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.content_history import NoteChange
from services.autosave import DebouncedAutosave


async def test_create_note(client: AsyncClient) -> None:
    """Test creating a note."""
    response = await client.post("/notes/", json={"title": "Ideas", "content": "# Ideas"})
    assert response.status_code == 201

    data = response.json()
    assert data["title"] == "Ideas"
    assert data["content"] == "# Ideas"


async def test_create_note_content_defaults_empty(client: AsyncClient) -> None:
    """Test content is optional on create."""
    response = await client.post("/notes/", json={"title": "Empty"})
    assert response.status_code == 201
    assert response.json()["content"] == ""


async def test_create_note_requires_title(client: AsyncClient) -> None:
    """Test a note without a title is rejected."""
    response = await client.post("/notes/", json={"content": "No title"})
    assert response.status_code == 422


async def test_get_note_not_found(client: AsyncClient) -> None:
    """Test reading a missing note returns 404."""
    response = await client.get("/notes/9999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Note not found"


async def test_update_note_records_reverse_patch(
    client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    """Test an update appends one change record holding the previous title."""
    created = (await client.post("/notes/", json={"title": "Ideas", "content": "A"})).json()

    response = await client.patch(
        f"/notes/{created['id']}", json={"title": "More ideas", "content": "AB"},
    )
    assert response.status_code == 200
    assert response.json()["content"] == "AB"

    record = (await db_session.execute(select(NoteChange))).scalar_one()
    assert record.title == "Ideas"
    assert record.content_patch is not None


async def test_update_note_stale_expected_updated_at_conflict(client: AsyncClient) -> None:
    """Test an update based on a stale read returns 409 with server state."""
    created = (await client.post("/notes/", json={"title": "Shared", "content": "v1"})).json()
    await client.patch(f"/notes/{created['id']}", json={"content": "v2"})

    response = await client.patch(
        f"/notes/{created['id']}",
        json={"content": "mine", "expected_updated_at": created["updated_at"]},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["server_state"]["content"] == "v2"


async def test_update_note_not_found(client: AsyncClient) -> None:
    """Test updating a missing note returns 404."""
    response = await client.patch("/notes/9999", json={"content": "x"})
    assert response.status_code == 404


async def test_autosave_note_replaces_pending_write(
    client: AsyncClient,
    autosave: DebouncedAutosave,
) -> None:
    """Test only the latest autosave survives and is recorded once flushed."""
    created = (await client.post("/notes/", json={"title": "Journal", "content": "A"})).json()
    note_id = created["id"]

    for content in ("AB", "ABC", "ABCD"):
        response = await client.post(f"/notes/{note_id}/autosave", json={"content": content})
        assert response.status_code == 202
    assert autosave.pending_count == 1

    health = (await client.get("/health")).json()
    assert health["pending_autosaves"] == 1

    history = (await client.get(f"/history/note/{note_id}")).json()
    assert [v["fields"]["content"] for v in history["versions"]] == ["ABCD", "A"]


async def test_autosave_note_not_found(client: AsyncClient) -> None:
    """Test autosaving a missing note returns 404."""
    response = await client.post("/notes/9999/autosave", json={"content": "x"})
    assert response.status_code == 404
