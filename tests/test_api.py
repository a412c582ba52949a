"""Tests for the HTTP trigger API."""

from uuid import uuid4

import httpx
import pytest

from codexgen.api.deps import set_orchestrator
from codexgen.main import app

PREFIX = "/api/v1"


@pytest.fixture
async def async_client(orchestrator):
    """Async client bound to an orchestrator that uses the mock gateway."""
    set_orchestrator(orchestrator)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    set_orchestrator(None)


async def create_definition(client, name, **body):
    body.setdefault("sections", [{"index": 0, "name": f"{name} intro", "prompt": f"Introduce {name}."}])
    response = await client.post(f"{PREFIX}/definitions", json={"name": name, **body})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_run_orchestrates_in_background(async_client, gateway):
    """Creating a run returns its codexes; the background task completes it."""
    await create_definition(async_client, "Profile")

    response = await async_client.post(
        f"{PREFIX}/runs",
        json={"subjectId": "subject-1", "answers": {"goal": "clarity"}},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["subjectId"] == "subject-1"
    assert data["hasSourceDocument"] is False
    assert [c["name"] for c in data["codexes"]] == ["Profile"]
    assert data["codexes"][0]["totalSections"] == 1

    response = await async_client.get(f"{PREFIX}/runs/{data['id']}")
    assert response.json()["status"] == "completed"
    assert response.json()["codexes"][0]["status"] == "ready"
    assert gateway.get_call_count() == 1


@pytest.mark.asyncio
async def test_create_run_without_orchestration(async_client, gateway):
    await create_definition(async_client, "Profile")

    response = await async_client.post(
        f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False}
    )

    assert response.json()["status"] == "pending"
    assert gateway.get_call_count() == 0


@pytest.mark.asyncio
async def test_get_unknown_run_is_404(async_client):
    response = await async_client.get(f"{PREFIX}/runs/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


@pytest.mark.asyncio
async def test_source_document_unblocks_codex(async_client, gateway):
    await create_definition(async_client, "Digest", dependsOnSource=True)
    run = (
        await async_client.post(f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False})
    ).json()

    response = await async_client.post(
        f"{PREFIX}/runs/{run['id']}/source-document",
        json={"sourceDocument": "Quarterly notes"},
    )

    assert response.status_code == 200
    assert response.json()["hasSourceDocument"] is True
    assert "Quarterly notes" in gateway.calls[0]["user_prompt"]


@pytest.mark.asyncio
async def test_cancel_and_resume(async_client, gateway):
    await create_definition(async_client, "Profile")
    run = (
        await async_client.post(f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False})
    ).json()

    cancelled = await async_client.post(f"{PREFIX}/runs/{run['id']}/cancel")
    accepted = await async_client.post(f"{PREFIX}/runs/{run['id']}/orchestrate")

    assert cancelled.json()["cancelRequested"] is True
    assert accepted.status_code == 202
    assert gateway.get_call_count() == 0

    resumed = await async_client.post(f"{PREFIX}/runs/{run['id']}/resume")
    assert resumed.json()["cancelRequested"] is False
    final = await async_client.get(f"{PREFIX}/runs/{run['id']}")
    assert final.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_generate_and_regenerate_section(async_client, gateway):
    await create_definition(async_client, "Profile")
    run = (
        await async_client.post(f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False})
    ).json()
    codex_id = run["codexes"][0]["id"]

    response = await async_client.post(
        f"{PREFIX}/sections/generate",
        json={"codexId": codex_id, "sectionIndex": 0, "inputContext": "Free text context"},
    )

    assert response.status_code == 200
    section = response.json()
    assert section["status"] == "completed"
    assert "Free text context" in section["content"]

    response = await async_client.post(f"{PREFIX}/sections/{section['id']}/regenerate")
    assert response.json()["regenerationCount"] == 1
    assert gateway.get_call_count() == 2


@pytest.mark.asyncio
async def test_generate_section_checks_codex_name(async_client, gateway):
    await create_definition(async_client, "Profile")
    run = (
        await async_client.post(f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False})
    ).json()
    codex_id = run["codexes"][0]["id"]

    mismatch = await async_client.post(
        f"{PREFIX}/sections/generate",
        json={"codexId": codex_id, "codexName": "Strategy", "sectionIndex": 0},
    )
    match = await async_client.post(
        f"{PREFIX}/sections/generate",
        json={"codexId": codex_id, "codexName": "Profile", "sectionIndex": 0},
    )

    assert mismatch.status_code == 400
    assert mismatch.json()["error"] == "ConfigurationError"
    assert match.status_code == 200
    assert gateway.get_call_count() == 1


@pytest.mark.asyncio
async def test_generate_unknown_section_index(async_client):
    await create_definition(async_client, "Profile")
    run = (
        await async_client.post(f"{PREFIX}/runs", json={"subjectId": "s", "orchestrate": False})
    ).json()

    response = await async_client.post(
        f"{PREFIX}/sections/generate",
        json={"codexId": run["codexes"][0]["id"], "sectionIndex": 7},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "SectionTemplateNotFoundError"


@pytest.mark.asyncio
async def test_definition_cycle_is_409(async_client):
    a = await create_definition(async_client, "A")
    b = await create_definition(async_client, "B", prerequisiteIds=[a["id"]])
    assert b["prerequisite_ids"] == [a["id"]]

    response = await async_client.post(
        f"{PREFIX}/definitions/{a['id']}/prerequisites", json={"prerequisiteId": b["id"]}
    )

    assert response.status_code == 409
    assert response.json()["error"] == "CircularDependencyError"


@pytest.mark.asyncio
async def test_duplicate_definition_name_is_409(async_client):
    await create_definition(async_client, "A")

    response = await async_client.post(f"{PREFIX}/definitions", json={"name": "A"})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_remove_prerequisite(async_client):
    a = await create_definition(async_client, "A")
    b = await create_definition(async_client, "B", prerequisiteIds=[a["id"]])

    response = await async_client.delete(f"{PREFIX}/definitions/{b['id']}/prerequisites/{a['id']}")
    again = await async_client.delete(f"{PREFIX}/definitions/{b['id']}/prerequisites/{a['id']}")

    assert response.status_code == 204
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_queue_lifecycle(async_client):
    """Pending items cannot be deleted; cancelled and failed ones can."""
    definition = await create_definition(async_client, "Profile")

    response = await async_client.post(
        f"{PREFIX}/queue",
        json={
            "subjectIds": ["nobody"],
            "definitionIds": [definition["id"]],
            "model": "gpt-4.1",
            "process": False,
        },
    )

    assert response.status_code == 201
    items = response.json()
    assert items[0]["status"] == "pending"
    assert items[0]["model"] == "gpt-4.1"
    item_id = items[0]["id"]

    pending_delete = await async_client.post(f"{PREFIX}/queue/delete", json={"ids": [item_id]})
    assert pending_delete.status_code == 409

    cancelled = await async_client.post(f"{PREFIX}/queue/cancel", json={"ids": [item_id]})
    assert cancelled.json()[0]["status"] == "cancelled"

    retried = await async_client.post(f"{PREFIX}/queue/retry", json={"ids": [item_id]})
    assert retried.json()[0]["status"] == "pending"

    # the background pass fails it: the subject has no run
    deleted = await async_client.post(f"{PREFIX}/queue/delete", json={"ids": [item_id]})
    assert deleted.json() == {"deleted": 1}

@pytest.mark.asyncio
async def test_queue_selection_requires_ids(async_client):
    response = await async_client.post(f"{PREFIX}/queue/cancel", json={"ids": []})

    assert response.status_code == 422
