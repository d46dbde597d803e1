"""Goal endpoint tests."""

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


async def _create_goal(client: AsyncClient, reader_id: int = 1, **overrides) -> dict:
    payload = {"name": "Spring reading", "target_count": 3, "days_to_complete": 30, "timezone": "UTC"}
    payload.update(overrides)
    response = await client.post("/api/v1/goals", json=payload, headers=auth_headers(reader_id))
    assert response.status_code == 201, response.text
    return response.json()


async def _finish_new_book(client: AsyncClient, title: str, reader_id: int = 1) -> dict:
    headers = auth_headers(reader_id)
    created = await client.post(
        "/api/v1/reading-entries",
        json={"title": title, "author": "Author", "status": "reading"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    entry_id = created.json()["entry"]["id"]
    response = await client.patch(
        f"/api/v1/reading-entries/{entry_id}/status", json={"status": "finished"}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestCreateGoal:
    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient):
        data = await _create_goal(client)
        assert data["goal"]["status"] == "active"
        assert data["goal"]["progress_count"] == 0
        assert data["goal"]["deadline_timezone"] == "UTC"
        assert data["progress"]["status_label"] == "not-started"
        assert data["progress"]["books_remaining"] == 3

    @pytest.mark.asyncio
    async def test_zero_target_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/goals",
            json={"name": "Nope", "target_count": 0, "days_to_complete": 30},
            headers=auth_headers(1),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_target_above_cap_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/goals",
            json={"name": "Too many", "target_count": 10000, "days_to_complete": 30},
            headers=auth_headers(1),
        )
        assert response.status_code == 422
        assert "9999" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_timezone_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/goals",
            json={"name": "Where", "target_count": 2, "days_to_complete": 30, "timezone": "Nowhere/Land"},
            headers=auth_headers(1),
        )
        assert response.status_code == 422


class TestReadGoals:
    @pytest.mark.asyncio
    async def test_list_only_own_goals(self, client: AsyncClient):
        await _create_goal(client, reader_id=1, name="Mine")
        await _create_goal(client, reader_id=2, name="Theirs")

        response = await client.get("/api/v1/goals", headers=auth_headers(1))
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert [g["goal"]["name"] for g in data["goals"]] == ["Mine"]

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, client: AsyncClient):
        response = await client.get("/api/v1/goals?status=paused", headers=auth_headers(1))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_foreign_goal_forbidden(self, client: AsyncClient):
        goal = await _create_goal(client, reader_id=2)
        response = await client.get(f"/api/v1/goals/{goal['goal']['id']}", headers=auth_headers(1))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient):
        await _create_goal(client, target_count=1)
        await _create_goal(client, target_count=5)
        await _finish_new_book(client, "Stats book")

        response = await client.get("/api/v1/goals/stats", headers=auth_headers(1))
        assert response.status_code == 200
        stats = response.json()
        assert stats["total"] == 2
        assert stats["completed"] == 1
        assert stats["in_progress"] == 1
        assert stats["total_books_target"] == 6
        assert stats["total_books_read"] == 2


class TestProgressEndpoints:
    @pytest.mark.asyncio
    async def test_finishing_book_updates_goal(self, client: AsyncClient):
        goal = await _create_goal(client, target_count=2)
        goal_id = goal["goal"]["id"]

        change = await _finish_new_book(client, "First")
        assert change["goals"]["updated_goal_ids"] == [goal_id]
        assert change["goals"]["failures"] == []

        response = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers(1))
        data = response.json()
        assert data["goal"]["progress_count"] == 1
        assert data["progress"]["percentage"] == 50

        credits = await client.get(f"/api/v1/goals/{goal_id}/credits", headers=auth_headers(1))
        assert [c["reading_entry_id"] for c in credits.json()["credits"]] == [change["entry"]["id"]]

    @pytest.mark.asyncio
    async def test_manual_override_and_sync(self, client: AsyncClient):
        goal = await _create_goal(client, target_count=2)
        goal_id = goal["goal"]["id"]
        headers = auth_headers(1)

        response = await client.put(
            f"/api/v1/goals/{goal_id}/progress", json={"progress_count": 4}, headers=headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["goal"]["status"] == "completed"
        assert data["goal"]["bonus_count"] == 2

        await _finish_new_book(client, "Only one")
        response = await client.post(f"/api/v1/goals/{goal_id}/sync", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["goal"]["progress_count"] == 1
        assert data["goal"]["status"] == "active"
        assert data["goal"]["completed_at"] is None

    @pytest.mark.asyncio
    async def test_negative_override_rejected(self, client: AsyncClient):
        goal = await _create_goal(client)
        response = await client.put(
            f"/api/v1/goals/{goal['goal']['id']}/progress", json={"progress_count": -1}, headers=auth_headers(1)
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_sync_foreign_goal_forbidden(self, client: AsyncClient):
        goal = await _create_goal(client, reader_id=2)
        response = await client.post(f"/api/v1/goals/{goal['goal']['id']}/sync", headers=auth_headers(1))
        assert response.status_code == 403


class TestEditAndDelete:
    @pytest.mark.asyncio
    async def test_patch_target_completes_goal(self, client: AsyncClient):
        goal = await _create_goal(client, target_count=3)
        goal_id = goal["goal"]["id"]
        await _finish_new_book(client, "One")
        await _finish_new_book(client, "Two")

        response = await client.patch(
            f"/api/v1/goals/{goal_id}", json={"target_count": 1}, headers=auth_headers(1)
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["goal"]["status"] == "completed"
        assert data["goal"]["bonus_count"] == 1
        assert data["progress"]["is_completed"] is True

    @pytest.mark.asyncio
    async def test_patch_extends_deadline(self, client: AsyncClient):
        goal = await _create_goal(client, days_to_complete=10)
        days_before = goal["progress"]["days_remaining"]

        response = await client.patch(
            f"/api/v1/goals/{goal['goal']['id']}", json={"days_to_add": 5}, headers=auth_headers(1)
        )
        assert response.status_code == 200
        assert response.json()["progress"]["days_remaining"] == days_before + 5

    @pytest.mark.asyncio
    async def test_patch_completed_goal_rejected(self, client: AsyncClient):
        goal = await _create_goal(client, target_count=1)
        await _finish_new_book(client, "Done")

        response = await client.patch(
            f"/api/v1/goals/{goal['goal']['id']}", json={"target_count": 4}, headers=auth_headers(1)
        )
        assert response.status_code == 422
        assert "Cannot edit completed goals" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_patch_without_fields_rejected(self, client: AsyncClient):
        goal = await _create_goal(client)
        response = await client.patch(f"/api/v1/goals/{goal['goal']['id']}", json={}, headers=auth_headers(1))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_goal(self, client: AsyncClient):
        goal = await _create_goal(client)
        goal_id = goal["goal"]["id"]

        response = await client.delete(f"/api/v1/goals/{goal_id}", headers=auth_headers(1))
        assert response.status_code == 204

        response = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers(1))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_foreign_goal_forbidden(self, client: AsyncClient):
        goal = await _create_goal(client, reader_id=2)
        response = await client.delete(f"/api/v1/goals/{goal['goal']['id']}", headers=auth_headers(1))
        assert response.status_code == 403
