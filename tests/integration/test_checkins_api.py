"""Check-in API: recording, balances, history and staff views."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


async def _register(client: AsyncClient, name: str, role: str = "user") -> dict:
    response = await client.post("/api/v1/users", json={
        "email": f"{name.lower()}@example.com",
        "name": name,
        "role": role,
    })
    assert response.status_code == 201, response.text
    return response.json()


async def _add_to_wallet(client: AsyncClient, headers: dict, card_id: str) -> None:
    response = await client.post(f"/api/v1/wallet/{card_id}", headers=headers)
    assert response.status_code == 201, response.text


class TestRecordCheckIn:
    @pytest.mark.asyncio
    async def test_three_check_ins(self, client: AsyncClient, member_headers, clock) -> None:
        """Three check-ins earn 30 points and show up on the profile and leaderboard."""
        await _add_to_wallet(client, member_headers, "card-1")

        totals = []
        for _ in range(3):
            clock.advance(minutes=5)
            response = await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers=member_headers)
            assert response.status_code == 201
            data = response.json()
            assert data["check_in"]["points_earned"] == 10
            assert data["check_in"]["business_id"] == "business-1"
            assert "10 points" in data["message"]
            totals.append(data["total_points"])
        assert totals == [10, 20, 30]

        me = await client.get("/api/v1/users/me", headers=member_headers)
        assert me.json()["points"] == 30

        wallet = await client.get("/api/v1/wallet", headers=member_headers)
        [entry] = wallet.json()
        assert entry["last_check_in"] == data["check_in"]["timestamp"]

        board = await client.get("/api/v1/analytics/leaderboard", headers={"X-User-Id": "admin-1"})
        assert board.json()[0]["points"] == 30
        assert board.json()[0]["rank"] == 1

    @pytest.mark.asyncio
    async def test_location_and_metadata_stored(self, client: AsyncClient, member_headers) -> None:
        await _add_to_wallet(client, member_headers, "card-2")
        response = await client.post(
            "/api/v1/checkins",
            json={"card_id": "card-2", "location": "Downtown", "metadata": {"visit": "morning"}},
            headers=member_headers,
        )
        assert response.status_code == 201
        check_in = response.json()["check_in"]
        assert check_in["location"] == "Downtown"
        assert check_in["metadata"] == {"visit": "morning"}

    @pytest.mark.asyncio
    async def test_card_not_in_wallet(self, client: AsyncClient, member_headers) -> None:
        response = await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers=member_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "not_in_wallet"

        history = await client.get("/api/v1/checkins/me", headers=member_headers)
        assert history.json()["total"] == 0
        me = await client.get("/api/v1/users/me", headers=member_headers)
        assert me.json()["points"] == 0

    @pytest.mark.asyncio
    async def test_unknown_card(self, client: AsyncClient, member_headers) -> None:
        response = await client.post("/api/v1/checkins", json={"card_id": "card-404"}, headers=member_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "card_not_found"

    @pytest.mark.asyncio
    async def test_inactive_card(self, client: AsyncClient, member_headers, admin_headers) -> None:
        await _add_to_wallet(client, member_headers, "card-3")
        await client.put("/api/v1/cards/card-3", json={"is_active": False}, headers=admin_headers)

        response = await client.post("/api/v1/checkins", json={"card_id": "card-3"}, headers=member_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "card_inactive"

    @pytest.mark.asyncio
    async def test_location_too_long(self, client: AsyncClient, member_headers) -> None:
        response = await client.post(
            "/api/v1/checkins", json={"card_id": "card-1", "location": "x" * 300}, headers=member_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_requires_principal(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/checkins", json={"card_id": "card-1"})
        assert response.status_code == 401
        unknown = await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers={"X-User-Id": "ghost"})
        assert unknown.status_code == 401


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_newest_first_with_card_details(self, client: AsyncClient, member_headers, clock) -> None:
        await _add_to_wallet(client, member_headers, "card-1")
        await _add_to_wallet(client, member_headers, "card-2")
        for card_id in ("card-1", "card-2", "card-1"):
            clock.advance(minutes=1)
            await client.post("/api/v1/checkins", json={"card_id": card_id}, headers=member_headers)

        response = await client.get("/api/v1/checkins/me?limit=2", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["has_more"] is True
        assert [i["card_id"] for i in data["items"]] == ["card-1", "card-2"]
        assert data["items"][0]["card_name"] == "Coffee Loyalty Card"
        assert data["items"][1]["card_logo"] == "💪"

        rest = await client.get("/api/v1/checkins/me?limit=2&offset=2", headers=member_headers)
        assert len(rest.json()["items"]) == 1
        assert rest.json()["has_more"] is False

    @pytest.mark.asyncio
    async def test_bad_limit(self, client: AsyncClient, member_headers) -> None:
        response = await client.get("/api/v1/checkins/me?limit=0", headers=member_headers)
        assert response.status_code == 400


class TestStaffViews:
    @pytest.mark.asyncio
    async def test_card_check_ins_enriched(self, client: AsyncClient, member, member_headers, admin_headers) -> None:
        await _add_to_wallet(client, member_headers, "card-1")
        await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers=member_headers)

        response = await client.get("/api/v1/checkins/card/card-1", headers=admin_headers)
        assert response.status_code == 200
        [entry] = response.json()
        assert entry["user_name"] == "Alice"
        assert entry["user_email"] == member["email"]

    @pytest.mark.asyncio
    async def test_card_check_ins_member_forbidden(self, client: AsyncClient, member_headers) -> None:
        response = await client.get("/api/v1/checkins/card/card-1", headers=member_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_card_check_ins_other_business_forbidden(self, client: AsyncClient) -> None:
        shop = await _register(client, "Shop", role="business")
        response = await client.get("/api/v1/checkins/card/card-1", headers={"X-User-Id": shop["id"]})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, member_headers, admin_headers) -> None:
        await _add_to_wallet(client, member_headers, "card-1")
        await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers=member_headers)
        await client.post("/api/v1/checkins", json={"card_id": "card-1"}, headers=member_headers)

        response = await client.get("/api/v1/checkins/stats", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"total_check_ins": 2, "last_30_days": 2, "today": 2, "unique_users": 1}
