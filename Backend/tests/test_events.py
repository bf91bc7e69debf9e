"""
Event management tests: create, list, read, patch and delete.
"""

import pytest

from eventflow.routes_events import generate_slug


class TestSlugGeneration:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Tolu & Ade's Wedding", "tolu-ade-s-wedding"),
            ("Fête 2026", "fete-2026"),
            ("  Spaces   Everywhere ", "spaces-everywhere"),
            ("!!!", "event"),
        ],
    )
    def test_generate_slug(self, name, expected):
        assert generate_slug(name) == expected


class TestEventRoutes:
    async def test_create_event(self, client, headers):
        response = await client.post(
            "/events",
            json={"name": "Tolu & Ade's Wedding", "date": "2026-12-12T14:00:00Z", "venueName": "Eko Hotel"},
            headers=headers,
        )
        assert response.status_code == 201
        event = response.json()["event"]
        assert event["slug"] == "tolu-ade-s-wedding"
        assert event["status"] == "DRAFT"
        assert event["inviteModel"] == "OPEN"
        assert event["venueName"] == "Eko Hotel"
        assert event["guestCount"] == 0

    async def test_duplicate_names_get_unique_slugs(self, client, headers):
        body = {"name": "Birthday", "date": "2026-12-12T14:00:00Z"}
        first = await client.post("/events", json=body, headers=headers)
        second = await client.post("/events", json=body, headers=headers)
        assert first.json()["event"]["slug"] == "birthday"
        assert second.json()["event"]["slug"] == "birthday-2"

    async def test_create_requires_name(self, client, headers):
        response = await client.post("/events", json={"name": "  ", "date": "2026-12-12T14:00:00Z"}, headers=headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Event name is required"}

    async def test_create_requires_date(self, client, headers):
        response = await client.post("/events", json={"name": "Party"}, headers=headers)
        assert response.status_code == 400
        assert "error" in response.json()

    async def test_list_is_newest_first_with_guest_counts(
        self, client, headers, planner, other_planner, make_event, make_guest
    ):
        older = await make_event(planner, "Older")
        newer = await make_event(planner, "Newer")
        await make_event(other_planner, "Not mine")
        await make_guest(older)
        await make_guest(older, "Ngozi", "Eze")

        response = await client.get("/events", headers=headers)
        assert response.status_code == 200
        events = response.json()
        assert [e["id"] for e in events] == [newer.id, older.id]
        assert events[1]["guestCount"] == 2

    async def test_patch_status_and_date(self, client, headers, event):
        response = await client.patch(
            f"/events/{event.id}",
            json={"status": "PUBLISHED", "date": "2027-01-05T10:00:00+01:00", "inviteModel": "CLOSED"},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()["event"]
        assert body["status"] == "PUBLISHED"
        assert body["inviteModel"] == "CLOSED"
        assert body["eventDate"].startswith("2027-01-05T09:00:00")

    async def test_patch_rejects_unknown_status(self, client, headers, event):
        response = await client.patch(f"/events/{event.id}", json={"status": "PARTYING"}, headers=headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid status"}

    async def test_patch_leaves_absent_fields_alone(self, client, headers, event):
        response = await client.patch(f"/events/{event.id}", json={"description": "Black tie"}, headers=headers)
        body = response.json()["event"]
        assert body["description"] == "Black tie"
        assert body["name"] == event.name

    async def test_delete_event_removes_children(self, client, headers, event, make_guest):
        await make_guest(event)
        await client.post(f"/events/{event.id}/tables/bulk", json={"count": 2}, headers=headers)

        response = await client.delete(f"/events/{event.id}", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert (await client.get(f"/events/{event.id}", headers=headers)).status_code == 404
        assert (await client.get("/overview/stats", headers=headers)).json()["totalEvents"] == 0
