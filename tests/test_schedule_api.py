"""
Endpoint tests: tournament setup -> schedule generation -> editing -> undo

Scenario: 4 players, default settings (4 courts, 20-minute matches, 15-minute
rest), starting 2026-03-14 09:00. The same four players meet twice a round,
so every match waits out the previous one plus rest on court 1:
09:00, 09:35, 10:10, 10:45, 11:20, 11:55.
"""

import pytest
from fastapi.testclient import TestClient

START = "2026-03-14T09:00:00"


def _create_tournament(client: TestClient, names, **settings) -> str:
    payload = {"name": "Spring Doubles", "scheduled_start": START}
    payload.update(settings)
    response = client.post("/api/tournaments", json=payload)
    assert response.status_code == 201
    tournament_id = response.json()["id"]

    response = client.post(f"/api/tournaments/{tournament_id}/participants", json={"names": names})
    assert response.status_code == 201
    return tournament_id


@pytest.fixture
def scheduled_tournament(client: TestClient) -> str:
    tournament_id = _create_tournament(client, ["Ana", "Ben", "Cy", "Dee"])
    response = client.post(f"/api/tournaments/{tournament_id}/schedule/generate")
    assert response.status_code == 200
    return tournament_id


def _matches(client: TestClient, tournament_id: str):
    response = client.get(f"/api/tournaments/{tournament_id}/schedule")
    assert response.status_code == 200
    return response.json()["matches"]


def test_health(client: TestClient):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestTournaments:
    def test_create_and_get(self, client: TestClient):
        response = client.post("/api/tournaments", json={"name": "  Club Night  ", "court_count": 3})
        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Club Night"
        assert body["court_count"] == 3
        assert body["match_duration"] == 20
        assert body["mode"] == "individual-signup"

        response = client.get(f"/api/tournaments/{body['id']}")
        assert response.status_code == 200
        assert [t["id"] for t in client.get("/api/tournaments").json()] == [body["id"]]

    def test_invalid_mode_rejected(self, client: TestClient):
        response = client.post("/api/tournaments", json={"name": "X", "mode": "singles"})

        assert response.status_code == 422

    def test_unknown_tournament(self, client: TestClient):
        assert client.get("/api/tournaments/tournament-missing").status_code == 404
        assert client.get("/api/tournaments/tournament-missing/schedule").status_code == 404

    def test_participants_keep_signup_order(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana", "Ben"])
        response = client.post(f"/api/tournaments/{tournament_id}/participants", json={"names": ["Cy"]})
        assert response.status_code == 201

        participants = client.get(f"/api/tournaments/{tournament_id}/participants").json()
        assert [(p["name"], p["position"]) for p in participants] == [("Ana", 0), ("Ben", 1), ("Cy", 2)]

    def test_blank_participant_name_rejected(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana"])
        response = client.post(f"/api/tournaments/{tournament_id}/participants", json={"names": [" "]})

        assert response.status_code == 422


class TestGeneration:
    def test_generate_summary(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana", "Ben", "Cy", "Dee"])
        response = client.post(f"/api/tournaments/{tournament_id}/schedule/generate")

        assert response.status_code == 200
        body = response.json()
        assert body["rounds_count"] == 3
        assert body["matches_count"] == 6
        assert body["teams_count"] == 6
        assert body["start_time"] == START
        assert body["optimization"]["average_rest_period"] == 15
        assert body["optimization"]["sessions_count"] == 1

    def test_generate_with_overrides(self, client: TestClient):
        tournament_id = _create_tournament(client, [f"P{i}" for i in range(8)])
        response = client.post(
            f"/api/tournaments/{tournament_id}/schedule/generate",
            json={"court_count": 2, "start_time": "2026-03-14T10:00:00"},
        )

        assert response.status_code == 200
        matches = _matches(client, tournament_id)
        assert len(matches) == 28
        assert {m["court_number"] for m in matches} <= {1, 2}
        assert min(m["scheduled_time"] for m in matches) == "2026-03-14T10:00:00"

    def test_insufficient_participants(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana", "Ben", "Cy"])
        response = client.post(f"/api/tournaments/{tournament_id}/schedule/generate")

        assert response.status_code == 400
        assert "Insufficient participants" in response.json()["detail"]

    def test_schedule_read_endpoints(self, client: TestClient, scheduled_tournament: str):
        schedule = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()

        assert [r["round_number"] for r in schedule["rounds"]] == [1, 2, 3]
        assert [m["scheduled_time"][11:16] for m in schedule["matches"]] == [
            "09:00",
            "09:35",
            "10:10",
            "10:45",
            "11:20",
            "11:55",
        ]
        assert len(schedule["teams"]) == 6

        conflicts = client.get(f"/api/tournaments/{scheduled_tournament}/schedule/conflicts")
        assert conflicts.status_code == 200
        assert conflicts.json() == []

        slots = client.get(f"/api/tournaments/{scheduled_tournament}/schedule/time-slots").json()
        # ceil(6 matches / 4 courts) parallel court-rounds
        assert slots == [START, "2026-03-14T09:20:00"]

    def test_overrides_become_tournament_settings(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana", "Ben", "Cy", "Dee"])
        response = client.post(
            f"/api/tournaments/{tournament_id}/schedule/generate",
            json={"court_count": 2, "match_duration": 30},
        )
        assert response.status_code == 200

        tournament = client.get(f"/api/tournaments/{tournament_id}").json()
        assert (tournament["court_count"], tournament["match_duration"]) == (2, 30)

        match = _matches(client, tournament_id)[0]
        response = client.post(
            f"/api/tournaments/{tournament_id}/matches/{match['id']}/court", json={"court_number": 3}
        )
        assert response.status_code == 400

    def test_timezone_aware_start_time(self, client: TestClient):
        tournament_id = _create_tournament(client, ["Ana", "Ben", "Cy", "Dee"])
        response = client.post(
            f"/api/tournaments/{tournament_id}/schedule/generate",
            json={"start_time": "2026-03-14T11:00:00+01:00"},
        )

        assert response.status_code == 200
        assert response.json()["start_time"] == "2026-03-14T10:00:00"

    def test_regenerate_clears_history(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        client.post(f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/court", json={"court_number": 2})
        assert len(client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json()) == 1

        client.post(f"/api/tournaments/{scheduled_tournament}/schedule/generate")
        assert client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json() == []


class TestEditing:
    def test_reschedule_conflict_requires_force(self, client: TestClient, scheduled_tournament: str):
        second = _matches(client, scheduled_tournament)[1]
        url = f"/api/tournaments/{scheduled_tournament}/matches/{second['id']}/reschedule"

        response = client.post(url, json={"scheduled_time": START, "court_number": 1})
        assert response.status_code == 409
        conflict_types = {c["type"] for c in response.json()["detail"]["conflicts"]}
        assert "court-double-booking" in conflict_types

        response = client.post(url, json={"scheduled_time": START, "court_number": 1, "force": True})
        assert response.status_code == 200
        assert response.json()["match"]["scheduled_time"] == START

        conflicts = client.get(f"/api/tournaments/{scheduled_tournament}/schedule/conflicts").json()
        assert conflicts

    def test_reschedule_then_undo(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[2]
        original = (match["scheduled_time"], match["court_number"])

        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/reschedule",
            json={"scheduled_time": START, "court_number": 2},
        )
        assert response.status_code == 200

        history = client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json()
        assert [c["type"] for c in history] == ["match-reschedule"]

        response = client.post(f"/api/tournaments/{scheduled_tournament}/schedule/undo")
        assert response.status_code == 200
        assert response.json()["undone"]["match_id"] == match["id"]

        restored = next(m for m in _matches(client, scheduled_tournament) if m["id"] == match["id"])
        assert (restored["scheduled_time"], restored["court_number"]) == original

        # Single-step undo: the history is cleared afterwards
        assert client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json() == []
        assert client.post(f"/api/tournaments/{scheduled_tournament}/schedule/undo").status_code == 400

    def test_court_out_of_range(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/court", json={"court_number": 9}
        )

        assert response.status_code == 400

    def test_move_to_court(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/move-to-court", json={"court_number": 2}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["moved"]
        assert body["match"]["court_number"] == 2
        assert body["match"]["scheduled_time"] == START

    def test_unknown_match(self, client: TestClient, scheduled_tournament: str):
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/match-missing/court", json={"court_number": 1}
        )

        assert response.status_code == 404

    def test_timezone_aware_times_are_stored_as_utc(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[2]
        url = f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/reschedule"

        response = client.post(url, json={"scheduled_time": "2026-03-14T11:00:00+02:00", "court_number": 2})
        assert response.status_code == 200
        assert response.json()["match"]["scheduled_time"] == START

        response = client.post(url, json={"scheduled_time": "2026-03-14T09:00:00Z", "court_number": 2})
        assert response.status_code == 200
        assert client.get(f"/api/tournaments/{scheduled_tournament}/schedule/conflicts").status_code == 200

    def test_undo_leaves_completed_match_in_place(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[2]
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/reschedule",
            json={"scheduled_time": START, "court_number": 2},
        )
        assert response.status_code == 200

        status_url = f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/status"
        client.patch(status_url, json={"status": "in-progress"})
        client.patch(status_url, json={"status": "completed"})

        response = client.post(f"/api/tournaments/{scheduled_tournament}/schedule/undo")
        assert response.status_code == 409

        played = next(m for m in _matches(client, scheduled_tournament) if m["id"] == match["id"])
        assert (played["status"], played["scheduled_time"], played["court_number"]) == ("completed", START, 2)

    def test_bulk_move_to_court(self, client: TestClient, scheduled_tournament: str):
        first, second = _matches(client, scheduled_tournament)[:2]
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/move-to-court",
            json={"match_ids": [first["id"], second["id"], "match-missing"], "court_number": 3},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["moved_ids"] == [first["id"], second["id"]]
        assert body["failed_ids"] == ["match-missing"]

        by_id = {m["id"]: m for m in body["matches"]}
        assert (by_id[first["id"]]["court_number"], by_id[first["id"]]["scheduled_time"]) == (3, START)
        assert (by_id[second["id"]]["court_number"], by_id[second["id"]]["scheduled_time"]) == (
            3,
            "2026-03-14T09:35:00",
        )
        assert len(client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json()) == 2

    def test_bulk_move_court_out_of_range(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/move-to-court",
            json={"match_ids": [match["id"]], "court_number": 5},
        )

        assert response.status_code == 400


class TestRoundSwap:
    def test_validate_swap(self, client: TestClient, scheduled_tournament: str):
        url = f"/api/tournaments/{scheduled_tournament}/rounds/swap/validate"

        response = client.get(url, params={"round1": 1, "round2": 3})
        assert response.status_code == 200
        assert response.json() == {"is_valid": True, "errors": [], "warnings": []}

        response = client.get(url, params={"round1": 1, "round2": 1})
        assert response.json()["is_valid"] is False

        assert client.get(url, params={"round1": 1, "round2": 9}).status_code == 404

    def test_swap_rounds_rebalances_by_default(self, client: TestClient, scheduled_tournament: str):
        before = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()
        round1_id = before["rounds"][0]["id"]
        round1_match_ids = {m["id"] for m in before["matches"] if m["round_number"] == 1}

        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/rounds/swap",
            json={"round1_number": 1, "round2_number": 2},
        )
        assert response.status_code == 200

        body = response.json()
        assert {r["id"]: r["round_number"] for r in body["rounds"]}[round1_id] == 2
        moved = sorted(
            (m["court_number"], m["scheduled_time"]) for m in body["matches"] if m["id"] in round1_match_ids
        )
        # Round 2 starts at 09:00 + 20 minutes, two matches side by side
        assert moved == [(1, "2026-03-14T09:20:00"), (2, "2026-03-14T09:20:00")]

        history = client.get(f"/api/tournaments/{scheduled_tournament}/schedule/history").json()
        assert history[0]["type"] == "round-swap"

    def test_undo_swap(self, client: TestClient, scheduled_tournament: str):
        before = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()
        client.post(
            f"/api/tournaments/{scheduled_tournament}/rounds/swap",
            json={"round1_number": 1, "round2_number": 2, "rebalance_courts": False},
        )

        response = client.post(f"/api/tournaments/{scheduled_tournament}/schedule/undo")
        assert response.status_code == 200

        after = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()
        assert {r["id"]: r["round_number"] for r in after["rounds"]} == {
            r["id"]: r["round_number"] for r in before["rounds"]
        }

    def test_swap_with_completed_match_rejected(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        status_url = f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/status"
        assert client.patch(status_url, json={"status": "in-progress"}).status_code == 200
        assert client.patch(status_url, json={"status": "completed"}).status_code == 200

        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/rounds/swap",
            json={"round1_number": 1, "round2_number": 2},
        )
        assert response.status_code == 400
        assert "completed" in response.json()["detail"]


class TestMatchStatus:
    def test_status_flow(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        url = f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/status"

        response = client.patch(url, json={"status": "in-progress"})
        assert response.status_code == 200
        assert response.json()["status"] == "in-progress"

        result = {"team1_score": 11, "team2_score": 7, "winner_id": match["team1_id"], "end_reason": "points"}
        response = client.patch(url, json={"status": "completed", "result": result})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["result"] == result
        assert body["completed_at"] is not None

        rounds = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()["rounds"]
        assert rounds[0]["status"] == "active"

        # Completed is terminal and locks the match against edits
        assert client.patch(url, json={"status": "in-progress"}).status_code == 422
        response = client.post(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/reschedule",
            json={"scheduled_time": "2026-03-14T15:00:00", "court_number": 4},
        )
        assert response.status_code == 409

    def test_cannot_skip_in_progress(self, client: TestClient, scheduled_tournament: str):
        match = _matches(client, scheduled_tournament)[0]
        response = client.patch(
            f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/status", json={"status": "completed"}
        )

        assert response.status_code == 422

    def test_round_completes_with_its_matches(self, client: TestClient, scheduled_tournament: str):
        for match in _matches(client, scheduled_tournament)[:2]:
            url = f"/api/tournaments/{scheduled_tournament}/matches/{match['id']}/status"
            client.patch(url, json={"status": "in-progress"})
            client.patch(url, json={"status": "completed"})

        rounds = client.get(f"/api/tournaments/{scheduled_tournament}/schedule").json()["rounds"]
        assert [r["status"] for r in rounds] == ["completed", "pending", "pending"]
