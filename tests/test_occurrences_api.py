# tests/test_occurrences_api.py
from datetime import datetime, timedelta
from http import HTTPStatus
import uuid


def _approved_series(client, **overrides) -> dict:
    payload = {
        "name": "Young People's Meeting",
        "type": "YPAA Meeting",
        "committee": "Metro YPAA",
        "committee_slug": "metro-ypaa",
        "timezone": "Europe/London",
        "start_time_local": "18:30",
        "duration_minutes": 60,
        "rrule": {"frequency": "weekly", "weekdays": ["WE", "SA"]},
        "city": "London",
        "country": "GB",
        "latitude": 51.5072,
        "longitude": -0.1276,
    }
    payload.update(overrides)
    created = client.post("/series", json=payload)
    assert created.status_code == HTTPStatus.CREATED, created.text
    series = created.json()

    approved = client.patch(f"/series/{series['id']}/status", json={"status": "approved"})
    assert approved.status_code == HTTPStatus.OK
    return series


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_occurrences_are_ordered_by_utc_start(client):
    _approved_series(client)
    _approved_series(client, name="Evening Group", start_time_local="20:00")

    occurrences = client.get("/occurrences").json()

    assert len(occurrences) > 0
    starts = [_parse(o["starts_at_utc"]) for o in occurrences]
    assert starts == sorted(starts)
    for occurrence in occurrences:
        assert _parse(occurrence["ends_at_utc"]) - _parse(occurrence["starts_at_utc"]) == timedelta(hours=1)
        assert occurrence["type"] == "YPAA Meeting"
        assert occurrence["latitude"] == 51.5072


def test_occurrences_time_range_filter(client):
    series = _approved_series(client)
    everything = client.get("/occurrences", params={"series_id": series["id"]}).json()
    start = everything[1]["starts_at_utc"]
    end = everything[3]["starts_at_utc"]

    window = client.get(
        "/occurrences",
        params={"series_id": series["id"], "start": start, "end": end},
    ).json()

    # Inclusive start, exclusive end.
    assert [o["id"] for o in window] == [everything[1]["id"], everything[2]["id"]]


def test_occurrences_rejects_inverted_range(client):
    response = client.get(
        "/occurrences",
        params={"start": "2024-02-01T00:00:00Z", "end": "2024-01-01T00:00:00Z"},
    )
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_rejected_occurrence_survives_regeneration(client):
    series = _approved_series(client)
    first = client.get("/occurrences", params={"series_id": series["id"]}).json()[0]

    patched = client.patch(f"/occurrences/{first['id']}/status", json={"status": "rejected"})
    assert patched.status_code == HTTPStatus.OK
    assert patched.json()["status"] == "rejected"

    client.post(f"/series/{series['id']}/generate")

    visible = client.get("/occurrences", params={"series_id": series["id"]}).json()
    assert first["id"] not in [o["id"] for o in visible]

    rejected = client.get(
        "/occurrences", params={"series_id": series["id"], "status": "rejected"}
    ).json()
    assert [o["id"] for o in rejected] == [first["id"]]
    assert rejected[0]["starts_at_utc"] == first["starts_at_utc"]


def test_patch_unknown_occurrence_returns_404(client):
    response = client.patch(f"/occurrences/{uuid.uuid4()}/status", json={"status": "rejected"})
    assert response.status_code == HTTPStatus.NOT_FOUND
