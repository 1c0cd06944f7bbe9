URL = "/api/v1/reports"
ADMIN_URL = "/api/v1/administrations"


def give(client, world, scheduled_for, administered_at, **kw):
    body = world.dose_body(scheduled_for=scheduled_for, administered_at=administered_at, **kw)
    r = client.post(ADMIN_URL, json=body, headers=world.headers(world.carer))
    assert r.status_code == 201
    return r.json()["administration"]


def two_days(client, world):
    # 1st: morning on time, evening five hours late; 2nd: nothing given
    give(client, world, "2024-06-01T12:00:00Z", "2024-06-01T12:30:00Z")
    give(client, world, "2024-06-02T00:00:00Z", "2024-06-02T05:00:00Z")


def test_compliance_counts(client, world):
    two_days(client, world)
    r = client.get(
        f"{URL}/compliance",
        params={"household_id": world.hid, "start": "2024-06-01", "end": "2024-06-02"},
        headers=world.headers(world.vet),
    )
    assert r.status_code == 200
    (row,) = r.json()["regimens"]
    assert row["medication_name"] == "Carprofen"
    assert {k: row[k] for k in ("expected", "given", "on_time", "late", "very_late", "missed", "pending")} == {
        "expected": 4,
        "given": 2,
        "on_time": 1,
        "late": 1,
        "very_late": 0,
        "missed": 2,
        "pending": 0,
    }
    assert row["adherence_rate"] == 0.5
    assert row["on_time_rate"] == 0.5
    assert r.json()["totals"]["expected"] == 4


def test_today_is_still_pending(client, world):
    prn = world.add_regimen(schedule_type="PRN", times_local=[], name="Maropitant PRN")
    client.post(ADMIN_URL, json=world.dose_body(regimen=prn, nonce="prn-nonce-0001"), headers=world.headers(world.carer))

    r = client.get(
        f"{URL}/compliance",
        params={"household_id": world.hid, "start": "2024-06-03", "end": "2024-06-03"},
        headers=world.headers(world.carer),
    )
    rows = {row["schedule_type"]: row for row in r.json()["regimens"]}
    assert rows["FIXED"]["expected"] == 2
    assert rows["FIXED"]["pending"] == 2
    assert rows["FIXED"]["adherence_rate"] is None
    assert rows["PRN"]["prn"] == 1
    assert rows["PRN"]["expected"] == 0


def test_missed_and_reconcile(client, world):
    two_days(client, world)
    params = {"household_id": world.hid, "start": "2024-06-01", "end": "2024-06-02"}
    headers = world.headers(world.carer)

    missed = client.get(f"{URL}/missed", params=params, headers=headers).json()
    assert [(m["local_day"], m["slot_index"]) for m in missed] == [("2024-06-02", 0), ("2024-06-02", 1)]
    assert missed[0]["target_instant"] == "2024-06-02T12:00:00+00:00"

    assert client.post(f"{URL}/missed/reconcile", params=params, headers=world.headers(world.vet)).status_code == 403

    first = client.post(f"{URL}/missed/reconcile", params=params, headers=headers).json()
    assert first["created"] == 2
    second = client.post(f"{URL}/missed/reconcile", params=params, headers=headers).json()
    assert second["created"] == 0

    history = client.get(ADMIN_URL, params={"household_id": world.hid}, headers=headers).json()
    assert sorted(a["status"] for a in history) == ["LATE", "MISSED", "MISSED", "ON_TIME"]

    (row,) = client.get(f"{URL}/compliance", params=params, headers=headers).json()["regimens"]
    assert (row["given"], row["missed"]) == (2, 2)


def test_inactive_regimens_are_not_reported(client, world):
    client.post(
        f"/api/v1/regimens/{world.regimen.regimen_id}/deactivate",
        params={"household_id": world.hid},
        headers=world.headers(world.owner),
    )
    r = client.get(
        f"{URL}/missed",
        params={"household_id": world.hid, "start": "2024-06-01", "end": "2024-06-02"},
        headers=world.headers(world.carer),
    )
    assert r.json() == []


def test_bad_range(client, world):
    r = client.get(
        f"{URL}/compliance",
        params={"household_id": world.hid, "start": "2024-06-05", "end": "2024-06-01"},
        headers=world.headers(world.carer),
    )
    assert r.status_code == 422


def test_status_endpoint(client):
    r = client.post(
        f"{URL}/status",
        json={"scheduled_for": "2024-06-03T12:00:00Z", "recorded_at": "2024-06-03T16:01:00Z", "cutoff_mins": 240},
    )
    assert r.status_code == 200
    assert r.json() == {"status": "LATE", "very_late_after": "2024-06-03T20:00:00+00:00"}

    prn = client.post(f"{URL}/status", json={"recorded_at": "2024-06-03T16:01:00Z"})
    assert prn.json() == {"status": "PRN"}


def test_interval_doses_move_the_expected_series(client, world, db):
    from datetime import datetime, timezone

    from vetmed.scheduling.clock import ensure_utc
    from vetmed.scheduling.schedule import RegimenSpec
    from vetmed.services import repository as repo

    milo = world.add_animal("Milo")
    q8h = world.add_regimen(animal=milo, schedule_type="INTERVAL", times_local=["08:00"], interval_hours=8)
    # first dose two hours after the 08:00 start, the next exactly eight hours later
    first = give(client, world, None, "2024-06-01T14:00:00Z", regimen=q8h, animal=milo)
    second = give(client, world, None, "2024-06-01T22:00:00Z", regimen=q8h, animal=milo)
    assert first["scheduled_for"] == "2024-06-01T12:00:00+00:00"
    assert second["scheduled_for"] == "2024-06-01T22:00:00+00:00"
    assert second["status"] == "ON_TIME"

    headers = world.headers(world.carer)
    day_one = {"household_id": world.hid, "animal_id": str(milo.animal_id), "start": "2024-06-01", "end": "2024-06-01"}
    (row,) = client.get(f"{URL}/compliance", params=day_one, headers=headers).json()["regimens"]
    assert {k: row[k] for k in ("expected", "given", "on_time", "missed")} == {"expected": 2, "given": 2, "on_time": 2, "missed": 0}
    assert client.get(f"{URL}/missed", params=day_one, headers=headers).json() == []
    assert client.post(f"{URL}/missed/reconcile", params=day_one, headers=headers).json()["created"] == 0

    two_days = {**day_one, "end": "2024-06-02"}
    missed = client.get(f"{URL}/missed", params=two_days, headers=headers).json()
    assert [m["target_instant"] for m in missed] == [
        "2024-06-02T06:00:00+00:00",
        "2024-06-02T14:00:00+00:00",
        "2024-06-02T22:00:00+00:00",
    ]
    assert client.post(f"{URL}/missed/reconcile", params=two_days, headers=headers).json()["created"] == 3
    assert client.post(f"{URL}/missed/reconcile", params=two_days, headers=headers).json()["created"] == 0

    (row,) = client.get(f"{URL}/compliance", params=two_days, headers=headers).json()["regimens"]
    assert (row["expected"], row["given"], row["missed"]) == (5, 2, 3)

    # reconciled rows are not doses, so the series still runs from the last one given
    anchors = repo.last_dose_anchors(db, [RegimenSpec.from_model(q8h)])
    assert ensure_utc(anchors[str(q8h.regimen_id)]) == datetime(2024, 6, 1, 22, 0, tzinfo=timezone.utc)
