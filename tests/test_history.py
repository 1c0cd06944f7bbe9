from datetime import timedelta

from sqlalchemy import select

from vetmed.db.models import Administration, AuditLog

URL = "/api/v1/administrations"


def record(client, world, user=None, **kw):
    r = client.post(URL, json=world.dose_body(**kw), headers=world.headers(user or world.carer))
    assert r.status_code == 201
    return r.json()["administration"]


def test_correction_inside_edit_window(client, world, clock, db):
    admin = record(client, world)
    clock.advance(timedelta(minutes=5))

    r = client.patch(
        f"{URL}/{admin['id']}",
        params={"household_id": world.hid},
        json={"notes": "ate it in cheese", "condition_tags": ["appetite_ok"]},
        headers=world.headers(world.carer),
    )
    assert r.status_code == 200
    assert r.json()["notes"] == "ate it in cheese"
    assert r.json()["condition_tags"] == ["appetite_ok"]

    entry = db.execute(select(AuditLog).where(AuditLog.action == "administration.corrected")).scalar_one()
    assert entry.meta["before"]["notes"] is None


def test_correction_after_window_conflicts(client, world, clock):
    admin = record(client, world)
    clock.advance(timedelta(minutes=11))
    r = client.patch(
        f"{URL}/{admin['id']}",
        params={"household_id": world.hid},
        json={"notes": "too late"},
        headers=world.headers(world.carer),
    )
    assert r.status_code == 409


def test_only_recording_caregiver_corrects(client, world):
    admin = record(client, world)
    r = client.patch(
        f"{URL}/{admin['id']}",
        params={"household_id": world.hid},
        json={"notes": "not mine"},
        headers=world.headers(world.carer2),
    )
    assert r.status_code == 403


def test_empty_correction_rejected(client, world):
    admin = record(client, world)
    r = client.patch(f"{URL}/{admin['id']}", params={"household_id": world.hid}, json={}, headers=world.headers(world.carer))
    assert r.status_code == 422


def test_moving_recorded_at_recomputes_status(client, world):
    admin = record(client, world)
    assert admin["status"] == "ON_TIME"
    r = client.patch(
        f"{URL}/{admin['id']}",
        params={"household_id": world.hid},
        json={"recorded_at": "2024-06-03T16:30:00Z"},
        headers=world.headers(world.carer),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "LATE"


def test_soft_delete_frees_the_slot(client, world, db):
    admin = record(client, world)
    params = {"household_id": world.hid, "reason": "wrong dog"}

    r = client.delete(f"{URL}/{admin['id']}", params=params, headers=world.headers(world.carer))
    assert r.status_code == 200
    assert r.json()["deleted_at"] is not None

    listed = client.get(URL, params={"household_id": world.hid}, headers=world.headers(world.carer)).json()
    assert listed == []
    everything = client.get(
        URL, params={"household_id": world.hid, "include_deleted": "true"}, headers=world.headers(world.carer)
    ).json()
    assert [a["id"] for a in everything] == [admin["id"]]

    due = client.get("/api/v1/regimens/due", params={"household_id": world.hid}, headers=world.headers(world.carer)).json()
    assert len(due["due"]) == 1

    again = record(client, world)
    assert again["id"] != admin["id"]
    assert again["idempotency_key"] == admin["idempotency_key"]
    assert len(db.execute(select(Administration)).scalars().all()) == 2


def test_replaying_a_deleted_client_key_does_not_restore_it(client, world, db):
    admin = record(client, world, idempotency_key="cmd-dose-0001")
    params = {"household_id": world.hid, "reason": "entered twice"}
    assert client.delete(f"{URL}/{admin['id']}", params=params, headers=world.headers(world.carer)).status_code == 200

    r = client.post(URL, json=world.dose_body(idempotency_key="cmd-dose-0001"), headers=world.headers(world.carer))
    assert r.status_code == 200
    assert r.json()["created"] is False
    assert r.json()["administration"]["id"] == admin["id"]
    assert r.json()["administration"]["deleted_at"] is not None

    command = {"type": "administration.record", "idempotency_key": "cmd-dose-0001", "payload": world.dose_body()}
    (result,) = client.post("/api/v1/sync/commands", json={"commands": [command]}, headers=world.headers(world.carer)).json()["results"]
    assert result["ok"] is True and result["result"]["created"] is False

    assert len(db.execute(select(Administration)).scalars().all()) == 1


def test_delete_requires_recorder_or_admin(client, world):
    admin = record(client, world)
    params = {"household_id": world.hid, "reason": "duplicate entry"}
    assert client.delete(f"{URL}/{admin['id']}", params=params, headers=world.headers(world.carer2)).status_code == 403
    assert client.delete(f"{URL}/{admin['id']}", params=params, headers=world.headers(world.owner)).status_code == 200
    # already gone
    assert client.delete(f"{URL}/{admin['id']}", params=params, headers=world.headers(world.owner)).status_code == 404


def test_delete_needs_reason(client, world):
    admin = record(client, world)
    r = client.delete(f"{URL}/{admin['id']}", params={"household_id": world.hid, "reason": "   "}, headers=world.headers(world.carer))
    assert r.status_code == 422
