import uuid
from datetime import timedelta

import pytest

from vetmed.db.models import Administration, CosignRequest

URL = "/api/v1/administrations"
COSIGN = "/api/v1/cosign-requests"


@pytest.fixture()
def pending_dose(client, world):
    insulin = world.add_regimen(times_local=["08:00"], high_risk=True, name="Insulin")
    r = client.post(URL, json=world.dose_body(regimen=insulin), headers=world.headers(world.carer))
    assert r.status_code == 201
    return r.json()["administration"]


def ask(client, world, admin_id, cosigner, requester=None):
    return client.post(
        f"{URL}/{admin_id}/cosign-requests",
        json={"household_id": world.hid, "cosigner_id": str(cosigner.user_id)},
        headers=world.headers(requester or world.carer),
    )


def test_request_and_approve(client, world, db, pending_dose):
    r = ask(client, world, pending_dose["id"], world.carer2)
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "pending"
    assert req["expires_at"] == "2024-06-04T12:05:00+00:00"

    # asking again returns the open request
    assert ask(client, world, pending_dose["id"], world.carer2).json()["id"] == req["id"]

    mine = client.get(COSIGN, params={"household_id": world.hid}, headers=world.headers(world.carer2)).json()
    assert [x["id"] for x in mine] == [req["id"]]
    assert client.get(COSIGN, params={"household_id": world.hid}, headers=world.headers(world.carer)).json() == []

    assert client.post(f"{COSIGN}/{req['id']}/approve", json={}, headers=world.headers(world.carer)).status_code == 403

    ok = client.post(f"{COSIGN}/{req['id']}/approve", json={"signature": "SS"}, headers=world.headers(world.carer2))
    assert ok.status_code == 200
    assert ok.json()["status"] == "approved"

    admin = db.get(Administration, uuid.UUID(req["administration_id"]))
    db.refresh(admin)
    assert admin.cosign_state == "APPROVED"
    assert admin.cosign_user_id == world.carer2.user_id

    assert client.post(f"{COSIGN}/{req['id']}/approve", json={}, headers=world.headers(world.carer2)).status_code == 409
    assert ask(client, world, pending_dose["id"], world.owner).status_code == 409


def test_reject(client, world, db, pending_dose):
    req = ask(client, world, pending_dose["id"], world.owner).json()
    r = client.post(f"{COSIGN}/{req['id']}/reject", json={"reason": "dose looked wrong"}, headers=world.headers(world.owner))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["rejection_reason"] == "dose looked wrong"

    admin = db.get(Administration, uuid.UUID(req["administration_id"]))
    db.refresh(admin)
    assert admin.cosign_state == "REJECTED"


def test_cosigner_must_be_another_writer(client, world, pending_dose):
    assert ask(client, world, pending_dose["id"], world.carer).status_code == 422
    assert ask(client, world, pending_dose["id"], world.vet).status_code == 422
    assert ask(client, world, pending_dose["id"], world.outsider).status_code == 422


def test_request_expires(client, world, clock, db, pending_dose):
    req = ask(client, world, pending_dose["id"], world.carer2).json()
    clock.advance(timedelta(hours=25))

    r = client.post(f"{COSIGN}/{req['id']}/approve", json={}, headers=world.headers(world.carer2))
    assert r.status_code == 409

    row = db.get(CosignRequest, uuid.UUID(req["id"]))
    db.refresh(row)
    assert row.status == "expired"
    assert client.get(COSIGN, params={"household_id": world.hid}, headers=world.headers(world.carer2)).json() == []


def test_unknown_request(client, world):
    r = client.post(f"{COSIGN}/00000000-0000-0000-0000-000000000000/approve", json={}, headers=world.headers(world.carer2))
    assert r.status_code == 404
