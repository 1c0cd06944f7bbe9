import os

# must be set before vetmed.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vetmed.api.v1.routes.deps import get_clock, get_db
from vetmed.core import cache
from vetmed.db.base import Base
from vetmed.db.models import (
    Animal,
    Household,
    HouseholdMember,
    InventoryItem,
    Medication,
    Regimen,
    User,
)
from vetmed.main import app
from vetmed.scheduling.clock import FixedClock

# 08:05 in New York (EDT)
NOW = datetime(2024, 6, 3, 12, 5, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture()
def client(db, clock):
    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _clear_due_cache():
    cache.due_boards.clear()
    yield
    cache.due_boards.clear()


class World:
    """One New York household: owner, two caregivers, a read-only vet, a dog on Carprofen 08:00/20:00."""

    def __init__(self, db):
        self.db = db
        self.owner = User(email="owner@example.com", full_name="Olive Owner")
        self.carer = User(email="carer@example.com", full_name="Casey Carer")
        self.carer2 = User(email="carer2@example.com", full_name="Sam Second")
        self.vet = User(email="vet@example.com", full_name="Dr Vera Vet")
        self.outsider = User(email="outsider@example.com", full_name="Otto Outsider")
        db.add_all([self.owner, self.carer, self.carer2, self.vet, self.outsider])
        db.flush()

        self.household = Household(name="Test household", timezone="America/New_York")
        db.add(self.household)
        db.flush()
        for user, role in (
            (self.owner, "OWNER"),
            (self.carer, "CAREGIVER"),
            (self.carer2, "CAREGIVER"),
            (self.vet, "VETREADONLY"),
        ):
            db.add(HouseholdMember(household_id=self.household.household_id, user_id=user.user_id, role=role))

        self.animal = Animal(household_id=self.household.household_id, name="Rex", species="Dog")
        self.medication = Medication(generic_name="Carprofen", brand_name="Rimadyl", route="ORAL", form="TABLET")
        db.add_all([self.animal, self.medication])
        db.flush()

        self.regimen = self.add_regimen(times_local=["08:00", "20:00"], name="Carprofen BID", dose="1 tablet")
        db.commit()

    @property
    def hid(self) -> str:
        return str(self.household.household_id)

    @staticmethod
    def headers(user) -> dict:
        return {"X-User-Id": str(user.user_id)}

    def add_animal(self, name: str, timezone: str | None = None, household=None) -> Animal:
        household = household or self.household
        animal = Animal(household_id=household.household_id, name=name, species="Cat", timezone=timezone)
        self.db.add(animal)
        self.db.commit()
        return animal

    def add_medication(self, generic_name: str) -> Medication:
        med = Medication(generic_name=generic_name, route="ORAL", form="TABLET")
        self.db.add(med)
        self.db.commit()
        return med

    def add_regimen(self, animal=None, medication=None, **kw) -> Regimen:
        fields = dict(
            animal_id=(animal or self.animal).animal_id,
            medication_id=(medication or self.medication).medication_id,
            schedule_type="FIXED",
            times_local=["08:00"],
            start_date=date(2024, 6, 1),
            cutoff_mins=240,
        )
        fields.update(kw)
        regimen = Regimen(**fields)
        self.db.add(regimen)
        self.db.commit()
        return regimen

    def add_inventory(self, expires_on: date, medication=None, units: int = 10) -> InventoryItem:
        item = InventoryItem(
            household_id=self.household.household_id,
            medication_id=(medication or self.medication).medication_id,
            lot="LOT-0001AB",
            expires_on=expires_on,
            units_remaining=units,
            in_use=True,
            assigned_animal_id=self.animal.animal_id,
        )
        self.db.add(item)
        self.db.commit()
        return item

    def dose_body(self, regimen=None, animal=None, **kw) -> dict:
        body = {
            "household_id": self.hid,
            "animal_id": str((animal or self.animal).animal_id),
            "regimen_id": str((regimen or self.regimen).regimen_id),
        }
        body.update(kw)
        return body


@pytest.fixture()
def world(db):
    return World(db)
