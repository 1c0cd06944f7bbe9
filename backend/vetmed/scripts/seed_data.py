"""Module: seed_data."""

from faker import Faker
import random
import string
from datetime import date, timedelta

from sqlalchemy import delete

from vetmed.db.init_db import init_db
from vetmed.db.session import SessionLocal

from vetmed.db.models.user import User
from vetmed.db.models.household import Household
from vetmed.db.models.household_member import HouseholdMember
from vetmed.db.models.animal import Animal
from vetmed.db.models.medication import Medication
from vetmed.db.models.inventory_item import InventoryItem
from vetmed.db.models.regimen import Regimen
from vetmed.db.models.administration import Administration
from vetmed.db.models.cosign_request import CosignRequest
from vetmed.db.models.pending_mutation import PendingMutation
from vetmed.db.models.audit_log import AuditLog

fake = Faker()

HOUSEHOLD_ZONES = ["America/New_York", "America/Los_Angeles", "Europe/Amsterdam", "Australia/Sydney"]

DOG_BREEDS = ["Labrador Retriever", "Border Collie", "Beagle", "Dachshund", "Boxer", "Poodle"]
CAT_BREEDS = ["Domestic Shorthair", "Maine Coon", "Ragdoll", "Siamese", "Bengal"]

# generic, brand, route, form, strength
MEDICATION_POOL = [
    ("Carprofen", "Rimadyl", "ORAL", "TABLET", "25mg"),
    ("Prednisolone", None, "ORAL", "TABLET", "5mg"),
    ("Amoxicillin", "Clavamox", "ORAL", "TABLET", "250mg"),
    ("Gabapentin", None, "ORAL", "CAPSULE", "100mg"),
    ("Oclacitinib", "Apoquel", "ORAL", "TABLET", "16mg"),
    ("Insulin glargine", "Lantus", "SUBCUTANEOUS", "INJECTION", "100U/ml"),
    ("Methimazole", "Felimazole", "ORAL", "TABLET", "2.5mg"),
    ("Maropitant", "Cerenia", "ORAL", "TABLET", "16mg"),
]
HIGH_RISK = {"Insulin glargine"}

# schedule_type, times_local, interval_hours
SCHEDULES = [
    ("FIXED", ["08:00"], None),
    ("FIXED", ["08:00", "20:00"], None),
    ("FIXED", ["07:00", "15:00", "23:00"], None),
    ("INTERVAL", ["06:00"], 8),
    ("PRN", [], None),
]


def reset_db(session) -> None:
    # Children first so foreign keys never dangle.
    for model in (
        AuditLog,
        PendingMutation,
        CosignRequest,
        Administration,
        Regimen,
        InventoryItem,
        Animal,
        HouseholdMember,
        Household,
        Medication,
        User,
    ):
        session.execute(delete(model))
    session.commit()


def seed_medications(session) -> list[Medication]:
    meds = [
        Medication(generic_name=g, brand_name=b, route=r, form=f, strength=s)
        for g, b, r, f, s in MEDICATION_POOL
    ]
    session.add_all(meds)
    session.commit()
    return meds


def seed_households(session, n: int = 10) -> list[tuple[Household, list[User]]]:
    # Each household gets an owner, one or two caregivers and sometimes a read-only vet.
    out = []
    for _ in range(n):
        household = Household(name=f"{fake.last_name()} household", timezone=random.choice(HOUSEHOLD_ZONES))
        session.add(household)
        session.flush()

        roles = ["OWNER", "CAREGIVER"] + (["CAREGIVER"] if random.random() < 0.5 else [])
        if random.random() < 0.3:
            roles.append("VETREADONLY")

        members = []
        for role in roles:
            user = User(email=fake.unique.email(), full_name=fake.name())
            session.add(user)
            session.flush()
            session.add(HouseholdMember(household_id=household.household_id, user_id=user.user_id, role=role))
            members.append(user)
        out.append((household, members))
    session.commit()
    return out


def seed_animals(session, households: list[Household], per_household: int = 3) -> list[Animal]:
    animals: list[Animal] = []
    for household in households:
        for _ in range(random.randint(1, per_household)):
            species = random.choice(["Dog", "Cat"])
            animals.append(Animal(
                household_id=household.household_id,
                name=fake.first_name(),
                species=species,
                breed=random.choice(DOG_BREEDS if species == "Dog" else CAT_BREEDS),
                sex=random.choice(["Male", "Female"]),
                microchip_number="".join(random.choice(string.digits) for _ in range(15)),
                # most animals follow the household zone
                timezone=None if random.random() < 0.8 else random.choice(HOUSEHOLD_ZONES),
                date_of_birth=fake.date_between(start_date="-14y", end_date="-6m"),
                weight_kg=round(random.uniform(2.5, 40.0), 1),
            ))
    session.add_all(animals)
    session.commit()
    return animals


def seed_regimens_and_inventory(session, animals: list[Animal], meds: list[Medication]) -> tuple[int, int]:
    regimens: list[Regimen] = []
    items: list[InventoryItem] = []
    today = date.today()
    for animal in animals:
        for med in random.sample(meds, k=random.randint(1, 3)):
            kind, times, interval = random.choice(SCHEDULES)
            regimens.append(Regimen(
                animal_id=animal.animal_id,
                medication_id=med.medication_id,
                name=f"{med.generic_name} for {animal.name}",
                schedule_type=kind,
                times_local=list(times),
                interval_hours=interval,
                start_date=fake.date_between(start_date="-30d", end_date="today"),
                end_date=today + timedelta(days=random.randint(7, 90)) if random.random() < 0.6 else None,
                prn_reason="pain or nausea" if kind == "PRN" else None,
                max_daily_doses=2 if kind == "PRN" else None,
                cutoff_mins=random.choice([60, 120, 240]),
                high_risk=med.generic_name in HIGH_RISK,
                requires_cosign=med.generic_name in HIGH_RISK,
                active=random.random() < 0.9,
                dose=f"1 {med.form.lower()}",
                route=med.route,
            ))
            items.append(InventoryItem(
                household_id=animal.household_id,
                medication_id=med.medication_id,
                lot=fake.bothify(text="LOT-####??").upper(),
                expires_on=today + timedelta(days=random.randint(-10, 365)),
                units_remaining=random.randint(0, 60),
                in_use=True,
                assigned_animal_id=animal.animal_id,
            ))
    session.add_all(regimens)
    session.add_all(items)
    session.commit()
    return len(regimens), len(items)


if __name__ == "__main__":
    # Full reseed: python -m vetmed.scripts.seed_data (from backend/)
    init_db()
    session = SessionLocal()
    try:
        print("Resetting tables...")
        reset_db(session)

        print("Seeding medication catalog...")
        meds = seed_medications(session)

        print("Seeding households (10)...")
        households = seed_households(session, 10)

        print("Seeding animals...")
        animals = seed_animals(session, [h for h, _ in households])

        print("Seeding regimens + inventory...")
        regimen_n, item_n = seed_regimens_and_inventory(session, animals, meds)

        print(
            f"Done. households={len(households)}, animals={len(animals)}, medications={len(meds)}, "
            f"regimens={regimen_n}, inventory_items={item_n}"
        )
        for household, members in households[:3]:
            print(f"  household {household.household_id} ({household.timezone}) X-User-Id={members[0].user_id}")
    finally:
        session.close()
