# tests/conftest.py
import os
import tempfile

# point the engine at a throwaway sqlite file before cepetdeal.db is imported
_TMP_DIR = tempfile.mkdtemp(prefix="cepetdeal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"

import pytest
from fastapi.testclient import TestClient

from cepetdeal import crud
from cepetdeal.db import Base, SessionLocal, engine
from cepetdeal.main import app
from cepetdeal.models import (
    Brand, CarModel, Condition, Dealer, ListingStatus, Role, Transmission, FuelType, BodyType, User,
)


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth():
    def _headers(user):
        return {"X-User-Id": str(user.id)}

    return _headers


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.SELLER, **kwargs):
        counter["n"] += 1
        data = {
            "email": f"user{counter['n']}@example.com",
            "name": f"User {counter['n']}",
            "role": role,
        }
        data.update(kwargs)
        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def seller(make_user):
    return make_user(Role.SELLER, name="Budi Seller")


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, name="Admin")


@pytest.fixture
def buyer(make_user):
    return make_user(Role.BUYER, name="Siti Buyer")


@pytest.fixture
def catalogue(db):
    toyota = Brand(name="Toyota", slug="toyota")
    honda = Brand(name="Honda", slug="honda")
    db.add_all([toyota, honda])
    db.flush()
    db.add_all([
        CarModel(brand_id=toyota.id, name="Avanza", slug="avanza"),
        CarModel(brand_id=toyota.id, name="Innova", slug="innova"),
        CarModel(brand_id=honda.id, name="Jazz", slug="jazz"),
    ])
    db.commit()
    return {"toyota": toyota, "honda": honda}


@pytest.fixture
def make_listing(db, catalogue):
    counter = {"n": 0}

    def _make(owner, status=ListingStatus.ACTIVE, brand="toyota", **kwargs):
        counter["n"] += 1
        b = catalogue[brand]
        data = {
            "title": f"Mobil {counter['n']}",
            "slug": f"mobil-{counter['n']}",
            "brand_id": b.id,
            "model_id": b.models[0].id,
            "user_id": owner.id,
            "year": 2019,
            "condition": Condition.USED,
            "transmission": Transmission.AUTOMATIC,
            "fuel_type": FuelType.PETROL,
            "body_type": BodyType.MPV,
            "color": "Hitam",
            "mileage": 45000,
            "price": 300_000_000,
            "description": "Mulus, pajak hidup",
            "location": "Jakarta Selatan",
            "images": ["https://img/1.jpg", "https://img/2.jpg", "https://img/3.jpg"],
            "status": status,
        }
        data.update(kwargs)
        return crud.create_listing(db, data)

    return _make


@pytest.fixture
def dealer_profile(db):
    def _make(user, **kwargs):
        data = {
            "user_id": user.id,
            "company_name": "Auto Prima Motor",
            "slug": f"auto-prima-motor-{user.id}",
            "address": "Jl. Fatmawati No. 10",
            "city": "Jakarta Selatan",
        }
        data.update(kwargs)
        dealer = Dealer(**data)
        db.add(dealer)
        db.commit()
        db.refresh(dealer)
        return dealer

    return _make
