"""Shared test fixtures and configuration.

Points the app at a throwaway database before any homebase import, then
swaps every request onto a fresh in-memory SQLite session per test.
"""

import os
import tempfile

# Patch env vars BEFORE any homebase imports
os.environ.setdefault("HOMEBASE_DB_PATH", os.path.join(tempfile.gettempdir(), "homebase-test.db"))
os.environ.setdefault("HOMEBASE_ENV", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from homebase import models
from homebase.database import Base, get_db
from homebase.main import app

ALICE = {"X-User-Id": "alice", "X-User-Email": "alice@example.com", "X-User-Name": "Alice"}
BOB = {"X-User-Id": "bob", "X-User-Email": "bob@example.com", "X-User-Name": "Bob"}
CAROL = {"X-User-Id": "carol", "X-User-Email": "carol@example.com", "X-User-Name": "Carol"}
MALLORY = {"X-User-Id": "mallory", "X-User-Email": "mallory@example.com", "X-User-Name": "Mallory"}


@pytest.fixture
def db():
    """In-memory database shared by the test and every request it makes."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_profile(db, user_id, email, full_name):
    profile = models.UserProfile(user_id=user_id, email=email, full_name=full_name)
    db.add(profile)
    db.commit()
    return profile


def add_member(db, family_id, user_id, email, role=models.Role.CHILD):
    member = models.FamilyMember(
        family_id=family_id, user_id=user_id, email=email, role=role.value, color="#34A853"
    )
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def family(client, db):
    """Alice's family with Bob and Carol as children. Mallory exists but is an outsider."""
    response = client.post("/api/families", json={"name": "The Smiths"}, headers=ALICE)
    assert response.status_code == 201
    family_id = response.json()["id"]

    for who in (BOB, CAROL):
        add_profile(db, who["X-User-Id"], who["X-User-Email"], who["X-User-Name"])
        add_member(db, family_id, who["X-User-Id"], who["X-User-Email"])
    add_profile(db, "mallory", "mallory@example.com", "Mallory")

    return db.query(models.Family).filter(models.Family.id == family_id).one()
