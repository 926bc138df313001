# tests/conftest.py

import os

# Settings are read once at import time; configure before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTH_JWKS_URL", "http://auth.test/.well-known/jwks.json")
os.environ.setdefault("RL_ENABLED", "false")
os.environ.setdefault("PUBLISH_CHECKINS", "false")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_SECRET", "rzp_test_secret")
os.environ.setdefault("DASHBOARD_BASE_URL", "http://dashboard.test")

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from event_checkin.models import AccessGrant, Base, Event, Registration
from event_checkin.services.tickets import make_ticket_code

OWNER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
STRANGER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b2")


# --- Database ---

@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkin.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def event(db):
    ev = Event(id=uuid.uuid4(), title="Spring Gala 2026", created_by=OWNER_ID, location="Hall A")
    db.add(ev)
    await db.commit()
    return ev


@pytest_asyncio.fixture
async def other_event(db):
    ev = Event(id=uuid.uuid4(), title="Autumn Meetup", created_by=STRANGER_ID)
    db.add(ev)
    await db.commit()
    return ev


@pytest.fixture
def add_registration(db):
    """Factory: add_registration(event, guest=False, **fields) -> Registration."""

    async def _add(event, *, guest=False, **fields):
        values = {
            "id": uuid.uuid4(),
            "event_id": event.id,
            "user_id": None if guest else uuid.uuid4(),
            "name": "Asha Rao",
            "email": "asha@example.com",
            "ticket_code": make_ticket_code(),
        }
        values.update(fields)
        reg = Registration(**values)
        db.add(reg)
        await db.commit()
        return reg

    return _add


@pytest.fixture
def add_grant(db):
    """Factory: add_grant(event, expires_in=timedelta(hours=1)) -> AccessGrant."""

    async def _add(event, *, expires_in=timedelta(hours=1), token=None):
        grant = AccessGrant(
            token=token or f"grant-{uuid.uuid4().hex}",
            event_id=event.id,
            grantee_email="door@example.com",
            granted_by=OWNER_ID,
            expires_at=datetime.now(timezone.utc) + expires_in,
        )
        db.add(grant)
        await db.commit()
        return grant

    return _add


# --- Auth ---

@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_token(rsa_key):
    def _make(sub=OWNER_ID, role="user", issuer="authentication-svc"):
        claims = {"sub": str(sub), "role": role}
        if issuer is not None:
            claims["iss"] = issuer
        return jwt.encode(claims, rsa_key, algorithm="RS256")
    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(sub=OWNER_ID, role="user"):
        return {"Authorization": f"Bearer {make_token(sub, role)}"}
    return _header


# --- API client ---

@pytest_asyncio.fixture
async def client(session_maker, rsa_key, monkeypatch):
    from event_checkin.main import app
    from event_checkin.deps import get_db

    async def _get_db():
        async with session_maker() as session:
            yield session

    async def _signing_key():
        return rsa_key.public_key()

    monkeypatch.setattr("event_checkin.deps.get_signing_key", _signing_key)
    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
