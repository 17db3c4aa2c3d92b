from datetime import datetime, timedelta, timezone
from io import BytesIO

import fakeredis
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from fleet.main import app
from fleet.src import argon2, db, minio, openobserve, redis
from fleet.src.constants import PAYMENT_PROOFS, PAYMENT_QR_CODES
from fleet.src.db import AccessToken, Account, ORMbase, UserRole, sessionMaker
from fleet.src.enums import Role


PHONE = "+919496801157"
PASSWORD = "password"


def memoryEngine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enableForeignKeys(dbapiConnection, connectionRecord):
        cursor = dbapiConnection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


class MemoryObject:
    def __init__(self, name):
        self.object_name = name


class MemoryResponse:
    def __init__(self, data):
        self.data = data

    def close(self):
        pass

    def release_conn(self):
        pass


class MemoryMinio:
    """In-memory stand in for the MinIO client, buckets map names to bytes."""

    def __init__(self):
        self.buckets = {}

    def bucket_exists(self, bucketName):
        return bucketName in self.buckets

    def make_bucket(self, bucketName):
        self.buckets[bucketName] = {}

    def remove_bucket(self, bucketName):
        del self.buckets[bucketName]

    def list_objects(self, bucketName):
        return [MemoryObject(name) for name in self.buckets[bucketName]]

    def put_object(self, bucketName, objectName, data, length, content_type=None):
        self.buckets[bucketName][objectName] = data.read(length)

    def get_object(self, bucketName, objectName):
        return MemoryResponse(self.buckets[bucketName][objectName])

    def remove_object(self, bucketName, objectName):
        self.buckets[bucketName].pop(objectName, None)


@pytest.fixture
def engine(monkeypatch):
    engine = memoryEngine()
    monkeypatch.setattr(db, "engine", engine)
    sessionMaker.configure(bind=engine)
    ORMbase.metadata.create_all(engine)
    yield engine
    ORMbase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def storage(monkeypatch):
    client = MemoryMinio()
    client.make_bucket(PAYMENT_PROOFS)
    client.make_bucket(PAYMENT_QR_CODES)
    monkeypatch.setattr(minio, "client", client)
    return client


@pytest.fixture
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(openobserve, "logEvent", sent.append)
    return sent


@pytest.fixture
def client(engine, storage, events, monkeypatch):
    server = fakeredis.FakeServer()
    monkeypatch.setattr(
        redis, "redisClient", fakeredis.FakeRedis(server=server, decode_responses=True)
    )
    with TestClient(app) as client:
        yield client


def createStaff(session, email: str, role: Role) -> dict:
    """Account, role row and a valid token, returned as request headers."""
    account = Account(email=email, password=argon2.makePassword(PASSWORD))
    session.add(account)
    session.flush()
    session.add(UserRole(user_id=account.id, role=role, email=email))
    token = AccessToken(
        account_id=account.id,
        expires_in=3600,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    session.add(token)
    session.commit()
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture
def admin(session):
    return createStaff(session, "admin@highwayfleet.in", Role.ADMIN)


@pytest.fixture
def driver(session):
    return createStaff(session, "driver@highwayfleet.in", Role.DRIVER)


def pngBytes(size=(40, 20)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, "PNG")
    return buffer.getvalue()
