from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from sqlalchemy import event, func, select

from fleet.api import map as mapAPI
from fleet.src import cleaner, external
from fleet.src.constants import PAYMENT_PROOFS
from fleet.src.db import AccessToken, Car, ORMbase, PaymentProof, Preorder
from fleet.src.enums import CarType
from fleet.src.functions import paymentProofURL
from fleet.src.minio import uploadFile

from conftest import PHONE, memoryEngine, pngBytes

SYNC = "/staff/sync"
MAP_TOKEN = "/staff/map/token"


@pytest.fixture
def externalEngine(monkeypatch):
    engine = memoryEngine()
    ORMbase.metadata.create_all(engine, tables=list(external.SYNC_TABLES.values()))
    monkeypatch.setattr(external, "getEngine", lambda: engine)
    yield engine
    engine.dispose()


def externalCount(engine, tableName):
    table = external.SYNC_TABLES[tableName]
    with engine.connect() as connection:
        return connection.execute(select(func.count()).select_from(table)).scalar()


@pytest.fixture
def cars(session):
    session.add_all(
        [
            Car(plate_number="KL01EV1", model="Nexon EV", car_type=CarType.ELECTRIC),
            Car(plate_number="KL02GA1", model="Innova", car_type=CarType.GAS),
        ]
    )
    session.commit()


def test_sync_copies_every_table(client, admin, cars, externalEngine):
    response = client.post(SYNC, headers=admin)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Sync completed"
    assert list(body["results"]) == list(external.SYNC_TABLES)
    assert body["results"]["car"] == {"synced": 2, "error": None}
    assert body["results"]["trip"] == {"synced": 0, "error": None}
    assert externalCount(externalEngine, "car") == 2


def test_sync_upserts_on_id(client, session, admin, cars, externalEngine):
    client.post(SYNC, headers=admin, data={"tables": ["car"]})
    car = session.query(Car).filter(Car.plate_number == "KL01EV1").one()
    car.model = "Nexon EV Max"
    session.commit()

    response = client.post(SYNC, headers=admin, data={"tables": ["car"]})
    assert response.json()["results"] == {"car": {"synced": 2, "error": None}}
    assert externalCount(externalEngine, "car") == 2

    table = external.SYNC_TABLES["car"]
    with externalEngine.connect() as connection:
        model = connection.execute(
            select(table.c.model).where(table.c.id == car.id)
        ).scalar()
    assert model == "Nexon EV Max"


def test_upsert_writes_rows_in_batches(session, externalEngine):
    session.add_all(
        [
            Car(plate_number=f"KL0{i}GA1", model="Innova", car_type=CarType.GAS)
            for i in range(1, 6)
        ]
    )
    session.commit()
    table = external.SYNC_TABLES["car"]
    rows = [dict(row) for row in session.execute(select(table)).mappings()]
    statements = []
    event.listen(
        externalEngine,
        "before_cursor_execute",
        lambda conn, cursor, statement, *args: statements.append(statement),
    )

    assert external.upsertRows(externalEngine, table, rows, batchSize=2) == 5
    assert len([s for s in statements if s.startswith("INSERT")]) == 3
    assert externalCount(externalEngine, "car") == 5


def test_sync_reports_unknown_tables(client, admin, cars, externalEngine):
    response = client.post(SYNC, headers=admin, data={"tables": ["car", "account"]})
    assert response.status_code == 200
    results = response.json()["results"]
    assert results["car"]["synced"] == 2
    assert results["account"] == {"synced": 0, "error": "Unknown table"}


def test_sync_refused_for_drivers(client, driver, cars, externalEngine):
    response = client.post(SYNC, headers=driver)
    assert response.status_code == 403
    for tableName in external.SYNC_TABLES:
        assert externalCount(externalEngine, tableName) == 0


def test_sync_without_external_database(client, admin, monkeypatch):
    monkeypatch.setattr(external, "getEngine", lambda: None)
    response = client.post(SYNC, headers=admin)
    assert response.status_code == 500
    assert response.json()["detail"] == "External database credentials not configured"


def test_map_token(client, driver, monkeypatch):
    monkeypatch.setattr(mapAPI, "MAPBOX_TOKEN", "")
    assert client.get(MAP_TOKEN, headers=driver).status_code == 503

    monkeypatch.setattr(mapAPI, "MAPBOX_TOKEN", "pk.test-token")
    response = client.get(MAP_TOKEN, headers=driver)
    assert response.status_code == 200
    assert response.json() == {"token": "pk.test-token"}


def test_cleaner_removes_expired_tokens(session, admin):
    token = session.query(AccessToken).one()
    token.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    session.commit()

    assert cleaner.removeExpiredTokens(session) == 1
    assert session.query(AccessToken).count() == 0


def test_cleaner_removes_orphan_payment_proofs(session, storage):
    old = datetime.now(timezone.utc) - timedelta(days=3)
    orphan = PaymentProof(
        file_name="a.png", file_type="image/png", file_size=1, created_on=old
    )
    attached = PaymentProof(
        file_name="b.png", file_type="image/png", file_size=1, created_on=old
    )
    fresh = PaymentProof(file_name="c.png", file_type="image/png", file_size=1)
    session.add_all([orphan, attached, fresh])
    session.flush()
    for proof in [orphan, attached, fresh]:
        data = pngBytes()
        uploadFile(PAYMENT_PROOFS, str(proof.id), len(data), BytesIO(data))
    session.add(
        Preorder(
            customer_name="Meera",
            customer_phone=PHONE,
            scheduled_date=old.date(),
            scheduled_time=old.time(),
            payment_proof_url=paymentProofURL(attached.id),
        )
    )
    session.commit()
    orphanID = orphan.id

    assert cleaner.removeOrphanPaymentProofs(session) == 1
    remaining = {p.id for p in session.query(PaymentProof).all()}
    assert remaining == {attached.id, fresh.id}
    assert str(orphanID) not in storage.buckets[PAYMENT_PROOFS]
    assert str(attached.id) in storage.buckets[PAYMENT_PROOFS]
