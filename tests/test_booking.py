from io import BytesIO

import pytest
from PIL import Image

from fleet.src.constants import PAYMENT_PROOFS, PAYMENT_QR_CODES
from fleet.src.db import PaymentProof, Preorder, Route
from fleet.src.enums import PreorderStatus

from conftest import PHONE, pngBytes

BOOKING = "/public/booking"
PROOF = "/public/booking/payment_proof"
PAYMENT_METHOD = "/staff/fleet/payment_method"


@pytest.fixture
def routeID(session):
    route = Route(
        name="TVM -> COK",
        origin="Trivandrum",
        destination="Kochi",
        distance_km=205,
        base_price=4500,
    )
    session.add(route)
    session.commit()
    return route.id


def uploadProof(client):
    response = client.post(
        PROOF, files={"file": ("receipt.png", pngBytes(), "image/png")}
    )
    assert response.status_code == 201
    return response.json()


def bookingData(routeID, proofID, **overrides):
    data = {
        "customer_name": "Meera",
        "customer_phone": PHONE,
        "customer_address": "Edava, Thiruvananthapuram",
        "route_id": routeID,
        "scheduled_date": "2026-10-20",
        "scheduled_time": "09:30",
        "payment_proof_id": proofID,
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


def test_payment_proof_is_stored(client, storage):
    proof = uploadProof(client)
    assert proof["file_name"] == "receipt.png"
    assert proof["file_type"] == "image/png"
    assert str(proof["id"]) in storage.buckets[PAYMENT_PROOFS]


def test_payment_proof_must_be_an_image(client, session):
    response = client.post(
        PROOF, files={"file": ("notes.txt", b"not an image", "text/plain")}
    )
    assert response.status_code == 406
    assert session.query(PaymentProof).count() == 0


@pytest.mark.parametrize(
    "fileName, content, contentType",
    [
        ("receipt.svg", b"<svg onload=alert(1)></svg>", "image/svg+xml"),
        ("receipt.png", b"not an image", "image/png"),
        ("receipt.png", pngBytes()[:40], "image/png"),
    ],
)
def test_payment_proof_content_is_decoded(
    client, session, storage, fileName, content, contentType
):
    response = client.post(PROOF, files={"file": (fileName, content, contentType)})
    assert response.status_code == 406
    assert session.query(PaymentProof).count() == 0
    assert storage.buckets[PAYMENT_PROOFS] == {}


def test_payment_proof_type_is_detected(client, admin, storage):
    response = client.post(
        PROOF, files={"file": ("receipt.jpg", pngBytes(), "image/jpg")}
    )
    assert response.status_code == 201
    proof = response.json()
    assert proof["file_type"] == "image/png"

    download = client.get(
        f"/staff/fleet/preorder/payment_proof/{proof['id']}",
        headers=admin,
        params={"width": 20, "height": 20},
    )
    assert download.status_code == 200
    assert download.headers["content-type"] == "image/png"
    resized = Image.open(BytesIO(download.content))
    assert resized.format == "PNG"
    assert resized.size == (20, 10)


def test_booking_creates_pending_preorder(client, session, routeID, admin, events):
    proof = uploadProof(client)
    response = client.post(BOOKING, data=bookingData(routeID, proof["id"]))
    assert response.status_code == 201
    preorder = response.json()
    assert preorder["status"] == PreorderStatus.PENDING
    assert preorder["payment_proof_url"].endswith(f"/payment_proof/{proof['id']}")
    assert session.query(Preorder).count() == 1
    assert events[-1]["_app_id"] == 2
    assert "_account_id" not in events[-1]

    download = client.get(
        f"/staff/fleet/preorder/payment_proof/{proof['id']}", headers=admin
    )
    assert download.status_code == 200
    assert download.headers["content-type"] == "image/png"
    assert download.content == pngBytes()


@pytest.mark.parametrize(
    "overrides",
    [
        {"customer_name": None},
        {"customer_name": "   "},
        {"customer_phone": None},
        {"customer_phone": "12"},
        {"route_id": None},
        {"scheduled_date": None},
        {"scheduled_time": None},
        {"payment_proof_id": None},
    ],
)
def test_booking_rejects_missing_fields(client, session, routeID, overrides):
    proof = uploadProof(client)
    response = client.post(BOOKING, data=bookingData(routeID, proof["id"], **overrides))
    assert response.status_code == 422
    assert session.query(Preorder).count() == 0


def test_booking_requires_uploaded_proof(client, session, routeID):
    response = client.post(BOOKING, data=bookingData(routeID, 999))
    assert response.status_code == 404
    assert session.query(Preorder).count() == 0


def test_booking_requires_known_route(client, session, routeID):
    proof = uploadProof(client)
    response = client.post(BOOKING, data=bookingData(routeID + 1, proof["id"]))
    assert response.status_code == 404
    assert session.query(Preorder).count() == 0


def test_qr_code_must_be_an_image(client, admin, storage):
    method = client.post(PAYMENT_METHOD, headers=admin, data={"name": "UPI"}).json()
    response = client.post(
        f"{PAYMENT_METHOD}/qr_code",
        headers=admin,
        data={"id": method["id"]},
        files={"file": ("qr.png", b"<html></html>", "image/png")},
    )
    assert response.status_code == 406
    assert storage.buckets[PAYMENT_QR_CODES] == {}


def test_qr_code_published_for_active_methods(client, admin, storage):
    method = client.post(PAYMENT_METHOD, headers=admin, data={"name": "UPI"}).json()
    response = client.post(
        f"{PAYMENT_METHOD}/qr_code",
        headers=admin,
        data={"id": method["id"]},
        files={"file": ("qr.png", pngBytes((64, 64)), "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["qr_code_url"] == f"/public/payment_method/qr_code/{method['id']}"
    assert str(method["id"]) in storage.buckets[PAYMENT_QR_CODES]

    listed = client.get("/public/payment_method")
    assert [m["id"] for m in listed.json()] == [method["id"]]

    image = client.get(
        f"/public/payment_method/qr_code/{method['id']}", params={"width": 32}
    )
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/png"
    assert Image.open(BytesIO(image.content)).size == (32, 32)

    client.patch(PAYMENT_METHOD, headers=admin, data={"id": method["id"], "is_active": False})
    assert client.get("/public/payment_method").json() == []
    hidden = client.get(f"/public/payment_method/qr_code/{method['id']}")
    assert hidden.status_code == 404
