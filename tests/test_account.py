from fleet.src.constants import MAX_ACCOUNT_TOKENS
from fleet.src.db import Account, AccessToken, UserRole
from fleet.src.enums import Role

from conftest import PASSWORD

BOOTSTRAP = "/public/account/bootstrap"
ACCOUNT = "/staff/account"
TOKEN = "/staff/account/token"


def test_bootstrap_creates_first_admin(client, session):
    response = client.post(
        BOOTSTRAP, data={"email": " Owner@HighwayFleet.In ", "password": "secret1"}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["account"]["email"] == "owner@highwayfleet.in"
    assert body["account"]["role"] == Role.ADMIN

    roles = session.query(UserRole).all()
    assert len(roles) == 1
    assert roles[0].role == Role.ADMIN


def test_bootstrap_refused_once_a_role_exists(client, session):
    first = client.post(BOOTSTRAP, data={"email": "a@highwayfleet.in", "password": "secret1"})
    assert first.status_code == 201

    second = client.post(BOOTSTRAP, data={"email": "b@highwayfleet.in", "password": "secret1"})
    assert second.status_code == 403
    assert session.query(Account).count() == 1


def test_bootstrap_validates_credentials(client, session):
    assert client.post(BOOTSTRAP, data={"email": "a@highwayfleet.in"}).status_code == 400
    assert (
        client.post(BOOTSTRAP, data={"email": "not-an-email", "password": "secret1"})
        .status_code
        == 400
    )
    assert (
        client.post(BOOTSTRAP, data={"email": "a@highwayfleet.in", "password": "123"})
        .status_code
        == 400
    )
    assert session.query(Account).count() == 0


def test_bootstrap_rate_limited_per_ip(client):
    data = {"email": "a@highwayfleet.in", "password": "1"}
    for _ in range(5):
        assert client.post(BOOTSTRAP, data=data).status_code == 400
    assert client.post(BOOTSTRAP, data=data).status_code == 429

    other = client.post(
        BOOTSTRAP,
        data={"email": "a@highwayfleet.in", "password": "secret1"},
        headers={"X-Forwarded-For": "10.0.0.8"},
    )
    assert other.status_code == 201


def test_token_login(client, admin):
    response = client.post(
        TOKEN, data={"email": "admin@highwayfleet.in", "password": PASSWORD}
    )
    assert response.status_code == 201
    assert len(response.json()["access_token"]) == 64

    wrong = client.post(TOKEN, data={"email": "admin@highwayfleet.in", "password": "nope"})
    assert wrong.status_code == 401


def test_token_login_rotates_oldest(client, session, admin):
    firstTokenID = session.query(AccessToken).one().id
    for _ in range(MAX_ACCOUNT_TOKENS):
        response = client.post(
            TOKEN, data={"email": "admin@highwayfleet.in", "password": PASSWORD}
        )
        assert response.status_code == 201

    session.expire_all()
    assert session.query(AccessToken).count() == MAX_ACCOUNT_TOKENS
    assert session.query(AccessToken).filter(AccessToken.id == firstTokenID).count() == 0
    assert client.get(ACCOUNT, headers=admin).status_code == 401


def test_token_revoke(client, session, admin, driver):
    adminToken = (
        session.query(AccessToken)
        .join(Account, Account.id == AccessToken.account_id)
        .filter(Account.email == "admin@highwayfleet.in")
        .one()
    )

    foreign = client.request("DELETE", TOKEN, headers=driver, data={"id": adminToken.id})
    assert foreign.status_code == 403
    assert client.get(ACCOUNT, headers=admin).status_code == 200

    unknown = client.request("DELETE", TOKEN, headers=driver, data={"id": 999})
    assert unknown.status_code == 204

    own = client.delete(TOKEN, headers=admin)
    assert own.status_code == 204
    assert client.get(ACCOUNT, headers=admin).status_code == 401
    session.expire_all()
    assert session.query(AccessToken).count() == 1


def test_admin_creates_driver_account(client, session, admin):
    response = client.post(
        ACCOUNT,
        headers=admin,
        data={"email": "new@highwayfleet.in", "password": "secret1", "role": Role.DRIVER},
    )
    assert response.status_code == 201
    assert response.json()["role"] == Role.DRIVER
    assert "password" not in response.json()

    account = session.query(Account).filter(Account.email == "new@highwayfleet.in").one()
    role = session.query(UserRole).filter(UserRole.user_id == account.id).one()
    assert role.role == Role.DRIVER


def test_create_account_requires_admin(client, session, driver):
    response = client.post(
        ACCOUNT,
        headers=driver,
        data={"email": "new@highwayfleet.in", "password": "secret1", "role": Role.DRIVER},
    )
    assert response.status_code == 403
    assert session.query(Account).filter(Account.email == "new@highwayfleet.in").first() is None


def test_create_account_validation(client, admin):
    missing = client.post(ACCOUNT, headers=admin, data={"email": "x@highwayfleet.in"})
    assert missing.status_code == 400

    for email in ["x@highwayfleet", "x@@highwayfleet.in", "x y@highwayfleet.in"]:
        malformed = client.post(
            ACCOUNT,
            headers=admin,
            data={"email": email, "password": "secret1", "role": Role.DRIVER},
        )
        assert malformed.status_code == 400
        assert malformed.headers["X-Error"] == "InvalidEmail"

    shortPassword = client.post(
        ACCOUNT,
        headers=admin,
        data={"email": "x@highwayfleet.in", "password": "12", "role": Role.DRIVER},
    )
    assert shortPassword.status_code == 400

    badRole = client.post(
        ACCOUNT,
        headers=admin,
        data={"email": "x@highwayfleet.in", "password": "secret1", "role": 9},
    )
    assert badRole.status_code == 400

    duplicate = client.post(
        ACCOUNT,
        headers=admin,
        data={"email": "admin@highwayfleet.in", "password": "secret1", "role": Role.ADMIN},
    )
    assert duplicate.status_code == 400


def test_invalid_token_rejected(client):
    response = client.get(ACCOUNT, headers={"Authorization": "Bearer unknown"})
    assert response.status_code == 401
