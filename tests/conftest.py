from urllib.parse import urlparse

import mongomock
import pytest
import resend

import anyoutlet.app as app_module
from anyoutlet import create_app
from anyoutlet.auth import hash_password
from anyoutlet.models import new_product_document, new_user_document

FAKE_QR = "data:image/png;base64,ZmFrZS1xcg=="


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def sent_emails(monkeypatch):
    outbox = []

    def fake_send(payload):
        outbox.append(payload)
        return {"id": f"email_{len(outbox)}"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return outbox


@pytest.fixture
def qr_calls(monkeypatch):
    calls = []

    def fake_build_payment_qr(phone, amount):
        calls.append((phone, amount))
        return FAKE_QR

    monkeypatch.setattr(app_module, "build_payment_qr", fake_build_payment_qr)
    return calls


@pytest.fixture
def app(db, tmp_path, sent_emails, qr_calls):
    return create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "RESEND_API_KEY": "re_test",
            "DEFAULT_ADMIN_EMAIL": "owner@anyoutlet.shop",
            "PRODUCT_UPLOAD_FOLDER": str(tmp_path / "uploads"),
        },
        database=db,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    def _make_user(
        email="buyer@example.com",
        password="secret-pw",
        name="Buyer",
        role="member",
        verified=True,
        otp=None,
    ):
        document = new_user_document(name, email, hash_password(password), otp, role=role)
        document["is_verified"] = verified
        document["_id"] = db.users.insert_one(document).inserted_id
        return document

    return _make_user


@pytest.fixture
def make_product(db):
    def _make_product(name="Mango Sticky Rice", stock=5, real_price=120.0, sale_price=99.0):
        document = new_product_document(name, "Sweet and fresh", real_price, sale_price, stock)
        document["_id"] = db.products.insert_one(document).inserted_id
        return document

    return _make_product


@pytest.fixture
def login(client):
    def _login(email="buyer@example.com", password="secret-pw"):
        return client.post("/login", data={"email": email, "password": password})

    return _login


@pytest.fixture
def admin_client(client, make_user, login):
    make_user(email="admin@example.com", name="Admin", role="admin")
    login("admin@example.com")
    return client


def location_path(response) -> str:
    return urlparse(response.headers["Location"]).path
