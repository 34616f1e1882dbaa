"""
Pytest fixtures for the account API.

The storage singleton is created on first import of `models`, so APP_ENV must
be set before anything from the project is imported.
"""
import os

os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.user import User  # noqa: E402
from services import mailer, sms  # noqa: E402
from utils.security import create_access_token  # noqa: E402

DEFAULT_PASSWORD = "password123"


@pytest.fixture
def app():
    """Fresh app and empty database for each test; the app context stays pushed."""
    storage.drop_all()
    storage.reload()
    app = create_app("testing")
    with app.app_context():
        yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(
        email="user@example.com",
        password=DEFAULT_PASSWORD,
        name="Test User",
        phone=None,
        email_confirmed=True,
        phone_confirmed=False,
        roles=("user",),
        profile=None,
    ) -> User:
        user = User(
            email=email,
            password=password,
            name=name,
            phone=phone,
            email_confirmed=email_confirmed,
            phone_confirmed=phone_confirmed,
            profile=profile or {},
        )
        storage.new(user)
        for role in roles:
            user.add_role(role)
        storage.save()
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", name="Admin", roles=("user", "admin"))


@pytest.fixture
def auth_headers(app):
    def _headers(user, **extra):
        headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
        headers.update(extra)
        return headers

    return _headers


@pytest.fixture
def outbox(monkeypatch):
    """Captures mail instead of logging it."""
    sent = []

    def _send_mail(to, subject, body):
        sent.append({"to": to, "subject": subject, "body": body})

    monkeypatch.setattr(mailer, "send_mail", _send_mail)
    return sent


@pytest.fixture
def sms_outbox(monkeypatch):
    """Captures SMS messages; use sms_code() to read the code back."""
    sent = []

    def _deliver(phone, message):
        sent.append({"phone": phone, "message": message})

    monkeypatch.setattr(sms, "deliver", _deliver)
    return sent
