from datetime import timedelta

import pytest

from models import storage
from models.base_model import utcnow, as_utc
from models.role_audit import RoleAudit
from models.user import User
from helpers import sms_code


def find_user(email):
    return storage.get_session().query(User).filter(User.email == email).first()


@pytest.fixture
def registration():
    return {"user": {"email": "Test@Example.com ", "password": "password123", "name": "Test User"}}


class TestRegister:
    def test_creates_unconfirmed_user_and_sends_confirmation(self, client, registration, outbox):
        resp = client.post("/api/v1/register", json=registration)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == {
            "code": 200,
            "message": "Signed up successfully. Please check your email to confirm your account.",
        }
        assert body["data"]["email"] == "test@example.com"
        assert body["data"]["name"] == "Test User"
        assert body["data"]["roles"] == ["user"]
        assert body["data"]["email_confirmed"] is False
        assert "password" not in body["data"] and "password_hash" not in body["data"]

        user = find_user("test@example.com")
        assert user.confirmation_token
        assert user.authenticate("password123")
        assert len(outbox) == 1
        assert outbox[0]["to"] == "test@example.com"
        assert outbox[0]["subject"] == "Confirm your email address"
        assert user.confirmation_token in outbox[0]["body"]

    def test_default_role_assignment_is_audited(self, client, registration, outbox):
        client.post("/api/v1/register", json=registration)
        user = find_user("test@example.com")
        audit = storage.get_session().query(RoleAudit).filter(RoleAudit.user_id == user.id).one()
        assert audit.action == "added"
        assert audit.whodunnit is None

    def test_flat_body_is_accepted(self, client, registration, outbox):
        resp = client.post("/api/v1/register", json=registration["user"])
        assert resp.status_code == 201

    def test_with_phone_sends_code(self, client, registration, outbox, sms_outbox):
        registration["user"]["phone"] = "(555) 123-4567"
        resp = client.post("/api/v1/register", json=registration)
        assert resp.status_code == 201
        body = resp.get_json()
        assert "A confirmation code has been sent to your phone" in body["status"]["message"]
        assert body["data"]["phone"] == "+15551234567"
        assert body["data"]["phone_confirmed"] is False

        user = find_user("test@example.com")
        assert abs(as_utc(user.phone_confirmation_sent_at) - utcnow()) < timedelta(seconds=5)
        assert sms_outbox[0]["phone"] == "+15551234567"

    def test_duplicate_email(self, client, registration, make_user, outbox):
        make_user(email="test@example.com")
        resp = client.post("/api/v1/register", json=registration)
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "Email has already been taken"
        assert storage.count(User) == 1

    def test_duplicate_phone(self, client, registration, make_user, outbox, sms_outbox):
        make_user(email="first@example.com", phone="+15551234567")
        registration["user"]["phone"] = "5551234567"
        resp = client.post("/api/v1/register", json=registration)
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "field, value",
        [
            ("email", "not-an-email"),
            ("password", "123"),
            ("name", ""),
            ("name", "   "),
            ("name", "x" * 256),
            ("phone", "abc"),
        ],
    )
    def test_invalid_fields(self, client, registration, field, value, outbox):
        registration["user"][field] = value
        resp = client.post("/api/v1/register", json=registration)
        assert resp.status_code == 422
        body = resp.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert field in body["details"]
        assert storage.count(User) == 0

    def test_missing_fields(self, client):
        resp = client.post("/api/v1/register", json={"user": {}})
        assert resp.status_code == 422
        assert set(resp.get_json()["details"]) == {"email", "password", "name"}


@pytest.mark.parametrize(
    "path",
    [
        "/api/v1/register",
        "/api/v1/confirm_email",
        "/api/v1/confirm_phone",
        "/api/v1/send_email_confirmation",
        "/api/v1/send_phone_confirmation",
        "/api/v1/password/reset",
        "/api/v1/refresh",
        "/api/v1/login",
    ],
)
def test_non_object_body_is_rejected(client, path):
    resp = client.post(path, json=["x"])
    assert resp.status_code == 400
    assert resp.get_json() == {
        "error": "BAD_REQUEST",
        "message": "Request body must be a JSON object",
        "status": 400,
    }


class TestConfirmEmail:
    def test_confirms_with_token(self, client, registration, outbox):
        client.post("/api/v1/register", json=registration)
        token = find_user("test@example.com").confirmation_token

        resp = client.post("/api/v1/confirm_email", json={"token": token})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Email confirmed successfully. You can now log in."
        user = find_user("test@example.com")
        assert user.email_confirmed
        assert user.confirmation_token is None

        login = client.post("/api/v1/login", json={"email": "test@example.com", "password": "password123"})
        assert login.status_code == 200

    def test_token_in_query_string(self, client, registration, outbox):
        client.post("/api/v1/register", json=registration)
        token = find_user("test@example.com").confirmation_token
        assert client.post(f"/api/v1/confirm_email?token={token}").status_code == 200

    def test_token_is_single_use(self, client, registration, outbox):
        client.post("/api/v1/register", json=registration)
        token = find_user("test@example.com").confirmation_token
        client.post("/api/v1/confirm_email", json={"token": token})
        resp = client.post("/api/v1/confirm_email", json={"token": token})
        assert resp.status_code == 422

    def test_invalid_token(self, client):
        resp = client.post("/api/v1/confirm_email", json={"token": "nope"})
        assert resp.status_code == 422
        assert resp.get_json()["message"] == "Invalid or expired confirmation token."


class TestConfirmPhone:
    def register_with_phone(self, client, registration):
        registration["user"]["phone"] = "+15551234567"
        client.post("/api/v1/register", json=registration)

    def test_confirms_with_sms_code(self, client, registration, outbox, sms_outbox):
        self.register_with_phone(client, registration)
        code = sms_code(sms_outbox[-1])

        resp = client.post("/api/v1/confirm_phone", json={"phone": "555-123-4567", "code": code})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Phone number confirmed successfully."
        assert find_user("test@example.com").phone_confirmed

    def test_wrong_code(self, client, registration, outbox, sms_outbox):
        self.register_with_phone(client, registration)
        code = sms_code(sms_outbox[-1])
        wrong = "000000" if code != "000000" else "111111"

        resp = client.post("/api/v1/confirm_phone", json={"phone": "+15551234567", "code": wrong})
        assert resp.status_code == 422
        assert resp.get_json()["message"] == "Invalid or expired confirmation code."

    def test_expired_code(self, client, registration, outbox, sms_outbox):
        self.register_with_phone(client, registration)
        code = sms_code(sms_outbox[-1])
        user = find_user("test@example.com")
        user.phone_confirmation_sent_at = utcnow() - timedelta(minutes=11)
        user.save()

        resp = client.post("/api/v1/confirm_phone", json={"phone": "+15551234567", "code": code})
        assert resp.status_code == 422

    def test_already_confirmed(self, client, make_user):
        make_user(phone="+15551234567", phone_confirmed=True)
        resp = client.post("/api/v1/confirm_phone", json={"phone": "+15551234567", "code": "123456"})
        assert resp.status_code == 422

    def test_unknown_phone(self, client):
        resp = client.post("/api/v1/confirm_phone", json={"phone": "+15550000000", "code": "123456"})
        assert resp.status_code == 422


class TestResendConfirmations:
    def test_send_email_confirmation_regenerates_token(self, client, make_user, outbox):
        user = make_user(email="pending@example.com", email_confirmed=False)
        resp = client.post("/api/v1/send_email_confirmation", json={"email": "pending@example.com"})
        assert resp.status_code == 200
        assert "a confirmation email has been sent" in resp.get_json()["message"]
        assert user.confirmation_token
        assert user.confirmation_token in outbox[0]["body"]

    def test_send_email_confirmation_is_silent_for_unknown_or_confirmed(self, client, user, outbox):
        for email in ("ghost@example.com", user.email):
            resp = client.post("/api/v1/send_email_confirmation", json={"email": email})
            assert resp.status_code == 200
        assert outbox == []

    def test_send_phone_confirmation(self, client, make_user, sms_outbox):
        user = make_user(phone="+15551234567")
        resp = client.post("/api/v1/send_phone_confirmation", json={"email": user.email})
        assert resp.status_code == 200
        assert sms_outbox[0]["phone"] == "+15551234567"
        assert user.phone_confirmation_sent_at is not None

    def test_send_phone_confirmation_without_phone(self, client, user, sms_outbox):
        resp = client.post("/api/v1/send_phone_confirmation", json={"email": user.email})
        assert resp.status_code == 200
        assert sms_outbox == []
