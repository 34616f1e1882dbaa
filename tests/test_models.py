from datetime import timedelta

import pytest

from models import storage
from models.base_model import utcnow, as_utc
from models.password_reset_token import PasswordResetToken
from models.refresh_token import RefreshToken
from models.role_audit import RoleAudit
from models.schemas.common import format_phone_to_e164
from models.user import User


class TestRefreshToken:
    def test_generate_for_expires_in_seven_days(self, user):
        rt = RefreshToken.generate_for(user)
        assert rt.user_id == user.id
        assert rt.revoked is False
        delta = as_utc(rt.expires_at) - utcnow()
        assert timedelta(days=6, hours=23) < delta <= timedelta(days=7)
        assert rt.active()

    def test_tokens_are_unique(self, user):
        first = RefreshToken.generate_for(user)
        second = RefreshToken.generate_for(user)
        assert first.token != second.token

    def test_expired_token_is_not_active(self, user):
        rt = RefreshToken.generate_for(user)
        rt.expires_at = utcnow() - timedelta(seconds=1)
        rt.save()
        assert rt.expired()
        assert not rt.active()

    def test_revoke(self, user):
        rt = RefreshToken.generate_for(user)
        rt.revoke()
        assert rt.revoked
        assert not rt.active()

    def test_active_query_skips_revoked_and_expired(self, user):
        live = RefreshToken.generate_for(user)
        RefreshToken.generate_for(user).revoke()
        stale = RefreshToken.generate_for(user)
        stale.expires_at = utcnow() - timedelta(minutes=1)
        stale.save()

        active = RefreshToken.active_query(storage.get_session()).all()
        assert [rt.id for rt in active] == [live.id]

    def test_deleted_with_user(self, user):
        RefreshToken.generate_for(user)
        user.delete()
        storage.save()
        assert storage.count(RefreshToken) == 0


class TestPasswordResetToken:
    def test_generate_for_expires_in_one_hour(self, user):
        prt = PasswordResetToken.generate_for(user)
        delta = as_utc(prt.expires_at) - utcnow()
        assert timedelta(minutes=59) < delta <= timedelta(hours=1)
        assert not prt.used
        assert not prt.expired()

    def test_mark_as_used(self, user):
        prt = PasswordResetToken.generate_for(user)
        prt.mark_as_used()
        assert prt.used
        assert PasswordResetToken.active_query(storage.get_session()).count() == 0


class TestUser:
    def test_password_is_write_only(self, user):
        with pytest.raises(AttributeError):
            user.password

    def test_authenticate(self, user):
        assert user.authenticate("password123")
        assert not user.authenticate("nope")
        assert not user.authenticate(None)

    def test_set_password_clears_forced_change(self, user):
        user.require_password_change = True
        user.set_password("another-pass")
        assert user.authenticate("another-pass")
        assert not user.require_password_change

    def test_email_confirmation_flow(self, make_user):
        user = make_user(email_confirmed=False)
        user.generate_email_confirmation_token()
        user.save()
        assert user.confirmation_token
        assert user.confirmation_sent_at is not None

        user.confirm_email()
        assert user.email_confirmed
        assert user.confirmation_token is None
        assert user.confirmation_sent_at is None

    def test_confirm_phone_clears_pending_code(self, make_user):
        user = make_user(phone="+15551234567")
        user.phone_confirmation_code_hash = "hash"
        user.phone_confirmation_sent_at = utcnow()
        user.confirm_phone()
        assert user.phone_confirmed
        assert user.phone_confirmation_code_hash is None
        assert user.phone_confirmation_sent_at is None

    def test_add_and_remove_role_are_audited(self, user, admin):
        assert user.add_role("admin", whodunnit=admin.id)
        storage.save()
        assert user.has_role("admin")
        assert not user.add_role("admin")

        assert user.remove_role("admin", whodunnit=admin.id)
        storage.save()
        assert not user.has_role("admin")
        assert not user.remove_role("admin")

        audits = (
            storage.get_session()
            .query(RoleAudit)
            .filter(RoleAudit.user_id == user.id, RoleAudit.whodunnit == admin.id)
            .order_by(RoleAudit.created_at)
            .all()
        )
        assert [a.action for a in audits] == ["added", "removed"]
        assert all(a.role.name == "admin" for a in audits)

    def test_role_names_sorted(self, make_user):
        user = make_user(roles=("user", "admin"))
        assert user.role_names == ["admin", "user"]

    def test_to_dict_hides_password_hash(self, user):
        d = user.to_dict()
        assert "password_hash" not in d
        assert d["__class__"] == "User"
        assert d["email"] == "user@example.com"


class TestNotificationPreferences:
    def test_defaults(self, user):
        assert user.notification_timezone == "America/New_York"
        assert user.notifications_enabled()
        assert user.notification_slot_enabled("morning")

    def test_slot_disabled_explicitly(self, make_user):
        user = make_user(profile={"preferences": {"timezone": "Europe/Paris", "notifications": {"evening": False}}})
        assert user.notification_timezone == "Europe/Paris"
        assert not user.notification_slot_enabled("evening")
        assert user.notification_slot_enabled("wind_down")

    def test_global_switch_disables_every_slot(self, make_user):
        user = make_user(profile={"preferences": {"notifications": {"enabled": False, "morning": True}}})
        assert not user.notifications_enabled()
        assert not user.notification_slot_enabled("morning")

    def test_unknown_slot(self, user):
        with pytest.raises(ValueError):
            user.notification_slot_enabled("midnight")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("555-123-4567", "+15551234567"),
        ("(555) 123 4567", "+15551234567"),
        ("15551234567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
        ("call me", "call me"),
        ("12345", "12345"),
        ("", None),
        (None, None),
    ],
)
def test_format_phone_to_e164(raw, expected):
    assert format_phone_to_e164(raw) == expected


def test_users_are_looked_up_by_normalized_email(make_user):
    make_user(email="someone@example.com")
    found = storage.get_session().query(User).filter(User.email == "someone@example.com").one()
    assert found.name == "Test User"
