import logging

from sqlalchemy import Column, String, Boolean, DateTime, JSON, false
from sqlalchemy.orm import relationship

import models
from models.base_model import BaseModel, Base, utcnow
from models.role import Role, users_roles
from models.role_audit import RoleAudit, ADDED, REMOVED
from utils.security import hash_password, verify_password, generate_token

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
NOTIFICATION_SLOTS = ("morning", "midday", "afternoon", "evening", "wind_down")


class User(BaseModel, Base):
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(16), nullable=True, unique=True, index=True)

    email_confirmed = Column(Boolean, default=False, server_default=false(), nullable=False)
    confirmation_token = Column(String(64), nullable=True, unique=True, index=True)
    confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)

    phone_confirmed = Column(Boolean, default=False, server_default=false(), nullable=False)
    phone_confirmation_code_hash = Column(String(255), nullable=True)
    phone_confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)

    profile = Column(JSON, nullable=False, default=dict)
    is_profile_complete = Column(Boolean, default=False, server_default=false(), nullable=False)
    require_password_change = Column(Boolean, default=False, server_default=false(), nullable=False)

    roles = relationship("Role", secondary=users_roles, back_populates="users")
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    password_reset_tokens = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @password.setter
    def password(self, value: str):
        self.password_hash = hash_password(value)

    def set_password(self, password: str):
        """Replace the password and clear any forced-change flag."""
        self.password = password
        self.require_password_change = False

    def authenticate(self, password: str) -> bool:
        if not password:
            return False
        return verify_password(password, self.password_hash)

    # Confirmation

    def generate_email_confirmation_token(self):
        self.confirmation_token = generate_token()
        self.confirmation_sent_at = utcnow()

    def confirm_email(self):
        self.email_confirmed = True
        self.confirmation_token = None
        self.confirmation_sent_at = None
        self.save()

    def confirm_phone(self):
        self.phone_confirmed = True
        self.phone_confirmation_code_hash = None
        self.phone_confirmation_sent_at = None
        self.save()

    def reset_phone_confirmation(self):
        self.phone_confirmed = False
        self.phone_confirmation_code_hash = None
        self.phone_confirmation_sent_at = None

    # Roles

    @property
    def role_names(self) -> list:
        return sorted(role.name for role in self.roles)

    def has_role(self, name: str) -> bool:
        return any(role.name == name for role in self.roles)

    def add_role(self, name: str, whodunnit: str | None = None) -> bool:
        """Grant a role (created on first use); returns False if already held."""
        if self.has_role(name):
            return False
        session = models.storage.get_session()
        role = session.query(Role).filter(Role.name == name).first()
        if role is None:
            role = Role(name=name)
            models.storage.new(role)
        self.roles.append(role)
        models.storage.new(RoleAudit(user=self, role=role, action=ADDED, whodunnit=whodunnit))
        logger.info("Role '%s' added to User %s by %s", name, self.id, whodunnit)
        return True

    def remove_role(self, name: str, whodunnit: str | None = None) -> bool:
        role = next((r for r in self.roles if r.name == name), None)
        if role is None:
            return False
        self.roles.remove(role)
        models.storage.new(RoleAudit(user=self, role=role, action=REMOVED, whodunnit=whodunnit))
        logger.info("Role '%s' removed from User %s by %s", name, self.id, whodunnit)
        return True

    # Notification preferences (stored under profile["preferences"])

    def _preferences(self) -> dict:
        prefs = (self.profile or {}).get("preferences")
        return prefs if isinstance(prefs, dict) else {}

    @property
    def notification_timezone(self) -> str:
        return self._preferences().get("timezone") or DEFAULT_TIMEZONE

    def notifications_enabled(self) -> bool:
        notifications = self._preferences().get("notifications") or {}
        return notifications.get("enabled") is not False

    def notification_slot_enabled(self, slot: str) -> bool:
        if slot not in NOTIFICATION_SLOTS:
            raise ValueError(f"Unknown notification slot: {slot}")
        notifications = self._preferences().get("notifications") or {}
        return self.notifications_enabled() and notifications.get(slot) is not False

    def __repr__(self):
        return f"<User {self.email}>"
