from flask import current_app
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, false
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow, as_utc
from utils.security import generate_token


class PasswordResetToken(BaseModel, Base):
    """Single-use token mailed to a user who asked to reset their password."""

    __tablename__ = "password_reset_tokens"

    token = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    used = Column(Boolean, default=False, server_default=false(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="password_reset_tokens")

    @classmethod
    def generate_for(cls, user) -> "PasswordResetToken":
        prt = cls(
            user=user,
            token=generate_token(),
            expires_at=utcnow() + current_app.config["PASSWORD_RESET_TOKEN_EXPIRES"],
        )
        prt.save()
        return prt

    @classmethod
    def active_query(cls, session):
        return session.query(cls).filter(cls.used.is_(False), cls.expires_at > utcnow())

    def expired(self) -> bool:
        return as_utc(self.expires_at) < utcnow()

    def mark_as_used(self):
        self.used = True
        self.save()
