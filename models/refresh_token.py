"""
RefreshToken model: opaque, single-use credentials exchanged for a new access token.
Fields:
- token (unique, url-safe random string)
- user_id (String(36)) - FK to users.id
- revoked (bool)
- expires_at (absolute, UTC)

A row is consumed by a refresh (revoked) and superseded by a freshly generated row.
"""
from flask import current_app
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, false
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow, as_utc
from utils.security import generate_token


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    revoked = Column(Boolean, default=False, server_default=false(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="refresh_tokens")

    @classmethod
    def generate_for(cls, user) -> "RefreshToken":
        """Create and persist a new token for user."""
        rt = cls(
            user=user,
            token=generate_token(),
            expires_at=utcnow() + current_app.config["REFRESH_TOKEN_EXPIRES"],
        )
        rt.save()
        return rt

    @classmethod
    def active_query(cls, session):
        return session.query(cls).filter(cls.revoked.is_(False), cls.expires_at > utcnow())

    def expired(self) -> bool:
        return as_utc(self.expires_at) < utcnow()

    def active(self) -> bool:
        return not self.revoked and not self.expired()

    def revoke(self):
        self.revoked = True
        self.save()

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} revoked={self.revoked}>"
