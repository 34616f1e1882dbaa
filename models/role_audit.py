"""
RoleAudit: one row each time a role is granted to or taken from a user.
whodunnit holds the acting user's id (null for system actions such as sign-up).
"""
from sqlalchemy import Column, String, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

ADDED = "added"
REMOVED = "removed"


class RoleAudit(BaseModel, Base):
    __tablename__ = "role_audits"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(16), nullable=False)
    whodunnit = Column(String(36), nullable=True)

    user = relationship("User")
    role = relationship("Role")

    __table_args__ = (
        CheckConstraint("action IN ('added', 'removed')", name="ck_role_audits_action"),
    )
