from sqlalchemy import Column, String, ForeignKey, Table
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

# Association table with CASCADE so join rows clean up when either side is deleted
users_roles = Table(
    "users_roles",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(BaseModel, Base):
    __tablename__ = "roles"

    name = Column(String(64), nullable=False, unique=True, index=True)

    users = relationship("User", secondary=users_roles, back_populates="roles")

    def __repr__(self):
        return f"<Role {self.name}>"
