"""
Authorization policies.

A policy answers "may `user` perform `action` on `record`?". Blueprints call
authorize(); a refusal raises NotAuthorizedError, which the app maps to 403.
"""
from __future__ import annotations

from models.user import User

ADMIN_ROLE = "admin"


class NotAuthorizedError(Exception):
    def __init__(self, action: str, record=None):
        super().__init__(f"not allowed to {action}")
        self.action = action
        self.record = record


class UserPolicy:
    def __init__(self, user: User, record):
        self.user = user
        self.record = record

    def _admin(self) -> bool:
        return self.user is not None and self.user.has_role(ADMIN_ROLE)

    def _self(self) -> bool:
        return self.user is not None and isinstance(self.record, User) and self.record.id == self.user.id

    def index(self) -> bool:
        return self.user is not None

    def me(self) -> bool:
        # Any authenticated user can read their own record
        return self.user is not None

    def show(self) -> bool:
        return self._admin() or self._self()

    def create(self) -> bool:
        return self._admin()

    def update(self) -> bool:
        return self._admin() or self._self()

    def update_password(self) -> bool:
        return self.update()

    def destroy(self) -> bool:
        # Admins cannot delete their own account through the API
        if self._self():
            return False
        return self._admin()

    def manage_roles(self) -> bool:
        return self._admin()

    def scope(self, query):
        if self._admin():
            return query
        return query.filter(User.id == self.user.id)


def authorize(user: User, record, action: str, policy_class=UserPolicy):
    policy = policy_class(user, record)
    check = getattr(policy, action, None)
    if check is None or not check():
        raise NotAuthorizedError(action, record)
    return record


def policy_scope(user: User, query, policy_class=UserPolicy):
    return policy_class(user, None).scope(query)
