"""
Role and permission policy.

Every authorization decision in the app goes through the functions below.
They are pure: they look only at the arguments, never at the database or
the request.
"""

import enum
from typing import Protocol


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    VENDOR = "vendor"


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


# role x action -> allowed
ROLE_PERMISSIONS: dict[Role, frozenset[Action]] = {
    Role.CUSTOMER: frozenset({Action.READ, Action.EDIT}),
    Role.VENDOR: frozenset({Action.READ, Action.CREATE, Action.EDIT, Action.DELETE}),
    Role.ADMIN: frozenset(Action),
}


class Principal(Protocol):
    """Anything that identifies the acting user (e.g. a SessionContext)."""
    user_id: int
    role: Role
    is_active: bool


def role_satisfies(role: Role, required_role: Role) -> bool:
    """Admins satisfy any role requirement; everyone else must match exactly."""
    return role == Role.ADMIN or role == required_role


def has_permission(role: Role, required_role: Role, action: Action) -> bool:
    return role_satisfies(role, required_role) and action in ROLE_PERMISSIONS[role]


def can_perform(principal: Principal, required_role: Role, action: Action) -> bool:
    """Route-level gate: the account must be active and the table must allow it."""
    if not principal.is_active:
        return False
    return has_permission(principal.role, required_role, action)


def is_admin(role: Role) -> bool:
    return role == Role.ADMIN


# Ownership checks

def can_access_user(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) or actor_id == target_id


def can_update_user(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) or actor_id == target_id


def can_invalidate_tokens(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) or actor_id == target_id


def can_deactivate_user(actor_id: int, actor_role: Role, target_id: int) -> bool:
    """
    Admins may deactivate anyone except themselves.
    Non-admins may deactivate only themselves.
    """
    if is_admin(actor_role):
        return actor_id != target_id
    return actor_id == target_id


def can_activate_user(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) and actor_id != target_id


def can_delete_user(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) and actor_id != target_id


def can_change_role(actor_id: int, actor_role: Role, target_id: int) -> bool:
    return is_admin(actor_role) and actor_id != target_id
