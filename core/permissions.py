# =============================================================================
# core/permissions.py - Role & Permission Table
# =============================================================================
# Static mapping from role to capabilities, built once at import and
# exposed read-only. has_permission() is a pure lookup over it: no I/O, no
# mutation, and anything it does not recognise is denied.
#
# Usage:
#   from core.permissions import has_permission
#   if has_permission(profile.role, Permission.CAN_EDIT, is_owner=True): ...
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from core.models.roles import EditScope, Permission, ResourceKind, UserRole


@dataclass(frozen=True)
class RolePermissions:
    """Capabilities of one role."""
    can_create: frozenset[ResourceKind]
    edit_scope: frozenset[EditScope]
    delete_scope: frozenset[EditScope]
    invitable_roles: frozenset[UserRole]
    can_manage_users: bool
    can_moderate_content: bool

    @property
    def can_invite(self) -> bool:
        return bool(self.invitable_roles)


ROLE_PERMISSIONS: Mapping[UserRole, RolePermissions] = MappingProxyType({
    UserRole.ADMIN: RolePermissions(
        can_create=frozenset({
            ResourceKind.TIMELINE,
            ResourceKind.EVENT,
            ResourceKind.MEDIA,
            ResourceKind.STORY,
            ResourceKind.HELP_ITEM,
            ResourceKind.VAULT_ENTRY,
            ResourceKind.ANNOUNCEMENT,
            ResourceKind.FAQ,
        }),
        edit_scope=frozenset({EditScope.ALL}),
        delete_scope=frozenset({EditScope.ALL}),
        invitable_roles=frozenset({UserRole.ADMIN, UserRole.FAMILY, UserRole.FRIEND}),
        can_manage_users=True,
        can_moderate_content=True,
    ),
    UserRole.FAMILY: RolePermissions(
        can_create=frozenset({
            ResourceKind.EVENT,
            ResourceKind.MEDIA,
            ResourceKind.STORY,
            ResourceKind.HELP_ITEM,
            ResourceKind.VAULT_ENTRY,
            ResourceKind.COMMENT,
        }),
        edit_scope=frozenset({EditScope.OWN}),
        delete_scope=frozenset({EditScope.OWN}),
        invitable_roles=frozenset(),
        can_manage_users=False,
        can_moderate_content=False,
    ),
    UserRole.FRIEND: RolePermissions(
        can_create=frozenset({ResourceKind.VAULT_ENTRY, ResourceKind.COMMENT}),
        edit_scope=frozenset({EditScope.OWN}),
        delete_scope=frozenset({EditScope.OWN}),
        invitable_roles=frozenset(),
        can_manage_users=False,
        can_moderate_content=False,
    ),
})

ROLE_DISPLAY_NAMES: Mapping[UserRole, str] = MappingProxyType({
    UserRole.ADMIN: "Administrator",
    UserRole.FAMILY: "Family Member",
    UserRole.FRIEND: "Friend",
})


def permissions_for(role: Any) -> RolePermissions | None:
    """Look up the capabilities of a role; None for anything that is not a role."""
    parsed = UserRole.parse(role)
    if parsed is None:
        return None
    return ROLE_PERMISSIONS.get(parsed)


def _scope_allows(scope: frozenset[EditScope], is_owner: bool) -> bool:
    if EditScope.ALL in scope:
        return True
    return EditScope.OWN in scope and is_owner


def has_permission(
    role: Any,
    permission: Any,
    resource_kind: Any = None,
    is_owner: bool = False,
) -> bool:
    """
    Decide whether a role holds a permission.

    Args:
        role: UserRole or role string (anything else is denied)
        permission: Permission or permission string
        resource_kind: Required for CAN_CREATE
        is_owner: Whether the caller owns the resource (edit/delete)

    Returns:
        True if allowed. Unknown roles, permissions or resource kinds
        return False.

    Example:
        has_permission("family", Permission.CAN_CREATE, "story")  # True
        has_permission("friend", Permission.CAN_EDIT, is_owner=False)  # False
        has_permission("admin", Permission.CAN_DELETE)  # True
    """
    perms = permissions_for(role)
    perm = Permission.parse(permission)
    if perms is None or perm is None:
        return False

    if perm is Permission.CAN_CREATE:
        kind = ResourceKind.parse(resource_kind)
        return kind is not None and kind in perms.can_create
    if perm is Permission.CAN_EDIT:
        return _scope_allows(perms.edit_scope, bool(is_owner))
    if perm is Permission.CAN_DELETE:
        return _scope_allows(perms.delete_scope, bool(is_owner))
    if perm is Permission.CAN_INVITE:
        return perms.can_invite
    if perm is Permission.CAN_MANAGE_USERS:
        return perms.can_manage_users
    if perm is Permission.CAN_MODERATE_CONTENT:
        return perms.can_moderate_content
    return False


def can_invite_role(role: Any, target: Any) -> bool:
    """Whether `role` may issue an invite that grants `target`."""
    perms = permissions_for(role)
    target_role = UserRole.parse(target)
    if perms is None or target_role is None:
        return False
    return target_role in perms.invitable_roles


def role_display_name(role: Any) -> str:
    parsed = UserRole.parse(role)
    return ROLE_DISPLAY_NAMES[parsed] if parsed else "Unknown"


def describe_permissions(role: Any) -> dict[str, Any]:
    """
    JSON-ready summary of a role's capabilities, for UIs that hide
    controls the user cannot use. Unknown roles get an all-false summary.
    """
    perms = permissions_for(role)
    parsed = UserRole.parse(role)
    if perms is None:
        return {
            "role": None,
            "role_display_name": "Unknown",
            "can_create": [],
            "edit_scope": [],
            "delete_scope": [],
            "can_invite": False,
            "invitable_roles": [],
            "can_manage_users": False,
            "can_moderate_content": False,
        }
    return {
        "role": parsed.value,
        "role_display_name": role_display_name(parsed),
        "can_create": sorted(kind.value for kind in perms.can_create),
        "edit_scope": sorted(scope.value for scope in perms.edit_scope),
        "delete_scope": sorted(scope.value for scope in perms.delete_scope),
        "can_invite": perms.can_invite,
        "invitable_roles": sorted(r.value for r in perms.invitable_roles),
        "can_manage_users": perms.can_manage_users,
        "can_moderate_content": perms.can_moderate_content,
    }
