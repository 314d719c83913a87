# =============================================================================
# core/models/roles.py - Roles, Permissions and Resource Kinds
# =============================================================================
# Closed vocabularies for the authorization model:
# - UserRole: admin | family | friend
# - Permission: the capabilities checked by has_permission()
# - ResourceKind: things a role may create
# - EditScope: whether edit/delete covers everyone's content or only your own
#
# Roles arrive from many places (signup metadata, request bodies, stored
# rows). They are always parsed into UserRole before use; an unknown string
# is treated as "no role", never passed through.
# =============================================================================

from __future__ import annotations

from enum import Enum
from typing import Any


class UserRole(str, Enum):
    """
    Role of a profile, from most to least privileged.

    - admin: manages users, invite codes and all content
    - family: creates most content, edits/deletes their own
    - friend: vault entries and comments only
    """
    ADMIN = "admin"
    FAMILY = "family"
    FRIEND = "friend"

    @classmethod
    def parse(cls, value: Any) -> UserRole | None:
        """
        Parse an untrusted value into a role.

        Accepts a UserRole or a string (case and surrounding whitespace are
        ignored). Anything else returns None.

        Example:
            UserRole.parse(" Family ")  # UserRole.FAMILY
            UserRole.parse("superuser")  # None
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def lowest(cls) -> UserRole:
        """The role granted when nothing better is known."""
        return cls.FRIEND


class Permission(str, Enum):
    """Capabilities checked against the role table."""
    CAN_CREATE = "can_create"
    CAN_EDIT = "can_edit"
    CAN_DELETE = "can_delete"
    CAN_INVITE = "can_invite"
    CAN_MANAGE_USERS = "can_manage_users"
    CAN_MODERATE_CONTENT = "can_moderate_content"

    @classmethod
    def parse(cls, value: Any) -> Permission | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class ResourceKind(str, Enum):
    """Content types whose creation is gated per role."""
    TIMELINE = "timeline"
    EVENT = "event"
    MEDIA = "media"
    STORY = "story"
    HELP_ITEM = "help_item"
    VAULT_ENTRY = "vault_entry"
    ANNOUNCEMENT = "announcement"
    FAQ = "faq"
    COMMENT = "comment"

    @classmethod
    def parse(cls, value: Any) -> ResourceKind | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class EditScope(str, Enum):
    """Reach of edit/delete rights."""
    OWN = "own"
    ALL = "all"
