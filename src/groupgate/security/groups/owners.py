"""
Owner types known to the group access resolver.
"""

from __future__ import annotations

from groupgate.models.user import User
from groupgate.security.groups.binding import GroupAccessBinding, register_owner_type
from groupgate.security.groups.models import UserGroup
from groupgate.security.rbac.bridge import RoleGroupAccessBridge
from groupgate.security.rbac.models import user_roles

USER_BINDING = register_owner_type(
    GroupAccessBinding(
        owner_model=User,
        through_model=UserGroup,
        foreign_key="user_id",
        role_bridge=RoleGroupAccessBridge(User, user_roles, "user_id"),
    )
)
