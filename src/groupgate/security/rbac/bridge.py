from __future__ import annotations

from typing import Iterable, List, Set

from sqlalchemy import Table
from sqlalchemy.orm import Session

from groupgate.models.group import Group
from groupgate.security.groups.bridges import RoleAccessBridge
from groupgate.security.rbac.models import Role, RoleGroup


class RoleGroupAccessBridge(RoleAccessBridge):
    """
    Role-derived group access backed by `role_groups`.

    `association` is the owner <-> role link table and `owner_column` its
    column pointing at the owner (e.g. user_roles.user_id).
    """

    def __init__(self, owner_model: type, association: Table, owner_column: str) -> None:
        self.owner_model = owner_model
        self.association = association
        self.owner_column = owner_column

    @property
    def _owner_key(self):
        return self.association.c[self.owner_column]

    def role_ids(self, session: Session, owner_id: int) -> Set[int]:
        rows = (
            session.query(self.association.c.role_id)
            .filter(self._owner_key == owner_id)
            .all()
        )
        return {row[0] for row in rows}

    def role_group_ids(
        self, session: Session, role_ids: Iterable[int], access: List[str]
    ) -> Set[int]:
        role_ids = list(role_ids)
        if not role_ids:
            return set()
        rows = (
            session.query(RoleGroup.group_id)
            .join(Group, Group.id == RoleGroup.group_id)
            .join(Role, Role.id == RoleGroup.role_id)
            .filter(
                RoleGroup.role_id.in_(role_ids),
                RoleGroup.access.in_(access),
                Group.active.is_(True),
                Role.active.is_(True),
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def role_access(
        self, session: Session, owner_id: int, group_id: int, access: List[str]
    ) -> bool:
        role_ids = self.role_ids(session, owner_id)
        if not role_ids:
            return False
        query = (
            session.query(RoleGroup.id)
            .join(Group, Group.id == RoleGroup.group_id)
            .join(Role, Role.id == RoleGroup.role_id)
            .filter(
                RoleGroup.role_id.in_(role_ids),
                RoleGroup.group_id == group_id,
                RoleGroup.access.in_(access),
                Group.active.is_(True),
                Role.active.is_(True),
            )
        )
        return bool(session.query(query.exists()).scalar())

    def role_access_ids(self, session: Session, group_id: int, access: List[str]) -> Set[int]:
        role_ids = [
            row[0]
            for row in session.query(RoleGroup.role_id)
            .join(Group, Group.id == RoleGroup.group_id)
            .join(Role, Role.id == RoleGroup.role_id)
            .filter(
                RoleGroup.group_id == group_id,
                RoleGroup.access.in_(access),
                Group.active.is_(True),
                Role.active.is_(True),
            )
            .distinct()
            .all()
        ]
        if not role_ids:
            return set()

        owner = self.owner_model
        rows = (
            session.query(self._owner_key)
            .join(owner, owner.id == self._owner_key)
            .filter(self.association.c.role_id.in_(role_ids), owner.active.is_(True))
            .distinct()
            .all()
        )
        return {row[0] for row in rows}
