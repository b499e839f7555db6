from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from groupgate.exceptions import InvalidArgumentError
from groupgate.models.user import User
from groupgate.security.groups.service import GroupAccessService
from groupgate.security.rbac.models import Role

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"username", "email", "active"}


class UserService:
    """
    Save path for users.

    Group grants passed to create/update are staged on the user first and
    committed right after the flush that gives the user its id.
    """

    def __init__(self, session: Session, access: Optional[GroupAccessService] = None):
        self.session = session
        self.access = access or GroupAccessService(session, User)

    def create_user(
        self,
        *,
        username: str,
        email: Optional[str] = None,
        active: bool = True,
        role_ids: Optional[Iterable[int]] = None,
        group_ids_access_map: Optional[Mapping[int, Any]] = None,
        group_names_access_map: Optional[Mapping[str, Any]] = None,
    ) -> User:
        existing = self.session.query(User).filter(User.username == username).first()
        if existing:
            raise InvalidArgumentError("User already exists", field="username")

        user = User(username=username, email=email, active=active)
        if role_ids:
            user.roles = self._load_roles(role_ids)
        self._stage(user, group_ids_access_map, group_names_access_map)

        self.session.add(user)
        self.session.flush()
        self.access.commit(user)
        logger.info("Created user %s (%s)", user.id, username)
        return user

    def update_user(
        self,
        user: User,
        *,
        group_ids_access_map: Optional[Mapping[int, Any]] = None,
        group_names_access_map: Optional[Mapping[str, Any]] = None,
        **fields: Any,
    ) -> User:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(
                f"Unknown user field(s): {', '.join(sorted(unknown))}", field="fields"
            )

        for name, value in fields.items():
            setattr(user, name, value)
        self._stage(user, group_ids_access_map, group_names_access_map)

        self.session.flush()
        self.access.commit(user)
        return user

    def assign_roles(self, user: User, role_ids: Iterable[int]) -> User:
        user.roles = self._load_roles(role_ids)
        self.session.flush()
        return user

    def delete_user(self, user: User) -> None:
        if user.id is not None:
            self.access.destroy_group_relations(user)
        user.clear_group_access_buffer()
        self.session.delete(user)
        self.session.flush()
        logger.info("Deleted user %s", user.id)

    def _stage(
        self,
        user: User,
        group_ids_access_map: Optional[Mapping[int, Any]],
        group_names_access_map: Optional[Mapping[str, Any]],
    ) -> None:
        # Given maps replace anything still staged; both maps together form one grant set.
        replace = True
        if group_ids_access_map is not None:
            self.access.stage_group_ids_access_map(user, group_ids_access_map, replace=True)
            replace = False
        if group_names_access_map is not None:
            self.access.stage_group_names_access_map(
                user, group_names_access_map, replace=replace
            )

    def _load_roles(self, role_ids: Iterable[int]) -> List[Role]:
        wanted = set(role_ids)
        roles = self.session.query(Role).filter(Role.id.in_(wanted)).all() if wanted else []
        missing = wanted - {role.id for role in roles}
        if missing:
            raise InvalidArgumentError(
                f"Unknown role id(s): {', '.join(str(i) for i in sorted(missing))}",
                field="role_ids",
            )
        return roles
