from __future__ import annotations

from typing import Dict, Iterable, Optional, Union

import pytest
from sqlalchemy.orm import sessionmaker

from groupgate.database import create_db_engine, import_all_models
from groupgate.models.base import Base
from groupgate.models.group import Group
from groupgate.models.user import User
from groupgate.security.rbac.models import Role, RoleGroup


@pytest.fixture()
def engine():
    import_all_models()
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_group(session):
    def _make(name: str, *, active: bool = True, group_id: Optional[int] = None) -> Group:
        group = Group(id=group_id, name=name, active=active)
        session.add(group)
        session.flush()
        return group

    return _make


@pytest.fixture()
def make_user(session):
    def _make(username: str, *, user_id: Optional[int] = None, active: bool = True) -> User:
        user = User(id=user_id, username=username, active=active)
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture()
def make_role(session):
    def _make(
        name: str,
        grants: Optional[Dict[int, Union[str, Iterable[str]]]] = None,
        *,
        active: bool = True,
    ) -> Role:
        role = Role(name=name, active=active)
        session.add(role)
        session.flush()
        for group_id, levels in (grants or {}).items():
            for level in [levels] if isinstance(levels, str) else levels:
                session.add(RoleGroup(role_id=role.id, group_id=group_id, access=level))
        session.flush()
        return role

    return _make
